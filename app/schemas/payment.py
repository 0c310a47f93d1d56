"""
Pydantic schemas for saved-card payment endpoints.

All monetary amounts are in integer cents (e.g., ₹10.50 = 1050).
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.payment_attempt import AttemptStatus


class CardChargeRequest(BaseModel):
    """Request body for POST /payments/card."""
    card_id: uuid.UUID
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    purpose: str | None = Field(None, max_length=255)
    allow_wallet_fallback: bool = Field(
        False,
        description="Debit the wallet if the card fails in a way that invites another method",
    )


class PaymentOutcomeResponse(BaseModel):
    """Classified result of the card charge attempt."""
    success: bool
    status: AttemptStatus
    message: str
    transaction_id: str | None
    retry_with_different_method: bool
    attempt_id: uuid.UUID | None

    model_config = {"from_attributes": True}


class CheckoutResponse(BaseModel):
    """Response body for POST /payments/card."""
    success: bool
    message: str
    transaction_id: str | None
    used_wallet_fallback: bool
    wallet_transaction_id: str | None
    retry_with_different_method: bool
    card_outcome: PaymentOutcomeResponse

    model_config = {"from_attributes": True}


class PaymentAttemptResponse(BaseModel):
    """One entry of the charge attempt history."""
    id: uuid.UUID
    card_id: uuid.UUID
    card_last4: str
    amount_cents: int
    purpose: str | None
    status: AttemptStatus
    transaction_id: str | None
    message: str
    retry_with_different_method: bool
    created_at: datetime

    model_config = {"from_attributes": True}
