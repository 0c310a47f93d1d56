"""
Pydantic schemas for saved-card endpoints.

The card number and CVV arrive as SecretStr so they never show up in a
repr, a validation error or a log line. They are NEVER returned: responses
carry only the display metadata (last four digits, expiry, issuer). The
gateway token is not returned either.

Field-level rules (Luhn, expiry, CVV length, card type) are enforced by
the vault service so the same checks apply to every caller.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, SecretStr, computed_field

from app.config import settings
from app.models.card import CardType
from app.services.card_validation import expires_within


class CardCreateRequest(BaseModel):
    """Request body for POST /cards."""
    card_number: SecretStr
    expiry_month: int
    expiry_year: int
    cvv: SecretStr
    holder_name: str | None = Field(None, max_length=100)
    card_type: str = Field(description="'Credit' or 'Debit'")


class CardResponse(BaseModel):
    """Public representation of a saved card (no PAN, CVV or token)."""
    id: uuid.UUID
    last4: str
    issuer: str | None
    bank_name: str | None
    expiry_month: int
    expiry_year: int
    holder_name: str | None
    card_type: CardType
    is_primary: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def expires_soon(self) -> bool:
        """True when the card lapses within CARD_EXPIRY_WARNING_DAYS (or has)."""
        return expires_within(
            self.expiry_month, self.expiry_year, settings.CARD_EXPIRY_WARNING_DAYS
        )


class CardActionResponse(BaseModel):
    """Acknowledgement for delete / set-primary."""
    success: bool = True
    message: str
