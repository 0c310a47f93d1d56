"""
Payments router — charging saved cards.

Endpoints:
  POST /payments/card      — Charge a saved card (optional wallet fallback)
  GET  /payments/attempts  — Charge attempt history

A declined or failed charge is NOT an HTTP error: the response is 200 with
success=false and retry_with_different_method telling the client whether
to offer another card or the wallet.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_owner_id, get_payment_gateway, get_wallet_client
from app.gateway import PaymentGateway
from app.schemas.payment import CardChargeRequest, CheckoutResponse, PaymentAttemptResponse
from app.services import payment_service
from app.wallet import WalletClient

router = APIRouter()


@router.post(
    "/card",
    response_model=CheckoutResponse,
    summary="Pay with a saved card",
)
async def pay_with_card(
    request: CardChargeRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    wallet: WalletClient = Depends(get_wallet_client),
):
    """
    Charge a saved card.

    - **amount_cents**: Positive integer amount in cents
    - **allow_wallet_fallback**: If true and the card fails with a retryable
      decline or a gateway outage, the wallet is debited instead
    """
    result = await payment_service.pay_with_fallback(
        db=db,
        gateway=gateway,
        wallet=wallet,
        owner_id=owner_id,
        card_id=request.card_id,
        amount_cents=request.amount_cents,
        purpose=request.purpose,
        allow_wallet_fallback=request.allow_wallet_fallback,
    )
    return CheckoutResponse.model_validate(result)


@router.get(
    "/attempts",
    response_model=list[PaymentAttemptResponse],
    summary="List card charge attempts",
)
async def list_attempts(
    limit: int = Query(50, ge=1, le=200),
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Most recent charge attempts first, including declines."""
    return await payment_service.list_attempts(db=db, owner_id=owner_id, limit=limit)
