"""
Cards router — the saved-card vault.

Endpoints:
  GET    /cards                    — List saved cards (primary first)
  POST   /cards                    — Tokenize and save a new card
  POST   /cards/{card_id}/primary  — Make a card the primary card
  DELETE /cards/{card_id}          — Delete a saved card

Card numbers and CVVs are accepted only on POST /cards and are never
returned. The primary card can't be deleted while other cards exist, and
the only remaining card can't be deleted at all (409 in both cases).
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_owner_id, get_payment_gateway
from app.gateway import PaymentGateway
from app.schemas.card import CardActionResponse, CardCreateRequest, CardResponse
from app.services import card_vault

router = APIRouter()


@router.get(
    "",
    response_model=list[CardResponse],
    summary="List saved cards",
)
async def list_cards(
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """List the user's saved cards. The primary card is always first."""
    return await card_vault.list_cards(db=db, owner_id=owner_id)


@router.post(
    "",
    response_model=CardResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a card",
)
async def add_card(
    request: CardCreateRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Tokenize a card with the payment gateway and save its metadata.

    - The card number must pass the Luhn checksum
    - The expiry month/year must not be in the past
    - The CVV (3-4 digits) is used for tokenization only and never stored
    - The first card a user adds becomes their primary card
    """
    return await card_vault.add_card(
        db=db,
        gateway=gateway,
        owner_id=owner_id,
        card_number=request.card_number.get_secret_value(),
        expiry_month=request.expiry_month,
        expiry_year=request.expiry_year,
        cvv=request.cvv.get_secret_value(),
        holder_name=request.holder_name,
        card_type=request.card_type,
    )


@router.post(
    "/{card_id}/primary",
    response_model=CardActionResponse,
    summary="Set the primary card",
)
async def set_primary_card(
    card_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Make this card the primary card. The previous primary is cleared."""
    await card_vault.set_primary_card(db=db, owner_id=owner_id, card_id=card_id)
    return CardActionResponse(message="Primary card updated successfully.")


@router.delete(
    "/{card_id}",
    response_model=CardActionResponse,
    summary="Delete a saved card",
)
async def delete_card(
    card_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Delete a saved card and revoke its token at the gateway.

    Set another card as primary before deleting the current primary card.
    """
    await card_vault.delete_card(db=db, gateway=gateway, owner_id=owner_id, card_id=card_id)
    return CardActionResponse(message="Card deleted successfully.")
