"""
Card vault service — saved-card lifecycle on top of the gateway and store.

Operations (all scoped to an explicit owner_id):
  - list_cards:        the owner's cards, primary first
  - add_card:          validate -> tokenize -> persist metadata only
  - set_primary_card:  atomic primary flip
  - delete_card:       protected delete + best-effort token revocation
  - resolve_card:      read path the payment orchestrator uses for tokens

Primary-card rules:
  - An owner's first card is created primary.
  - An owner with cards always has exactly one primary card.
  - The primary card can't be deleted while other cards exist; set another
    card primary first. The owner's only card can't be deleted at all.

Card data handling:
  The card number and CVV are validated, handed to the gateway once, and
  dropped. The stored record is built field by field from the gateway's
  answer and the locally derived last4, never from the raw input.

Known gaps:
  - If the insert fails after the gateway issued a token, the token is
    left at the gateway (logged for manual cleanup).
  - Two concurrent first adds for the same owner can both see "no cards"
    and both be created primary.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    CannotDeleteOnlyCardError,
    CannotDeletePrimaryError,
    CardNotFoundError,
    NotAuthenticatedError,
    StoreWriteFailedError,
    TokenizationFailedError,
)
from app.gateway.base import GatewayError, PaymentGateway
from app.logging_config import get_logger
from app.models.card import CardType, SavedCard
from app.services import card_store
from app.services.card_validation import (
    normalize_card_number,
    parse_card_type,
    validate_cvv,
    validate_expiry,
)

logger = get_logger(__name__)


def require_owner(owner_id: uuid.UUID | None) -> uuid.UUID:
    if not owner_id:
        raise NotAuthenticatedError()
    return owner_id


async def list_cards(db: AsyncSession, owner_id: uuid.UUID | None) -> list[SavedCard]:
    """
    List the owner's saved cards, primary first, then in the order added.

    Raises:
        NotAuthenticatedError: If owner_id is empty.
    """
    owner_id = require_owner(owner_id)
    return await card_store.list_cards(db, owner_id)


async def add_card(
    db: AsyncSession,
    gateway: PaymentGateway,
    owner_id: uuid.UUID | None,
    card_number: str,
    expiry_month: int,
    expiry_year: int,
    cvv: str,
    holder_name: str | None,
    card_type: str | CardType,
) -> SavedCard:
    """
    Tokenize a card with the gateway and save its metadata.

    Args:
        db: Database session.
        gateway: Gateway client used for tokenization.
        owner_id: The owning user.
        card_number: Raw PAN (spaces/dashes allowed). Never stored.
        expiry_month: 1-12.
        expiry_year: Four-digit year.
        cvv: 3-4 digits. Sent to the gateway once, never stored or logged.
        holder_name: Optional display name.
        card_type: "Credit" or "Debit".

    Returns:
        The stored SavedCard (primary if it is the owner's first card).

    Raises:
        NotAuthenticatedError: If owner_id is empty.
        InvalidInputError: If any card field fails validation. Raised before
            the gateway is contacted.
        TokenizationFailedError: If the gateway refused the card or could
            not be reached. Nothing is stored.
        StoreWriteFailedError: If persisting the record failed.
    """
    owner_id = require_owner(owner_id)

    pan = normalize_card_number(card_number)
    validate_expiry(expiry_month, expiry_year)
    validate_cvv(cvv)
    parsed_type = parse_card_type(card_type)

    try:
        tokenized = await gateway.tokenize(
            card_number=pan,
            expiry_month=expiry_month,
            expiry_year=expiry_year,
            cvv=cvv,
            holder_name=holder_name,
        )
    except GatewayError as exc:
        logger.warning(
            "card_tokenization_unavailable",
            owner_id=str(owner_id),
            last4=pan[-4:],
            error=str(exc),
        )
        raise TokenizationFailedError(
            "Payment gateway is unavailable, please try again later"
        ) from exc
    finally:
        del cvv

    if not tokenized.success or not tokenized.token:
        logger.info(
            "card_tokenization_rejected",
            owner_id=str(owner_id),
            last4=pan[-4:],
            reason=tokenized.message,
        )
        raise TokenizationFailedError(
            tokenized.message or "Card could not be tokenized by the payment gateway"
        )

    is_first_card = not await card_store.has_cards(db, owner_id)

    card = SavedCard(
        owner_id=owner_id,
        gateway_token=tokenized.token,
        issuer=tokenized.issuer,
        bank_name=tokenized.bank_name,
        last4=pan[-4:],
        expiry_month=expiry_month,
        expiry_year=expiry_year,
        holder_name=holder_name,
        card_type=parsed_type,
        is_primary=is_first_card,
    )
    del pan

    try:
        await card_store.create_card(db, card)
    except StoreWriteFailedError:
        # The token stays at the gateway; surface it for manual revocation
        logger.error(
            "card_gateway_token_orphaned",
            owner_id=str(owner_id),
            gateway_token=tokenized.token,
        )
        raise

    logger.info(
        "card_added",
        owner_id=str(owner_id),
        card_id=str(card.id),
        last4=card.last4,
        issuer=card.issuer,
        is_primary=card.is_primary,
    )
    return card


async def resolve_card(
    db: AsyncSession,
    owner_id: uuid.UUID | None,
    card_id: uuid.UUID,
) -> SavedCard:
    """
    Look up one of the owner's cards (used to get its gateway token).

    Raises:
        NotAuthenticatedError: If owner_id is empty.
        CardNotFoundError: If the card doesn't exist for this owner.
    """
    owner_id = require_owner(owner_id)
    card = await card_store.get_card(db, owner_id, card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    return card


async def set_primary_card(
    db: AsyncSession,
    owner_id: uuid.UUID | None,
    card_id: uuid.UUID,
) -> None:
    """
    Make a card the owner's primary card.

    A no-op if it already is. Otherwise the previous primary is cleared and
    the target set in one atomic UPDATE.

    Raises:
        NotAuthenticatedError: If owner_id is empty.
        CardNotFoundError: If the card doesn't exist for this owner.
    """
    card = await resolve_card(db, owner_id, card_id)
    if card.is_primary:
        return

    await card_store.set_primary(db, card.owner_id, card.id)
    logger.info("primary_card_changed", owner_id=str(card.owner_id), card_id=str(card.id))


def _deletion_blocker(card: SavedCard, owner_cards: list[SavedCard]) -> Exception | None:
    """The error that forbids deleting `card`, or None if deletion is allowed."""
    if len(owner_cards) <= 1:
        return CannotDeleteOnlyCardError(card.id)
    if card.is_primary:
        return CannotDeletePrimaryError(card.id)
    return None


async def delete_card(
    db: AsyncSession,
    gateway: PaymentGateway,
    owner_id: uuid.UUID | None,
    card_id: uuid.UUID,
) -> None:
    """
    Delete a saved card.

    Checks, in order:
      1. The card exists for this owner (else CardNotFoundError).
      2. It is not the owner's only card (CannotDeleteOnlyCardError).
      3. It is not the primary card (CannotDeletePrimaryError).

    The owner's rows are locked and read immediately before the delete, and
    the DELETE itself repeats the checks in its WHERE clause. If a concurrent
    change made the card primary in between, the delete matches nothing and
    the current state is re-read to raise the right error.

    Token revocation at the gateway is best-effort: a failure is logged and
    the local record is deleted regardless.
    """
    owner_id = require_owner(owner_id)

    owner_cards = await card_store.lock_owner_cards(db, owner_id)
    card = next((c for c in owner_cards if c.id == card_id), None)
    if card is None:
        raise CardNotFoundError(card_id)

    blocker = _deletion_blocker(card, owner_cards)
    if blocker is not None:
        raise blocker

    gateway_token = card.gateway_token
    deleted = await card_store.delete_non_primary(db, owner_id, card_id)
    if not deleted:
        owner_cards = await card_store.list_cards(db, owner_id)
        card = next((c for c in owner_cards if c.id == card_id), None)
        if card is None:
            raise CardNotFoundError(card_id)
        raise _deletion_blocker(card, owner_cards) or CannotDeletePrimaryError(card_id)

    await _revoke_token(gateway, owner_id, card_id, gateway_token)
    logger.info("card_deleted", owner_id=str(owner_id), card_id=str(card_id))


async def _revoke_token(
    gateway: PaymentGateway,
    owner_id: uuid.UUID,
    card_id: uuid.UUID,
    gateway_token: str,
) -> None:
    """Ask the gateway to drop a token. Never raises for gateway failures."""
    try:
        result = await gateway.revoke_token(gateway_token)
    except GatewayError as exc:
        logger.warning(
            "card_token_revocation_failed",
            owner_id=str(owner_id),
            card_id=str(card_id),
            error=str(exc),
        )
        return

    if not result.success:
        logger.warning(
            "card_token_revocation_failed",
            owner_id=str(owner_id),
            card_id=str(card_id),
            error=result.message,
        )
