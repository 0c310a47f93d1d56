"""
Card record store — persistence primitives for saved cards.

Every query here is scoped to one owner. The store relies on the database
for atomicity; the vault service above it never read-modify-writes the
primary flag in Python.

  - list_cards: primary first, then creation order. created_at carries
    microseconds from the application clock, so two cards of one owner
    practically never tie; the id tie-break only keeps the order
    deterministic across calls if they do, it is not insertion order
  - set_primary: ONE UPDATE that clears the old primary and sets the new
    one, so a reader can never see zero or two primaries mid-flip
  - delete_non_primary: DELETE guarded by "not primary AND other cards
    exist", so a concurrent set_primary can't turn it into a delete of the
    primary or of the last card

The bulk statements skip session synchronization; reads use
populate_existing so objects already in the session are refreshed.

SQLite note:
  with_for_update() is a no-op on SQLite but locks the owner's rows on
  PostgreSQL. The guarded DELETE is what keeps SQLite correct.
"""

import uuid

from sqlalchemy import case, delete, exists, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.exceptions import StoreWriteFailedError
from app.logging_config import get_logger
from app.models.card import SavedCard

logger = get_logger(__name__)


def _owner_cards(owner_id: uuid.UUID):
    return (
        select(SavedCard)
        .where(SavedCard.owner_id == owner_id)
        .order_by(
            SavedCard.is_primary.desc(),
            SavedCard.created_at.asc(),
            SavedCard.id.asc(),
        )
        .execution_options(populate_existing=True)
    )


async def list_cards(db: AsyncSession, owner_id: uuid.UUID) -> list[SavedCard]:
    """All of the owner's cards, primary first, then oldest first."""
    result = await db.execute(_owner_cards(owner_id))
    return list(result.scalars().all())


async def lock_owner_cards(db: AsyncSession, owner_id: uuid.UUID) -> list[SavedCard]:
    """Same as list_cards, but locks the rows for the rest of the transaction."""
    result = await db.execute(_owner_cards(owner_id).with_for_update())
    return list(result.scalars().all())


async def get_card(
    db: AsyncSession,
    owner_id: uuid.UUID,
    card_id: uuid.UUID,
) -> SavedCard | None:
    """Fetch one card, or None if it doesn't exist for this owner."""
    result = await db.execute(
        select(SavedCard)
        .where(SavedCard.id == card_id, SavedCard.owner_id == owner_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def has_cards(db: AsyncSession, owner_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(exists().where(SavedCard.owner_id == owner_id))
    )
    return bool(result.scalar())


async def create_card(db: AsyncSession, card: SavedCard) -> SavedCard:
    """
    Insert a new card record and flush it so id/created_at are assigned.

    Raises:
        StoreWriteFailedError: If the database rejects the write.
    """
    db.add(card)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error(
            "card_store_write_failed",
            owner_id=str(card.owner_id),
            last4=card.last4,
            error=type(exc).__name__,
        )
        raise StoreWriteFailedError() from exc
    return card


async def set_primary(db: AsyncSession, owner_id: uuid.UUID, card_id: uuid.UUID) -> int:
    """
    Make card_id the owner's only primary card in a single statement.

    Only rows whose flag actually changes are touched: the current
    primary (cleared) and the target (set).

    Returns:
        Number of rows updated.
    """
    result = await db.execute(
        update(SavedCard)
        .where(
            SavedCard.owner_id == owner_id,
            or_(SavedCard.is_primary.is_(True), SavedCard.id == card_id),
        )
        .values(is_primary=case((SavedCard.id == card_id, True), else_=False))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_non_primary(
    db: AsyncSession,
    owner_id: uuid.UUID,
    card_id: uuid.UUID,
) -> bool:
    """
    Delete a card only if it is not primary and is not the owner's last card.

    Returns:
        True if the row was deleted, False if the guard no longer held.
    """
    other = aliased(SavedCard)
    other_cards_exist = (
        select(other.id)
        .where(other.owner_id == owner_id, other.id != card_id)
        .exists()
    )

    result = await db.execute(
        delete(SavedCard)
        .where(
            SavedCard.id == card_id,
            SavedCard.owner_id == owner_id,
            SavedCard.is_primary.is_(False),
            other_cards_exist,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
