"""
SavedCard model — the metadata record for a tokenized payment card.

One user owns many saved cards. The card itself (PAN and CVV) lives only
at the payment gateway; this table keeps the gateway's opaque token plus
the display metadata the UI needs:

  - gateway_token: opaque reference issued by the gateway at tokenization
  - last4: last four PAN digits for "ending in ****" display
  - expiry_month / expiry_year: so the UI can warn before the card lapses
  - issuer / bank_name: display metadata supplied by the gateway

There is deliberately no column for the card number or the CVV. The CVV
is used once for tokenization and dropped; the PAN never leaves the
request that submitted it.

Primary card:
  At most one card per owner has is_primary = True, and an owner with any
  cards always has exactly one. The first card an owner adds is created
  primary. The flag only changes through card_store.set_primary, which
  flips the whole owner's set in a single UPDATE.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Boolean, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class CardType(str, enum.Enum):
    """Card funding type. Values match the strings the frontend sends."""
    CREDIT = "Credit"
    DEBIT = "Debit"


class SavedCard(Base):
    __tablename__ = "saved_cards"

    __table_args__ = (
        CheckConstraint(
            "expiry_month BETWEEN 1 AND 12",
            name="ck_saved_cards_expiry_month",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Owning user, indexed for the per-owner queries every operation runs
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # Opaque token from the gateway, safe to store
    gateway_token: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # e.g. "Visa", "Mastercard"
    issuer: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    bank_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    last4: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
    )

    expiry_month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    expiry_year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    holder_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    card_type: Mapped[CardType] = mapped_column(
        Enum(CardType),
        nullable=False,
    )

    is_primary: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
