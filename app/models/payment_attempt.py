"""
PaymentAttempt model — audit trail of saved-card charge attempts.

Every charge that resolves its card and reaches the gateway is recorded
here with its classified outcome, whether it succeeded or not. Attempts
that fail card resolution never reach the gateway and are not recorded.

card_id is intentionally not a foreign key: a card can be deleted after
it was charged, and the attempt history must survive that. card_last4
is copied at attempt time for display.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Boolean, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class AttemptStatus(str, enum.Enum):
    """Terminal state of a single charge attempt."""
    SUCCEEDED = "succeeded"
    DECLINED_RETRYABLE = "declined_retryable"
    DECLINED_FATAL = "declined_fatal"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"


class PaymentAttempt(Base):
    __tablename__ = "payment_attempts"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_payment_attempts_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    card_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
    )

    card_last4: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    purpose: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    status: Mapped[AttemptStatus] = mapped_column(
        Enum(AttemptStatus),
        nullable=False,
    )

    # Gateway transaction id, only set on success
    transaction_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    message: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    retry_with_different_method: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
