"""
Payment service — charging saved cards and the wallet fallback.

charge_card() is the payment attempt orchestrator. A single attempt moves
through:

    Initiated -> CardResolutionFailed                      (CardNotFoundError)
    Initiated -> TokenResolved -> GatewaySubmitted -> one of
        succeeded | declined_retryable | declined_fatal | gateway_unavailable

and the classified result comes back as a PaymentOutcome, never as an
exception. retry_with_different_method is True for declined_retryable and
gateway_unavailable: the caller may try another card or the wallet. It is
False for declined_fatal (the card itself is unusable) and on success.
Nothing is retried here.

pay_with_fallback() is the layer above: it runs one card attempt and, if
the outcome invites a different instrument and the caller allowed it,
debits the wallet instead.

Audit trail:
  Every attempt that reaches the gateway is stored as a PaymentAttempt,
  including declines and outages.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidInputError
from app.gateway.base import ChargeOutcomeCode, ChargeResult, GatewayError, PaymentGateway
from app.logging_config import get_logger
from app.models.payment_attempt import AttemptStatus, PaymentAttempt
from app.services import card_vault
from app.wallet import WalletClient, WalletDebitResult, WalletError

logger = get_logger(__name__)


_OUTCOME_STATUS = {
    ChargeOutcomeCode.APPROVED.value: AttemptStatus.SUCCEEDED,
    ChargeOutcomeCode.DECLINED_RETRYABLE.value: AttemptStatus.DECLINED_RETRYABLE,
    ChargeOutcomeCode.DECLINED_FATAL.value: AttemptStatus.DECLINED_FATAL,
    ChargeOutcomeCode.UNAVAILABLE.value: AttemptStatus.GATEWAY_UNAVAILABLE,
}

# Outcomes after which another instrument may succeed
RETRY_WITH_DIFFERENT_METHOD = frozenset({
    AttemptStatus.DECLINED_RETRYABLE,
    AttemptStatus.GATEWAY_UNAVAILABLE,
})

GATEWAY_UNAVAILABLE_MESSAGE = (
    "Payment gateway is unavailable. Please try again or use a different payment method."
)


@dataclass
class PaymentOutcome:
    """Classified result of a single card charge attempt."""
    success: bool
    status: AttemptStatus
    message: str
    retry_with_different_method: bool
    transaction_id: str | None = None
    attempt_id: uuid.UUID | None = None


@dataclass
class CheckoutResult:
    """Result of a card attempt plus the optional wallet fallback."""
    success: bool
    message: str
    card_outcome: PaymentOutcome
    used_wallet_fallback: bool = False
    wallet_transaction_id: str | None = None

    @property
    def transaction_id(self) -> str | None:
        if self.used_wallet_fallback:
            return self.wallet_transaction_id
        return self.card_outcome.transaction_id

    @property
    def retry_with_different_method(self) -> bool:
        """Still unpaid, and another instrument may work."""
        return not self.success and self.card_outcome.retry_with_different_method


def classify_charge(result: ChargeResult) -> AttemptStatus:
    """
    Map a gateway charge result to an attempt status.

    Outcome codes this service doesn't recognise are treated as the gateway
    being unavailable: the charge state is unknown, so the caller gets the
    same advice as for an outage.
    """
    status = _OUTCOME_STATUS.get(result.outcome_code)
    if status is None:
        logger.warning("unknown_charge_outcome_code", outcome_code=result.outcome_code)
        return AttemptStatus.GATEWAY_UNAVAILABLE
    if status == AttemptStatus.SUCCEEDED and not result.transaction_id:
        logger.warning("approved_charge_without_transaction_id")
        return AttemptStatus.GATEWAY_UNAVAILABLE
    return status


async def charge_card(
    db: AsyncSession,
    gateway: PaymentGateway,
    owner_id: uuid.UUID | None,
    card_id: uuid.UUID,
    amount_cents: int,
    purpose: str | None = None,
) -> PaymentOutcome:
    """
    Charge one of the owner's saved cards.

    Args:
        db: Database session.
        gateway: Gateway client used for the charge.
        owner_id: The owning user.
        card_id: The saved card to charge.
        amount_cents: Positive integer amount in cents.
        purpose: Free-text description passed to the gateway.

    Returns:
        PaymentOutcome describing the classified result.

    Raises:
        NotAuthenticatedError: If owner_id is empty.
        InvalidInputError: If amount_cents is not positive.
        CardNotFoundError: If the card doesn't exist for this owner.
    """
    if amount_cents <= 0:
        raise InvalidInputError("amount_cents", "Amount must be greater than zero")

    card = await card_vault.resolve_card(db, owner_id, card_id)

    try:
        result = await gateway.charge(
            token=card.gateway_token,
            amount_cents=amount_cents,
            purpose=purpose,
        )
    except GatewayError as exc:
        logger.warning(
            "card_charge_gateway_error",
            owner_id=str(card.owner_id),
            card_id=str(card.id),
            error=str(exc),
        )
        status = AttemptStatus.GATEWAY_UNAVAILABLE
        message = GATEWAY_UNAVAILABLE_MESSAGE
        transaction_id = None
    else:
        status = classify_charge(result)
        message = result.message
        transaction_id = result.transaction_id if status == AttemptStatus.SUCCEEDED else None

    retry = status in RETRY_WITH_DIFFERENT_METHOD

    attempt = PaymentAttempt(
        owner_id=card.owner_id,
        card_id=card.id,
        card_last4=card.last4,
        amount_cents=amount_cents,
        purpose=purpose,
        status=status,
        transaction_id=transaction_id,
        message=message[:255],
        retry_with_different_method=retry,
    )
    db.add(attempt)
    await db.flush()

    logger.info(
        "card_charge_classified",
        owner_id=str(card.owner_id),
        card_id=str(card.id),
        last4=card.last4,
        amount_cents=amount_cents,
        status=status.value,
        retry_with_different_method=retry,
    )

    return PaymentOutcome(
        success=status == AttemptStatus.SUCCEEDED,
        status=status,
        message=message,
        retry_with_different_method=retry,
        transaction_id=transaction_id,
        attempt_id=attempt.id,
    )


async def pay_with_fallback(
    db: AsyncSession,
    gateway: PaymentGateway,
    wallet: WalletClient,
    owner_id: uuid.UUID | None,
    card_id: uuid.UUID,
    amount_cents: int,
    purpose: str | None = None,
    allow_wallet_fallback: bool = True,
) -> CheckoutResult:
    """
    Charge a saved card, falling back to the wallet when the card outcome
    invites a different payment method.

    The wallet is only tried when the card attempt failed with
    retry_with_different_method set and allow_wallet_fallback is True.
    Wallet failures are reported in the result message, never raised.

    Raises:
        Same as charge_card().
    """
    outcome = await charge_card(db, gateway, owner_id, card_id, amount_cents, purpose)

    if outcome.success:
        return CheckoutResult(success=True, message=outcome.message, card_outcome=outcome)

    if not (allow_wallet_fallback and outcome.retry_with_different_method):
        return CheckoutResult(success=False, message=outcome.message, card_outcome=outcome)

    logger.info("wallet_fallback_attempt", owner_id=str(owner_id), card_id=str(card_id))
    try:
        wallet_result = await wallet.debit_wallet(
            owner_id=owner_id,
            amount_cents=amount_cents,
            note=f"Wallet fallback: {purpose}" if purpose else "Wallet fallback",
        )
    except WalletError as exc:
        logger.warning(
            "wallet_fallback_error",
            owner_id=str(owner_id),
            card_id=str(card_id),
            error=str(exc),
        )
        wallet_result = WalletDebitResult(
            success=False,
            message="Wallet service is unavailable",
        )

    if wallet_result.success:
        return CheckoutResult(
            success=True,
            message=(
                f"Card payment failed ({outcome.message}). "
                "Paid successfully using wallet."
            ),
            card_outcome=outcome,
            used_wallet_fallback=True,
            wallet_transaction_id=wallet_result.transaction_id,
        )

    return CheckoutResult(
        success=False,
        message=(
            f"Card payment failed ({outcome.message}). "
            f"Wallet fallback also failed: {wallet_result.message}"
        ),
        card_outcome=outcome,
    )


async def list_attempts(
    db: AsyncSession,
    owner_id: uuid.UUID | None,
    limit: int = 50,
) -> list[PaymentAttempt]:
    """The owner's most recent charge attempts, newest first."""
    owner_id = card_vault.require_owner(owner_id)
    result = await db.execute(
        select(PaymentAttempt)
        .where(PaymentAttempt.owner_id == owner_id)
        .order_by(PaymentAttempt.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
