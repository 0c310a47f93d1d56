"""
Mock payment gateway for local development and tests.

Simulates tokenization, revocation and charging without network calls.
Behavior is driven by well-known test card numbers (the same numbers the
major gateways publish for their sandboxes), so a test can pick an outcome
just by choosing which card it adds:

    4000000000000127  tokenization refused (bad security code)
    4000000000009995  charge declined, insufficient funds   -> declined_retryable
    4000000000000002  charge declined by issuer            -> declined_retryable
    4000000000000069  charge declined, card expired        -> declined_fatal
    4000000000000341  charge declined, lost card           -> declined_fatal
    4000000000000119  processing error                     -> unavailable
    4000000000009987  gateway rate limit                   -> GatewayUnavailableError

Any other valid card is approved. A card whose stored expiry has passed is
declined fatally regardless of its number.

Like a real gateway, the mock keeps the PAN on its side of the boundary,
encrypted with Fernet; the token it hands back is random and carries no
card data.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from cryptography.fernet import Fernet

from app.gateway.base import (
    ChargeOutcomeCode,
    ChargeResult,
    GatewayUnavailableError,
    PaymentGateway,
    RevocationResult,
    TokenizationResult,
)
from app.logging_config import get_logger

logger = get_logger(__name__)


TEST_CARD_BEHAVIORS: dict[str, dict[str, str]] = {
    "4000000000000127": {
        "type": "tokenize_reject",
        "reason": "Your card's security code is incorrect",
    },
    "4000000000009995": {
        "type": "decline_retryable",
        "reason": "Payment declined by bank (insufficient funds)",
    },
    "4000000000000002": {
        "type": "decline_retryable",
        "reason": "Payment declined by issuer",
    },
    "4000000000000069": {
        "type": "decline_fatal",
        "reason": "Card has expired",
    },
    "4000000000000341": {
        "type": "decline_fatal",
        "reason": "Card has been reported lost",
    },
    "4000000000000119": {
        "type": "unavailable",
        "reason": "Payment gateway error, please try again",
    },
    "4000000000009987": {
        "type": "timeout",
        "reason": "Gateway rate limit exceeded",
    },
}


@dataclass
class _VaultedCard:
    pan_encrypted: bytes
    expiry_month: int
    expiry_year: int


def _issuer_for(card_number: str) -> tuple[str, str]:
    """Issuer network and a display bank name derived from the PAN prefix."""
    if card_number.startswith("4"):
        return "Visa", "HDFC Bank"
    if card_number.startswith("5"):
        return "Mastercard", "ICICI Bank"
    if card_number.startswith(("34", "37")):
        return "Amex", "American Express"
    return "RuPay", "State Bank of India"


class MockPaymentGateway(PaymentGateway):
    """
    In-memory gateway keyed by test card number.

    Args:
        vault_key: Fernet key for the mock's PAN store. A new key is
            generated when omitted.
        card_behaviors: Override the default TEST_CARD_BEHAVIORS mapping.
        fail_revocations: Make every revoke_token() call fail.
    """

    name = "mock"

    def __init__(
        self,
        vault_key: str | None = None,
        card_behaviors: dict[str, dict[str, str]] | None = None,
        fail_revocations: bool = False,
    ) -> None:
        key = vault_key.encode() if vault_key else Fernet.generate_key()
        self._fernet = Fernet(key)
        self._vault: dict[str, _VaultedCard] = {}
        self.card_behaviors = card_behaviors if card_behaviors is not None else TEST_CARD_BEHAVIORS
        self.fail_revocations = fail_revocations

    def has_token(self, token: str) -> bool:
        return token in self._vault

    def _behavior_for(self, card_number: str) -> dict[str, str]:
        return self.card_behaviors.get(card_number, {"type": "approve"})

    async def tokenize(
        self,
        card_number: str,
        expiry_month: int,
        expiry_year: int,
        cvv: str,
        holder_name: str | None,
    ) -> TokenizationResult:
        behavior = self._behavior_for(card_number)

        if behavior["type"] == "tokenize_reject":
            logger.info("mock_tokenization_rejected", last4=card_number[-4:])
            return TokenizationResult(success=False, message=behavior["reason"])

        token = f"tok_{secrets.token_urlsafe(18)}"
        self._vault[token] = _VaultedCard(
            pan_encrypted=self._fernet.encrypt(card_number.encode()),
            expiry_month=expiry_month,
            expiry_year=expiry_year,
        )
        issuer, bank_name = _issuer_for(card_number)

        logger.info("mock_card_tokenized", last4=card_number[-4:], issuer=issuer)
        return TokenizationResult(
            success=True,
            token=token,
            issuer=issuer,
            bank_name=bank_name,
            message="Card tokenized successfully.",
        )

    async def revoke_token(self, token: str) -> RevocationResult:
        if self.fail_revocations:
            raise GatewayUnavailableError("Mock gateway refused the revocation request")

        if self._vault.pop(token, None) is None:
            return RevocationResult(success=False, message="Unknown token")
        return RevocationResult(success=True)

    async def charge(
        self,
        token: str,
        amount_cents: int,
        purpose: str | None,
    ) -> ChargeResult:
        vaulted = self._vault.get(token)
        if vaulted is None:
            return ChargeResult(
                outcome_code=ChargeOutcomeCode.DECLINED_FATAL.value,
                message="Unknown payment token",
            )

        card_number = self._fernet.decrypt(vaulted.pan_encrypted).decode()
        behavior = self._behavior_for(card_number)
        behavior_type = behavior["type"]

        logger.info(
            "mock_charge_starting",
            last4=card_number[-4:],
            amount_cents=amount_cents,
            behavior=behavior_type,
        )

        if behavior_type == "timeout":
            raise GatewayUnavailableError(behavior["reason"])

        if behavior_type == "unavailable":
            return ChargeResult(
                outcome_code=ChargeOutcomeCode.UNAVAILABLE.value,
                message=behavior["reason"],
            )

        now = datetime.now(timezone.utc)
        if (vaulted.expiry_year, vaulted.expiry_month) < (now.year, now.month):
            return ChargeResult(
                outcome_code=ChargeOutcomeCode.DECLINED_FATAL.value,
                message="Card has expired",
            )

        if behavior_type == "decline_retryable":
            return ChargeResult(
                outcome_code=ChargeOutcomeCode.DECLINED_RETRYABLE.value,
                message=behavior["reason"],
            )

        if behavior_type == "decline_fatal":
            return ChargeResult(
                outcome_code=ChargeOutcomeCode.DECLINED_FATAL.value,
                message=behavior["reason"],
            )

        return ChargeResult(
            outcome_code=ChargeOutcomeCode.APPROVED.value,
            transaction_id=f"PAY_CARD_PG_{uuid.uuid4().hex[:20].upper()}",
            message="Payment successful via card.",
        )
