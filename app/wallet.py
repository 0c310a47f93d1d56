"""
Wallet debit client — the fallback payment instrument.

The wallet/UPI rails are owned by another service. The card vault only
needs one thing from them: debit a user's wallet when a card charge failed
in a way that invites trying a different instrument. That single call is
modelled here, together with an in-memory implementation used for local
development and tests.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.config import settings
from app.logging_config import get_logger

logger = get_logger(__name__)


class WalletError(Exception):
    """The wallet service could not be reached or failed mid-request."""


@dataclass(frozen=True)
class WalletDebitResult:
    success: bool
    message: str
    transaction_id: str | None = None


class WalletClient(ABC):
    """Interface to the wallet service's debit operation."""

    @abstractmethod
    async def debit_wallet(
        self,
        owner_id: uuid.UUID,
        amount_cents: int,
        note: str,
    ) -> WalletDebitResult:
        """
        Debit the owner's wallet.

        A refused debit (e.g. insufficient balance) is reported in the
        result.

        Raises:
            WalletError: If the wallet service could not be reached.
        """


class InMemoryWallet(WalletClient):
    """
    Per-process wallet with balances in integer cents.

    Owners start with `opening_balance_cents` the first time they're seen.
    """

    def __init__(self, opening_balance_cents: int | None = None) -> None:
        if opening_balance_cents is None:
            opening_balance_cents = settings.WALLET_OPENING_BALANCE_CENTS
        self.opening_balance_cents = opening_balance_cents
        self._balances: dict[uuid.UUID, int] = {}

    def balance_of(self, owner_id: uuid.UUID) -> int:
        return self._balances.setdefault(owner_id, self.opening_balance_cents)

    async def debit_wallet(
        self,
        owner_id: uuid.UUID,
        amount_cents: int,
        note: str,
    ) -> WalletDebitResult:
        balance = self.balance_of(owner_id)
        if balance < amount_cents:
            logger.info(
                "wallet_debit_declined",
                owner_id=str(owner_id),
                amount_cents=amount_cents,
                balance_cents=balance,
            )
            return WalletDebitResult(
                success=False,
                message=f"Insufficient wallet balance ({balance} cents available)",
            )

        self._balances[owner_id] = balance - amount_cents
        transaction_id = f"WALLET_{uuid.uuid4().hex[:20].upper()}"
        logger.info(
            "wallet_debited",
            owner_id=str(owner_id),
            amount_cents=amount_cents,
            transaction_id=transaction_id,
            note=note,
        )
        return WalletDebitResult(
            success=True,
            message="Paid successfully using wallet.",
            transaction_id=transaction_id,
        )
