"""
Payment gateway client interface.

The vault talks to exactly one external payment gateway through this
interface, for three things:

  - tokenize(): exchange raw card data for an opaque token (the ONLY place
    a PAN or CVV leaves the process)
  - revoke_token(): best-effort removal of a token the vault no longer needs
  - charge(): charge a stored token

Declines are NOT exceptions — charge() returns a ChargeResult whose
outcome_code says what happened. Only transport-level trouble (timeouts,
connection errors, 5xx) raises GatewayUnavailableError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ChargeOutcomeCode(str, Enum):
    """Outcome codes a gateway reports for a charge."""

    APPROVED = "approved"
    DECLINED_RETRYABLE = "declined_retryable"
    DECLINED_FATAL = "declined_fatal"
    UNAVAILABLE = "unavailable"


class GatewayError(Exception):
    """Base exception for gateway client failures."""


class GatewayUnavailableError(GatewayError):
    """The gateway could not be reached or did not answer in time."""


@dataclass(frozen=True)
class TokenizationResult:
    """Gateway answer to a tokenization request."""

    success: bool
    token: str | None = None
    issuer: str | None = None
    bank_name: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class RevocationResult:
    success: bool
    message: str | None = None


@dataclass(frozen=True)
class ChargeResult:
    """
    Gateway answer to a charge request.

    outcome_code is kept as the raw string the gateway sent so that codes
    this client doesn't know about still reach the classifier.
    """

    outcome_code: str
    message: str
    transaction_id: str | None = None


class PaymentGateway(ABC):
    """
    Abstract base class for payment gateway integrations.

    Implementations must never log or retain the raw card number or CVV
    beyond what the gateway itself is responsible for storing.
    """

    name: str = "base"

    @abstractmethod
    async def tokenize(
        self,
        card_number: str,
        expiry_month: int,
        expiry_year: int,
        cvv: str,
        holder_name: str | None,
    ) -> TokenizationResult:
        """
        Tokenize a card.

        Returns:
            TokenizationResult with success=False when the gateway refuses
            the card.

        Raises:
            GatewayUnavailableError: If the gateway could not be reached.
        """

    @abstractmethod
    async def revoke_token(self, token: str) -> RevocationResult:
        """
        Ask the gateway to forget a token.

        Raises:
            GatewayUnavailableError: If the gateway could not be reached.
        """

    @abstractmethod
    async def charge(
        self,
        token: str,
        amount_cents: int,
        purpose: str | None,
    ) -> ChargeResult:
        """
        Charge a tokenized card.

        Raises:
            GatewayUnavailableError: If the gateway could not be reached.
        """
