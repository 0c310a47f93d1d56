"""Payment gateway clients (tokenization, revocation, charging)."""

from app.gateway.base import (
    ChargeOutcomeCode,
    ChargeResult,
    GatewayError,
    GatewayUnavailableError,
    PaymentGateway,
    RevocationResult,
    TokenizationResult,
)
from app.gateway.factory import create_gateway
from app.gateway.mock import MockPaymentGateway

__all__ = [
    "ChargeOutcomeCode",
    "ChargeResult",
    "GatewayError",
    "GatewayUnavailableError",
    "MockPaymentGateway",
    "PaymentGateway",
    "RevocationResult",
    "TokenizationResult",
    "create_gateway",
]
