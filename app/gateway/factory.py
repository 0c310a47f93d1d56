"""
Gateway factory: configuration-based selection of the gateway client.

Only the mock gateway ships with this service. A real integration is
added by implementing PaymentGateway and registering it in _GATEWAYS.
"""

from app.config import settings
from app.gateway.base import PaymentGateway
from app.gateway.mock import MockPaymentGateway
from app.logging_config import get_logger

logger = get_logger(__name__)


_GATEWAYS: dict[str, type[PaymentGateway]] = {
    "mock": MockPaymentGateway,
}


def create_gateway(gateway_name: str | None = None) -> PaymentGateway:
    """
    Create a gateway client by name (defaults to settings.PAYMENT_GATEWAY).

    Raises:
        ValueError: If the name is not registered.
    """
    name = (gateway_name or settings.PAYMENT_GATEWAY).lower()

    if name not in _GATEWAYS:
        available = ", ".join(_GATEWAYS)
        raise ValueError(
            f"Unknown payment gateway: {name}. Available gateways: {available}"
        )

    logger.info("payment_gateway_created", gateway_name=name)

    if name == "mock":
        return MockPaymentGateway(vault_key=settings.GATEWAY_VAULT_KEY)
    return _GATEWAYS[name]()
