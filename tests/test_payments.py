"""
Tests for charging saved cards (POST /payments/card, GET /payments/attempts).

These tests verify:
  - Approved charges return a gateway transaction id
  - Each gateway outcome is classified, with retry_with_different_method
    set only for retryable declines and gateway outages
  - Gateway timeouts and unknown outcome codes count as outages
  - The wallet fallback runs only when allowed and only after an outcome
    that invites a different payment method
  - Every attempt that reaches the gateway is recorded; failed card
    lookups record nothing
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from app.exceptions import CardNotFoundError, InvalidInputError
from app.gateway import ChargeResult, MockPaymentGateway
from app.models.payment_attempt import AttemptStatus, PaymentAttempt
from app.services import card_vault, payment_service
from app.services.payment_service import GATEWAY_UNAVAILABLE_MESSAGE
from app.wallet import InMemoryWallet, WalletError


EXPIRY_YEAR = datetime.now(timezone.utc).year + 2


async def add_card(client, card_number):
    response = await client.post(
        "/cards",
        json={
            "card_number": card_number,
            "expiry_month": 8,
            "expiry_year": EXPIRY_YEAR,
            "cvv": "321",
            "card_type": "Credit",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def pay(client, card_id, amount_cents=2500, **extra):
    return await client.post(
        "/payments/card",
        json={"card_id": card_id, "amount_cents": amount_cents, **extra},
    )


# ---------------------------------------------------------------------------
# Card outcomes
# ---------------------------------------------------------------------------

class TestCardCharge:
    """Outcome classification for a single card attempt."""

    async def test_approved_charge(self, authenticated_client):
        card_id = await add_card(authenticated_client, "4242424242424242")

        response = await pay(authenticated_client, card_id, purpose="Order #1001")
        assert response.status_code == 200
        data = response.json()

        assert data["success"] is True
        assert data["used_wallet_fallback"] is False
        assert data["retry_with_different_method"] is False
        assert data["transaction_id"].startswith("PAY_CARD_PG_")
        assert data["card_outcome"]["status"] == "succeeded"
        assert data["card_outcome"]["attempt_id"] is not None

    async def test_retryable_decline(self, authenticated_client):
        card_id = await add_card(authenticated_client, "4000000000009995")

        data = (await pay(authenticated_client, card_id)).json()

        assert data["success"] is False
        assert data["transaction_id"] is None
        assert data["retry_with_different_method"] is True
        assert data["card_outcome"]["status"] == "declined_retryable"
        assert "insufficient funds" in data["message"]

    async def test_fatal_decline(self, authenticated_client):
        card_id = await add_card(authenticated_client, "4000000000000341")

        data = (await pay(authenticated_client, card_id)).json()

        assert data["success"] is False
        assert data["retry_with_different_method"] is False
        assert data["card_outcome"]["status"] == "declined_fatal"

    async def test_gateway_unavailable_outcome(self, authenticated_client):
        card_id = await add_card(authenticated_client, "4000000000000119")

        data = (await pay(authenticated_client, card_id)).json()

        assert data["success"] is False
        assert data["retry_with_different_method"] is True
        assert data["card_outcome"]["status"] == "gateway_unavailable"

    async def test_gateway_timeout_is_unavailable(self, authenticated_client):
        """A transport error from the gateway is classified, not raised."""
        card_id = await add_card(authenticated_client, "4000000000009987")

        response = await pay(authenticated_client, card_id)
        assert response.status_code == 200
        data = response.json()

        assert data["card_outcome"]["status"] == "gateway_unavailable"
        assert data["retry_with_different_method"] is True
        assert data["message"] == GATEWAY_UNAVAILABLE_MESSAGE

    async def test_non_positive_amount_rejected(self, authenticated_client):
        card_id = await add_card(authenticated_client, "4242424242424242")

        response = await pay(authenticated_client, card_id, amount_cents=0)
        assert response.status_code == 422

        attempts = await authenticated_client.get("/payments/attempts")
        assert attempts.json() == []

    async def test_unknown_card_returns_404(self, authenticated_client):
        response = await pay(authenticated_client, str(uuid.uuid4()))
        assert response.status_code == 404
        assert response.json()["error_type"] == "card_not_found"

    async def test_cannot_charge_other_users_card(
        self, authenticated_client, second_authenticated_client
    ):
        card_id = await add_card(authenticated_client, "4242424242424242")

        response = await pay(second_authenticated_client, card_id)
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Wallet fallback
# ---------------------------------------------------------------------------

class TestWalletFallback:
    """The wallet is tried only when the card outcome invites it."""

    async def test_fallback_pays_after_retryable_decline(self, authenticated_client, wallet):
        card_id = await add_card(authenticated_client, "4000000000000002")

        data = (await pay(
            authenticated_client, card_id, amount_cents=4000, allow_wallet_fallback=True
        )).json()

        assert data["success"] is True
        assert data["used_wallet_fallback"] is True
        assert data["transaction_id"].startswith("WALLET_")
        assert data["transaction_id"] == data["wallet_transaction_id"]
        assert data["retry_with_different_method"] is False
        assert data["card_outcome"]["status"] == "declined_retryable"
        assert "Paid successfully using wallet" in data["message"]
        assert sorted(wallet._balances.values()) == [6000]

    async def test_fallback_after_gateway_outage(self, authenticated_client):
        card_id = await add_card(authenticated_client, "4000000000009987")

        data = (await pay(authenticated_client, card_id, allow_wallet_fallback=True)).json()

        assert data["success"] is True
        assert data["used_wallet_fallback"] is True

    async def test_fallback_failure_is_reported(self, authenticated_client):
        card_id = await add_card(authenticated_client, "4000000000009995")

        data = (await pay(
            authenticated_client, card_id, amount_cents=50_000, allow_wallet_fallback=True
        )).json()

        assert data["success"] is False
        assert data["used_wallet_fallback"] is False
        assert data["retry_with_different_method"] is True
        assert "Wallet fallback also failed" in data["message"]
        assert "Insufficient wallet balance" in data["message"]

    async def test_no_fallback_after_fatal_decline(self, authenticated_client, wallet):
        card_id = await add_card(authenticated_client, "4000000000000069")

        data = (await pay(authenticated_client, card_id, allow_wallet_fallback=True)).json()

        assert data["success"] is False
        assert data["used_wallet_fallback"] is False
        assert wallet._balances == {}

    async def test_no_fallback_unless_requested(self, authenticated_client, wallet):
        card_id = await add_card(authenticated_client, "4000000000009995")

        data = (await pay(authenticated_client, card_id)).json()

        assert data["used_wallet_fallback"] is False
        assert wallet._balances == {}


# ---------------------------------------------------------------------------
# Attempt history
# ---------------------------------------------------------------------------

class TestAttemptHistory:
    """Tests for GET /payments/attempts."""

    async def test_attempts_recorded_newest_first(self, authenticated_client):
        good = await add_card(authenticated_client, "4242424242424242")
        bad = await add_card(authenticated_client, "4000000000000341")

        await pay(authenticated_client, good, amount_cents=1000)
        await pay(authenticated_client, bad, amount_cents=2000)

        response = await authenticated_client.get("/payments/attempts")
        assert response.status_code == 200
        attempts = response.json()

        assert [a["amount_cents"] for a in attempts] == [2000, 1000]
        assert attempts[0]["status"] == "declined_fatal"
        assert attempts[0]["card_last4"] == "0341"
        assert attempts[0]["transaction_id"] is None
        assert attempts[1]["status"] == "succeeded"
        assert attempts[1]["transaction_id"].startswith("PAY_CARD_PG_")

    async def test_attempts_are_per_user(
        self, authenticated_client, second_authenticated_client
    ):
        card_id = await add_card(authenticated_client, "4242424242424242")
        await pay(authenticated_client, card_id)

        response = await second_authenticated_client.get("/payments/attempts")
        assert response.json() == []


# ---------------------------------------------------------------------------
# Service-level classification
# ---------------------------------------------------------------------------

class FixedResultGateway(MockPaymentGateway):
    """Tokenizes like the mock but answers every charge with a fixed result."""

    def __init__(self, result: ChargeResult):
        super().__init__()
        self.result = result

    async def charge(self, token, amount_cents, purpose):
        return self.result


async def _saved_card(db, gateway, owner_id):
    return await card_vault.add_card(
        db=db,
        gateway=gateway,
        owner_id=owner_id,
        card_number="4242424242424242",
        expiry_month=3,
        expiry_year=EXPIRY_YEAR,
        cvv="123",
        holder_name=None,
        card_type="Credit",
    )


async def _attempt_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(PaymentAttempt))).scalar_one()


class TestChargeClassification:
    """payment_service.charge_card called directly."""

    async def test_unknown_outcome_code_is_gateway_unavailable(self, db_session, owner):
        gateway = FixedResultGateway(ChargeResult(outcome_code="pending_review", message="Held"))
        card = await _saved_card(db_session, gateway, owner.id)

        outcome = await payment_service.charge_card(db_session, gateway, owner.id, card.id, 500)

        assert outcome.success is False
        assert outcome.status == AttemptStatus.GATEWAY_UNAVAILABLE
        assert outcome.retry_with_different_method is True

    async def test_approval_without_transaction_id_is_not_success(self, db_session, owner):
        gateway = FixedResultGateway(ChargeResult(outcome_code="approved", message="OK"))
        card = await _saved_card(db_session, gateway, owner.id)

        outcome = await payment_service.charge_card(db_session, gateway, owner.id, card.id, 500)

        assert outcome.success is False
        assert outcome.status == AttemptStatus.GATEWAY_UNAVAILABLE

    async def test_non_positive_amount(self, db_session, gateway, owner):
        card = await _saved_card(db_session, gateway, owner.id)

        with pytest.raises(InvalidInputError) as exc_info:
            await payment_service.charge_card(db_session, gateway, owner.id, card.id, -100)
        assert exc_info.value.field == "amount_cents"
        assert await _attempt_count(db_session) == 0

    async def test_card_not_found_records_nothing(self, db_session, gateway, owner):
        with pytest.raises(CardNotFoundError):
            await payment_service.charge_card(
                db_session, gateway, owner.id, uuid.uuid4(), 500
            )
        assert await _attempt_count(db_session) == 0

    async def test_attempt_row_matches_outcome(self, db_session, gateway, owner):
        card = await _saved_card(db_session, gateway, owner.id)

        outcome = await payment_service.charge_card(
            db_session, gateway, owner.id, card.id, 1999, purpose="Groceries"
        )

        attempt = await db_session.get(PaymentAttempt, outcome.attempt_id)
        assert attempt.status == AttemptStatus.SUCCEEDED
        assert attempt.amount_cents == 1999
        assert attempt.purpose == "Groceries"
        assert attempt.card_last4 == "4242"
        assert attempt.transaction_id == outcome.transaction_id


class UnreachableWallet(InMemoryWallet):
    async def debit_wallet(self, owner_id, amount_cents, note):
        raise WalletError("connection reset by wallet service")


class TestFallbackWalletErrors:
    """payment_service.pay_with_fallback with a failing wallet client."""

    async def test_wallet_error_is_reported_not_raised(self, db_session, owner):
        gateway = FixedResultGateway(
            ChargeResult(outcome_code="declined_retryable", message="Issuer declined")
        )
        card = await _saved_card(db_session, gateway, owner.id)

        result = await payment_service.pay_with_fallback(
            db_session, gateway, UnreachableWallet(), owner.id, card.id, 700
        )

        assert result.success is False
        assert result.used_wallet_fallback is False
        assert result.retry_with_different_method is True
        assert "Issuer declined" in result.message
        assert "Wallet fallback also failed: Wallet service is unavailable" in result.message
        assert await _attempt_count(db_session) == 1
