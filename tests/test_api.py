"""Tests for API endpoints."""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from card_gateway.api import create_app
from card_gateway.connectors import SimulatorConnector
from card_gateway.store import user_path, card_status_path


def seed(store, path, data):
    asyncio.run(store.set(path, data))


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture
def client(config, simulator, memory_store):
    """Test client over the simulator and an in-memory store."""
    app = create_app(config, processor=simulator, store=memory_store)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def mock_processor():
    processor = MagicMock()
    processor.name = "mock"
    processor.verify_transaction = AsyncMock()
    processor.charge_authorization = AsyncMock()
    return processor


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.backend = "mock"
    for method in ("get", "set", "update", "transact"):
        setattr(store, method, AsyncMock())
    return store


@pytest.fixture
def mock_client(config, mock_processor, mock_store):
    """Test client whose collaborators record every call."""
    app = create_app(config, processor=mock_processor, store=mock_store)
    with TestClient(app) as client:
        yield client


class TestVerifyPaymentEndpoint:
    """Tests for POST /api/verify-payment."""

    def test_verify_success(self, client, simulator, memory_store, paystack_authorization, payment_details):
        simulator.register_transaction("ref_123", paystack_authorization)
        seed(memory_store, user_path("user_1"), {"username": "ada"})

        response = client.post("/api/verify-payment", json={"reference": "ref_123", "userId": "user_1"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Payment verified and card saved."
        assert data["cardDetails"]["authorization_code"] == "AUTH_buyer_123"
        assert memory_store.snapshot()[user_path("user_1")] == {
            "username": "ada",
            "payment_details": payment_details,
        }

    def test_verify_failed(self, client, memory_store):
        response = client.post(
            "/api/verify-payment",
            json={"reference": SimulatorConnector.REFERENCE_FAILED, "userId": "user_1"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Payment verification failed."}
        assert memory_store.snapshot() == {}

    def test_verify_processor_outage(self, client):
        response = client.post(
            "/api/verify-payment",
            json={"reference": SimulatorConnector.REFERENCE_ERROR, "userId": "user_1"},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "An error occurred during payment verification."}

    @pytest.mark.parametrize("body", [
        {},
        {"reference": "ref_123"},
        {"userId": "user_1"},
        {"reference": "", "userId": "user_1"},
        {"reference": "ref_123", "userId": "user_1", "extra": True},
    ])
    def test_verify_invalid_body(self, mock_client, mock_processor, mock_store, body):
        response = mock_client.post("/api/verify-payment", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Reference and userId are required."}
        mock_processor.verify_transaction.assert_not_called()
        mock_store.set.assert_not_called()


class TestChargeCardEndpoint:
    """Tests for POST /api/charge-card."""

    def test_charge_success(self, client, memory_store, charge_body, payment_details):
        seed(memory_store, user_path("user_1"), {"payment_details": payment_details})
        before = datetime.now(timezone.utc)

        response = client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Card purchased successfully!"
        assert data["sales"] == 0
        active_until = parse_timestamp(data["activeUntil"])
        assert before + timedelta(days=20) - timedelta(seconds=1) <= active_until
        assert active_until <= datetime.now(timezone.utc) + timedelta(days=20)
        assert data["updatedCard"]["card_status"] is True
        assert data["updatedCard"]["secondary_seller"] == payment_details
        assert data["updatedCard"]["title"] == "Kleepa"

    def test_charge_unknown_card_defaults_to_ten_days(self, client, charge_body):
        charge_body["cardId"] = "Unlisted"
        before = datetime.now(timezone.utc)

        response = client.post("/api/charge-card", json=charge_body)

        active_until = parse_timestamp(response.json()["activeUntil"])
        assert abs(active_until - (before + timedelta(days=10))) < timedelta(seconds=5)

    def test_charge_accepts_card_title(self, client, memory_store, charge_body):
        charge_body["cardTitle"] = charge_body.pop("cardId")

        response = client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 200
        assert card_status_path("user_1", "Kleepa") in memory_store.snapshot()

    def test_charge_accepts_card_id_and_card_title_together(self, client, memory_store, charge_body):
        charge_body["cardTitle"] = "Pinkies"

        response = client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 200
        assert response.json()["updatedCard"]["title"] == "Kleepa"
        assert card_status_path("user_1", "Pinkies") not in memory_store.snapshot()

    def test_charge_preserves_sales(self, client, memory_store, charge_body):
        seed(memory_store, card_status_path("user_1", "Kleepa"), {"sales": 5})

        response = client.post("/api/charge-card", json=charge_body)

        assert response.json()["sales"] == 5
        assert memory_store.snapshot()[card_status_path("user_1", "Kleepa")]["sales"] == 5

    def test_charge_declined(self, client, memory_store, charge_body):
        charge_body["authorization_code"] = SimulatorConnector.AUTH_DECLINE

        response = client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 400
        assert response.json() == {"error": "Insufficient Funds"}
        assert memory_store.snapshot() == {}

    def test_charge_processor_error(self, client, charge_body):
        charge_body["authorization_code"] = SimulatorConnector.AUTH_ERROR

        response = client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 500
        assert response.json() == {"error": "Authorization code is invalid"}

    @pytest.mark.parametrize("field", ["userId", "cardId", "email", "amount", "authorization_code"])
    def test_charge_missing_field(self, mock_client, mock_processor, mock_store, charge_body, field):
        del charge_body[field]

        response = mock_client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required payment details."}
        mock_processor.charge_authorization.assert_not_called()
        mock_store.transact.assert_not_called()

    @pytest.mark.parametrize("amount", [0, -100, "lots"])
    def test_charge_invalid_amount(self, mock_client, mock_processor, charge_body, amount):
        charge_body["amount"] = amount

        response = mock_client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 400
        mock_processor.charge_authorization.assert_not_called()

    def test_charge_rejects_slash_in_ids(self, mock_client, mock_processor, charge_body):
        charge_body["cardId"] = "cards/../other"

        response = mock_client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 400
        mock_processor.charge_authorization.assert_not_called()

    def test_malformed_json(self, mock_client, mock_processor):
        response = mock_client.post(
            "/api/charge-card",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        mock_processor.charge_authorization.assert_not_called()


class TestSaleEndpoints:
    """Tests for list-card-for-sale, cancel-sale and finalize-sale."""

    @pytest.fixture
    def purchased(self, memory_store):
        path = card_status_path("user_1", "Kleepa")
        seed(memory_store, path, {"card_status": True, "sales": 3, "card_onSale": False})
        return path

    def test_list_then_cancel(self, client, memory_store, purchased):
        body = {"userId": "user_1", "cardId": "Kleepa"}

        listed = client.post("/api/list-card-for-sale", json=body)
        assert listed.status_code == 200
        assert listed.json() == {"message": "Card listed for sale successfully."}
        assert memory_store.snapshot()[purchased]["card_onSale"] is True

        cancelled = client.post("/api/cancel-sale", json=body)
        assert cancelled.status_code == 200

        card = memory_store.snapshot()[purchased]
        assert card["card_onSale"] is False
        assert card["sales"] == 3

    @pytest.mark.parametrize("path", ["/api/list-card-for-sale", "/api/cancel-sale"])
    def test_toggle_missing_card(self, client, memory_store, path):
        response = client.post(path, json={"userId": "user_1", "cardId": "Nope"})

        assert response.status_code == 500
        assert "error" in response.json()
        assert memory_store.snapshot() == {}

    @pytest.mark.parametrize("path", ["/api/list-card-for-sale", "/api/cancel-sale"])
    def test_toggle_missing_fields(self, mock_client, mock_store, path):
        response = mock_client.post(path, json={"userId": "user_1"})

        assert response.status_code == 400
        assert response.json() == {"error": "userId and cardId are required."}
        mock_store.update.assert_not_called()

    def test_finalize_sale(self, client, memory_store, purchased):
        client.post("/api/list-card-for-sale", json={"userId": "user_1", "cardId": "Kleepa"})

        response = client.post("/api/finalize-sale", json={"sellerId": "user_1", "cardId": "Kleepa"})

        assert response.status_code == 200
        assert response.json()["sales"] == 4
        card = memory_store.snapshot()[purchased]
        assert card["sales"] == 4
        assert card["card_onSale"] is False

    def test_finalize_missing_card(self, client, memory_store):
        response = client.post("/api/finalize-sale", json={"sellerId": "user_1", "cardId": "Nope"})

        assert response.status_code == 404
        assert response.json() == {"error": "Card not found."}
        assert memory_store.snapshot() == {}

    def test_finalize_missing_fields(self, mock_client, mock_store):
        response = mock_client.post("/api/finalize-sale", json={"userId": "user_1", "cardId": "Kleepa"})

        assert response.status_code == 400
        assert response.json() == {"error": "sellerId and cardId are required."}
        mock_store.transact.assert_not_called()

    def test_store_outage_is_500(self, mock_client, mock_store):
        mock_store.transact.side_effect = ConnectionError("store unreachable")

        response = mock_client.post("/api/finalize-sale", json={"sellerId": "user_1", "cardId": "Kleepa"})

        assert response.status_code == 500
        assert response.json() == {"error": "An error occurred while finalizing the sale."}


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["processor"]["provider"] == "simulator"
        assert data["store"]["backend"] == "memory"


class TestUnexpectedErrors:
    def test_unexpected_processor_exception(self, config, mock_store, charge_body):
        processor = MagicMock()
        processor.name = "broken"
        processor.charge_authorization = AsyncMock(side_effect=KeyError("data"))
        app = create_app(config, processor=processor, store=mock_store)

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.post("/api/charge-card", json=charge_body)

        assert response.status_code == 500
        assert response.json() == {"error": "An unexpected error occurred."}
        mock_store.transact.assert_not_called()


class TestAppFactory:
    def test_builds_collaborators_from_config(self, config):
        with TestClient(create_app(config)) as client:
            data = client.get("/health").json()

        assert data["processor"]["provider"] == "simulator"
        assert data["store"]["backend"] == "memory"

    def test_cors_headers(self, client):
        response = client.options(
            "/api/charge-card",
            headers={
                "Origin": "https://app.example",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] in ("*", "https://app.example")
