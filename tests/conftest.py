"""Shared test fixtures and configuration."""

import os
import pytest
from datetime import datetime, timezone
from typing import Dict, Any

# Set up test environment variables before importing modules
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_dummy_key_for_testing")

from card_gateway.config import GatewayConfig
from card_gateway.connectors import SimulatorConnector
from card_gateway.services import CardService
from card_gateway.store import MemoryDocumentStore, SQLDocumentStore

FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def config() -> GatewayConfig:
    """Configuration for an offline gateway."""
    return GatewayConfig(
        paystack_secret_key="sk_test_dummy_key_for_testing",
        merchant_authorization_code="AUTH_merchant_001",
        payment_provider="simulator",
        store_backend="memory",
    )


@pytest.fixture
def simulator():
    """Fresh processor simulator."""
    return SimulatorConnector()


@pytest.fixture
def memory_store():
    """Empty in-memory document store."""
    return MemoryDocumentStore()


@pytest.fixture
def card_service(simulator, memory_store, config):
    """Card service with a frozen clock."""
    return CardService(simulator, memory_store, config, clock=lambda: FIXED_NOW)


@pytest.fixture
def payment_details() -> Dict[str, Any]:
    """Saved card details as stored on a user document."""
    return {
        "authorization_code": "AUTH_buyer_123",
        "last4": "4081",
        "exp_month": "12",
        "exp_year": "2030",
        "brand": "visa",
    }


@pytest.fixture
def paystack_authorization(payment_details) -> Dict[str, Any]:
    """Authorization object as returned by Paystack's verify endpoint."""
    return {
        **payment_details,
        "bin": "408408",
        "channel": "card",
        "card_type": "visa ",
        "bank": "TEST BANK",
        "reusable": True,
        "signature": "SIG_abc",
    }


@pytest.fixture
def charge_body() -> Dict[str, Any]:
    """Valid charge-card request body."""
    return {
        "userId": "user_1",
        "cardId": "Kleepa",
        "email": "buyer@example.com",
        "amount": 500000,
        "authorization_code": "AUTH_buyer_123",
    }


# Database fixtures
@pytest.fixture
async def sql_store():
    """SQL document store over an in-memory SQLite database."""
    store = SQLDocumentStore("sqlite+aiosqlite:///:memory:")
    await store.initialize()
    yield store
    await store.close()
