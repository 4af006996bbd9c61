"""
Simple end-to-end example against the simulator: save a card from a verified
transaction, buy a card with it, list it for sale and finalize the sale.
"""
import asyncio

from card_gateway.config import GatewayConfig
from card_gateway.connectors import SimulatorConnector
from card_gateway.services import CardService
from card_gateway.store import MemoryDocumentStore


async def run():
    config = GatewayConfig(
        paystack_secret_key="sk_test_unused",
        merchant_authorization_code="AUTH_merchant_demo",
        payment_provider="simulator",
        store_backend="memory",
    )
    service = CardService(SimulatorConnector(), MemoryDocumentStore(), config)

    saved = await service.verify_payment("ref_demo_001", "demo_user")
    code = saved.card_details["authorization_code"]
    print("Saved card:", saved.card_details["last4"])

    bought = await service.charge_card("demo_user", "Kleepa", "demo@example.com", 500000, code)
    print("Active until:", bought.active_until)

    await service.list_card_for_sale("demo_user", "Kleepa")
    sold = await service.finalize_sale("demo_user", "Kleepa")
    print("Sales:", sold.sales)

if __name__ == "__main__":
    asyncio.run(run())
