"""Simulator connector for exercising card flows without real processor calls."""

import uuid
import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .base import (
    ProcessorBase,
    PaymentProviderError,
    CardAuthorization,
    VerifyResult,
    ChargeRequest,
    ChargeResult,
)

logger = logging.getLogger(__name__)


@dataclass
class SimulatedCharge:
    """In-memory record of a simulated charge."""
    reference: str
    email: str
    amount: int
    authorization_code: str
    status: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)


class SimulatorConnector(ProcessorBase):
    """
    Processor simulator mirroring the Paystack verify/charge contract.

    Features:
    - Transactions registered up front by reference, or any reference
      resolving to a default test card
    - Special references and authorization codes for declines and outages
    - In-memory charge log for assertions
    """

    name = "simulator"

    # Special references for verify_transaction
    REFERENCE_FAILED = "sim_ref_failed"
    REFERENCE_ERROR = "sim_ref_error"

    # Special authorization codes for charge_authorization
    AUTH_DECLINE = "AUTH_sim_decline"
    AUTH_ERROR = "AUTH_sim_error"

    def __init__(self):
        """Initialize the simulator with an empty transaction book."""
        self._transactions: Dict[str, CardAuthorization] = {}
        self._charges: List[SimulatedCharge] = []
        logger.info("SimulatorConnector initialized")

    def _generate_reference(self) -> str:
        return f"sim_{uuid.uuid4().hex[:16]}"

    def register_transaction(self, reference: str, authorization: Optional[Dict[str, Any]] = None) -> CardAuthorization:
        """Register a verifiable transaction (simulator-specific method)."""
        card = CardAuthorization(**(authorization or self.default_authorization()))
        self._transactions[reference] = card
        return card

    @staticmethod
    def default_authorization() -> Dict[str, Any]:
        return {
            "authorization_code": f"AUTH_{uuid.uuid4().hex[:10]}",
            "last4": "4081",
            "exp_month": "12",
            "exp_year": "2030",
            "brand": "visa",
            "reusable": True,
        }

    async def verify_transaction(self, reference: str) -> VerifyResult:
        """Verify a simulated transaction."""
        if reference == self.REFERENCE_ERROR:
            raise PaymentProviderError("Simulated processor outage", provider_message="Simulated outage")

        if reference == self.REFERENCE_FAILED:
            return VerifyResult(
                status="failed", reference=reference,
                gateway_response="Declined",
                raw_provider_response={"simulator": True, "status": "failed"},
            )

        card = self._transactions.get(reference)
        if card is None:
            card = self.register_transaction(reference)

        return VerifyResult(
            status="success", reference=reference, authorization=card,
            gateway_response="Successful",
            raw_provider_response={"simulator": True, "status": "success"},
        )

    async def charge_authorization(self, request: ChargeRequest) -> ChargeResult:
        """Charge a simulated authorization code."""
        if request.authorization_code == self.AUTH_ERROR:
            raise PaymentProviderError(
                "Simulated processor outage",
                provider_message="Authorization code is invalid",
                status_code=400,
            )

        reference = self._generate_reference()
        if request.authorization_code == self.AUTH_DECLINE:
            status, gateway_response = "failed", "Insufficient Funds"
        else:
            status, gateway_response = "success", "Approved"

        self._charges.append(SimulatedCharge(
            reference=reference, email=request.email, amount=request.amount,
            authorization_code=request.authorization_code, status=status,
            metadata=request.metadata or {},
        ))
        return ChargeResult(
            status=status, reference=reference, gateway_response=gateway_response,
            raw_provider_response={"simulator": True, "status": status},
        )

    def get_charges(self) -> List[SimulatedCharge]:
        """Get all recorded charges (for testing)."""
        return list(self._charges)

    def clear(self) -> None:
        """Forget registered transactions and charges (for test cleanup)."""
        self._transactions.clear()
        self._charges.clear()

    def health_check(self) -> Dict[str, Any]:
        """Return health status of the simulator."""
        return {
            "ok": True,
            "provider": self.name,
            "transaction_count": len(self._transactions),
            "charge_count": len(self._charges),
        }
