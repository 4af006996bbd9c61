"""Payment processor connectors."""

from .base import (
    ProcessorBase,
    PaymentProviderError,
    CardAuthorization,
    VerifyResult,
    ChargeRequest,
    ChargeResult,
    SUCCESS_STATUS,
)
from .paystack_connector import PaystackConnector
from .simulator_connector import SimulatorConnector, SimulatedCharge

__all__ = [
    # Base classes and models
    "ProcessorBase",
    "PaymentProviderError",
    "CardAuthorization",
    "VerifyResult",
    "ChargeRequest",
    "ChargeResult",
    "SUCCESS_STATUS",
    # Connectors
    "PaystackConnector",
    "SimulatorConnector",
    "SimulatedCharge",
]
