from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict

SUCCESS_STATUS = "success"


class PaymentProviderError(Exception):
    """
    Transport-level or non-2xx failure talking to the payment processor.

    ``provider_message`` holds the processor's own ``message`` field when the
    response body carried one.
    """

    def __init__(self, message: str, provider_message: Optional[str] = None,
                 status_code: Optional[int] = None, response_body: Optional[Any] = None):
        super().__init__(message)
        self.provider_message = provider_message
        self.status_code = status_code
        self.response_body = response_body


# Canonical models
class CardAuthorization(BaseModel):
    model_config = ConfigDict(extra="allow")

    authorization_code: str
    last4: Optional[str] = None
    exp_month: Optional[str] = None
    exp_year: Optional[str] = None
    brand: Optional[str] = None

    def payment_details(self) -> Dict[str, Any]:
        """The durable subset persisted on the user document."""
        return {
            "authorization_code": self.authorization_code,
            "last4": self.last4,
            "exp_month": self.exp_month,
            "exp_year": self.exp_year,
            "brand": self.brand,
        }


class VerifyResult(BaseModel):
    status: str  # success|failed|abandoned|ongoing|...
    reference: Optional[str] = None
    authorization: Optional[CardAuthorization] = None
    gateway_response: Optional[str] = None
    raw_provider_response: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS_STATUS


class ChargeRequest(BaseModel):
    email: str
    amount: int  # minor units
    authorization_code: str
    metadata: Optional[Dict[str, Any]] = {}


class ChargeResult(BaseModel):
    status: str
    reference: Optional[str] = None
    gateway_response: Optional[str] = None
    raw_provider_response: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS_STATUS


class ProcessorBase(ABC):
    """
    Minimal processor interface. Implementations report processor-side
    declines through the ``status`` of the returned model and raise
    PaymentProviderError only when the call itself failed.
    """

    name = "base"

    @abstractmethod
    async def verify_transaction(self, reference: str) -> VerifyResult:
        """
        Look up a transaction by reference and return the card authorization
        it produced.
        """
        raise NotImplementedError

    @abstractmethod
    async def charge_authorization(self, request: ChargeRequest) -> ChargeResult:
        """
        Charge a previously saved authorization code.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        return None

    def health_check(self) -> Dict[str, Any]:
        return {"ok": True, "provider": self.name}
