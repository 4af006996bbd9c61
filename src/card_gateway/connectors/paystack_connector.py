import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .base import (
    ProcessorBase,
    PaymentProviderError,
    CardAuthorization,
    VerifyResult,
    ChargeRequest,
    ChargeResult,
)

logger = logging.getLogger(__name__)

# Fields never echoed back into raw_provider_response
SENSITIVE_FIELDS = frozenset(["signature", "bin", "account_name"])


def _scrub(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key, value in data.items():
        if key in SENSITIVE_FIELDS:
            continue
        cleaned[key] = _scrub(value) if isinstance(value, dict) else value
    return cleaned


class PaystackConnector(ProcessorBase):
    """
    Paystack connector over the plain REST API.

    The client is created once with the base URL and the bearer secret and is
    safe to share between concurrent requests. Paystack wraps every answer as
    ``{"status": bool, "message": str, "data": {...}}``; the transaction
    outcome lives in ``data.status``.
    """

    name = "paystack"

    def __init__(self, secret_key: str, base_url: str = "https://api.paystack.co",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not secret_key:
            raise ValueError("Paystack secret key is required")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Paystack {method} {url} failed: {e}")
            raise PaymentProviderError(f"Could not reach Paystack: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            provider_message = body.get("message") if isinstance(body, dict) else None
            logger.error(
                f"Paystack {method} {url} returned {response.status_code}: "
                f"{body if body is not None else response.text}"
            )
            raise PaymentProviderError(
                f"Paystack returned HTTP {response.status_code}",
                provider_message=provider_message,
                status_code=response.status_code,
                response_body=body,
            )

        if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
            raise PaymentProviderError(
                "Malformed response from Paystack",
                status_code=response.status_code,
                response_body=body,
            )
        return body

    async def verify_transaction(self, reference: str) -> VerifyResult:
        body = await self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")
        data = body["data"]
        authorization = None
        if isinstance(data.get("authorization"), dict) and data["authorization"].get("authorization_code"):
            authorization = CardAuthorization(**data["authorization"])
        return VerifyResult(
            status=str(data.get("status", "unknown")),
            reference=data.get("reference", reference),
            authorization=authorization,
            gateway_response=data.get("gateway_response"),
            raw_provider_response=_scrub(data),
        )

    async def charge_authorization(self, request: ChargeRequest) -> ChargeResult:
        body = await self._request("POST", "/transaction/charge_authorization", json=request.model_dump())
        data = body["data"]
        return ChargeResult(
            status=str(data.get("status", "unknown")),
            reference=data.get("reference"),
            gateway_response=data.get("gateway_response"),
            raw_provider_response=_scrub(data),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
