"""Card service layer tying processor calls to card and user documents."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from .config import GatewayConfig
from .connectors.base import ProcessorBase, PaymentProviderError, ChargeRequest
from .errors import (
    RequestValidationFailed,
    UpstreamRejection,
    NotFoundError,
    InternalError,
)
from .schemas import (
    MessageResponse,
    VerifyPaymentResponse,
    ChargeCardResponse,
    FinalizeSaleResponse,
)
from .store.base import DocumentStore, DocumentNotFound
from .store.paths import user_path, card_status_path

logger = logging.getLogger(__name__)

# Days a purchased card stays active, keyed by card identifier
ACTIVATION_PERIOD_DAYS = {
    "Pinkies": 10,
    "Kleepa": 20,
    "Two Kleepa": 30,
}
DEFAULT_ACTIVATION_DAYS = 10

VERIFY_ERROR = "An error occurred during payment verification."
CHARGE_ERROR = "An error occurred while charging the card."
LIST_ERROR = "An error occurred while listing the card for sale."
CANCEL_ERROR = "An error occurred while cancelling the sale."
FINALIZE_ERROR = "An error occurred while finalizing the sale."


def activation_period(card_id: str) -> timedelta:
    """Activation window for a card; unknown cards get the default."""
    return timedelta(days=ACTIVATION_PERIOD_DAYS.get(card_id, DEFAULT_ACTIVATION_DAYS))


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require(message: str, **fields: Any) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise RequestValidationFailed(message, details={"missing": missing})


class CardService:
    """Service class for card purchase and sale-listing operations."""

    def __init__(
        self,
        processor: ProcessorBase,
        store: DocumentStore,
        config: GatewayConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the service with its collaborators.

        Args:
            processor: Payment processor connector.
            store: Document store holding user and card-status documents.
            config: Gateway configuration (merchant identity).
            clock: Returns the current UTC time; injectable for tests.
        """
        self.processor = processor
        self.store = store
        self.config = config
        self.clock = clock or _utcnow

    async def verify_payment(self, reference: str, user_id: str) -> VerifyPaymentResponse:
        """Verify a card-saving transaction and store its authorization.

        Args:
            reference: Processor transaction reference from the checkout.
            user_id: Owner of the card.

        Returns:
            Confirmation with the card details the processor returned.

        Raises:
            RequestValidationFailed: If a field is missing.
            UpstreamRejection: If the processor did not report success.
            InternalError: On any processor or store failure.
        """
        _require("Reference and userId are required.", reference=reference, userId=user_id)

        try:
            result = await self.processor.verify_transaction(reference)
        except PaymentProviderError as e:
            logger.error(f"Payment verification error for {reference}: {e.response_body or e}")
            raise InternalError(VERIFY_ERROR) from e

        if not result.succeeded or result.authorization is None:
            logger.info(f"Verification of {reference} returned status {result.status}")
            raise UpstreamRejection("Payment verification failed.")

        card = result.authorization
        try:
            await self.store.set(
                user_path(user_id),
                {"payment_details": card.payment_details()},
                merge=True,
            )
        except Exception as e:
            logger.exception(f"Failed to save payment details for user {user_id}")
            raise InternalError(VERIFY_ERROR) from e

        logger.info(f"Saved card ending {card.last4} for user {user_id}")
        return VerifyPaymentResponse(
            message="Payment verified and card saved.",
            card_details=card.model_dump(),
        )

    async def charge_card(
        self,
        user_id: str,
        card_id: str,
        email: str,
        amount: int,
        authorization_code: str,
    ) -> ChargeCardResponse:
        """Charge a saved card and activate the purchased card record.

        The processor is charged first; documents are only written after it
        reports success. The card-status read and write run in one store
        transaction so the ``sales`` counter survives concurrent writers.

        Args:
            user_id: Buyer and owner of the card-status document.
            card_id: Card identifier, also used as its title.
            email: Customer email sent to the processor.
            amount: Amount in minor units.
            authorization_code: Saved authorization to charge.

        Returns:
            The activation window end, the preserved sales count and the card
            document as written.

        Raises:
            RequestValidationFailed: If a field is missing.
            UpstreamRejection: If the processor declined the charge.
            InternalError: On any processor or store failure.
        """
        _require(
            "Missing required payment details.",
            userId=user_id, cardId=card_id, email=email,
            amount=amount, authorization_code=authorization_code,
        )

        try:
            result = await self.processor.charge_authorization(ChargeRequest(
                email=email,
                amount=amount,
                authorization_code=authorization_code,
                metadata={"userId": user_id, "cardId": card_id},
            ))
        except PaymentProviderError as e:
            logger.error(f"Charge error for user {user_id}, card {card_id}: {e.response_body or e}")
            raise InternalError(e.provider_message or CHARGE_ERROR) from e

        if not result.succeeded:
            logger.info(f"Charge for user {user_id}, card {card_id} declined: {result.gateway_response}")
            raise UpstreamRejection(result.gateway_response or "Payment failed.")

        active_until = self.clock() + activation_period(card_id)

        try:
            buyer = await self.store.get(user_path(user_id))
            buyer_details = (buyer or {}).get("payment_details")

            primary_seller = self._merchant_identity()

            def _activate(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
                return {
                    "card_status": True,
                    "activeUntil": active_until,
                    "sales": (current or {}).get("sales") or 0,
                    "primary_seller": primary_seller,
                    "secondary_seller": buyer_details,
                    "title": card_id,
                }

            card = await self.store.transact(card_status_path(user_id, card_id), _activate)
        except Exception as e:
            logger.exception(f"Charge for user {user_id} succeeded but card {card_id} was not updated")
            raise InternalError(CHARGE_ERROR) from e

        card["activeUntil"] = format_timestamp(active_until)
        logger.info(f"Card {card_id} for user {user_id} active until {card['activeUntil']}")
        return ChargeCardResponse(
            message="Card purchased successfully!",
            active_until=card["activeUntil"],
            sales=card["sales"],
            updated_card=card,
        )

    async def list_card_for_sale(self, user_id: str, card_id: str) -> MessageResponse:
        """Flag a card as on sale."""
        _require("userId and cardId are required.", userId=user_id, cardId=card_id)
        await self._set_on_sale(user_id, card_id, True, LIST_ERROR)
        return MessageResponse(message="Card listed for sale successfully.")

    async def cancel_sale(self, user_id: str, card_id: str) -> MessageResponse:
        """Withdraw a card from sale."""
        _require("userId and cardId are required.", userId=user_id, cardId=card_id)
        await self._set_on_sale(user_id, card_id, False, CANCEL_ERROR)
        return MessageResponse(message="Card sale cancelled successfully.")

    async def finalize_sale(self, seller_id: str, card_id: str) -> FinalizeSaleResponse:
        """Record a completed sale: clear the listing and count it.

        Raises:
            RequestValidationFailed: If a field is missing.
            NotFoundError: If the seller has no such card; nothing is written.
            InternalError: On any store failure.
        """
        _require("sellerId and cardId are required.", sellerId=seller_id, cardId=card_id)
        path = card_status_path(seller_id, card_id)

        def _record_sale(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current is None:
                raise DocumentNotFound(path)
            return {"card_onSale": False, "sales": (current.get("sales") or 0) + 1}

        try:
            card = await self.store.transact(path, _record_sale)
        except DocumentNotFound:
            logger.info(f"Finalize sale for missing card {path}")
            raise NotFoundError("Card not found.")
        except Exception as e:
            logger.exception(f"Failed to finalize sale of {path}")
            raise InternalError(FINALIZE_ERROR) from e

        logger.info(f"Sale of {path} finalized, sales now {card['sales']}")
        return FinalizeSaleResponse(message="Sale finalized successfully.", sales=card["sales"])

    async def _set_on_sale(self, user_id: str, card_id: str, on_sale: bool, error_message: str) -> None:
        path = card_status_path(user_id, card_id)
        try:
            await self.store.update(path, {"card_onSale": on_sale})
        except Exception as e:
            # includes DocumentNotFound: the card must have been purchased first
            logger.exception(f"Failed to set card_onSale={on_sale} on {path}")
            raise InternalError(error_message) from e
        logger.info(f"Set card_onSale={on_sale} on {path}")

    def _merchant_identity(self) -> Dict[str, Any]:
        if not self.config.merchant_authorization_code:
            logger.error("MERCHANT_AUTHORIZATION_CODE is not configured; primary_seller has no authorization code")
        return {
            "name": self.config.merchant_name,
            "authorization_code": self.config.merchant_authorization_code,
        }
