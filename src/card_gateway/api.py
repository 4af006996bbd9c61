import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import GatewayConfig
from .connectors.base import ProcessorBase
from .connectors.paystack_connector import PaystackConnector
from .connectors.simulator_connector import SimulatorConnector
from .errors import GatewayError
from .schemas import (
    VerifyPaymentBody,
    ChargeCardBody,
    CardSaleBody,
    FinalizeSaleBody,
    MessageResponse,
    VerifyPaymentResponse,
    ChargeCardResponse,
    FinalizeSaleResponse,
    HealthResponse,
)
from .services import CardService
from .store import DocumentStore, open_store

logger = logging.getLogger(__name__)

# Error text for bodies that fail schema validation, per endpoint
VALIDATION_MESSAGES = {
    "/api/verify-payment": "Reference and userId are required.",
    "/api/charge-card": "Missing required payment details.",
    "/api/list-card-for-sale": "userId and cardId are required.",
    "/api/cancel-sale": "userId and cardId are required.",
    "/api/finalize-sale": "sellerId and cardId are required.",
}

router = APIRouter(prefix="/api", tags=["cards"])


def build_processor(config: GatewayConfig) -> ProcessorBase:
    if config.payment_provider == "simulator":
        logger.warning("Using the payment simulator; no real charges will be made")
        return SimulatorConnector()
    return PaystackConnector(config.paystack_secret_key, base_url=config.paystack_base_url)


def get_card_service(request: Request) -> CardService:
    return request.app.state.card_service


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment(body: VerifyPaymentBody, service: CardService = Depends(get_card_service)):
    """Verify the initial card-saving transaction and store its authorization."""
    return await service.verify_payment(body.reference, body.user_id)


@router.post("/charge-card", response_model=ChargeCardResponse)
async def charge_card(body: ChargeCardBody, service: CardService = Depends(get_card_service)):
    """Charge a saved card and activate the purchased card."""
    return await service.charge_card(
        user_id=body.user_id,
        card_id=body.card_id,
        email=body.email,
        amount=body.amount,
        authorization_code=body.authorization_code,
    )


@router.post("/list-card-for-sale", response_model=MessageResponse)
async def list_card_for_sale(body: CardSaleBody, service: CardService = Depends(get_card_service)):
    return await service.list_card_for_sale(body.user_id, body.card_id)


@router.post("/cancel-sale", response_model=MessageResponse)
async def cancel_sale(body: CardSaleBody, service: CardService = Depends(get_card_service)):
    return await service.cancel_sale(body.user_id, body.card_id)


@router.post("/finalize-sale", response_model=FinalizeSaleResponse)
async def finalize_sale(body: FinalizeSaleBody, service: CardService = Depends(get_card_service)):
    """Count a completed sale and take the card off the market."""
    return await service.finalize_sale(body.seller_id, body.card_id)


async def gateway_error_handler(request: Request, exc: GatewayError):
    """Render service errors as ``{"error": message}`` with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Missing, empty, unknown or malformed body fields are a 400, not a 422."""
    logger.warning(f"{request.url.path} invalid body: {exc.errors()}")
    message = VALIDATION_MESSAGES.get(request.url.path, "Invalid request body.")
    return JSONResponse(status_code=400, content={"error": message})


async def unexpected_error_handler(request: Request, exc: Exception):
    """Catch-all: log the full exception, return a generic message."""
    logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "An unexpected error occurred."})


def create_app(
    config: GatewayConfig,
    processor: Optional[ProcessorBase] = None,
    store: Optional[DocumentStore] = None,
) -> FastAPI:
    """Build the gateway application.

    Collaborators passed in are used as-is and left open on shutdown; the
    ones built from ``config`` are owned and closed by the application.

    Args:
        config: Gateway configuration.
        processor: Payment connector; built from config when omitted.
        store: Document store; opened from config at startup when omitted.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_processor = processor is None
        owned_store = store is None
        active_processor = processor or build_processor(config)
        active_store = store or await open_store(config)

        app.state.processor = active_processor
        app.state.store = active_store
        app.state.card_service = CardService(active_processor, active_store, config)
        logger.info(
            f"Card gateway ready (processor={active_processor.name}, store={active_store.backend})"
        )
        try:
            yield
        finally:
            if owned_processor:
                await active_processor.aclose()
            if owned_store:
                await active_store.close()
            logger.info("Card gateway stopped")

    app = FastAPI(title="Card Gateway", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(router)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        processor_health = request.app.state.processor.health_check()
        store_health = await request.app.state.store.health_check()
        return HealthResponse(
            ok=bool(processor_health.get("ok") and store_health.get("ok")),
            processor=processor_health,
            store=store_health,
            version=__version__,
        )

    return app
