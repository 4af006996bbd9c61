"""Process configuration loaded once from the environment."""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_PAYSTACK_BASE_URL = "https://api.paystack.co"
DEFAULT_MERCHANT_NAME = "Sell App Merchant"
DEFAULT_PORT = 3001

PAYMENT_PROVIDERS = ("paystack", "simulator")
STORE_BACKENDS = ("sql", "firestore", "memory")


class ConfigurationError(Exception):
    """Raised when a required setting is missing or invalid."""


def _split_origins(raw: str) -> List[str]:
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


@dataclass
class GatewayConfig:
    """Settings for one gateway process.

    Built once at startup (normally via ``from_env``) and handed to the
    application factory; nothing reads the environment after that.
    """
    paystack_secret_key: str
    merchant_authorization_code: Optional[str] = None
    merchant_name: str = DEFAULT_MERCHANT_NAME
    paystack_base_url: str = DEFAULT_PAYSTACK_BASE_URL
    payment_provider: str = "paystack"
    store_backend: str = "sql"
    database_url: Optional[str] = None
    firestore_project: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.paystack_secret_key:
            raise ConfigurationError("PAYSTACK_SECRET_KEY is not defined")
        if self.payment_provider not in PAYMENT_PROVIDERS:
            raise ConfigurationError(
                f"Unsupported PAYMENT_PROVIDER '{self.payment_provider}', "
                f"expected one of {', '.join(PAYMENT_PROVIDERS)}"
            )
        if self.store_backend not in STORE_BACKENDS:
            raise ConfigurationError(
                f"Unsupported STORE_BACKEND '{self.store_backend}', "
                f"expected one of {', '.join(STORE_BACKENDS)}"
            )

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Build the configuration from process environment variables.

        Returns:
            A validated GatewayConfig.

        Raises:
            ConfigurationError: If PAYSTACK_SECRET_KEY is absent or a value
                cannot be parsed.
        """
        raw_port = os.getenv("PORT", str(DEFAULT_PORT))
        try:
            port = int(raw_port)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got '{raw_port}'")

        merchant_code = os.getenv("MERCHANT_AUTHORIZATION_CODE") or None
        if merchant_code is None:
            logger.warning(
                "MERCHANT_AUTHORIZATION_CODE is not set; card purchases will "
                "record a primary seller without an authorization code"
            )

        return cls(
            paystack_secret_key=os.getenv("PAYSTACK_SECRET_KEY", ""),
            merchant_authorization_code=merchant_code,
            merchant_name=os.getenv("MERCHANT_NAME", DEFAULT_MERCHANT_NAME),
            paystack_base_url=os.getenv("PAYSTACK_BASE_URL", DEFAULT_PAYSTACK_BASE_URL),
            payment_provider=os.getenv("PAYMENT_PROVIDER", "paystack").lower(),
            store_backend=os.getenv("STORE_BACKEND", "sql").lower(),
            database_url=os.getenv("DATABASE_URL") or None,
            firestore_project=os.getenv("FIRESTORE_PROJECT_ID") or None,
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "*")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
