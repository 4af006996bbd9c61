# card_gateway package
__version__ = "0.1.0"

from .config import GatewayConfig, ConfigurationError
from .errors import (
    GatewayError,
    RequestValidationFailed,
    UpstreamRejection,
    NotFoundError,
    InternalError,
)
from .services import CardService, activation_period
