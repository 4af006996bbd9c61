"""Request and response bodies for the card endpoints."""

from typing import Annotated, Any, Dict, Optional

from pydantic import AliasChoices, AfterValidator, BaseModel, ConfigDict, Field, model_validator

from .store.paths import validate_segment

NonEmptyStr = Annotated[str, Field(min_length=1)]
# Ids become document path segments
DocumentId = Annotated[str, Field(min_length=1), AfterValidator(validate_segment)]


class RequestBody(BaseModel):
    """Base for request bodies: unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid")


class VerifyPaymentBody(RequestBody):
    reference: NonEmptyStr
    user_id: DocumentId = Field(..., alias="userId")


class ChargeCardBody(RequestBody):
    user_id: DocumentId = Field(..., alias="userId")
    # cardTitle is the key older clients send
    card_id: DocumentId = Field(..., validation_alias=AliasChoices("cardId", "cardTitle"))
    email: NonEmptyStr
    amount: int = Field(..., gt=0, description="Amount in minor units (kobo)")
    authorization_code: NonEmptyStr

    @model_validator(mode="before")
    @classmethod
    def _prefer_card_id(cls, data: Any) -> Any:
        # Transitional clients send both keys; cardId wins
        if isinstance(data, dict) and "cardId" in data and "cardTitle" in data:
            data = {key: value for key, value in data.items() if key != "cardTitle"}
        return data


class CardSaleBody(RequestBody):
    """Body for list-card-for-sale and cancel-sale."""
    user_id: DocumentId = Field(..., alias="userId")
    card_id: DocumentId = Field(..., alias="cardId")


class FinalizeSaleBody(RequestBody):
    seller_id: DocumentId = Field(..., alias="sellerId")
    card_id: DocumentId = Field(..., alias="cardId")


class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str


class VerifyPaymentResponse(MessageResponse):
    card_details: Dict[str, Any] = Field(..., alias="cardDetails")


class ChargeCardResponse(MessageResponse):
    active_until: str = Field(..., alias="activeUntil")
    sales: int
    updated_card: Dict[str, Any] = Field(..., alias="updatedCard")


class FinalizeSaleResponse(MessageResponse):
    sales: int


class HealthResponse(BaseModel):
    ok: bool
    processor: Dict[str, Any]
    store: Dict[str, Any]
    version: Optional[str] = None
