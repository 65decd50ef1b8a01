from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from goagri.schemas.validators import normalize_delivery_status


class DeliveryOut(BaseModel):
    id: str
    order_id: str
    type: str
    status: str
    delivery_address: str | None = None
    pickup_location: str | None = None
    scheduled_date: datetime | None = None
    third_party_provider: str | None = None
    assigned_vehicle: str | None = None
    assigned_driver: str | None = None
    delivery_fee: float | None = None
    estimated_delivery_time: str | None = None
    notes: str | None = None
    delivered_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DeliveryUpdate(BaseModel):
    status: str | None = None
    scheduled_date: datetime | None = None
    pickup_location: str | None = None
    third_party_provider: str | None = None
    delivery_address: str | None = None
    delivery_fee: float | None = Field(None, ge=0)
    estimated_delivery_time: str | None = None
    notes: str | None = None
    delivered_at: datetime | None = None

    @field_validator("status")
    @classmethod
    def _status(cls, v: str | None) -> str | None:
        return normalize_delivery_status(v) if v is not None else v


class DeliveryMutationResponse(BaseModel):
    success: bool = True
    message: str
    delivery: DeliveryOut
    requires_approval: bool


class DeliveryListResponse(BaseModel):
    success: bool = True
    deliveries: list[DeliveryOut]
