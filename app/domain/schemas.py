from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Literal
from datetime import datetime


PHONE_PATTERN = r'^\+?[0-9()\-\s]{5,32}$'


class CamelModel(BaseModel):
    """JSON uses camelCase field names; Python code uses snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ============================================
# Customer Schemas
# ============================================

class CustomerCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., pattern=PHONE_PATTERN)


class CustomerUpdate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., pattern=PHONE_PATTERN)


class CustomerResponse(CamelModel):
    id: str
    name: str
    phone: str
    purchase_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RegisterResponse(CamelModel):
    success: bool = True
    customer_id: str
    message: str = "Customer registered successfully"


# ============================================
# Purchase Schemas
# ============================================

class PurchaseResponse(CamelModel):
    success: bool = True
    message: str
    new_count: int
    reward_granted: bool
    reward_ready: bool


class PurchaseEventResponse(CamelModel):
    id: int
    customer_id: str
    timestamp: datetime
    action: Literal["purchase", "free_coffee"]


class StatsResponse(CamelModel):
    total_customers: int
    total_purchases: int
    ready_for_free_coffee: int


# ============================================
# Settings / Misc Schemas
# ============================================

class PhoneResponse(CamelModel):
    phone: str


class PhoneUpdate(CamelModel):
    phone: str = Field(..., pattern=PHONE_PATTERN)


class QRCodeResponse(CamelModel):
    qr_code: str  # data:image/png;base64,...
    url: str


class SuccessResponse(CamelModel):
    success: bool = True
    message: str


class HealthResponse(CamelModel):
    status: str
    storage: str

