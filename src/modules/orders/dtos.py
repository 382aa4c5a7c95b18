"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: a single line of the checkout request.
- ``ShippingAddressDTO``: delivery address snapshot.
- ``CreateOrderDTO``: input for order placement.
- ``TrackingDTO``: courier details recorded on a status change.
- ``PaymentResultDTO``: payment confirmation from the gateway callback.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.orders.constants import PaymentMethod

PHONE_PATTERN = re.compile(r"^(?:\+91[\s-]?)?[6-9]\d{9}$")
PINCODE_PATTERN = re.compile(r"^[1-9]\d{5}$")


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a placement request.

    The client sends ``product_id``, ``quantity`` and optionally a
    ``variant`` name.  Prices are resolved by the Service Layer from the
    live catalog, never taken from the client.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int
    variant: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("variant")
    @classmethod
    def blank_variant_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class ShippingAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    phone: str
    address_line1: str
    city: str
    state: str
    pincode: str
    address_line2: str = ""
    landmark: str = ""

    @field_validator("name", "address_line1", "city", "state")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("This field may not be blank.")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def phone_must_be_valid(cls, v: str) -> str:
        v = v.strip()
        if not PHONE_PATTERN.match(v):
            raise ValueError("Enter a valid 10-digit mobile number.")
        return v

    @field_validator("pincode")
    @classmethod
    def pincode_must_be_valid(cls, v: str) -> str:
        v = v.strip()
        if not PINCODE_PATTERN.match(v):
            raise ValueError("Enter a valid 6-digit pincode.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order placement requests.

    Validates:
    - Each item quantity is positive.
    - The same product+variant does not appear twice.

    An empty ``items`` list is accepted here; the service rejects it with
    ``EmptyCart`` so the client gets the dedicated error code.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    items: List[CreateOrderItemDTO]
    shipping_address: ShippingAddressDTO
    payment_method: PaymentMethod
    billing_address: Optional[ShippingAddressDTO] = None
    coupon_code: Optional[str] = None
    notes: str = ""
    idempotency_key: Optional[str] = None

    @field_validator("coupon_code")
    @classmethod
    def normalise_coupon_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().upper()

    @model_validator(mode="after")
    def no_duplicate_lines(self):
        """Prevent the same product+variant appearing twice in one order."""
        keys = [(item.product_id, item.variant) for item in self.items]
        if len(keys) != len(set(keys)):
            raise ValueError("Duplicate product/variant lines are not allowed.")
        return self


class TrackingDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    courier: str = ""
    tracking_number: str = ""
    tracking_url: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in self.model_dump().items() if value}


class PaymentResultDTO(BaseModel):
    """Payment confirmation fields recorded against an order."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: str
    update_time: str = ""
    email_address: str = ""


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class TimelineStepDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    title: str
    description: str
    completed: bool
    date: Optional[datetime] = None


class OrderTrackingDTO(BaseModel):
    """Immutable DTO for the order tracking page."""

    model_config = ConfigDict(frozen=True)

    order_id: UUID
    order_number: str
    current_status: str
    timeline: List[TimelineStepDTO]
    tracking: Dict[str, Any] = {}
    cancelled_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
