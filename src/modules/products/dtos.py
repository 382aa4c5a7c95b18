"""Product DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``VariantDTO``: one pack size of a product.
- ``CreateProductDTO``: input for product creation.
- ``UpdateProductDTO``: input for partial product updates.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class VariantDTO(BaseModel):
    """Immutable DTO for a product variant (e.g. "250g")."""

    model_config = ConfigDict(frozen=True)

    name: str
    price: Decimal
    stock: int = 0
    sku: Optional[str] = None
    weight: str = ""
    is_default: bool = False

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock cannot be negative.")
        return v


class CreateProductDTO(BaseModel):
    """Immutable DTO for product creation requests.

    Validates:
    - ``sku`` is a non-empty string.
    - ``price`` is a Decimal greater than zero.
    - ``stock_quantity`` is non-negative.
    - variant names are unique and at most one variant is the default.
    """

    model_config = ConfigDict(frozen=True)

    sku: str
    name: str
    price: Decimal
    description: str = ""
    stock_quantity: int = 0
    variants: List[VariantDTO] = []

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v

    @field_validator("stock_quantity")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock quantity cannot be negative.")
        return v

    @field_validator("sku")
    @classmethod
    def sku_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("SKU must not be empty.")
        return v.strip().upper()

    @model_validator(mode="after")
    def variants_are_consistent(self):
        names = [variant.name for variant in self.variants]
        if len(names) != len(set(names)):
            raise ValueError("Variant names must be unique per product.")
        if sum(1 for variant in self.variants if variant.is_default) > 1:
            raise ValueError("Only one variant can be the default.")
        return self


class UpdateProductDTO(BaseModel):
    """Immutable DTO for product update requests.

    All fields are optional — only supplied fields will be updated.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    price: Optional[Decimal] = None
    description: Optional[str] = None
    stock_quantity: Optional[int] = None
    status: Optional[str] = None

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v

    @field_validator("stock_quantity")
    @classmethod
    def stock_must_be_non_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Stock quantity cannot be negative.")
        return v
