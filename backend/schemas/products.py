from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

# products.quantity and client_stocks.quantity are 32-bit INTEGER columns
MAX_QUANTITY = 2_147_483_647


class ProductRead(BaseModel):
    id: UUID
    name: str
    description: str = ""
    price_in_cents: int
    quantity: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductCreate(BaseModel):
    name: str
    description: str = ""
    price_in_cents: int = 0
    quantity: int = Field(0, le=MAX_QUANTITY)

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("price_in_cents", "quantity")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price_in_cents: Optional[int] = None
    quantity: Optional[int] = Field(None, le=MAX_QUANTITY)

    @field_validator("name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v

    @field_validator("price_in_cents", "quantity")
    @classmethod
    def _non_negative_optional(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("must be >= 0")
        return v


class StockTransferRequest(BaseModel):
    """Body of POST /products/{product_id}/transfer.

    quantity is range-checked by the transfer engine, not here, so a
    non-positive value is reported as an invalid quantity (400)."""
    client_id: UUID = Field(alias="clientId")
    quantity: int

    class Config:
        populate_by_name = True
