"""Currency schemas for request/response validation."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from fxrates.core.constants import CurrencyConstants, RateConstants


class CurrencyBase(BaseModel):
    """Base currency schema."""

    code: str = Field(..., min_length=3, max_length=3, pattern=CurrencyConstants.CODE_PATTERN)
    name: str = Field(..., min_length=1, max_length=100)
    symbol: str = Field(..., min_length=1, max_length=10)
    decimal_places: int = Field(RateConstants.DEFAULT_DECIMAL_PLACES, ge=0, le=8)

    @field_validator("code", mode="before")
    @classmethod
    def uppercase_code(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


class CurrencyCreate(CurrencyBase):
    """Schema for creating a currency."""

    is_base: bool = False
    is_active: bool = True


class CurrencyUpdate(BaseModel):
    """Schema for updating a currency.

    The base flag is deliberately absent: the base currency is fixed once set.
    """

    name: str | None = Field(None, min_length=1, max_length=100)
    symbol: str | None = Field(None, min_length=1, max_length=10)
    decimal_places: int | None = Field(None, ge=0, le=8)
    is_active: bool | None = None


class CurrencyResponse(CurrencyBase):
    """Schema for currency response."""

    is_base: bool
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
