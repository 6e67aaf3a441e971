# marketfee/schemas/order_input_v1.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from ..engine.context import OrderContext
from ..rule_types.shipping import SHIPPING_METHODS


class OrderRequestV1(BaseModel):
    """
    Inbound order = allowlist. Anything not declared here is rejected.
    Amounts stay Decimal; the engine never sees floats.
    """

    model_config = ConfigDict(extra="forbid")

    order_ref: Optional[constr(strip_whitespace=True, min_length=1)] = None  # type: ignore
    total_amount: Decimal = Field(ge=0)
    shop_id: Optional[constr(strip_whitespace=True, min_length=1)] = None  # type: ignore
    category_id: Optional[constr(strip_whitespace=True, min_length=1)] = None  # type: ignore

    weight_kg: Optional[Decimal] = Field(None, ge=0)
    shipping_zone: Optional[str] = None
    shipping_method: Optional[str] = None

    payment_method: Optional[str] = None
    is_cod: bool = False
    cod_amount: Optional[Decimal] = Field(None, ge=0)

    as_of: Optional[datetime] = None

    @field_validator("shipping_method")
    @classmethod
    def _known_method(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if v not in SHIPPING_METHODS:
            raise ValueError(f"shipping_method must be one of {', '.join(SHIPPING_METHODS)}")
        return v

    @field_validator("shipping_zone", "payment_method")
    @classmethod
    def _upper(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else v

    @field_validator("as_of")
    @classmethod
    def _aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.utcoffset() is None:
            raise ValueError("as_of must carry a timezone offset")
        return v

    def to_context(self) -> OrderContext:
        return OrderContext(
            total_amount=self.total_amount,
            shop_ref=self.shop_id,
            category_ref=self.category_id,
            weight_kg=self.weight_kg,
            payment_method=self.payment_method,
            is_cod=self.is_cod,
            cod_amount=self.cod_amount,
            shipping_zone=self.shipping_zone,
            shipping_method=self.shipping_method,
            order_ref=self.order_ref,
            as_of=self.as_of,
        )
