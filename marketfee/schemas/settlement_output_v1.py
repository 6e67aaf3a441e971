# marketfee/schemas/settlement_output_v1.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from ..engine.context import Settlement


class SettlementLineV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["COMMISSION", "FEE", "SHIPPING", "COD"]
    rule_id: Optional[str] = None
    rate: Optional[Decimal] = None
    rate_type: Optional[Literal["PERCENTAGE", "FIXED"]] = None
    amount: Decimal
    no_rule_matched: bool = False
    meta: Dict[str, Any] = {}


class SettlementOutputV1(BaseModel):
    """
    Output lock for v1: strict top-level fields, amounts in whole currency
    units. `model_dump(mode="json")` renders Decimals as strings.
    """

    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    order_ref: Optional[str] = None
    currency: str
    as_of: datetime
    gross_amount: Decimal
    lines: List[SettlementLineV1]
    total: Decimal
    platform_deductions: Decimal
    net_payable: Decimal
    buyer_charges: Decimal

    @staticmethod
    def from_settlement(s: Settlement) -> "SettlementOutputV1":
        return SettlementOutputV1(
            order_ref=s.order_ref,
            currency=s.currency,
            as_of=s.as_of,
            gross_amount=s.gross_amount.amount,
            lines=[
                SettlementLineV1(
                    kind=ln.kind.value,
                    rule_id=ln.rule_id,
                    rate=ln.rate,
                    rate_type=ln.rate_type.value if ln.rate_type else None,
                    amount=ln.computed_amount.amount,
                    no_rule_matched=ln.no_rule_matched,
                    meta=dict(ln.meta),
                )
                for ln in s.lines
            ],
            total=s.total.amount,
            platform_deductions=s.platform_deductions.amount,
            net_payable=s.net_payable.amount,
            buyer_charges=s.buyer_charges.amount,
        )
