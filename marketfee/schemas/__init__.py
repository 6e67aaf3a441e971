from __future__ import annotations

from .order_input_v1 import OrderRequestV1
from .settlement_output_v1 import SettlementLineV1, SettlementOutputV1

__all__ = ["OrderRequestV1", "SettlementLineV1", "SettlementOutputV1"]
