from __future__ import annotations

from .formatter import format_money, format_rate, format_settlement_lines, format_settlement_text

__all__ = [
    "format_money",
    "format_rate",
    "format_settlement_lines",
    "format_settlement_text",
]
