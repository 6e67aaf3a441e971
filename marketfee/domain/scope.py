from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class ScopeKind(str, Enum):
    GLOBAL = "GLOBAL"
    SHOP = "SHOP"
    CATEGORY = "CATEGORY"


# Scope precedence, most specific first
SCOPE_PRECEDENCE = (ScopeKind.SHOP, ScopeKind.CATEGORY, ScopeKind.GLOBAL)

# Marketplace fee documents spell the global scope differently
_SCOPE_ALIASES = {"GLOBAL_DEFAULT": ScopeKind.GLOBAL}


@dataclass(frozen=True)
class GlobalScope:
    kind = ScopeKind.GLOBAL

    @property
    def ref(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class ShopScope:
    shop_ref: str
    kind = ScopeKind.SHOP

    @property
    def ref(self) -> Optional[str]:
        return self.shop_ref


@dataclass(frozen=True)
class CategoryScope:
    category_ref: str
    kind = ScopeKind.CATEGORY

    @property
    def ref(self) -> Optional[str]:
        return self.category_ref


RuleScope = Union[GlobalScope, ShopScope, CategoryScope]


def parse_scope_kind(raw: Any) -> ScopeKind:
    key = str(raw or "GLOBAL").strip().upper()
    if key in _SCOPE_ALIASES:
        return _SCOPE_ALIASES[key]
    try:
        return ScopeKind(key)
    except ValueError:
        raise ValueError(f"Unknown scope: {raw!r}") from None


def scope_from_dict(d: Dict[str, Any]) -> RuleScope:
    """
    Build the scope variant from a rule document.

    Reference fields that do not belong to the scope are dropped (a GLOBAL
    rule never carries a shop or category ref).
    A missing required reference is kept as an empty string so validation
    reports it.
    """
    kind = parse_scope_kind(d.get("scope"))
    if kind == ScopeKind.SHOP:
        return ShopScope(shop_ref=_ref(d.get("shopRef", d.get("shopId"))))
    if kind == ScopeKind.CATEGORY:
        return CategoryScope(category_ref=_ref(d.get("categoryRef", d.get("categoryId"))))
    return GlobalScope()


def _ref(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
