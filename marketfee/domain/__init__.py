from .money import CURRENCY_UNIT, D, Money, round_money, to_decimal  # noqa
from .scope import (  # noqa
    CategoryScope,
    GlobalScope,
    RuleScope,
    ScopeKind,
    ShopScope,
    scope_from_dict,
)
