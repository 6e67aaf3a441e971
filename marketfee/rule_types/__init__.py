# Ensure registration happens by importing modules
from .base import (  # noqa
    Boundary,
    FixedComponent,
    PricingRule,
    RateType,
    RuleKind,
    Tier,
    rule_from_dict,
    rule_registry,
)
from .commission import CommissionRule  # noqa
from .fee import FeeRule  # noqa
from .shipping import CodFeeRule, ShippingTariff  # noqa
