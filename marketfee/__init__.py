"""Tiered pricing and fee resolution for marketplace orders."""

from .engine import FeeAggregator, OrderContext, Settlement, compute_settlement  # noqa
from .errors import (  # noqa
    CatalogError,
    InvalidInput,
    PricingError,
    RuleEvaluationError,
    RuleNotFound,
    StructuralInvalid,
)
from .rule_store import CatalogLoader, RuleCatalog, default_loader  # noqa

__version__ = "0.1.0"
