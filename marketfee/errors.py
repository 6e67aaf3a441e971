from __future__ import annotations

from typing import Any, Dict, Optional


class PricingError(Exception):
    """
    Base class for every failure the engine reports.

    Carries a stable machine code plus an explainability payload so callers can
    decide user-visible behavior (block checkout, zero fee with alert, ...).
    """

    code: str = "PRICING_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.code = str(code or self.code)
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")


# -----------------------------
# Authoring time (Rule Store)
# -----------------------------


class StructuralInvalid(PricingError, ValueError):
    """Rule violates a structural invariant (scope reference, tier layout, window)."""

    code = "STRUCTURAL_INVALID"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        field: Optional[str] = None,
        rule_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.field = field
        self.rule_id = rule_id
        merged = {"field": field, "ruleId": rule_id, **(meta or {})}
        super().__init__(message, code=code, meta=merged)


class CatalogError(PricingError):
    code = "CATALOG_INVALID"


# -----------------------------
# Resolution
# -----------------------------


class ResolutionError(PricingError):
    code = "RESOLUTION_ERROR"


class RuleNotFound(ResolutionError):
    """No rule matched at any scope level. Recoverable: the caller decides."""

    code = "NOT_FOUND"


# -----------------------------
# Evaluation
# -----------------------------


class RuleEvaluationError(PricingError):
    code = "EVALUATION_ERROR"


class InactiveRule(RuleEvaluationError):
    code = "INACTIVE_RULE"


class NotYetEffective(RuleEvaluationError):
    code = "NOT_YET_EFFECTIVE"


class Expired(RuleEvaluationError):
    code = "EXPIRED"


class NoApplicableTier(RuleEvaluationError):
    code = "NO_APPLICABLE_TIER"


class InvalidInput(PricingError, ValueError):
    """Numeric request input outside the engine's domain (negative amount, zero weight)."""

    code = "INVALID_INPUT"
