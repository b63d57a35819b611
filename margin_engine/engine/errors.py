from __future__ import annotations

from typing import Any, Dict, Optional


class PricingError(Exception):
    """
    Base for all errors raised by the waterfall engine.
    Carries a stable code so the API can map it without string matching.
    """

    default_code: str = "PRICING_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.code = str(code or self.default_code)
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")

    def as_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "meta": self.meta}


class InvalidInput(PricingError):
    """Raised before computing when a price or override value is unusable."""

    default_code = "INVALID_INPUT"


class MissingConfiguration(PricingError):
    """Raised when a country has no rate table entry (lookup fails closed)."""

    default_code = "MISSING_CONFIGURATION"


class RateTableError(ValueError):
    """Raised when a rate table file cannot be loaded or validated."""
