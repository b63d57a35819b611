# margin_engine/engine/__init__.py
from __future__ import annotations

from .errors import InvalidInput, MissingConfiguration, PricingError, RateTableError

__all__ = [
    "InvalidInput",
    "MissingConfiguration",
    "PricingError",
    "RateTableError",
]
