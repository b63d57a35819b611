from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from ..engine.errors import InvalidInput
from .countries import (
    DISCOUNT_FIELD,
    GROSS_SALES_FIELD,
    PCT_SUFFIX,
    RATE_FIELDS,
    UNSET,
    USD_SUFFIX,
    CostCategory,
    RateValue,
    rate_value_from_pair,
    rate_value_to_pair,
    to_decimal,
)

logger = logging.getLogger(__name__)

D = Decimal

GROSS_SALES_KEY = GROSS_SALES_FIELD + USD_SUFFIX

FieldKey = Union[str, CostCategory]


def _field_name(key: FieldKey) -> str:
    name = key.value if isinstance(key, CostCategory) else str(key)
    if name not in RATE_FIELDS:
        raise InvalidInput(
            f"unknown override field: {name}", meta={"field": name}
        )
    return name


def _known_payload_keys() -> set[str]:
    keys = {GROSS_SALES_KEY}
    for name in RATE_FIELDS:
        keys.add(name + PCT_SUFFIX)
        keys.add(name + USD_SUFFIX)
    return keys


_KNOWN_KEYS = frozenset(_known_payload_keys())


@dataclass(frozen=True)
class OverrideFields:
    """
    Sparse per-(product, country) overrides.

    Every rate field holds a RateValue, so a field is either a percentage of
    gross sales, a fixed USD amount, or unset. Instances are immutable; the
    edit helpers return copies.
    """

    gross_sales_usd: Optional[D] = None
    commercial_discount: RateValue = UNSET
    costs: Mapping[CostCategory, RateValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        kept = {c: v for c, v in dict(self.costs).items() if v.is_set}
        object.__setattr__(self, "costs", MappingProxyType(kept))

    # --- reads ---

    def cost(self, category: CostCategory) -> RateValue:
        return self.costs.get(category, UNSET)

    def get(self, key: FieldKey) -> RateValue:
        name = _field_name(key)
        if name == DISCOUNT_FIELD:
            return self.commercial_discount
        return self.cost(CostCategory(name))

    @property
    def is_empty(self) -> bool:
        return (
            self.gross_sales_usd is None
            and not self.commercial_discount.is_set
            and not self.costs
        )

    # --- edits ---

    def with_value(self, key: FieldKey, value: RateValue) -> "OverrideFields":
        name = _field_name(key)
        if name == DISCOUNT_FIELD:
            return replace(self, commercial_discount=value)
        costs = dict(self.costs)
        costs[CostCategory(name)] = value
        return replace(self, costs=costs)

    def cleared(self, key: FieldKey) -> "OverrideFields":
        return self.with_value(key, UNSET)

    def with_gross_sales(self, amount: Any) -> "OverrideFields":
        if amount is None:
            return replace(self, gross_sales_usd=None)
        return replace(
            self, gross_sales_usd=to_decimal(amount, field_name=GROSS_SALES_KEY)
        )

    @classmethod
    def zeroed(cls, base_price_usd: Any) -> "OverrideFields":
        """Reset: gross sales back to the base price, every field at 0 USD."""
        gross = to_decimal(base_price_usd, field_name="basePriceUSD")
        if gross < 0:
            raise InvalidInput(
                "basePriceUSD must be >= 0",
                meta={"field": "basePriceUSD", "value": str(gross)},
            )
        zero = RateValue.fixed(0)
        return cls(
            gross_sales_usd=gross,
            commercial_discount=zero,
            costs={c: zero for c in CostCategory},
        )

    # --- persisted payload (flat JSON) ---

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "OverrideFields":
        """
        Parse the stored override JSON, e.g.
          {"grossSalesUSD": 3800, "productCostPct": 0.2, "kitCostUSD": 150}

        If a field carries both Pct and USD the USD value is used.
        """
        if not payload:
            return cls()
        if not isinstance(payload, Mapping):
            raise InvalidInput("overrides must be an object")

        unknown = sorted(k for k in payload if k not in _KNOWN_KEYS)
        if unknown:
            logger.warning("ignoring unknown override keys: %s", unknown)

        gross = payload.get(GROSS_SALES_KEY)
        gross_sales = (
            to_decimal(gross, field_name=GROSS_SALES_KEY) if gross is not None else None
        )

        values: Dict[str, RateValue] = {}
        for name in RATE_FIELDS:
            pct = payload.get(name + PCT_SUFFIX)
            usd = payload.get(name + USD_SUFFIX)
            if pct is not None and usd is not None:
                logger.debug(
                    "override %s has both Pct and USD; using USD=%s", name, usd
                )
            values[name] = rate_value_from_pair(name, pct=pct, usd=usd)

        return cls(
            gross_sales_usd=gross_sales,
            commercial_discount=values.pop(DISCOUNT_FIELD),
            costs={CostCategory(k): v for k, v in values.items()},
        )

    def to_payload(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        if self.gross_sales_usd is not None:
            out[GROSS_SALES_KEY] = float(self.gross_sales_usd)
        out.update(rate_value_to_pair(DISCOUNT_FIELD, self.commercial_discount))
        for category in CostCategory:
            out.update(rate_value_to_pair(category.value, self.cost(category)))
        return out
