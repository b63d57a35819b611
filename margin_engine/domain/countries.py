from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from ..engine.errors import InvalidInput

D = Decimal

CURRENCY_USD = "USD"

# Payload field names (persisted override JSON + rate table files)
GROSS_SALES_FIELD = "grossSales"
DISCOUNT_FIELD = "commercialDiscount"
PCT_SUFFIX = "Pct"
USD_SUFFIX = "USD"


class CountryCode(str, Enum):
    UY = "UY"
    AR = "AR"
    MX = "MX"
    CL = "CL"
    VE = "VE"
    CO = "CO"


COUNTRY_NAMES: Mapping[CountryCode, str] = MappingProxyType(
    {
        CountryCode.UY: "Uruguay",
        CountryCode.AR: "Argentina",
        CountryCode.MX: "México",
        CountryCode.CL: "Chile",
        CountryCode.VE: "Venezuela",
        CountryCode.CO: "Colombia",
    }
)


class CostCategory(str, Enum):
    """Cost of sales categories. Declaration order is the waterfall order."""

    PRODUCT_COST = "productCost"
    KIT_COST = "kitCost"
    PAYMENT_FEE = "paymentFee"
    BLOOD_DRAW_SAMPLE = "bloodDrawSample"
    SANITARY_PERMITS = "sanitaryPermits"
    EXTERNAL_COURIER = "externalCourier"
    INTERNAL_COURIER = "internalCourier"
    PHYSICIANS_FEES = "physiciansFees"
    SALES_COMMISSION = "salesCommission"


CATEGORY_LABELS: Mapping[CostCategory, str] = MappingProxyType(
    {
        CostCategory.PRODUCT_COST: "Product Cost",
        CostCategory.KIT_COST: "Kit Cost",
        CostCategory.PAYMENT_FEE: "Payment Fee Costs",
        CostCategory.BLOOD_DRAW_SAMPLE: "Blood Draw & Sample Handling",
        CostCategory.SANITARY_PERMITS: "Sanitary Permits to Export Blood",
        CostCategory.EXTERNAL_COURIER: "External Courier",
        CostCategory.INTERNAL_COURIER: "Internal Courier",
        CostCategory.PHYSICIANS_FEES: "Physicians Fees",
        CostCategory.SALES_COMMISSION: "Sales Commission",
    }
)

# Every field that can carry a Pct/USD pair, in payload order
RATE_FIELDS = (DISCOUNT_FIELD,) + tuple(c.value for c in CostCategory)


def to_decimal(value: Any, *, field_name: str) -> D:
    """
    Strict numeric coercion for prices, rates and override values.
    Floats go through str() so 0.15 stays 0.15.
    """
    if isinstance(value, bool):
        raise InvalidInput(
            f"{field_name} must be a number", meta={"field": field_name}
        )
    if isinstance(value, D):
        out = value
    else:
        try:
            out = D(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidInput(
                f"{field_name} must be a number",
                meta={"field": field_name, "value": repr(value)},
            ) from None
    if not out.is_finite():
        raise InvalidInput(
            f"{field_name} must be finite",
            meta={"field": field_name, "value": str(out)},
        )
    return out


# -----------------------------
# Tagged rate value
# -----------------------------


class ValueKind(str, Enum):
    PERCENT = "PERCENT"
    FIXED = "FIXED"
    UNSET = "UNSET"


@dataclass(frozen=True)
class RateValue:
    """
    One rule or override value: a fraction of gross sales, a fixed USD
    amount, or nothing. Never both.
    """

    kind: ValueKind = ValueKind.UNSET
    value: Optional[D] = None

    @staticmethod
    def percent(value: Any) -> "RateValue":
        return RateValue(ValueKind.PERCENT, to_decimal(value, field_name="percent"))

    @staticmethod
    def fixed(value: Any) -> "RateValue":
        return RateValue(ValueKind.FIXED, to_decimal(value, field_name="fixed"))

    @property
    def is_set(self) -> bool:
        return self.kind != ValueKind.UNSET

    def amount_for(self, gross_sales: D) -> D:
        if self.kind == ValueKind.PERCENT:
            return self.value * gross_sales
        if self.kind == ValueKind.FIXED:
            return self.value
        return D("0")


UNSET = RateValue()


def rate_value_from_pair(
    field_name: str, pct: Any = None, usd: Any = None
) -> RateValue:
    """Fixed USD wins over a percentage when both are given."""
    if usd is not None:
        return RateValue(
            ValueKind.FIXED, to_decimal(usd, field_name=field_name + USD_SUFFIX)
        )
    if pct is not None:
        return RateValue(
            ValueKind.PERCENT, to_decimal(pct, field_name=field_name + PCT_SUFFIX)
        )
    return UNSET


def rate_value_to_pair(field_name: str, value: RateValue) -> Dict[str, float]:
    if value.kind == ValueKind.PERCENT:
        return {field_name + PCT_SUFFIX: float(value.value)}
    if value.kind == ValueKind.FIXED:
        return {field_name + USD_SUFFIX: float(value.value)}
    return {}


# -----------------------------
# Country profiles
# -----------------------------


@dataclass(frozen=True)
class CountryRules:
    commercial_discount: RateValue = UNSET
    costs: Mapping[CostCategory, RateValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "costs", MappingProxyType(dict(self.costs)))

    def cost(self, category: CostCategory) -> RateValue:
        return self.costs.get(category, UNSET)

    def to_payload(self) -> Dict[str, float]:
        out = rate_value_to_pair(DISCOUNT_FIELD, self.commercial_discount)
        for category in CostCategory:
            out.update(rate_value_to_pair(category.value, self.cost(category)))
        return out


@dataclass(frozen=True)
class CountryRates:
    code: CountryCode
    accounts: Mapping[str, str] = field(default_factory=dict)
    rules: CountryRules = field(default_factory=CountryRules)
    currency: str = CURRENCY_USD

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", MappingProxyType(dict(self.accounts)))

    @property
    def name(self) -> str:
        return COUNTRY_NAMES[self.code]

    def account_for(self, key: str) -> Optional[str]:
        return self.accounts.get(key)
