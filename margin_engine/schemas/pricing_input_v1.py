# margin_engine/schemas/pricing_input_v1.py
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

# Persisted override shape: {"productCostPct": 0.2, "kitCostUSD": 150, ...}
OverridePayload = Dict[str, Optional[float]]

CountryCodeStr = constr(strip_whitespace=True, to_upper=True, min_length=2, max_length=2)


class PricingComputeInputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_price_usd: float
    country: CountryCodeStr  # type: ignore
    overrides: Optional[OverridePayload] = None


class PricingCompareInputV1(BaseModel):
    """One product, several countries; overrides keyed by country code."""

    model_config = ConfigDict(extra="forbid")

    base_price_usd: float
    countries: List[CountryCodeStr] = Field(min_length=1)  # type: ignore
    overrides: Dict[str, OverridePayload] = Field(default_factory=dict)


class ProductInV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: constr(strip_whitespace=True, min_length=1)  # type: ignore
    name: str
    base_price_usd: float
    sku: str = ""
    description: Optional[str] = None


class PricingRankInputV1(BaseModel):
    """One country, a product list; overrides keyed by product id."""

    model_config = ConfigDict(extra="forbid")

    country: CountryCodeStr  # type: ignore
    products: List[ProductInV1] = Field(default_factory=list)
    overrides: Dict[str, OverridePayload] = Field(default_factory=dict)
    sort_by: Literal["name", "price", "profit"] = "name"
    search: Optional[str] = None


class OverridesResetInputV1(BaseModel):
    """Reset-all-to-zero: gross sales back to the base price, every field 0 USD."""

    model_config = ConfigDict(extra="forbid")

    base_price_usd: float
