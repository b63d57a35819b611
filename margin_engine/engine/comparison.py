from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from ..domain.countries import COUNTRY_NAMES, CountryCode, CountryRates
from ..domain.overrides import OverrideFields
from ..storage.rates_loader import RatesTable, get_country_rates
from .errors import InvalidInput
from .results import ComputedResult
from .waterfall import compute

D = Decimal

SORT_NAME = "name"
SORT_PRICE = "price"
SORT_PROFIT = "profit"
SORT_KEYS = (SORT_NAME, SORT_PRICE, SORT_PROFIT)


@dataclass(frozen=True)
class ProductSnapshot:
    id: str
    name: str
    base_price_usd: D
    sku: str = ""
    description: Optional[str] = None


@dataclass(frozen=True)
class CountryComparison:
    code: CountryCode
    name: str
    result: ComputedResult


@dataclass(frozen=True)
class ProductResult:
    product: ProductSnapshot
    result: ComputedResult


def compare_countries(
    base_price_usd: D,
    table: RatesTable,
    countries: Sequence[Union[CountryCode, str]],
    overrides_by_country: Optional[Mapping[CountryCode, OverrideFields]] = None,
) -> List[CountryComparison]:
    """
    Same product, several countries side by side (input order kept).
    Each country uses its own overrides, if any.
    """
    if not countries:
        raise InvalidInput("at least one country is required")

    overrides_by_country = overrides_by_country or {}
    out: List[CountryComparison] = []
    seen: set[CountryCode] = set()
    for c in countries:
        rates = get_country_rates(table, c)
        if rates.code in seen:
            continue
        seen.add(rates.code)
        result = compute(base_price_usd, rates, overrides_by_country.get(rates.code))
        out.append(
            CountryComparison(
                code=rates.code, name=COUNTRY_NAMES[rates.code], result=result
            )
        )
    return out


def filter_products(
    products: Iterable[ProductSnapshot], term: Optional[str]
) -> List[ProductSnapshot]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(products)
    return [
        p
        for p in products
        if needle in p.name.lower()
        or needle in p.sku.lower()
        or (p.description and needle in p.description.lower())
    ]


def rank_products(
    products: Iterable[ProductSnapshot],
    rates: CountryRates,
    overrides_by_product: Optional[Mapping[str, OverrideFields]] = None,
    sort_by: str = SORT_NAME,
) -> List[ProductResult]:
    """
    Compute every product for one country and order the list:
      name   -> A..Z (case-insensitive)
      price  -> highest base price first
      profit -> highest gross profit first
    Ties keep input order.
    """
    if sort_by not in SORT_KEYS:
        raise InvalidInput(
            f"sort_by must be one of {list(SORT_KEYS)}", meta={"sort_by": sort_by}
        )

    overrides_by_product = overrides_by_product or {}
    rows: List[ProductResult] = [
        ProductResult(
            product=p,
            result=compute(p.base_price_usd, rates, overrides_by_product.get(p.id)),
        )
        for p in products
    ]

    if sort_by == SORT_NAME:
        rows.sort(key=lambda r: r.product.name.lower())
    elif sort_by == SORT_PRICE:
        rows.sort(key=lambda r: r.product.base_price_usd, reverse=True)
    else:
        rows.sort(key=lambda r: r.result.gross_profit.amount, reverse=True)
    return rows

