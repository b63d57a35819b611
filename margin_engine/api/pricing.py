from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from margin_engine.core.logging_config import logger
from margin_engine.domain.countries import COUNTRY_NAMES, CountryCode, to_decimal
from margin_engine.domain.overrides import OverrideFields
from margin_engine.engine.comparison import (
    ProductSnapshot,
    compare_countries,
    filter_products,
    rank_products,
)
from margin_engine.engine.errors import MissingConfiguration, PricingError
from margin_engine.engine.waterfall import compute
from margin_engine.schemas.pricing_input_v1 import (
    PricingCompareInputV1,
    PricingComputeInputV1,
    OverridesResetInputV1,
    PricingRankInputV1,
    ProductInV1,
)
from margin_engine.schemas.pricing_output_v1 import (
    ComputedResultV1,
    CountryInfoV1,
    CountryRatesV1,
    OverridesOutputV1,
    PricingCompareOutputV1,
    PricingComputeOutputV1,
    PricingRankOutputV1,
    RankedProductV1,
)
from margin_engine.storage.rates_loader import RatesTable, get_country_rates

router = APIRouter(prefix="/api/pricing", tags=["pricing"])


# ----------------------------
# Helpers
# ----------------------------
def get_rates_table(request: Request) -> RatesTable:
    table = getattr(request.app.state, "country_rates", None)
    if table is None:
        raise HTTPException(status_code=503, detail="Rate table not loaded.")
    return table


def _http_error(e: PricingError) -> HTTPException:
    status_code = 404 if isinstance(e, MissingConfiguration) else 422
    return HTTPException(status_code=status_code, detail=e.as_detail())


def _log_obs(
    *,
    request: Request,
    endpoint: str,
    started: float,
    result: str,
    event: str,
    status_code: int,
    **fields: Any,
) -> None:
    request_id = request.headers.get("X-Request-ID", "unknown")
    logger.bind(
        request_id=request_id,
        endpoint=endpoint,
        duration_ms=round((time.time() - started) * 1000, 2),
        result=result,
        status_code=status_code,
        **fields,
    ).info(event)


def to_snapshots(products: List[ProductInV1]) -> List[ProductSnapshot]:
    return [
        ProductSnapshot(
            id=p.id,
            name=p.name,
            sku=p.sku,
            description=p.description,
            base_price_usd=to_decimal(p.base_price_usd, field_name="base_price_usd"),
        )
        for p in products
    ]


def _parse_overrides_by_country(
    raw: Dict[str, Any]
) -> Dict[CountryCode, OverrideFields]:
    out: Dict[CountryCode, OverrideFields] = {}
    for code, payload in raw.items():
        try:
            key = CountryCode(code.strip().upper())
        except ValueError:
            raise MissingConfiguration(
                f"unknown country code: {code!r}", meta={"country": code}
            ) from None
        out[key] = OverrideFields.from_payload(payload)
    return out


# ----------------------------
# Country tables
# ----------------------------
@router.get("/countries", response_model=List[CountryInfoV1])
def list_countries(table: RatesTable = Depends(get_rates_table)) -> List[CountryInfoV1]:
    return [
        CountryInfoV1(code=code.value, name=COUNTRY_NAMES[code], currency=rates.currency)
        for code, rates in table.items()
    ]


@router.get("/countries/{code}/rates", response_model=CountryRatesV1)
def country_rates(
    code: str, table: RatesTable = Depends(get_rates_table)
) -> CountryRatesV1:
    try:
        rates = get_country_rates(table, code)
    except PricingError as e:
        raise _http_error(e)

    return CountryRatesV1(
        code=rates.code.value,
        name=rates.name,
        currency=rates.currency,
        accounts=dict(rates.accounts),
        rules=rates.rules.to_payload(),
    )


# ----------------------------
# Compute
# ----------------------------
@router.post("/compute", response_model=PricingComputeOutputV1)
def compute_pricing(
    payload: PricingComputeInputV1,
    request: Request,
    table: RatesTable = Depends(get_rates_table),
) -> PricingComputeOutputV1:
    t0 = time.time()
    endpoint = "/api/pricing/compute"

    try:
        rates = get_country_rates(table, payload.country)
        overrides = OverrideFields.from_payload(payload.overrides)
        result = compute(payload.base_price_usd, rates, overrides)
    except PricingError as e:
        err = _http_error(e)
        _log_obs(
            request=request,
            endpoint=endpoint,
            started=t0,
            result="error",
            event="pricing_compute",
            status_code=err.status_code,
            country=payload.country,
            error_code=e.code,
        )
        raise err

    _log_obs(
        request=request,
        endpoint=endpoint,
        started=t0,
        result="ok",
        event="pricing_compute",
        status_code=200,
        country=rates.code.value,
        cost_rows=len(result.cost_rows),
    )
    return PricingComputeOutputV1(
        country=rates.code.value,
        currency=rates.currency,
        result=ComputedResultV1.from_result(result, rates.currency),
    )


# ----------------------------
# Compare countries
# ----------------------------
@router.post("/compare", response_model=PricingCompareOutputV1)
def compare_pricing(
    payload: PricingCompareInputV1,
    request: Request,
    table: RatesTable = Depends(get_rates_table),
) -> PricingCompareOutputV1:
    t0 = time.time()

    try:
        overrides = _parse_overrides_by_country(payload.overrides)
        comparisons = compare_countries(
            payload.base_price_usd, table, payload.countries, overrides
        )
    except PricingError as e:
        err = _http_error(e)
        _log_obs(
            request=request,
            endpoint="/api/pricing/compare",
            started=t0,
            result="error",
            event="pricing_compare",
            status_code=err.status_code,
            error_code=e.code,
        )
        raise err

    _log_obs(
        request=request,
        endpoint="/api/pricing/compare",
        started=t0,
        result="ok",
        event="pricing_compare",
        status_code=200,
        countries=[c.code.value for c in comparisons],
    )
    return PricingCompareOutputV1.from_comparisons(comparisons)


# ----------------------------
# Rank a country's products
# ----------------------------
@router.post("/rank", response_model=PricingRankOutputV1)
def rank_pricing(
    payload: PricingRankInputV1,
    request: Request,
    table: RatesTable = Depends(get_rates_table),
) -> PricingRankOutputV1:
    t0 = time.time()

    search: Optional[str] = payload.search

    try:
        products = to_snapshots(payload.products)
        rates = get_country_rates(table, payload.country)
        overrides = {
            pid: OverrideFields.from_payload(ov) for pid, ov in payload.overrides.items()
        }
        ranked = rank_products(
            filter_products(products, search), rates, overrides, payload.sort_by
        )
    except PricingError as e:
        err = _http_error(e)
        _log_obs(
            request=request,
            endpoint="/api/pricing/rank",
            started=t0,
            result="error",
            event="pricing_rank",
            status_code=err.status_code,
            error_code=e.code,
        )
        raise err

    _log_obs(
        request=request,
        endpoint="/api/pricing/rank",
        started=t0,
        result="ok",
        event="pricing_rank",
        status_code=200,
        country=rates.code.value,
        product_count=len(ranked),
    )
    return PricingRankOutputV1(
        country=rates.code.value,
        sort_by=payload.sort_by,
        products=[
            RankedProductV1(
                id=r.product.id,
                name=r.product.name,
                sku=r.product.sku,
                base_price_usd=r.product.base_price_usd,
                gross_profit=r.result.gross_profit.amount,
                gross_margin=r.result.gross_margin,
                result=ComputedResultV1.from_result(r.result, rates.currency),
            )
            for r in ranked
        ],
    )


# ----------------------------
# Override helpers
# ----------------------------
@router.post("/overrides/reset", response_model=OverridesOutputV1)
def reset_overrides(payload: OverridesResetInputV1) -> OverridesOutputV1:
    try:
        overrides = OverrideFields.zeroed(payload.base_price_usd)
    except PricingError as e:
        raise _http_error(e)
    return OverridesOutputV1(overrides=overrides.to_payload())
