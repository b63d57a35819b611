from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional, Tuple

from ..domain.countries import (
    CATEGORY_LABELS,
    CostCategory,
    CountryRates,
    RateValue,
    ValueKind,
    to_decimal,
)
from ..domain.overrides import OverrideFields
from .errors import InvalidInput
from .results import SOURCE_OVERRIDE, SOURCE_RULE, ComputedResult, ComputedRow

D = Decimal
ZERO = D("0")

LABEL_GROSS_SALES = "Gross Sales (excl. VAT)"
LABEL_DISCOUNT = "Commercial Discount"
LABEL_SALES_REVENUE = "Sales Revenue"
LABEL_COST_OF_SALES = "Cost of Sales"
LABEL_TOTAL_COST = "Total Cost of Sales"
LABEL_GROSS_PROFIT = "Gross Profit"

ACCOUNT_GROSS_SALES = "grossSales"
ACCOUNT_DISCOUNT = "discount"


def _require_price(value: Any, field_name: str) -> D:
    amount = to_decimal(value, field_name=field_name)
    if amount < 0:
        raise InvalidInput(
            f"{field_name} must be >= 0",
            meta={"field": field_name, "value": str(amount)},
        )
    return amount


def _share(amount: D, gross_sales: D) -> D:
    if gross_sales == 0:
        return ZERO
    return amount / gross_sales


def _resolve(
    override: RateValue, rule: RateValue
) -> Tuple[RateValue, Optional[str]]:
    # RateValue is a tagged variant, so "fixed beats percent" for one field
    # is settled when the override is parsed; here override beats rule.
    if override.is_set:
        return override, SOURCE_OVERRIDE
    if rule.is_set:
        return rule, SOURCE_RULE
    return RateValue(), None


def _resolved_row(
    *,
    label: str,
    value: RateValue,
    source: Optional[str],
    gross_sales: D,
    account: Optional[str],
    key: str,
) -> ComputedRow:
    amount = value.amount_for(gross_sales)
    if value.kind == ValueKind.PERCENT and gross_sales != 0:
        pct = value.value
    else:
        pct = _share(amount, gross_sales)
    return ComputedRow(
        label=label, amount=amount, pct=pct, account=account, source=source, key=key
    )


def compute(
    base_price_usd: Any,
    rates: CountryRates,
    overrides: Optional[OverrideFields] = None,
) -> ComputedResult:
    """
    Gross sales -> discount -> sales revenue -> cost of sales -> gross profit.

    Pure and deterministic: inputs are read-only, the result is a fresh
    object, nothing is rounded (the formatter rounds for display).

    Raises InvalidInput for a negative or non-finite base price (or gross
    sales override).
    """
    base_price = _require_price(base_price_usd, "basePriceUSD")
    ov = overrides if overrides is not None else OverrideFields()

    # Gross sales
    if ov.gross_sales_usd is not None:
        gross_amount = _require_price(ov.gross_sales_usd, "grossSalesUSD")
        gross_source = SOURCE_OVERRIDE
    else:
        gross_amount = base_price
        gross_source = None

    gross_sales = ComputedRow(
        label=LABEL_GROSS_SALES,
        amount=gross_amount,
        pct=D("1") if gross_amount != 0 else ZERO,
        account=rates.account_for(ACCOUNT_GROSS_SALES),
        source=gross_source,
        key=ACCOUNT_GROSS_SALES,
    )

    # Commercial discount (positive amount, subtracted below)
    discount_value, discount_source = _resolve(
        ov.commercial_discount, rates.rules.commercial_discount
    )
    discount = _resolved_row(
        label=LABEL_DISCOUNT,
        value=discount_value,
        source=discount_source,
        gross_sales=gross_amount,
        account=rates.account_for(ACCOUNT_DISCOUNT),
        key="commercialDiscount",
    )

    revenue_amount = gross_amount - discount.amount
    sales_revenue = ComputedRow(
        label=LABEL_SALES_REVENUE,
        amount=revenue_amount,
        pct=_share(revenue_amount, gross_amount),
        key="salesRevenue",
    )

    cost_of_sales = ComputedRow(
        label=LABEL_COST_OF_SALES, amount=ZERO, pct=ZERO, key="costOfSales"
    )

    # Cost lines: only categories defined by a rule or an override
    cost_rows: List[ComputedRow] = []
    for category in CostCategory:
        value, source = _resolve(ov.cost(category), rates.rules.cost(category))
        if source is None:
            continue
        cost_rows.append(
            _resolved_row(
                label=CATEGORY_LABELS[category],
                value=value,
                source=source,
                gross_sales=gross_amount,
                account=rates.account_for(category.value),
                key=category.value,
            )
        )

    total_amount = sum((r.amount for r in cost_rows), ZERO)
    total_cost = ComputedRow(
        label=LABEL_TOTAL_COST,
        amount=total_amount,
        pct=_share(total_amount, gross_amount),
        key="totalCostOfSales",
    )

    # No floor: negative margins are valid output
    profit_amount = revenue_amount - total_amount
    gross_profit = ComputedRow(
        label=LABEL_GROSS_PROFIT,
        amount=profit_amount,
        pct=_share(profit_amount, gross_amount),
        key="grossProfit",
    )

    return ComputedResult(
        gross_sales=gross_sales,
        discount=discount,
        sales_revenue=sales_revenue,
        cost_of_sales=cost_of_sales,
        cost_rows=tuple(cost_rows),
        total_cost_of_sales=total_cost,
        gross_profit=gross_profit,
    )
