# margin_engine/schemas/pricing_output_v1.py
from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from margin_engine.engine.comparison import CountryComparison
from margin_engine.engine.results import ComputedResult, ComputedRow
from margin_engine.explain.formatter import (
    format_comparison_line,
    format_currency,
    format_percentage,
    format_result_lines,
    format_text_block,
)


class ComputedRowV1(BaseModel):
    """
    amount/pct: exact values (Decimal, serialized as strings).
    display_*: rounded, render-ready strings.
    """

    model_config = ConfigDict(extra="forbid")

    key: Optional[str] = None
    label: str
    account: Optional[str] = None
    amount: Decimal
    pct: Decimal
    source: Optional[str] = None
    display_amount: str
    display_pct: str

    @classmethod
    def from_row(cls, row: ComputedRow, currency: str = "USD") -> "ComputedRowV1":
        return cls(
            key=row.key,
            label=row.label,
            account=row.account,
            amount=row.amount,
            pct=row.pct,
            source=row.source,
            display_amount=format_currency(row.amount, currency),
            display_pct=format_percentage(row.pct),
        )


class ComputedResultV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gross_sales: ComputedRowV1
    discount: ComputedRowV1
    sales_revenue: ComputedRowV1
    cost_of_sales: ComputedRowV1
    cost_rows: List[ComputedRowV1]
    total_cost_of_sales: ComputedRowV1
    gross_profit: ComputedRowV1

    # text rendering of the full waterfall (UI tooltips / mail)
    lines: List[str]
    text: str

    @classmethod
    def from_result(
        cls, result: ComputedResult, currency: str = "USD"
    ) -> "ComputedResultV1":
        def row(r: ComputedRow) -> ComputedRowV1:
            return ComputedRowV1.from_row(r, currency)

        lines = format_result_lines(result, currency)

        return cls(
            gross_sales=row(result.gross_sales),
            discount=row(result.discount),
            sales_revenue=row(result.sales_revenue),
            cost_of_sales=row(result.cost_of_sales),
            cost_rows=[row(r) for r in result.cost_rows],
            total_cost_of_sales=row(result.total_cost_of_sales),
            gross_profit=row(result.gross_profit),
            lines=lines,
            text=format_text_block(lines),
        )


class PricingComputeOutputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    country: str
    currency: str
    result: ComputedResultV1


class CountryComparisonV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    country: str
    name: str
    result: ComputedResultV1


class PricingCompareOutputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    countries: List[CountryComparisonV1]
    # one bullet per country: gross profit and margin
    summary: str = ""

    @classmethod
    def from_comparisons(
        cls, comparisons: List[CountryComparison]
    ) -> "PricingCompareOutputV1":
        summary_lines = [
            format_comparison_line(c.code.value, c.name, c.result) for c in comparisons
        ]
        return cls(
            countries=[
                CountryComparisonV1(
                    country=c.code.value,
                    name=c.name,
                    result=ComputedResultV1.from_result(c.result),
                )
                for c in comparisons
            ],
            summary=format_text_block(summary_lines, bullet="•"),
        )


class RankedProductV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    sku: str
    base_price_usd: Decimal
    gross_profit: Decimal
    gross_margin: Decimal
    result: ComputedResultV1


class PricingRankOutputV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    country: str
    sort_by: str
    products: List[RankedProductV1]


class CountryInfoV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    name: str
    currency: str


class CountryRatesV1(CountryInfoV1):
    accounts: Dict[str, str]
    rules: Dict[str, float]


class OverridesOutputV1(BaseModel):
    """Override payload in the persisted flat shape."""

    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    overrides: Dict[str, float]
