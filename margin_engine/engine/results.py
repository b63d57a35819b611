from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

D = Decimal

# Where a row's value came from (avoid string typos)
SOURCE_RULE = "RULE"
SOURCE_OVERRIDE = "OVERRIDE"


@dataclass(frozen=True)
class ComputedRow:
    """
    One waterfall line.
    - amount: USD, full precision (round only when rendering)
    - pct: fraction of gross sales (0.15 == 15%), 0 when gross sales is 0
    - source: RULE / OVERRIDE for resolved lines, None for derived lines
    """

    label: str
    amount: D
    pct: D
    account: Optional[str] = None
    source: Optional[str] = None
    key: Optional[str] = None

    @property
    def is_override(self) -> bool:
        return self.source == SOURCE_OVERRIDE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "account": self.account,
            "amount": str(self.amount),
            "pct": str(self.pct),
            "source": self.source,
        }


@dataclass(frozen=True)
class ComputedResult:
    gross_sales: ComputedRow
    discount: ComputedRow
    sales_revenue: ComputedRow
    cost_of_sales: ComputedRow  # section header only
    total_cost_of_sales: ComputedRow
    gross_profit: ComputedRow
    cost_rows: Tuple[ComputedRow, ...] = field(default_factory=tuple)

    def rows(self) -> List[ComputedRow]:
        """Render order: revenue block, cost header, cost lines, totals."""
        return [
            self.gross_sales,
            self.discount,
            self.sales_revenue,
            self.cost_of_sales,
            *self.cost_rows,
            self.total_cost_of_sales,
            self.gross_profit,
        ]

    @property
    def gross_margin(self) -> D:
        return self.gross_profit.pct

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gross_sales": self.gross_sales.to_dict(),
            "discount": self.discount.to_dict(),
            "sales_revenue": self.sales_revenue.to_dict(),
            "cost_of_sales": self.cost_of_sales.to_dict(),
            "cost_rows": [r.to_dict() for r in self.cost_rows],
            "total_cost_of_sales": self.total_cost_of_sales.to_dict(),
            "gross_profit": self.gross_profit.to_dict(),
        }
