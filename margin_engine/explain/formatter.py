from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Optional

from margin_engine.engine.results import ComputedResult, ComputedRow

D = Decimal

CENT = D("0.01")

_SYMBOLS = {"USD": "$"}

OVERRIDE_MARKER = "(override)"


def round_amount(amount: Any) -> D:
    """The only rounding point: display values, never intermediate steps."""
    return D(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: Any, currency: str = "USD") -> str:
    q = round_amount(amount)
    if q == 0:
        q = abs(q)
    sign = "-" if q < 0 else ""
    body = f"{abs(q):,.2f}"
    symbol = _SYMBOLS.get(currency)
    if symbol:
        return f"{sign}{symbol}{body}"
    return f"{sign}{currency} {body}"


def format_percentage(pct: Any, signed: bool = False) -> str:
    """pct is a fraction (0.15 -> '15.00%')."""
    value = (D(str(pct)) * 100).quantize(CENT, rounding=ROUND_HALF_UP)
    if value == 0:
        value = abs(value)
    prefix = "+" if signed and value >= 0 else ""
    return f"{prefix}{value:.2f}%"


def format_row(row: ComputedRow, currency: str = "USD") -> str:
    head = f"{row.label} [{row.account}]" if row.account else row.label
    line = f"{head}: {format_currency(row.amount, currency)} ({format_percentage(row.pct)})"
    if row.is_override:
        line = f"{line} {OVERRIDE_MARKER}"
    return line


def format_result_lines(result: ComputedResult, currency: str = "USD") -> List[str]:
    """
    One line per waterfall row. The cost of sales header renders as its
    label only.
    """
    lines: List[str] = []
    for row in result.rows():
        if row is result.cost_of_sales:
            lines.append(row.label)
            continue
        lines.append(format_row(row, currency))
    return lines


def format_text_block(lines: Iterable[Any], bullet: Optional[str] = None) -> str:
    """
    Join display lines into one text block (tooltips, mail bodies).
    Whitespace inside a line collapses to single spaces; blank lines drop out.
    """
    out: List[str] = []
    for line in lines:
        text = " ".join(str(line).split())
        if not text:
            continue
        out.append(f"{bullet} {text}" if bullet else text)
    return "\n".join(out)


def format_comparison_line(
    code: str, name: str, result: ComputedResult, currency: str = "USD"
) -> str:
    profit = result.gross_profit
    return (
        f"{code} {name}: {profit.label} "
        f"{format_currency(profit.amount, currency)} "
        f"({format_percentage(profit.pct)})"
    )
