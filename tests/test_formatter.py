from decimal import Decimal

import pytest

from margin_engine.domain.overrides import OverrideFields
from margin_engine.engine.waterfall import compute
from margin_engine.explain.formatter import (
    format_comparison_line,
    format_currency,
    format_percentage,
    format_result_lines,
    format_text_block,
    round_amount,
)

D = Decimal


@pytest.mark.parametrize(
    "amount, expected",
    [
        (D("1234.5"), "$1,234.50"),
        (D("-14"), "-$14.00"),
        (D("0.005"), "$0.01"),
        (D("-0.001"), "$0.00"),
        (0, "$0.00"),
        (1000000, "$1,000,000.00"),
    ],
)
def test_format_currency(amount, expected):
    assert format_currency(amount) == expected


def test_format_currency_without_symbol():
    assert format_currency(D("1"), "EUR") == "EUR 1.00"


def test_round_amount_half_up():
    assert round_amount(D("2.345")) == D("2.35")
    assert round_amount(D("2.344")) == D("2.34")


@pytest.mark.parametrize(
    "pct, signed, expected",
    [
        (D("0.15"), False, "15.00%"),
        (D("0.15"), True, "+15.00%"),
        (D("-0.04"), True, "-4.00%"),
        (D("0.125"), False, "12.50%"),
        (0, True, "+0.00%"),
    ],
)
def test_format_percentage(pct, signed, expected):
    assert format_percentage(pct, signed=signed) == expected


def test_result_lines(simple_rates):
    out = compute(4000, simple_rates, OverrideFields.from_payload({"productCostUSD": 500}))

    assert format_result_lines(out) == [
        "Gross Sales (excl. VAT) [4.1.1.6]: $4,000.00 (100.00%)",
        "Commercial Discount [4.1.1.10]: $400.00 (10.00%)",
        "Sales Revenue: $3,600.00 (90.00%)",
        "Cost of Sales",
        "Product Cost [5.1.1.6]: $500.00 (12.50%) (override)",
        "Total Cost of Sales: $500.00 (12.50%)",
        "Gross Profit: $3,100.00 (77.50%)",
    ]


def test_text_block_joins_lines():
    lines = ["first\nline", "", "  ", "second\t  part"]

    assert format_text_block(lines) == "first line\nsecond part"
    assert format_text_block(lines, bullet="•") == "• first line\n• second part"
    assert format_text_block([]) == ""


def test_comparison_line(simple_rates):
    out = compute(4000, simple_rates)

    assert (
        format_comparison_line("UY", "Uruguay", out)
        == "UY Uruguay: Gross Profit $3,000.00 (75.00%)"
    )
