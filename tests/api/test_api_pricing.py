from decimal import Decimal

import pytest

from margin_engine.api.pricing import to_snapshots
from margin_engine.engine.errors import InvalidInput
from margin_engine.schemas.pricing_input_v1 import ProductInV1

D = Decimal


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_list_countries(client):
    r = client.get("/api/pricing/countries")
    assert r.status_code == 200

    body = r.json()
    assert [c["code"] for c in body] == ["UY", "AR", "MX", "CL", "VE", "CO"]
    assert body[0] == {"code": "UY", "name": "Uruguay", "currency": "USD"}


def test_country_rates(client):
    r = client.get("/api/pricing/countries/uy/rates")
    assert r.status_code == 200

    body = r.json()
    assert body["code"] == "UY"
    assert body["rules"]["kitCostUSD"] == 150
    assert body["rules"]["commercialDiscountPct"] == 0.05
    assert body["accounts"]["grossSales"] == "4.1.1.6"


def test_country_rates_unknown(client):
    r = client.get("/api/pricing/countries/BR/rates")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "MISSING_CONFIGURATION"


def test_compute(client):
    r = client.post(
        "/api/pricing/compute", json={"base_price_usd": 1000, "country": "uy"}
    )
    assert r.status_code == 200

    body = r.json()
    assert body["version"] == "v1"
    assert body["country"] == "UY"

    result = body["result"]
    assert D(result["gross_profit"]["amount"]) == D("-14")
    assert result["gross_profit"]["display_amount"] == "-$14.00"
    assert result["gross_profit"]["display_pct"] == "-1.40%"
    assert len(result["cost_rows"]) == 9
    assert result["lines"][3] == "Cost of Sales"
    assert result["text"] == "\n".join(result["lines"])
    assert result["text"].endswith("Gross Profit: -$14.00 (-1.40%)")


def test_compute_with_overrides(client):
    r = client.post(
        "/api/pricing/compute",
        json={
            "base_price_usd": 1000,
            "country": "UY",
            "overrides": {"productCostUSD": 0, "productCostPct": 0.5, "kitCostUSD": None},
        },
    )
    assert r.status_code == 200

    rows = {row["key"]: row for row in r.json()["result"]["cost_rows"]}
    assert D(rows["productCost"]["amount"]) == 0
    assert rows["productCost"]["source"] == "OVERRIDE"
    assert rows["kitCost"]["source"] == "RULE"


def test_compute_negative_price(client):
    r = client.post(
        "/api/pricing/compute", json={"base_price_usd": -5, "country": "UY"}
    )
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "INVALID_INPUT"


def test_compute_unknown_country(client):
    r = client.post(
        "/api/pricing/compute", json={"base_price_usd": 100, "country": "BR"}
    )
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "MISSING_CONFIGURATION"


def test_compute_rejects_extra_fields(client):
    r = client.post(
        "/api/pricing/compute",
        json={"base_price_usd": 100, "country": "UY", "vat": 0.22},
    )
    assert r.status_code == 422


def test_compare(client):
    r = client.post(
        "/api/pricing/compare",
        json={
            "base_price_usd": 1000,
            "countries": ["UY", "AR"],
            "overrides": {"uy": {"productCostUSD": 0}},
        },
    )
    assert r.status_code == 200

    out = r.json()["countries"]
    assert [c["country"] for c in out] == ["UY", "AR"]
    assert D(out[0]["result"]["gross_profit"]["amount"]) == D("236")
    assert D(out[1]["result"]["gross_profit"]["amount"]) == D("160")
    assert r.json()["summary"] == (
        "• UY Uruguay: Gross Profit $236.00 (23.60%)\n"
        "• AR Argentina: Gross Profit $160.00 (16.00%)"
    )


def test_compare_unknown_override_country(client):
    r = client.post(
        "/api/pricing/compare",
        json={"base_price_usd": 1000, "countries": ["UY"], "overrides": {"XX": {}}},
    )
    assert r.status_code == 404


def test_rank_by_profit(client):
    r = client.post(
        "/api/pricing/rank",
        json={
            "country": "UY",
            "sort_by": "profit",
            "products": [
                {"id": "p1", "name": "Zeta", "base_price_usd": 5000},
                {"id": "p2", "name": "alpha", "base_price_usd": 1000},
                {"id": "p3", "name": "Beta", "base_price_usd": 300, "sku": "BT-03"},
            ],
            "overrides": {"p3": {"grossSalesUSD": 10000}},
        },
    )
    assert r.status_code == 200

    products = r.json()["products"]
    assert [p["id"] for p in products] == ["p3", "p1", "p2"]
    assert D(products[0]["gross_profit"]) == D("5305")
    assert D(products[0]["base_price_usd"]) == D("300")


def test_rank_with_search(client):
    r = client.post(
        "/api/pricing/rank",
        json={
            "country": "AR",
            "search": "zet",
            "products": [
                {"id": "p1", "name": "Zeta", "base_price_usd": 5000},
                {"id": "p2", "name": "alpha", "base_price_usd": 1000},
            ],
        },
    )
    assert r.status_code == 200
    assert [p["id"] for p in r.json()["products"]] == ["p1"]


def test_reset_overrides(client):
    r = client.post("/api/pricing/overrides/reset", json={"base_price_usd": 4200})
    assert r.status_code == 200

    overrides = r.json()["overrides"]
    assert overrides["grossSalesUSD"] == 4200
    assert overrides["commercialDiscountUSD"] == 0
    assert overrides["salesCommissionUSD"] == 0
    assert len(overrides) == 11

    # feeding the reset payload back in leaves gross profit == gross sales
    r = client.post(
        "/api/pricing/compute",
        json={"base_price_usd": 1000, "country": "UY", "overrides": overrides},
    )
    result = r.json()["result"]
    assert D(result["gross_profit"]["amount"]) == D("4200")
    assert D(result["total_cost_of_sales"]["amount"]) == 0


def test_reset_overrides_negative_price(client):
    r = client.post("/api/pricing/overrides/reset", json={"base_price_usd": -1})
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "INVALID_INPUT"


def test_snapshots_carry_decimal_prices():
    snaps = to_snapshots(
        [ProductInV1(id="p1", name="Panel", base_price_usd=0.1, sku="PN-1")]
    )

    assert isinstance(snaps[0].base_price_usd, Decimal)
    assert snaps[0].base_price_usd == D("0.1")
    assert snaps[0].sku == "PN-1"


def test_snapshots_reject_non_finite_prices():
    with pytest.raises(InvalidInput):
        to_snapshots([ProductInV1(id="p1", name="Panel", base_price_usd=float("inf"))])
