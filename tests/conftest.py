from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from margin_engine.domain.countries import (
    CostCategory,
    CountryCode,
    CountryRates,
    CountryRules,
    RateValue,
)
from margin_engine.storage.rates_loader import load_country_rates


@pytest.fixture(scope="session")
def rates_table():
    # The packaged six-country table
    return load_country_rates()


@pytest.fixture
def simple_rates():
    # 10% discount, 15% product cost, nothing else applicable
    return CountryRates(
        code=CountryCode.UY,
        accounts={
            "grossSales": "4.1.1.6",
            "discount": "4.1.1.10",
            "productCost": "5.1.1.6",
            "kitCost": "5.1.4.1.4",
        },
        rules=CountryRules(
            commercial_discount=RateValue.percent("0.1"),
            costs={CostCategory.PRODUCT_COST: RateValue.percent("0.15")},
        ),
    )


@pytest.fixture
def bare_rates():
    # No rules at all: every category "not applicable"
    return CountryRates(code=CountryCode.AR)


@pytest.fixture
def client():
    from margin_engine.main import create_app

    with TestClient(create_app()) as c:
        yield c
