import pytest

from margin_engine.core.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_are_cached():
    assert get_settings() is get_settings()


@pytest.mark.parametrize(
    "env, level, json_logs",
    [
        ("production", "WARNING", True),
        ("development", "DEBUG", False),
        ("local", "INFO", True),
    ],
)
def test_environment_overrides(monkeypatch, env, level, json_logs):
    monkeypatch.setenv("ENVIRONMENT", env)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_JSON", raising=False)

    s = get_settings()
    assert s.log_level == level
    assert s.log_json is json_logs


def test_create_app_uses_given_settings(tmp_path):
    from fastapi.testclient import TestClient

    from margin_engine.main import create_app

    path = tmp_path / "rates.yaml"
    path.write_text(
        "countries:\n  CL:\n    currency: USD\n    rules:\n      kitCostUSD: 10\n",
        encoding="utf-8",
    )

    app = create_app(Settings(country_rates_path=str(path), log_json=False))
    with TestClient(app) as c:
        r = c.get("/api/pricing/countries")

    assert [row["code"] for row in r.json()] == ["CL"]
