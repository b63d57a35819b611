from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from jsonschema import ValidationError, validate

from margin_engine.domain.countries import (
    DISCOUNT_FIELD,
    PCT_SUFFIX,
    RATE_FIELDS,
    USD_SUFFIX,
    CostCategory,
    CountryCode,
    CountryRates,
    CountryRules,
    RateValue,
    rate_value_from_pair,
)
from margin_engine.engine.errors import MissingConfiguration, RateTableError

logger = logging.getLogger(__name__)

RatesTable = Mapping[CountryCode, CountryRates]


# =============================================================================
# Paths
# =============================================================================


def package_root() -> Path:
    # .../margin_engine/storage/rates_loader.py -> parents[1] = .../margin_engine
    return Path(__file__).resolve().parents[1]


def default_rates_path() -> Path:
    return package_root() / "data" / "country_rates.yaml"


def schema_path() -> Path:
    return package_root() / "schemas" / "country_rates.schema.json"


@lru_cache(maxsize=1)
def _load_schema() -> Dict[str, Any]:
    with schema_path().open("r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# Load + validate
# =============================================================================


def load_country_rates(path: Union[str, Path, None] = None) -> RatesTable:
    """
    Read a rate table file (YAML), validate it and build the read-only
    country -> CountryRates mapping. Meant to run once at startup.
    """
    rates_path = Path(path) if path else default_rates_path()

    try:
        with rates_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise RateTableError(f"rate table not found: {rates_path}") from None
    except yaml.YAMLError as e:
        raise RateTableError(f"{rates_path}: invalid YAML: {e}") from e

    return build_country_rates(raw, source=str(rates_path))


def build_country_rates(raw: Dict[str, Any], *, source: str = "<dict>") -> RatesTable:
    try:
        validate(instance=raw, schema=_load_schema())
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise RateTableError(f"{source}: {where}: {e.message}") from e

    shared_accounts = dict(raw.get("accounts") or {})

    table: Dict[CountryCode, CountryRates] = {}
    for code_str, entry in raw["countries"].items():
        code = CountryCode(code_str)
        accounts = {**shared_accounts, **dict(entry.get("accounts") or {})}
        table[code] = CountryRates(
            code=code,
            currency=entry["currency"],
            accounts=accounts,
            rules=_build_rules(code, entry.get("rules") or {}, source=source),
        )

    logger.info(
        "loaded country rate table %s (%s)",
        source,
        ", ".join(c.value for c in table),
    )
    return MappingProxyType(table)


def _build_rules(
    code: CountryCode, rules_raw: Dict[str, Any], *, source: str
) -> CountryRules:
    values: Dict[str, RateValue] = {}
    for name in RATE_FIELDS:
        pct = rules_raw.get(name + PCT_SUFFIX)
        usd = rules_raw.get(name + USD_SUFFIX)
        if pct is not None and usd is not None:
            raise RateTableError(
                f"{source}: {code.value}.{name} defines both "
                f"{name}{PCT_SUFFIX} and {name}{USD_SUFFIX}"
            )
        values[name] = rate_value_from_pair(name, pct=pct, usd=usd)

    return CountryRules(
        commercial_discount=values.pop(DISCOUNT_FIELD),
        costs={CostCategory(k): v for k, v in values.items() if v.is_set},
    )


# =============================================================================
# Lookup
# =============================================================================


def get_country_rates(
    table: RatesTable, code: Union[CountryCode, str, None]
) -> CountryRates:
    """Fails closed: unknown or unconfigured codes raise MissingConfiguration."""
    raw: Optional[str] = code.value if isinstance(code, CountryCode) else code
    try:
        key = CountryCode(str(raw or "").strip().upper())
    except ValueError:
        raise MissingConfiguration(
            f"unknown country code: {raw!r}", meta={"country": raw}
        ) from None

    rates = table.get(key)
    if rates is None:
        raise MissingConfiguration(
            f"no rate table configured for country {key.value}",
            meta={"country": key.value},
        )
    return rates
