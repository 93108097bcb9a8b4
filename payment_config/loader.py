"""
Configuration Loader (``payment_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses
of ``payment_config.schema``.  Runtime callers go through
``payment_config.get_active_config()``; the loader is also used directly
by tests.

Invariants enforced
-------------------
* Every parse error raises ``ConfigurationError`` naming the offending
  field; there are no silent defaults for required fields.
* Every parsed object is a frozen dataclass.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed source for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or invalid fields  -> ``ConfigurationError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from payment_config.schema import (
    CurrencyDef,
    DedupDef,
    ExtractionDef,
    MatchingDef,
    ReconciliationConfig,
)
from payment_kernel.exceptions import ConfigurationError
from payment_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    return hash_payload(data)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], name: str, required: bool = False) -> dict[str, Any]:
    value = data.get(name)
    if value is None:
        if required:
            raise ConfigurationError(name, "section is required")
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(name, "must be a mapping")
    return value


def _string_tuple(data: dict[str, Any], key: str, path: str) -> tuple[str, ...]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(
        isinstance(item, str) and item.strip() for item in value
    ):
        raise ConfigurationError(f"{path}.{key}", "must be a list of non-empty strings")
    return tuple(item.strip() for item in value)


def _int(
    data: dict[str, Any],
    key: str,
    path: str,
    default: int | None,
    minimum: int,
) -> int | None:
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{path}.{key}", "must be an integer")
    if value < minimum:
        raise ConfigurationError(f"{path}.{key}", f"must be >= {minimum}")
    return value


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_currency(data: dict[str, Any]) -> CurrencyDef:
    code = data.get("code")
    if not isinstance(code, str) or len(code) != 3 or not code.isalpha():
        raise ConfigurationError("currency.code", "must be a three-letter code")

    symbols = _string_tuple(data, "symbols", "currency") or (code.upper(),)
    display_symbol = data.get("display_symbol", symbols[0])
    if display_symbol not in symbols:
        raise ConfigurationError("currency.display_symbol", "must be one of currency.symbols")

    position = data.get("symbol_position", "after")
    if position not in ("before", "after"):
        raise ConfigurationError("currency.symbol_position", "must be 'before' or 'after'")

    thousands = data.get("thousands_separator", ",")
    decimal = data.get("decimal_separator", ".")
    if not isinstance(thousands, str) or not isinstance(decimal, str) or not decimal:
        raise ConfigurationError("currency.decimal_separator", "separators must be strings")
    if thousands == decimal:
        raise ConfigurationError("currency.thousands_separator", "must differ from decimal_separator")

    return CurrencyDef(
        code=code.upper(),
        decimal_places=_int(data, "decimal_places", "currency", 2, minimum=0),
        symbols=symbols,
        display_symbol=display_symbol,
        symbol_position=position,
        thousands_separator=thousands,
        decimal_separator=decimal,
    )


def parse_extraction(data: dict[str, Any]) -> ExtractionDef:
    return ExtractionDef(
        amount_keywords=_string_tuple(data, "amount_keywords", "extraction"),
        ignore_words=_string_tuple(data, "ignore_words", "extraction"),
        ignore_window=_int(data, "ignore_window", "extraction", 24, minimum=0),
        reference_labels=_string_tuple(data, "reference_labels", "extraction"),
        reference_suffixes=_string_tuple(data, "reference_suffixes", "extraction"),
        min_reference_length=_int(data, "min_reference_length", "extraction", 6, minimum=1),
        sender_labels=_string_tuple(data, "sender_labels", "extraction"),
        sender_stop_words=_string_tuple(data, "sender_stop_words", "extraction"),
    )


def parse_matching(data: dict[str, Any]) -> MatchingDef:
    return MatchingDef(
        matching_window_seconds=_int(
            data, "matching_window_seconds", "matching", None, minimum=1
        ),
        recency_window_seconds=_int(
            data, "recency_window_seconds", "matching", None, minimum=1
        ),
    )


def parse_dedup(data: dict[str, Any]) -> DedupDef:
    enabled = data.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigurationError("dedup.enabled", "must be a boolean")
    return DedupDef(
        enabled=enabled,
        bucket_seconds=_int(data, "bucket_seconds", "dedup", 300, minimum=1),
    )


def parse_config(data: dict[str, Any]) -> ReconciliationConfig:
    """
    Parse a whole configuration set.

    Preconditions:
        ``data`` is the mapping loaded from a configuration YAML file.
    Postconditions:
        Returns a ReconciliationConfig whose ``checksum`` identifies ``data``.
    Raises:
        ConfigurationError: on any missing or invalid field.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", "must be a mapping")

    config_id = data.get("config_id")
    if not isinstance(config_id, str) or not config_id:
        raise ConfigurationError("config_id", "is required")

    return ReconciliationConfig(
        config_id=config_id,
        version=_int(data, "version", "config", 1, minimum=1),
        currency=parse_currency(_section(data, "currency", required=True)),
        extraction=parse_extraction(_section(data, "extraction")),
        matching=parse_matching(_section(data, "matching")),
        dedup=parse_dedup(_section(data, "dedup")),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> ReconciliationConfig:
    """Load and parse a configuration YAML file."""
    return parse_config(load_yaml_file(Path(path)))
