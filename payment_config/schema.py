"""
ReconciliationConfig schema.

The human-authored, reviewable configuration for one deployment: which
currency notifications are written in, how the extractor reads them, how
the matcher breaks ties, and how duplicate deliveries are detected.  YAML
sets are parsed into these types by the loader; bridges.py turns them into
engine inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CurrencyDef:
    """Currency and number notation used in notifications."""

    code: str
    decimal_places: int = 2
    symbols: tuple[str, ...] = ()
    display_symbol: str | None = None
    symbol_position: str = "after"  # before | after
    thousands_separator: str = ","
    decimal_separator: str = "."


# ---------------------------------------------------------------------------
# Extraction vocabulary (empty tuples fall back to the engine defaults)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractionDef:
    amount_keywords: tuple[str, ...] = ()
    ignore_words: tuple[str, ...] = ()
    ignore_window: int = 24
    reference_labels: tuple[str, ...] = ()
    reference_suffixes: tuple[str, ...] = ()
    min_reference_length: int = 6
    sender_labels: tuple[str, ...] = ()
    sender_stop_words: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Matching and deduplication
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchingDef:
    """
    ``matching_window_seconds``: candidate lookup ignores buffers older than
    this.  None means buffers never expire for matching.
    ``recency_window_seconds``: window for the matcher's age rule.
    """

    matching_window_seconds: int | None = None
    recency_window_seconds: int | None = None

    @property
    def matching_window(self) -> timedelta | None:
        if self.matching_window_seconds is None:
            return None
        return timedelta(seconds=self.matching_window_seconds)

    @property
    def recency_window(self) -> timedelta | None:
        if self.recency_window_seconds is None:
            return None
        return timedelta(seconds=self.recency_window_seconds)


@dataclass(frozen=True)
class DedupDef:
    enabled: bool = True
    bucket_seconds: int = 300


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationConfig:
    """One complete, validated configuration set."""

    config_id: str
    version: int
    currency: CurrencyDef
    extraction: ExtractionDef = field(default_factory=ExtractionDef)
    matching: MatchingDef = field(default_factory=MatchingDef)
    dedup: DedupDef = field(default_factory=DedupDef)
    checksum: str = ""
