"""
Config -> Engine Bridges.

Functions that convert a ReconciliationConfig into the inputs the pure
engines take.  They live in payment_config (the producer) because neither
payment_kernel nor payment_engines may import payment_config.

Usage:
    from payment_config.bridges import build_grammar, build_matching_policy

    config = get_active_config()
    extractor = NotificationExtractor(build_grammar(config))
    matcher = PaymentMatcher(build_matching_policy(config))
"""

from __future__ import annotations

from payment_config.schema import ReconciliationConfig
from payment_engines.extraction.grammar import LocaleGrammar
from payment_engines.matching.types import MatchingPolicy
from payment_kernel.exceptions import ConfigurationError


def build_grammar(config: ReconciliationConfig) -> LocaleGrammar:
    """
    Build the extractor's LocaleGrammar.

    Empty extraction vocabularies keep the engine's defaults.

    Raises:
        ConfigurationError: if the resulting grammar is inconsistent.
    """
    currency = config.currency
    extraction = config.extraction
    if not currency.symbols:
        raise ConfigurationError("currency.symbols", "at least one symbol is required")

    kwargs = {
        "currency_code": currency.code,
        "decimal_places": currency.decimal_places,
        "symbols": currency.symbols,
        "display_symbol": currency.display_symbol or currency.symbols[0],
        "symbol_position": currency.symbol_position,
        "thousands_separator": currency.thousands_separator,
        "decimal_separator": currency.decimal_separator,
        "ignore_window": extraction.ignore_window,
        "min_reference_length": extraction.min_reference_length,
    }
    for name in (
        "amount_keywords",
        "ignore_words",
        "reference_labels",
        "reference_suffixes",
        "sender_labels",
        "sender_stop_words",
    ):
        value = getattr(extraction, name)
        if value:
            kwargs[name] = value

    try:
        return LocaleGrammar(**kwargs)
    except ValueError as e:
        raise ConfigurationError("currency", str(e)) from e


def build_matching_policy(config: ReconciliationConfig) -> MatchingPolicy:
    return MatchingPolicy(recency_window=config.matching.recency_window)
