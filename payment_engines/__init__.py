"""
Module: payment_engines
Responsibility:
    Pure calculation engines for payment reconciliation: notification text
    extraction and buffer matching.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import payment_kernel.domain, payment_kernel.exceptions and
    payment_kernel.logging_config only.  MUST NOT import payment_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Arrival times are
      passed in by the caller.
    - Decimal-only arithmetic: amounts are Decimal or integer minor units;
      floats are forbidden.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from payment_engines.extraction import NotificationExtractor, LocaleGrammar
    from payment_engines.matching import PaymentMatcher, MatchingPolicy
"""

from payment_engines.extraction import (
    DEFAULT_GRAMMAR,
    LocaleGrammar,
    NotificationExtractor,
    extract,
    format_amount,
)
from payment_engines.matching import (
    MatchingPolicy,
    MatchOutcome,
    MatchResult,
    MatchRule,
    PaymentMatcher,
)

__all__ = [
    "DEFAULT_GRAMMAR",
    "LocaleGrammar",
    "NotificationExtractor",
    "extract",
    "format_amount",
    "MatchingPolicy",
    "MatchOutcome",
    "MatchResult",
    "MatchRule",
    "PaymentMatcher",
]
