"""Pure payment matching: which buffer does a notification pay?"""

from payment_engines.matching.matcher import (
    PaymentMatcher,
    normalize_sender_name,
    normalize_transaction_id,
)
from payment_engines.matching.types import (
    MatchingPolicy,
    MatchOutcome,
    MatchResult,
    MatchRule,
)

__all__ = [
    "PaymentMatcher",
    "MatchingPolicy",
    "MatchOutcome",
    "MatchResult",
    "MatchRule",
    "normalize_sender_name",
    "normalize_transaction_id",
]
