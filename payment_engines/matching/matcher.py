"""
payment_engines.matching.matcher -- Decide which buffer a notification pays.

Responsibility:
    Given an extracted NotificationCandidate and the open buffers for its
    amount, pick exactly one buffer, report an ambiguity, or report that
    nothing matches.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The coordinator reads candidates from PaymentBufferStore and hands them
    in; the matcher never touches the database and never mutates a buffer.

Invariants enforced:
    - The cascade order is fixed: amount -> transaction id -> sender name
      -> age.  A later rule only sees what the earlier rules left.
    - Amounts compare as integer minor units.
    - Ambiguous results list their candidates oldest first.

Cascade:
    1. Keep open buffers whose amount equals the candidate's exactly.
    2. None -> UNMATCHED (no_candidate).  One -> MATCHED (single_candidate).
    3. Several:
       a. Same normalized transaction id.  One -> MATCHED; several -> keep
          those; none -> keep all.
       b. Same sender name (case- and whitespace-insensitive).  Same rule.
       c. Age: buffers created at or before the notification and, when a
          recency window is set, not older than the window.  Exactly one
          -> MATCHED (recency); otherwise AMBIGUOUS (indistinguishable)
          with the buffers left after (a) and (b).
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from payment_engines.matching.types import MatchingPolicy, MatchResult, MatchRule
from payment_engines.tracer import traced_engine
from payment_kernel.domain.dtos import NotificationCandidate, PaymentBufferDTO
from payment_kernel.logging_config import get_logger

logger = get_logger("engines.matcher")

_NON_ALNUM = re.compile(r"[^0-9A-Z]")
_WHITESPACE = re.compile(r"\s+")


def normalize_transaction_id(value: str | None) -> str | None:
    if not value:
        return None
    return _NON_ALNUM.sub("", value.upper()) or None


def normalize_sender_name(value: str | None) -> str | None:
    if not value:
        return None
    return _WHITESPACE.sub(" ", value).strip().casefold() or None


class PaymentMatcher:
    """
    Pure matcher.  Stateless apart from its policy; safe to share.

    Usage:
        matcher = PaymentMatcher(MatchingPolicy(recency_window=timedelta(hours=2)))
        result = matcher.match(candidate=candidate, buffers=store_candidates)
    """

    def __init__(self, policy: MatchingPolicy | None = None):
        self.policy = policy or MatchingPolicy()

    @traced_engine("matcher", "1.0", fingerprint_fields=("candidate",))
    def match(
        self,
        candidate: NotificationCandidate,
        buffers: Sequence[PaymentBufferDTO],
    ) -> MatchResult:
        pool = sorted(
            (
                b for b in buffers
                if b.is_open
                and b.amount_minor == candidate.amount_minor
                and b.currency == candidate.currency
            ),
            key=lambda b: (b.created_at, str(b.id)),
        )

        if not pool:
            return MatchResult.unmatched(MatchRule.NO_CANDIDATE)
        if len(pool) == 1:
            return MatchResult.matched(pool[0].id, MatchRule.SINGLE_CANDIDATE)

        txn = normalize_transaction_id(candidate.transaction_id)
        if txn is not None:
            pool, decided = self._narrow(
                pool, lambda b: normalize_transaction_id(b.transaction_id) == txn
            )
            if decided:
                return MatchResult.matched(pool[0].id, MatchRule.TRANSACTION_ID)

        sender = normalize_sender_name(candidate.sender_name)
        if sender is not None:
            pool, decided = self._narrow(
                pool, lambda b: normalize_sender_name(b.sender_name) == sender
            )
            if decided:
                return MatchResult.matched(pool[0].id, MatchRule.SENDER_NAME)

        recent = self._apply_age_rule(candidate, pool)
        if len(recent) == 1:
            return MatchResult.matched(recent[0].id, MatchRule.RECENCY)

        logger.debug(
            "match_ambiguous",
            extra={"candidate_count": len(pool), "amount_minor": candidate.amount_minor},
        )
        return MatchResult.ambiguous(
            tuple(b.id for b in pool), MatchRule.INDISTINGUISHABLE
        )

    @staticmethod
    def _narrow(
        pool: list[PaymentBufferDTO],
        predicate: Callable[[PaymentBufferDTO], bool],
    ) -> tuple[list[PaymentBufferDTO], bool]:
        """Filter ``pool``; fall back to it unchanged when nothing qualifies."""
        narrowed = [b for b in pool if predicate(b)]
        if not narrowed:
            return pool, False
        return narrowed, len(narrowed) == 1

    def _apply_age_rule(
        self,
        candidate: NotificationCandidate,
        pool: list[PaymentBufferDTO],
    ) -> list[PaymentBufferDTO]:
        if candidate.received_at is None:
            return pool
        kept = [b for b in pool if b.created_at <= candidate.received_at]
        window = self.policy.recency_window
        if window is not None:
            earliest = candidate.received_at - window
            kept = [b for b in kept if b.created_at >= earliest]
        return kept
