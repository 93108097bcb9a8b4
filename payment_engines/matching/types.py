"""
payment_engines.matching.types -- Value types for the payment matcher.

MatchResult has three shapes, built through its classmethods:

    MatchResult.matched(buffer_id, rule)       -> exactly one buffer chosen
    MatchResult.ambiguous(buffer_ids, rule)    -> operator must choose
    MatchResult.unmatched(rule)                -> no open buffer for the amount

Every result carries the rule that decided it so the audit log can record
why a notification was (or was not) matched.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from uuid import UUID


class MatchOutcome(str, Enum):
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    UNMATCHED = "unmatched"


class MatchRule(str, Enum):
    """Which step of the cascade produced the result."""

    NO_CANDIDATE = "no_candidate"
    SINGLE_CANDIDATE = "single_candidate"
    TRANSACTION_ID = "transaction_id"
    SENDER_NAME = "sender_name"
    RECENCY = "recency"
    INDISTINGUISHABLE = "indistinguishable"


@dataclass(frozen=True)
class MatchingPolicy:
    """
    Tunables for the matcher.

    ``recency_window``: when set, the age rule only keeps buffers created
    no earlier than ``received_at - recency_window``.  None keeps every
    buffer created at or before the notification.
    """

    recency_window: timedelta | None = None


@dataclass(frozen=True)
class MatchResult:
    outcome: MatchOutcome
    rule: MatchRule
    buffer_id: UUID | None = None
    candidate_buffer_ids: tuple[UUID, ...] = ()

    @classmethod
    def matched(cls, buffer_id: UUID, rule: MatchRule) -> MatchResult:
        return cls(
            outcome=MatchOutcome.MATCHED,
            rule=rule,
            buffer_id=buffer_id,
            candidate_buffer_ids=(buffer_id,),
        )

    @classmethod
    def ambiguous(cls, buffer_ids: tuple[UUID, ...], rule: MatchRule) -> MatchResult:
        if len(buffer_ids) < 2:
            raise ValueError("An ambiguous result needs at least two candidates")
        return cls(
            outcome=MatchOutcome.AMBIGUOUS,
            rule=rule,
            candidate_buffer_ids=tuple(buffer_ids),
        )

    @classmethod
    def unmatched(cls, rule: MatchRule = MatchRule.NO_CANDIDATE) -> MatchResult:
        return cls(outcome=MatchOutcome.UNMATCHED, rule=rule)

    @property
    def is_matched(self) -> bool:
        return self.outcome == MatchOutcome.MATCHED

    @property
    def is_ambiguous(self) -> bool:
        return self.outcome == MatchOutcome.AMBIGUOUS
