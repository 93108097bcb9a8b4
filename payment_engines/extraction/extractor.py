"""
payment_engines.extraction.extractor -- Amount/sender extraction from notification text.

Responsibility:
    Turns the unstructured text of one bank/SMS notification into a
    NotificationCandidate: the credited amount (rounded to the currency's
    minor unit), an optional transaction reference and an optional sender
    display name.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Called by ReconciliationCoordinator before matching.

Invariants enforced:
    - Purity: no clock access, no I/O, no shared mutable state.  The same
      text and grammar always give the same candidate.
    - Decimal only: the amount is parsed from its digits into a Decimal and
      rounded with ROUND_HALF_UP.  No float is ever produced.
    - The candidate amount is strictly positive.

Failure modes:
    - InvalidFormatError("empty_text") for empty or whitespace-only text.
    - InvalidFormatError("no_amount") when no plausible amount is present
      (every amount found was preceded by an ignore word, or none matched).
    - InvalidFormatError("zero_amount") when the amount rounds to zero.
    - InvalidFormatError("amount_out_of_range") when the amount does not
      fit a 64-bit count of minor units.

Usage:
    extractor = NotificationExtractor(grammar)
    candidate = extractor.extract(
        "You received MMK 500,000 from KO AUNG. Ref: TXN882",
        received_at=now,
    )
    candidate.amount          # Decimal("500000.00")
    candidate.sender_name     # "KO AUNG"
    candidate.transaction_id  # "TXN882"
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

from payment_engines.extraction.grammar import (
    DEFAULT_GRAMMAR,
    LocaleGrammar,
    compile_grammar,
)
from payment_engines.tracer import traced_engine
from payment_kernel.domain.dtos import NotificationCandidate
from payment_kernel.domain.values import MAX_AMOUNT_MINOR, quantize_amount, to_minor_units
from payment_kernel.exceptions import InvalidFormatError

_WHITESPACE = re.compile(r"\s+")


class NotificationExtractor:
    """
    Extracts a NotificationCandidate using one locale grammar.

    Thread-safe: holds only the frozen grammar and its cached patterns.
    """

    def __init__(self, grammar: LocaleGrammar = DEFAULT_GRAMMAR):
        self.grammar = grammar
        self._compiled = compile_grammar(grammar)

    @traced_engine("extractor", "1.0", fingerprint_fields=("raw_text",))
    def extract(
        self,
        raw_text: str,
        received_at: datetime | None = None,
    ) -> NotificationCandidate:
        """
        Parse one notification.

        Raises:
            InvalidFormatError: empty text, no plausible amount, or zero amount.
        """
        if raw_text is None or not raw_text.strip():
            raise InvalidFormatError("empty_text")

        amount = self.find_amount(raw_text)
        if amount is None:
            raise InvalidFormatError("no_amount")
        if amount <= 0:
            raise InvalidFormatError("zero_amount", detail=str(amount))
        amount_minor = to_minor_units(amount, self.grammar.decimal_places)
        if amount_minor > MAX_AMOUNT_MINOR:
            raise InvalidFormatError("amount_out_of_range", detail=str(amount))

        return NotificationCandidate(
            amount=amount,
            amount_minor=amount_minor,
            currency=self.grammar.currency_code,
            decimal_places=self.grammar.decimal_places,
            raw_text=raw_text,
            received_at=received_at,
            transaction_id=self.find_transaction_id(raw_text),
            sender_name=self.find_sender_name(raw_text),
        )

    # -------------------------------------------------------------------------
    # Field scanners
    # -------------------------------------------------------------------------

    def find_amount(self, text: str) -> Decimal | None:
        """
        First amount in the text that is not preceded by an ignore word.

        Each number may be matched by several forms (symbol before, symbol
        after, keyword); the earliest match start decides its context.
        """
        spans: dict[tuple[int, int], int] = {}
        for pattern in self._compiled.amount_patterns:
            for match in pattern.finditer(text):
                span = match.span("num")
                start = match.start()
                if span not in spans or start < spans[span]:
                    spans[span] = start

        for (num_start, num_end), start in sorted(spans.items()):
            if self._is_ignored(text, start):
                continue
            return self.parse_number(text[num_start:num_end])
        return None

    def _is_ignored(self, text: str, start: int) -> bool:
        if self._compiled.ignore_pattern is None:
            return False
        window = text[max(0, start - self.grammar.ignore_window):start]
        return self._compiled.ignore_pattern.search(window) is not None

    def parse_number(self, token: str) -> Decimal:
        """Digits in the grammar's notation -> Decimal rounded to the minor unit."""
        normalized = token
        if self.grammar.thousands_separator:
            normalized = normalized.replace(self.grammar.thousands_separator, "")
        normalized = normalized.replace(self.grammar.decimal_separator, ".")
        try:
            value = Decimal(normalized)
        except InvalidOperation as e:
            raise InvalidFormatError("no_amount", detail=token) from e
        try:
            return quantize_amount(value, self.grammar.decimal_places)
        except InvalidOperation as e:
            # More digits than the decimal context can hold
            raise InvalidFormatError("amount_out_of_range", detail=token) from e

    def find_transaction_id(self, text: str) -> str | None:
        match = self._compiled.reference_pattern.search(text)
        if match is None:
            return None
        return match.group("ref").upper()

    def find_sender_name(self, text: str) -> str | None:
        stop_words = {w.casefold() for w in self.grammar.sender_stop_words}
        for match in self._compiled.sender_pattern.finditer(text):
            name = _WHITESPACE.sub(" ", match.group("name")).strip()
            if name and name.casefold() not in stop_words:
                return name
        return None


def extract(
    raw_text: str,
    received_at: datetime | None = None,
    grammar: LocaleGrammar = DEFAULT_GRAMMAR,
) -> NotificationCandidate:
    """Module-level convenience wrapper around NotificationExtractor.extract."""
    return NotificationExtractor(grammar).extract(raw_text=raw_text, received_at=received_at)
