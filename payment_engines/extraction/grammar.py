"""
payment_engines.extraction.grammar -- Locale grammar for notification text.

Responsibility:
    Describes how amounts, transaction references and sender names are
    written in one locale's bank/SMS notifications, and compiles that
    description into the regular expressions the extractor runs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Built from configuration by ``payment_config.bridges.build_grammar``;
    engines never read configuration files themselves.

Invariants enforced:
    - LocaleGrammar is frozen and hashable, so compiled patterns are cached
      per grammar and shared safely between threads.
    - Currency tokens are matched longest first and never inside a word
      ("K" does not match the K of "KO AUNG").

Failure modes:
    - ValueError from LocaleGrammar on empty symbols, identical separators,
      or a non-positive minimum reference length.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

# A letter on either side means the token is part of a longer word
_NOT_AFTER_LETTER = r"(?<![^\W\d_])"
_NOT_BEFORE_LETTER = r"(?![^\W\d_])"


@dataclass(frozen=True)
class LocaleGrammar:
    """
    How one locale writes payment notifications.

    Contract:
        Every sequence field is a tuple so the grammar is hashable.
        ``symbols`` lists every currency token that may appear in text
        (codes, symbols, aliases); ``display_symbol`` is the one
        ``format_amount`` writes.
    """

    currency_code: str = "MMK"
    decimal_places: int = 2
    symbols: tuple[str, ...] = ("MMK", "Kyats", "Kyat", "Ks", "K")
    display_symbol: str = "K"
    symbol_position: str = "after"
    thousands_separator: str = ","
    decimal_separator: str = "."
    amount_keywords: tuple[str, ...] = (
        "amount", "received", "paid", "credited", "deposited", "transferred",
    )
    ignore_words: tuple[str, ...] = (
        "balance", "bal", "avail", "available", "fee", "fees", "charge",
        "charges", "commission",
    )
    ignore_window: int = 24
    reference_labels: tuple[str, ...] = (
        "reference", "ref", "transaction", "trans", "txn",
    )
    reference_suffixes: tuple[str, ...] = ("id", "no", "number")
    min_reference_length: int = 6
    sender_labels: tuple[str, ...] = ("sent by", "sender", "from")
    sender_stop_words: tuple[str, ...] = (
        "to", "on", "at", "via", "for", "ref", "reference", "txn", "trans",
        "transaction", "amount", "account", "acc",
    )

    def __post_init__(self) -> None:
        if not self.symbols:
            raise ValueError("LocaleGrammar requires at least one currency symbol")
        if self.display_symbol not in self.symbols:
            raise ValueError(
                f"display_symbol {self.display_symbol!r} is not one of {self.symbols!r}"
            )
        if self.symbol_position not in ("before", "after"):
            raise ValueError("symbol_position must be 'before' or 'after'")
        if self.decimal_separator == self.thousands_separator:
            raise ValueError("decimal and thousands separators must differ")
        if not self.decimal_separator:
            raise ValueError("decimal_separator is required")
        if self.decimal_places < 0:
            raise ValueError("decimal_places must be >= 0")
        if self.min_reference_length < 1:
            raise ValueError("min_reference_length must be >= 1")


@dataclass(frozen=True)
class CompiledGrammar:
    """Regular expressions derived from a LocaleGrammar."""

    amount_patterns: tuple[re.Pattern, ...]
    ignore_pattern: re.Pattern | None
    reference_pattern: re.Pattern
    sender_pattern: re.Pattern


def _alternation(words: tuple[str, ...]) -> str:
    """Regex alternation, longest first, internal spaces matching any whitespace."""
    ordered = sorted(set(words), key=lambda w: (-len(w), w))
    return "|".join(r"\s+".join(re.escape(part) for part in w.split()) for w in ordered)


def number_pattern(grammar: LocaleGrammar) -> str:
    """
    Number in the grammar's notation, captured as ``num``.

    Grouped form ("1,234,567.89") is tried before the plain form ("1234567.89").
    A trailing guard rejects partial numbers ("1,0000" is not 1,000).
    """
    ts = re.escape(grammar.thousands_separator)
    ds = re.escape(grammar.decimal_separator)
    plain = rf"\d+(?:{ds}\d+)?"
    if grammar.thousands_separator:
        body = rf"\d{{1,3}}(?:{ts}\d{{3}})+(?:{ds}\d+)?|{plain}"
        tail = rf"(?!\d)(?!{ts}\d)(?!{ds}\d)"
    else:
        body = plain
        tail = rf"(?!\d)(?!{ds}\d)"
    return rf"(?P<num>{body}){tail}"


@lru_cache(maxsize=32)
def compile_grammar(grammar: LocaleGrammar) -> CompiledGrammar:
    """Compile (and cache) the patterns for ``grammar``."""
    flags = re.IGNORECASE
    num = number_pattern(grammar)
    seps = re.escape(grammar.thousands_separator + grammar.decimal_separator)
    num_start = rf"(?<![\w{seps}])"
    symbol_alt = rf"(?:{_alternation(grammar.symbols)}){_NOT_BEFORE_LETTER}"
    symbols = rf"(?<!\w){symbol_alt}"

    symbol_before = re.compile(rf"{symbols}\.?\s*{num}{_NOT_BEFORE_LETTER}", flags)
    # The number already ends at a boundary, so the symbol may follow it directly ("10,000Ks")
    symbol_after = re.compile(rf"{num_start}{num}\s*{symbol_alt}", flags)
    keyword = re.compile(
        rf"{_NOT_AFTER_LETTER}(?:{_alternation(grammar.amount_keywords)}){_NOT_BEFORE_LETTER}"
        rf"[\s:\-]*(?:of\s+)?(?:{symbols}\.?\s*)?{num_start}{num}{_NOT_BEFORE_LETTER}",
        flags,
    )

    ignore = None
    if grammar.ignore_words:
        # Ignore word in the same clause as the amount; "Bal." only when adjacent
        ignore = re.compile(
            rf"{_NOT_AFTER_LETTER}(?:{_alternation(grammar.ignore_words)}){_NOT_BEFORE_LETTER}"
            r"(?:\.?[\s:\-]*$|[^.;!?\n]*$)",
            flags,
        )

    suffixes = ""
    if grammar.reference_suffixes:
        suffixes = rf"(?:\s*(?:{_alternation(grammar.reference_suffixes)}))?"
    reference = re.compile(
        rf"{_NOT_AFTER_LETTER}(?:{_alternation(grammar.reference_labels)}){suffixes}"
        rf"{_NOT_BEFORE_LETTER}\.?\s*[#:.\-]*\s*"
        rf"(?P<ref>(?=[A-Za-z0-9]*\d)[A-Za-z0-9]{{{grammar.min_reference_length},}})"
        r"(?![A-Za-z0-9])",
        flags,
    )

    stops = _alternation(grammar.sender_stop_words) or r"(?!)"
    sender = re.compile(
        rf"{_NOT_AFTER_LETTER}(?:{_alternation(grammar.sender_labels)}){_NOT_BEFORE_LETTER}"
        r"[ \t]*:?[ \t]*"
        r"(?P<name>[^\W\d_]+(?:[ \t'\-]+[^\W\d_]+)*?)"
        rf"(?=[ \t]*(?:$|[^\w \t'\-]|\d|(?:{stops}){_NOT_BEFORE_LETTER}))",
        flags,
    )

    return CompiledGrammar(
        amount_patterns=(symbol_before, symbol_after, keyword),
        ignore_pattern=ignore,
        reference_pattern=reference,
        sender_pattern=sender,
    )


DEFAULT_GRAMMAR = LocaleGrammar()
