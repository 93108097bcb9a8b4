"""
payment_engines.extraction.formatting -- Render amounts in a locale grammar.

The inverse of amount extraction: for every positive amount ``a`` that is
exact to the minor unit, ``extract(format_amount(a, g), grammar=g).amount == a``.
"""

from __future__ import annotations

from decimal import Decimal

from payment_engines.extraction.grammar import DEFAULT_GRAMMAR, LocaleGrammar
from payment_kernel.domain.values import quantize_amount


def group_digits(digits: str, separator: str) -> str:
    """Insert ``separator`` every three digits from the right."""
    if not separator:
        return digits
    groups = []
    while len(digits) > 3:
        groups.append(digits[-3:])
        digits = digits[:-3]
    groups.append(digits)
    return separator.join(reversed(groups))


def format_amount(
    amount: Decimal,
    grammar: LocaleGrammar = DEFAULT_GRAMMAR,
    with_symbol: bool = True,
) -> str:
    """
    Render ``amount`` the way a notification in ``grammar`` would write it.

    Raises:
        ValueError: negative amounts.
    """
    value = quantize_amount(Decimal(amount), grammar.decimal_places)
    if value < 0:
        raise ValueError(f"Cannot format negative amount {amount}")

    integer, _, fraction = f"{value:f}".partition(".")
    text = group_digits(integer, grammar.thousands_separator)
    if fraction:
        text = f"{text}{grammar.decimal_separator}{fraction}"

    if not with_symbol:
        return text
    if grammar.symbol_position == "before":
        return f"{grammar.display_symbol} {text}"
    return f"{text} {grammar.display_symbol}"
