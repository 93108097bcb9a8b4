"""Pure extraction of payment fields from notification text."""

from payment_engines.extraction.extractor import NotificationExtractor, extract
from payment_engines.extraction.formatting import format_amount
from payment_engines.extraction.grammar import (
    DEFAULT_GRAMMAR,
    LocaleGrammar,
    compile_grammar,
)

__all__ = [
    "NotificationExtractor",
    "extract",
    "format_amount",
    "LocaleGrammar",
    "DEFAULT_GRAMMAR",
    "compile_grammar",
]
