"""Lexical query preparation for the FTS5 leg."""

import re

# Characters with meaning in FTS5 query syntax
_FTS_SPECIAL = re.compile(r"['\"*()^\-:+{}\[\]]")


def prepare_fts_query(query: str) -> str:
    """
    Convert free text into a token-OR FTS5 expression of prefix terms.

    >>> prepare_fts_query('fix "auth" bug in x')
    '"fix"* OR "auth"* OR "bug"* OR "in"*'

    Tokens of one character are dropped; an empty string means nothing is
    searchable.
    """
    cleaned = _FTS_SPECIAL.sub(" ", query)
    terms = [term for term in cleaned.split() if len(term) > 1]
    return " OR ".join(f'"{term}"*' for term in terms)


def symbol_query(symbol: str) -> str:
    """Column-restricted expression matching one symbol name."""
    cleaned = _FTS_SPECIAL.sub(" ", symbol).strip()
    if not cleaned:
        return ""
    return f'symbols : "{cleaned}"'
