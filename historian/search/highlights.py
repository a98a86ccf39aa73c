"""
Result Highlighting

Marks which fields of a change record matched the query terms.
"""

import re

from historian.models import ChangeRecord, SearchHighlight

MAX_DIFF_LINES = 5

_NON_WORD = re.compile(r"[^\w\s]")


def extract_query_terms(query: str) -> list[str]:
    """Lowercased query words longer than two characters, punctuation stripped."""
    return [term for term in _NON_WORD.sub(" ", query.lower()).split() if len(term) > 2]


def _terms_in(text: str, terms: list[str]) -> list[str]:
    lowered = text.lower()
    return [term for term in terms if term in lowered]


def generate_highlights(change: ChangeRecord, terms: list[str]) -> list[SearchHighlight]:
    """
    Highlight entries for file path, symbols, diff, and summary.

    Only fields with at least one match produce an entry. The diff entry
    carries up to MAX_DIFF_LINES matching lines.
    """
    if not terms:
        return []

    highlights: list[SearchHighlight] = []

    path_terms = _terms_in(change.file_path, terms)
    if path_terms:
        highlights.append(SearchHighlight("filePath", change.file_path, path_terms))

    symbols = [symbol for symbol in change.symbols if _terms_in(symbol, terms)]
    if symbols:
        highlights.append(SearchHighlight("symbols", ", ".join(symbols), symbols))

    lines = [line for line in change.diff.split("\n") if _terms_in(line, terms)][:MAX_DIFF_LINES]
    if lines:
        snippet = "\n".join(lines)
        highlights.append(SearchHighlight("diff", snippet, _terms_in(snippet, terms)))

    if change.summary:
        summary_terms = _terms_in(change.summary, terms)
        if summary_terms:
            highlights.append(SearchHighlight("summary", change.summary, summary_terms))

    return highlights
