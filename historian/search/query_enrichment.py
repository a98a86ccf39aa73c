"""
Query Enrichment

Extracts implicit filters from a natural-language query: a time window
("yesterday", "3 days ago") and file globs ("in parser.ts", "python").

Never raises; a facet with no match is simply left unset.
"""

import re
from datetime import datetime, timedelta
from typing import Callable, Optional

from historian.models import SearchFilters, TimeRange

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
WEEK_MS = 7 * DAY_MS
MONTH_MS = 30 * DAY_MS

LANGUAGE_GLOBS = {
    "typescript": "**/*.ts",
    "javascript": "**/*.js",
    "python": "**/*.py",
    "java": "**/*.java",
    "rust": "**/*.rs",
    "go": "**/*.go",
    "ruby": "**/*.rb",
    "php": "**/*.php",
    "css": "**/*.css",
    "html": "**/*.html",
}

_FILE_PHRASE = re.compile(r"\b(?:in|from|files?)\s+([^\s,]+)", re.IGNORECASE)
_LANGUAGE_WORD = re.compile(r"\b(" + "|".join(LANGUAGE_GLOBS) + r")\b", re.IGNORECASE)
_TRAILING_PUNCT = ".,;:!?)'\""


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _today(now: datetime, _match: re.Match) -> TimeRange:
    return TimeRange(_to_ms(_start_of_day(now)), _to_ms(now))


def _yesterday(now: datetime, _match: re.Match) -> TimeRange:
    midnight = _start_of_day(now)
    previous = _start_of_day(midnight - timedelta(hours=12))
    return TimeRange(_to_ms(previous), _to_ms(midnight) - 1)


def _rolling(span_ms: int, periods_back: int = 0) -> Callable[[datetime, re.Match], TimeRange]:
    def handler(now: datetime, _match: re.Match) -> TimeRange:
        end = _to_ms(now) - periods_back * span_ms
        return TimeRange(end - span_ms, end)

    return handler


def _ago(unit_ms: int) -> Callable[[datetime, re.Match], TimeRange]:
    def handler(now: datetime, match: re.Match) -> TimeRange:
        end = _to_ms(now)
        return TimeRange(end - int(match.group(1)) * unit_ms, end)

    return handler


# Named ranges are tried before numeric ones; the first match wins
TIME_PATTERNS: list[tuple[re.Pattern, Callable[[datetime, re.Match], TimeRange]]] = [
    (re.compile(r"\btoday\b", re.IGNORECASE), _today),
    (re.compile(r"\byesterday\b", re.IGNORECASE), _yesterday),
    (re.compile(r"\bthis\s*week\b", re.IGNORECASE), _rolling(WEEK_MS)),
    (re.compile(r"\blast\s*week\b", re.IGNORECASE), _rolling(WEEK_MS, 1)),
    (re.compile(r"\bthis\s*month\b", re.IGNORECASE), _rolling(MONTH_MS)),
    (re.compile(r"\blast\s*month\b", re.IGNORECASE), _rolling(MONTH_MS, 1)),
    (re.compile(r"\b(\d+)\s*hours?\s+ago\b", re.IGNORECASE), _ago(HOUR_MS)),
    (re.compile(r"\b(\d+)\s*days?\s+ago\b", re.IGNORECASE), _ago(DAY_MS)),
    (re.compile(r"\b(\d+)\s*weeks?\s+ago\b", re.IGNORECASE), _ago(WEEK_MS)),
]


def parse_time_expression(text: str, now: Optional[datetime] = None) -> Optional[TimeRange]:
    """
    Turn the first recognised time expression into a millisecond range.

    "today" and "yesterday" are local calendar days; week and month
    expressions are rolling 7 and 30 day windows ending now.

    Args:
        text: Free-text query
        now: Reference time (local, naive); defaults to the current time

    Returns:
        TimeRange, or None when no expression matches
    """
    now = now or datetime.now()
    for pattern, handler in TIME_PATTERNS:
        match = pattern.search(text)
        if match:
            return handler(now, match)
    return None


def extract_file_patterns(text: str) -> list[str]:
    """
    Glob patterns implied by the query.

    "in parser.ts" / "from src/api" / "file utils.py" yield a suffix glob
    (`**/parser.ts*`); only tokens that look like paths (contain "." or "/")
    count, so "in the parser" adds nothing. Language names yield an
    extension glob.
    """
    patterns: list[str] = []

    for match in _FILE_PHRASE.finditer(text):
        token = match.group(1).rstrip(_TRAILING_PUNCT)
        # Only path-like tokens become globs; bare words ("in the",
        # "from scratch") add no file filter
        if "." in token or "/" in token:
            patterns.append(f"**/{token}*")

    for match in _LANGUAGE_WORD.finditer(text):
        patterns.append(LANGUAGE_GLOBS[match.group(1).lower()])

    return list(dict.fromkeys(patterns))


def enrich_filters(
    raw_query: str,
    explicit: Optional[SearchFilters] = None,
    now: Optional[datetime] = None,
) -> SearchFilters:
    """
    Merge caller-supplied filters with those extracted from the query.

    An explicit time range is kept as is. File patterns are the union of
    explicit and extracted globs, explicit ones first.
    """
    base = explicit or SearchFilters()

    time_range = base.time_range or parse_time_expression(raw_query, now)
    file_patterns = list(dict.fromkeys([*base.file_patterns, *extract_file_patterns(raw_query)]))

    return SearchFilters(
        time_range=time_range,
        file_patterns=file_patterns,
        languages=list(base.languages),
        event_types=list(base.event_types),
        symbols=list(base.symbols),
        branches=list(base.branches),
        sessions=list(base.sessions),
    )
