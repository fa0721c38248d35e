"""
Canonical file naming for occurrences.

An occurrence file is named ``<date prefix> <title>`` where the prefix is the
occurrence timestamp rendered with a token format such as ``YYYY-MM-DD HHmm``.
The timestamp's own UTC offset is used for the wall-clock fields, so the name
does not depend on the machine's timezone.
"""

import re
from datetime import datetime
from functools import lru_cache
from typing import Pattern

DEFAULT_DATE_FORMAT = "YYYY-MM-DD HHmm"

DATE_TOKEN_PATTERN = re.compile(r"YYYY|MM|DD|HH|mm|ss")

_TOKEN_WIDTHS = {
    "YYYY": 4,
    "MM": 2,
    "DD": 2,
    "HH": 2,
    "mm": 2,
    "ss": 2,
}

# Characters that cannot appear in a note file name
INVALID_FILENAME_CHARACTERS = frozenset('\\/:*?"<>|')


def format_date_prefix(timestamp: datetime, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    """Render a timestamp with the token format"""
    values = {
        "YYYY": f"{timestamp.year:04d}",
        "MM": f"{timestamp.month:02d}",
        "DD": f"{timestamp.day:02d}",
        "HH": f"{timestamp.hour:02d}",
        "mm": f"{timestamp.minute:02d}",
        "ss": f"{timestamp.second:02d}",
    }
    return DATE_TOKEN_PATTERN.sub(lambda m: values[m.group(0)], date_format)


@lru_cache(maxsize=16)
def date_prefix_pattern(date_format: str = DEFAULT_DATE_FORMAT) -> Pattern[str]:
    """Compile a regex matching a date prefix at the start of a name"""
    parts = []
    position = 0
    for match in DATE_TOKEN_PATTERN.finditer(date_format):
        parts.append(re.escape(date_format[position:match.start()]))
        parts.append(rf"\d{{{_TOKEN_WIDTHS[match.group(0)]}}}")
        position = match.end()
    parts.append(re.escape(date_format[position:]))
    return re.compile(r"^" + "".join(parts) + r"(?:\s+|$)")


def canonical_file_name(
    title: str,
    timestamp: datetime,
    date_format: str = DEFAULT_DATE_FORMAT
) -> str:
    """
    Build the file name (without extension) an occurrence should have.

    Args:
        title: Display title
        timestamp: When the occurrence happened
        date_format: Token format for the prefix

    Returns:
        ``"<prefix> <title>"``, or just the prefix for an empty title
    """
    prefix = format_date_prefix(timestamp, date_format)
    title = title.strip()
    return f"{prefix} {title}" if title else prefix


def parse_file_name(name: str, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    """
    Strip the canonical date prefix from a file name.

    Names without a matching prefix are returned unchanged (stripped).
    """
    return date_prefix_pattern(date_format).sub("", name, count=1).strip()


def is_valid_title(title: str) -> bool:
    """Check a title can be used as part of a file name"""
    if not title or not title.strip():
        return False
    return not any(char in INVALID_FILENAME_CHARACTERS for char in title)
