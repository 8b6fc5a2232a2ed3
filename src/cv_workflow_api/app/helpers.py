"""Template helper transforms.

All helpers are pure functions over primitive values. ``register_helpers``
exposes them on a Jinja environment under the names templates use.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from jinja2 import Environment

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

# docxtpl turns this character into a paragraph break when the document is built.
PARAGRAPH_BREAK = "\a"

_WORD_PATTERN = re.compile(r"\w\S*")
_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y/%m/%d", "%m/%d/%Y", "%B %Y", "%b %Y", "%B %d, %Y")


def is_equal(left: Any, right: Any) -> bool:
    """Loose equality: numbers compare equal to their numeric string form."""
    if left is None or right is None:
        return left is None and right is None
    if left == right:
        return True
    left_number = _as_number(left)
    right_number = _as_number(right)
    if left_number is not None and right_number is not None:
        if isinstance(left, str) and isinstance(right, str):
            return False
        return left_number == right_number
    return False


def is_not_equal(left: Any, right: Any) -> bool:
    return not is_equal(left, right)


def is_empty_or_whitespace(value: Any) -> bool:
    if not value:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def format_filename(filename: str | None) -> str:
    """``"senior_backend_DEV.docx"`` -> ``"Senior Backend Dev"``."""
    if not filename:
        return ""
    name_without_extension = ".".join(filename.split(".")[:-1])
    with_spaces = name_without_extension.replace("_", " ")
    return _WORD_PATTERN.sub(_title_word, with_spaces)


def format_date_to_month_year(value: Any) -> str:
    """Render a date-like value as ``"Month Year"``; unparseable input gives ``""``."""
    parsed = _parse_date(value)
    if parsed is None:
        return ""
    return f"{MONTH_NAMES[parsed.month - 1]} {parsed.year}"


def text_with_breaks(text: str | None) -> str:
    if not text:
        return ""
    return text.replace("\r\n", "\n").replace("\n", PARAGRAPH_BREAK)


def if_eq(left: Any, right: Any, then: Any = True, otherwise: Any = "") -> Any:
    return then if is_equal(left, right) else otherwise


def if_not_eq(left: Any, right: Any, then: Any = True, otherwise: Any = "") -> Any:
    return then if is_not_equal(left, right) else otherwise


def register_helpers(env: Environment) -> Environment:
    env.tests["eq_loose"] = is_equal
    env.tests["ne_loose"] = is_not_equal
    env.tests["empty_or_whitespace"] = is_empty_or_whitespace
    env.filters["format_filename"] = format_filename
    env.filters["month_year"] = format_date_to_month_year
    env.filters["text_with_breaks"] = text_with_breaks
    env.globals["if_eq"] = if_eq
    env.globals["if_not_eq"] = if_not_eq
    return env


def _title_word(match: re.Match[str]) -> str:
    word = match.group(0)
    return word[0].upper() + word[1:].lower()


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    if re.fullmatch(r"\d{4}", raw):
        return date(int(raw), 1, 1)
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for date_format in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, date_format).date()
        except ValueError:
            continue
    return None
