"""Cell and row normalization.

Raw worksheet cells reach this module as one of ``None | str | int | float | bool``
(``CellValue``). Everything here is pure and degrades
unrecognized input to ``"Unknown"`` / ``""`` / ``None`` instead of raising.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Literal, Mapping, Optional, Sequence, Union

import pandas as pd


CellValue = Union[None, str, int, float, bool]
Row = Mapping[str, CellValue]

YesNo = Literal["Yes", "No", "Unknown"]
YES: YesNo = "Yes"
NO: YesNo = "No"
UNKNOWN: YesNo = "Unknown"

_DMY_NUMERIC = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})(?:[ T].*)?$")
_DMY_NAMED = re.compile(r"^(\d{1,2})[\s\-/]+([A-Za-z]{3,9})\.?[\s\-/,]+(\d{4}|\d{2})$")
_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T].*)?$")


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float):
        return math.isnan(value)
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: CellValue) -> str:
    """Trimmed string form of a cell; ``""`` for absent cells."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def first_present(row: Row, keys: Sequence[str]) -> CellValue:
    """Return the value of the first key in ``keys`` holding a non-blank cell."""
    for key in keys:
        if key in row and not is_blank(row[key]):
            return row[key]
    return None


def normalize_yes_no(value: object) -> YesNo:
    if is_blank(value):
        return UNKNOWN
    normalized = str(value).strip().lower()
    if normalized == "yes":
        return YES
    if normalized == "no":
        return NO
    return UNKNOWN


def parse_number(value: CellValue) -> Optional[float]:
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        out = float(value)
    else:
        text = str(value).strip()
        if text.endswith("%"):
            text = text[:-1].strip()
        if not text:
            return None
        out = pd.to_numeric(text, errors="coerce")
        if pd.isna(out):
            return None
        out = float(out)
    if math.isinf(out):
        return None
    return out


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_dmy(value: CellValue) -> Optional[date]:
    """Parse a day-month-year cell (``05/03/2024``, ``5-3-24``, ``05 Mar 2024``).

    ISO ``YYYY-MM-DD`` text is accepted as well. Anything else is ``None``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = cell_text(value)
    if not text:
        return None

    match = _DMY_NUMERIC.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _ISO.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _DMY_NAMED.match(text)
    if match:
        day_s, month_name, year_s = match.groups()
        for fmt in ("%b", "%B"):
            try:
                month = datetime.strptime(month_name.title(), fmt).month
            except ValueError:
                continue
            return _safe_date(int(year_s), month, int(day_s))
    return None
