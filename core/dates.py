from __future__ import annotations

import math
import re
from typing import Optional

import pandas as pd

_DATE_RE = re.compile(r"^\s*(\d{1,2})/(?:(\d{1,2})/)?(\d{4})\s*$")


def to_full_date(value: str) -> str:
    """Expand MM/YYYY to MM/1/YYYY; any other value is returned unchanged."""
    comps = value.split("/")
    return f"{comps[0]}/1/{comps[1]}" if len(comps) == 2 else value


def date_string_to_epoch(value: object) -> float:
    """Epoch milliseconds (UTC) for a MM/DD/YYYY or MM/YYYY string, NaN if unparseable."""
    if not isinstance(value, str):
        return math.nan
    match = _DATE_RE.match(to_full_date(value.strip()))
    if not match:
        return math.nan
    month, day, year = int(match.group(1)), int(match.group(2) or 1), int(match.group(3))
    try:
        ts = pd.Timestamp(year=year, month=month, day=day, tz="UTC")
    except ValueError:
        return math.nan
    return ts.value // 1_000_000


def month_start(value: object) -> Optional[str]:
    """'5/17/2011' -> '05/01/2011'; None when the value is not a date string."""
    if not isinstance(value, str):
        return None
    match = _DATE_RE.match(to_full_date(value.strip()))
    if not match:
        return None
    return f"{int(match.group(1)):02d}/01/{match.group(3)}"


def epoch_to_timestamp(value: object) -> Optional[pd.Timestamp]:
    if isinstance(value, str):
        value = date_string_to_epoch(value)
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(int(value), unit="ms", tz="UTC")
