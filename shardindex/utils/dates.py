"""
Inclusive calendar date ranges parsed from command-line style specs.

Two range formats are understood:

* explicit dates, `20200101:20200103`, `2020-01-01:2020-01-03` or the legacy
  `20200101-20200103`;
* days ago, `7:1` or `7-1`, meaning from seven days before today up to
  yesterday.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

import pandas as pd

from shardindex.errors import ConfigurationError

_COMPACT_DATE = re.compile(r"^\d{8}$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DAYS = re.compile(r"^\d+$")


def _parse_date(text: str, spec: str) -> date:
    text = text.strip()
    if _COMPACT_DATE.match(text):
        fmt = "%Y%m%d"
    elif _ISO_DATE.match(text):
        fmt = "%Y-%m-%d"
    else:
        raise ConfigurationError(f"Unrecognised date '{text}' in date range '{spec}'")
    try:
        return datetime.strptime(text, fmt).date()
    except ValueError as exc:
        raise ConfigurationError(f"Invalid date '{text}' in date range '{spec}'") from exc


def _split_range(spec: str) -> tuple[str, str]:
    if ":" in spec:
        parts = spec.split(":")
    else:
        parts = spec.split("-")
    if len(parts) != 2:
        raise ConfigurationError(
            f"Range '{spec}' must have exactly two parts separated by ':' or '-'"
        )
    return parts[0], parts[1]


@dataclass(frozen=True)
class DateRange:
    """Inclusive (start, end) date pair with start <= end."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ConfigurationError(
                f"Invalid date range: start {self.start} is after end {self.end}"
            )

    @classmethod
    def from_dates(cls, spec: str) -> "DateRange":
        start, end = _split_range(spec)
        return cls(_parse_date(start, spec), _parse_date(end, spec))

    @classmethod
    def from_days_ago(cls, spec: str, *, today: Optional[date] = None) -> "DateRange":
        """
        Build a range relative to `today`.

        The first number is the larger offset, so `"90:1"` spans from ninety
        days ago to yesterday.
        """
        start_text, end_text = (part.strip() for part in _split_range(spec))
        if not (_DAYS.match(start_text) and _DAYS.match(end_text)):
            raise ConfigurationError(
                f"Days-ago range '{spec}' must contain two non-negative integers"
            )
        start_days, end_days = int(start_text), int(end_text)
        if start_days < end_days:
            raise ConfigurationError(
                f"Invalid days-ago range '{spec}': start ({start_days} days ago) "
                f"is after end ({end_days} days ago)"
            )
        anchor = today or date.today()
        return cls(anchor - timedelta(days=start_days), anchor - timedelta(days=end_days))

    def dates(self) -> list[date]:
        """Every date in the range, ascending."""
        return [stamp.date() for stamp in pd.date_range(self.start, self.end, freq="D")]

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def __str__(self) -> str:
        return f"{self.start:%Y%m%d}-{self.end:%Y%m%d}"
