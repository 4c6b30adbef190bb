"""Duplicate detection for QSOs and for newly created logs.

- `find_duplicates` flags earlier contacts with the same station, band and
  mode. Park activation and general logs only look at today's (UTC) contacts;
  contest logs look at the whole log. The result is advisory.
- `check_duplicate_log` rejects a new log that repeats an existing one of the
  same variant, station, operator, grid and park on the same UTC day.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from .models import Log, ParkActivationLog, Qso, now_utc


class DuplicateLogError(ValueError):
    """Raised when a new log repeats an existing log's setup on the same UTC day."""

    def __init__(self, callsign: str, day: date, existing_id: Optional[str] = None) -> None:
        self.callsign = callsign
        self.date = day
        self.existing_id = existing_id
        super().__init__(
            f"a log for {callsign} with the same setup already exists on {day.isoformat()}"
        )


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    """None matches only None; strings compare case-insensitively."""
    if a is None or b is None:
        return a is None and b is None
    return a.lower() == b.lower()


def find_duplicates_on(log: Log, candidate: Qso, day: Optional[date]) -> List[Qso]:
    """Return QSOs matching the candidate's key, limited to `day` unless it is None."""
    key = candidate.duplicate_key()
    return [
        q
        for q in log.qsos
        if (day is None or q.timestamp.date() == day) and q.duplicate_key() == key
    ]


def find_duplicates(log: Log, candidate: Qso, today: Optional[date] = None) -> List[Qso]:
    """Return logged QSOs that duplicate `candidate` within the log's dupe scope."""
    if log.whole_log_dupes:
        return find_duplicates_on(log, candidate, None)
    return find_duplicates_on(log, candidate, today or now_utc().date())


def same_setup(a: Log, b: Log) -> bool:
    """True when two logs are the same variant with the same identifying fields."""
    if type(a) is not type(b):
        return False
    if not (
        _same_text(a.station_callsign, b.station_callsign)
        and _same_text(a.operator, b.operator)
        and _same_text(a.grid_square, b.grid_square)
    ):
        return False
    if isinstance(a, ParkActivationLog):
        return _same_text(a.park_ref, b.park_ref)
    return True


def check_duplicate_log(existing_logs: Iterable[Log], candidate: Log) -> None:
    """Raise `DuplicateLogError` if `candidate` repeats a stored log on its UTC day."""
    day = candidate.created_at.date()
    for existing in existing_logs:
        if existing.created_at.date() == day and same_setup(existing, candidate):
            raise DuplicateLogError(candidate.station_callsign, day, existing.log_id)
