"""Field validation for logs and QSOs.

Every check is a plain function that returns None on success and raises a
`ValidationError` subclass on failure. Errors carry the name of the offending
field so callers can point the operator at the right input.
"""

from __future__ import annotations

import re
from typing import Optional

PARK_REF_RE = re.compile(r"[A-Z]{1,3}-[0-9]{4,5}")
GRID_SQUARE_RE = re.compile(r"[A-R]{2}[0-9]{2}(?:[a-x]{2})?")

FD_MAX_TX_COUNT = 20


class ValidationError(ValueError):
    """Base class for all field validation failures."""

    message = "invalid value"

    def __init__(self, value: Optional[object] = None, field: Optional[str] = None) -> None:
        self.value = value
        self.field = field
        super().__init__(self._describe())

    def _describe(self) -> str:
        text = self.message
        if self.value is not None and self.value != "":
            text = f"{text}: {self.value}"
        if self.field:
            text = f"{self.field}: {text}"
        return text


class EmptyCallsignError(ValidationError):
    message = "callsign cannot be empty"


class InvalidCallsignError(ValidationError):
    message = "invalid callsign"


class InvalidParkRefError(ValidationError):
    message = "invalid park reference"


class InvalidGridSquareError(ValidationError):
    message = "invalid grid square"


class EmptySectionError(ValidationError):
    message = "section cannot be empty"


class InvalidTxCountError(ValidationError):
    message = "invalid transmitter count"


class InvalidFdClassError(ValidationError):
    message = "invalid Field Day class (expected A-F)"


class InvalidWfdClassError(ValidationError):
    message = "invalid Winter Field Day class (expected H, I, O or M)"


class InvalidPowerCategoryError(ValidationError):
    message = "invalid power category (expected QRP, LOW or HIGH)"


class InvalidFrequencyError(ValidationError):
    message = "frequency must be a positive number of kHz"


def validate_callsign(callsign: str, field: str = "callsign") -> None:
    """Require a non-empty callsign made of ASCII letters, digits and '/'."""
    if not callsign:
        raise EmptyCallsignError(field=field)
    if not all((c.isascii() and c.isalnum()) or c == "/" for c in callsign):
        raise InvalidCallsignError(callsign, field=field)


def validate_park_ref(park_ref: str, field: str = "park_ref") -> None:
    """Require a park reference such as K-0001 or VE-01234."""
    if not isinstance(park_ref, str) or not PARK_REF_RE.fullmatch(park_ref):
        raise InvalidParkRefError(park_ref, field=field)


def validate_grid_square(grid: str, field: str = "grid_square") -> None:
    """Require a 4 or 6 character Maidenhead locator (FN31 or FN31pr)."""
    if not isinstance(grid, str) or not GRID_SQUARE_RE.fullmatch(grid):
        raise InvalidGridSquareError(grid, field=field)


def validate_section(section: str, field: str = "section") -> None:
    if not isinstance(section, str) or not section.strip():
        raise EmptySectionError(field=field)


def validate_tx_count(
    tx_count: int, maximum: Optional[int] = None, field: str = "tx_count"
) -> None:
    """Require an integer transmitter count of at least 1 (and at most `maximum`)."""
    if isinstance(tx_count, bool) or not isinstance(tx_count, int):
        raise InvalidTxCountError(tx_count, field=field)
    if tx_count < 1 or (maximum is not None and tx_count > maximum):
        raise InvalidTxCountError(tx_count, field=field)


def validate_frequency(frequency_khz: int, field: str = "frequency") -> None:
    if isinstance(frequency_khz, bool) or not isinstance(frequency_khz, int):
        raise InvalidFrequencyError(frequency_khz, field=field)
    if frequency_khz <= 0:
        raise InvalidFrequencyError(frequency_khz, field=field)
