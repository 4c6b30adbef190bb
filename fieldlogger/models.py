"""Domain models used by fieldlogger.

A log is one of four variants sharing a `LogHeader`: a general log, a park
activation log, and the two field day contests. Each variant is built through
its `create` classmethod, which validates every field in a fixed order
(station callsign, operator, variant fields, grid square) so the first error
reported is always the same for the same input. Storage goes through the same
`create` path when it rebuilds logs from the database.

Direct dataclass construction re-checks every invariant in `__post_init__`, so
a `Qso`, `LogHeader` or log built by hand cannot hold invalid data either.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import ClassVar, List, Optional, Set, Tuple, Union

from .validation import (
    FD_MAX_TX_COUNT,
    InvalidFdClassError,
    InvalidPowerCategoryError,
    InvalidWfdClassError,
    validate_callsign,
    validate_frequency,
    validate_grid_square,
    validate_park_ref,
    validate_section,
    validate_tx_count,
)

# Unique contacts needed in one UTC day for a park activation to count.
ACTIVATION_THRESHOLD = 10


def now_utc() -> datetime:
    """Return the current time as a naive UTC datetime without microseconds.

    Timestamps are kept as naive UTC everywhere to keep SQLite handling and
    ADIF output simple.
    """
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt


class Band(str, Enum):
    """Amateur band; the value is the ADIF band string."""

    M160 = "160M"
    M80 = "80M"
    M60 = "60M"
    M40 = "40M"
    M30 = "30M"
    M20 = "20M"
    M17 = "17M"
    M15 = "15M"
    M12 = "12M"
    M10 = "10M"
    M6 = "6M"
    M2 = "2M"
    CM70 = "70CM"

    @classmethod
    def parse(cls, text: str) -> "Band":
        return cls(text.strip().upper())


class Mode(str, Enum):
    """Operating mode; the value is the ADIF mode string."""

    SSB = "SSB"
    CW = "CW"
    FT8 = "FT8"
    FT4 = "FT4"
    JS8 = "JS8"
    PSK31 = "PSK31"
    RTTY = "RTTY"
    FM = "FM"
    AM = "AM"
    DIGI = "DIGI"

    @classmethod
    def parse(cls, text: str) -> "Mode":
        return cls(text.strip().upper())

    @property
    def default_rst(self) -> str:
        """Default signal report: RS for phone, RST for CW/keyboard, dB for weak-signal digital."""
        if self in (Mode.SSB, Mode.FM, Mode.AM):
            return "59"
        if self in (Mode.CW, Mode.PSK31, Mode.RTTY):
            return "599"
        return "-10"


class FdClass(str, Enum):
    """ARRL Field Day operating class."""

    A = "A"  # club or group, 3+ operators, portable
    B = "B"  # 1-2 operators, portable
    C = "C"  # mobile
    D = "D"  # home station, commercial power
    E = "E"  # home station, emergency power
    F = "F"  # emergency operations center


class FdPowerCategory(str, Enum):
    """Field Day power category."""

    QRP = "QRP"  # <=5 W, non-commercial power
    LOW = "LOW"  # <=100 W
    HIGH = "HIGH"  # >100 W


class WfdClass(str, Enum):
    """Winter Field Day operating class."""

    H = "H"  # home
    I = "I"  # indoor  # noqa: E741
    O = "O"  # outdoor  # noqa: E741
    M = "M"  # mobile


def parse_fd_class(value: Union[str, FdClass]) -> FdClass:
    if isinstance(value, FdClass):
        return value
    try:
        return FdClass(str(value).strip().upper())
    except ValueError as e:
        raise InvalidFdClassError(value, field="class") from e


def parse_wfd_class(value: Union[str, WfdClass]) -> WfdClass:
    if isinstance(value, WfdClass):
        return value
    try:
        return WfdClass(str(value).strip().upper())
    except ValueError as e:
        raise InvalidWfdClassError(value, field="class") from e


def parse_power_category(value: Union[str, FdPowerCategory]) -> FdPowerCategory:
    if isinstance(value, FdPowerCategory):
        return value
    try:
        return FdPowerCategory(str(value).strip().upper())
    except ValueError as e:
        raise InvalidPowerCategoryError(value, field="power") from e


class LogType(str, Enum):
    """Stored discriminant identifying the log variant."""

    GENERAL = "general"
    PARK_ACTIVATION = "park_activation"
    FIELD_CONTEST = "field_contest"
    WINTER_FIELD_CONTEST = "winter_field_contest"


# Rows written before the discriminant existed were all park activations.
LEGACY_LOG_TYPE = LogType.PARK_ACTIVATION


class QsoIndexError(IndexError):
    """Raised when a QSO edit targets an index outside the log."""

    def __init__(self, index: int, length: int) -> None:
        self.index = index
        self.length = length
        super().__init__(f"QSO index {index} out of range (log has {length} QSOs)")


@dataclass(frozen=True)
class Qso:
    """A single contact.

    Attributes
    - their_call: Worked station's callsign, uppercased.
    - rst_sent/rst_rcvd: Signal reports; default to the mode's report when empty.
    - band/mode: Fixed enums.
    - timestamp: Naive UTC time of the contact.
    - comments: Free text, empty when unused.
    - their_park: Other station's park (park-to-park), park activation logs only.
    - their_exchange: Received contest exchange, contest logs only.
    - frequency_khz: Optional frequency in kHz.
    """

    their_call: str
    rst_sent: str
    rst_rcvd: str
    band: Band
    mode: Mode
    timestamp: datetime
    comments: str = ""
    their_park: Optional[str] = None
    their_exchange: Optional[str] = None
    frequency_khz: Optional[int] = None

    def __post_init__(self) -> None:
        validate_callsign(self.their_call, field="their_call")
        if self.their_park is not None:
            validate_park_ref(self.their_park, field="their_park")
        if self.frequency_khz is not None:
            validate_frequency(self.frequency_khz)
        # Frozen: enum coercion has to bypass __setattr__.
        if not isinstance(self.band, Band):
            object.__setattr__(self, "band", Band.parse(self.band))
        if not isinstance(self.mode, Mode):
            object.__setattr__(self, "mode", Mode.parse(self.mode))

    @classmethod
    def create(
        cls,
        their_call: str,
        band: Union[Band, str],
        mode: Union[Mode, str],
        timestamp: Optional[datetime] = None,
        rst_sent: str = "",
        rst_rcvd: str = "",
        comments: str = "",
        their_park: Optional[str] = None,
        their_exchange: Optional[str] = None,
        frequency_khz: Optional[int] = None,
    ) -> "Qso":
        """Validate and normalize a contact.

        Raises a `ValidationError` subclass for a bad callsign, park reference
        or frequency, and `ValueError` for an unknown band or mode.
        """
        call = (their_call or "").strip()
        # Checked before upper-casing, which maps some non-ASCII letters to ASCII.
        validate_callsign(call, field="their_call")
        mode = mode if isinstance(mode, Mode) else Mode.parse(mode)
        exchange = (their_exchange or "").strip().upper() or None

        return cls(
            their_call=call.upper(),
            rst_sent=(rst_sent or "").strip() or mode.default_rst,
            rst_rcvd=(rst_rcvd or "").strip() or mode.default_rst,
            band=band,
            mode=mode,
            timestamp=to_naive_utc(timestamp) if timestamp else now_utc(),
            comments=comments or "",
            their_park=their_park,
            their_exchange=exchange,
            frequency_khz=frequency_khz,
        )

    def duplicate_key(self) -> Tuple[str, Band, Mode]:
        """Two QSOs with the same key are duplicates: callsign (any case), band, mode."""
        return (self.their_call.lower(), self.band, self.mode)


@dataclass
class LogHeader:
    """Fields shared by every log variant."""

    station_callsign: str
    operator: Optional[str]
    grid_square: str
    created_at: datetime
    log_id: str
    qsos: List[Qso] = field(default_factory=list)

    def __post_init__(self) -> None:
        _validate_station(self.station_callsign, self.operator)
        validate_grid_square(self.grid_square)


def make_log_id(prefix: str, created_at: datetime) -> str:
    return f"{prefix}-{created_at.strftime('%Y%m%d-%H%M%S')}"


def _validate_station(station_callsign: str, operator: Optional[str]) -> None:
    validate_callsign(station_callsign, field="station_callsign")
    if operator is not None:
        validate_callsign(operator, field="operator")


def _build_header(
    station_callsign: str,
    operator: Optional[str],
    grid_square: str,
    id_prefix: str,
    created_at: Optional[datetime],
    log_id: Optional[str],
) -> LogHeader:
    created = to_naive_utc(created_at) if created_at else now_utc()
    return LogHeader(
        station_callsign=station_callsign,
        operator=operator,
        grid_square=grid_square,
        created_at=created,
        log_id=log_id or make_log_id(id_prefix, created),
    )


@dataclass
class Log(ABC):
    """Behavior shared by all log variants.

    Abstract; build logs through one of the variant `create` classmethods.
    """

    header: LogHeader
    log_type: ClassVar[LogType]
    # Contest events span two UTC days, so their dupe checks cover the whole log.
    whole_log_dupes: ClassVar[bool] = False

    @classmethod
    @abstractmethod
    def create(cls, *args, **kwargs) -> "Log":
        """Validate every field in the documented order and build the log."""

    @property
    def log_id(self) -> str:
        return self.header.log_id

    @property
    def station_callsign(self) -> str:
        return self.header.station_callsign

    @property
    def operator(self) -> Optional[str]:
        return self.header.operator

    @property
    def grid_square(self) -> str:
        return self.header.grid_square

    @property
    def created_at(self) -> datetime:
        return self.header.created_at

    @property
    def qsos(self) -> List[Qso]:
        return self.header.qsos

    @property
    def park_ref(self) -> Optional[str]:
        """Park reference of a park activation log; None for every other variant."""
        return None

    def add_qso(self, qso: Qso) -> None:
        """Append a QSO. Duplicates are allowed; check `find_duplicates` first."""
        self.header.qsos.append(qso)

    def update_qso(self, index: int, qso: Qso) -> Qso:
        """Replace the QSO at `index` and return the one it replaced."""
        qsos = self.header.qsos
        if not 0 <= index < len(qsos):
            raise QsoIndexError(index, len(qsos))
        old = qsos[index]
        qsos[index] = qso
        return old

    def qso_count_on(self, day: date) -> int:
        """Count unique (callsign, band, mode) contacts logged on a UTC day."""
        keys: Set[Tuple[str, Band, Mode]] = {
            q.duplicate_key() for q in self.header.qsos if q.timestamp.date() == day
        }
        return len(keys)

    def qso_count_today(self, today: Optional[date] = None) -> int:
        return self.qso_count_on(today or now_utc().date())

    def is_activated(self, today: Optional[date] = None) -> bool:
        return False

    def needs_for_activation(self, today: Optional[date] = None) -> int:
        return 0

    def display_label(self) -> str:
        return self.header.station_callsign


@dataclass
class GeneralLog(Log):
    """General-purpose log with no extra setup fields."""

    log_type: ClassVar[LogType] = LogType.GENERAL

    @classmethod
    def create(
        cls,
        station_callsign: str,
        grid_square: str,
        operator: Optional[str] = None,
        *,
        created_at: Optional[datetime] = None,
        log_id: Optional[str] = None,
    ) -> "GeneralLog":
        _validate_station(station_callsign, operator)
        validate_grid_square(grid_square)
        header = _build_header(
            station_callsign, operator, grid_square, station_callsign, created_at, log_id
        )
        return cls(header=header)


@dataclass
class ParkActivationLog(Log):
    """Parks on the Air activation log."""

    park: Optional[str] = None
    log_type: ClassVar[LogType] = LogType.PARK_ACTIVATION

    def __post_init__(self) -> None:
        if self.park is not None:
            validate_park_ref(self.park)

    @classmethod
    def create(
        cls,
        station_callsign: str,
        grid_square: str,
        operator: Optional[str] = None,
        park_ref: Optional[str] = None,
        *,
        created_at: Optional[datetime] = None,
        log_id: Optional[str] = None,
    ) -> "ParkActivationLog":
        _validate_station(station_callsign, operator)
        if park_ref is not None:
            validate_park_ref(park_ref)
        validate_grid_square(grid_square)
        header = _build_header(
            station_callsign,
            operator,
            grid_square,
            park_ref or station_callsign,
            created_at,
            log_id,
        )
        return cls(header=header, park=park_ref)

    @property
    def park_ref(self) -> Optional[str]:
        return self.park

    def is_activated(self, today: Optional[date] = None) -> bool:
        return self.qso_count_today(today) >= ACTIVATION_THRESHOLD

    def needs_for_activation(self, today: Optional[date] = None) -> int:
        return max(0, ACTIVATION_THRESHOLD - self.qso_count_today(today))

    def display_label(self) -> str:
        return self.park or self.header.station_callsign


@dataclass
class ContestLog(Log):
    """Fields and behavior common to the two field day contests."""

    tx_count: int = 1
    section: str = ""
    whole_log_dupes: ClassVar[bool] = True

    @property
    @abstractmethod
    def contest_class(self) -> Union[FdClass, WfdClass]:
        """The variant-specific operating class."""

    @property
    def sent_exchange(self) -> str:
        """Exchange sent with every contact, e.g. "1B EPA"."""
        return f"{self.tx_count}{self.contest_class.value} {self.section}"

    def display_label(self) -> str:
        return self.sent_exchange


@dataclass
class FieldContestLog(ContestLog):
    """ARRL Field Day log."""

    fd_class: FdClass = FdClass.A
    power: FdPowerCategory = FdPowerCategory.LOW
    log_type: ClassVar[LogType] = LogType.FIELD_CONTEST

    def __post_init__(self) -> None:
        validate_tx_count(self.tx_count, maximum=FD_MAX_TX_COUNT)
        self.fd_class = parse_fd_class(self.fd_class)
        validate_section(self.section)
        self.power = parse_power_category(self.power)

    @classmethod
    def create(
        cls,
        station_callsign: str,
        grid_square: str,
        tx_count: int,
        fd_class: Union[FdClass, str],
        section: str,
        power: Union[FdPowerCategory, str],
        operator: Optional[str] = None,
        *,
        created_at: Optional[datetime] = None,
        log_id: Optional[str] = None,
    ) -> "FieldContestLog":
        _validate_station(station_callsign, operator)
        validate_tx_count(tx_count, maximum=FD_MAX_TX_COUNT)
        parsed_class = parse_fd_class(fd_class)
        validate_section(section)
        parsed_power = parse_power_category(power)
        validate_grid_square(grid_square)
        header = _build_header(
            station_callsign,
            operator,
            grid_square,
            f"FD-{station_callsign}",
            created_at,
            log_id,
        )
        return cls(
            header=header,
            tx_count=tx_count,
            section=section.strip().upper(),
            fd_class=parsed_class,
            power=parsed_power,
        )

    @property
    def contest_class(self) -> FdClass:
        return self.fd_class


@dataclass
class WinterFieldContestLog(ContestLog):
    """Winter Field Day log."""

    wfd_class: WfdClass = WfdClass.H
    log_type: ClassVar[LogType] = LogType.WINTER_FIELD_CONTEST

    def __post_init__(self) -> None:
        validate_tx_count(self.tx_count)
        self.wfd_class = parse_wfd_class(self.wfd_class)
        validate_section(self.section)

    @classmethod
    def create(
        cls,
        station_callsign: str,
        grid_square: str,
        tx_count: int,
        wfd_class: Union[WfdClass, str],
        section: str,
        operator: Optional[str] = None,
        *,
        created_at: Optional[datetime] = None,
        log_id: Optional[str] = None,
    ) -> "WinterFieldContestLog":
        _validate_station(station_callsign, operator)
        validate_tx_count(tx_count)
        parsed_class = parse_wfd_class(wfd_class)
        validate_section(section)
        validate_grid_square(grid_square)
        header = _build_header(
            station_callsign,
            operator,
            grid_square,
            f"WFD-{station_callsign}",
            created_at,
            log_id,
        )
        return cls(
            header=header,
            tx_count=tx_count,
            section=section.strip().upper(),
            wfd_class=parsed_class,
        )

    @property
    def contest_class(self) -> WfdClass:
        return self.wfd_class
