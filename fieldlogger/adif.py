"""ADIF export.

Turns a log and its QSOs into ADIF text: a header block closed by <EOH>, then
one <EOR>-terminated record per QSO. Field lengths are UTF-8 byte counts.
Which optional fields appear depends on the log variant, never on which QSO
attributes happen to be filled in.
ADIF spec: https://www.adif.org/
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Tuple

from . import __version__
from .models import (
    ContestLog,
    FieldContestLog,
    GeneralLog,
    Log,
    ParkActivationLog,
    Qso,
    WinterFieldContestLog,
    now_utc,
)

ADIF_VERSION = "3.1.6"
PROGRAM_ID = "fieldlogger"
POTA_SIG = "POTA"

CONTEST_IDS = {
    FieldContestLog: "ARRL-FIELD-DAY",
    WinterFieldContestLog: "WFD",
}

Field = Tuple[str, str]


def format_field(name: str, value: str) -> str:
    """Return `<NAME:len>value` where len is the UTF-8 byte length of value."""
    return f"<{name}:{len(value.encode('utf-8'))}>{value}"


def format_frequency(frequency_khz: int) -> str:
    """ADIF FREQ is in MHz; trailing zeros are trimmed (14074 -> "14.074")."""
    return f"{frequency_khz / 1000:.6f}".rstrip("0").rstrip(".")


def format_header(now: Optional[datetime] = None) -> str:
    """Header lines (version, program, export timestamp) ending with <EOH>."""
    created = (now or now_utc()).strftime("%Y%m%d %H%M%S")
    lines = [
        format_field("ADIF_VER", ADIF_VERSION),
        format_field("PROGRAMID", PROGRAM_ID),
        format_field("PROGRAMVERSION", __version__),
        format_field("CREATED_TIMESTAMP", created),
        "<EOH>",
    ]
    return "\n".join(lines) + "\n\n"


def _park_fields(log: ParkActivationLog, qso: Qso) -> List[Field]:
    if log.park_ref is None:
        return []
    fields: List[Field] = [("MY_SIG", POTA_SIG), ("MY_SIG_INFO", log.park_ref)]
    if qso.their_park:
        fields += [("SIG", POTA_SIG), ("SIG_INFO", qso.their_park)]
    return fields


def _contest_fields(log: ContestLog, qso: Qso) -> List[Field]:
    fields: List[Field] = [
        ("CONTEST_ID", CONTEST_IDS[type(log)]),
        ("STX_STRING", log.sent_exchange),
    ]
    if qso.their_exchange:
        fields.append(("SRX_STRING", qso.their_exchange))
    return fields


def variant_fields(log: Log, qso: Qso) -> List[Field]:
    """Fields owned by the log variant; every variant must be handled here."""
    if isinstance(log, GeneralLog):
        return []
    if isinstance(log, ParkActivationLog):
        return _park_fields(log, qso)
    if isinstance(log, (FieldContestLog, WinterFieldContestLog)):
        return _contest_fields(log, qso)
    raise TypeError(f"unsupported log type: {type(log).__name__}")


def format_qso(log: Log, qso: Qso) -> str:
    """Serialize one QSO as an ADIF record terminated by <EOR> and a newline."""
    fields: List[Field] = [("STATION_CALLSIGN", log.station_callsign)]
    if log.operator and log.operator != log.station_callsign:
        fields.append(("OPERATOR", log.operator))
    fields += [
        ("CALL", qso.their_call),
        ("QSO_DATE", qso.timestamp.strftime("%Y%m%d")),
        ("TIME_ON", qso.timestamp.strftime("%H%M%S")),
        ("BAND", qso.band.value),
        ("MODE", qso.mode.value),
    ]
    if qso.frequency_khz is not None:
        fields.append(("FREQ", format_frequency(qso.frequency_khz)))
    fields += [
        ("RST_SENT", qso.rst_sent),
        ("RST_RCVD", qso.rst_rcvd),
        ("MY_GRIDSQUARE", log.grid_square),
    ]
    fields += variant_fields(log, qso)
    if qso.comments:
        fields.append(("COMMENT", qso.comments))

    rec = [format_field(name, value) for name, value in fields]
    rec.append("<EOR>\n")
    return "".join(rec)


def format_log(log: Log, now: Optional[datetime] = None) -> str:
    """Serialize a whole log: header followed by its QSOs in logged order."""
    parts = [format_header(now)]
    parts.extend(format_qso(log, q) for q in log.qsos)
    return "".join(parts)


def default_export_filename(log: Log, on: Optional[date] = None) -> str:
    """e.g. fieldlogger-K-0001-20260216.adif, or the callsign when there is no park."""
    prefix = (log.park_ref or log.station_callsign).replace("/", "_")
    day = on or now_utc().date()
    return f"{PROGRAM_ID}-{prefix}-{day.strftime('%Y%m%d')}.adif"
