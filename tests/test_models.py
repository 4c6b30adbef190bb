from datetime import date, datetime, timedelta, timezone

import pytest

from fieldlogger.models import (
    ACTIVATION_THRESHOLD,
    Band,
    ContestLog,
    FdClass,
    FdPowerCategory,
    FieldContestLog,
    GeneralLog,
    Log,
    LogHeader,
    LogType,
    Mode,
    ParkActivationLog,
    Qso,
    QsoIndexError,
    WfdClass,
    WinterFieldContestLog,
    parse_fd_class,
    parse_wfd_class,
)
from fieldlogger.validation import (
    EmptyCallsignError,
    EmptySectionError,
    InvalidCallsignError,
    InvalidFdClassError,
    InvalidGridSquareError,
    InvalidParkRefError,
    InvalidPowerCategoryError,
    InvalidTxCountError,
    InvalidWfdClassError,
    ValidationError,
)

DAY = date(2026, 2, 16)
CREATED = datetime(2026, 2, 16, 12, 0, 0)


def qso_on(day: date, call: str = "KD9XYZ", band: Band = Band.M20, mode: Mode = Mode.SSB) -> Qso:
    return Qso.create(call, band, mode, timestamp=datetime.combine(day, datetime.min.time()) + timedelta(hours=12))


# --- Qso ---

def test_qso_normalizes_callsign_and_defaults_reports() -> None:
    q = Qso.create(" kd9xyz ", "20m", "cw", timestamp=CREATED)
    assert q.their_call == "KD9XYZ"
    assert q.band is Band.M20
    assert q.mode is Mode.CW
    assert q.rst_sent == "599"
    assert q.rst_rcvd == "599"
    assert q.comments == ""
    assert q.their_park is None


@pytest.mark.parametrize("mode,rst", [
    (Mode.SSB, "59"), (Mode.FM, "59"), (Mode.AM, "59"),
    (Mode.CW, "599"), (Mode.PSK31, "599"), (Mode.RTTY, "599"),
    (Mode.FT8, "-10"), (Mode.FT4, "-10"), (Mode.JS8, "-10"), (Mode.DIGI, "-10"),
])
def test_mode_default_rst(mode: Mode, rst: str) -> None:
    assert mode.default_rst == rst


def test_qso_converts_aware_timestamp_to_naive_utc() -> None:
    aware = datetime(2026, 2, 16, 9, 30, tzinfo=timezone(timedelta(hours=-5)))
    q = Qso.create("K1ABC", Band.M40, Mode.SSB, timestamp=aware)
    assert q.timestamp == datetime(2026, 2, 16, 14, 30)
    assert q.timestamp.tzinfo is None


def test_qso_rejects_bad_fields() -> None:
    with pytest.raises(EmptyCallsignError):
        Qso.create("", Band.M20, Mode.SSB)
    with pytest.raises(InvalidCallsignError) as exc:
        Qso.create("K1 ABC", Band.M20, Mode.SSB)
    assert exc.value.field == "their_call"
    with pytest.raises(InvalidParkRefError) as exc:
        Qso.create("K1ABC", Band.M20, Mode.SSB, their_park="k-1")
    assert exc.value.field == "their_park"
    with pytest.raises(ValueError):
        Qso.create("K1ABC", "11M", Mode.SSB)


def test_qso_exchange_normalized_and_blank_dropped() -> None:
    q = Qso.create("K1ABC", Band.M20, Mode.SSB, their_exchange=" 2a wpa ")
    assert q.their_exchange == "2A WPA"
    assert Qso.create("K1ABC", Band.M20, Mode.SSB, their_exchange="  ").their_exchange is None


def test_qso_is_immutable(sample_qso) -> None:
    with pytest.raises(AttributeError):
        sample_qso.their_call = "N0CALL"


# --- constructors ---

def test_general_log_creation() -> None:
    log = GeneralLog.create("W1AW", "FN31", created_at=CREATED)
    assert log.log_type is LogType.GENERAL
    assert log.log_id == "W1AW-20260216-120000"
    assert log.operator is None
    assert log.park_ref is None
    assert log.qsos == []
    assert log.display_label() == "W1AW"


def test_park_log_id_uses_park_or_callsign() -> None:
    with_park = ParkActivationLog.create("W1AW", "FN31", park_ref="K-0001", created_at=CREATED)
    without = ParkActivationLog.create("W1AW", "FN31", created_at=CREATED)
    assert with_park.log_id == "K-0001-20260216-120000"
    assert with_park.display_label() == "K-0001"
    assert without.log_id == "W1AW-20260216-120000"
    assert without.display_label() == "W1AW"


def test_contest_log_ids_are_prefixed(fd_log, wfd_log) -> None:
    assert fd_log.log_id == "FD-W1AW-20260216-120000"
    assert wfd_log.log_id == "WFD-W1AW-20260216-120000"


def test_created_at_defaults_to_now_utc() -> None:
    before = datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)
    log = GeneralLog.create("W1AW", "FN31")
    assert log.created_at.tzinfo is None
    assert log.created_at >= before
    assert log.log_id.startswith("W1AW-")


def test_field_contest_normalizes_and_exchanges(fd_log) -> None:
    assert fd_log.section == "EPA"
    assert fd_log.fd_class is FdClass.B
    assert fd_log.power is FdPowerCategory.LOW
    assert fd_log.sent_exchange == "1B EPA"
    assert fd_log.display_label() == "1B EPA"
    assert fd_log.park_ref is None


def test_winter_field_contest_exchange(wfd_log) -> None:
    assert wfd_log.wfd_class is WfdClass.O
    assert wfd_log.sent_exchange == "2O WPA"


@pytest.mark.parametrize("count,ok", [(0, False), (1, True), (20, True), (21, False)])
def test_field_contest_tx_count_range(count: int, ok: bool) -> None:
    if ok:
        assert FieldContestLog.create("W1AW", "FN31", count, "A", "EPA", "HIGH").tx_count == count
    else:
        with pytest.raises(InvalidTxCountError):
            FieldContestLog.create("W1AW", "FN31", count, "A", "EPA", "HIGH")


def test_winter_field_contest_tx_count_has_no_upper_bound() -> None:
    assert WinterFieldContestLog.create("W1AW", "FN31", 30, "H", "EPA").tx_count == 30
    with pytest.raises(InvalidTxCountError):
        WinterFieldContestLog.create("W1AW", "FN31", 0, "H", "EPA")


def test_empty_section_rejected() -> None:
    with pytest.raises(EmptySectionError):
        FieldContestLog.create("W1AW", "FN31", 1, "A", "  ", "LOW")
    with pytest.raises(EmptySectionError):
        WinterFieldContestLog.create("W1AW", "FN31", 1, "H", "")


def test_class_parsing() -> None:
    assert parse_fd_class("f") is FdClass.F
    assert parse_wfd_class("m") is WfdClass.M
    with pytest.raises(InvalidFdClassError):
        parse_fd_class("H")
    with pytest.raises(InvalidWfdClassError):
        parse_wfd_class("A")
    with pytest.raises(InvalidPowerCategoryError):
        FieldContestLog.create("W1AW", "FN31", 1, "A", "EPA", "KW")


# --- error precedence: callsign -> operator -> variant fields -> grid ---

def test_general_error_order() -> None:
    with pytest.raises(EmptyCallsignError):
        GeneralLog.create("", "bad", operator="bad op")
    with pytest.raises(InvalidCallsignError) as exc:
        GeneralLog.create("W1AW", "bad", operator="bad op")
    assert exc.value.field == "operator"
    with pytest.raises(InvalidGridSquareError):
        GeneralLog.create("W1AW", "bad", operator="N0CALL")


def test_park_error_order() -> None:
    with pytest.raises(InvalidCallsignError) as exc:
        ParkActivationLog.create("W1 AW", "bad", operator="x y", park_ref="nope")
    assert exc.value.field == "station_callsign"
    with pytest.raises(InvalidCallsignError) as exc:
        ParkActivationLog.create("W1AW", "bad", operator="x y", park_ref="nope")
    assert exc.value.field == "operator"
    with pytest.raises(InvalidParkRefError):
        ParkActivationLog.create("W1AW", "bad", park_ref="nope")
    with pytest.raises(InvalidGridSquareError):
        ParkActivationLog.create("W1AW", "bad", park_ref="K-0001")


def test_field_contest_error_order() -> None:
    args = dict(tx_count=0, fd_class="Z", section="", power="KW")
    with pytest.raises(InvalidTxCountError):
        FieldContestLog.create("W1AW", "bad", **args)
    args["tx_count"] = 1
    with pytest.raises(InvalidFdClassError):
        FieldContestLog.create("W1AW", "bad", **args)
    args["fd_class"] = "A"
    with pytest.raises(EmptySectionError):
        FieldContestLog.create("W1AW", "bad", **args)
    args["section"] = "EPA"
    with pytest.raises(InvalidPowerCategoryError):
        FieldContestLog.create("W1AW", "bad", **args)
    args["power"] = "QRP"
    with pytest.raises(InvalidGridSquareError):
        FieldContestLog.create("W1AW", "bad", **args)


def test_winter_field_contest_error_order() -> None:
    with pytest.raises(InvalidCallsignError):
        WinterFieldContestLog.create("W1AW", "bad", 0, "Z", "", operator="?")
    with pytest.raises(InvalidTxCountError):
        WinterFieldContestLog.create("W1AW", "bad", 0, "Z", "")
    with pytest.raises(InvalidWfdClassError):
        WinterFieldContestLog.create("W1AW", "bad", 1, "Z", "")
    with pytest.raises(EmptySectionError):
        WinterFieldContestLog.create("W1AW", "bad", 1, "I", "")
    with pytest.raises(InvalidGridSquareError):
        WinterFieldContestLog.create("W1AW", "bad", 1, "I", "EPA")


# --- QSO mutation ---

def test_add_qso_allows_duplicates(park_log, sample_qso) -> None:
    park_log.add_qso(sample_qso)
    park_log.add_qso(sample_qso)
    assert len(park_log.qsos) == 2


def test_update_qso_replaces_in_place(general_log, sample_qso) -> None:
    general_log.add_qso(sample_qso)
    replacement = Qso.create("N0CALL", Band.M40, Mode.CW, timestamp=CREATED)
    old = general_log.update_qso(0, replacement)
    assert old == sample_qso
    assert general_log.qsos == [replacement]


@pytest.mark.parametrize("index", [1, 5, -1])
def test_update_qso_out_of_range(general_log, sample_qso, index: int) -> None:
    general_log.add_qso(sample_qso)
    with pytest.raises(QsoIndexError) as exc:
        general_log.update_qso(index, sample_qso)
    assert isinstance(exc.value, IndexError)
    assert general_log.qsos == [sample_qso]


# --- activation ---

def _park_log_with(n: int, day: date = DAY) -> ParkActivationLog:
    log = ParkActivationLog.create("W1AW", "FN31", park_ref="K-0001", created_at=CREATED)
    for i in range(n):
        log.add_qso(qso_on(day, call=f"K{i}ABC"))
    return log


@pytest.mark.parametrize("n,activated,needs", [
    (0, False, 10),
    (9, False, 1),
    (10, True, 0),
    (11, True, 0),
])
def test_activation_boundary(n: int, activated: bool, needs: int) -> None:
    log = _park_log_with(n)
    assert log.qso_count_today(DAY) == n
    assert log.is_activated(DAY) is activated
    assert log.needs_for_activation(DAY) == needs


def test_activation_only_counts_today() -> None:
    log = _park_log_with(ACTIVATION_THRESHOLD, day=DAY - timedelta(days=1))
    assert not log.is_activated(DAY)
    assert log.needs_for_activation(DAY) == ACTIVATION_THRESHOLD


def test_activation_counts_unique_contacts() -> None:
    log = _park_log_with(9)
    log.add_qso(qso_on(DAY, call="K0ABC"))
    assert log.qso_count_today(DAY) == 9
    log.add_qso(qso_on(DAY, call="K0ABC", band=Band.M40))
    assert log.is_activated(DAY)


def test_activation_uses_current_utc_day_by_default() -> None:
    log = ParkActivationLog.create("W1AW", "FN31", park_ref="K-0001")
    for i in range(10):
        log.add_qso(Qso.create(f"K{i}ABC", Band.M20, Mode.SSB))
    assert log.is_activated()
    assert log.needs_for_activation() == 0


def test_other_variants_never_activate(general_log, fd_log, wfd_log) -> None:
    for log in (general_log, fd_log, wfd_log):
        for i in range(12):
            log.add_qso(qso_on(DAY, call=f"K{i}ABC"))
        assert log.is_activated(DAY) is False
        assert log.needs_for_activation(DAY) == 0


def test_variants_are_not_equal_to_each_other() -> None:
    general = GeneralLog.create("W1AW", "FN31", created_at=CREATED)
    park = ParkActivationLog.create("W1AW", "FN31", created_at=CREATED)
    assert general.header == park.header
    assert general != park


# --- direct construction ---

def valid_header(**changes) -> LogHeader:
    fields = dict(
        station_callsign="W1AW", operator=None, grid_square="FN31", created_at=CREATED, log_id="x"
    )
    fields.update(changes)
    return LogHeader(**fields)


def test_direct_qso_is_validated() -> None:
    with pytest.raises(InvalidCallsignError):
        Qso("k1 abc", "", "", "20m", "ssb", CREATED)
    with pytest.raises(InvalidParkRefError):
        Qso("K1ABC", "59", "59", Band.M20, Mode.SSB, CREATED, their_park="k-1")
    with pytest.raises(ValidationError):
        Qso("K1ABC", "59", "59", Band.M20, Mode.SSB, CREATED, frequency_khz=0)
    with pytest.raises(ValueError):
        Qso("K1ABC", "59", "59", "11m", Mode.SSB, CREATED)


def test_direct_qso_coerces_band_and_mode() -> None:
    q = Qso("K1ABC", "59", "59", "20m", "ssb", CREATED)
    assert q.band is Band.M20
    assert q.mode is Mode.SSB


@pytest.mark.parametrize("changes,error", [
    ({"station_callsign": "w1 aw!"}, InvalidCallsignError),
    ({"station_callsign": ""}, EmptyCallsignError),
    ({"operator": "bad op"}, InvalidCallsignError),
    ({"grid_square": "nope"}, InvalidGridSquareError),
])
def test_direct_header_is_validated(changes, error) -> None:
    with pytest.raises(error):
        valid_header(**changes)


def test_direct_variants_are_validated() -> None:
    with pytest.raises(InvalidParkRefError):
        ParkActivationLog(header=valid_header(), park="k-1")
    with pytest.raises(InvalidTxCountError):
        FieldContestLog(header=valid_header(), tx_count=21, section="EPA")
    with pytest.raises(EmptySectionError):
        FieldContestLog(header=valid_header(), tx_count=1, section=" ")
    with pytest.raises(InvalidPowerCategoryError):
        FieldContestLog(header=valid_header(), tx_count=1, section="EPA", power="KW")
    with pytest.raises(InvalidWfdClassError):
        WinterFieldContestLog(header=valid_header(), tx_count=1, section="EPA", wfd_class="A")


def test_direct_contest_logs_coerce_classes() -> None:
    fd = FieldContestLog(header=valid_header(), tx_count=2, section="EPA", fd_class="b", power="qrp")
    assert fd.fd_class is FdClass.B
    assert fd.power is FdPowerCategory.QRP
    assert fd.sent_exchange == "2B EPA"
    wfd = WinterFieldContestLog(header=valid_header(), tx_count=1, section="EPA", wfd_class="m")
    assert wfd.wfd_class is WfdClass.M


@pytest.mark.parametrize("cls", [Log, ContestLog])
def test_abstract_bases_cannot_be_built(cls) -> None:
    with pytest.raises(TypeError):
        cls(header=valid_header())
