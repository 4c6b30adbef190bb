from datetime import datetime

import pytest

CREATED = datetime(2026, 2, 16, 12, 0, 0)


@pytest.fixture
def park_log():
    """A park activation log at K-0001 created 2026-02-16 12:00 UTC."""
    from fieldlogger.models import ParkActivationLog

    return ParkActivationLog.create(
        "W1AW", "FN31", operator="W1AW", park_ref="K-0001", created_at=CREATED
    )


@pytest.fixture
def general_log():
    from fieldlogger.models import GeneralLog

    return GeneralLog.create("W1AW", "FN31", created_at=CREATED)


@pytest.fixture
def fd_log():
    from fieldlogger.models import FieldContestLog

    return FieldContestLog.create(
        "W1AW", "FN31", 1, "B", "epa", "LOW", created_at=CREATED
    )


@pytest.fixture
def wfd_log():
    from fieldlogger.models import WinterFieldContestLog

    return WinterFieldContestLog.create(
        "W1AW", "FN31", 2, "O", "WPA", created_at=CREATED
    )


@pytest.fixture
def sample_qso():
    """Create a sample QSO for testing."""
    from fieldlogger.models import Band, Mode, Qso

    return Qso.create(
        "KD9XYZ",
        Band.M20,
        Mode.SSB,
        timestamp=datetime(2026, 2, 16, 14, 30, 0),
        rst_sent="59",
        rst_rcvd="57",
    )


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point storage at a fresh temporary database."""
    db_path = tmp_path / "test.sqlite3"
    monkeypatch.setenv("FIELDLOGGER_DB_PATH", str(db_path))
    monkeypatch.setenv("FIELDLOGGER_CONFIG", str(tmp_path / "settings.json"))

    from fieldlogger.storage import create_db_and_tables

    create_db_and_tables()
    yield db_path
