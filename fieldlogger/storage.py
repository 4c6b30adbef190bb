"""Persistence layer: SQLite engine setup, sessions, and log CRUD/export.

The database lives in the user's data directory by default, and can be
overridden via the FIELDLOGGER_DB_PATH environment variable. SQLModel/SQLAlchemy
2.x are used for ORM-style access.

Each log is one row in the `log` table (header, variant discriminant and
variant columns) plus its QSOs in the `qso` table, ordered by `position`.
Loading never trusts stored values: rows are rebuilt through the same `create`
classmethods the application uses, and a row that fails validation is
reported as `CorruptLogError`. Rows with no `log_type` predate the
discriminant and load as park activation logs.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from platformdirs import user_data_dir
from sqlalchemy import func, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .adif import default_export_filename, format_log
from .config import APP_NAME, Settings, export_dir
from .duplicates import check_duplicate_log
from .models import (
    LEGACY_LOG_TYPE,
    FieldContestLog,
    GeneralLog,
    Log,
    LogType,
    ParkActivationLog,
    Qso,
    WinterFieldContestLog,
)

DB_ENV_VAR = "FIELDLOGGER_DB_PATH"

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A database or file operation failed."""


class LogNotFoundError(StorageError):
    def __init__(self, log_id: str) -> None:
        self.log_id = log_id
        super().__init__(f"log not found: {log_id}")


class CorruptLogError(StorageError):
    """A stored log failed the validation its constructor applies."""

    def __init__(self, log_id: str, cause: Exception) -> None:
        self.log_id = log_id
        self.cause = cause
        super().__init__(f"stored log {log_id} is invalid: {cause}")


class LogRecord(SQLModel, table=True):
    """One stored log: shared header, discriminant, and variant columns."""

    __tablename__ = "log"

    log_id: str = Field(primary_key=True)
    # NULL for rows written before the discriminant existed.
    log_type: Optional[str] = Field(default=None, index=True)
    station_callsign: str
    operator: Optional[str] = None
    grid_square: str
    created_at: datetime = Field(index=True)

    # Park activation
    park_ref: Optional[str] = None

    # Field Day / Winter Field Day
    tx_count: Optional[int] = None
    contest_class: Optional[str] = None
    section: Optional[str] = None
    power: Optional[str] = None


class QsoRecord(SQLModel, table=True):
    """One stored QSO belonging to a log."""

    __tablename__ = "qso"

    id: Optional[int] = Field(default=None, primary_key=True)
    log_id: str = Field(foreign_key="log.log_id", index=True)
    position: int

    their_call: str
    rst_sent: str
    rst_rcvd: str
    band: str
    mode: str
    timestamp: datetime
    comments: str = ""
    their_park: Optional[str] = None
    their_exchange: Optional[str] = None
    frequency_khz: Optional[int] = None


# Columns added after the first release; older databases get them via ALTER TABLE.
_ADDED_COLUMNS: Dict[str, Dict[str, str]] = {
    "log": {
        "log_type": "VARCHAR",
        "tx_count": "INTEGER",
        "contest_class": "VARCHAR",
        "section": "VARCHAR",
        "power": "VARCHAR",
    },
    "qso": {
        "their_exchange": "VARCHAR",
        "frequency_khz": "INTEGER",
    },
}


def _default_db_path() -> Path:
    """Return the default location of the SQLite database file."""
    data_dir = Path(user_data_dir(appname=APP_NAME, appauthor=False))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "fieldlogger.sqlite3"


def get_db_path() -> Path:
    """Resolve the active database path, honoring FIELDLOGGER_DB_PATH if set."""
    env = os.getenv(DB_ENV_VAR)
    if env:
        p = Path(env).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    return _default_db_path()


_engine = None
_engine_path: Optional[Path] = None


def get_engine():
    """Create and return the SQLAlchemy engine bound to the active database.

    The engine is cached and rebuilt when the resolved path changes.
    """
    global _engine, _engine_path
    db_path = get_db_path()
    if _engine is None or _engine_path != db_path:
        if _engine is not None:
            _engine.dispose()
        try:
            _engine = create_engine(f"sqlite:///{db_path}", echo=False)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create database engine: {e}") from e
        _engine_path = db_path
        logger.debug("Opened database %s", db_path)
    return _engine


def _add_missing_columns(engine) -> None:
    insp = inspect(engine)
    with engine.begin() as conn:
        for table, columns in _ADDED_COLUMNS.items():
            if not insp.has_table(table):
                continue
            present = {c["name"] for c in insp.get_columns(table)}
            for name, ddl in columns.items():
                if name not in present:
                    logger.info("Upgrading table %s: adding column %s", table, name)
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))


def create_db_and_tables() -> Path:
    """Create missing tables and columns; safe to call on every start.

    Raises StorageError if the schema cannot be created or upgraded.
    """
    try:
        engine = get_engine()
        SQLModel.metadata.create_all(engine)
        _add_missing_columns(engine)
        return get_db_path()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to create database tables: {e}") from e


@contextmanager
def session_scope():
    """Context manager yielding a SQLModel Session bound to our engine.

    Rolls back on errors and always closes the session.
    """
    session = Session(get_engine())
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# Mapping between domain logs and rows

def _db_time(dt: datetime) -> datetime:
    """Attach UTC to a naive UTC datetime; datetime columns only take aware values."""
    return dt.replace(tzinfo=UTC)


def _log_values(log: Log) -> Dict[str, object]:
    values: Dict[str, object] = {
        "log_id": log.log_id,
        "log_type": log.log_type.value,
        "station_callsign": log.station_callsign,
        "operator": log.operator,
        "grid_square": log.grid_square,
        "created_at": _db_time(log.created_at),
        "park_ref": None,
        "tx_count": None,
        "contest_class": None,
        "section": None,
        "power": None,
    }
    if isinstance(log, GeneralLog):
        pass
    elif isinstance(log, ParkActivationLog):
        values["park_ref"] = log.park_ref
    elif isinstance(log, FieldContestLog):
        values.update(
            tx_count=log.tx_count,
            contest_class=log.fd_class.value,
            section=log.section,
            power=log.power.value,
        )
    elif isinstance(log, WinterFieldContestLog):
        values.update(
            tx_count=log.tx_count,
            contest_class=log.wfd_class.value,
            section=log.section,
        )
    else:
        raise TypeError(f"unsupported log type: {type(log).__name__}")
    return values


def _qso_record(log_id: str, position: int, qso: Qso) -> QsoRecord:
    return QsoRecord(
        log_id=log_id,
        position=position,
        their_call=qso.their_call,
        rst_sent=qso.rst_sent,
        rst_rcvd=qso.rst_rcvd,
        band=qso.band.value,
        mode=qso.mode.value,
        timestamp=_db_time(qso.timestamp),
        comments=qso.comments,
        their_park=qso.their_park,
        their_exchange=qso.their_exchange,
        frequency_khz=qso.frequency_khz,
    )


def _record_to_qso(row: QsoRecord) -> Qso:
    return Qso.create(
        their_call=row.their_call,
        band=row.band,
        mode=row.mode,
        timestamp=row.timestamp,
        rst_sent=row.rst_sent,
        rst_rcvd=row.rst_rcvd,
        comments=row.comments or "",
        their_park=row.their_park or None,
        their_exchange=row.their_exchange,
        frequency_khz=row.frequency_khz,
    )


def _record_to_log(record: LogRecord, qso_rows: Sequence[QsoRecord]) -> Log:
    """Rebuild a log through its validating constructor.

    Raises CorruptLogError when any stored field fails validation.
    """
    try:
        if record.log_type is None:
            log_type = LEGACY_LOG_TYPE
        else:
            log_type = LogType(record.log_type)
        operator = record.operator or None
        restore = {"created_at": record.created_at, "log_id": record.log_id}
        if log_type is LogType.GENERAL:
            log: Log = GeneralLog.create(
                record.station_callsign, record.grid_square, operator, **restore
            )
        elif log_type is LogType.PARK_ACTIVATION:
            log = ParkActivationLog.create(
                record.station_callsign,
                record.grid_square,
                operator,
                park_ref=record.park_ref or None,
                **restore,
            )
        elif log_type is LogType.FIELD_CONTEST:
            log = FieldContestLog.create(
                record.station_callsign,
                record.grid_square,
                record.tx_count,
                record.contest_class,
                record.section,
                record.power,
                operator,
                **restore,
            )
        elif log_type is LogType.WINTER_FIELD_CONTEST:
            log = WinterFieldContestLog.create(
                record.station_callsign,
                record.grid_square,
                record.tx_count,
                record.contest_class,
                record.section,
                operator,
                **restore,
            )
        else:  # pragma: no cover - LogType is closed
            raise ValueError(f"unknown log type {log_type}")
        for row in qso_rows:
            log.add_qso(_record_to_qso(row))
    except (ValueError, TypeError) as e:
        raise CorruptLogError(record.log_id, e) from e
    return log


# CRUD helpers

def save_log(log: Log) -> None:
    """Write a complete log (header + all QSOs), replacing any stored copy.

    Raises StorageError if the log cannot be saved.
    """
    values = _log_values(log)
    try:
        with session_scope() as session:
            record = session.get(LogRecord, log.log_id)
            if record is None:
                record = LogRecord(**values)
            else:
                for key, val in values.items():
                    setattr(record, key, val)
            session.add(record)
            old_rows = session.exec(select(QsoRecord).where(QsoRecord.log_id == log.log_id))
            for row in old_rows:
                session.delete(row)
            session.flush()
            session.add_all(_qso_record(log.log_id, i, q) for i, q in enumerate(log.qsos))
            session.commit()
        logger.debug("Saved log %s with %d QSOs", log.log_id, len(log.qsos))
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to save log {log.log_id}: {e}") from e


def append_qso(log_id: str, qso: Qso) -> None:
    """Append one QSO to a stored log without rewriting the others.

    Raises LogNotFoundError if the log does not exist.
    """
    try:
        with session_scope() as session:
            if session.get(LogRecord, log_id) is None:
                raise LogNotFoundError(log_id)
            count = session.exec(
                select(func.count(QsoRecord.id)).where(QsoRecord.log_id == log_id)
            ).one()
            session.add(_qso_record(log_id, count, qso))
            session.commit()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to append QSO to log {log_id}: {e}") from e


def load_log(log_id: str) -> Log:
    """Load one log with its QSOs.

    Raises LogNotFoundError if missing and CorruptLogError if invalid,
    including stored dates the database layer cannot parse.
    """
    try:
        with session_scope() as session:
            record = session.get(LogRecord, log_id)
            if record is None:
                raise LogNotFoundError(log_id)
            rows = list(
                session.exec(
                    select(QsoRecord)
                    .where(QsoRecord.log_id == log_id)
                    .order_by(QsoRecord.position)
                )
            )
            return _record_to_log(record, rows)
    except (ValueError, TypeError) as e:
        # Raised while converting stored column values, before validation runs.
        raise CorruptLogError(log_id, e) from e
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to load log {log_id}: {e}") from e


def list_logs(skip_invalid: bool = False) -> List[Log]:
    """Return all stored logs, newest first.

    A stored log that fails validation raises CorruptLogError, unless
    `skip_invalid` is set, in which case it is logged and left out.
    """
    try:
        with session_scope() as session:
            log_ids = list(
                session.exec(select(LogRecord.log_id).order_by(LogRecord.created_at.desc()))
            )
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to list logs: {e}") from e

    logs: List[Log] = []
    for log_id in log_ids:
        try:
            logs.append(load_log(log_id))
        except CorruptLogError as e:
            if not skip_invalid:
                raise
            logger.warning("Skipping %s", e)
    return logs


def log_exists(log_id: str) -> bool:
    try:
        with session_scope() as session:
            return session.get(LogRecord, log_id) is not None
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to look up log {log_id}: {e}") from e


def create_log(log: Log) -> None:
    """Store a newly created log after checking it against all stored logs.

    Raises DuplicateLogError if an equivalent log exists on the same UTC day,
    and StorageError if the log id is already taken.
    """
    check_duplicate_log(list_logs(skip_invalid=True), log)
    if log_exists(log.log_id):
        raise StorageError(f"log id already in use: {log.log_id}")
    save_log(log)
    logger.info("Created %s log %s", log.log_type.value, log.log_id)


def delete_log(log_id: str) -> None:
    """Delete a log and its QSOs.

    Raises LogNotFoundError if the log does not exist.
    """
    try:
        with session_scope() as session:
            record = session.get(LogRecord, log_id)
            if record is None:
                raise LogNotFoundError(log_id)
            for row in session.exec(select(QsoRecord).where(QsoRecord.log_id == log_id)):
                session.delete(row)
            session.delete(record)
            session.commit()
        logger.info("Deleted log %s", log_id)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to delete log {log_id}: {e}") from e


# Export

def default_export_path(log: Log, settings: Optional[Settings] = None) -> Path:
    """Configured export directory joined with the default ADIF filename."""
    return export_dir(settings) / default_export_filename(log)


def export_adif(log: Log, path: Path, now: Optional[datetime] = None) -> Path:
    """Write the log as ADIF to `path` and return the path.

    Raises StorageError if the file cannot be written.
    """
    content = format_log(log, now)
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Failed to export ADIF to {path}: {e}") from e
    logger.info("Exported %d QSOs from %s to %s", len(log.qsos), log.log_id, path)
    return path
