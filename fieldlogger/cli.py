"""Command-line interface for fieldlogger.

Commands cover creating logs of each type, logging and editing QSOs with
duplicate warnings, activation status, ADIF export, and deleting logs.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Optional

# Allow running this file directly by ensuring the project root is on sys.path
if __package__ is None or __package__ == "":
    sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from fieldlogger.config import load_settings
from fieldlogger.duplicates import DuplicateLogError, find_duplicates
from fieldlogger.models import (
    ACTIVATION_THRESHOLD,
    Band,
    FieldContestLog,
    GeneralLog,
    Log,
    Mode,
    ParkActivationLog,
    Qso,
    QsoIndexError,
    WinterFieldContestLog,
)
from fieldlogger.storage import (
    StorageError,
    append_qso,
    create_db_and_tables,
    create_log,
    default_export_path,
    delete_log,
    export_adif,
    get_db_path,
    list_logs,
    load_log,
    save_log,
)
from fieldlogger.validation import ValidationError

app = typer.Typer(add_completion=False, help="fieldlogger - POTA and Field Day logger")
console = Console()


class LogKind(str, Enum):
    general = "general"
    park = "park"
    fd = "fd"
    wfd = "wfd"


# Utilities

def _parse_when(when: Optional[str]) -> datetime:
    """Parse a human-friendly UTC time string.

    Accepts "now" (default) or formats like YYYY-MM-DD, YYYY-MM-DD HH:MM[:SS], or ISO.
    Returns a naive UTC datetime.

    Raises typer.BadParameter for invalid datetime formats.
    """
    if not when or when.lower() == "now":
        return datetime.now(UTC).replace(tzinfo=None, microsecond=0)
    s = when.replace("T", " ").replace("Z", "")
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(when)
    except (ValueError, TypeError) as e:
        raise typer.BadParameter(f"Unrecognized datetime format: {when}") from e


def _ensure_db() -> None:
    """Ensure the SQLite database and tables exist (idempotent).

    Raises typer.Exit on database creation failure.
    """
    try:
        create_db_and_tables()
    except StorageError as e:
        console.print(f"[red]Error creating database: {e}[/red]")
        raise typer.Exit(1) from e


def _fail(action: str, e: Exception) -> typer.Exit:
    console.print(f"[red]Error {action}: {e}[/red]")
    return typer.Exit(1)


def _log_type_name(log: Log) -> str:
    return log.log_type.value.replace("_", " ")


def _status_text(log: Log) -> str:
    if not isinstance(log, ParkActivationLog):
        return "-"
    if log.is_activated():
        return "[green]activated[/green]"
    return f"needs {log.needs_for_activation()}"


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.command()
def init() -> None:
    """Create the database in your user data directory (or FIELDLOGGER_DB_PATH)."""
    try:
        path = create_db_and_tables()
        console.print(f"Database ready at: [bold]{path}[/bold]")
    except StorageError as e:
        raise _fail("initializing database", e) from e


@app.command()
def new(
    kind: LogKind = typer.Argument(..., help="Log type: general, park, fd or wfd"),
    call: Optional[str] = typer.Option(None, help="Station callsign (defaults to settings)"),
    grid: Optional[str] = typer.Option(None, help="Maidenhead grid, e.g. FN31 (defaults to settings)"),
    operator: Optional[str] = typer.Option(None, help="Operator callsign if different"),
    park: Optional[str] = typer.Option(None, help="Park reference, e.g. K-0001 (park logs)"),
    tx_count: int = typer.Option(1, help="Transmitter count (fd/wfd)"),
    contest_class: Optional[str] = typer.Option(None, "--class", help="Contest class (fd: A-F, wfd: H/I/O/M)"),
    section: Optional[str] = typer.Option(None, help="ARRL/RAC section (fd/wfd)"),
    power: str = typer.Option("LOW", help="Field Day power: QRP, LOW or HIGH"),
) -> None:
    """Create a new log after checking for an equivalent log today."""
    _ensure_db()
    settings = load_settings()
    call = call or settings["station_callsign"] or ""
    grid = grid or settings["grid_square"] or ""
    operator = operator or settings["operator"]
    try:
        if kind is LogKind.general:
            log: Log = GeneralLog.create(call, grid, operator)
        elif kind is LogKind.park:
            log = ParkActivationLog.create(call, grid, operator, park_ref=park)
        elif kind is LogKind.fd:
            log = FieldContestLog.create(
                call, grid, tx_count, contest_class or "", section or "", power, operator
            )
        else:
            log = WinterFieldContestLog.create(
                call, grid, tx_count, contest_class or "", section or "", operator
            )
        create_log(log)
        console.print(f"Created {_log_type_name(log)} log [bold]{log.log_id}[/bold]")
    except (ValidationError, DuplicateLogError, StorageError) as e:
        raise _fail("creating log", e) from e


@app.command("logs")
def logs_cmd() -> None:
    """List stored logs, newest first."""
    _ensure_db()
    try:
        rows = list_logs(skip_invalid=True)
    except StorageError as e:
        raise _fail("listing logs", e) from e
    if not rows:
        console.print("No logs found.")
        return
    table = Table(title=f"Logs (DB: {get_db_path()})")
    table.add_column("Log ID")
    table.add_column("Type")
    table.add_column("Label")
    table.add_column("Created (UTC)")
    table.add_column("QSOs", justify="right")
    table.add_column("Status")
    for log in rows:
        table.add_row(
            log.log_id,
            _log_type_name(log),
            log.display_label(),
            log.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(len(log.qsos)),
            _status_text(log),
        )
    console.print(table)


def _build_qso(
    call: str,
    band: Band,
    mode: Mode,
    when: Optional[str],
    rst_sent: Optional[str],
    rst_rcvd: Optional[str],
    their_park: Optional[str],
    exchange: Optional[str],
    freq: Optional[int],
    comment: Optional[str],
) -> Qso:
    return Qso.create(
        their_call=call,
        band=band,
        mode=mode,
        timestamp=_parse_when(when),
        rst_sent=rst_sent or "",
        rst_rcvd=rst_rcvd or "",
        comments=comment or "",
        their_park=their_park,
        their_exchange=exchange,
        frequency_khz=freq,
    )


@app.command()
def qso(
    log_id: str = typer.Argument(..., help="Log to add the QSO to"),
    call: str = typer.Option(..., help="Worked station callsign, e.g. K1ABC"),
    band: Band = typer.Option(..., case_sensitive=False, help="Band, e.g. 20M"),
    mode: Mode = typer.Option(..., case_sensitive=False, help="Mode, e.g. SSB, CW, FT8"),
    when: Optional[str] = typer.Option("now", help="UTC time: 'now' or 'YYYY-MM-DD HH:MM[:SS]'"),
    rst_sent: Optional[str] = typer.Option(None, help="Report sent (defaults by mode)"),
    rst_rcvd: Optional[str] = typer.Option(None, help="Report received (defaults by mode)"),
    their_park: Optional[str] = typer.Option(None, help="Their park reference (park-to-park)"),
    exchange: Optional[str] = typer.Option(None, help="Received contest exchange, e.g. '2A WPA'"),
    freq: Optional[int] = typer.Option(None, help="Frequency in kHz"),
    comment: Optional[str] = typer.Option(None, help="Comment"),
) -> None:
    """Log a QSO; possible duplicates are reported but still logged."""
    _ensure_db()
    try:
        log = load_log(log_id)
        new_qso = _build_qso(
            call, band, mode, when, rst_sent, rst_rcvd, their_park, exchange, freq, comment
        )
        dupes = find_duplicates(log, new_qso)
        if dupes:
            times = ", ".join(q.timestamp.strftime("%H:%M") for q in dupes)
            console.print(
                f"[yellow]Possible duplicate: {new_qso.their_call} on "
                f"{new_qso.band.value} {new_qso.mode.value} already logged at {times}Z[/yellow]"
            )
        log.add_qso(new_qso)
        append_qso(log.log_id, new_qso)
        console.print(f"Logged {new_qso.their_call} in {log.log_id} ({len(log.qsos)} QSOs)")
        if isinstance(log, ParkActivationLog) and log.park_ref:
            console.print(f"Activation: {_status_text(log)}")
    except (ValidationError, ValueError, StorageError) as e:
        raise _fail("logging QSO", e) from e


@app.command()
def edit(
    log_id: str = typer.Argument(..., help="Log containing the QSO"),
    index: int = typer.Argument(..., help="QSO number as shown by 'show' (starting at 1)"),
    call: str = typer.Option(..., help="Worked station callsign"),
    band: Band = typer.Option(..., case_sensitive=False, help="Band"),
    mode: Mode = typer.Option(..., case_sensitive=False, help="Mode"),
    when: Optional[str] = typer.Option("now", help="UTC time: 'now' or 'YYYY-MM-DD HH:MM[:SS]'"),
    rst_sent: Optional[str] = typer.Option(None, help="Report sent"),
    rst_rcvd: Optional[str] = typer.Option(None, help="Report received"),
    their_park: Optional[str] = typer.Option(None, help="Their park reference"),
    exchange: Optional[str] = typer.Option(None, help="Received contest exchange"),
    freq: Optional[int] = typer.Option(None, help="Frequency in kHz"),
    comment: Optional[str] = typer.Option(None, help="Comment"),
) -> None:
    """Replace a logged QSO."""
    _ensure_db()
    try:
        log = load_log(log_id)
        replacement = _build_qso(
            call, band, mode, when, rst_sent, rst_rcvd, their_park, exchange, freq, comment
        )
        old = log.update_qso(index - 1, replacement)
        save_log(log)
        console.print(f"Replaced QSO {index} ({old.their_call}) with {replacement.their_call}")
    except (ValidationError, ValueError, QsoIndexError, StorageError) as e:
        raise _fail("editing QSO", e) from e


@app.command()
def show(log_id: str = typer.Argument(..., help="Log to display")) -> None:
    """Display the QSOs of a log."""
    _ensure_db()
    try:
        log = load_log(log_id)
    except StorageError as e:
        raise _fail("loading log", e) from e
    table = Table(title=f"{log.display_label()} ({_log_type_name(log)}, {len(log.qsos)} QSOs)")
    table.add_column("#", justify="right")
    table.add_column("UTC")
    table.add_column("Call")
    table.add_column("Band")
    table.add_column("Mode")
    table.add_column("Sent")
    table.add_column("Rcvd")
    table.add_column("Park / Exch")
    table.add_column("Comment")
    for i, q in enumerate(log.qsos, start=1):
        table.add_row(
            str(i),
            q.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            q.their_call,
            q.band.value,
            q.mode.value,
            q.rst_sent,
            q.rst_rcvd,
            q.their_park or q.their_exchange or "",
            q.comments[:40],
        )
    console.print(table)


@app.command()
def status(log_id: str = typer.Argument(..., help="Log to check")) -> None:
    """Show today's activation progress for a park log."""
    _ensure_db()
    try:
        log = load_log(log_id)
    except StorageError as e:
        raise _fail("loading log", e) from e
    if not isinstance(log, ParkActivationLog):
        console.print(f"{log.display_label()}: {_log_type_name(log)} logs have no activation")
        return
    count = log.qso_count_today()
    console.print(
        f"{log.display_label()}: {count}/{ACTIVATION_THRESHOLD} unique QSOs today, "
        f"{_status_text(log)}"
    )


@app.command()
def export(
    log_id: str = typer.Argument(..., help="Log to export"),
    output: Optional[Path] = typer.Option(
        None,
        dir_okay=False,
        writable=True,
        help="ADIF file to write (defaults to the export directory)",
    ),
) -> None:
    """Write a log to an ADIF file on disk."""
    _ensure_db()
    try:
        log = load_log(log_id)
        path = export_adif(log, output or default_export_path(log))
        console.print(f"Exported {len(log.qsos)} QSOs to {path}")
    except StorageError as e:
        raise _fail("exporting ADIF", e) from e


@app.command()
def delete(
    log_id: str = typer.Argument(..., help="Log to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a log and all its QSOs."""
    _ensure_db()
    if not yes and not typer.confirm(f"Delete log {log_id}?"):
        raise typer.Exit(0)
    try:
        delete_log(log_id)
        console.print(f"Deleted log {log_id}")
    except StorageError as e:
        raise _fail("deleting log", e) from e


def main() -> None:  # pragma: no cover - exercised via CLI
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
