"""
Path and input helpers shared by the CLI and the services.

Relative paths in the configuration are anchored at the directory holding
this module, so the ledger finds its database and log file no matter where
it is launched from.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from exceptions import ValidationError

logger = logging.getLogger(__name__)

LEDGER_HOME = Path(__file__).resolve().parent
DEFAULT_DATA_DIR = "data"
DEFAULT_DB_FILE = "budget.db"
CONNECTION_ENV_VAR = "DB_CONNECTION_STRING"


def _anchored(path_value: Union[str, Path]) -> Path:
    path = Path(path_value)
    return path if path.is_absolute() else LEDGER_HOME / path


def ensure_data_dir(config: Optional[Dict[str, Any]] = None) -> Path:
    """
    Create the ledger data directory when missing.

    Args:
        config: Loaded configuration; ``database.data_dir`` overrides the default

    Returns:
        Absolute path of the data directory
    """
    database = (config or {}).get("database") or {}
    data_dir = _anchored(database.get("data_dir", DEFAULT_DATA_DIR))
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Cannot create data directory %s: %s", data_dir, exc)
        raise
    return data_dir


def _prepare_sqlite_file(connection_string: str) -> str:
    """Make sure a file-backed SQLite database has a directory to live in."""
    try:
        url = make_url(connection_string)
    except ArgumentError as exc:
        logger.debug("Not a parseable database URL %r: %s", connection_string, exc)
        return connection_string

    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        folder = _anchored(url.database).parent
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create database directory %s: %s", folder, exc)
            raise
    return connection_string


def resolve_connection_string(config: Optional[Dict[str, Any]] = None) -> str:
    """
    Pick the database URL for this run.

    The ``DB_CONNECTION_STRING`` environment variable wins, then
    ``database.connection_string`` from the config. Otherwise the ledger
    uses SQLite at ``database.path`` (default ``budget.db``) inside the data
    directory.
    """
    from_env = os.environ.get(CONNECTION_ENV_VAR)
    if from_env:
        return _prepare_sqlite_file(from_env)

    database = (config or {}).get("database") or {}
    if database.get("connection_string"):
        return _prepare_sqlite_file(database["connection_string"])

    db_file = ensure_data_dir(config) / database.get("path", DEFAULT_DB_FILE)
    return _prepare_sqlite_file(f"sqlite:///{db_file.as_posix()}")


def resolve_log_path(log_path: Union[str, Path]) -> Path:
    """Absolute log file location; its directory is created on the way."""
    resolved = _anchored(log_path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return resolved


def parse_date(value: Union[date, datetime, str], field: str = "date") -> date:
    """
    Accept a date, a datetime or an ISO 'YYYY-MM-DD' string.

    Args:
        value: Candidate date value.
        field: Field name used in the error message.

    Returns:
        The calendar date.

    Raises:
        ValidationError: If the value is not a recognizable date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"Invalid {field}: {value!r}", details={"expected": "YYYY-MM-DD"})
