# === NAVMAP v1 ===
# {
#   "module": "BinaryStore.dialects",
#   "purpose": "Dialect detection, placeholder rendering and timestamp binding for DB-API drivers",
#   "sections": [
#     {"id": "normalize-dialect", "name": "normalize_dialect", "anchor": "function-normalize-dialect", "kind": "function"},
#     {"id": "detect-dialect", "name": "detect_dialect", "anchor": "function-detect-dialect", "kind": "function"},
#     {"id": "detect-paramstyle", "name": "detect_paramstyle", "anchor": "function-detect-paramstyle", "kind": "function"},
#     {"id": "render-placeholders", "name": "render_placeholders", "anchor": "function-render-placeholders", "kind": "function"},
#     {"id": "bind-parameters", "name": "bind_parameters", "anchor": "function-bind-parameters", "kind": "function"},
#     {"id": "timestamps", "name": "bind_timestamp / read_timestamp", "anchor": "function-bind-timestamp", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Glue between statement templates and PEP 249 drivers.

Statement templates are written once with ``?`` bind markers. The driver behind
a connection decides two things the templates cannot: which dialect override
file applies, and which ``paramstyle`` the markers must be rendered into. Both
are read from the driver module that defines the connection class, the same
way JDBC code reads ``DatabaseMetaData``.

Dialect Map
-----------
============================  ==========
Driver module                 Dialect
============================  ==========
``sqlite3``                   sqlite
``psycopg``/``psycopg2``      postgres
``pg8000``                    postgres
``pymysql``/``MySQLdb``       mysql
``mysql.connector``           mysql
``oracledb``/``cx_Oracle``    oracle
``pyodbc``/``pymssql``        sqlserver
anything else                 default
============================  ==========
"""

from __future__ import annotations

import importlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

DEFAULT_DIALECT = "default"
PARAMSTYLES = ("qmark", "format", "pyformat", "numeric", "named")

_DIALECT_ALIASES: Dict[str, str] = {
    "postgresql": "postgres",
    "pgsql": "postgres",
    "psql": "postgres",
    "sqlite3": "sqlite",
    "mariadb": "mysql",
    "mssql": "sqlserver",
    "sql_server": "sqlserver",
    "oracle_db": "oracle",
}

_DRIVER_DIALECTS: Dict[str, str] = {
    "sqlite3": "sqlite",
    "psycopg": "postgres",
    "psycopg2": "postgres",
    "pg8000": "postgres",
    "pymysql": "mysql",
    "MySQLdb": "mysql",
    "mysql": "mysql",
    "oracledb": "oracle",
    "cx_Oracle": "oracle",
    "pyodbc": "sqlserver",
    "pymssql": "sqlserver",
    "ibm_db_dbi": "db2",
    "duckdb": "duckdb",
}


def normalize_dialect(name: Optional[str]) -> str:
    """Lower-case a dialect name and fold known aliases.

    Examples:
        >>> normalize_dialect(" PostgreSQL ")
        'postgres'
        >>> normalize_dialect(None)
        'default'
    """
    if name is None or not name.strip():
        return DEFAULT_DIALECT
    normalized = name.strip().lower().replace("-", "_").replace(" ", "_")
    return _DIALECT_ALIASES.get(normalized, normalized)


def _driver_module_name(connection: Any) -> str:
    return type(connection).__module__.split(".")[0]


def detect_dialect(connection: Any) -> str:
    """Guess the dialect from the module that defines the connection class."""
    module_name = _driver_module_name(connection)
    dialect = _DRIVER_DIALECTS.get(module_name, DEFAULT_DIALECT)
    logger.debug(f"Detected dialect '{dialect}' from driver module '{module_name}'")
    return dialect


def detect_paramstyle(connection: Any) -> str:
    """Read the PEP 249 ``paramstyle`` of the connection's driver (qmark if unknown).

    The connection class may live in a submodule of the DB-API module
    (``mysql.connector.connection``), so the dotted path is walked from the
    longest prefix down to the first module that declares a ``paramstyle``.
    """
    parts = type(connection).__module__.split(".")
    for end in range(len(parts), 0, -1):
        module_name = ".".join(parts[:end])
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            continue
        style = getattr(module, "paramstyle", None)
        if style in PARAMSTYLES:
            logger.debug(f"Detected paramstyle '{style}' from driver module '{module_name}'")
            return style
    return "qmark"


def render_placeholders(sql: str, paramstyle: str) -> str:
    """Rewrite ``?`` bind markers for ``paramstyle``.

    Templates never carry ``?`` inside string literals, so a plain scan is
    enough. For the ``format`` styles literal percent signs are doubled, but
    only in statements that take parameters; drivers leave parameterless SQL
    untouched.
    """
    if paramstyle not in PARAMSTYLES:
        raise ValueError(f"Unsupported paramstyle: {paramstyle}")
    if paramstyle == "qmark" or "?" not in sql:
        return sql

    if paramstyle in ("format", "pyformat"):
        sql = sql.replace("%", "%%")

    parts = sql.split("?")
    rendered = [parts[0]]
    for index, part in enumerate(parts[1:], start=1):
        if paramstyle in ("format", "pyformat"):
            rendered.append("%s")
        elif paramstyle == "numeric":
            rendered.append(f":{index}")
        else:
            rendered.append(f":p{index}")
        rendered.append(part)
    return "".join(rendered)


def bind_parameters(
    values: Sequence[Any], paramstyle: str
) -> Union[Sequence[Any], Mapping[str, Any]]:
    """Shape positional values the way ``paramstyle`` expects them."""
    if paramstyle == "named":
        return {f"p{index}": value for index, value in enumerate(values, start=1)}
    return tuple(values)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def bind_timestamp(moment: datetime, dialect: str) -> Any:
    """Value to bind for a timestamp column.

    SQLite has no timestamp type; ISO-8601 text in UTC keeps ``<`` comparisons
    chronological. Other drivers adapt ``datetime`` themselves.
    """
    moment = as_utc(moment)
    if dialect == "sqlite":
        return moment.isoformat(sep=" ", timespec="microseconds")
    return moment


def read_timestamp(value: Any) -> Optional[datetime]:
    """Inverse of :func:`bind_timestamp` for values fetched from a row."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, bytes):
        value = value.decode("ascii")
    return as_utc(datetime.fromisoformat(str(value)))
