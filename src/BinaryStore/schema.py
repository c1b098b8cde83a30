"""Idempotent creation of the binary content table."""

from __future__ import annotations

import logging
import re
from typing import Any, Literal

from .errors import StorageInitializationError
from .resources import Statement
from .statements import CREATE_TABLE, TABLE_EXISTS, StatementCatalog

logger = logging.getLogger(__name__)

__all__ = ["SchemaInitializer", "is_missing_table_error", "ExistenceCheck"]

ExistenceCheck = Literal["lenient", "strict"]

_MISSING_TABLE_SQLSTATES = frozenset({"42P01", "42S02", "42704"})
_MISSING_TABLE_MESSAGE = re.compile(
    r"no such table"
    r"|(?:relation|table)\s+\S+\s+(?:does not|doesn't) exist"
    r"|invalid object name|unknown table|ORA-00942",
    re.IGNORECASE,
)


def is_missing_table_error(exc: BaseException) -> bool:
    """True if ``exc`` reports a missing table rather than some other failure.

    Uses the SQLSTATE when the driver exposes one (``sqlstate`` on psycopg,
    ``pgcode`` on psycopg2, ``diag.sqlstate``); otherwise the message must
    name a missing table or relation.
    """
    candidates = [getattr(exc, "sqlstate", None), getattr(exc, "pgcode", None)]
    candidates.append(getattr(getattr(exc, "diag", None), "sqlstate", None))
    codes = [code.upper() for code in candidates if isinstance(code, str) and code]
    if codes:
        return any(code in _MISSING_TABLE_SQLSTATES for code in codes)
    return bool(_MISSING_TABLE_MESSAGE.search(str(exc)))


class SchemaInitializer:
    """Makes sure the content table exists before the store is used.

    In ``lenient`` mode any failure of the existence check is read as "table
    absent", which also covers connectivity hiccups. ``strict`` mode only
    accepts missing-table errors as absence and fails on anything else.
    """

    def __init__(
        self,
        catalog: StatementCatalog,
        paramstyle: str = "qmark",
        strictness: ExistenceCheck = "lenient",
    ) -> None:
        if strictness not in ("lenient", "strict"):
            raise ValueError(f"Unknown existence check mode: {strictness}")
        self.catalog = catalog
        self.paramstyle = paramstyle
        self.strictness = strictness

    @property
    def table_name(self) -> str:
        return self.catalog.table_name

    def table_exists(self, connection: Any) -> bool:
        """Run the existence check.

        Raises:
            StorageInitializationError: In strict mode, when the check fails
                for a reason other than a missing table.
        """
        sql = self.catalog.get(TABLE_EXISTS)
        try:
            with Statement(connection, TABLE_EXISTS, sql, self.paramstyle) as check:
                check.execute()
            return True
        except Exception as exc:
            if self.strictness == "strict" and not is_missing_table_error(exc):
                raise StorageInitializationError(
                    f"Cannot determine whether table '{self.table_name}' exists: {exc}",
                    table_name=self.table_name,
                    dialect=self.catalog.dialect,
                ) from exc
            logger.debug(f"Existence check for '{self.table_name}' failed: {exc}")
            return False

    def ensure_table(self, connection: Any) -> bool:
        """Create the table if the check says it is missing.

        Returns:
            True if the table was created by this call.

        Raises:
            StorageInitializationError: If the table is missing and cannot be
                created.
        """
        if self.table_exists(connection):
            return False

        logger.info(
            f"Unable to find existing table. Creating '{self.table_name}' "
            f"(dialect '{self.catalog.dialect}')"
        )
        sql = self.catalog.get(CREATE_TABLE)
        try:
            with Statement(connection, CREATE_TABLE, sql, self.paramstyle) as create:
                create.execute()
        except Exception as exc:
            raise StorageInitializationError(
                f"Error creating table '{self.table_name}' for dialect '{self.catalog.dialect}': {exc}",
                table_name=self.table_name,
                dialect=self.catalog.dialect,
            ) from exc
        return True

