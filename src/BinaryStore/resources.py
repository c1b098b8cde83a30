"""Cursor-backed statement handles and best-effort release helpers.

A DB-API cursor bound to one rendered template plays the role of a prepared
statement: it is opened once, executed any number of times with fresh
parameters, and closed exactly once.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from .dialects import bind_parameters, render_placeholders

logger = logging.getLogger(__name__)

__all__ = ["Statement", "close_quietly"]


def close_quietly(resource: Optional[Any], description: str) -> None:
    """Close ``resource`` and log, rather than raise, any failure."""
    if resource is None:
        return
    try:
        resource.close()
    except Exception as exc:
        logger.debug(f"Cannot close {description}: {exc}", exc_info=True)


class Statement:
    """One template rendered for a driver's paramstyle, executed on a cursor."""

    def __init__(self, connection: Any, key: str, sql: str, paramstyle: str = "qmark") -> None:
        self.key = key
        self.paramstyle = paramstyle
        self.sql = render_placeholders(sql, paramstyle)
        logger.debug(f"Preparing statement '{key}': {self.sql}")
        self.cursor = connection.cursor()
        self._closed = False

    def execute(self, *values: Any) -> Any:
        """Execute with ``values`` bound in template order; returns the cursor."""
        logger.debug(f"Executing statement '{self.key}'")
        if values:
            self.cursor.execute(self.sql, bind_parameters(values, self.paramstyle))
        else:
            self.cursor.execute(self.sql)
        return self.cursor

    def fetchone(self, *values: Any) -> Optional[Sequence[Any]]:
        return self.execute(*values).fetchone()

    def fetchall(self, *values: Any) -> list:
        return list(self.execute(*values).fetchall())

    @property
    def rowcount(self) -> int:
        count = getattr(self.cursor, "rowcount", -1)
        return count if isinstance(count, int) else -1

    @property
    def description(self) -> Optional[Sequence[Sequence[Any]]]:
        return getattr(self.cursor, "description", None)

    def close(self) -> None:
        """Release the cursor; failures are logged and swallowed."""
        if self._closed:
            return
        self._closed = True
        close_quietly(self.cursor, f"statement '{self.key}'")

    def __enter__(self) -> Statement:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Statement({self.key!r}, closed={self._closed})"
