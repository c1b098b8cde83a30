# === NAVMAP v1 ===
# {
#   "module": "BinaryStore.statements",
#   "purpose": "Per-dialect SQL statement templates with fallback to the default set",
#   "sections": [
#     {"id": "statement-keys", "name": "Statement keys", "anchor": "STK", "kind": "constants"},
#     {"id": "parse-statements", "name": "parse_statements", "anchor": "function-parse-statements", "kind": "function"},
#     {"id": "bundled-sources", "name": "bundled_sources", "anchor": "function-bundled-sources", "kind": "function"},
#     {"id": "statementcatalog", "name": "StatementCatalog", "anchor": "class-statementcatalog", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Statement templates for the binary content table.

Every operation of the store runs one named SQL template. A mandatory default
set is shipped as ``default.properties``; dialect files only need the keys
that differ. Files use ``key = value`` lines and ``{table}`` marks where the
table name goes.

Example:
    >>> catalog = StatementCatalog.bundled("CONTENT_STORE", dialect="postgres")
    >>> catalog.get(MARK_USED)
    'UPDATE CONTENT_STORE SET unused_since = NULL WHERE cid = ?'
"""

from __future__ import annotations

import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from ..dialects import DEFAULT_DIALECT, normalize_dialect
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "ADD_CONTENT",
    "GET_USED_CONTENT",
    "GET_UNUSED_CONTENT",
    "MARK_UNUSED",
    "MARK_USED",
    "REMOVE_EXPIRED",
    "GET_MIMETYPE",
    "SET_MIMETYPE",
    "GET_EXTRACTED_TEXT",
    "SET_EXTRACTED_TEXT",
    "GET_BINARY_KEYS",
    "GET_CONTENT_RECORD",
    "CREATE_TABLE",
    "TABLE_EXISTS",
    "STATEMENT_KEYS",
    "TABLE_PLACEHOLDER",
    "StatementCatalog",
    "StatementSource",
    "bundled_sources",
    "parse_statements",
]

# ============================================================================
# Statement keys
# ============================================================================

ADD_CONTENT = "add_content"
GET_USED_CONTENT = "get_used_content"
GET_UNUSED_CONTENT = "get_unused_content"
MARK_UNUSED = "mark_unused"
MARK_USED = "mark_used"
REMOVE_EXPIRED = "remove_expired"
GET_MIMETYPE = "get_mimetype"
SET_MIMETYPE = "set_mimetype"
GET_EXTRACTED_TEXT = "get_extracted_text"
SET_EXTRACTED_TEXT = "set_extracted_text"
GET_BINARY_KEYS = "get_binary_keys"
GET_CONTENT_RECORD = "get_content_record"
CREATE_TABLE = "create_table"
TABLE_EXISTS = "table_exists_query"

STATEMENT_KEYS = (
    ADD_CONTENT,
    GET_USED_CONTENT,
    GET_UNUSED_CONTENT,
    MARK_UNUSED,
    MARK_USED,
    REMOVE_EXPIRED,
    GET_MIMETYPE,
    SET_MIMETYPE,
    GET_EXTRACTED_TEXT,
    SET_EXTRACTED_TEXT,
    GET_BINARY_KEYS,
    GET_CONTENT_RECORD,
    CREATE_TABLE,
    TABLE_EXISTS,
)

TABLE_PLACEHOLDER = "{table}"
_SUFFIX = ".properties"

# A source is a file (path or importlib.resources traversable) or a mapping
# that was already loaded.
StatementSource = Union[str, "os.PathLike[str]", Mapping[str, str], Any]


def parse_statements(text: str) -> Dict[str, str]:
    """Parse ``key = value`` statement text.

    ``#`` and ``!`` start comment lines, ``:`` is accepted as separator and a
    trailing backslash continues the value on the next line.
    """
    statements: Dict[str, str] = {}
    pending = ""
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not pending and (not line or line[0] in "#!"):
            continue
        if line.endswith("\\"):
            pending += line[:-1].rstrip() + " "
            continue
        line = pending + line
        pending = ""
        if not line:
            continue
        key, value = _split_entry(line)
        statements[key] = value
    if pending.strip():
        key, value = _split_entry(pending.strip())
        statements[key] = value
    return statements


def _split_entry(line: str) -> tuple[str, str]:
    positions = [pos for pos in (line.find("="), line.find(":")) if pos >= 0]
    if not positions:
        return line, ""
    split_at = min(positions)
    return line[:split_at].strip(), line[split_at + 1 :].strip()


def bundled_sources() -> Dict[str, Any]:
    """Statement files shipped with the package, keyed by dialect name."""
    sources: Dict[str, Any] = {}
    for entry in resources.files(__name__).iterdir():
        if entry.name.endswith(_SUFFIX):
            sources[entry.name[: -len(_SUFFIX)]] = entry
    return sources


def _describe(source: StatementSource) -> str:
    if isinstance(source, Mapping):
        return "<mapping>"
    return str(source)


def _as_file(source: StatementSource) -> Any:
    if isinstance(source, (str, os.PathLike)):
        return Path(source)
    return source


# ============================================================================
# StatementCatalog
# ============================================================================


class StatementCatalog:
    """Merged default and dialect-specific statements for one table.

    Args:
        table_name: Name substituted for ``{table}`` in every template.
        dialect: Dialect whose override set applies (normalized first).
        default_source: Mandatory default set; the bundled ``default.properties``
            when omitted.
        override_sources: Dialect name to override set. Dialects without an
            entry, or whose file does not exist, use the default set unmodified.

    Raises:
        ConfigurationError: If the default set cannot be read, or an override
            file exists but cannot be read.
    """

    def __init__(
        self,
        table_name: str,
        dialect: Optional[str] = None,
        default_source: Optional[StatementSource] = None,
        override_sources: Optional[Mapping[str, StatementSource]] = None,
    ) -> None:
        self.table_name = table_name
        self.dialect = normalize_dialect(dialect)
        if default_source is None:
            default_source = bundled_sources()[DEFAULT_DIALECT]
        overrides = {normalize_dialect(name): src for name, src in (override_sources or {}).items()}

        self._defaults = self._load_defaults(default_source)
        self._statements = dict(self._defaults)
        self.override_source: Optional[str] = None

        override = overrides.get(self.dialect) if self.dialect != DEFAULT_DIALECT else None
        loaded = self._load_override(override)
        if loaded is not None:
            self._statements.update(loaded)
            self.override_source = _describe(override)

    @classmethod
    def bundled(cls, table_name: str, dialect: Optional[str] = None) -> StatementCatalog:
        """Catalog backed only by the statement files shipped with the package."""
        sources = bundled_sources()
        default = sources.pop(DEFAULT_DIALECT)
        return cls(table_name, dialect, default_source=default, override_sources=sources)

    @staticmethod
    def _load_defaults(source: StatementSource) -> Dict[str, str]:
        if isinstance(source, Mapping):
            return dict(source)
        path = _as_file(source)
        logger.debug(f"Loading default statements from '{path}'")
        try:
            return parse_statements(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(
                f"Default statement resource '{path}' is missing or unreadable: {exc}"
            ) from exc

    def _load_override(self, source: Optional[StatementSource]) -> Optional[Dict[str, str]]:
        if source is None:
            logger.debug(f"No dialect-specific statements for '{self.dialect}'")
            return None
        if isinstance(source, Mapping):
            return dict(source)
        path = _as_file(source)
        if not path.is_file():
            logger.debug(f"No dialect-specific statements found at '{path}'")
            return None
        logger.debug(f"Loading '{self.dialect}' statements from '{path}'")
        try:
            return parse_statements(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(
                f"Statement resource '{path}' for dialect '{self.dialect}' is unreadable: {exc}"
            ) from exc

    def get(self, key: str) -> str:
        """Template for ``key`` with the table name substituted.

        Raises:
            ConfigurationError: If no statement is defined under ``key``.
        """
        try:
            template = self._statements[key]
        except KeyError:
            raise ConfigurationError(
                f"No statement '{key}' defined for dialect '{self.dialect}'"
            ) from None
        return template.replace(TABLE_PLACEHOLDER, self.table_name)

    def raw(self, key: str) -> Optional[str]:
        """Unsubstituted template, or ``None``."""
        return self._statements.get(key)

    def is_overridden(self, key: str) -> bool:
        return key in self._statements and self._statements[key] != self._defaults.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._statements

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._statements))

    def __len__(self) -> int:
        return len(self._statements)

    def __repr__(self) -> str:
        return (
            f"StatementCatalog(table={self.table_name!r}, dialect={self.dialect!r}, "
            f"statements={len(self._statements)}, override={self.override_source!r})"
        )
