"""Database-backed content store for deduplicated binary values.

Provides the lifecycle of a binary value keyed by its content:
  - insert as Active, look up, stream back
  - mark Unused in batches and restore in batches
  - physically remove Unused values past a deadline
  - mime-type and extracted-text metadata

Connections are supplied per call and never created here. Every operation
except :meth:`ContentStore.read` opens one statement, uses it and closes it
before returning. ``read`` hands the statement and the connection to the
returned :class:`~BinaryStore.streams.StreamingReader`, or closes both itself
when nothing is found or the lookup fails.
"""

from __future__ import annotations

import contextlib
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Set, Tuple, Union

from .config import DEFAULT_MAX_EXTRACTED_TEXT_LENGTH, StoreConfig, load_config
from .dialects import (
    DEFAULT_DIALECT,
    bind_timestamp,
    detect_dialect,
    detect_paramstyle,
    normalize_dialect,
    read_timestamp,
    utc_now,
)
from .errors import BinaryStoreError, TransientQueryFailure
from .models import ContentRecord, KeyLike, UsageState
from .resources import Statement, close_quietly
from .schema import SchemaInitializer
from .statements import (
    ADD_CONTENT,
    GET_BINARY_KEYS,
    GET_CONTENT_RECORD,
    GET_EXTRACTED_TEXT,
    GET_MIMETYPE,
    GET_UNUSED_CONTENT,
    GET_USED_CONTENT,
    MARK_UNUSED,
    MARK_USED,
    REMOVE_EXPIRED,
    SET_EXTRACTED_TEXT,
    SET_MIMETYPE,
    StatementCatalog,
    bundled_sources,
)
from .streams import StreamingReader

logger = logging.getLogger(__name__)

__all__ = ["ContentStore"]

EXTRACTED_TEXT_COLUMN = "ext_text"

Payload = Union[bytes, bytearray, memoryview, Any]


def _key(key: KeyLike) -> str:
    return str(key)


def _read_payload(stream: Payload, size: int) -> bytes:
    if isinstance(stream, (bytes, bytearray, memoryview)):
        data = bytes(stream)
        return data if size is None or size < 0 else data[:size]
    data = stream.read() if size is None or size < 0 else stream.read(size)
    return bytes(data or b"")


def _column_size(description: Optional[Sequence[Sequence[Any]]]) -> Optional[int]:
    """First positive ``display_size``/``internal_size`` of a one-column description."""
    if not description:
        return None
    column = description[0]
    for index in (2, 3):
        size = column[index] if len(column) > index else None
        if isinstance(size, int) and size > 0:
            return size
    return None


class ContentStore:
    """CRUD and lifecycle operations on the binary content table.

    Construction loads the statement catalog, creates the table when it is
    missing and checks the extracted-text capacity, all on ``connection``,
    which is left open.

    Args:
        connection: DB-API connection used for initialization only.
        config: Store configuration; defaults apply when omitted.
        catalog: Pre-built statement catalog; replaces the configured sources.
        clock: Returns "now" for insert and mark-unused timestamps.

    Raises:
        ConfigurationError: If the default statements cannot be loaded.
        StorageInitializationError: If the table is missing and cannot be created.
    """

    def __init__(
        self,
        connection: Any,
        config: Optional[StoreConfig] = None,
        *,
        catalog: Optional[StatementCatalog] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or StoreConfig()
        self._clock = clock or utc_now
        self._paramstyle = self.config.paramstyle or detect_paramstyle(connection)

        if catalog is None:
            if self.config.dialect:
                dialect = normalize_dialect(self.config.dialect)
            else:
                dialect = detect_dialect(connection)
            catalog = self._build_catalog(self.config.table_name, dialect)
        self.catalog = catalog
        logger.debug(
            f"Using dialect '{catalog.dialect}' and paramstyle '{self._paramstyle}' "
            f"for table '{catalog.table_name}'"
        )

        self.schema = SchemaInitializer(catalog, self._paramstyle, self.config.existence_check)
        self.schema.ensure_table(connection)

        self._max_extracted_text_length = (
            self.config.max_extracted_text_length or self._discover_text_capacity(connection)
        )
        logger.debug(f"Using max length for extracted text '{self._max_extracted_text_length}'")

    @classmethod
    def from_config(
        cls,
        connection: Any,
        path: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> ContentStore:
        """Load configuration (file < env < overrides) and build a store."""
        return cls(connection, load_config(path=path, overrides=overrides), **kwargs)

    def _build_catalog(self, table_name: str, dialect: str) -> StatementCatalog:
        sources = self.config.statements
        bundled = bundled_sources()
        bundled_default = bundled.pop(DEFAULT_DIALECT)
        default = sources.default or bundled_default
        overrides = dict(bundled) if sources.use_bundled_overrides else {}
        overrides.update(sources.overrides)
        return StatementCatalog(table_name, dialect, default_source=default, override_sources=overrides)

    def _discover_text_capacity(self, connection: Any) -> int:
        sql = self.catalog.get(GET_EXTRACTED_TEXT)
        try:
            with Statement(connection, GET_EXTRACTED_TEXT, sql, self._paramstyle) as check:
                check.execute("")
                size = _column_size(check.description)
        except Exception as exc:
            logger.debug(
                f"Cannot determine the maximum size of column '{EXTRACTED_TEXT_COLUMN}'. "
                f"Defaulting to {DEFAULT_MAX_EXTRACTED_TEXT_LENGTH}: {exc}"
            )
            return DEFAULT_MAX_EXTRACTED_TEXT_LENGTH
        return size or DEFAULT_MAX_EXTRACTED_TEXT_LENGTH

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def table_name(self) -> str:
        return self.catalog.table_name

    @property
    def dialect(self) -> str:
        return self.catalog.dialect

    @property
    def paramstyle(self) -> str:
        return self._paramstyle

    @property
    def max_extracted_text_length(self) -> int:
        return self._max_extracted_text_length

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _prepare(self, statement_key: str, connection: Any) -> Statement:
        return Statement(connection, statement_key, self.catalog.get(statement_key), self._paramstyle)

    def _timestamp(self, moment: Optional[datetime] = None) -> Any:
        return bind_timestamp(moment if moment is not None else self._clock(), self.dialect)

    def _matches(self, statement_key: str, cid: str, connection: Any) -> bool:
        with self._prepare(statement_key, connection) as statement:
            return statement.fetchone(cid) is not None

    def _fetch_payload(
        self, statement_key: str, cid: str, connection: Any
    ) -> Optional[Tuple[Statement, Any]]:
        """Open statement and payload value for ``cid``, or ``None`` with the statement closed."""
        with contextlib.ExitStack() as scope:
            statement = self._prepare(statement_key, connection)
            scope.callback(statement.close)
            row = statement.fetchone(cid)
            if row is None:
                return None
            scope.pop_all()
            return statement, row[0]

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def insert(self, key: KeyLike, stream: Payload, size: int, connection: Any) -> None:
        """Store a payload as Active under ``key``.

        ``stream`` is closed whether or not the insert succeeds. At most
        ``size`` bytes are stored, for streams and bytes alike; -1 stores
        everything.
        """
        cid = _key(key)
        try:
            payload = _read_payload(stream, size)
            with self._prepare(ADD_CONTENT, connection) as statement:
                statement.execute(cid, self._timestamp(), payload)
            logger.debug(f"Stored {len(payload)} bytes under key '{cid}'")
        finally:
            if hasattr(stream, "close"):
                close_quietly(stream, "payload stream")

    def exists(self, key: KeyLike, active_only: bool, connection: Any) -> bool:
        """Best-effort check for ``key`` among Active (or Unused) values.

        Query failures are logged and reported as ``False``.
        """
        cid = _key(key)
        statement_key = GET_USED_CONTENT if active_only else GET_UNUSED_CONTENT
        try:
            return self._matches(statement_key, cid, connection)
        except BinaryStoreError:
            raise
        except Exception as exc:
            logger.debug(f"Cannot determine if content exists under key '{cid}': {exc}")
            return False

    def read(self, key: KeyLike, connection: Any) -> Optional[StreamingReader]:
        """Stream the payload stored under ``key``, Active values first.

        On success the returned reader owns ``connection`` and closes it with
        itself. When nothing is found, or the lookup fails, ``connection`` is
        closed before this method returns or raises.

        Raises:
            TransientQueryFailure: If the lookup fails in the driver.
        """
        cid = _key(key)
        with contextlib.ExitStack() as owned:
            owned.callback(close_quietly, connection, "connection")
            try:
                for statement_key in (GET_USED_CONTENT, GET_UNUSED_CONTENT):
                    found = self._fetch_payload(statement_key, cid, connection)
                    if found is None:
                        continue
                    statement, payload = found
                    owned.callback(statement.close)
                    reader = StreamingReader(payload, statement, connection)
                    owned.pop_all()
                    return reader
            except BinaryStoreError:
                raise
            except Exception as exc:
                raise TransientQueryFailure(
                    f"Cannot read content under key '{cid}': {exc}", key=cid
                ) from exc
        logger.debug(f"No content found under key '{cid}'")
        return None

    def state(self, key: KeyLike, connection: Any) -> UsageState:
        """Lifecycle state of ``key``; query failures propagate."""
        cid = _key(key)
        if self._matches(GET_USED_CONTENT, cid, connection):
            return UsageState.ACTIVE
        if self._matches(GET_UNUSED_CONTENT, cid, connection):
            return UsageState.UNUSED
        return UsageState.DELETED

    def get_record(self, key: KeyLike, connection: Any) -> Optional[ContentRecord]:
        with self._prepare(GET_CONTENT_RECORD, connection) as statement:
            row = statement.fetchone(_key(key))
        if row is None:
            return None
        return ContentRecord(
            key=row[0],
            usage_time=read_timestamp(row[1]),
            unused_since=read_timestamp(row[2]),
            mime_type=row[3],
            extracted_text=row[4],
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mark_unused(
        self,
        keys: Iterable[KeyLike],
        connection: Any,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Move Active values to Unused, stamping them with ``timestamp`` (now).

        Each key is updated by its own execution of one statement; a failure
        part way leaves earlier keys updated.
        """
        moment = self._timestamp(timestamp)
        with self._prepare(MARK_UNUSED, connection) as statement:
            for key in keys:
                statement.execute(moment, _key(key))

    def restore(self, keys: Iterable[KeyLike], connection: Any) -> None:
        """Move Unused values back to Active."""
        with self._prepare(MARK_USED, connection) as statement:
            for key in keys:
                statement.execute(_key(key))

    def remove_expired(self, deadline: datetime, connection: Any) -> int:
        """Delete Unused values whose unused-since time is before ``deadline``.

        Returns:
            Rows deleted, or -1 if the driver does not report it.
        """
        with self._prepare(REMOVE_EXPIRED, connection) as statement:
            statement.execute(self._timestamp(deadline))
            removed = statement.rowcount
        logger.debug(f"Removed {removed} unused values older than {deadline.isoformat()}")
        return removed

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_mime_type(self, key: KeyLike, connection: Any) -> Optional[str]:
        with self._prepare(GET_MIMETYPE, connection) as statement:
            row = statement.fetchone(_key(key))
        return row[0] if row is not None else None

    def set_mime_type(self, key: KeyLike, mime_type: Optional[str], connection: Any) -> None:
        with self._prepare(SET_MIMETYPE, connection) as statement:
            statement.execute(mime_type, _key(key))

    def get_extracted_text(self, key: KeyLike, connection: Any) -> Optional[str]:
        with self._prepare(GET_EXTRACTED_TEXT, connection) as statement:
            row = statement.fetchone(_key(key))
        return row[0] if row is not None else None

    def set_extracted_text(self, key: KeyLike, text: Optional[str], connection: Any) -> None:
        """Store extracted text, truncated to the column capacity."""
        limit = self._max_extracted_text_length
        if text is not None and len(text) > limit:
            logger.warning(
                f"Extracted text for '{_key(key)}' is {len(text)} characters; column "
                f"'{EXTRACTED_TEXT_COLUMN}' of '{self.table_name}' holds {limit}. Truncating."
            )
            text = text[:limit]
        with self._prepare(SET_EXTRACTED_TEXT, connection) as statement:
            statement.execute(text, _key(key))

    def list_keys(self, connection: Any) -> Set[str]:
        """All keys returned by ``get_binary_keys`` (Active keys by default)."""
        with self._prepare(GET_BINARY_KEYS, connection) as statement:
            return {row[0] for row in statement.fetchall()}

    def __repr__(self) -> str:
        return f"ContentStore(table={self.table_name!r}, dialect={self.dialect!r})"
