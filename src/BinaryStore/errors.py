# === NAVMAP v1 ===
# {
#   "module": "BinaryStore.errors",
#   "purpose": "Exception hierarchy for the database-backed binary store",
#   "sections": [
#     {"id": "base", "name": "BinaryStoreError", "anchor": "class-binarystoreerror", "kind": "class"},
#     {"id": "configuration", "name": "ConfigurationError", "anchor": "class-configurationerror", "kind": "class"},
#     {"id": "initialization", "name": "StorageInitializationError", "anchor": "class-storageinitializationerror", "kind": "class"},
#     {"id": "query", "name": "TransientQueryFailure", "anchor": "class-transientqueryfailure", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared by the statement catalog, schema bootstrap and store.

Startup failures (a missing default statement file, a table that cannot be
created) are fatal and surface as :class:`ConfigurationError` or
:class:`StorageInitializationError`. Per-call failures are either the driver's
own exceptions, propagated unchanged, or :class:`TransientQueryFailure` when a
streaming read had to release its resources before giving up.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "BinaryStoreError",
    "ConfigurationError",
    "StorageInitializationError",
    "TransientQueryFailure",
]


class BinaryStoreError(RuntimeError):
    """Base exception for binary store failures."""


class ConfigurationError(BinaryStoreError):
    """Raised when statement resources or store configuration are unusable."""


class StorageInitializationError(BinaryStoreError):
    """Raised when the backing table cannot be created."""

    def __init__(self, message: str, *, table_name: str, dialect: Optional[str] = None) -> None:
        super().__init__(message)
        self.table_name = table_name
        self.dialect = dialect


class TransientQueryFailure(BinaryStoreError):
    """Raised when a lookup fails after its connection has been released."""

    def __init__(self, message: str, *, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key
