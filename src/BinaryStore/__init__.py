# === NAVMAP v1 ===
# {
#   "module": "BinaryStore.__init__",
#   "purpose": "Content-addressed binary storage on a relational table.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Content-Addressed Binary Storage on a Relational Table.

Stores deduplicated binary values in one table keyed by a content digest,
through any PEP 249 (DB-API) connection the caller supplies:
  - Per-dialect SQL templates layered over a mandatory default set
  - Idempotent table creation on first use
  - Streaming reads that own their statement and connection
  - Active/Unused lifecycle with deadline-based removal of unused values
  - Mime-type and extracted-text metadata
"""

from __future__ import annotations

from BinaryStore.config import StoreConfig, load_config
from BinaryStore.errors import (
    BinaryStoreError,
    ConfigurationError,
    StorageInitializationError,
    TransientQueryFailure,
)
from BinaryStore.gc import RetentionPolicy, SweepResult, collect_garbage
from BinaryStore.models import ContentKey, ContentRecord, UsageState
from BinaryStore.schema import SchemaInitializer
from BinaryStore.statements import StatementCatalog
from BinaryStore.store import ContentStore
from BinaryStore.streams import StreamingReader

__version__ = "1.0.0"
__all__ = [
    "ContentStore",
    "StatementCatalog",
    "SchemaInitializer",
    "StreamingReader",
    "ContentKey",
    "ContentRecord",
    "UsageState",
    "StoreConfig",
    "load_config",
    "RetentionPolicy",
    "SweepResult",
    "collect_garbage",
    "BinaryStoreError",
    "ConfigurationError",
    "StorageInitializationError",
    "TransientQueryFailure",
]
