"""
BinaryStore Configuration Package

Public API for loading and validating binary store configuration.

Example:
    from BinaryStore.config import load_config

    config = load_config(
        path="binarystore.yaml",
        overrides={"table_prefix": "MODESHAPE_"},
    )
    config.table_name  # 'MODESHAPE_CONTENT_STORE'
"""

from .loader import ENV_PREFIX, export_config_schema, load_config
from .models import (
    DEFAULT_MAX_EXTRACTED_TEXT_LENGTH,
    TABLE_BASE_NAME,
    RetentionConfig,
    StatementSources,
    StoreConfig,
    table_name_for,
)

__all__ = [
    # Models
    "StoreConfig",
    "StatementSources",
    "RetentionConfig",
    "table_name_for",
    "TABLE_BASE_NAME",
    "DEFAULT_MAX_EXTRACTED_TEXT_LENGTH",
    # Loading
    "load_config",
    "export_config_schema",
    "ENV_PREFIX",
]
