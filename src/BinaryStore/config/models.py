"""
Pydantic v2 Configuration Models for BinaryStore

- Table naming (optional prefix in front of ``CONTENT_STORE``)
- Dialect and paramstyle selection (detected from the connection when unset)
- Statement sources (default file plus per-dialect override files)
- Existence check mode and extracted-text capacity
- Retention of unused binaries

All models use extra="forbid" for strict validation. Environment variables
and programmatic overrides follow: file < env < overrides precedence.
"""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TABLE_BASE_NAME = "CONTENT_STORE"
DEFAULT_MAX_EXTRACTED_TEXT_LENGTH = 1000


def table_name_for(prefix: Optional[str]) -> str:
    """Prepend a trimmed, non-blank ``prefix`` to the base table name."""
    stripped = prefix.strip() if prefix else ""
    return f"{stripped}{TABLE_BASE_NAME}" if stripped else TABLE_BASE_NAME


class StatementSources(BaseModel):
    """Where statement templates come from.

    ``default`` replaces the bundled default set. ``overrides`` maps dialect
    names to override files; when ``use_bundled_overrides`` is set the bundled
    dialect files fill in dialects not listed here.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    default: Optional[Path] = Field(default=None, description="Default statement file")
    overrides: Dict[str, Path] = Field(
        default_factory=dict, description="Dialect name to override statement file"
    )
    use_bundled_overrides: bool = Field(
        default=True, description="Fall back to dialect files shipped with the package"
    )


class RetentionConfig(BaseModel):
    """How long unused binaries survive before a sweep removes them."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    unused_ttl_seconds: float = Field(
        default=7 * 24 * 3600.0, description="Minimum time a binary stays unused before removal"
    )

    @field_validator("unused_ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        if v < 0:
            raise ValueError("unused_ttl_seconds must be >= 0")
        return v


class StoreConfig(BaseModel):
    """Top-level configuration of a :class:`BinaryStore.store.ContentStore`."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    table_prefix: Optional[str] = Field(default=None, description="Prefix for CONTENT_STORE")
    dialect: Optional[str] = Field(
        default=None, description="Dialect name; detected from the connection when unset"
    )
    paramstyle: Optional[Literal["qmark", "format", "pyformat", "numeric", "named"]] = Field(
        default=None, description="Bind-marker style; read from the driver when unset"
    )
    existence_check: Literal["lenient", "strict"] = Field(
        default="lenient", description="Which existence-check failures mean 'table absent'"
    )
    max_extracted_text_length: Optional[int] = Field(
        default=None, description="Extracted-text capacity; discovered from the column when unset"
    )
    statements: StatementSources = Field(default_factory=StatementSources)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)

    @field_validator("max_extracted_text_length")
    @classmethod
    def validate_capacity(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("max_extracted_text_length must be > 0 or None")
        return v

    @property
    def table_name(self) -> str:
        return table_name_for(self.table_prefix)
