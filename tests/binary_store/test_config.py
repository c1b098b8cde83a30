"""Tests for configuration models and file < env < override precedence."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from BinaryStore.config import StoreConfig, export_config_schema, load_config, table_name_for
from BinaryStore.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("BINSTORE_"):
            monkeypatch.delenv(key)


class TestTableNaming:
    @pytest.mark.parametrize(
        "prefix, expected",
        [
            (None, "CONTENT_STORE"),
            ("", "CONTENT_STORE"),
            ("   ", "CONTENT_STORE"),
            ("MODESHAPE_", "MODESHAPE_CONTENT_STORE"),
            ("  APP_ ", "APP_CONTENT_STORE"),
        ],
    )
    def test_prefix(self, prefix, expected) -> None:
        assert table_name_for(prefix) == expected
        assert StoreConfig(table_prefix=prefix).table_name == expected


class TestModels:
    def test_defaults(self) -> None:
        config = StoreConfig()

        assert config.dialect is None
        assert config.paramstyle is None
        assert config.existence_check == "lenient"
        assert config.max_extracted_text_length is None
        assert config.statements.use_bundled_overrides is True
        assert config.retention.unused_ttl_seconds == 7 * 24 * 3600

    def test_unknown_fields_are_rejected(self) -> None:
        with pytest.raises(ValueError):
            StoreConfig.model_validate({"table_prefx": "X_"})

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            StoreConfig(max_extracted_text_length=0)

    def test_schema_export(self) -> None:
        schema = export_config_schema()
        assert "table_prefix" in schema["properties"]


class TestLoadConfig:
    """Precedence: file < environment < overrides."""

    @pytest.fixture
    def yaml_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "binarystore.yaml"
        path.write_text(
            "table_prefix: FILE_\n"
            "existence_check: strict\n"
            "retention:\n"
            "  unused_ttl_seconds: 60\n",
            encoding="utf-8",
        )
        return path

    def test_file(self, yaml_file: Path) -> None:
        config = load_config(path=str(yaml_file))

        assert config.table_name == "FILE_CONTENT_STORE"
        assert config.existence_check == "strict"
        assert config.retention.unused_ttl_seconds == 60

    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "binarystore.json"
        path.write_text(json.dumps({"dialect": "postgres"}), encoding="utf-8")

        assert load_config(path=str(path)).dialect == "postgres"

    def test_env_beats_file(self, yaml_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BINSTORE_TABLE_PREFIX", "ENV_")
        monkeypatch.setenv("BINSTORE_RETENTION__UNUSED_TTL_SECONDS", "120")

        config = load_config(path=str(yaml_file))

        assert config.table_name == "ENV_CONTENT_STORE"
        assert config.retention.unused_ttl_seconds == 120

    def test_string_fields_are_not_coerced(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BINSTORE_TABLE_PREFIX", "2024")
        assert load_config().table_prefix == "2024"

    def test_overrides_beat_env(self, yaml_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BINSTORE_TABLE_PREFIX", "ENV_")

        config = load_config(
            path=str(yaml_file),
            overrides={"table_prefix": "CLI_", "retention": {"unused_ttl_seconds": 5}},
        )

        assert config.table_name == "CLI_CONTENT_STORE"
        assert config.retention.unused_ttl_seconds == 5
        assert config.existence_check == "strict"

    def test_statement_overrides_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BINSTORE_STATEMENTS__OVERRIDES", '{"postgres": "/etc/pg.properties"}')

        config = load_config()

        assert config.statements.overrides == {"postgres": Path("/etc/pg.properties")}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(path=str(tmp_path / "absent.yaml"))

    def test_unsupported_format(self, tmp_path: Path) -> None:
        path = tmp_path / "binarystore.toml"
        path.write_text("table_prefix = 'X'\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Unsupported"):
            load_config(path=str(path))

    def test_invalid_values(self) -> None:
        with pytest.raises(ConfigurationError):
            load_config(overrides={"existence_check": "sometimes"})
