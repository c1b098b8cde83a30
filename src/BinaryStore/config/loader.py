"""Build a :class:`StoreConfig` from a file, the environment and overrides.

Later layers win: a YAML or JSON file is read first, then ``BINSTORE_*``
variables are laid over it, then the overrides passed by the caller. Nested
fields are addressed with a double underscore in variable names::

    BINSTORE_TABLE_PREFIX=MODESHAPE_
    BINSTORE_RETENTION__UNUSED_TTL_SECONDS=3600
    BINSTORE_STATEMENTS__OVERRIDES='{"postgres": "/etc/binstore/pg.properties"}'

Variable values are parsed as JSON where they parse, except for the plain
string settings in ``_STRING_KEYS``.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import StoreConfig

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "BINSTORE_"

# Values kept verbatim even when they look like JSON (a prefix such as "01_").
_STRING_KEYS = frozenset({"table_prefix", "dialect", "paramstyle", "existence_check"})


def _read_file(path: str) -> dict[str, Any]:
    """Parse a ``.yaml``/``.yml`` or ``.json`` file into a dict.

    Raises:
        ConfigurationError: If the file is missing, unreadable, malformed or
            has another suffix.
    """
    source = Path(path)
    if not source.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    suffix = source.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    raise ConfigurationError(f"Unsupported file format: {suffix}. Use .yaml or .json")


def _set_path(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    *parents, leaf = dotted_key.split(".")
    node = data
    for name in parents:
        if not isinstance(node.get(name), dict):
            node[name] = {}
        node = node[name]
    node[leaf] = value


def _parse_env_value(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        return value


def _apply_env(data: dict[str, Any], env_prefix: str = ENV_PREFIX) -> dict[str, Any]:
    for name, raw in os.environ.items():
        if not name.startswith(env_prefix):
            continue
        dotted_key = name[len(env_prefix) :].lower().replace("__", ".")
        value = raw if dotted_key in _STRING_KEYS else _parse_env_value(raw)
        _set_path(data, dotted_key, value)
        _LOGGER.debug(f"Environment override: {name} -> {dotted_key} = {value!r}")
    return data


def _apply_overrides(data: dict[str, Any], overrides: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge ``overrides`` into ``data``, recursing into nested sections."""
    for key, value in (overrides or {}).items():
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = _apply_overrides(data[key], value)
        else:
            data[key] = value
    return data


def load_config(
    path: Optional[str] = None,
    env_prefix: str = ENV_PREFIX,
    overrides: Optional[Mapping[str, Any]] = None,
) -> StoreConfig:
    """Load and validate the store configuration (file < env < overrides).

    Raises:
        ConfigurationError: If the file cannot be used or the merged values
            do not validate.
    """
    data: dict[str, Any] = {}
    if path:
        data = _read_file(path)
        _LOGGER.info(f"Loaded config from {path}")

    data = _apply_overrides(_apply_env(data, env_prefix), overrides)

    try:
        config = StoreConfig.model_validate(data)
    except ValidationError as e:
        _LOGGER.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(f"Invalid binary store configuration: {e}") from e

    _LOGGER.debug(f"Configuration validated for table '{config.table_name}'")
    return config


def export_config_schema() -> dict[str, Any]:
    """JSON Schema of :class:`StoreConfig`."""
    return StoreConfig.model_json_schema()
