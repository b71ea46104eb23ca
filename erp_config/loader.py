"""
YAML loader for ERP configuration.

Reads a YAML document into ``erp_config.schema.ErpConfig``.

Resolution order:

1. ``path`` argument, else ``ERP_CONFIG_FILE``, else the packaged
   ``defaults/erp.yaml``.
2. ``ERP_DATABASE_URL`` (when set) replaces ``database.url``.

Failure modes:

* Missing file, malformed YAML, a non-mapping document or a schema
  violation all raise ``ConfigLoadError`` naming the file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from erp_config.schema import ErpConfig

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "erp.yaml"
CONFIG_FILE_ENV = "ERP_CONFIG_FILE"
DATABASE_URL_ENV = "ERP_DATABASE_URL"


class ConfigLoadError(Exception):
    """Configuration could not be read or does not satisfy the schema."""

    def __init__(self, path: Path | None, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load configuration {path or '<dict>'}: {reason}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigLoadError: missing file, invalid YAML, or a top level that is
            not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigLoadError(path, "file not found") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(path, f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(path, f"top level must be a mapping, got {type(data).__name__}")
    return data


def parse_config(data: dict[str, Any], path: Path | None = None) -> ErpConfig:
    try:
        return ErpConfig.from_dict(data)
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigLoadError(path, str(exc)) from exc


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ErpConfig:
    """
    Build an ErpConfig from YAML plus environment overrides.

    Args:
        path: YAML file; defaults to ``$ERP_CONFIG_FILE`` or the packaged
            defaults.
        environ: Environment mapping (``os.environ`` when omitted).
    """
    environ = os.environ if environ is None else environ
    if path is None:
        path = environ.get(CONFIG_FILE_ENV) or DEFAULT_CONFIG_PATH
    path = Path(path)

    data = load_yaml_file(path)
    database_url = environ.get(DATABASE_URL_ENV)
    if database_url:
        data = {**data, "database": {**(data.get("database") or {}), "url": database_url}}
    return parse_config(data, path)
