# SPDX-License-Identifier: Apache-2.0
"""YAML loading for ``InvoicingConfig``.

Files look like::

    config_version: "1"
    point-of-sale: 2
    include-vat: false
    database-path: ${INVOICEPIPE_HOME}/invoicepipe.db
    transport: sandbox

Top-level keys may use kebab-case; ``$VAR`` references are expanded before
parsing. Anything nested (``transport_options``) is handed to the transport
unchanged.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from .invoicing import CURRENT_CONFIG_VERSION, MIN_SUPPORTED_VERSION, InvoicingConfig

PathLike = Union[str, Path]


class ConfigVersionError(RuntimeError):
    """The file's ``config_version`` is missing or no longer supported."""


def load_config(path: Optional[PathLike] = None) -> InvoicingConfig:
    """Build an ``InvoicingConfig`` from ``path`` (defaults when ``None``).

    Raises:
        ConfigVersionError: If config_version is missing or below the minimum
        FileNotFoundError: If the YAML file doesn't exist
        ValueError: If the YAML is malformed or a value is rejected
    """
    if path is None:
        return InvoicingConfig()

    yaml_path = Path(path)
    if not yaml_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    data = _normalize_yaml_keys(_read_yaml(yaml_path))
    data["config_version"] = _check_version(data.get("config_version"))

    try:
        return InvoicingConfig(**data)
    except PydanticValidationError as e:
        raise ValueError(f"Invalid configuration in {path}: {e}") from e


def _read_yaml(path: Path) -> Dict[str, Any]:
    text = os.path.expandvars(path.read_text(encoding="utf-8"))
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("YAML file must contain a dictionary at the root level")
    return data


def _check_version(raw: Any) -> str:
    version = "" if raw is None else str(raw).strip()
    if not version:
        raise ConfigVersionError(
            'config_version missing. Add `config_version: "1"` to your YAML.'
        )
    if not version.isdigit():
        raise ConfigVersionError(f"config_version must be a whole number, got {version!r}")

    if int(version) < int(MIN_SUPPORTED_VERSION):
        raise ConfigVersionError(
            f"Config version {version} is too old. "
            f"Minimum supported is {MIN_SUPPORTED_VERSION}; please migrate the file."
        )
    if int(version) > int(CURRENT_CONFIG_VERSION):
        warnings.warn(
            f"This release understands config_version {CURRENT_CONFIG_VERSION}, "
            f"but the file declares {version}. Attempting best-effort parse.",
            UserWarning,
            stacklevel=3,
        )
    return version


def _normalize_yaml_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(key).replace("-", "_"): value for key, value in data.items()}
