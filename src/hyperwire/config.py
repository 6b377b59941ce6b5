from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .errors import ConfigError
from .settings import Settings

ENV_PREFIX = "HYPERWIRE_"
DEFAULT_CONFIG = "config.yml"

# Variables read elsewhere, not settings fields.
_RESERVED = {"CONFIG", "LOG_LEVEL", "LOG_DIR"}
# Hex strings YAML would otherwise turn into integers.
_TEXT_FIELDS = {"private_key", "account_address", "vault_address", "base_url"}


def read_config_file(path: Path) -> dict[str, Any]:
    """Return the YAML mapping at ``path``; a missing or empty file is ``{}``."""
    if not path.exists():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config root must be a mapping, got: {type(loaded)!r}")
    return loaded


def _set_path(tree: dict[str, Any], path: list[str], value: Any) -> None:
    node = tree
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = node[key] = {}
        node = child
    node[path[-1]] = value


def _env_value(field: str, raw: str) -> Any:
    if field in _TEXT_FIELDS:
        return raw
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay ``HYPERWIRE_<SECTION>__<KEY>`` variables onto ``data``.

    ``HYPERWIRE_NETWORK=testnet`` is accepted as shorthand for
    ``HYPERWIRE_NETWORK__NAME``.
    """
    merged: dict[str, Any] = {k: (dict(v) if isinstance(v, dict) else v) for k, v in data.items()}

    for name in sorted(environ):
        if not name.startswith(ENV_PREFIX):
            continue
        remainder = name[len(ENV_PREFIX):]
        if remainder in _RESERVED:
            continue

        path = [part.lower() for part in remainder.split("__") if part]
        if path == ["network"]:
            path = ["network", "name"]
        if not path:
            continue
        _set_path(merged, path, _env_value(path[-1], environ[name]))

    return merged


def load_settings(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = env.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG)

    data = apply_env_overrides(read_config_file(Path(config_path)), env)

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
