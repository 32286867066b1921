"""Configuration loader for the Koinos command line client.

Values resolve in this order: explicit overrides (command line flags),
``KOINOS_*`` environment variables, then the YAML file
(``~/.koinos-cli.yaml`` unless another path is given), then defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, List, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".koinos-cli.yaml"
DEFAULT_HISTORY_FILE = Path.home() / ".koinos_history"
DEFAULT_RC_FILES = ("~/.koinosrc", ".koinosrc")
DEFAULT_RC_LIMIT = "100%"


@dataclass
class CLIConfig:
    """Settings shared by the command line front end and the environment."""

    rpc_url: str | None = None
    rc_limit: str = DEFAULT_RC_LIMIT
    history_file: Path = DEFAULT_HISTORY_FILE
    rc_files: List[str] = field(default_factory=lambda: list(DEFAULT_RC_FILES))


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_url(raw: str | None, *, source: str) -> str | None:
    if not raw:
        return None
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL in {source}: {raw}")
    return raw


def parse_rc_limit(raw: Any, *, source: str = "configuration") -> tuple[Decimal, bool]:
    """Parse ``"80%"`` (relative) or ``"1.5"`` (absolute mana) rc limits.

    Returns the value and whether it is absolute. Relative values are
    returned as a fraction between 0 and 1.
    """

    text = str(raw).strip()
    relative = text.endswith("%")
    try:
        value = Decimal(text[:-1] if relative else text)
    except InvalidOperation as exc:
        raise ConfigurationError(f"Invalid rc limit in {source}: {raw}") from exc
    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"Invalid rc limit in {source}: {raw}")
    if relative:
        if value > 100:
            raise ConfigurationError(f"Invalid rc limit in {source}: {raw}")
        return value / 100, False
    return value, True


def load_cli_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> CLIConfig:
    """Load CLI configuration from overrides, environment variables and YAML."""

    env_map = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path is not None else DEFAULT_CONFIG_PATH
    file_config = _load_config_file(path, required=config_path is not None)
    override_map = dict(overrides or {})

    rpc_url = _first_value(
        _validate_url(override_map.get("rpc_url"), source="command line"),
        _validate_url(env_map.get("KOINOS_RPC_URL"), source="KOINOS_RPC_URL"),
        _validate_url(file_config.get("rpc_url"), source=str(path)),
    )

    rc_limit = str(
        _first_value(
            override_map.get("rc_limit"),
            env_map.get("KOINOS_RC_LIMIT"),
            file_config.get("rc_limit"),
            default=DEFAULT_RC_LIMIT,
        )
    )
    parse_rc_limit(rc_limit, source=str(path))

    history_file = Path(
        _first_value(
            override_map.get("history_file"),
            env_map.get("KOINOS_CLI_HISTORY"),
            file_config.get("history_file"),
            default=DEFAULT_HISTORY_FILE,
        )
    ).expanduser()

    rc_files = _first_value(override_map.get("rc_files"), file_config.get("rc_files"))
    if rc_files is None:
        rc_files = list(DEFAULT_RC_FILES)
    elif not isinstance(rc_files, list) or not all(isinstance(item, str) for item in rc_files):
        raise ConfigurationError(f"Expected 'rc_files' to be a list of paths in {path}")

    return CLIConfig(
        rpc_url=rpc_url,
        rc_limit=rc_limit,
        history_file=history_file,
        rc_files=list(rc_files),
    )
