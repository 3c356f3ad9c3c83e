"""Configuration: frozen dataclass loaded from an optional YAML file and env vars."""

import os
import logging
from dataclasses import dataclass, fields, replace

import yaml

logger = logging.getLogger(__name__)

_ENV_VARS = {
    "high_water_mark": "SNIFFER_HIGH_WATER_MARK",
    "read_chunk_size": "SNIFFER_READ_CHUNK_SIZE",
}


@dataclass(frozen=True)
class SnifferConfig:
    high_water_mark: int = 16384
    read_chunk_size: int = 65536

    @classmethod
    def from_env(cls) -> "SnifferConfig":
        """Create a SnifferConfig from environment variables with defaults."""
        return _apply_env(cls())


def _positive_int(name: str, value) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {number}")
    return number


def _apply_env(config: SnifferConfig) -> SnifferConfig:
    overrides = {}
    for name, env_var in _ENV_VARS.items():
        raw = os.environ.get(env_var)
        if raw is not None and raw.strip():
            overrides[name] = _positive_int(env_var, raw.strip())
    return replace(config, **overrides)


def load_yaml_config(path: str | None) -> dict:
    """Read SnifferConfig overrides from a YAML file.

    Only recognised keys are returned, each checked to be a positive integer.
    No path, a missing file or an empty document means no overrides.
    """
    if not path:
        return {}
    if not os.path.exists(path):
        logger.warning("Config file %s not found, using defaults", path)
        return {}

    with open(path, "r", encoding="utf-8") as f:
        document = yaml.safe_load(f)
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(
            f"YAML config {path} must be a mapping, got {type(document).__name__}"
        )

    known = {f.name for f in fields(SnifferConfig)}
    ignored = sorted(str(key) for key in document if key not in known)
    if ignored:
        logger.warning("Ignoring unknown config keys in %s: %s", path, ", ".join(ignored))

    overrides = {
        name: _positive_int(name, value)
        for name, value in document.items()
        if name in known
    }
    logger.info("Loaded %d setting(s) from %s", len(overrides), path)
    return overrides


def load_config(path: str | None = None) -> SnifferConfig:
    """Build SnifferConfig from defaults, then YAML, then env vars.

    The YAML path falls back to the ``SNIFFER_CONFIG`` environment variable.
    """
    overrides = load_yaml_config(path or os.environ.get("SNIFFER_CONFIG"))
    return _apply_env(SnifferConfig(**overrides))
