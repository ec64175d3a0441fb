"""Load and merge configuration from httpsify.toml and env vars."""

from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from httpsify.config.schema import (
    LOG_LEVELS,
    CacheConfig,
    CookiesConfig,
    HttpsifyConfig,
    LoggingConfig,
    ProxyConfig,
    RulesConfig,
)
from httpsify.rules.catalogue import normalise_active_states

CONFIG_FILENAME = "httpsify.toml"


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def _merge_env_overrides(cfg: HttpsifyConfig) -> None:
    """Apply HTTPSIFY_* environment variable overrides."""
    if val := os.environ.get("HTTPSIFY_ADDRESS"):
        cfg.proxy.address = val
    if val := os.environ.get("HTTPSIFY_PORT"):
        try:
            cfg.proxy.port = int(val)
        except ValueError:
            pass
    if val := os.environ.get("HTTPSIFY_CATALOGUE"):
        cfg.rules.catalogue = val
    if os.environ.get("HTTPSIFY_AGGRESSIVE") == "1":
        cfg.proxy.aggressive = True
    if val := os.environ.get("HTTPSIFY_LOG_LEVEL"):
        if val.lower() in LOG_LEVELS:
            cfg.logging.level = val.lower()  # type: ignore[assignment]
    if val := os.environ.get("HTTPSIFY_DISABLE_RULESETS"):
        for name in (n.strip() for n in val.split(",")):
            if name:
                cfg.rules.active[name] = "false"


def load_config(
    root: Path,
    config_override: Optional[str] = None,
) -> HttpsifyConfig:
    """Load, validate, and return an HttpsifyConfig."""
    config_path = find_config_file(root, config_override)

    if config_path is None:
        cfg = HttpsifyConfig()
    else:
        raw = _parse_toml(config_path)
        try:
            cfg = HttpsifyConfig(
                version=raw.get("version", "1.0"),
                proxy=_build_section(raw, ProxyConfig, "proxy"),
                rules=_build_section(raw, RulesConfig, "rules"),
                cache=_build_section(raw, CacheConfig, "cache"),
                cookies=_build_section(raw, CookiesConfig, "cookies"),
                logging=_build_section(raw, LoggingConfig, "logging"),
            )
        except TypeError as exc:
            raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc

    cfg.rules.active = normalise_active_states(cfg.rules.active)
    _merge_env_overrides(cfg)
    _validate(cfg)
    return cfg


def _validate(cfg: HttpsifyConfig) -> None:
    """Reject values the rest of the program cannot use."""
    if cfg.logging.level not in LOG_LEVELS:
        raise ConfigError(
            f"[logging] level must be one of {', '.join(LOG_LEVELS)}, got {cfg.logging.level!r}"
        )
    for name in ("ruleset_cache_size", "cookie_cache_size"):
        size = getattr(cfg.cache, name)
        if not isinstance(size, int) or isinstance(size, bool) or size < 1:
            raise ConfigError(f"[cache] {name} must be a positive integer, got {size!r}")
    if not isinstance(cfg.proxy.port, int) or not 0 <= cfg.proxy.port <= 65535:
        raise ConfigError(f"[proxy] port must be between 0 and 65535, got {cfg.proxy.port!r}")
