# ============================================================================
# downgrade/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines every tunable setting of the downgrade proxy: where mitmproxy
# listens, which URL marks a negotiation endpoint, where the control API
# binds, where toggles are persisted and how logging behaves.
#
# KEY CONCEPTS:
# 1. Dataclasses: immutable sections grouped into one container
# 2. Environment Variables: DOWNGRADE_* overrides (e.g., DOWNGRADE_PROXY_PORT=8081)
# 3. Singleton: one shared config, replaceable in tests via set_config()
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from downgrade.errors import DowngradeError, ErrorCode

logger = logging.getLogger(__name__)

# SignalR clients POST to "<hub>/negotiate?negotiateVersion=1"
DEFAULT_NEGOTIATE_MARKER = "/negotiate"


# ============================================================================
# Proxy Configuration
# ============================================================================
# Controls the mitmproxy instance that carries the downgrade addon.

@dataclass(frozen=True)
class ProxyConfig:
    # Where mitmproxy accepts client connections
    # 127.0.0.1 keeps the proxy reachable from this machine only
    listen_host: str = "127.0.0.1"
    listen_port: int = 8080

    # Substring of the request URL that identifies a negotiation response
    negotiate_marker: str = DEFAULT_NEGOTIATE_MARKER

    # Mark flows whose body has an opaque MIME type (binary hub frames)
    highlight_unknown: bool = True


# ============================================================================
# Control API Configuration
# ============================================================================
# The small FastAPI app used to flip transport toggles while the proxy runs.

@dataclass(frozen=True)
class ApiConfig:
    enabled: bool = True
    host: str = "127.0.0.1"
    # 8766 sits next to the proxy's own port range without clashing with it
    port: int = 8766


# ============================================================================
# File Storage Configuration
# ============================================================================

@dataclass(frozen=True)
class StorageConfig:
    # Base directory for persisted toggles and log files
    base_dir: Path = field(default_factory=lambda: Path.home() / ".signalr-downgrade")

    # Name of the JSON file that keeps toggle values between runs
    toggles_file: str = "toggles.json"

    @property
    def toggles_path(self) -> Path:
        return self.base_dir / self.toggles_file


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    # DEBUG / INFO / WARNING / ERROR
    level: str = "INFO"

    # %(name)s = which module logged this (e.g., "downgrade.intercept.proxy")
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # Console only by default; the file lives in base_dir when enabled
    file_enabled: bool = False
    file_name: str = "downgrade.log"

    # Rotate at 10 MB and keep 5 old files
    max_file_size_mb: int = 10
    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class DowngradeConfig:
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log: LogConfig = field(default_factory=LogConfig)

    # Debug mode: forces DEBUG logging
    debug: bool = False

    @classmethod
    def from_env(cls) -> "DowngradeConfig":
        """Build a DowngradeConfig from DOWNGRADE_* environment variables."""
        proxy = ProxyConfig(
            listen_host=os.getenv("DOWNGRADE_PROXY_HOST", "127.0.0.1"),
            listen_port=_env_int("DOWNGRADE_PROXY_PORT", 8080),
            negotiate_marker=os.getenv("DOWNGRADE_NEGOTIATE_MARKER", DEFAULT_NEGOTIATE_MARKER),
            highlight_unknown=_env_bool("DOWNGRADE_HIGHLIGHT", True),
        )

        api = ApiConfig(
            enabled=_env_bool("DOWNGRADE_API_ENABLED", True),
            host=os.getenv("DOWNGRADE_API_HOST", "127.0.0.1"),
            port=_env_int("DOWNGRADE_API_PORT", 8766),
        )

        base_dir = Path(os.getenv("DOWNGRADE_DATA_DIR", str(Path.home() / ".signalr-downgrade")))
        storage = StorageConfig(base_dir=base_dir)

        log = LogConfig(
            level=os.getenv("DOWNGRADE_LOG_LEVEL", "INFO"),
            file_enabled=_env_bool("DOWNGRADE_LOG_FILE", False),
        )

        return cls(
            proxy=proxy,
            api=api,
            storage=storage,
            log=log,
            debug=_env_bool("DOWNGRADE_DEBUG", False),
        )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise DowngradeError(
            ErrorCode.CONFIG_INVALID,
            f"{name} must be an integer",
            details={"name": name, "value": raw},
        ) from e


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[DowngradeConfig] = None


def get_config() -> DowngradeConfig:
    """
    Get the global configuration instance.

    Loads from the environment on first use and reuses it afterwards.
    """
    global _config
    if _config is None:
        _config = DowngradeConfig.from_env()
    return _config


def set_config(config: Optional[DowngradeConfig]) -> None:
    """Replace the global configuration (mainly used for testing). None forces a reload."""
    global _config
    _config = config


def setup_logging(config: Optional[DowngradeConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Call this once at application startup.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.storage.base_dir.mkdir(parents=True, exist_ok=True)
        log_path = cfg.storage.base_dir / cfg.log.file_name
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
