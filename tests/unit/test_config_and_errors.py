"""
Unit tests for configuration loading and the error taxonomy.
"""
import logging
from pathlib import Path

import pytest

from downgrade.base.config import (
    DEFAULT_NEGOTIATE_MARKER,
    DowngradeConfig,
    LogConfig,
    StorageConfig,
    get_config,
    set_config,
    setup_logging,
)
from downgrade.errors import DowngradeError, ErrorCode


class TestConfigFromEnv:
    """DOWNGRADE_* environment handling."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DOWNGRADE_DATA_DIR", raising=False)
        config = DowngradeConfig.from_env()

        assert config.proxy.listen_host == "127.0.0.1"
        assert config.proxy.listen_port == 8080
        assert config.proxy.negotiate_marker == DEFAULT_NEGOTIATE_MARKER == "/negotiate"
        assert config.proxy.highlight_unknown is True
        assert config.api.enabled is True
        assert config.api.port == 8766
        assert config.log.file_enabled is False
        assert config.debug is False
        assert config.storage.toggles_path == Path.home() / ".signalr-downgrade" / "toggles.json"

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DOWNGRADE_PROXY_PORT", "9090")
        monkeypatch.setenv("DOWNGRADE_NEGOTIATE_MARKER", "/hub/negotiate")
        monkeypatch.setenv("DOWNGRADE_HIGHLIGHT", "false")
        monkeypatch.setenv("DOWNGRADE_API_ENABLED", "0")
        monkeypatch.setenv("DOWNGRADE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("DOWNGRADE_DEBUG", "true")

        config = DowngradeConfig.from_env()

        assert config.proxy.listen_port == 9090
        assert config.proxy.negotiate_marker == "/hub/negotiate"
        assert config.proxy.highlight_unknown is False
        assert config.api.enabled is False
        assert config.storage.toggles_path == tmp_path / "toggles.json"
        assert config.debug is True

    def test_invalid_port_is_config_error(self, monkeypatch):
        monkeypatch.setenv("DOWNGRADE_PROXY_PORT", "eighty")

        with pytest.raises(DowngradeError) as exc_info:
            DowngradeConfig.from_env()

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID
        assert exc_info.value.details["name"] == "DOWNGRADE_PROXY_PORT"

    def test_singleton_and_override(self):
        first = get_config()
        assert get_config() is first

        custom = DowngradeConfig(debug=True)
        set_config(custom)
        assert get_config() is custom

    def test_setup_logging_writes_file(self, tmp_path):
        config = DowngradeConfig(
            storage=StorageConfig(base_dir=tmp_path / "logs"),
            log=LogConfig(file_enabled=True),
        )
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level

        try:
            setup_logging(config)
            logging.getLogger("downgrade.test").info("hello file")
            for handler in root.handlers:
                handler.flush()

            assert "hello file" in (tmp_path / "logs" / "downgrade.log").read_text()
        finally:
            for handler in root.handlers:
                if handler not in saved_handlers:
                    handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestDowngradeError:
    """Structured error behaviour."""

    def test_http_status_mapping(self):
        assert DowngradeError(ErrorCode.TOGGLE_UNKNOWN, "x").http_status == 400
        assert DowngradeError(ErrorCode.PROXY_ALREADY_RUNNING, "x").http_status == 409
        assert DowngradeError(ErrorCode.TOGGLE_UNKNOWN, "x", http_status=418).http_status == 418

    def test_str_includes_code(self):
        assert str(DowngradeError(ErrorCode.CONFIG_INVALID, "bad port")) == "[CONFIG_001] bad port"

    def test_to_dict_carries_details(self):
        error = DowngradeError(ErrorCode.TOGGLE_UNKNOWN, "unknown", details={"name": "x"})

        assert error.to_dict() == {
            "code": "TOGGLE_001",
            "message": "unknown",
            "details": {"name": "x"},
            "http_status": 400,
        }

    def test_every_code_has_an_http_status(self):
        assert set(DowngradeError.HTTP_STATUS_MAP) == set(ErrorCode)
