"""Pytest configuration for the downgrade proxy."""
import pytest

from downgrade.base.config import set_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    # Keep persisted toggles and logs out of the real home directory.
    monkeypatch.setenv("DOWNGRADE_DATA_DIR", str(tmp_path / "data"))
    set_config(None)
    yield
    set_config(None)
