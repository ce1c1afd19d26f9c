"""
Tests for settings loading.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from skywallet.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    settings = Settings()

    assert settings.node_url == "http://127.0.0.1:6420"
    assert settings.hw_enabled is False
    assert settings.note_retry_attempts == 3
    assert settings.note_retry_delay == 1.0
    assert settings.balance_refresh_delay == 0.032


def test_environment_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SKYWALLET_NODE_URL", "http://node:6420")
    monkeypatch.setenv("SKYWALLET_HW_ENABLED", "true")
    monkeypatch.setenv("SKYWALLET_WALLETS_DATA_PATH", str(tmp_path / "hw.json"))

    settings = Settings()

    assert settings.node_url == "http://node:6420"
    assert settings.hw_enabled is True
    assert settings.wallets_data_path == tmp_path / "hw.json"


def test_invalid_retry_count(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SKYWALLET_NOTE_RETRY_ATTEMPTS", "0")

    with pytest.raises(ValueError):
        Settings()
