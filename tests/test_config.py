"""Tests for config module."""

import importlib
from pathlib import Path

import dotenv
import pytest

import hydro_reminders.config as config_mod


@pytest.fixture(autouse=True)
def _restore_config(monkeypatch):
    monkeypatch.setattr(dotenv, "load_dotenv", lambda: None)
    yield
    monkeypatch.undo()
    importlib.reload(config_mod)


def test_bad_language_exits(monkeypatch):
    monkeypatch.setenv("HYDRO_LANGUAGE", "fr")

    with pytest.raises(SystemExit):
        importlib.reload(config_mod)


@pytest.mark.parametrize("raw", ["8", "20-8", "8-24", "morning-night"])
def test_bad_waking_hours_exits(monkeypatch, raw):
    monkeypatch.setenv("HYDRO_WAKING_HOURS", raw)

    with pytest.raises(SystemExit):
        importlib.reload(config_mod)


def test_valid_config_loads(monkeypatch, tmp_path):
    monkeypatch.setenv("HYDRO_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("HYDRO_USER_NAME", "Aye")
    monkeypatch.setenv("HYDRO_LANGUAGE", "my")
    monkeypatch.setenv("HYDRO_WAKING_HOURS", "6-22")
    monkeypatch.setenv("HYDRO_TIMEZONE", "Asia/Yangon")

    importlib.reload(config_mod)

    assert config_mod.DATA_DIR == tmp_path
    assert config_mod.USER_NAME == "Aye"
    assert config_mod.LANGUAGE == "my"
    assert config_mod.WAKING_HOURS == (6, 22)
    assert config_mod.TZ.key == "Asia/Yangon"


def test_defaults_when_unset(monkeypatch):
    for var in ("HYDRO_DATA_DIR", "HYDRO_USER_NAME", "HYDRO_LANGUAGE", "HYDRO_WAKING_HOURS"):
        monkeypatch.delenv(var, raising=False)

    importlib.reload(config_mod)

    assert config_mod.DATA_DIR == Path.home() / ".hydro-reminders"
    assert config_mod.USER_NAME is None
    assert config_mod.LANGUAGE == "en"
    assert config_mod.WAKING_HOURS == (8, 20)


def test_parse_hour_range():
    assert config_mod._parse_hour_range("0-23") == (0, 23)
    assert config_mod._parse_hour_range("9-9") == (9, 9)
    with pytest.raises(ValueError):
        config_mod._parse_hour_range("9")
