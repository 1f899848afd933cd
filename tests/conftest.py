"""Shared fixtures for hydro-reminders tests."""

import os

os.environ.setdefault("HYDRO_TIMEZONE", "UTC")
os.environ.setdefault("HYDRO_LANGUAGE", "en")
os.environ.pop("HYDRO_USER_NAME", None)
os.environ.pop("HYDRO_WAKING_HOURS", None)

import random

import pytest

from hydro_reminders.storage import MemoryStore
from hydro_reminders.triggers import MemoryTriggerRegistry


@pytest.fixture()
def store():
    return MemoryStore()


@pytest.fixture()
def registry():
    return MemoryTriggerRegistry()


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def data_dir(tmp_path, monkeypatch):
    """Redirect the data directory to a temp directory."""
    import hydro_reminders.config as config_mod

    monkeypatch.setattr(config_mod, "DATA_DIR", tmp_path)
    return tmp_path
