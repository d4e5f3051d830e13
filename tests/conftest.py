# tests/conftest.py

from __future__ import annotations

import dataclasses
import logging

import pytest

from cooprun.config import Settings, get_settings
from cooprun.logging_setup import _ConsoleNoiseFilter

_ENV_VARS = (
    "COOPRUN_LOG_LEVEL",
    "COOPRUN_LOG_DIR",
    "COOPRUN_LOG_TO_FILE",
    "COOPRUN_CHANNEL_CAPACITY",
    "COOPRUN_JOIN_TIMEOUT",
)

# Every runner in the tests gets an explicit bound so a broken test fails
# instead of hanging the suite.
JOIN_TIMEOUT = 5.0


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove COOPRUN_* variables so Settings.from_env() sees only what the test sets."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture()
def override_settings(monkeypatch: pytest.MonkeyPatch):
    """
    Patch the settings seen by a module.

    Usage: override_settings("cooprun.channels.channel", default_channel_capacity=2)
    """

    def _apply(module: str, **changes) -> Settings:
        patched = dataclasses.replace(get_settings(), **changes)
        monkeypatch.setattr(f"{module}.get_settings", lambda: patched)
        return patched

    return _apply


@pytest.fixture()
def restore_root_logging():
    """setup_logging() replaces root handlers; drop the ones it installed afterwards."""
    root = logging.getLogger()
    level = root.level
    yield root
    for h in list(root.handlers):
        ours = isinstance(h, logging.FileHandler) or any(
            isinstance(f, _ConsoleNoiseFilter) for f in h.filters
        )
        if ours:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    logging.captureWarnings(False)
