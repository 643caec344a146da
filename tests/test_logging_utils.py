"""Tests for logging configuration."""

import logging
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pcapstat.logging_utils import LOG_LEVEL_ENV, configure_logging, get_logger, resolve_log_level


@pytest.mark.parametrize(
    "env_value, expected",
    [(None, logging.INFO), ("warning", logging.WARNING), ("DEBUG", logging.DEBUG), ("chatty", logging.INFO)],
)
def test_level_from_environment(monkeypatch: pytest.MonkeyPatch, env_value, expected: int) -> None:
    if env_value is None:
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    else:
        monkeypatch.setenv(LOG_LEVEL_ENV, env_value)

    assert resolve_log_level() == expected


def test_verbose_overrides_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV, "ERROR")

    assert resolve_log_level(verbose=True) == logging.DEBUG


def test_configure_sets_package_logger_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    package = get_logger()
    previous = package.level
    try:
        assert configure_logging(verbose=True) == logging.DEBUG
        assert package.level == logging.DEBUG
        assert get_logger("pcapstat.parser").getEffectiveLevel() == logging.DEBUG
    finally:
        package.setLevel(previous)
