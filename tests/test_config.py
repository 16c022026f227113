"""Tests for settings and argument parsing."""

import logging

import pytest
from textual.logging import TextualHandler

from systop.config import Settings, configure_logging, parse_args


def test_defaults():
    settings = parse_args([])

    assert settings == Settings()
    assert settings.refresh_interval == 1.0
    assert settings.history_capacity == 60
    assert settings.debug is False


def test_interval_in_milliseconds():
    assert parse_args(["--interval", "250"]).refresh_interval == 0.25
    assert parse_args(["-i", "2000"]).refresh_interval == 2.0


def test_debug_flag():
    assert parse_args(["-d"]).debug is True


@pytest.mark.parametrize("value", ["0", "-5", "fast", "50", "99"])
def test_invalid_interval_rejected(value):
    with pytest.raises(SystemExit):
        parse_args(["--interval", value])


def test_settings_frozen():
    settings = Settings()
    with pytest.raises(AttributeError):
        settings.debug = True


def test_configure_logging_uses_textual_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(debug=True)
        assert root.level == logging.DEBUG
        assert any(isinstance(h, TextualHandler) for h in root.handlers)

        configure_logging(debug=False)
        assert root.level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_interval_floor_accepted():
    assert parse_args(["-i", "100"]).refresh_interval == 0.1


def test_interval_below_floor_explained(capsys):
    with pytest.raises(SystemExit):
        parse_args(["-i", "50"])
    assert "at least 100 ms" in capsys.readouterr().err
