"""Tests for setup_logging()."""

from __future__ import annotations

import logging

import structlog

from src.core.logging import setup_logging


def _renderer() -> object:
    (formatter,) = [
        h.formatter
        for h in logging.getLogger().handlers
        if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)
    ]
    return formatter.processors[-1]


def test_forced_json_renderer():
    setup_logging(json=True)
    assert isinstance(_renderer(), structlog.processors.JSONRenderer)


def test_forced_console_renderer():
    setup_logging(json=False, level=logging.DEBUG)
    assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.WARNING
