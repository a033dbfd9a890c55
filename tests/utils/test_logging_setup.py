#!/usr/bin/env python3
"""
RDProbe - Logging setup tests.
"""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from rdprobe.utils import logging_setup


@pytest.fixture
def clean_loggers():
    names = (logging_setup.LOGGER_NAME, "rdprobe")
    saved = {}
    for name in names:
        lg = logging.getLogger(name)
        saved[name] = (list(lg.handlers), lg.level, lg.propagate)
        lg.handlers = []
    yield
    for name, (handlers, level, propagate) in saved.items():
        lg = logging.getLogger(name)
        for handler in lg.handlers:
            if handler not in handlers:
                handler.close()
        lg.handlers = handlers
        lg.setLevel(level)
        lg.propagate = propagate


def _console(logger):
    return [
        h
        for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
    ]


def test_file_and_console_handlers(tmp_path, clean_loggers):
    logger = logging_setup.setup_logging(log_dir=str(tmp_path))

    assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
    assert _console(logger)[0].level == logging.ERROR
    assert list(tmp_path.glob("rdprobe_*.log"))
    module_logger = logging.getLogger("rdprobe")
    assert any(isinstance(h, RotatingFileHandler) for h in module_logger.handlers)


def test_verbose_and_idempotent(tmp_path, clean_loggers):
    logging_setup.setup_logging(log_dir=str(tmp_path))
    logger = logging_setup.setup_logging(verbose=True, log_dir=str(tmp_path))

    assert len(_console(logger)) == 1
    assert _console(logger)[0].level == logging.DEBUG


def test_unwritable_log_dir_falls_back_to_console(tmp_path, clean_loggers):
    blocker = tmp_path / "file"
    blocker.write_text("x")

    logger = logging_setup.setup_logging(log_dir=str(blocker / "logs"))

    assert not any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
    assert _console(logger)


def test_formatter_drops_tracebacks():
    formatter = logging_setup._NoTracebackFormatter("%(levelname)s: %(message)s")
    try:
        raise ValueError("boom")
    except ValueError:
        import sys

        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    assert formatter.format(record) == "ERROR: failed"
    assert record.exc_info is not None
