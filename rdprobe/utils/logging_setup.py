#!/usr/bin/env python3
"""
RDProbe - Logging Setup
Copyright (C) 2026  Dorin Badea
GPLv3 License

Rotating file log under ~/.rdprobe/logs plus a terse console handler.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from rdprobe.utils.config import get_config_paths

LOGGER_NAME = "RDProbe"


class _NoTracebackFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        exc_info = record.exc_info
        stack_info = record.stack_info
        record.exc_info = None
        record.stack_info = None
        try:
            return super().format(record)
        finally:
            record.exc_info = exc_info
            record.stack_info = stack_info


def get_log_dir() -> str:
    config_dir, _ = get_config_paths()
    return os.path.join(config_dir, "logs")


def setup_logging(verbose: bool = False, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure the application loggers.

    Module loggers live under ``rdprobe.*``; both trees get the same handlers.
    Calling this twice does not duplicate handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    module_logger = logging.getLogger("rdprobe")
    module_logger.setLevel(logging.DEBUG)
    console_level = logging.DEBUG if verbose else logging.ERROR

    if logger.handlers:
        for target in (logger, module_logger):
            for handler in target.handlers:
                if isinstance(handler, logging.StreamHandler) and not isinstance(
                    handler, RotatingFileHandler
                ):
                    handler.setLevel(console_level)
        return logger

    log_dir = log_dir or get_log_dir()
    file_handler = None
    try:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"rdprobe_{datetime.now().strftime('%Y%m%d')}.log")
        fmt = logging.Formatter(
            "%(asctime)s - [%(levelname)s] - %(name)s:%(lineno)d - %(message)s"
        )
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(fmt)
        file_handler.setLevel(logging.DEBUG)
    except OSError:
        file_handler = None

    console = logging.StreamHandler(stream=getattr(sys, "__stderr__", sys.stderr))
    console.setLevel(console_level)
    console.setFormatter(_NoTracebackFormatter("%(levelname)s: %(message)s"))

    for target in (logger, module_logger):
        target.handlers = []
        if file_handler:
            target.addHandler(file_handler)
        target.addHandler(console)
        target.propagate = False

    if file_handler is None:
        logger.warning("File logging disabled (permission or path issue)")
    logger.info("=" * 60)
    logger.info("RDProbe session start")
    logger.info("User: %s", os.getenv("SUDO_USER", os.getenv("USER", "unknown")))
    logger.info("PID: %s", os.getpid())
    return logger
