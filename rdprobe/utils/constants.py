#!/usr/bin/env python3
"""
RDProbe - Constants and Configuration
Copyright (C) 2026  Dorin Badea
GPLv3 License
"""

# Version
VERSION = "1.0.0"

# Probe defaults
DEFAULT_PROBE_TIMEOUT = 5.0  # seconds, per dial and per decoder exchange
MIN_PROBE_TIMEOUT = 0.1
MAX_PROBE_TIMEOUT = 120.0
DEFAULT_RDP_PORT = 3389
DEFAULT_FAILURE_POLICY = "cache"  # "cache" or "retry"

# Context key a host uses to carry the run identity
RUN_ID_CONTEXT_KEY = "executionId"

# Security constants
MAX_INPUT_LENGTH = 1024  # Maximum length for IP/hostname inputs

# Concurrency
DEFAULT_THREADS = 6
MAX_THREADS = 64
MIN_THREADS = 1

# Environment overrides
ENV_DECODER = "RDPROBE_DECODER"
ENV_TIMEOUT = "RDPROBE_TIMEOUT"

# Config location and permissions
CONFIG_DIR_NAME = ".rdprobe"
CONFIG_FILE_NAME = "config.json"
SECURE_DIR_MODE = 0o700
SECURE_FILE_MODE = 0o600
