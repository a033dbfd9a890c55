#!/usr/bin/env python3
"""
RDProbe - Configuration Management Module
Copyright (C) 2026  Dorin Badea
GPLv3 License

Persistent defaults for probe timeout, failure policy, decoder and dialing.

The file lives in the invoking user's home even when RDProbe runs under sudo,
and is only ever readable by that user.
"""

import os
import json
import copy
import logging

try:
    import pwd  # Unix-only
except ImportError:  # pragma: no cover
    pwd = None
from typing import Dict, Optional, Any

from rdprobe.utils.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_FAILURE_POLICY,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_THREADS,
    ENV_DECODER,
    ENV_TIMEOUT,
    MAX_PROBE_TIMEOUT,
    MAX_THREADS,
    MIN_PROBE_TIMEOUT,
    MIN_THREADS,
    SECURE_DIR_MODE,
    SECURE_FILE_MODE,
)

# Config version
CONFIG_VERSION = "1.0.0"

# Default config structure
DEFAULT_CONFIG: Dict[str, Any] = {
    "version": CONFIG_VERSION,
    "defaults": {
        "probe_timeout": None,  # float seconds
        "failure_policy": None,  # "cache" or "retry"
        "decoder": None,  # "package.module:attribute"
        "threads": None,
        "rate_limit": None,  # seconds between dials
        "exclude": None,  # list[str] of IPs, CIDRs or hostnames
    },
}

logger = logging.getLogger("RDProbe")


def _sudo_account():
    """passwd entry of the user behind ``sudo``, or None when not elevated through sudo."""
    if pwd is None or not hasattr(os, "geteuid") or os.geteuid() != 0:
        return None
    name = os.environ.get("SUDO_USER")
    if not name:
        return None
    try:
        return pwd.getpwnam(name)
    except KeyError:
        logger.debug("SUDO_USER %s has no passwd entry", name)
        return None


def get_config_paths() -> tuple[str, str]:
    """Return ``(config_dir, config_file)`` under the real user's home."""
    account = _sudo_account()
    home_dir = account.pw_dir if account else os.path.expanduser("~")
    config_dir = os.path.join(home_dir, CONFIG_DIR_NAME)
    return config_dir, os.path.join(config_dir, CONFIG_FILE_NAME)


def _give_to_invoking_user(path: str) -> None:
    account = _sudo_account()
    if account is None:
        return
    try:
        os.chown(path, account.pw_uid, account.pw_gid)
    except OSError:
        logger.debug("Could not hand %s to %s", path, account.pw_name, exc_info=True)


def ensure_config_dir() -> str:
    """
    Create the private config directory.

    Raises:
        OSError: if the directory cannot be created or restricted
    """
    config_dir, _ = get_config_paths()
    os.makedirs(config_dir, mode=SECURE_DIR_MODE, exist_ok=True)
    os.chmod(config_dir, SECURE_DIR_MODE)
    _give_to_invoking_user(config_dir)
    return config_dir


def load_config() -> Dict[str, Any]:
    """Stored configuration laid over ``DEFAULT_CONFIG``; defaults alone if unreadable."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    _, config_file = get_config_paths()
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            stored = json.load(f)
    except FileNotFoundError:
        return config
    except (ValueError, OSError):
        logger.warning("Ignoring unreadable config file %s", config_file)
        return config

    if isinstance(stored, dict):
        config.update(stored)
    else:
        logger.warning("Ignoring config file %s: top level is not an object", config_file)
    return config


def save_config(config: Dict[str, Any]) -> bool:
    """
    Write the configuration with owner-only permissions.

    Returns:
        True if the file was replaced
    """
    try:
        ensure_config_dir()
    except OSError:
        logger.debug("Config directory unavailable", exc_info=True)
        return False
    _, config_file = get_config_paths()
    config["version"] = CONFIG_VERSION

    temp_file = config_file + ".tmp"
    try:
        fd = os.open(temp_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECURE_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        # O_CREAT leaves the mode of a stale temp file alone
        os.chmod(temp_file, SECURE_FILE_MODE)
        os.replace(temp_file, config_file)
    except OSError:
        logger.debug("Failed to save config file", exc_info=True)
        return False
    _give_to_invoking_user(config_file)
    return True


def get_persistent_defaults() -> Dict[str, Any]:
    """Persisted probe defaults; every known key is present, unset ones are None."""
    defaults = dict(DEFAULT_CONFIG["defaults"])
    stored = load_config().get("defaults")
    if isinstance(stored, dict):
        defaults.update(stored)
    return defaults


def update_persistent_defaults(**kwargs: Any) -> bool:
    """Merge known default keys into the config file; unknown keys are dropped."""
    config = load_config()
    defaults = config.get("defaults")
    if not isinstance(defaults, dict):
        defaults = {}
    defaults.update({k: v for k, v in kwargs.items() if k in DEFAULT_CONFIG["defaults"]})
    config["defaults"] = defaults
    return save_config(config)


def _coerce_timeout(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        return None
    if not (MIN_PROBE_TIMEOUT <= timeout <= MAX_PROBE_TIMEOUT):
        return None
    return timeout


def get_probe_settings() -> Dict[str, Any]:
    """
    Effective probe settings: persisted defaults, then environment overrides,
    each validated with a safe fallback.

    Environment:
        RDPROBE_DECODER: decoder path, overrides the config file
        RDPROBE_TIMEOUT: probe timeout in seconds
    """
    defaults = get_persistent_defaults()

    timeout = _coerce_timeout(defaults.get("probe_timeout"))
    env_timeout = _coerce_timeout(os.environ.get(ENV_TIMEOUT))
    if env_timeout is not None:
        timeout = env_timeout
    if timeout is None:
        timeout = DEFAULT_PROBE_TIMEOUT

    policy = defaults.get("failure_policy")
    if policy not in ("cache", "retry"):
        policy = DEFAULT_FAILURE_POLICY

    decoder = os.environ.get(ENV_DECODER) or defaults.get("decoder")
    if not isinstance(decoder, str) or not decoder.strip():
        decoder = None
    else:
        decoder = decoder.strip()

    threads = defaults.get("threads")
    if not isinstance(threads, int) or isinstance(threads, bool):
        threads = DEFAULT_THREADS
    elif not (MIN_THREADS <= threads <= MAX_THREADS):
        threads = DEFAULT_THREADS

    rate_limit = defaults.get("rate_limit")
    if not isinstance(rate_limit, (int, float)) or isinstance(rate_limit, bool) or rate_limit < 0:
        rate_limit = 0.0

    exclude = defaults.get("exclude")
    if not isinstance(exclude, list):
        exclude = []
    exclude = [str(e).strip() for e in exclude if str(e or "").strip()]

    return {
        "probe_timeout": timeout,
        "failure_policy": policy,
        "decoder": decoder,
        "threads": threads,
        "rate_limit": float(rate_limit),
        "exclude": exclude,
    }
