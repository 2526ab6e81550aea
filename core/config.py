"""Citegraph configuration and environment setup.

This module provides centralized configuration for the citation graph
engine: development mode detection, OpenAlex connection settings, and
installation of the module-based log handlers.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_OPENALEX_BASE_URL = "https://api.openalex.org"

_logging_configured = False


def is_dev_mode() -> bool:
    """Check if running in development mode.

    Returns:
        True if CITEGRAPH_MODE is set to 'dev', False otherwise.
    """
    return os.getenv("CITEGRAPH_MODE", "prod").lower() == "dev"


def get_openalex_email() -> str:
    """Email used for the OpenAlex polite pool (empty if unset)."""
    return os.getenv("OPENALEX_EMAIL", "")


def get_openalex_base_url() -> str:
    return os.getenv("OPENALEX_BASE_URL", DEFAULT_OPENALEX_BASE_URL).rstrip("/")


def get_openalex_timeout() -> float:
    return float(os.getenv("OPENALEX_TIMEOUT", "30"))


def get_log_dir() -> Path:
    """Directory for per-module log files (CITEGRAPH_LOG_DIR, default logs/)."""
    return Path(os.getenv("CITEGRAPH_LOG_DIR", "logs"))


def configure_logging(level: str | None = None) -> None:
    """Install module-dispatch and third-party log handlers on the root logger.

    First-party loggers (those mapped in MODULE_TO_LOG) go to per-module
    files; everything else goes to run-3p.log. Safe to call multiple times,
    only the first call installs handlers.

    Args:
        level: Root log level name. Defaults to CITEGRAPH_LOG_LEVEL, or
            DEBUG in dev mode and INFO otherwise.
    """
    global _logging_configured
    if _logging_configured:
        return

    from core.logging import ModuleDispatchHandler, ThirdPartyHandler, is_first_party

    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    if level is None:
        level = os.getenv("CITEGRAPH_LOG_LEVEL", "DEBUG" if is_dev_mode() else "INFO")

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    module_handler = ModuleDispatchHandler(log_dir)
    module_handler.setFormatter(formatter)
    module_handler.addFilter(lambda record: is_first_party(record.name))

    third_party_handler = ThirdPartyHandler(log_dir)
    third_party_handler.setFormatter(formatter)
    third_party_handler.addFilter(lambda record: not is_first_party(record.name))

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.addHandler(module_handler)
    root.addHandler(third_party_handler)

    _logging_configured = True
