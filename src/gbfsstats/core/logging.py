"""
Logging configuration.

The packaged `config/logging.yaml` sets handlers and formats; `GBFSSTATS_LOG_LEVEL`
(settings `app.log_level`) sets the level for the root logger and its handlers.

The AWS SDK and HTTP client loggers log every request at DEBUG/INFO. They are held at
WARNING unless the whole process runs at DEBUG.
"""

from __future__ import annotations

import copy
import logging.config

from gbfsstats.config.settings import get_logging_config, get_settings

CLIENT_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def configure_logging() -> None:
    """Apply the packaged logging config with the level from settings."""
    settings = get_settings()
    config = copy.deepcopy(get_logging_config())

    level = settings.app.log_level.upper()
    config.setdefault("root", {})["level"] = level
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = level

    client_level = "DEBUG" if level == "DEBUG" else "WARNING"
    loggers = config.setdefault("loggers", {})
    for name in CLIENT_LOGGERS:
        loggers.setdefault(name, {})["level"] = client_level

    logging.config.dictConfig(config)
