import logging

import pytest

from gbfsstats.core import logging as gbfs_logging


@pytest.fixture
def configure_at(monkeypatch, settings):
    def _configure(level: str) -> None:
        app = settings.app.model_copy(update={"log_level": level})
        monkeypatch.setattr(gbfs_logging, "get_settings", lambda: settings.model_copy(update={"app": app}))
        gbfs_logging.configure_logging()

    yield _configure
    monkeypatch.undo()
    gbfs_logging.configure_logging()


def test_client_loggers_stay_quiet_at_info(configure_at):
    configure_at("info")

    assert logging.getLogger().level == logging.INFO
    for name in gbfs_logging.CLIENT_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_debug_opens_client_loggers_without_touching_cached_config(configure_at):
    configure_at("debug")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("botocore").level == logging.DEBUG
    assert gbfs_logging.get_logging_config()["loggers"]["botocore"]["level"] == "WARNING"
