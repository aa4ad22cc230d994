import logging

import pytest

from dipscore.container import get_container, reset_container
from dipscore.shared.config.settings import settings
from dipscore.shared.logging.logger import get_logger, setup_logging


def test_loggers_live_under_dipscore_namespace():
    assert get_logger("candle_aggregator").name == "dipscore.candle_aggregator"


def test_setup_logging_accepts_level_names_and_is_idempotent():
    root = logging.getLogger()
    previous = root.level
    try:
        setup_logging("debug")
        handlers = len(root.handlers)
        setup_logging(logging.WARNING)
        assert len(root.handlers) == handlers
        assert root.level == logging.WARNING
        assert logging.getLogger("websockets").level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_unknown_level_is_rejected():
    with pytest.raises(ValueError):
        setup_logging("chatty")


def test_global_container_uses_global_settings():
    reset_container()
    try:
        assert get_container().settings is settings
    finally:
        reset_container()
