"""Unit tests for configure_logging."""

import json
import logging

import pytest
import structlog

from planwave.core.logging import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    logging.getLogger("planwave").setLevel(logging.NOTSET)


class TestConfigureLogging:

    def test_level_applied_to_package_logger(self):
        configure_logging(level="debug", fmt="json")
        assert logging.getLogger("planwave").level == logging.DEBUG

    def test_json_renderer(self):
        configure_logging(level="INFO", fmt="json")
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.processors.JSONRenderer)
        rendered = renderer(None, "info", {"event": "Step succeeded", "step_index": 1})
        assert json.loads(rendered) == {"event": "Step succeeded", "step_index": 1}

    def test_console_renderer(self):
        configure_logging(level="WARNING", fmt="console")
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.dev.ConsoleRenderer)
        assert logging.getLogger("planwave").level == logging.WARNING
