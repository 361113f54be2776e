import logging

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_logging():
    # CLI tests configure logging against CliRunner streams that close afterwards
    yield
    logging.getLogger().handlers = []
    structlog.reset_defaults()
