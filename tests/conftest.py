import itertools
import os

import pytest

# Must be in place before main.py reads its settings
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from config import TestingSettings  # noqa: E402
from logging_config import configure_logging  # noqa: E402

configure_logging(TestingSettings())


@pytest.fixture
def tx_ids():
    """Fresh transaction ids for one test."""
    return itertools.count(1)
