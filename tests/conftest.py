import os

import pytest

from hnytrace.internal import logger


@pytest.fixture(autouse=True)
def clean_honeycomb_env(monkeypatch):
    """Keep ``HONEYCOMB_*`` variables of the outer environment out of the tests."""
    for name in list(os.environ):
        if name.startswith("HONEYCOMB_"):
            monkeypatch.delenv(name)
    yield


@pytest.fixture(autouse=True)
def disable_log_rate_limit(monkeypatch):
    # Tests assert on warnings that would otherwise be rate limited per call site
    monkeypatch.setattr(logger, "_rate_limit", 0)
    logger._buckets.clear()
    yield
    logger._buckets.clear()
