"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
large_scale
    Applied to tests that build or reroot trees with thousands of leaves.
    Excluded from a quick run with ``-m "not large_scale"``.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.

Logging
-------
amime never configures handlers.  Tests that assert on log output use the
``caplog`` fixture; ``amime_debug_logs`` below opens every amime logger up to
DEBUG for the duration of one test.
"""

import logging

import pytest


def pytest_configure(config):
    """
    Configure pytest before test collection begins.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: tests on trees with thousands of leaves",
    )


@pytest.fixture
def amime_debug_logs(caplog):
    """caplog with every amime logger captured from DEBUG upwards."""
    caplog.set_level(logging.DEBUG, logger="amime")
    return caplog
