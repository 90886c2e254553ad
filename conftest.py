"""
Root pytest configuration.

Routes structlog through stdlib logging during tests so log lines never mix
with CLI output on stdout and pytest captures them like any other log.
"""

import pytest
import structlog


@pytest.fixture(autouse=True, scope="session")
def _structlog_to_stdlib():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()
