"""Logging-specific test configuration and fixtures."""

import logging
import tempfile
from pathlib import Path

import pytest
import structlog

from sqlnav.config.models import LoggingConfig
from sqlnav.logging.factory import LoggerFactory


@pytest.fixture
def temp_log_file():
    """Create temporary log file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".log", delete=False) as temp_file:
        temp_path = Path(temp_file.name)

    yield temp_path

    # Cleanup
    temp_path.unlink(missing_ok=True)


@pytest.fixture
def sample_logging_config(temp_log_file):
    """Create sample logging configuration."""
    return LoggingConfig(
        level="INFO",
        format="json",
        file_path=temp_log_file,
        console_output=False,
        max_file_size=1048576,  # 1MB
        backup_count=3,
    )


@pytest.fixture
def logger_factory():
    """Create clean logger factory for testing."""
    factory = LoggerFactory()
    yield factory
    # Cleanup after test
    factory.shutdown()


@pytest.fixture(autouse=True)
def restore_logging_state():
    """Start each test from a clean ``sqlnav`` logger and restore structlog after."""
    saved = structlog.get_config()
    saved_processors = list(saved["processors"])
    _reset_package_logger()

    yield

    structlog.configure(
        processors=saved_processors,
        wrapper_class=saved["wrapper_class"],
        logger_factory=saved["logger_factory"],
        context_class=saved["context_class"],
        cache_logger_on_first_use=saved["cache_logger_on_first_use"],
    )
    _reset_package_logger()


def _reset_package_logger():
    from sqlnav.logging.factory import _global_factory
    _global_factory.shutdown()

    package_logger = logging.getLogger("sqlnav")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True
