"""
Tests for logging setup and sensitive data masking.
"""
import logging

import pytest

from drive_inventory.core.secure_logging import (
    ROOT_LOGGER_NAME,
    SensitiveDataFilter,
    configure_logging,
)


@pytest.fixture
def restore_logger():
    """Remove handlers installed by a test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


class TestSensitiveDataFilter:
    """Test masking patterns."""

    @pytest.mark.parametrize("text,masked", [
        ("owner alice@example.com shared a file", "owner [EMAIL_MASKED] shared a file"),
        ("login with password=hunter2", "login with [CREDENTIAL_MASKED]"),
        ("Authorization: Bearer abc.def-123", "Authorization: [TOKEN_MASKED]"),
        ("nothing to hide", "nothing to hide"),
    ])
    def test_mask(self, text, masked):
        assert SensitiveDataFilter().mask(text) == masked

    def test_filter_rewrites_formatted_message(self):
        """Test arguments are merged before masking."""
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "owner %s", ("bob@corp.com",), None)
        assert SensitiveDataFilter().filter(record)
        assert record.getMessage() == "owner [EMAIL_MASKED]"


class TestConfigureLogging:
    """Test handler installation."""

    def test_file_logging_masks(self, tmp_path, restore_logger):
        """Test records reach the rotating file with addresses masked."""
        configure_logging(log_dir=tmp_path, enable_console_logging=False)
        logging.getLogger("drive_inventory.core.scheduler").info("File owned by carol@example.com")
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()

        content = (tmp_path / "drive_inventory.log").read_text()
        assert "[EMAIL_MASKED]" in content
        assert "carol@example.com" not in content

    def test_reconfigure_replaces_handlers(self, tmp_path, restore_logger):
        """Test repeated calls do not stack handlers."""
        configure_logging(log_dir=tmp_path)
        logger = configure_logging(log_dir=tmp_path)
        assert len(logger.handlers) == 2
