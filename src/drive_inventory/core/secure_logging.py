"""
Logging setup for Drive Inventory.

Console and rotating-file handlers on the ``drive_inventory`` logger, with a
filter that masks owner e-mail addresses, credentials and bearer tokens
before a record is written anywhere.
"""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Tuple

ROOT_LOGGER_NAME = "drive_inventory"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class SensitiveDataFilter(logging.Filter):
    """Masks sensitive substrings in log messages."""

    SENSITIVE_PATTERNS: List[Tuple[str, str]] = [
        (r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b', 'EMAIL'),
        (r'\b(?:password|pwd|secret|token|api_key|apikey)[\s=:]+\S+', 'CREDENTIAL'),
        (r'Bearer\s+[\w\-._~+/]+=*', 'TOKEN'),
    ]

    def __init__(self, name: str = ""):
        super().__init__(name)
        self._compiled = [
            (re.compile(pattern, re.IGNORECASE), f'[{label}_MASKED]')
            for pattern, label in self.SENSITIVE_PATTERNS
        ]

    def mask(self, text: str) -> str:
        for pattern, replacement in self._compiled:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self.mask(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def configure_logging(
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    enable_file_logging: bool = True,
    enable_console_logging: bool = True,
    max_file_size_mb: int = 10,
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the application logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_dir: Directory for ``drive_inventory.log``; required for file logging
        level: Logging level for the application logger and its handlers
        enable_file_logging: Write to a rotating log file
        enable_console_logging: Write to stderr
        max_file_size_mb: Rotation size of the log file
        backup_count: Rotated files kept

    Returns:
        The configured ``drive_inventory`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    masking = SensitiveDataFilter()

    if enable_console_logging:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(masking)
        logger.addHandler(console_handler)

    if enable_file_logging and log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{ROOT_LOGGER_NAME}.log",
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(masking)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug(f"Logging configured (level={logging.getLevelName(level)}, log_dir={log_dir})")
    return logger
