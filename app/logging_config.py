"""
Logging Configuration Module

Centralized logging configuration for the planning poker backend. Every handler
installed here masks room host keys and AWS credentials before output.
"""

import logging
import sys
from typing import Optional
from app.security.secret_redactor import SecretRedactionFilter

APP_LOGGER_NAME = "poker_backend"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    enable_secret_redaction: bool = True
) -> logging.Logger:
    """
    Configure application logging with secret redaction.

    This function should be called once at application startup. It sets up:
    - Console output with structured formatting
    - Automatic redaction of host keys and AWS credentials (if enabled)
    - Consistent log levels across the application

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom format string. If None, uses default structured format.
        enable_secret_redaction: Whether to install the redaction filter (default: True)

    Returns:
        Configured root logger instance

    Example:
        >>> logger = setup_logging(log_level="INFO")
        >>> logger.info("Logging configured successfully")
    """
    # Default structured format with timestamp, level, module, and message
    if log_format is None:
        log_format = (
            '%(asctime)s - %(name)s - %(levelname)s - '
            '%(filename)s:%(lineno)d - %(message)s'
        )

    level = getattr(logging, log_level.upper(), logging.INFO)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format, datefmt='%Y-%m-%d %H:%M:%S'))

    if enable_secret_redaction:
        console_handler.addFilter(SecretRedactionFilter())

    root_logger.addHandler(console_handler)

    # boto's own debug output is noisy and may include request payloads
    for noisy in ("boto3", "botocore", "urllib3"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    logging.getLogger(APP_LOGGER_NAME).setLevel(level)

    return root_logger


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Loggers inherit the redaction filter through the root handler once
    setup_logging() has been called.
    """
    return logging.getLogger(name)
