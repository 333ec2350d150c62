"""
Centralized Logging Configuration for the proctoring service
"""
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

# Log format
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    service_name: str = "proctorwatch",
    level: str = "INFO",
    log_to_file: bool = False,
    log_to_console: bool = True,
    log_dir: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """
    Set up logging for the service

    Args:
        service_name: Name of the service (used in log filename)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Whether to write to file
        log_to_console: Whether to write to console
        log_dir: Directory for log files (defaults to ./logs)

    Returns:
        Configured logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(console_handler)

    log_file = None
    if log_to_file:
        directory = Path(log_dir or "logs")
        directory.mkdir(parents=True, exist_ok=True)

        today = datetime.now().strftime("%Y-%m-%d")
        log_file = directory / f"{service_name}_{today}.log"

        # Rotating, max 10MB, keep 5 backups
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

        # Errors also go to a separate file
        error_file = directory / f"{service_name}_errors.log"
        error_handler = logging.handlers.RotatingFileHandler(
            error_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8"
        )
        error_handler.setFormatter(formatter)
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

    logger = logging.getLogger(service_name)
    logger.info(f"=== {service_name.upper()} STARTED ===")
    logger.info(f"Log level: {level}")
    if log_file:
        logger.info(f"Log file: {log_file}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name"""
    return logging.getLogger(name)
