import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from wallet_ledger.config import settings

REQUEST_FORMAT = "[%(asctime)s.%(msecs)03d] %(message)s"
CONSOLE_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _attach(logger: logging.Logger, handler: logging.Handler, fmt: str) -> logging.Logger:
    """Attach a single formatted handler; a logger that already has one is left alone."""
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    if logger.handlers:
        return logger

    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger


def setup_request_logger() -> logging.Logger:
    """
    Rotating file logger for API requests (``LOG_DIR/api_requests.log``).

    Returns:
        logging.Logger: Configured logger instance
    """
    logs_dir = Path(settings.LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=logs_dir / "api_requests.log",
        maxBytes=settings.LOG_MAX_SIZE_MB * 1024 * 1024,
        backupCount=settings.LOG_MAX_FILES,
        encoding="utf-8",
    )
    return _attach(logging.getLogger("api_requests"), handler, REQUEST_FORMAT)


def setup_console_logger(name: str) -> logging.Logger:
    """
    Stdout logger.

    ``app_errors`` carries store failures and onboarding rejections;
    ``ledger`` carries one line per balance mutation and session event.
    """
    return _attach(logging.getLogger(name), logging.StreamHandler(), CONSOLE_FORMAT)


api_logger = setup_request_logger()
app_logger = setup_console_logger("app_errors")
ledger_logger = setup_console_logger("ledger")
