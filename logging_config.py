"""
Centralized logging configuration for Moto Shop Web.

Every log line carries the worker thread name and, inside a Flask
request, the request id - so the interleaved output of concurrent
order submissions (each of which may poll Printful for up to 90s) can
be told apart.

Features:
    - Thread name and request id in all log messages
    - Console output (always enabled)
    - Rotating file logs (optional, for production)
    - Separate error log for ERROR/CRITICAL messages
    - Per-order child loggers for tracing one Printful job

Log Format:
    2025-12-03 10:15:30 [INFO    ] [Thread-3|a1b2c3d4] moto_shop_web.routes.orders - Order received
    2025-12-03 10:15:32 [INFO    ] [Thread-3|a1b2c3d4] moto_shop_web.order.10472 - order costs completed

Usage:
    # At application startup
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    # In modules
    logger = get_logger(__name__)

    # While polling a Printful order
    order_logger = get_order_logger("10472")
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from flask import g, has_request_context


APP_LOGGER_NAME = "moto_shop_web"


# =============================================================================
# CONTEXT FILTER
# =============================================================================

class RequestContextFilter(logging.Filter):
    """
    Logging filter that adds thread and request context to log records.

    Adds:
        - thread_name: Name of the current thread
        - request_id: Short id of the current Flask request, or "-"
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        record.request_id = _current_request_id()
        # Never filters anything out, only adds context
        return True


def _current_request_id() -> str:
    if has_request_context():
        return getattr(g, "request_id", "-")
    return "-"


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure application logging with request context.

    This sets up:
    1. Console handler (always enabled)
    2. Rotating file handler (optional) - for persistent logs
    3. Error file handler (optional) - for ERROR/CRITICAL only

    Args:
        app_name: Name of the root logger (default: "moto_shop_web")
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs relative to this file)
        enable_file_logging: Whether to write to log files (default: True)

    Returns:
        Configured root logger instance
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration (tests create many apps)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s|%(request_id)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    context_filter = RequestContextFilter()

    # ---------------------------------------------------------------------
    # Console Handler (always enabled)
    # ---------------------------------------------------------------------
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context_filter)
    logger.addHandler(console_handler)

    # ---------------------------------------------------------------------
    # File Handlers (optional)
    # ---------------------------------------------------------------------
    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=app_log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB per file
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(context_filter)
        logger.addHandler(file_handler)

        error_log_file = log_dir / f"{app_name}_error.log"
        error_handler = RotatingFileHandler(
            filename=error_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(context_filter)
        logger.addHandler(error_handler)

        logger.info(f"File logging enabled: {app_log_file}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance, e.g. "moto_shop_web.services.polling"
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_order_logger(order_id: str) -> logging.Logger:
    """
    Get a logger for one Printful order or estimation task.

    Args:
        order_id: Printful order id / task id (truncated to 12 chars)

    Returns:
        Logger named "moto_shop_web.order.<id>"
    """
    short_id = str(order_id)[:12]
    return logging.getLogger(f"{APP_LOGGER_NAME}.order.{short_id}")
