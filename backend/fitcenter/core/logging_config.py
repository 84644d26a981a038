"""
Centralized logging configuration for the fitness center booking core.

This module provides structured logging with:
- JSON formatting for log files
- Colored console formatting for development
- Optional SQLAlchemy query timing
- Optional Flask request/response logging
- Log rotation

Usage:
    from fitcenter.core.logging_config import setup_logging, get_logger

    setup_logging(log_level="INFO")

    logger = get_logger(__name__)
    logger.info("Reservation created", extra={"context": {"reservation_id": 7}})
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from flask import Flask, g, request
from sqlalchemy import event
from sqlalchemy.engine import Engine


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.
    Outputs logs as JSON with timestamp, level, message, and extra context.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "context"):
            log_data["context"] = getattr(record, "context", {})

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with colors for development.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        # Work on a copy so file handlers never see the escape codes
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname:8}{self.RESET}"
        return super().format(record)


def _resolve_level(log_level: Union[int, str]) -> int:
    if isinstance(log_level, int):
        return log_level
    return getattr(logging, str(log_level).upper(), logging.INFO)


def setup_logging(
    app: Optional[Flask] = None,
    log_level: Union[int, str] = "INFO",
    enable_sql_echo: bool = False,
    log_to_file: bool = True,
    use_json_format: bool = False,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure logging for the booking core.

    Args:
        app: Flask application instance hosting the core (enables request hooks)
        log_level: Logging level (int like logging.INFO or string "INFO")
        enable_sql_echo: Enable SQLAlchemy query timing logs
        log_to_file: Write logs to rotating files
        use_json_format: Use JSON format on the console too
        log_dir: Directory for log files (defaults to <backend>/logs)
    """
    level = _resolve_level(log_level)

    if log_dir is None:
        log_dir = Path(__file__).parent.parent.parent / "logs"
    early_warnings = []
    if log_to_file:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            early_warnings.append(
                f"Failed to create logs directory: {e}. Logging will only go to console."
            )
            log_to_file = False

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if use_json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            ConsoleFormatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root_logger.addHandler(console_handler)

    for msg in early_warnings:
        root_logger.warning(msg, extra={"context": {"component": "logging_setup"}})

    if log_to_file:
        file_formatter = JSONFormatter()  # Always JSON for files
        for filename, handler_level in (
            ("fitcenter.log", level),
            ("fitcenter_errors.log", logging.ERROR),
        ):
            try:
                file_handler = logging.handlers.RotatingFileHandler(
                    log_dir / filename,
                    maxBytes=10 * 1024 * 1024,  # 10 MB
                    backupCount=5,
                    encoding="utf-8",
                )
            except OSError as e:
                root_logger.warning(
                    f"Failed to create file handler for {filename}: {e}. "
                    "Falling back to console-only logging.",
                    extra={"context": {"component": "logging_setup"}},
                )
                continue
            file_handler.setLevel(handler_level)
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)

    if enable_sql_echo:
        _register_sql_timing()

    if app is not None:
        _register_request_hooks(app)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    app_logger = logging.getLogger("fitcenter")
    app_logger.setLevel(level)
    app_logger.info(
        f"Logging configured: level={level}, sql_echo={enable_sql_echo}, "
        f"log_to_file={log_to_file}, json_format={use_json_format}"
    )


def _register_sql_timing() -> None:
    sql_logger = logging.getLogger("sqlalchemy.engine")
    sql_logger.setLevel(logging.INFO)
    sql_logger.propagate = True

    if event.contains(Engine, "before_cursor_execute", _before_cursor_execute):
        return
    event.listen(Engine, "before_cursor_execute", _before_cursor_execute)
    event.listen(Engine, "after_cursor_execute", _after_cursor_execute)


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.time())


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    total_time = time.time() - conn.info["query_start_time"].pop(-1)
    logging.getLogger("sqlalchemy.performance").info(
        f"Query executed in {total_time * 1000:.2f}ms",
        extra={
            "context": {
                "sql_query": statement[:500],  # Truncate long queries
                "sql_duration_ms": round(total_time * 1000, 2),
            }
        },
    )


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def log_request():
        g.request_start_time = time.time()
        g.request_id = f"{time.time()}-{id(request)}"
        principal = getattr(g, "principal", None)
        logging.getLogger("flask.request").info(
            f"{request.method} {request.path}",
            extra={
                "context": {
                    "request_id": g.request_id,
                    "method": request.method,
                    "path": request.path,
                    "user_id": getattr(principal, "user_id", None),
                    "remote_addr": request.remote_addr,
                }
            },
        )

    @app.after_request
    def log_response(response):
        if hasattr(g, "request_start_time"):
            duration_ms = (time.time() - g.request_start_time) * 1000
            logging.getLogger("flask.response").info(
                f"{request.method} {request.path} {response.status_code} in {duration_ms:.2f}ms",
                extra={
                    "context": {
                        "request_id": g.get("request_id"),
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                    }
                },
            )
        return response



def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    Example:
        logger = get_logger(__name__)
        logger.info("Purchase created", extra={"context": {"purchase_id": 3}})
    """
    return logging.getLogger(name)


def log_performance(func_name: str, duration_ms: float, **kwargs) -> None:
    """
    Log performance metrics for a function or operation.

    Args:
        func_name: Name of the function or operation
        duration_ms: Execution duration in milliseconds
        **kwargs: Additional context (location_id, record_count, etc.)
    """
    context = {"function": func_name, "duration_ms": round(duration_ms, 2)}
    context.update(kwargs)
    get_logger("fitcenter.performance").info(
        f"{func_name} completed in {duration_ms:.2f}ms",
        extra={"context": context},
    )
