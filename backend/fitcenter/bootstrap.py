"""
Startup wiring for a host application embedding the booking core.

The host owns routing and authentication; init_booking_core() configures
logging, creates tables, and (given a Flask app) installs the request
logging hooks and the domain error handlers.
"""

import logging
import os
from typing import Optional

from flask import Flask

from fitcenter.core.api_utils import register_error_handlers
from fitcenter.core.config import log_booking_policy, log_timezone_config
from fitcenter.core.logging_config import get_logger, setup_logging
from fitcenter.db.session import create_tables


def init_booking_core(app: Optional[Flask] = None, create_schema: bool = True) -> None:
    env = os.getenv("FLASK_ENV", "development")
    is_production = env == "production"

    setup_logging(
        app=app,
        log_level=logging.INFO if is_production else logging.DEBUG,
        enable_sql_echo=os.getenv("SQL_ECHO", "0") == "1",
        log_to_file=os.getenv("LOG_TO_FILE", "1") == "1",
        use_json_format=is_production,
    )
    log_timezone_config()
    log_booking_policy()

    if create_schema:
        create_tables()

    if app is not None:
        register_error_handlers(app)

    get_logger(__name__).info(
        "Booking core initialized",
        extra={
            "context": {
                "environment": env,
                "flask_app": app.name if app is not None else None,
            }
        },
    )
