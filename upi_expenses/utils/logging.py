"""Logging configuration"""

import json
import logging
from datetime import datetime

_HANDLER_NAME = 'upi_expenses_console'


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record):
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_format: bool = False) -> logging.Logger:
    """
    Install a console handler on the package logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    logger = logging.getLogger('upi_expenses')
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger
