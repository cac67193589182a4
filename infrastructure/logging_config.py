"""Logging configuration with plain and JSON console output."""
import logging
import logging.config
from datetime import datetime
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from infrastructure.config import get_settings


class BookingJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that adds timestamp, level and booking context fields"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.utcnow().isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['environment'] = get_settings().ENVIRONMENT

        for key in ('booking_id', 'room_id', 'actor_id'):
            if hasattr(record, key):
                log_record[key] = str(getattr(record, key))


def build_logging_config() -> Dict[str, Any]:
    settings = get_settings()
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
            },
            'json': {
                '()': BookingJsonFormatter,
                'format': '%(timestamp)s %(level)s %(logger)s %(message)s'
            },
        },
        'handlers': {
            'console': {
                'level': settings.LOG_LEVEL,
                'class': 'logging.StreamHandler',
                'formatter': settings.LOG_FORMAT,
            },
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': settings.LOG_LEVEL,
            },
            'uvicorn.access': {
                'handlers': ['console'],
                'level': 'INFO',
                'propagate': False,
            },
        },
    }


def setup_logging() -> logging.Logger:
    """Configure application logging"""
    logging.config.dictConfig(build_logging_config())
    logger = logging.getLogger("hotel")
    logger.info("Logging initialized with level: %s", get_settings().LOG_LEVEL)
    return logger
