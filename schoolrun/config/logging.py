# schoolrun/config/logging.py
import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from .settings import Settings, get_settings


# Custom formatter with colors for console output
class ColoredFormatter(logging.Formatter):
    """Custom formatter with color coding for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record):
        original = record.levelname
        color = self.COLORS.get(original, self.COLORS['RESET'])
        record.levelname = f"{color}{original}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


# JSON formatter for structured logging
class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    EXTRA_FIELDS = (
        'request_id', 'duration', 'trip_id', 'stop_id', 'alert_type', 'severity',
    )

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def build_logging_config(settings: Settings) -> Dict[str, Any]:
    """Build the dictConfig for the given settings."""
    console_formatter = 'json' if settings.LOG_JSON else ('colored' if settings.DEBUG else 'standard')
    handlers: Dict[str, Any] = {
        'console': {
            'level': 'DEBUG' if settings.DEBUG else 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': console_formatter,
            'stream': 'ext://sys.stdout'
        }
    }
    root_handlers = ['console']

    if settings.LOG_FILE:
        handlers['file'] = {
            'level': 'INFO',
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'json' if settings.LOG_JSON else 'detailed',
            'filename': settings.LOG_FILE,
            'maxBytes': 10485760,  # 10MB
            'backupCount': 5,
            'encoding': 'utf8'
        }
        root_handlers.append('file')

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(funcName)s(): %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'colored': {
                '()': ColoredFormatter,
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'json': {
                '()': JSONFormatter
            }
        },
        'handlers': handlers,
        'loggers': {
            '': {  # Root logger
                'handlers': root_handlers,
                'level': settings.LOG_LEVEL,
            },
            'uvicorn.access': {
                'handlers': root_handlers,
                'level': 'INFO',
                'propagate': False
            },
            'sqlalchemy.engine': {
                'level': 'INFO' if settings.DATABASE_ECHO else 'WARNING',
            },
        }
    }


def setup_logging(settings: Optional[Settings] = None):
    """Setup logging configuration."""
    settings = settings or get_settings()
    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig(build_logging_config(settings))

    if not settings.DEBUG:
        # Reduce noise in production
        logging.getLogger("multipart").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def log_api_request(request_id: str, method: str, path: str):
    """Log API request information."""
    logger = get_logger("schoolrun.api")
    logger.info(f"{method} {path}", extra={'request_id': request_id})


def log_api_response(request_id: str, status_code: int, duration: float):
    """Log API response information."""
    logger = get_logger("schoolrun.api")
    extra = {'request_id': request_id, 'duration': duration}
    logger.info(f"Response: {status_code} ({duration:.3f}s)", extra=extra)


def log_alert_event(event: str, trip_id: int, stop_id: int, alert_type: str, severity: str = None):
    """Log one line per alert lifecycle event (created, delivered)."""
    logger = get_logger("schoolrun.alerts")
    extra = {'trip_id': trip_id, 'stop_id': stop_id, 'alert_type': alert_type}
    if severity:
        extra['severity'] = severity

    message = f"Alert {event}: {alert_type} trip={trip_id} stop={stop_id}"
    if alert_type == "missed_school":
        logger.error(message, extra=extra)
    else:
        logger.warning(message, extra=extra)


# Performance logging decorator
def log_performance(logger_name: str = "schoolrun.performance"):
    """Decorator to log function performance."""
    def decorator(func):
        import functools
        import time

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                duration = time.perf_counter() - start_time
                logger.info(f"{func.__name__} completed in {duration:.3f}s", extra={'duration': duration})
                return result
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.error(f"{func.__name__} failed after {duration:.3f}s: {str(e)}")
                raise
        return wrapper
    return decorator


__all__ = [
    "setup_logging",
    "build_logging_config",
    "get_logger",
    "log_api_request",
    "log_api_response",
    "log_alert_event",
    "log_performance"
]
