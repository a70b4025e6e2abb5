# g2a_integration/utils/enhanced_logging.py
import logging
import json
import uuid
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Union
from contextvars import ContextVar
import sys

# Context variable for request correlation
correlation_id_var: ContextVar[str] = ContextVar('correlation_id', default='')

REDACTED = "[REDACTED]"

SENSITIVE_KEY_FRAGMENTS = (
    "apikey",
    "api_key",
    "apihash",
    "api_hash",
    "token",
    "authorization",
    "password",
    "secret",
)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEY_FRAGMENTS)


def mask_sensitive_data(data: Any) -> Any:
    """Return a copy of ``data`` with secret-looking keys replaced by ``[REDACTED]``."""
    if isinstance(data, dict):
        return {
            key: REDACTED if is_sensitive_key(str(key)) else mask_sensitive_data(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [mask_sensitive_data(item) for item in data]
    return data


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured JSON logs with correlation tracking.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'service': 'g2a_integration',
            'correlation_id': correlation_id_var.get(''),
        }

        # Context passed as keyword arguments to G2ALogger
        context = getattr(record, 'context', None)
        if context:
            log_entry.update(context)

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if record.levelno <= logging.DEBUG:
            log_entry['source'] = {
                'file': record.pathname,
                'function': record.funcName,
                'line': record.lineno
            }

        return json.dumps(log_entry, default=str)


class G2ALogger:
    """
    Structured logger for the G2A integration client.

    Keyword arguments given to the level methods become top-level JSON fields.
    Secret-looking keys are masked unless ``mask_secrets`` is turned off.
    """

    def __init__(self, name: str, level: Union[str, int, None] = None,
                 mask_secrets: bool = True, enabled: bool = True):
        self.logger = logging.getLogger(name)
        self.mask_secrets = mask_secrets
        self.enabled = enabled
        self._setup_logger(level)

    def _setup_logger(self, level: Union[str, int, None]):
        """Setup logger with structured formatting"""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)
        if level is not None:
            self.set_level(level)

    def set_level(self, level: Union[str, int]):
        if isinstance(level, str):
            level = LOG_LEVELS.get(level.lower(), logging.INFO)
        self.logger.setLevel(level)

    def set_correlation_id(self, correlation_id: str):
        """Set correlation ID for request tracking"""
        correlation_id_var.set(correlation_id)

    def _log(self, level: int, message: str, kwargs: Dict[str, Any]):
        if not self.enabled:
            return
        exc_info = kwargs.pop('exc_info', None)
        context = mask_sensitive_data(kwargs) if self.mask_secrets else kwargs
        self.logger.log(level, message, exc_info=exc_info, extra={'context': context})

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    def log_api_call(self, endpoint: str, method: str, duration_ms: float, success: bool, **kwargs):
        """Specialized logging for partner API calls"""
        self.info(
            f"API call {method} {endpoint}",
            endpoint=endpoint,
            method=method,
            duration_ms=duration_ms,
            success=success,
            category="api_call",
            **kwargs
        )


_loggers: Dict[str, G2ALogger] = {}
_defaults: Dict[str, Any] = {"level": None, "mask_secrets": True, "enabled": True}


def get_logger(name: str, level: Union[str, int, None] = None,
               mask_secrets: Optional[bool] = None, enabled: Optional[bool] = None) -> G2ALogger:
    """Get or create a structured logger instance"""
    logger = _loggers.get(name)
    if logger is None:
        logger = G2ALogger(
            name,
            level=level if level is not None else _defaults["level"],
            mask_secrets=_defaults["mask_secrets"] if mask_secrets is None else mask_secrets,
            enabled=_defaults["enabled"] if enabled is None else enabled,
        )
        _loggers[name] = logger
    elif level is not None:
        logger.set_level(level)
    return logger


def configure_logging(level: Union[str, int, None] = None, enabled: bool = True, mask_secrets: bool = True):
    """Apply client-wide logging settings to existing and future loggers."""
    _defaults.update(level=level, enabled=enabled, mask_secrets=mask_secrets)
    for logger in _loggers.values():
        logger.enabled = enabled
        logger.mask_secrets = mask_secrets
        if level is not None:
            logger.set_level(level)


class LoggingContext:
    """Context manager for setting the correlation id of log lines"""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self._token = None

    def __enter__(self):
        self._token = correlation_id_var.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        correlation_id_var.reset(self._token)
