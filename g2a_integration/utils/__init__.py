from .enhanced_logging import get_logger, configure_logging, G2ALogger, LoggingContext, mask_sensitive_data
from .time_utils import utc_now, format_g2a_timestamp, parse_g2a_timestamp

__all__ = [
    "get_logger",
    "configure_logging",
    "G2ALogger",
    "LoggingContext",
    "mask_sensitive_data",
    "utc_now",
    "format_g2a_timestamp",
    "parse_g2a_timestamp",
]
