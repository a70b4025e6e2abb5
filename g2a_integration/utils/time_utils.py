from datetime import datetime, timedelta, timezone
from typing import Optional, Union

G2A_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
G2A_DATE_FORMAT = "%Y-%m-%d"

EPOCH = datetime(1970, 1, 1)


def utc_now() -> datetime:
    """
    Returns the current UTC time with timezone info.
    """
    return datetime.now(timezone.utc)


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0)


def format_g2a_timestamp(dt: Optional[datetime] = None) -> str:
    """
    Formats a datetime in the partner wire format ``yyyy-mm-dd hh:mm:ss`` (UTC).
    """
    if dt is None:
        dt = utc_now()
    return _to_naive_utc(dt).strftime(G2A_TIMESTAMP_FORMAT)


def parse_g2a_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parses a partner timestamp into a naive UTC datetime truncated to whole seconds.

    Accepts ``yyyy-mm-dd hh:mm:ss``, ``yyyy-mm-dd`` and ISO-8601 strings
    (with or without offset). Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _to_naive_utc(value)

    text = str(value).strip()
    for fmt in (G2A_TIMESTAMP_FORMAT, G2A_DATE_FORMAT):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def hours_ago(hours: float, now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) - timedelta(hours=hours)


def epoch_millis(dt: Optional[datetime] = None) -> int:
    dt = dt or utc_now()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
