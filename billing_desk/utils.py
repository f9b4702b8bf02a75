import logging
import threading
import time
from collections import deque
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import wraps

from gspread.exceptions import APIError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (409, 429, 500, 503)


def retry_request(retries=5, delay=10):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(retries):
                try:
                    return func(*args, **kwargs)
                except APIError as e:
                    if e.response.status_code in RETRYABLE_STATUS_CODES and attempt + 1 < retries:
                        logger.warning(
                            "Retrying %s (%s / %s), waiting %s seconds", func.__name__, attempt + 1, retries, delay
                        )
                        time.sleep(delay)
                    else:
                        raise

        return wrapper

    return decorator


def rate_limit(max_requests=60, per_seconds=60):
    lock = threading.Lock()
    requests_timestamps = deque(maxlen=max_requests)

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            with lock:
                current_time = time.time()

                while requests_timestamps and current_time - requests_timestamps[0] >= per_seconds:
                    requests_timestamps.popleft()

                if len(requests_timestamps) >= max_requests:
                    sleep_time = requests_timestamps[0] + per_seconds - current_time
                    if sleep_time > 0:
                        time.sleep(sleep_time)

                requests_timestamps.append(time.time())

                return func(*args, **kwargs)

        return wrapper

    return decorator


def to_decimal(value, default: Decimal | None = Decimal("0")) -> Decimal | None:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return default


def parse_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # ISO timestamps from the API ("2025-05-26T00:00:00.000Z") or plain dates
    return date.fromisoformat(str(value)[:10])
