# src/tenantprov/http/throttle.py
import random
import time

# Statuses we retry on reads
RETRY_STATUSES = {429, 502, 503, 504}
# Mutations only retry when Graph throttled the call before running it
RETRY_STATUSES_MUTATING = {429}

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

def retry_statuses_for(method: str) -> set[int]:
    return RETRY_STATUSES if method.upper() in SAFE_METHODS else RETRY_STATUSES_MUTATING

def compute_sleep_seconds(attempt: int, retry_after_header: str | None) -> float:
    # Honor Retry-After (integer seconds)
    if retry_after_header and retry_after_header.isdigit():
        return int(retry_after_header)
    base = min(2 ** attempt, 8)  # 1,2,4,8 cap
    return base * (0.6 + 0.8 * random.random())  # jitter 60–140%

def sleep_backoff(seconds: float) -> None:
    if seconds > 0:
        time.sleep(seconds)
