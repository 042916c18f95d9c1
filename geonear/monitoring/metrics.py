"""In-memory metrics for the /metrics endpoint: request status buckets and proximity queries by profile."""
import time
from collections.abc import MutableMapping
from threading import Lock

_start_time = time.monotonic()
_counts: MutableMapping[str, int] = {}
_queries: MutableMapping[str, int] = {}
_lock = Lock()


def _status_bucket(status_code: int) -> str:
    if 200 <= status_code < 300:
        return "2xx"
    if 400 <= status_code < 500:
        return "4xx"
    if status_code >= 500:
        return "5xx"
    return "other"


def record_request(status_code: int) -> None:
    bucket = _status_bucket(status_code)
    with _lock:
        _counts[bucket] = _counts.get(bucket, 0) + 1


def record_query(kind: str, profile: str) -> None:
    """Count a proximity query run, e.g. ("near", "approximate")."""
    key = f"{kind}:{profile}"
    with _lock:
        _queries[key] = _queries.get(key, 0) + 1


def get_metrics() -> dict:
    with _lock:
        counts = dict(_counts)
        queries = dict(_queries)
    uptime_seconds = time.monotonic() - _start_time
    return {
        "requests_total": sum(counts.values()),
        "requests_2xx": counts.get("2xx", 0),
        "requests_4xx": counts.get("4xx", 0),
        "requests_5xx": counts.get("5xx", 0),
        "queries": queries,
        "uptime_seconds": round(uptime_seconds, 1),
    }
