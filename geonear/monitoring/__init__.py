from geonear.monitoring.metrics import get_metrics, record_query, record_request

__all__ = ["get_metrics", "record_query", "record_request"]
