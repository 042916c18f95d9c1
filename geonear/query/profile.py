"""
Backend capability detection: does the connection support trigonometric SQL?
Run once per connection at setup, never per query.
"""
import logging
from typing import Any

from geonear.query.options import BackendProfile

logger = logging.getLogger(__name__)

PROBE_SQL = (
    "SELECT SIN(0), COS(0), ASIN(0), ATAN2(0, 1), SQRT(1), POWER(1, 1), "
    "RADIANS(0), DEGREES(0), FLOOR(0)"
)


def detect_backend_profile(connection: Any) -> BackendProfile:
    """Probe a DB-API connection for the math functions the full formulas use."""
    cursor = connection.cursor()
    try:
        cursor.execute(PROBE_SQL)
        cursor.fetchone()
    except Exception as e:
        logger.info("telemetry backend_profile=approximate reason=%s", str(e))
        # Leave the connection usable on engines that abort the transaction
        rollback = getattr(connection, "rollback", None)
        if rollback is not None:
            rollback()
        return BackendProfile.APPROXIMATE
    finally:
        cursor.close()
    logger.info("telemetry backend_profile=trigonometric")
    return BackendProfile.TRIGONOMETRIC


def resolve_profile(detected: BackendProfile, preferred: BackendProfile | str | None = None) -> BackendProfile:
    """
    Combine the detected capability with a configured preference. Asking for
    trigonometric SQL on a connection without it falls back to approximate.
    """
    if preferred is None or preferred == "auto":
        return detected
    preferred = BackendProfile(preferred)
    if preferred is BackendProfile.TRIGONOMETRIC and detected is BackendProfile.APPROXIMATE:
        logger.info("telemetry backend_profile_fallback preferred=trigonometric using=approximate")
        return BackendProfile.APPROXIMATE
    return preferred
