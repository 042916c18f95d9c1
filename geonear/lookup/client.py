"""
Geocoding lookups over HTTP: Nominatim (search / reverse) and Tencent IP location.
One request per lookup, no retries; failures are logged and returned as None.
Results are kept in an in-memory TTL cache per query.
"""
import logging
import time
from threading import Lock
from typing import Any

import httpx

from geonear.data.coordinates import Coordinate
from geonear.lookup.models import LookupResult

logger = logging.getLogger(__name__)

NOMINATIM_BASE = "https://nominatim.openstreetmap.org"
TENCENT_IP_URL = "https://apis.map.qq.com/ws/location/v1/ip"
LOOKUP_TIMEOUT_SECONDS = 10.0
LOOKUP_CACHE_TTL_SECONDS = 86400
LOOKUP_CACHE_MAX = 1000


class _TTLCache:
    """In-memory TTL cache shared by request threads. Oldest entry is evicted when full."""

    def __init__(self, ttl_seconds: int = LOOKUP_CACHE_TTL_SECONDS, max_entries: int = LOOKUP_CACHE_MAX):
        self._ttl = ttl_seconds
        self._max = max_entries
        self._store: dict[str, tuple[Any, float]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.monotonic() >= expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._store and len(self._store) >= self._max:
                oldest_key = min(self._store, key=lambda k: self._store[k][1])
                del self._store[oldest_key]
            self._store[key] = (value, time.monotonic() + self._ttl)


def _get_json(url: str, params: dict[str, Any], timeout: float, headers: dict[str, str] | None = None) -> Any | None:
    try:
        with httpx.Client(timeout=timeout, headers=headers) as client:
            resp = client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
    except httpx.TimeoutException:
        logger.warning("telemetry lookup_timeout url=%s", url)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("telemetry lookup_error url=%s error=%s", url, str(e))
    return None


def _normalize_nominatim(raw: dict[str, Any]) -> LookupResult | None:
    """Normalize one Nominatim search/reverse item. None without usable coordinates."""
    try:
        lat = float(raw["lat"])
        lng = float(raw["lon"])
    except (KeyError, TypeError, ValueError):
        return None
    address = raw.get("address") or {}
    if not isinstance(address, dict):
        address = {}
    street = " ".join(p for p in (address.get("house_number"), address.get("road")) if p)
    return LookupResult(
        lat=lat,
        lng=lng,
        address=raw.get("display_name") or "",
        street=street,
        city=address.get("city") or address.get("town") or address.get("village") or "",
        district=address.get("suburb") or "",
        state=address.get("state") or "",
        postal_code=address.get("postcode") or "",
        country=address.get("country") or "",
        country_code=(address.get("country_code") or "").upper(),
    )


def _normalize_tencent_ip(raw: dict[str, Any]) -> LookupResult | None:
    """Normalize a Tencent IP location response (status 0 + result.location / result.ad_info)."""
    if raw.get("status") != 0:
        logger.warning(
            "telemetry tencent_ip_error status=%s message=%s",
            raw.get("status"),
            raw.get("message", ""),
        )
        return None
    result = raw.get("result") or {}
    location = result.get("location") or {}
    try:
        lat = float(location["lat"])
        lng = float(location["lng"])
    except (KeyError, TypeError, ValueError):
        return None
    ad_info = result.get("ad_info") or {}
    province = ad_info.get("province") or ""
    city = ad_info.get("city") or ""
    district = ad_info.get("district") or ""
    return LookupResult(
        lat=lat,
        lng=lng,
        address="".join(p for p in (province, city, district) if p),
        city=city,
        district=district,
        state=province,
        country="China",
        country_code="CN",
    )


class NominatimLookup:
    """OpenStreetMap Nominatim search and reverse geocoding."""

    def __init__(
        self,
        base_url: str = NOMINATIM_BASE,
        user_agent: str = "geonear/1.0",
        timeout: float = LOOKUP_TIMEOUT_SECONDS,
        cache_ttl_seconds: int = LOOKUP_CACHE_TTL_SECONDS,
    ):
        self._base = base_url.rstrip("/")
        self._headers = {"User-Agent": user_agent}
        self._timeout = timeout
        self._cache = _TTLCache(ttl_seconds=cache_ttl_seconds)

    def search(self, query: str) -> LookupResult | None:
        query = (query or "").strip()
        if not query:
            return None
        ckey = f"search:{query.lower()}"
        cached = self._cache.get(ckey)
        if cached is not None:
            logger.info("telemetry geocode_served cache_hit=true")
            return cached
        data = _get_json(
            f"{self._base}/search",
            {"q": query, "format": "json", "limit": 1, "addressdetails": 1},
            self._timeout,
            self._headers,
        )
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        result = _normalize_nominatim(data[0])
        if result is not None:
            self._cache.set(ckey, result)
        return result

    def reverse(self, coordinate: Coordinate) -> LookupResult | None:
        lat, lng = coordinate
        ckey = f"reverse:{round(lat, 6)},{round(lng, 6)}"
        cached = self._cache.get(ckey)
        if cached is not None:
            return cached
        data = _get_json(
            f"{self._base}/reverse",
            {"lat": lat, "lon": lng, "format": "json"},
            self._timeout,
            self._headers,
        )
        if not isinstance(data, dict) or "error" in data:
            return None
        result = _normalize_nominatim(data)
        if result is not None:
            self._cache.set(ckey, result)
        return result


class TencentIpLookup:
    """Tencent location service: coordinates and region for an IP address."""

    def __init__(
        self,
        api_key: str,
        url: str = TENCENT_IP_URL,
        timeout: float = LOOKUP_TIMEOUT_SECONDS,
        cache_ttl_seconds: int = LOOKUP_CACHE_TTL_SECONDS,
    ):
        self._api_key = api_key
        self._url = url
        self._timeout = timeout
        self._cache = _TTLCache(ttl_seconds=cache_ttl_seconds)

    def search(self, ip: str) -> LookupResult | None:
        ip = (ip or "").strip()
        if not ip:
            return None
        cached = self._cache.get(ip)
        if cached is not None:
            return cached
        data = _get_json(self._url, {"ip": ip, "key": self._api_key}, self._timeout)
        if not isinstance(data, dict):
            return None
        result = _normalize_tencent_ip(data)
        if result is not None:
            self._cache.set(ip, result)
        return result
