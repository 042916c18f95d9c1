"""Unit tests for geocoding lookups: cache hit/miss and response normalization."""
import threading
import time
from unittest.mock import patch

import httpx

from geonear.data.coordinates import Coordinate
from geonear.lookup.client import (
    NominatimLookup,
    TencentIpLookup,
    _normalize_nominatim,
    _normalize_tencent_ip,
    _TTLCache,
)

NOMINATIM_ITEM = {
    "lat": "40.7127281",
    "lon": "-74.0060152",
    "display_name": "City of New York, New York, United States",
    "address": {
        "house_number": "1",
        "road": "Centre Street",
        "city": "City of New York",
        "state": "New York",
        "postcode": "10007",
        "country": "United States",
        "country_code": "us",
    },
}

TENCENT_OK = {
    "status": 0,
    "message": "query ok",
    "result": {
        "ip": "111.206.145.41",
        "location": {"lat": 39.90469, "lng": 116.40717},
        "ad_info": {"nation": "中国", "province": "北京市", "city": "北京市", "district": "", "adcode": 110000},
    },
}


# --- Cache tests ---


def test_ttl_cache_miss_then_hit():
    """First get is miss, second get within TTL is hit."""
    cache = _TTLCache(ttl_seconds=60)
    assert cache.get("k1") is None
    cache.set("k1", "v1")
    assert cache.get("k1") == "v1"


def test_ttl_cache_expiry():
    """After TTL expires, get returns None (cache miss)."""
    cache = _TTLCache(ttl_seconds=1)
    cache.set("k1", "v1")
    assert cache.get("k1") == "v1"
    time.sleep(1.1)
    assert cache.get("k1") is None


def test_ttl_cache_evicts_oldest_when_full():
    cache = _TTLCache(ttl_seconds=60, max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert cache.get("a") is None
    assert cache.get("c") == 3


def test_search_cache_miss_then_hit():
    """Second search for the same query is served from cache."""
    with patch("geonear.lookup.client.httpx.Client") as mock_client_cls:
        mock_get = mock_client_cls.return_value.__enter__.return_value.get
        mock_get.return_value.json.return_value = [NOMINATIM_ITEM]
        mock_get.return_value.raise_for_status = lambda: None

        lookup = NominatimLookup()
        first = lookup.search("New York")
        second = lookup.search("new york ")
        assert mock_get.call_count == 1
        assert first == second
        assert first.coordinates == Coordinate(40.7127281, -74.0060152)
        _, kwargs = mock_get.call_args
        assert kwargs["params"]["q"] == "New York"


def test_search_no_results():
    with patch("geonear.lookup.client.httpx.Client") as mock_client_cls:
        mock_get = mock_client_cls.return_value.__enter__.return_value.get
        mock_get.return_value.json.return_value = []
        mock_get.return_value.raise_for_status = lambda: None

        assert NominatimLookup().search("Atlantis") is None


def test_search_network_error_returns_none():
    with patch("geonear.lookup.client.httpx.Client") as mock_client_cls:
        mock_client_cls.return_value.__enter__.return_value.get.side_effect = httpx.ConnectError("boom")
        assert NominatimLookup().search("New York") is None


def test_search_empty_query_skips_request():
    with patch("geonear.lookup.client.httpx.Client") as mock_client_cls:
        assert NominatimLookup().search("  ") is None
        mock_client_cls.assert_not_called()


def test_reverse():
    with patch("geonear.lookup.client.httpx.Client") as mock_client_cls:
        mock_get = mock_client_cls.return_value.__enter__.return_value.get
        mock_get.return_value.json.return_value = NOMINATIM_ITEM
        mock_get.return_value.raise_for_status = lambda: None

        result = NominatimLookup().reverse(Coordinate(40.7127, -74.006))
        assert result.city == "City of New York"
        _, kwargs = mock_get.call_args
        assert kwargs["params"]["lat"] == 40.7127
        assert kwargs["params"]["lon"] == -74.006


def test_reverse_error_payload():
    with patch("geonear.lookup.client.httpx.Client") as mock_client_cls:
        mock_get = mock_client_cls.return_value.__enter__.return_value.get
        mock_get.return_value.json.return_value = {"error": "Unable to geocode"}
        mock_get.return_value.raise_for_status = lambda: None

        assert NominatimLookup().reverse(Coordinate(0.0, 0.0)) is None


def test_tencent_ip_search():
    with patch("geonear.lookup.client.httpx.Client") as mock_client_cls:
        mock_get = mock_client_cls.return_value.__enter__.return_value.get
        mock_get.return_value.json.return_value = TENCENT_OK
        mock_get.return_value.raise_for_status = lambda: None

        lookup = TencentIpLookup(api_key="test-key")
        result = lookup.search("111.206.145.41")
        lookup.search("111.206.145.41")
        assert mock_get.call_count == 1
        assert (result.lat, result.lng) == (39.90469, 116.40717)
        args, kwargs = mock_get.call_args
        assert args[0] == "https://apis.map.qq.com/ws/location/v1/ip"
        assert kwargs["params"] == {"ip": "111.206.145.41", "key": "test-key"}


# --- Normalization tests ---


def test_normalize_nominatim_full():
    out = _normalize_nominatim(NOMINATIM_ITEM)
    assert (out.lat, out.lng) == (40.7127281, -74.0060152)
    assert out.street == "1 Centre Street"
    assert out.state == "New York"
    assert out.postal_code == "10007"
    assert out.country_code == "US"


def test_normalize_nominatim_missing_coordinates():
    assert _normalize_nominatim({"display_name": "Nowhere"}) is None
    assert _normalize_nominatim({"lat": "x", "lon": "1"}) is None


def test_normalize_nominatim_town_fallback():
    out = _normalize_nominatim({"lat": "1", "lon": "2", "address": {"town": "Smallville"}})
    assert out.city == "Smallville"
    assert out.street == ""


def test_normalize_tencent_ip():
    out = _normalize_tencent_ip(TENCENT_OK)
    assert out.state == "北京市"
    assert out.city == "北京市"
    assert out.district == ""
    assert out.country == "China"
    assert out.country_code == "CN"


def test_normalize_tencent_ip_error_status():
    assert _normalize_tencent_ip({"status": 311, "message": "key format error"}) is None


def test_normalize_tencent_ip_missing_location():
    assert _normalize_tencent_ip({"status": 0, "result": {}}) is None


def test_ttl_cache_shared_between_threads():
    """Concurrent sets with eviction never fail and never exceed the size bound."""
    cache = _TTLCache(ttl_seconds=60, max_entries=50)
    errors = []

    def worker(n):
        try:
            for i in range(5000):
                cache.set(f"{n}:{i}", i)
                cache.get(f"{n}:{i - 1}")
        except Exception as e:
            errors.append(repr(e))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []
    assert len(cache._store) <= 50
