import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from geonear.data.coordinates import extract_coordinates
from geonear.data.places_repo import PlacesRepo
from geonear.errors import ConfigurationError
from geonear.lookup.client import NominatimLookup, TencentIpLookup
from geonear.lookup.models import GeocodeResponse, ReverseGeocodeResponse
from geonear.middleware import RequestLoggingMiddleware
from geonear.monitoring import get_metrics
from geonear.places.models import CreatePlaceRequest, PlaceResponse, PlacesResponse
from geonear.settings import get_settings

settings = get_settings()
ROOT = Path(__file__).resolve().parent
PLACES_DB = ROOT / settings.places_db_path

# Structured logging: include module and level
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# Input validation bounds (public robustness)
LIMIT_MAX = 200
QUERY_MIN_LEN = 2


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.repo = PlacesRepo(PLACES_DB, settings)
    app.state.lookup = NominatimLookup(
        base_url=settings.nominatim_url,
        user_agent=settings.geocode_user_agent,
        timeout=settings.lookup_timeout_seconds,
        cache_ttl_seconds=settings.lookup_cache_ttl_seconds,
    )
    app.state.ip_lookup = (
        TencentIpLookup(settings.tencent_api_key, timeout=settings.lookup_timeout_seconds)
        if settings.tencent_api_key
        else None
    )
    yield
    app.state.repo = None


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.exception_handler(ConfigurationError)
def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.info("telemetry configuration_error path=%s option=%s", request.url.path, exc.key)
    return JSONResponse(status_code=400, content={"detail": str(exc), "option": exc.key})


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    """Return consistent JSON error for unhandled exceptions (500)."""
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _repo() -> PlacesRepo:
    repo: PlacesRepo | None = getattr(app.state, "repo", None)
    if repo is None:
        repo = PlacesRepo(PLACES_DB, settings)
        app.state.repo = repo
    return repo


def _lookup():
    return getattr(app.state, "lookup", None)


def _options(**values) -> dict:
    # Only pass what the caller sent: a missing bearing means "use the default"
    return {k: v for k, v in values.items() if v is not None}


def _validate_limit(limit: int) -> None:
    if not (1 <= limit <= LIMIT_MAX):
        raise HTTPException(status_code=400, detail=f"limit must be between 1 and {LIMIT_MAX}")


@app.get("/favicon.ico", include_in_schema=False)
def favicon(request: Request):
    return Response(status_code=204)


@app.get("/health")
def health(request: Request):
    logger.info("telemetry route=health")
    return {"status": "ok"}


@app.get("/metrics")
def metrics(request: Request):
    return get_metrics()


# --- Places ---


@app.post("/places", response_model=PlaceResponse, status_code=201)
def create_place(request: Request, body: CreatePlaceRequest):
    repo = _repo()
    place_id = repo.add_place(body.name, body.lat, body.lng)
    return PlaceResponse.from_record(repo.get_place(place_id))


@app.get("/places/nearby", response_model=PlacesResponse)
def places_nearby(
    request: Request,
    lat: float | None = None,
    lng: float | None = None,
    q: str = "",
    radius: float | None = None,
    units: str | None = None,
    bearing: str | None = None,
    order: str | None = None,
    limit: int = 20,
    offset: int | None = None,
):
    """
    Places within radius of (lat, lng) or of a geocoded address q, nearest first.
    A location that cannot be resolved returns an empty list, not an error.
    """
    _validate_limit(limit)
    repo = _repo()
    if lat is not None or lng is not None:
        location = (lat, lng)
    else:
        location = q.strip() or None
    options = _options(units=units, bearing=bearing, order=order, limit=limit, offset=offset)
    logger.info("telemetry route=places_nearby radius=%s geocode=%s", radius, isinstance(location, str))
    places = repo.search_nearby(location, radius, options, lookup=_lookup())
    return PlacesResponse(
        places=[PlaceResponse.from_record(p) for p in places],
        profile=repo.compiler.profile.value,
    )


@app.get("/places/within", response_model=PlacesResponse)
def places_within(
    request: Request,
    sw_lat: float,
    sw_lng: float,
    ne_lat: float,
    ne_lng: float,
    order: str | None = None,
    limit: int = 20,
    offset: int | None = None,
):
    """Places inside a south-west / north-east box (the box may cross the antimeridian)."""
    _validate_limit(limit)
    repo = _repo()
    options = _options(order=order, limit=limit, offset=offset)
    places = repo.search_within([[sw_lat, sw_lng], [ne_lat, ne_lng]], options)
    return PlacesResponse(
        places=[PlaceResponse.from_record(p) for p in places],
        profile=repo.compiler.profile.value,
    )


@app.get("/places/{place_id}/nearbys", response_model=PlacesResponse)
def place_nearbys(
    request: Request,
    place_id: int,
    radius: float | None = None,
    units: str | None = None,
    limit: int = 20,
):
    """Other places near an existing place."""
    _validate_limit(limit)
    repo = _repo()
    places = repo.nearbys(place_id, radius, _options(units=units, limit=limit))
    if places is None:
        raise HTTPException(status_code=404, detail="Place not found.")
    return PlacesResponse(
        places=[PlaceResponse.from_record(p) for p in places],
        profile=repo.compiler.profile.value,
    )


# --- Geocoding ---


@app.get("/geocode", response_model=GeocodeResponse)
def geocode(request: Request, q: str = ""):
    """Resolve a place name, address or "lat,lng" string to coordinates."""
    query = (q or "").strip()
    if len(query) < QUERY_MIN_LEN:
        raise HTTPException(status_code=400, detail="Provide a search query (e.g. an address or place name).")
    # "lat,lng" strings resolve locally without a lookup
    center = extract_coordinates(query)
    if center is not None:
        return GeocodeResponse(lat=center.lat, lng=center.lng, display_name=query)
    lookup = _lookup()
    result = lookup.search(query) if lookup is not None else None
    if result is None:
        raise HTTPException(status_code=404, detail=f'No results for "{query[:80]}".')
    return GeocodeResponse(lat=result.lat, lng=result.lng, display_name=result.address)


@app.get("/geocode/ip", response_model=GeocodeResponse)
def geocode_ip(request: Request, ip: str = ""):
    """Locate an IP address (requires TENCENT_API_KEY)."""
    ip_lookup: TencentIpLookup | None = getattr(app.state, "ip_lookup", None)
    if ip_lookup is None:
        raise HTTPException(status_code=503, detail="IP lookup not configured. Set TENCENT_API_KEY in the environment.")
    result = ip_lookup.search(ip)
    if result is None:
        raise HTTPException(status_code=404, detail="No location for this IP address.")
    return GeocodeResponse(lat=result.lat, lng=result.lng, display_name=result.address)


@app.get("/reverse", response_model=ReverseGeocodeResponse)
def reverse_geocode(request: Request, lat: float, lng: float):
    center = extract_coordinates((lat, lng))
    lookup = _lookup()
    if center is None or lookup is None:
        raise HTTPException(status_code=404, detail="No address for this location.")
    result = lookup.reverse(center)
    if result is None:
        raise HTTPException(status_code=404, detail="No address for this location.")
    return ReverseGeocodeResponse(
        lat=result.lat,
        lng=result.lng,
        address=result.address,
        city=result.city,
        state=result.state,
        country=result.country,
    )
