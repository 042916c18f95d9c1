from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from geonear.data.geo import EARTH_RADIUS, Units
from geonear.query.options import BearingMode


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "GeoNear API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    # CORS: "*" for dev; in production set to comma-separated origins
    cors_origins: str = "*"
    places_db_path: str = "data/places.db"  # Path relative to project root, or absolute

    # Proximity queries
    units: Units = Units.KM
    bearing: BearingMode = BearingMode.LINEAR  # off | linear | spherical
    earth_radius_km: float = EARTH_RADIUS[Units.KM]
    earth_radius_mi: float = EARTH_RADIUS[Units.MI]
    default_radius: float = 20.0
    # "auto" probes the connection; "approximate" forces the degraded formulas
    backend_profile: Literal["auto", "trigonometric", "approximate"] = "auto"
    # Register Python math functions on SQLite so the full formulas can run there
    sqlite_math_functions: bool = False

    # Geocoding lookups
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    geocode_user_agent: str = "geonear/1.0"
    lookup_timeout_seconds: float = 10.0
    lookup_cache_ttl_seconds: int = 86400
    tencent_api_key: str = ""  # Only needed for IP lookups

    @field_validator("bearing")
    @classmethod
    def bearing_is_method(cls, v: BearingMode) -> BearingMode:
        if v not in (BearingMode.OFF, BearingMode.LINEAR, BearingMode.SPHERICAL):
            raise ValueError("bearing must be one of: off, linear, spherical")
        return v

    def earth_radius(self, units: Units) -> float:
        return self.earth_radius_mi if units is Units.MI else self.earth_radius_km


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
