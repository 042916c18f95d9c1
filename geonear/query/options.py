"""
Caller options for proximity queries, validated with pydantic.
"""
from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from geonear.data.geo import Units
from geonear.errors import ConfigurationError

ALL_COLUMNS = "*"
GEO_ONLY = "geo_only"

_UNIT_ALIASES = {
    "km": Units.KM,
    "kilometer": Units.KM,
    "kilometers": Units.KM,
    "mi": Units.MI,
    "mile": Units.MI,
    "miles": Units.MI,
}


class BackendProfile(str, Enum):
    TRIGONOMETRIC = "trigonometric"
    APPROXIMATE = "approximate"


class BearingMode(str, Enum):
    """Bearing request. UNSPECIFIED and ON defer to the configured method."""

    UNSPECIFIED = "unspecified"
    OFF = "off"
    ON = "on"
    LINEAR = "linear"
    SPHERICAL = "spherical"

    def resolve(self, default: "BearingMode") -> "BearingMode":
        if self is BearingMode.UNSPECIFIED:
            return default if default is not BearingMode.ON else BearingMode.LINEAR
        if self is BearingMode.ON:
            return default if default in (BearingMode.LINEAR, BearingMode.SPHERICAL) else BearingMode.LINEAR
        return self


NonNegativeInt = Annotated[int, Field(strict=True, ge=0)]


def _split(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


class QueryOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    units: Units | None = None
    bearing: BearingMode = BearingMode.UNSPECIFIED
    select: Literal["*", "geo_only"] | tuple[str, ...] = ALL_COLUMNS
    order: tuple[str, ...] | None = None
    limit: NonNegativeInt | None = None
    offset: NonNegativeInt | None = None
    exclude: Any = None

    @field_validator("units", mode="before")
    @classmethod
    def units_known(cls, v: Any) -> Any:
        if v is None or isinstance(v, Units):
            return v
        unit = _UNIT_ALIASES.get(str(v).strip().lower())
        if unit is None:
            raise ValueError(f"unsupported unit {v!r}; use km or mi")
        return unit

    @field_validator("bearing", mode="before")
    @classmethod
    def bearing_tri_state(cls, v: Any) -> Any:
        # Explicit false/None means off; true means on with the configured method
        if v is None or v is False:
            return BearingMode.OFF
        if v is True:
            return BearingMode.ON
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("select", mode="before")
    @classmethod
    def select_columns(cls, v: Any) -> Any:
        if v is None:
            return ALL_COLUMNS
        if isinstance(v, str):
            v = v.strip()
            if v in (ALL_COLUMNS, GEO_ONLY, ":geo_only"):
                return v.lstrip(":")
            v = _split(v)
        if isinstance(v, (list, tuple)):
            if not v or not all(isinstance(c, str) for c in v):
                raise ValueError("select must be a non-empty list of column names")
            return tuple(c.strip() for c in v)
        return v

    @field_validator("order", mode="before")
    @classmethod
    def order_items(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            v = _split(v)
        if isinstance(v, (list, tuple)):
            if not v or not all(isinstance(c, str) for c in v):
                raise ValueError("order must be a non-empty list of column names")
            return tuple(c.strip() for c in v)
        return v

    @classmethod
    def parse(cls, options: "QueryOptions | Mapping[str, Any] | None") -> "QueryOptions":
        """Build options from a mapping; a missing bearing key stays UNSPECIFIED."""
        if isinstance(options, QueryOptions):
            return options
        if options is None:
            return cls()
        if not isinstance(options, Mapping):
            raise ConfigurationError("options", f"expected a mapping (got {type(options).__name__})")
        try:
            return cls(**{str(k): v for k, v in options.items()})
        except ValidationError as e:
            err = e.errors()[0]
            key = str(err["loc"][0]) if err.get("loc") else "options"
            if err.get("type") == "extra_forbidden":
                raise ConfigurationError(key, "unknown option") from e
            raise ConfigurationError(key, err.get("msg", "invalid value")) from e
