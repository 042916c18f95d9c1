"""Pydantic models for the places API."""
from pydantic import BaseModel, field_validator, model_validator

from geonear.data.places_repo import PlaceRecord


class PlaceResponse(BaseModel):
    id: int
    name: str
    lat: float | None
    lng: float | None
    distance: float | None = None
    bearing: float | None = None

    @classmethod
    def from_record(cls, record: PlaceRecord) -> "PlaceResponse":
        return cls(**record._asdict())


class PlacesResponse(BaseModel):
    places: list[PlaceResponse]
    profile: str


class CreatePlaceRequest(BaseModel):
    name: str
    lat: float | None = None
    lng: float | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Name must not be empty.")
        return v

    @model_validator(mode="after")
    def check_coordinates(self):
        if (self.lat is None) != (self.lng is None):
            raise ValueError("Provide both lat and lng, or neither.")
        if self.lat is not None and not (-90 <= self.lat <= 90):
            raise ValueError("lat must be between -90 and 90")
        if self.lng is not None and not (-180 <= self.lng <= 180):
            raise ValueError("lng must be between -180 and 180")
        return self
