"""Pydantic models for geocoding lookup results."""
from pydantic import BaseModel

from geonear.data.coordinates import Coordinate


class LookupResult(BaseModel):
    lat: float
    lng: float
    address: str = ""
    street: str = ""
    city: str = ""
    district: str = ""
    state: str = ""
    state_code: str = ""
    postal_code: str = ""
    country: str = ""
    country_code: str = ""

    @property
    def coordinates(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


class GeocodeResponse(BaseModel):
    lat: float
    lng: float
    display_name: str


class ReverseGeocodeResponse(BaseModel):
    lat: float
    lng: float
    address: str
    city: str = ""
    state: str = ""
    country: str = ""
