from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# --- Geography ---
class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class Region(BaseModel):
    """Map viewport: centre point plus the span shown on each axis."""

    latitude: float
    longitude: float
    latitude_delta: float = Field(ge=0)
    longitude_delta: float = Field(ge=0)


# --- Drivers ---
class DriverRecord(BaseModel):
    """Driver as supplied by the caller. Carries no position."""

    id: int | str
    first_name: str
    last_name: str
    profile_image_url: str | None = None
    car_image_url: str | None = None
    car_seats: int | None = None
    rating: float | None = None


class Marker(DriverRecord):
    """A driver record placed on the map."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    title: str

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class EnrichedMarker(Marker):
    estimated_minutes: float = Field(ge=0)
    price: str


__all__ = ["Coordinate", "DriverRecord", "EnrichedMarker", "Marker", "Region"]
