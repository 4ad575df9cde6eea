from __future__ import annotations

from typing import Literal, Tuple

from pydantic import field_validator

from fieldops.models.base import CamelModel


class GeoPoint(CamelModel):
    """GeoJSON point stored as ``[longitude, latitude]``."""

    type: Literal["Point"] = "Point"
    coordinates: Tuple[float, float]

    @field_validator("coordinates")
    def _check_bounds(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        longitude, latitude = value
        if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
            raise ValueError("Longitude must be between -180 and 180, latitude between -90 and 90")
        return value

    @classmethod
    def from_lng_lat(cls, longitude: float, latitude: float) -> "GeoPoint":
        return cls(coordinates=(longitude, latitude))

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]
