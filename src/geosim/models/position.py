"""Position value type."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Position(BaseModel):
    """A point on the Earth's surface.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    timestamp : float or None
        Optional epoch seconds the position was observed at.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lon", "lng"))
    timestamp: float | None = None

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float) -> float:
        if not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude must be within [-90, 90], got {value}")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float) -> float:
        if not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude must be within [-180, 180], got {value}")
        return value

    @classmethod
    def from_lon_lat(cls, pair: Any) -> Position:
        """Build from a GeoJSON ``[lon, lat]`` pair."""
        lon, lat = pair[0], pair[1]
        return cls(latitude=float(lat), longitude=float(lon))

    def same_place(self, other: Position | None) -> bool:
        """Coordinate equality, ignoring ``timestamp``."""
        if other is None:
            return False
        return self.latitude == other.latitude and self.longitude == other.longitude

    def as_lon_lat(self) -> str:
        """``"lon,lat"`` as used in routing-provider URLs."""
        return f"{self.longitude},{self.latitude}"
