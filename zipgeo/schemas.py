"""Typed records shared by ingestion, storage and the API."""
import math
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ZipRecord(BaseModel):
    """One row of the ZIP code directory."""
    model_config = ConfigDict(frozen=True)

    zip: str = Field(..., pattern=r"^[0-9]{5}$", description="5-digit ZIP code")
    type: str = ""
    decommissioned: bool = False
    primary_city: str = ""
    acceptable_cities: List[str] = Field(default_factory=list)
    unacceptable_cities: List[str] = Field(default_factory=list)
    state: str = ""
    county: str = ""
    timezone: str = ""
    area_codes: List[str] = Field(default_factory=list)
    world_region: str = ""
    country: str = ""
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    irs_estimated_population: float = 0.0

    @field_validator("latitude", "longitude", "irs_estimated_population")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("must be a finite number")
        return value

    @property
    def city(self) -> str:
        """Primary city, else the first acceptable city, else ``Unknown``."""
        if self.primary_city:
            return self.primary_city
        if self.acceptable_cities:
            return self.acceptable_cities[0]
        return "Unknown"

    def point(self) -> "Point":
        return Point(zip=self.zip, latitude=self.latitude, longitude=self.longitude)


class Point(BaseModel):
    """Coordinate-only projection of a ZipRecord."""
    model_config = ConfigDict(frozen=True)

    zip: str
    latitude: float
    longitude: float


class RowError(BaseModel):
    """A source row that failed to parse."""
    line: int = Field(..., description="1-based line number in the source, header is line 1")
    zip: str = ""
    message: str
