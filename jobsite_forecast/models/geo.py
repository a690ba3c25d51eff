"""Geographic models: coordinates, service areas and region tags."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """A WGS84 point."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class RegionTag(str, Enum):
    """Service area a job location falls into."""

    MARANA = "marana"
    IN_TOWN = "in-town"
    CATALINA = "catalina"
    VAIL = "vail"
    ORO_VALLEY = "oro-valley"
    OUT_OF_TOWN = "out-of-town"


class Region(BaseModel):
    """A named polygonal service area.

    The ring is treated as closed: a trailing vertex equal to the first
    one is allowed but not required.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name (e.g. 'Oro Valley')")
    tag: RegionTag = Field(..., description="Tag assigned to points inside the ring")
    ring: tuple[Coordinate, ...] = Field(..., description="Outer boundary vertices")


class LocateRequest(BaseModel):
    """Request body for geocoding an address into a service area."""

    address: str = Field(..., min_length=1, max_length=500, description="Street address")


class LocateResponse(BaseModel):
    """A geocoded address and the service area it falls into."""

    address: str
    coordinate: Coordinate
    tag: RegionTag


class ClassifyResponse(BaseModel):
    """Service area for a coordinate."""

    coordinate: Coordinate
    tag: RegionTag
