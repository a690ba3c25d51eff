"""Service area classification for job locations."""

import json
from pathlib import Path
from typing import Any, Iterable, Sequence

import structlog
from shapely.geometry import Point, Polygon
from shapely.prepared import prep

from jobsite_forecast.models.geo import Coordinate, Region, RegionTag

logger = structlog.get_logger(__name__)


def ring_polygon(ring: Sequence[Coordinate]) -> Polygon:
    """Build a shapely polygon from a ring; the ring may be open or closed."""
    return Polygon([(c.lng, c.lat) for c in ring])


def contains(polygon, coordinate: Coordinate) -> bool:
    """Strict containment: points on the boundary are outside."""
    return polygon.contains(Point(coordinate.lng, coordinate.lat))

def _parse_feature(feature: dict[str, Any]) -> Region:
    """Build a Region from a GeoJSON Polygon feature.

    Raises:
        ValueError: If the feature is not a usable service area polygon
    """
    properties = feature.get("properties") or {}
    geometry = feature.get("geometry") or {}
    name = properties.get("name")

    if geometry.get("type") != "Polygon":
        raise ValueError(f"Service area {name!r} must be a Polygon")

    try:
        tag = RegionTag(properties.get("tag"))
    except ValueError:
        raise ValueError(
            f"Service area {name!r} has unknown tag {properties.get('tag')!r}"
        ) from None
    if tag is RegionTag.OUT_OF_TOWN:
        raise ValueError("out-of-town is the fallback tag and cannot have a polygon")

    # Outer ring only; GeoJSON positions are [lng, lat]
    outer = geometry.get("coordinates", [[]])[0]
    ring = tuple(Coordinate(lat=pos[1], lng=pos[0]) for pos in outer)
    if len(set(ring)) < 3:
        raise ValueError(f"Service area {name!r} needs at least 3 distinct vertices")

    return Region(name=name or tag.value, tag=tag, ring=ring)


def load_regions(path: Path) -> list[Region]:
    """Load service areas from a GeoJSON FeatureCollection.

    Feature order in the file is classification priority.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot read service areas from {path}: {e}") from e

    regions = [_parse_feature(f) for f in data.get("features", [])]
    logger.info(
        "service_areas_loaded",
        path=str(path),
        regions=[r.tag.value for r in regions],
    )
    return regions


class RegionClassifier:
    """Classifies coordinates against an ordered list of service areas."""

    def __init__(self, regions: Iterable[Region]):
        self.regions: tuple[Region, ...] = tuple(regions)
        self._polygons = [(r.tag, prep(ring_polygon(r.ring))) for r in self.regions]

    @classmethod
    def from_file(cls, path: Path) -> "RegionClassifier":
        return cls(load_regions(path))

    def classify(self, coordinate: Coordinate) -> RegionTag:
        """Return the tag of the first region containing the coordinate.

        Overlaps resolve by list order. Falls back to out-of-town when no
        polygon matches, including points lying exactly on a boundary.
        """
        for tag, polygon in self._polygons:
            if contains(polygon, coordinate):
                return tag
        return RegionTag.OUT_OF_TOWN

    def to_geojson(self) -> dict[str, Any]:
        """Export the service areas as a FeatureCollection for map overlays."""
        features = []
        for region in self.regions:
            ring = [[c.lng, c.lat] for c in region.ring]
            if ring[0] != ring[-1]:
                ring.append(ring[0])
            features.append(
                {
                    "type": "Feature",
                    "properties": {"name": region.name, "tag": region.tag.value},
                    "geometry": {"type": "Polygon", "coordinates": [ring]},
                }
            )
        return {"type": "FeatureCollection", "features": features}
