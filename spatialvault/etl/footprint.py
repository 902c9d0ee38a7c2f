"""Building footprint polygons from the Microsoft GeoJSON features."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Tuple

from shapely.errors import GEOSException
from shapely.geometry import Polygon

from ..errors import SchemaError
from ..schema import SRID


def outer_ring(geometry: Mapping[str, Any]) -> List[Tuple[float, float]]:
    """Return ``coordinates[0]`` as (longitude, latitude) float pairs.

    Ring closure and winding order are taken as given.
    """
    if not isinstance(geometry, Mapping) or "coordinates" not in geometry:
        raise SchemaError("coordinates field not found", field="coordinates")
    coordinates = geometry["coordinates"]
    if not isinstance(coordinates, list) or not coordinates:
        raise SchemaError("coordinates is not a non-empty array", field="coordinates")
    ring = coordinates[0]
    if not isinstance(ring, list):
        raise SchemaError("outer ring is not an array", field="coordinates")

    vertices = []
    for vertex in ring:
        if (
            not isinstance(vertex, list)
            or len(vertex) != 2
            or any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in vertex)
        ):
            raise SchemaError(f"Invalid vertex {vertex!r}", field="coordinates")
        vertices.append((float(vertex[0]), float(vertex[1])))
    return vertices


@dataclass(frozen=True)
class BuildingFootprint:
    srid: ClassVar[int] = SRID

    geom: Polygon

    @classmethod
    def from_geometry(cls, geometry: Mapping[str, Any]) -> "BuildingFootprint":
        vertices = outer_ring(geometry)
        try:
            polygon = Polygon(vertices)
        except (ValueError, GEOSException) as exc:
            raise SchemaError(f"Invalid polygon ring: {exc}", field="coordinates") from exc
        return cls(geom=polygon)

    def to_row(self) -> Dict[str, Any]:
        return {"geom": self.geom}


def map_features(geometries: List[Mapping[str, Any]]) -> List[BuildingFootprint]:
    return [BuildingFootprint.from_geometry(g) for g in geometries]
