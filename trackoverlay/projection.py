"""Projection of geographic coordinates onto a fixed-size raster.

The same ProjectionMapper instance must be used to draw the static track map
and to place the moving marker, otherwise the two drift apart.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np

from .errors import InsufficientDataError
from .models import GeoPoint, TrackPoint


@dataclass(frozen=True)
class BoundingBox:
    """Longitude/latitude extent of a point set."""

    min_lon: float
    max_lon: float
    min_lat: float
    max_lat: float

    @property
    def lon_range(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def lat_range(self) -> float:
        return self.max_lat - self.min_lat


def bounding_box(positions: Iterable[GeoPoint]) -> BoundingBox:
    """
    Compute the bounding box of the valid positions.

    Raises:
        InsufficientDataError: If fewer than 2 positions are valid
    """
    valid = [p for p in positions if p.is_valid()]
    if len(valid) < 2:
        raise InsufficientDataError(
            f"Need at least 2 valid coordinates for a bounding box, got {len(valid)}"
        )

    lons = [p.longitude for p in valid]
    lats = [p.latitude for p in valid]
    return BoundingBox(min(lons), max(lons), min(lats), max(lats))


class ProjectionMapper:
    """Maps lon/lat onto a width x height canvas, north up."""

    def __init__(self, box: BoundingBox, width: int, height: int, padding: float) -> None:
        self.box = box
        self.width = width
        self.height = height
        self.padding = padding
        self.scale = self._compute_scale()

    @classmethod
    def from_points(
        cls,
        points: Iterable[TrackPoint],
        width: int,
        height: int,
        padding: float,
    ) -> "ProjectionMapper":
        return cls(bounding_box(p.position for p in points), width, height, padding)

    def _compute_scale(self) -> float:
        # A zero-range axis offers no candidate; its coordinate stays at padding.
        candidates = []
        if self.box.lon_range > 0:
            candidates.append((self.width - 2 * self.padding) / self.box.lon_range)
        if self.box.lat_range > 0:
            candidates.append((self.height - 2 * self.padding) / self.box.lat_range)
        return min(candidates) if candidates else 0.0

    def pixel(self, longitude: float, latitude: float) -> Tuple[float, float]:
        """Canvas (x, y) for a coordinate; y grows southwards."""
        x = self.padding + (longitude - self.box.min_lon) * self.scale
        y = self.padding + (self.box.max_lat - latitude) * self.scale
        return x, y

    def project(self, point: TrackPoint) -> Tuple[float, float]:
        return self.pixel(point.longitude, point.latitude)

    def project_many(self, points: Iterable[TrackPoint]) -> np.ndarray:
        """Project valid points into an (n, 2) float array of canvas pixels."""
        coords = np.array(
            [(p.longitude, p.latitude) for p in points if p.position.is_valid()],
            dtype=float,
        ).reshape(-1, 2)
        xs = self.padding + (coords[:, 0] - self.box.min_lon) * self.scale
        ys = self.padding + (self.box.max_lat - coords[:, 1]) * self.scale
        return np.stack([xs, ys], axis=1)
