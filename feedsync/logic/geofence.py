"""Point-in-polygon tests for zone membership."""

from __future__ import annotations

from typing import Iterable, Sequence

from feedsync.ingest.models import Coordinate, Zone

Point = tuple[float, float]


def contains(point: Point, polygon: Sequence[Point]) -> bool:
    """Ray casting with the even-odd rule. Points on the boundary are inside."""
    vertices = [(float(x), float(y)) for x, y in polygon]
    if not vertices:
        return False
    if vertices[0] != vertices[-1]:
        vertices.append(vertices[0])
    x, y = float(point[0]), float(point[1])

    if (x, y) in vertices:
        return True

    crossings = 0
    for (x1, y1), (x2, y2) in zip(vertices, vertices[1:]):
        if y1 == y2 == y and min(x1, x2) < x < max(x1, x2):
            return True
        if min(y1, y2) < y <= max(y1, y2) and x <= max(x1, x2) and y1 != y2:
            x_cross = (y - y1) * (x2 - x1) / (y2 - y1) + x1
            if x == x_cross:
                return True
            if x1 == x2 or x <= x_cross:
                crossings += 1
    return crossings % 2 == 1


def zones_containing(coordinate: Coordinate | None, zones: Iterable[Zone]) -> list[Zone]:
    if coordinate is None:
        return []
    point = coordinate.as_point()
    return [zone for zone in zones if contains(point, zone.polygon)]
