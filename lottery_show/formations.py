"""Target layouts for the card ensemble.

Two formations are supported: the flat table (a centred row-major grid) and
the sphere (a golden-angle spiral whose cards face away from the centre). A
third helper lays out the reserved slots in which revealed winners are shown.
All functions are pure and return one :class:`FormationTarget` per card.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple, Union

__all__ = [
    "Vec3",
    "ZERO",
    "FormationTarget",
    "GridFormation",
    "SphereFormation",
    "Formation",
    "compute_grid_targets",
    "compute_sphere_targets",
    "compute_winner_targets",
    "compute_targets",
    "lerp",
]


@dataclass(frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def scaled(self, factor: float) -> "Vec3":
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z))


ZERO = Vec3()


def lerp(a: Vec3, b: Vec3, t: float) -> Vec3:
    return Vec3(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t, a.z + (b.z - a.z) * t)


@dataclass(frozen=True)
class FormationTarget:
    """Position, Euler rotation (radians, XYZ order) and scale of one card."""

    position: Vec3
    rotation: Vec3 = ZERO
    scale: float = 1.0


@dataclass(frozen=True)
class GridFormation:
    row_count: int
    card_width: float
    card_height: float
    gap_x: float = 40.0
    gap_y: float = 20.0


@dataclass(frozen=True)
class SphereFormation:
    radius: float = 800.0


Formation = Union[GridFormation, SphereFormation]


def compute_grid_targets(
    count: int,
    row_count: int,
    card_size: Tuple[float, float],
    gap: Tuple[float, float] = (40.0, 20.0),
) -> List[FormationTarget]:
    """Lay ``count`` cards out row by row, ``row_count`` cards per row.

    The grid is centred on the origin; the first card sits top-left.
    """

    if count <= 0:
        return []
    columns = max(1, int(row_count))
    rows = (count + columns - 1) // columns
    step_x = float(card_size[0]) + float(gap[0])
    step_y = float(card_size[1]) + float(gap[1])
    used_columns = min(columns, count)
    x0 = (used_columns - 1) / 2.0
    y0 = (rows - 1) / 2.0
    targets: List[FormationTarget] = []
    for index in range(count):
        col = index % columns
        row = index // columns
        targets.append(FormationTarget(Vec3((col - x0) * step_x, (y0 - row) * step_y, 0.0)))
    return targets


def _normalize(vec: Tuple[float, float, float]) -> Tuple[float, float, float]:
    length = math.sqrt(vec[0] ** 2 + vec[1] ** 2 + vec[2] ** 2) or 1.0
    return (vec[0] / length, vec[1] / length, vec[2] / length)


def _cross(a: Tuple[float, float, float], b: Tuple[float, float, float]) -> Tuple[float, float, float]:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _facing_rotation(direction: Tuple[float, float, float]) -> Vec3:
    """Euler angles turning a card's +Z axis towards ``direction``."""

    z = _normalize(direction)
    up = (0.0, 1.0, 0.0)
    x = _cross(up, z)
    if x[0] * x[0] + x[1] * x[1] + x[2] * x[2] < 1e-12:
        # Looking straight up or down: nudge like a regular look-at does.
        z = _normalize((z[0], z[1], z[2] + 1e-4))
        x = _cross(up, z)
    x = _normalize(x)
    y = _cross(z, x)

    m11, m12, m13 = x[0], y[0], z[0]
    m22, m23 = y[1], z[1]
    m32, m33 = y[2], z[2]
    ry = math.asin(max(-1.0, min(1.0, m13)))
    if abs(m13) < 0.9999999:
        rx = math.atan2(-m23, m33)
        rz = math.atan2(-m12, m11)
    else:
        rx = math.atan2(m32, m22)
        rz = 0.0
    return Vec3(rx, ry, rz)


def compute_sphere_targets(count: int, radius: float = 800.0) -> List[FormationTarget]:
    """Spread ``count`` cards evenly over a sphere, each facing outwards."""

    if count <= 0:
        return []
    targets: List[FormationTarget] = []
    spiral = math.sqrt(count * math.pi)
    for index in range(count):
        phi = math.acos(max(-1.0, min(1.0, -1.0 + (2.0 * index) / count)))
        theta = spiral * phi
        sin_phi = math.sin(phi)
        position = Vec3(
            radius * sin_phi * math.sin(theta),
            radius * math.cos(phi),
            radius * sin_phi * math.cos(theta),
        )
        rotation = _facing_rotation((position.x, position.y, position.z))
        targets.append(FormationTarget(position, rotation))
    return targets


def compute_winner_targets(
    count: int,
    card_size: Tuple[float, float],
    per_row: int = 5,
    depth: float = 1000.0,
) -> List[FormationTarget]:
    """Reserved display slots for ``count`` revealed winners.

    Winners are centred in rows of ``per_row`` in front of the sphere. Small
    batches are enlarged so they read well on screen.
    """

    if count <= 0:
        return []
    per_row = max(1, int(per_row))
    if count == 1:
        scale = 2.0
    elif count <= per_row:
        scale = 1.5
    else:
        scale = 1.0
    width = float(card_size[0]) * scale
    height = float(card_size[1]) * scale
    step_x = width * 1.15
    step_y = height * 1.15
    rows = (count + per_row - 1) // per_row
    y0 = (rows - 1) / 2.0
    targets: List[FormationTarget] = []
    for index in range(count):
        row = index // per_row
        in_row = min(per_row, count - row * per_row)
        col = index % per_row
        x = (col - (in_row - 1) / 2.0) * step_x
        y = (y0 - row) * step_y
        targets.append(FormationTarget(Vec3(x, y, depth), ZERO, scale))
    return targets


def compute_targets(formation: Formation, count: int) -> List[FormationTarget]:
    """Dispatch on the formation descriptor."""

    if isinstance(formation, GridFormation):
        return compute_grid_targets(
            count,
            formation.row_count,
            (formation.card_width, formation.card_height),
            (formation.gap_x, formation.gap_y),
        )
    if isinstance(formation, SphereFormation):
        return compute_sphere_targets(count, formation.radius)
    raise TypeError(f"Unknown formation {formation!r}")
