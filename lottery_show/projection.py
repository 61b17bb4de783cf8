"""Perspective projection of scene positions onto the widget."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .formations import Vec3

__all__ = ["Projected", "rotate_y", "project"]

NEAR_PLANE = 1.0


@dataclass(frozen=True)
class Projected:
    x: float
    y: float
    depth: float
    scale: float


def rotate_y(position: Vec3, angle: float) -> Vec3:
    c, s = math.cos(angle), math.sin(angle)
    return Vec3(
        position.x * c + position.z * s,
        position.y,
        -position.x * s + position.z * c,
    )


def project(
    position: Vec3,
    scene_rotation_y: float,
    width: float,
    height: float,
    camera_z: float = 3000.0,
    fov_deg: float = 40.0,
) -> Optional[Projected]:
    """Project ``position`` for a camera on +Z looking at the origin.

    Returns ``None`` for points behind the near plane. ``scale`` is the screen
    size of one scene unit at that depth, ``depth`` the distance to the camera.
    """

    if width <= 0 or height <= 0:
        return None
    rotated = rotate_y(position, scene_rotation_y)
    depth = camera_z - rotated.z
    if depth <= NEAR_PLANE:
        return None
    focal = (height / 2.0) / math.tan(math.radians(fov_deg) / 2.0)
    scale = focal / depth
    return Projected(
        x=width / 2.0 + rotated.x * scale,
        y=height / 2.0 - rotated.y * scale,
        depth=depth,
        scale=scale,
    )
