"""Placement transforms for references and text."""
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


def _rotation(angle: float) -> tuple[float, float]:
    """Return (cos, sin) of ``angle`` degrees, exact for multiples of 90."""
    normalized = angle % 360.0
    if normalized == 0.0:
        return 1.0, 0.0
    if normalized == 90.0:
        return 0.0, 1.0
    if normalized == 180.0:
        return -1.0, 0.0
    if normalized == 270.0:
        return 0.0, -1.0
    radians = math.radians(angle)
    return math.cos(radians), math.sin(radians)


@dataclass(frozen=True)
class Transform:
    """Reflection, rotation, magnification and translation, applied in that order.

    Attributes:
        reflect: reflect about the X axis (negate Y) before rotating
        angle: counterclockwise rotation in degrees
        magnification: scale factor
        offset: translation applied last
        absolute_magnification: STRANS flag, kept as metadata
        absolute_angle: STRANS flag, kept as metadata
    """

    reflect: bool = False
    angle: float = 0.0
    magnification: float = 1.0
    offset: tuple[float, float] = (0.0, 0.0)
    absolute_magnification: bool = False
    absolute_angle: bool = False

    @property
    def is_identity(self) -> bool:
        return (
            not self.reflect
            and self.angle % 360.0 == 0.0
            and self.magnification == 1.0
            and self.offset[0] == 0
            and self.offset[1] == 0
        )

    def apply(self, point) -> tuple[float, float]:
        """Map one (x, y) point."""
        x, y = float(point[0]), float(point[1])
        if self.reflect:
            y = -y
        cos, sin = _rotation(self.angle)
        x, y = cos * x - sin * y, sin * x + cos * y
        return (
            x * self.magnification + self.offset[0],
            y * self.magnification + self.offset[1],
        )

    def apply_points(self, points) -> np.ndarray:
        """Map an (N, 2) array of points, returning a new float array."""
        points = np.asarray(points, dtype=float).reshape(-1, 2)
        x = points[:, 0]
        y = -points[:, 1] if self.reflect else points[:, 1]
        cos, sin = _rotation(self.angle)
        result = np.empty_like(points)
        result[:, 0] = (cos * x - sin * y) * self.magnification + self.offset[0]
        result[:, 1] = (sin * x + cos * y) * self.magnification + self.offset[1]
        return result

    def compose(self, child: Transform) -> Transform:
        """Return the transform equal to applying ``child`` first, then ``self``."""
        child_angle = -child.angle if self.reflect else child.angle
        return Transform(
            reflect=self.reflect != child.reflect,
            angle=self.angle + child_angle,
            magnification=self.magnification * child.magnification,
            offset=self.apply(child.offset),
            absolute_magnification=self.absolute_magnification
            or child.absolute_magnification,
            absolute_angle=self.absolute_angle or child.absolute_angle,
        )

    def inverse(self) -> Transform:
        """Return the transform undoing ``self``.

        Raises:
            ZeroDivisionError: if the magnification is zero
        """
        linear = Transform(
            reflect=self.reflect,
            angle=self.angle if self.reflect else -self.angle,
            magnification=1.0 / self.magnification,
            absolute_magnification=self.absolute_magnification,
            absolute_angle=self.absolute_angle,
        )
        x, y = linear.apply((-self.offset[0], -self.offset[1]))
        return Transform(
            reflect=linear.reflect,
            angle=linear.angle,
            magnification=linear.magnification,
            offset=(x, y),
            absolute_magnification=linear.absolute_magnification,
            absolute_angle=linear.absolute_angle,
        )


IDENTITY = Transform()


def compose(parent: Transform, child: Transform) -> Transform:
    """Compose a child placement with the transform of its parent."""
    return parent.compose(child)


def apply(transform: Transform, point) -> tuple[float, float]:
    return transform.apply(point)
