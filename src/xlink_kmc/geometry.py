"""
Closest-point geometry between anchor points and filament segments.

Segments are rigid rods described by a center position, a unit
orientation and a length. Arc length ``lam`` is measured from the tail:

    r(lam) = center + (lam - L/2) * u,   0 <= lam <= L

Periodic boundaries use the minimum-image convention along the first
``n_periodic`` dimensions of the box.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class Box:
    """
    Simulation box for minimum-image separations.

    Attributes:
        lengths: Edge length per dimension (3,), or None for open space.
        n_periodic: Number of leading periodic dimensions.
    """
    lengths: Optional[np.ndarray] = None
    n_periodic: int = 0

    def __post_init__(self):
        if self.lengths is not None:
            self.lengths = np.asarray(self.lengths, dtype=np.float64)

    def separation(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Minimum-image vector from a to b."""
        dr = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
        if self.lengths is None or self.n_periodic == 0:
            return dr
        n = self.n_periodic
        dr[:n] -= self.lengths[:n] * np.round(dr[:n] / self.lengths[:n])
        return dr

    def wrap(self, r: np.ndarray) -> np.ndarray:
        """Map a position back into the primary cell (centered on origin)."""
        r = np.asarray(r, dtype=np.float64).copy()
        if self.lengths is None or self.n_periodic == 0:
            return r
        n = self.n_periodic
        r[:n] -= self.lengths[:n] * np.round(r[:n] / self.lengths[:n])
        return r


OPEN_BOX = Box()


@dataclass(frozen=True)
class CarrierLineContact:
    """
    Closest approach of a point to the infinite line carrying a segment.

    Attributes:
        dr: Vector from the point to the foot of the perpendicular.
        contact: Foot of the perpendicular (in the point's image).
        mu: Axial coordinate of the foot relative to the segment center.
    """
    dr: np.ndarray
    contact: np.ndarray
    mu: float

    @property
    def distance(self) -> float:
        return float(np.linalg.norm(self.dr))


def min_distance_point_carrier_line(
    point: np.ndarray,
    segment,
    box: Box = OPEN_BOX
) -> CarrierLineContact:
    """
    Project a point onto the carrier line of a segment.

    Args:
        point: Anchor position (3,).
        segment: Object exposing get_position/get_orientation.
        box: Periodic box.

    Returns:
        CarrierLineContact with perpendicular offset and axial coordinate.
    """
    point = np.asarray(point, dtype=np.float64)
    u = np.asarray(segment.get_orientation(), dtype=np.float64)
    rel = box.separation(segment.get_position(), point)
    mu = float(np.dot(rel, u))
    dr = mu * u - rel
    return CarrierLineContact(dr=dr, contact=point + dr, mu=mu)


def min_distance_point_segment(
    point: np.ndarray,
    segment,
    box: Box = OPEN_BOX
) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Closest point on a finite segment.

    Returns:
        (offset, contact, lam): offset vector from the point to the
        contact point, the contact point, and its arc length from the
        segment tail in [0, L].
    """
    point = np.asarray(point, dtype=np.float64)
    u = np.asarray(segment.get_orientation(), dtype=np.float64)
    half = 0.5 * segment.get_length()
    rel = box.separation(segment.get_position(), point)
    mu = min(max(float(np.dot(rel, u)), -half), half)
    offset = mu * u - rel
    return offset, point + offset, mu + half


def capture_half_chord(r_capture: float, perp_distance: float) -> float:
    """
    Half-length of the chord a capture sphere cuts from a line.

    A point farther than r_capture from the line (negative or NaN
    residual) has zero residual capture radius.
    """
    residual = r_capture * r_capture - perp_distance * perp_distance
    if not residual > 0.0:
        return 0.0
    return math.sqrt(residual)


def capture_length(
    point: np.ndarray,
    segment,
    r_capture: float,
    box: Box = OPEN_BOX
) -> float:
    """
    Length of segment lying inside the capture sphere around a point.

    This is the geometric binding weight of a candidate segment for an
    unbound head: binding rate scales with accessible filament length.
    """
    line = min_distance_point_carrier_line(point, segment, box)
    h = capture_half_chord(r_capture, line.distance)
    if h <= 0.0:
        return 0.0
    half = 0.5 * segment.get_length()
    lo = max(line.mu - h, -half)
    hi = min(line.mu + h, half)
    return max(0.0, hi - lo)


def position_at_lambda(segment, lam: float) -> np.ndarray:
    """Absolute position at arc length lam from the segment tail."""
    u = np.asarray(segment.get_orientation(), dtype=np.float64)
    return np.asarray(segment.get_position(), dtype=np.float64) + (lam - 0.5 * segment.get_length()) * u


def random_point_in_sphere(rng, center: np.ndarray, radius: float) -> np.ndarray:
    """
    Uniform point in a sphere by rejection sampling in the enclosing cube.

    Args:
        rng: RNGStream.
        center: Sphere center (3,).
        radius: Sphere radius.
    """
    center = np.asarray(center, dtype=np.float64)
    if radius <= 0:
        return center.copy()
    r2 = radius * radius
    while True:
        offset = np.array([2.0 * radius * (rng.uniform() - 0.5) for _ in range(center.shape[0])])
        if float(np.dot(offset, offset)) <= r2:
            return center + offset
