"""
Rigid filament segments that crosslink heads bind to.

The kinetics engine only needs the read-only geometry of a segment and
two force accumulators. Any object providing the attributes and methods
of ``BindableSegment`` can be handed to the engine through a neighbor
provider; ``Segment`` is the reference implementation used by the
static-filament runner and the tests.
"""

from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

import numpy as np


class BindableSegment(Protocol):
    """Contract between the kinetics engine and a filament segment."""

    oid: int
    rid: int
    sid: str

    def get_position(self) -> np.ndarray: ...

    def get_orientation(self) -> np.ndarray: ...

    def get_length(self) -> float: ...

    def add_force(self, force: np.ndarray) -> None: ...

    def add_torque(self, torque: np.ndarray) -> None: ...


@dataclass
class Segment:
    """
    Straight rod segment of a filament.

    Attributes:
        oid: Unique object id of this segment.
        rid: Id of the parent filament (used to reject self-attachment).
        sid: Species tag, matched against a crosslink's partner species.
        position: Segment center (3,).
        orientation: Unit vector from tail to head (3,).
        length: Segment length.
    """
    oid: int
    rid: int
    sid: str
    position: np.ndarray
    orientation: np.ndarray
    length: float
    force: np.ndarray = field(default_factory=lambda: np.zeros(3))
    torque: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)
        u = np.asarray(self.orientation, dtype=np.float64)
        norm = np.linalg.norm(u)
        if norm < 1e-12:
            raise ValueError("Segment orientation must be non-zero")
        self.orientation = u / norm
        if self.length <= 0:
            raise ValueError("Segment length must be positive")

    def get_position(self) -> np.ndarray:
        return self.position

    def get_orientation(self) -> np.ndarray:
        return self.orientation

    def get_length(self) -> float:
        return self.length

    def add_force(self, force: np.ndarray) -> None:
        self.force += force

    def add_torque(self, torque: np.ndarray) -> None:
        self.torque += torque

    def zero_force(self) -> None:
        self.force[:] = 0.0
        self.torque[:] = 0.0

    @property
    def tail(self) -> np.ndarray:
        return self.position - 0.5 * self.length * self.orientation

    @property
    def head(self) -> np.ndarray:
        return self.position + 0.5 * self.length * self.orientation


def build_filament(
    rid: int,
    position: Sequence[float],
    orientation: Sequence[float],
    length: float,
    n_segments: int,
    first_oid: int,
    sid: str = "filament"
) -> List[Segment]:
    """
    Split a straight filament into n_segments equal rigid segments.

    Args:
        rid: Filament id shared by all its segments.
        position: Filament center.
        orientation: Filament direction (normalized here).
        length: Total filament length.
        n_segments: Number of segments (>= 1).
        first_oid: Object id given to the tail-most segment.
        sid: Species tag of the filament.

    Returns:
        Segments ordered tail to head with consecutive oids.
    """
    if n_segments < 1:
        raise ValueError("n_segments must be >= 1")
    u = np.asarray(orientation, dtype=np.float64)
    u = u / np.linalg.norm(u)
    center = np.asarray(position, dtype=np.float64)
    seg_len = length / n_segments
    tail = center - 0.5 * length * u

    segments = []
    for i in range(n_segments):
        seg_center = tail + (i + 0.5) * seg_len * u
        segments.append(Segment(
            oid=first_oid + i,
            rid=rid,
            sid=sid,
            position=seg_center,
            orientation=u.copy(),
            length=seg_len,
        ))
    return segments
