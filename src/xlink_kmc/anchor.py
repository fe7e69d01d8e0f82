"""
Anchor: one head of a crosslink and its attachment to a segment.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .geometry import position_at_lambda


@dataclass
class Anchor:
    """
    A crosslink head.

    Attributes:
        oid: Object id allocated by the owning species.
        head: Head identity (0 or 1); selects per-head rates and follows
            the anchor when the crosslink reorders its anchors.
        bound: Whether the head is attached to a segment.
        attached_oid: oid of the attached segment, None when unbound.
        lam: Arc length from the segment tail, in [0, L].
        position: Absolute position (3,).
        orientation: Orientation of the attached segment, zeros if unbound.
        n_exp_0_1: Expected 0 → 1 bindings through this head this step.
        n_exp_1_2: Expected 1 → 2 bindings through this head this step.
    """
    oid: int
    head: int
    bound: bool = False
    attached_oid: Optional[int] = None
    lam: float = 0.0
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    n_exp_0_1: float = 0.0
    n_exp_1_2: float = 0.0

    def attach(self, segment, lam: float) -> None:
        self.bound = True
        self.attached_oid = segment.oid
        self.lam = float(lam)
        self.update_position(segment)

    def detach(self) -> None:
        self.bound = False
        self.attached_oid = None
        self.lam = 0.0
        self.orientation = np.zeros(3)

    def update_position(self, segment) -> None:
        """Rebuild absolute geometry from the attached segment."""
        self.position = position_at_lambda(segment, self.lam)
        self.orientation = np.array(segment.get_orientation(), dtype=np.float64)

    def move_along(self, segment, dl: float) -> bool:
        """
        Shift lam by dl, pausing at the segment ends.

        Returns:
            True if the move was clamped at an end.
        """
        length = segment.get_length()
        target = self.lam + dl
        clamped = target < 0.0 or target > length
        self.lam = min(max(target, 0.0), length)
        self.update_position(segment)
        return clamped

    def check_invariant(self, segment_length: Optional[float] = None) -> tuple[bool, Optional[str]]:
        """bound ⇔ (attached_oid set and 0 <= lam <= L)."""
        if self.bound:
            if self.attached_oid is None:
                return False, f"anchor {self.oid} bound without a segment"
            if self.lam < 0.0:
                return False, f"anchor {self.oid} has negative lam {self.lam}"
            if segment_length is not None and self.lam > segment_length:
                return False, f"anchor {self.oid} lam {self.lam} beyond segment length {segment_length}"
        elif self.attached_oid is not None:
            return False, f"anchor {self.oid} unbound but references segment {self.attached_oid}"
        return True, None
