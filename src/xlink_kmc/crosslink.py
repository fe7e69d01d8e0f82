"""
Two-headed crosslink: state machine, tether force and anchor bookkeeping.

States are derived from the anchors' bound flags:

    UNBOUND  no anchor bound
    SINGLY   anchor[0] bound, anchor[1] free
    DOUBLY   both anchors bound

A crosslink whose only bound anchor sits in slot 1 is canonicalized by
swapping the two anchor objects, so code reading a SINGLY crosslink can
always take anchor[0] as the bound head and anchor[1] as the free one.
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

import numpy as np

from .anchor import Anchor
from .force_laws import (
    ForceResult,
    TetherParams,
    force_dependent_unbind_probability,
    motor_velocity,
    tether_energy,
    tether_tension,
)
from .geometry import OPEN_BOX, Box, random_point_in_sphere
from .rng import RNGStream
from .units import N_ANCHORS


class BindState(IntEnum):
    UNBOUND = 0
    SINGLY = 1
    DOUBLY = 2


CROSSLINK_KINDS = ("crosslinker", "motor")


@dataclass(frozen=True)
class KineticParams:
    """
    Per-head binding and unbinding parameters shared by a species.

    All per-head quantities are (head 0, head 1) pairs.

    Attributes:
        concentration_0_1: Effective concentration for 0 → 1.
        concentration_1_2: Effective concentration for 1 → 2.
        on_rate_0_1: Binding rate from solution.
        on_rate_1_2: Binding rate of the free head of a singly bound crosslink.
        off_rate_1_0: Unbinding rate of a singly bound crosslink.
        off_rate_2_1: Base unbinding rate of each head of a doubly bound crosslink.
        r_capture: Capture radius for 0 → 1.
        force_dep_factor: Scale of the stretch energy in 2 → 1 unbinding.
    """
    concentration_0_1: Tuple[float, float] = (0.5, 0.5)
    concentration_1_2: Tuple[float, float] = (0.5, 0.5)
    on_rate_0_1: Tuple[float, float] = (1.0, 1.0)
    on_rate_1_2: Tuple[float, float] = (1.0, 1.0)
    off_rate_1_0: Tuple[float, float] = (0.0, 0.0)
    off_rate_2_1: Tuple[float, float] = (0.0, 0.0)
    r_capture: float = 1.0
    force_dep_factor: float = 0.0

    def affinity_0_1(self, head: int) -> float:
        return self.concentration_0_1[head] * self.on_rate_0_1[head]

    def affinity_1_2(self, head: int) -> float:
        return self.concentration_1_2[head] * self.on_rate_1_2[head]

    def validate(self) -> tuple[bool, Optional[str]]:
        pairs = {
            "concentration_0_1": self.concentration_0_1,
            "concentration_1_2": self.concentration_1_2,
            "on_rate_0_1": self.on_rate_0_1,
            "on_rate_1_2": self.on_rate_1_2,
            "off_rate_1_0": self.off_rate_1_0,
            "off_rate_2_1": self.off_rate_2_1,
        }
        for name, pair in pairs.items():
            if len(pair) != N_ANCHORS:
                return False, f"{name} must have one value per head"
            if any(v < 0 for v in pair):
                return False, f"{name} must be non-negative"
        if self.r_capture < 0:
            return False, "r_capture must be non-negative"
        return True, None


@dataclass(frozen=True)
class MotilityParams:
    """
    Movement of bound heads along their segment.

    Attributes:
        velocity: Walking speed of a bound head (unloaded speed for motors).
        step_direction: +1 walks toward the segment head, -1 toward the tail.
        diffusion_bound: Enable 1-D diffusion of bound heads.
    """
    velocity: float = 0.0
    step_direction: int = 1
    diffusion_bound: bool = False


class Crosslink:
    """
    A crosslinker or motor with exactly two anchors.

    Mutable per-step fields (tether force, prepare totals, binding options)
    are written only by the owning crosslink or by the engine's serial
    phases, which lets the prepare pass run on several threads.
    """

    def __init__(
        self,
        oid: int,
        anchor_oids: Tuple[int, int],
        kind: str,
        tether: TetherParams,
        kinetic: KineticParams,
        rng: RNGStream,
        diameter: float = 1.0,
        motility: Optional[MotilityParams] = None,
        position: Optional[np.ndarray] = None
    ):
        if kind not in CROSSLINK_KINDS:
            raise ValueError(f"Unknown crosslink kind: {kind}")
        self.oid = oid
        self.kind = kind
        self.tether = tether
        self.kinetic = kinetic
        self.motility = motility or MotilityParams()
        self.rng = rng
        self.diameter = diameter
        self.anchors: List[Anchor] = [Anchor(oid=anchor_oids[h], head=h) for h in range(N_ANCHORS)]

        self.position = np.zeros(3) if position is None else np.asarray(position, dtype=np.float64).copy()
        self.orientation = np.array([0.0, 0.0, 1.0])
        self.force = np.zeros(3)
        self.tension = 0.0
        self.tether_length = 0.0

        self.n_exp_0_1 = 0.0
        self.n_exp_1_2 = 0.0
        self.binding_options: list = []
        self.prepared_state: Optional[BindState] = None
        self.geometry_stale = True
        self.sync_free_anchors()

    def __repr__(self):
        return f"Crosslink(oid={self.oid}, kind={self.kind!r}, state={self.state.name})"

    # STATE

    @property
    def state(self) -> BindState:
        b0, b1 = self.anchors[0].bound, self.anchors[1].bound
        if b0 and b1:
            return BindState.DOUBLY
        if b0 or b1:
            return BindState.SINGLY
        return BindState.UNBOUND

    @property
    def is_doubly(self) -> bool:
        return self.anchors[0].bound and self.anchors[1].bound

    @property
    def is_motor(self) -> bool:
        return self.kind == "motor"

    def canonicalize(self) -> None:
        """Swap anchor objects so a lone bound anchor always sits in slot 0."""
        if self.anchors[1].bound and not self.anchors[0].bound:
            self.anchors[0], self.anchors[1] = self.anchors[1], self.anchors[0]
        self.sync_free_anchors()

    def check_invariants(self, segment_lengths: Optional[Dict[int, float]] = None) -> tuple[bool, Optional[str]]:
        """
        Check anchor bookkeeping and canonical order.

        Args:
            segment_lengths: Length of every known segment by oid. When given,
                bound anchors must reference a known segment and sit within it.
        """
        for anchor in self.anchors:
            length = None
            if segment_lengths is not None and anchor.bound:
                length = segment_lengths.get(anchor.attached_oid)
                if length is None:
                    return False, f"anchor {anchor.oid} references unknown segment {anchor.attached_oid}"
            ok, error = anchor.check_invariant(length)
            if not ok:
                return False, error
        state = self.state
        if state == BindState.SINGLY and not self.anchors[0].bound:
            return False, f"crosslink {self.oid} singly bound through slot 1"
        if state != BindState.DOUBLY and self.tension != 0.0:
            return False, f"crosslink {self.oid} carries tension while {state.name}"
        return True, None

    # ANCHOR TRANSITIONS

    def sync_free_anchors(self) -> None:
        """Free heads sit on the bound head, or on the crosslink center."""
        state = self.state
        if state == BindState.UNBOUND:
            for anchor in self.anchors:
                anchor.position = self.position.copy()
        elif state == BindState.SINGLY:
            self.position = self.anchors[0].position.copy()
            self.anchors[1].position = self.position.copy()

    def bind_anchor(self, slot: int, segment, lam: float) -> None:
        """Attach the anchor in `slot` and restore canonical order."""
        self.anchors[slot].attach(segment, lam)
        self.canonicalize()
        self.geometry_stale = True

    def unbind_anchor(self, slot: int) -> None:
        """Detach the anchor in `slot`; the remaining bound head moves to slot 0."""
        self.anchors[slot].detach()
        self.zero_force()
        self.canonicalize()
        self.geometry_stale = True

    def release(self, r_capture: float, box: Box = OPEN_BOX) -> None:
        """
        Singly → unbound. The free crosslink lands uniformly inside the
        capture sphere around where its bound head was.
        """
        center = self.anchors[0].position.copy()
        for anchor in self.anchors:
            anchor.detach()
        self.zero_force()
        self.position = box.wrap(random_point_in_sphere(self.rng, center, r_capture))
        self.sync_free_anchors()
        self.geometry_stale = True

    # TETHER

    def zero_force(self) -> None:
        self.force = np.zeros(3)
        self.tension = 0.0
        self.tether_length = 0.0

    def calculate_tether_force(self, box: Box = OPEN_BOX) -> Optional[ForceResult]:
        """
        Update tether geometry and tension of a doubly bound crosslink.

        Center, orientation and length are rebuilt from the anchor positions
        only when geometry_stale is set; otherwise the cached length is
        reused. A tension above f_spring_max detaches anchor[1] immediately;
        the returned result then has should_rupture set.

        Returns:
            ForceResult, or None when the crosslink is not doubly bound.
        """
        if not self.is_doubly:
            self.zero_force()
            self.sync_free_anchors()
            self.geometry_stale = False
            return None

        if self.geometry_stale:
            r0 = self.anchors[0].position
            dr = box.separation(r0, self.anchors[1].position)
            length = float(np.linalg.norm(dr))
            self.tether_length = length
            self.position = r0 + 0.5 * dr
            if length > 0:
                self.orientation = dr / length
            self.geometry_stale = False

        result = tether_tension(self.tether_length, self.tether)
        if result.should_rupture:
            self.unbind_anchor(1)
            return result
        self.tension = result.tension
        self.force = result.tension * self.orientation
        return result

    def restore_tension(self) -> None:
        """Rebuild tension and force from the stored tether length and orientation."""
        if not self.is_doubly:
            self.tension = 0.0
            self.force = np.zeros(3)
            return
        result = tether_tension(self.tether_length, self.tether)
        self.tension = result.tension
        self.force = result.tension * self.orientation

    def stretch_energy(self) -> float:
        if not self.is_doubly:
            return 0.0
        return tether_energy(self.tether_length, self.tether)

    def doubly_unbind_probabilities(self, delta: float) -> Tuple[float, float]:
        """Per-slot 2 → 1 probabilities, scaled by the stretch energy."""
        energy = self.stretch_energy()
        return tuple(
            force_dependent_unbind_probability(
                self.kinetic.off_rate_2_1[anchor.head],
                delta,
                self.kinetic.force_dep_factor,
                energy,
            )
            for anchor in self.anchors
        )

    # MOTILITY

    def head_velocity(self) -> float:
        """Signed walking speed of bound heads along their segment."""
        v = self.motility.velocity * (1 if self.motility.step_direction >= 0 else -1)
        if self.is_motor and self.is_doubly:
            return motor_velocity(v, self.tension, self.tether.f_spring_max)
        return v

    def diffusion_step(self, delta: float) -> float:
        """Uniform 1-D kick of a bound head with variance 2 delta / diameter."""
        if not self.motility.diffusion_bound or self.diameter <= 0:
            return 0.0
        kick = self.rng.uniform_pos() - 0.5
        return kick * math.sqrt(24.0 * delta / self.diameter)
