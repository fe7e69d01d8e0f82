"""
Kinetic Monte Carlo engine for crosslink binding and unbinding.

One call to ``step`` advances a species by one timestep Δt:

    1. advance bound anchors (walking, bound diffusion, end pausing)
    2. tether forces, with forced rupture of overstretched crosslinks
    3. prepare: expected-binding totals from a neighbor snapshot
    4. resolve the four event categories in a random order
           0 → 1   bind from solution
           1 → 0   release a singly bound crosslink
           1 → 2   bind the free head of a singly bound crosslink
           2 → 1   release one head of a doubly bound crosslink
    5. tether forces for newly doubly bound crosslinks
    6. population counts

Event probabilities are rate × Δt. A crosslink takes part in a category
only if its state at prepare time is that category's source state and is
still unchanged when the category is resolved, so each crosslink makes at
most one transition per step.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .crosslink import BindState, Crosslink
from .exceptions import ContractViolationError
from .geometry import OPEN_BOX, Box, capture_half_chord, min_distance_point_carrier_line
from .lookup_table import BindingProbabilityTable
from .neighbors import NeighborSnapshot, SpatialNeighborProvider, segment_lengths_of
from .rng import RNGStream
from .species import CrosslinkSpecies, SpeciesCounts
from .units import DEFAULT_MAX_BIND_ATTEMPTS, MACHINE_EPS
from .utils.logger import Logger

CATEGORIES = ("0_1", "1_0", "1_2", "2_1")


@dataclass
class StepReport:
    """
    Outcome of one engine step.

    Attributes:
        step: Step index (0-based).
        counts: Species population after the step.
        events: Number of transitions per category, plus "rupture".
        order: Category order used in this step.
        n_exp_0_1: Summed expected 0 → 1 bindings at prepare time.
        n_exp_1_2: Summed expected 1 → 2 bindings at prepare time.
        clamped_samples: Running total of clamped bind positions.
    """
    step: int
    counts: SpeciesCounts
    events: Dict[str, int] = field(default_factory=dict)
    order: Tuple[str, ...] = ()
    n_exp_0_1: float = 0.0
    n_exp_1_2: float = 0.0
    clamped_samples: int = 0


def contract_violation(message: str) -> ContractViolationError:
    """Log at CRITICAL and return the error for the caller to raise."""
    Logger.log(message, Logger.LogPriority.CRITICAL)
    return ContractViolationError(message)


class BindingKineticsEngine:
    """
    Drives the bind/unbind state machine of one crosslink species.

    The engine owns an RNG stream for the category order and batch
    unbinding; every other draw comes from the crosslink's own stream.
    """

    def __init__(
        self,
        species: CrosslinkSpecies,
        table: BindingProbabilityTable,
        delta: float,
        box: Box = OPEN_BOX,
        seed: Optional[int] = None,
        batch_unbinding: bool = False,
        max_bind_attempts: int = DEFAULT_MAX_BIND_ATTEMPTS,
        n_workers: int = 1,
        debug_trace: bool = False
    ):
        if delta <= 0:
            raise ValueError("delta must be positive")
        if max_bind_attempts < 1:
            raise ValueError("max_bind_attempts must be >= 1")
        self.species = species
        self.table = table
        self.delta = delta
        self.box = box
        self.rng = RNGStream(seed)
        self.batch_unbinding = batch_unbinding
        self.max_bind_attempts = max_bind_attempts
        self.n_workers = n_workers
        self.debug_trace = debug_trace

        self.step_count = 0
        self.clamped_samples = 0
        self.n_exp_0_1 = 0.0
        self.n_exp_1_2 = 0.0
        self.last_snapshot: Optional[NeighborSnapshot] = None
        self._ruptured = set()
        self._executor: Optional[ThreadPoolExecutor] = None

        Logger.log(
            f"Kinetics engine for '{species.name}' ({species.kind}): delta={delta}, "
            f"r_capture={species.kinetic.r_capture}, batch_unbinding={batch_unbinding}, "
            f"max_bind_attempts={max_bind_attempts}, n_workers={n_workers}",
            Logger.LogPriority.INFO
        )

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _trace(self, message: str) -> None:
        if self.debug_trace:
            Logger.log(message, Logger.LogPriority.DEBUG)

    # STEP

    def take_snapshot(self, provider: SpatialNeighborProvider) -> NeighborSnapshot:
        return NeighborSnapshot.take(provider, self.species.anchor_oids())

    def step(self, provider: SpatialNeighborProvider) -> StepReport:
        """Advance the species by one timestep."""
        snapshot = self.take_snapshot(provider)
        self.last_snapshot = snapshot
        events = {name: 0 for name in CATEGORIES}

        self._ruptured.clear()
        self.advance_anchors(snapshot)
        events["rupture"] = self.update_tether_forces()
        self.prepare(snapshot)
        order = self.resolve(snapshot, events)
        events["rupture"] += self.update_tether_forces()

        report = StepReport(
            step=self.step_count,
            counts=self.species.counts(),
            events=events,
            order=order,
            n_exp_0_1=self.n_exp_0_1,
            n_exp_1_2=self.n_exp_1_2,
            clamped_samples=self.clamped_samples,
        )
        self.step_count += 1
        return report

    # PHASE 1: MOVEMENT OF BOUND HEADS

    def advance_anchors(self, snapshot: NeighborSnapshot) -> None:
        for xlink in self.species:
            state = xlink.state
            if state == BindState.UNBOUND:
                continue
            velocity = xlink.head_velocity()
            for anchor in xlink.anchors:
                if not anchor.bound:
                    continue
                segment = snapshot.segment_by_oid(anchor.attached_oid)
                dl = velocity * self.delta + xlink.diffusion_step(self.delta)
                if dl != 0.0:
                    if anchor.move_along(segment, dl):
                        self._trace(f"anchor {anchor.oid} paused at segment end")
                else:
                    anchor.update_position(segment)
            xlink.sync_free_anchors()
            xlink.geometry_stale = True

    # PHASE 2 / 6: TETHER

    def update_tether_forces(self) -> int:
        """Recompute tethers; returns the number of forced ruptures."""
        ruptured = 0
        for xlink in self.species:
            result = xlink.calculate_tether_force(self.box)
            if result is not None and result.should_rupture:
                ruptured += 1
                self._ruptured.add(xlink.oid)
                self._trace(f"crosslink {xlink.oid} ruptured at tension {result.tension:.4g}")
        return ruptured

    def apply_tether_forces(self, snapshot: Optional[NeighborSnapshot] = None) -> None:
        """
        Hand tether forces and torques to the attached segments.

        Runs serially after the step; anchor 0's segment is pulled along
        +T û, anchor 1's along -T û.
        """
        snapshot = snapshot or self.last_snapshot
        if snapshot is None:
            return
        for xlink in self.species:
            if not xlink.is_doubly or xlink.tension == 0.0:
                continue
            for anchor, sign in zip(xlink.anchors, (1.0, -1.0)):
                segment = snapshot.segment_by_oid(anchor.attached_oid)
                force = sign * xlink.force
                lever = self.box.separation(segment.get_position(), anchor.position)
                segment.add_force(force)
                segment.add_torque(np.cross(lever, force))

    # PHASE 3: PREPARE

    def prepare(self, snapshot: NeighborSnapshot) -> None:
        """
        Compute expected binding totals for every crosslink.

        Reads only the snapshot, the table and the crosslink itself and
        draws no random numbers, so repeated calls give identical totals.
        """
        crosslinks = self.species.crosslinks
        if self.n_workers > 1 and len(crosslinks) > 1:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.n_workers)
            list(self._executor.map(lambda x: self._prepare_one(x, snapshot), crosslinks))
        else:
            for xlink in crosslinks:
                self._prepare_one(xlink, snapshot)

        self.n_exp_0_1 = sum(x.n_exp_0_1 for x in crosslinks)
        self.n_exp_1_2 = sum(x.n_exp_1_2 for x in crosslinks)

    def _prepare_one(self, xlink: Crosslink, snapshot: NeighborSnapshot) -> None:
        xlink.n_exp_0_1 = 0.0
        xlink.n_exp_1_2 = 0.0
        xlink.binding_options = []
        for anchor in xlink.anchors:
            anchor.n_exp_0_1 = 0.0
            anchor.n_exp_1_2 = 0.0

        if xlink.oid in self._ruptured:
            xlink.prepared_state = None
            return
        state = xlink.state
        xlink.prepared_state = state
        if state == BindState.UNBOUND:
            self._prepare_0_1(xlink, snapshot)
        elif state == BindState.SINGLY:
            self._prepare_1_2(xlink, snapshot)

    def _prepare_0_1(self, xlink: Crosslink, snapshot: NeighborSnapshot) -> None:
        partner = self.species.partner_species
        options = []
        total = 0.0
        for slot, anchor in enumerate(xlink.anchors):
            affinity = xlink.kinetic.affinity_0_1(anchor.head) * self.delta
            if affinity <= 0.0:
                continue
            for candidate in snapshot.get_neighbors(anchor.oid):
                segment = snapshot.candidate_segment(candidate)
                if segment.sid != partner:
                    continue
                candidate.contribution = affinity * candidate.geometric_weight
                anchor.n_exp_0_1 += candidate.contribution
                total += candidate.contribution
                options.append((slot, candidate))
        xlink.binding_options = options
        xlink.n_exp_0_1 = total if abs(total) >= MACHINE_EPS else 0.0

    def _prepare_1_2(self, xlink: Crosslink, snapshot: NeighborSnapshot) -> None:
        bound, free = xlink.anchors
        affinity = xlink.kinetic.affinity_1_2(free.head) * self.delta
        if affinity <= 0.0:
            return
        partner = self.species.partner_species
        attached = snapshot.segment_by_oid(bound.attached_oid)
        options = []
        total = 0.0
        for candidate in snapshot.get_neighbors(free.oid):
            segment = snapshot.candidate_segment(candidate)
            if segment.sid != partner or segment.rid == attached.rid:
                continue
            line = min_distance_point_carrier_line(bound.position, segment, self.box)
            half = 0.5 * segment.get_length()
            candidate.contribution = affinity * self.table.integrate(
                -half - line.mu, half - line.mu, line.distance
            )
            total += candidate.contribution
            options.append((1, candidate))
        free.n_exp_1_2 = total
        xlink.binding_options = options
        xlink.n_exp_1_2 = total if abs(total) >= MACHINE_EPS else 0.0

    # PHASE 4: RESOLVE

    def resolve(self, snapshot: NeighborSnapshot, events: Dict[str, int]) -> Tuple[str, ...]:
        order = tuple(CATEGORIES[i] for i in self.rng.permutation(len(CATEGORIES)))
        for category in order:
            if category == "0_1":
                events[category] += self._resolve_0_1(snapshot)
            elif category == "1_0":
                events[category] += self._resolve_1_0()
            elif category == "1_2":
                events[category] += self._resolve_1_2(snapshot)
            elif category == "2_1":
                events[category] += self._resolve_2_1()
        return order

    def _eligible(self, state: BindState) -> List[Crosslink]:
        return [x for x in self.species if x.prepared_state == state and x.state == state]

    def _select_option(self, xlink: Crosslink, roll: float):
        cumulative = 0.0
        for slot, candidate in xlink.binding_options:
            cumulative += candidate.contribution
            if cumulative > roll:
                return slot, candidate
        raise contract_violation(
            f"crosslink {xlink.oid}: roll {roll:.6g} ran past {len(xlink.binding_options)} binding options"
        )

    def _resolve_0_1(self, snapshot: NeighborSnapshot) -> int:
        n_bound = 0
        r_capture = self.species.kinetic.r_capture
        for xlink in self._eligible(BindState.UNBOUND):
            total = xlink.n_exp_0_1
            if total == 0.0:
                continue
            roll = xlink.rng.uniform()
            if roll >= total:
                continue
            slot, candidate = self._select_option(xlink, roll)
            segment = snapshot.candidate_segment(candidate)
            line = min_distance_point_carrier_line(xlink.position, segment, self.box)
            half_chord = capture_half_chord(r_capture, line.distance)
            center = line.mu + 0.5 * segment.get_length()

            def draw():
                return center + half_chord * (2.0 * xlink.rng.uniform() - 1.0)

            lam = self.sample_bind_position(segment.get_length(), draw)
            xlink.bind_anchor(slot, segment, lam)
            n_bound += 1
            self._trace(f"0->1 crosslink {xlink.oid} head {xlink.anchors[0].head} "
                        f"-> segment {segment.oid} lam={lam:.4f}")
        return n_bound

    def _resolve_1_0(self) -> int:
        r_capture = self.species.kinetic.r_capture
        singly = self._eligible(BindState.SINGLY)
        released = []
        if self.batch_unbinding:
            for head in (0, 1):
                population = [x for x in singly if x.anchors[0].head == head]
                p = self.species.kinetic.off_rate_1_0[head] * self.delta
                n_off = self.rng.binomial(len(population), p)
                released.extend(population[i] for i in self.rng.choice(len(population), n_off))
        else:
            for xlink in singly:
                p = xlink.kinetic.off_rate_1_0[xlink.anchors[0].head] * self.delta
                if p > 0.0 and xlink.rng.uniform() < p:
                    released.append(xlink)
        for xlink in released:
            xlink.release(r_capture, self.box)
            self._trace(f"1->0 crosslink {xlink.oid}")
        return len(released)

    def _resolve_1_2(self, snapshot: NeighborSnapshot) -> int:
        n_bound = 0
        for xlink in self._eligible(BindState.SINGLY):
            total = xlink.n_exp_1_2
            if total == 0.0:
                continue
            roll = xlink.rng.uniform()
            if roll >= total:
                continue
            slot, candidate = self._select_option(xlink, roll)
            segment = snapshot.candidate_segment(candidate)
            line = min_distance_point_carrier_line(xlink.anchors[0].position, segment, self.box)
            y0 = line.distance
            t_max = self.table.lookup(self.table.a_cut, y0)
            center = line.mu + 0.5 * segment.get_length()

            def draw():
                offset = self.table.invert(0, xlink.rng.uniform() * t_max, y0)
                if xlink.rng.uniform() < 0.5:
                    offset = -offset
                return center + offset

            lam = self.sample_bind_position(segment.get_length(), draw)
            xlink.bind_anchor(slot, segment, lam)
            n_bound += 1
            self._trace(f"1->2 crosslink {xlink.oid} -> segment {segment.oid} lam={lam:.4f}")
        return n_bound

    def _resolve_2_1(self) -> int:
        n_released = 0
        for xlink in self._eligible(BindState.DOUBLY):
            p0, p1 = xlink.doubly_unbind_probabilities(self.delta)
            if p0 + p1 <= 0.0:
                continue
            roll = xlink.rng.uniform_pos()
            if roll < p0:
                slot = 0
            elif roll < p0 + p1:
                slot = 1
            else:
                continue
            head = xlink.anchors[slot].head
            xlink.unbind_anchor(slot)
            n_released += 1
            self._trace(f"2->1 crosslink {xlink.oid} released head {head}")
        return n_released

    # POSITION SAMPLING

    def sample_bind_position(self, length: float, draw: Callable[[], float]) -> float:
        """
        Rejection-sample an arc length in [0, length].

        Up to max_bind_attempts draws are tried; when all fall outside the
        segment the last one is clamped to the nearest end and counted in
        clamped_samples.
        """
        lam = float("nan")
        for _ in range(self.max_bind_attempts):
            lam = draw()
            if 0.0 <= lam <= length:
                return lam
        self.clamped_samples += 1
        Logger.log(
            f"Bind position clamped after {self.max_bind_attempts} attempts (last sample {lam:.4g}, L={length:.4g})",
            Logger.LogPriority.DEBUG
        )
        lam = min(max(lam, 0.0), length)
        if not 0.0 <= lam <= length:
            raise contract_violation(f"Bind position {lam} outside [0, {length}] after clamping")
        return lam

    # DIAGNOSTICS

    def check_invariants(self, provider: Optional[SpatialNeighborProvider] = None) -> None:
        """
        Raise ContractViolationError if any crosslink is in an inconsistent state.

        Bound anchors are checked against the segment lengths of `provider`,
        or of the last step's snapshot when no provider is given.
        """
        snapshot = self.take_snapshot(provider) if provider is not None else self.last_snapshot
        segment_lengths = None if snapshot is None else segment_lengths_of(snapshot.simples)
        for xlink in self.species:
            ok, error = xlink.check_invariants(segment_lengths)
            if not ok:
                raise contract_violation(error)
