"""
Neighbor-list interface between a spatial partition and the kinetics engine.

A provider maps each anchor oid to the candidate segments near it. The
engine never asks the provider directly during a step; it takes a
``NeighborSnapshot`` first so the prepare pass reads a frozen view that
several worker threads can share.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Protocol, Sequence

import numpy as np

from .crosslink import BindState
from .exceptions import ContractViolationError
from .geometry import OPEN_BOX, Box, capture_length, min_distance_point_segment
from .utils.logger import Logger


@dataclass
class Candidate:
    """
    One potential binding partner of an anchor.

    Attributes:
        index: Position of the segment in the provider's simples sequence.
        geometric_weight: Provider-supplied weight (accessible length for 0 → 1).
        contribution: This step's share of the owning crosslink's binding
            probability. Scratch, rewritten on every prepare.
    """
    index: int
    geometric_weight: float = 1.0
    contribution: float = 0.0


def segment_lengths_of(simples: Sequence) -> Dict[int, float]:
    """Segment length by oid, for checking anchors against their segment."""
    return {segment.oid: segment.get_length() for segment in simples}


class SpatialNeighborProvider(Protocol):
    """Contract for whatever builds neighbor lists (cell list, tree, brute force)."""

    def get_neighbors(self, oid: int) -> List[Candidate]: ...

    def get_oid_position_map(self) -> Dict[int, int]: ...

    def get_simples(self) -> Sequence: ...


@dataclass
class NeighborSnapshot:
    """
    Frozen copy of a provider's state for one engine step.

    Candidate objects are copied so contributions written during prepare
    never leak back into the provider.
    """
    simples: Sequence
    oid_index: Dict[int, int]
    neighbors: Dict[int, List[Candidate]] = field(default_factory=dict)

    @classmethod
    def take(cls, provider: SpatialNeighborProvider, oids: Iterable[int]) -> "NeighborSnapshot":
        neighbors = {}
        for oid in oids:
            neighbors[oid] = [
                Candidate(index=c.index, geometric_weight=c.geometric_weight)
                for c in provider.get_neighbors(oid)
            ]
        return cls(
            simples=list(provider.get_simples()),
            oid_index=dict(provider.get_oid_position_map()),
            neighbors=neighbors,
        )

    def get_neighbors(self, oid: int) -> List[Candidate]:
        return self.neighbors.get(oid, [])

    def candidate_segment(self, candidate: Candidate):
        """Segment a candidate points to; an out-of-range index breaks the contract."""
        if not 0 <= candidate.index < len(self.simples):
            message = f"Candidate index {candidate.index} outside simples ({len(self.simples)})"
            Logger.log(message, Logger.LogPriority.CRITICAL)
            raise ContractViolationError(message)
        return self.simples[candidate.index]

    def segment_by_oid(self, oid: int):
        """Resolve an anchor's attached_oid; unknown ids break the contract."""
        index = self.oid_index.get(oid)
        if index is None or not 0 <= index < len(self.simples):
            message = f"Anchor references unknown segment oid {oid}"
            Logger.log(message, Logger.LogPriority.CRITICAL)
            raise ContractViolationError(message)
        return self.simples[index]


class BruteForceNeighborProvider:
    """
    O(anchors × segments) neighbor lists for small systems and tests.

    Unbound crosslinks get every segment whose length inside the capture
    sphere is positive, weighted by that length. The free head of a
    singly-bound crosslink gets every segment within the 1 → 2 cutoff,
    with unit weight.
    """

    def __init__(self, segments: Sequence, box: Box = OPEN_BOX):
        self.segments = list(segments)
        self.box = box
        self._oid_index = {seg.oid: i for i, seg in enumerate(self.segments)}
        self._neighbors: Dict[int, List[Candidate]] = {}

    def get_neighbors(self, oid: int) -> List[Candidate]:
        return self._neighbors.get(oid, [])

    def get_oid_position_map(self) -> Dict[int, int]:
        return self._oid_index

    def get_simples(self) -> Sequence:
        return self.segments

    def set_neighbors(self, oid: int, candidates: List[Candidate]) -> None:
        """Install a neighbor list directly (used by tests and external partitions)."""
        self._neighbors[oid] = list(candidates)

    def capture_candidates(self, position: np.ndarray, r_capture: float) -> List[Candidate]:
        candidates = []
        for i, seg in enumerate(self.segments):
            weight = capture_length(position, seg, r_capture, self.box)
            if weight > 0.0:
                candidates.append(Candidate(index=i, geometric_weight=weight))
        return candidates

    def cutoff_candidates(self, position: np.ndarray, cutoff: float) -> List[Candidate]:
        candidates = []
        for i, seg in enumerate(self.segments):
            offset, _, _ = min_distance_point_segment(position, seg, self.box)
            if float(np.linalg.norm(offset)) < cutoff:
                candidates.append(Candidate(index=i))
        return candidates

    def update(self, crosslinks: Iterable, r_capture: float, bind_cutoff: float) -> None:
        """
        Rebuild neighbor lists for the current crosslink states.

        Args:
            crosslinks: Crosslink objects (state and anchors are read).
            r_capture: Capture radius for unbound crosslinks.
            bind_cutoff: Perpendicular cutoff for the free head of a singly
                bound crosslink.
        """
        self._neighbors = {}
        for xlink in crosslinks:
            state = xlink.state
            if state == BindState.UNBOUND:
                found = self.capture_candidates(xlink.position, r_capture)
                for anchor in xlink.anchors:
                    self._neighbors[anchor.oid] = [
                        Candidate(index=c.index, geometric_weight=c.geometric_weight) for c in found
                    ]
            elif state == BindState.SINGLY:
                free = xlink.anchors[1]
                self._neighbors[free.oid] = self.cutoff_candidates(xlink.anchors[0].position, bind_cutoff)
