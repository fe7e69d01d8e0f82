"""
Crosslink species: collection, oid allocation, insertion and population counts.
"""

import itertools
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .crosslink import BindState, Crosslink, KineticParams, MotilityParams
from .force_laws import TetherParams
from .geometry import random_point_in_sphere
from .rng import RNGStream
from .utils.logger import Logger


@dataclass(frozen=True)
class SpeciesCounts:
    """
    Population snapshot of one species.

    n_bound1 is indexed by the head identity of the bound anchor.
    """
    n_total: int
    n_free: int
    n_bound1: Tuple[int, int]
    n_bound2: int

    def as_row(self) -> List[int]:
        return [self.n_total, self.n_free, self.n_bound1[0], self.n_bound1[1], self.n_bound2]


POPULATION_COLUMNS = ["ntot", "nfree", "nbound1_0", "nbound1_1", "nbound2"]


class CrosslinkSpecies:
    """
    All crosslinks of one kind sharing tether and kinetic parameters.

    Every crosslink and anchor gets a unique oid from the species'
    allocator; crosslink RNG streams are spawned from the species root
    stream in insertion order, so a run is reproducible from one seed.
    """

    def __init__(
        self,
        name: str,
        kind: str,
        partner_species: str,
        tether: TetherParams,
        kinetic: KineticParams,
        motility: Optional[MotilityParams] = None,
        diameter: float = 1.0,
        seed: Optional[int] = None,
        first_oid: int = 0
    ):
        self.name = name
        self.kind = kind
        self.partner_species = partner_species
        self.tether = tether
        self.kinetic = kinetic
        self.motility = motility or MotilityParams()
        self.diameter = diameter
        self.rng = RNGStream(seed)
        self._oids = itertools.count(first_oid)
        self.crosslinks: List[Crosslink] = []

    def __len__(self) -> int:
        return len(self.crosslinks)

    def __iter__(self) -> Iterator[Crosslink]:
        return iter(self.crosslinks)

    def next_oid(self) -> int:
        return next(self._oids)

    def create_crosslink(self, position=None) -> Crosslink:
        """Allocate oids and an RNG stream for a new unbound crosslink and add it."""
        xlink_oid = self.next_oid()
        anchor_oids = (self.next_oid(), self.next_oid())
        xlink = Crosslink(
            oid=xlink_oid,
            anchor_oids=anchor_oids,
            kind=self.kind,
            tether=self.tether,
            kinetic=self.kinetic,
            rng=self.rng.spawn(1)[0],
            diameter=self.diameter,
            motility=self.motility,
            position=position,
        )
        self.crosslinks.append(xlink)
        return xlink

    def insert(self, n: int, insertion: str = "random", system_radius: float = 1.0) -> List[Crosslink]:
        """
        Add n unbound crosslinks.

        Args:
            n: Number to insert.
            insertion: "random" (uniform in the system sphere) or "centered".
            system_radius: Radius of the system sphere for random insertion.
        """
        created = []
        for _ in range(n):
            if insertion == "random":
                position = random_point_in_sphere(self.rng, np.zeros(3), system_radius)
            elif insertion == "centered":
                position = np.zeros(3)
            else:
                raise ValueError(f"Unknown insertion mode: {insertion}")
            created.append(self.create_crosslink(position))
        Logger.log(f"Inserted {n} {self.kind}s of species '{self.name}' ({insertion})",
                   Logger.LogPriority.INFO)
        return created

    def anchor_oids(self) -> List[int]:
        return [a.oid for x in self.crosslinks for a in x.anchors]

    def counts(self) -> SpeciesCounts:
        n_free = 0
        n_bound1 = [0, 0]
        n_bound2 = 0
        for xlink in self.crosslinks:
            state = xlink.state
            if state == BindState.UNBOUND:
                n_free += 1
            elif state == BindState.SINGLY:
                n_bound1[xlink.anchors[0].head] += 1
            else:
                n_bound2 += 1
        return SpeciesCounts(
            n_total=len(self.crosslinks),
            n_free=n_free,
            n_bound1=(n_bound1[0], n_bound1[1]),
            n_bound2=n_bound2,
        )

    def population_line(self) -> str:
        """Whitespace-separated `ntot nfree nbound1[0] nbound1[1] nbound2`."""
        return " ".join(str(v) for v in self.counts().as_row())
