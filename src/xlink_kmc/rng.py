"""
Independent random-number streams for stochastic entities.

Each crosslink and each engine owns one RNGStream. Streams are spawned
from a single root seed via numpy's SeedSequence so that they are
statistically independent and the whole run is reproducible from one
integer.

Determinism Guarantee:
- Given identical (seed, spawn index, call sequence), draws are identical
- State can be exported to bytes and restored bit-for-bit (checkpoints)
"""

import json
from typing import List, Optional

import numpy as np


class RNGStream:
    """
    Thin wrapper over ``numpy.random.Generator(PCG64)``.

    Supplies the draws the kinetics engine needs: uniform on [0, 1),
    uniform on the open interval (0, 1), Poisson, binomial, bounded
    integers and permutations.
    """

    def __init__(self, seed: Optional[int] = None, seed_sequence: Optional[np.random.SeedSequence] = None):
        """
        Args:
            seed: Integer seed (ignored if seed_sequence is given).
            seed_sequence: Spawned SeedSequence for child streams.
        """
        if seed_sequence is None:
            seed_sequence = np.random.SeedSequence(seed)
        self._seed_sequence = seed_sequence
        self._rng = np.random.Generator(np.random.PCG64(seed_sequence))

    @property
    def generator(self) -> np.random.Generator:
        return self._rng

    def spawn(self, n: int) -> List["RNGStream"]:
        """Create n independent child streams."""
        return [RNGStream(seed_sequence=child) for child in self._seed_sequence.spawn(n)]

    def uniform(self) -> float:
        """Uniform draw on [0, 1)."""
        return float(self._rng.random())

    def uniform_pos(self) -> float:
        """Uniform draw on the open interval (0, 1)."""
        u = self._rng.random()
        while u == 0.0:
            u = self._rng.random()
        return float(u)

    def poisson(self, lam: float) -> int:
        if lam <= 0:
            return 0
        return int(self._rng.poisson(lam))

    def binomial(self, n: int, p: float) -> int:
        if n <= 0 or p <= 0:
            return 0
        if p >= 1:
            return n
        return int(self._rng.binomial(n, p))

    def integer(self, high: int) -> int:
        """Uniform integer in [0, high)."""
        return int(self._rng.integers(0, high))

    def permutation(self, n: int) -> List[int]:
        return [int(i) for i in self._rng.permutation(n)]

    def choice(self, n: int, k: int) -> List[int]:
        """k distinct indices drawn uniformly from range(n)."""
        k = min(k, n)
        if k <= 0:
            return []
        return [int(i) for i in self._rng.choice(n, size=k, replace=False)]

    def get_state(self) -> bytes:
        """Serialize the bit generator state to bytes."""
        return json.dumps(self._rng.bit_generator.state, sort_keys=True).encode("utf-8")

    def set_state(self, blob: bytes) -> None:
        """Restore a state previously produced by get_state()."""
        state = json.loads(blob.decode("utf-8"))
        self._rng.bit_generator.state = state
