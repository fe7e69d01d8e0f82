"""
Numeric constants for the binding-kinetics engine.

Unit System:
- Length: simulation length unit (filament diameter = 1)
- Energy: kT (thermal energy = 1 by default)
- Time: simulation time unit (Δt = delta)
- Force: kT / length

All kinetics and force calculations use these units consistently.
"""

from typing import Final

import numpy as np

# Machine epsilon for float64; probabilities with |p| below this are zero
MACHINE_EPS: Final[float] = float(np.finfo(np.float64).eps)

# exp(50) ≈ 5e21, safe for float64
MAX_EXPONENT: Final[float] = 50.0

# Bounded rejection sampling of bind positions
DEFAULT_MAX_BIND_ATTEMPTS: Final[int] = 100

# Lookup table defaults
DEFAULT_BIN_SIZE: Final[float] = 0.05
DEFAULT_TABLE_EPS: Final[float] = 1e-5
DEFAULT_CUTOFF_EPS: Final[float] = 1e-3
DEFAULT_TEMPERATURE: Final[float] = 1.0

# Anchors per crosslink (fixed arity)
N_ANCHORS: Final[int] = 2
