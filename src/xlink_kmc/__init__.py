"""
Kinetic Monte Carlo binding kinetics of crosslinkers and motors on filaments.

Core components:
- BindingKineticsEngine: per-step bind/unbind state machine
- BindingProbabilityTable: precomputed 1 → 2 binding integrals
- CrosslinkSpecies / Crosslink / Anchor: the bound-state data model
- checkpoint: binary spec and checkpoint records
"""

__version__ = "0.3.0"

from .anchor import Anchor
from .crosslink import BindState, Crosslink, KineticParams, MotilityParams
from .exceptions import (
    CheckpointFormatError,
    ContractViolationError,
    InvalidConfigurationError,
    TableInversionError,
)
from .force_laws import ForceResult, TetherParams
from .geometry import Box
from .kinetics import BindingKineticsEngine, StepReport
from .lookup_table import BindingProbabilityTable, TableParams
from .neighbors import BruteForceNeighborProvider, Candidate, NeighborSnapshot
from .rng import RNGStream
from .segments import Segment
from .species import CrosslinkSpecies

__all__ = [
    "Anchor",
    "BindState",
    "BindingKineticsEngine",
    "BindingProbabilityTable",
    "Box",
    "BruteForceNeighborProvider",
    "Candidate",
    "CheckpointFormatError",
    "ContractViolationError",
    "Crosslink",
    "CrosslinkSpecies",
    "ForceResult",
    "InvalidConfigurationError",
    "KineticParams",
    "MotilityParams",
    "NeighborSnapshot",
    "RNGStream",
    "Segment",
    "StepReport",
    "TableInversionError",
    "TableParams",
    "TetherParams",
]
