"""
Shared fixtures for the crosslink kinetics tests.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add package source to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from xlink_kmc.crosslink import KineticParams
from xlink_kmc.force_laws import TetherParams
from xlink_kmc.kinetics import BindingKineticsEngine
from xlink_kmc.lookup_table import BindingProbabilityTable, TableParams
from xlink_kmc.segments import Segment
from xlink_kmc.species import CrosslinkSpecies
from xlink_kmc.utils.logger import Logger, MemoryStrategy


@pytest.fixture(autouse=True)
def memory_log():
    """Route all log records to memory for the duration of a test."""
    strategy = MemoryStrategy()
    Logger.reset()
    Logger.set_log_storage_strategy(strategy)
    yield strategy
    Logger.reset()


def make_segment(oid=0, rid=0, position=(0.0, 0.0, 0.0), orientation=(1.0, 0.0, 0.0),
                 length=4.0, sid="filament"):
    return Segment(oid=oid, rid=rid, sid=sid, position=np.array(position, dtype=float),
                   orientation=np.array(orientation, dtype=float), length=length)


def flat_table():
    """Two-point table with zero everywhere: no 1 → 2 binding."""
    return BindingProbabilityTable(np.array([0.0, 0.05]), np.array([0.0]), np.zeros((2, 1)))


def make_species(kinetic=None, tether=None, kind="crosslinker", seed=42, first_oid=100, motility=None):
    return CrosslinkSpecies(
        name="xlink",
        kind=kind,
        partner_species="filament",
        tether=tether or TetherParams(k_spring=10.0, rest_length=0.5, f_spring_max=100.0),
        kinetic=kinetic or KineticParams(),
        motility=motility,
        seed=seed,
        first_oid=first_oid,
    )


def make_engine(species, table=None, delta=0.01, **kwargs):
    return BindingKineticsEngine(species, table or flat_table(), delta=delta, seed=7, **kwargs)


@pytest.fixture(scope="session")
def small_table():
    """Real quadrature table for a soft tether (k=10, r0=0.5)."""
    return BindingProbabilityTable.build(TableParams(
        k_spring=10.0,
        rest_length=0.5,
        concentration_1_2=1.0,
        max_length=4.0,
    ))
