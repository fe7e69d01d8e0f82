"""
Configuration loading and validation for crosslink kinetics runs.

Loads YAML config and validates all parameters against physical constraints.
Per-head parameters accept a scalar shorthand: concentrations are split
evenly between the two heads, rates apply to both heads unchanged.
"""

import yaml
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple, Union
from pathlib import Path
import numpy as np

from .crosslink import CROSSLINK_KINDS, KineticParams, MotilityParams
from .exceptions import InvalidConfigurationError
from .force_laws import TetherParams
from .lookup_table import TableParams
from .units import (
    DEFAULT_BIN_SIZE,
    DEFAULT_CUTOFF_EPS,
    DEFAULT_MAX_BIND_ATTEMPTS,
    DEFAULT_TABLE_EPS,
    DEFAULT_TEMPERATURE,
)

PerHead = Union[float, List[float]]


def per_head(value: PerHead, split: bool = False) -> Tuple[float, float]:
    """
    Expand a scalar or pair into a (head 0, head 1) tuple.

    Args:
        value: Scalar or two-element list.
        split: Halve a scalar between the heads instead of copying it.
    """
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise ValueError(f"Per-head value must have 2 entries, got {len(value)}")
        return float(value[0]), float(value[1])
    v = float(value)
    if split:
        return 0.5 * v, 0.5 * v
    return v, v


def _check_per_head(name: str, value: PerHead) -> Optional[str]:
    try:
        pair = per_head(value)
    except (TypeError, ValueError) as e:
        return f"{name}: {e}"
    if any(v < 0 for v in pair):
        return f"{name} must be non-negative"
    return None


@dataclass
class SpeciesConfig:
    """Crosslink species definition."""
    name: str = "xlink"
    kind: Literal["crosslinker", "motor"] = "crosslinker"
    num: int = 0
    partner_species: str = "filament"
    seed: int = 42
    insertion: Literal["random", "centered"] = "random"

    def validate(self) -> tuple[bool, Optional[str]]:
        if self.kind not in CROSSLINK_KINDS:
            return False, f"Unknown kind: {self.kind}"
        if self.num < 0:
            return False, "num must be non-negative"
        if self.insertion not in ("random", "centered"):
            return False, f"Unknown insertion mode: {self.insertion}"
        return True, None


@dataclass
class KineticsConfig:
    """Binding and unbinding rates."""
    concentration_0_1: PerHead = 1.0
    concentration_1_2: PerHead = 1.0
    on_rate_0_1: PerHead = 1.0
    on_rate_1_2: PerHead = 1.0
    off_rate_1_0: PerHead = 0.0
    off_rate_2_1: PerHead = 0.0
    r_capture: float = 1.0
    barrier_weight: float = 0.0
    force_dep_factor: float = 0.0
    batch_unbinding: bool = False
    max_bind_attempts: int = DEFAULT_MAX_BIND_ATTEMPTS

    def validate(self) -> tuple[bool, Optional[str]]:
        for name in ("concentration_0_1", "concentration_1_2", "on_rate_0_1",
                     "on_rate_1_2", "off_rate_1_0", "off_rate_2_1"):
            error = _check_per_head(name, getattr(self, name))
            if error:
                return False, error
        if self.r_capture <= 0:
            return False, "r_capture must be positive"
        if not 0 <= self.barrier_weight < 1:
            return False, "barrier_weight must be in [0, 1)"
        if self.max_bind_attempts < 1:
            return False, "max_bind_attempts must be >= 1"
        return True, None

    def to_params(self) -> KineticParams:
        return KineticParams(
            concentration_0_1=per_head(self.concentration_0_1, split=True),
            concentration_1_2=per_head(self.concentration_1_2, split=True),
            on_rate_0_1=per_head(self.on_rate_0_1),
            on_rate_1_2=per_head(self.on_rate_1_2),
            off_rate_1_0=per_head(self.off_rate_1_0),
            off_rate_2_1=per_head(self.off_rate_2_1),
            r_capture=self.r_capture,
            force_dep_factor=self.force_dep_factor,
        )


@dataclass
class TetherConfig:
    """Tether spring and head motility."""
    k_spring: float = 10.0
    rest_length: float = 0.5
    f_spring_max: float = 100.0
    diameter: float = 1.0
    velocity: float = 0.0
    step_direction: int = 1
    diffusion_bound: bool = False

    def validate(self) -> tuple[bool, Optional[str]]:
        if self.k_spring <= 0:
            return False, "k_spring must be positive"
        if self.rest_length < 0:
            return False, "rest_length must be non-negative"
        if self.f_spring_max <= 0:
            return False, "f_spring_max must be positive"
        if self.diameter <= 0:
            return False, "diameter must be positive"
        if self.step_direction not in (-1, 1):
            return False, "step_direction must be +1 or -1"
        return True, None

    def to_params(self) -> TetherParams:
        return TetherParams(
            k_spring=self.k_spring,
            rest_length=self.rest_length,
            f_spring_max=self.f_spring_max,
        )

    def to_motility(self) -> MotilityParams:
        return MotilityParams(
            velocity=self.velocity,
            step_direction=self.step_direction,
            diffusion_bound=self.diffusion_bound,
        )


@dataclass
class TableConfig:
    """Lookup-table resolution and cutoffs."""
    bin_size: float = DEFAULT_BIN_SIZE
    table_eps: float = DEFAULT_TABLE_EPS
    cutoff_eps: float = DEFAULT_CUTOFF_EPS
    max_length: Optional[float] = None  # Defaults to the longest filament segment
    temperature: float = DEFAULT_TEMPERATURE

    def validate(self) -> tuple[bool, Optional[str]]:
        if self.bin_size <= 0:
            return False, "bin_size must be positive"
        if not 0 < self.table_eps < 1:
            return False, "table_eps must be in (0, 1)"
        if self.cutoff_eps <= 0:
            return False, "cutoff_eps must be positive"
        if self.max_length is not None and self.max_length <= 0:
            return False, "max_length must be positive"
        if self.temperature <= 0:
            return False, "temperature must be positive"
        return True, None


@dataclass
class SystemConfig:
    """Timestep, run length and simulation box."""
    delta: float = 0.01
    n_steps: int = 1000
    box: Optional[List[float]] = None
    n_periodic: int = 0
    system_radius: float = 10.0
    n_workers: int = 1
    debug_trace: bool = False
    seed: int = 7

    def validate(self) -> tuple[bool, Optional[str]]:
        if self.delta <= 0:
            return False, "delta must be positive"
        if self.n_steps < 0:
            return False, "n_steps must be non-negative"
        if self.box is not None:
            if len(self.box) != 3:
                return False, "box must have 3 components"
            if any(b <= 0 for b in self.box):
                return False, "box lengths must be positive"
        if not 0 <= self.n_periodic <= 3:
            return False, "n_periodic must be in [0, 3]"
        if self.n_periodic > 0 and self.box is None:
            return False, "periodic dimensions require box lengths"
        if self.system_radius <= 0:
            return False, "system_radius must be positive"
        if self.n_workers < 1:
            return False, "n_workers must be >= 1"
        return True, None


@dataclass
class FilamentConfig:
    """Static straight filament split into rigid segments."""
    rid: int
    position: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    orientation: List[float] = field(default_factory=lambda: [1.0, 0.0, 0.0])
    length: float = 10.0
    n_segments: int = 1

    def validate(self) -> tuple[bool, Optional[str]]:
        if len(self.position) != 3:
            return False, "position must have 3 components"
        if len(self.orientation) != 3:
            return False, "orientation must have 3 components"
        if np.linalg.norm(self.orientation) < 1e-10:
            return False, "orientation must be non-zero"
        if self.length <= 0:
            return False, "length must be positive"
        if self.n_segments < 1:
            return False, "n_segments must be >= 1"
        return True, None

    @property
    def segment_length(self) -> float:
        return self.length / self.n_segments


@dataclass
class OutputConfig:
    """Output configuration."""
    out_dir: str = "output"
    run_name: str = "xlink_kmc_run"
    n_report: int = 100
    checkpoint_every: int = 0

    def validate(self) -> tuple[bool, Optional[str]]:
        if self.n_report < 1:
            return False, "n_report must be >= 1"
        if self.checkpoint_every < 0:
            return False, "checkpoint_every must be non-negative"
        return True, None


@dataclass
class XlinkRunConfig:
    """Complete run configuration."""
    species: SpeciesConfig = field(default_factory=SpeciesConfig)
    kinetics: KineticsConfig = field(default_factory=KineticsConfig)
    tether: TetherConfig = field(default_factory=TetherConfig)
    table: TableConfig = field(default_factory=TableConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    filaments: List[FilamentConfig] = field(default_factory=list)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self) -> tuple[bool, Optional[str]]:
        for section_name in ["species", "kinetics", "tether", "table", "system", "output"]:
            section = getattr(self, section_name)
            is_valid, error = section.validate()
            if not is_valid:
                return False, f"{section_name}: {error}"
        rids = set()
        for i, filament in enumerate(self.filaments):
            is_valid, error = filament.validate()
            if not is_valid:
                return False, f"filaments[{i}]: {error}"
            if filament.rid in rids:
                return False, f"filaments[{i}]: duplicate rid {filament.rid}"
            rids.add(filament.rid)
        return True, None

    def max_segment_length(self) -> float:
        if self.table.max_length is not None:
            return self.table.max_length
        if not self.filaments:
            return 1.0
        return max(f.segment_length for f in self.filaments)

    def table_params(self) -> TableParams:
        kinetic = self.kinetics.to_params()
        return TableParams(
            k_spring=self.tether.k_spring,
            rest_length=self.tether.rest_length,
            barrier_weight=self.kinetics.barrier_weight,
            concentration_1_2=sum(kinetic.concentration_1_2),
            max_length=self.max_segment_length(),
            temperature=self.table.temperature,
            bin_size=self.table.bin_size,
            table_eps=self.table.table_eps,
            cutoff_eps=self.table.cutoff_eps,
        )


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise InvalidConfigurationError(f"Section '{name}' must be a mapping")
    return value


def parse_config(raw: dict) -> XlinkRunConfig:
    """
    Build and validate a config from an already-parsed mapping.

    Raises:
        InvalidConfigurationError: Unknown keys or failed validation.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidConfigurationError("Configuration root must be a mapping")

    try:
        species = SpeciesConfig(**_section(raw, "species"))
        kinetics = KineticsConfig(**_section(raw, "kinetics"))
        tether = TetherConfig(**_section(raw, "tether"))
        table = TableConfig(**_section(raw, "table"))
        system = SystemConfig(**_section(raw, "system"))
        output = OutputConfig(**_section(raw, "output"))
        filaments = [FilamentConfig(**f) for f in (raw.get("filaments") or [])]
    except TypeError as e:
        raise InvalidConfigurationError(f"Invalid configuration: {e}") from e

    config = XlinkRunConfig(
        species=species,
        kinetics=kinetics,
        tether=tether,
        table=table,
        system=system,
        filaments=filaments,
        output=output
    )

    is_valid, error = config.validate()
    if not is_valid:
        raise InvalidConfigurationError(f"Invalid configuration: {error}")

    return config


def load_config(path: Path) -> XlinkRunConfig:
    """
    Load and validate configuration from YAML file.

    Args:
        path: Path to YAML config file.

    Returns:
        Validated XlinkRunConfig.

    Raises:
        InvalidConfigurationError: If config is invalid.
        FileNotFoundError: If file doesn't exist.
    """
    with open(path, 'r') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidConfigurationError(f"Malformed YAML in {path}: {e}") from e
    return parse_config(raw)
