"""
Static-filament runner.

Builds filaments, one crosslink species and its kinetics engine from a
run configuration, then steps the engine while recording the species
population. Filaments do not move; tether forces are still accumulated
on the segments each step so a mechanical integrator could consume them.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import numpy as np

from .checkpoint import read_checkpoint, read_spec, write_checkpoint
from .config import XlinkRunConfig
from .geometry import Box
from .kinetics import CATEGORIES, BindingKineticsEngine, StepReport
from .lookup_table import BindingProbabilityTable
from .neighbors import BruteForceNeighborProvider, segment_lengths_of
from .segments import Segment, build_filament
from .species import CrosslinkSpecies
from .utils.logger import Logger


@dataclass
class PopulationRecord:
    """
    Species population at one reported step.

    Attributes:
        step: Step index.
        t: Simulated time (step + 1) * delta.
        n_total, n_free, n_bound1_0, n_bound1_1, n_bound2: Population counts.
        n_exp_0_1, n_exp_1_2: Expected bindings at prepare time.
    """
    step: int
    t: float
    n_total: int
    n_free: int
    n_bound1_0: int
    n_bound1_1: int
    n_bound2: int
    n_exp_0_1: float
    n_exp_1_2: float

    @classmethod
    def from_report(cls, report: StepReport, delta: float) -> "PopulationRecord":
        c = report.counts
        return cls(
            step=report.step,
            t=(report.step + 1) * delta,
            n_total=c.n_total,
            n_free=c.n_free,
            n_bound1_0=c.n_bound1[0],
            n_bound1_1=c.n_bound1[1],
            n_bound2=c.n_bound2,
            n_exp_0_1=report.n_exp_0_1,
            n_exp_1_2=report.n_exp_1_2,
        )


@dataclass
class RunResult:
    """
    Complete run results.

    Attributes:
        records: Population records at every reported step.
        config: Configuration used.
        events: Total transitions per category (and ruptures).
        steps_completed: Number of engine steps taken.
        clamped_samples: Bind positions clamped after retry exhaustion.
        aborted: Whether the run stopped on request.
        checkpoints: Paths of checkpoint files written.
    """
    records: List[PopulationRecord]
    config: XlinkRunConfig
    events: Dict[str, int]
    steps_completed: int
    clamped_samples: int
    aborted: bool = False
    checkpoints: List[str] = field(default_factory=list)


class KMCRunner:
    """
    Runs the kinetics engine against static filaments.
    """

    def __init__(self, config: XlinkRunConfig, out_dir: Optional[Path] = None, run_name: Optional[str] = None):
        """
        Initialize runner with configuration.

        Args:
            config: Complete run configuration.
            out_dir: Directory for checkpoints (overrides config).
            run_name: Base name for checkpoint files (overrides config).
        """
        self.config = config
        self.out_dir = Path(out_dir or config.output.out_dir)
        self.run_name = run_name or config.output.run_name
        self._abort = False

        system = config.system
        self.box = Box(lengths=system.box, n_periodic=system.n_periodic)

        # Filament segments take the first oids, crosslinks and anchors follow
        self.segments: List[Segment] = []
        for filament in config.filaments:
            self.segments.extend(build_filament(
                rid=filament.rid,
                position=filament.position,
                orientation=filament.orientation,
                length=filament.length,
                n_segments=filament.n_segments,
                first_oid=len(self.segments),
                sid=config.species.partner_species,
            ))

        self.table = BindingProbabilityTable.build(config.table_params())

        species_cfg = config.species
        self.species = CrosslinkSpecies(
            name=species_cfg.name,
            kind=species_cfg.kind,
            partner_species=species_cfg.partner_species,
            tether=config.tether.to_params(),
            kinetic=config.kinetics.to_params(),
            motility=config.tether.to_motility(),
            diameter=config.tether.diameter,
            seed=species_cfg.seed,
            first_oid=len(self.segments),
        )
        self.species.insert(species_cfg.num, species_cfg.insertion, system.system_radius)

        self.provider = BruteForceNeighborProvider(self.segments, self.box)
        self.engine = BindingKineticsEngine(
            species=self.species,
            table=self.table,
            delta=system.delta,
            box=self.box,
            seed=system.seed,
            batch_unbinding=config.kinetics.batch_unbinding,
            max_bind_attempts=config.kinetics.max_bind_attempts,
            n_workers=system.n_workers,
            debug_trace=system.debug_trace,
        )

    def request_abort(self) -> None:
        """Stop the run after the step in progress."""
        self._abort = True

    def restore(self, path: Path, checkpoint: bool = True) -> None:
        """
        Load crosslink state from a checkpoint (or plain spec) file.

        Raises:
            CheckpointFormatError: The file is malformed, or a bound anchor
                references a missing segment or lies beyond its end.
        """
        segment_lengths = segment_lengths_of(self.provider.get_simples())
        if checkpoint:
            read_checkpoint(path, self.species, self.engine, segment_lengths)
        else:
            read_spec(path, self.species, segment_lengths)

    def step(self) -> StepReport:
        """Rebuild neighbor lists, step the engine, hand forces to the segments."""
        self.provider.update(self.species, self.species.kinetic.r_capture, self.table.y_cut)
        report = self.engine.step(self.provider)
        for segment in self.segments:
            segment.zero_force()
        self.engine.apply_tether_forces()
        return report

    def checkpoint_path(self, step: int) -> Path:
        return self.out_dir / f"{self.run_name}_step{step:08d}.ckpt"

    def run(self, on_report: Optional[Callable[[PopulationRecord], None]] = None) -> RunResult:
        """
        Run config.system.n_steps engine steps.

        Args:
            on_report: Called with each recorded PopulationRecord.

        Returns:
            RunResult with the population history.
        """
        system = self.config.system
        output = self.config.output
        records: List[PopulationRecord] = []
        totals = {name: 0 for name in CATEGORIES}
        totals["rupture"] = 0
        checkpoints: List[str] = []
        steps_done = 0

        Logger.log(f"Run '{self.run_name}': {system.n_steps} steps, {len(self.species)} crosslinks, "
                   f"{len(self.segments)} segments", Logger.LogPriority.INFO)
        try:
            for i in range(system.n_steps):
                if self._abort:
                    Logger.log(f"Run aborted before step {i}", Logger.LogPriority.WARNING)
                    break
                report = self.step()
                steps_done += 1
                for name, n in report.events.items():
                    totals[name] = totals.get(name, 0) + n

                if (i + 1) % output.n_report == 0 or i == system.n_steps - 1:
                    record = PopulationRecord.from_report(report, system.delta)
                    records.append(record)
                    Logger.log(f"step {i + 1}: {self.species.population_line()}", Logger.LogPriority.INFO)
                    if on_report is not None:
                        on_report(record)

                if output.checkpoint_every > 0 and (i + 1) % output.checkpoint_every == 0:
                    self.out_dir.mkdir(parents=True, exist_ok=True)
                    checkpoints.append(str(write_checkpoint(self.checkpoint_path(i + 1), self.species, self.engine)))
        finally:
            self.engine.close()

        return RunResult(
            records=records,
            config=self.config,
            events=totals,
            steps_completed=steps_done,
            clamped_samples=self.engine.clamped_samples,
            aborted=self._abort,
            checkpoints=checkpoints,
        )


def total_tether_force(segments: List[Segment]) -> np.ndarray:
    """Sum of forces on all segments; zero for any closed set of tethers."""
    if not segments:
        return np.zeros(3)
    return np.sum([s.force for s in segments], axis=0)
