"""
Command-line interface for crosslink kinetics runs.

Usage:
    xlink-kmc --config examples/static_filaments.yaml --out output/
    xlink-kmc --config examples/motor_walk.yaml --out output/ --plot
"""

import argparse
import sys
from pathlib import Path

from .analysis import load_population_csv, plot_population, summarize_population
from .checkpoint import write_spec
from .config import load_config
from .exceptions import ContractViolationError, InvalidConfigurationError
from .exporters import export_results
from .runner import KMCRunner
from .utils.logger import Logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Kinetic Monte Carlo binding of crosslinkers and motors to static filaments"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        required=True,
        help="Path to YAML configuration file"
    )
    parser.add_argument(
        "--out", "-o",
        type=Path,
        default=None,
        help="Output directory (overrides config)"
    )
    parser.add_argument(
        "--name", "-n",
        type=str,
        default=None,
        help="Run name (overrides config)"
    )
    parser.add_argument(
        "--restart", "-r",
        type=Path,
        default=None,
        help="Checkpoint file to resume from"
    )
    parser.add_argument(
        "--plot", "-p",
        action="store_true",
        help="Write a population figure and summary after the run"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress output except errors"
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    Logger.initialize()

    # Load and validate config
    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: Config file not found: {args.config}", file=sys.stderr)
        sys.exit(1)
    except InvalidConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    out_dir = args.out or Path(config.output.out_dir)
    run_name = args.name or config.output.run_name

    if not args.quiet:
        print(f"Running crosslink kinetics...")
        print(f"  Species: {config.species.name} ({config.species.kind}, n={config.species.num})")
        print(f"  Filaments: {len(config.filaments)}")
        print(f"  Steps: {config.system.n_steps} x {config.system.delta}")

    try:
        runner = KMCRunner(config, out_dir=out_dir, run_name=run_name)
        if args.restart is not None:
            runner.restore(args.restart)
        result = runner.run()
    except FileNotFoundError:
        print(f"Error: Restart file not found: {args.restart}", file=sys.stderr)
        sys.exit(1)
    except ContractViolationError as e:
        print(f"Error: contract violation: {e}", file=sys.stderr)
        sys.exit(1)

    paths = export_results(result, out_dir, run_name)
    paths["spec"] = str(write_spec(Path(out_dir) / f"{run_name}_final.spec", runner.species))

    summary = None
    if args.plot:
        rows = load_population_csv(paths["csv"])
        summary = summarize_population(rows)
        paths["plot"] = plot_population(rows, str(Path(out_dir) / f"{run_name}_population.png"), title=run_name)

    if not args.quiet:
        final = result.records[-1] if result.records else None
        print()
        print("=" * 50)
        print("RUN COMPLETE" if not result.aborted else "RUN ABORTED")
        print("=" * 50)
        print(f"  Steps: {result.steps_completed}")
        if final is not None:
            print(f"  Population: free={final.n_free} singly={final.n_bound1_0 + final.n_bound1_1} "
                  f"doubly={final.n_bound2}")
        print(f"  Events: {result.events}")
        if summary is not None and summary["n_records"] > 0:
            print(f"  Steady state: free={summary['steady_free_fraction']:.3f} "
                  f"singly={summary['steady_bound1_fraction']:.3f} doubly={summary['steady_bound2_fraction']:.3f}")
        print()
        print("Output files:")
        for key, path in paths.items():
            print(f"  {key}: {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
