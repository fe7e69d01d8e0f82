"""
Export run results to CSV and JSON.

CSV columns (exact schema):
    step, t, ntot, nfree, nbound1_0, nbound1_1, nbound2, n_exp_0_1, n_exp_1_2
"""

import csv
import json
import subprocess
from dataclasses import asdict
from pathlib import Path
from typing import Optional
from datetime import datetime

from .config import XlinkRunConfig
from .runner import RunResult
from .species import POPULATION_COLUMNS


CSV_COLUMNS = ["step", "t"] + POPULATION_COLUMNS + ["n_exp_0_1", "n_exp_1_2"]


def export_csv(result: RunResult, path: Path) -> None:
    """
    Export population records to CSV.

    Args:
        result: Run result.
        path: Output CSV path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)

        for rec in result.records:
            writer.writerow([
                rec.step,
                rec.t,
                rec.n_total,
                rec.n_free,
                rec.n_bound1_0,
                rec.n_bound1_1,
                rec.n_bound2,
                rec.n_exp_0_1,
                rec.n_exp_1_2,
            ])


def get_git_commit() -> Optional[str]:
    """Get current git commit hash if available."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5
        )
        if result.returncode == 0:
            return result.stdout.strip()[:12]
    except (OSError, subprocess.SubprocessError):
        return None
    return None


def config_to_dict(config: XlinkRunConfig) -> dict:
    """Convert config to serializable dict."""
    return asdict(config)


def export_metadata(result: RunResult, path: Path) -> None:
    """
    Export metadata JSON with config and summary.

    Args:
        result: Run result.
        path: Output JSON path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    final = result.records[-1] if result.records else None
    metadata = {
        "timestamp": datetime.now().isoformat(),
        "git_commit": get_git_commit(),
        "config": config_to_dict(result.config),
        "summary": {
            "steps_completed": result.steps_completed,
            "aborted": result.aborted,
            "events": result.events,
            "clamped_samples": result.clamped_samples,
            "final_population": None if final is None else {
                "ntot": final.n_total,
                "nfree": final.n_free,
                "nbound1": [final.n_bound1_0, final.n_bound1_1],
                "nbound2": final.n_bound2,
            },
            "checkpoints": result.checkpoints,
        }
    }

    with open(path, 'w') as f:
        json.dump(metadata, f, indent=2)


def export_results(result: RunResult, out_dir: Path, run_name: str) -> dict:
    """
    Export all results to output directory.

    Args:
        result: Run result.
        out_dir: Output directory.
        run_name: Base name for output files.

    Returns:
        Dict with paths to exported files.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    csv_path = out_dir / f"{run_name}.csv"
    json_path = out_dir / f"{run_name}_metadata.json"

    export_csv(result, csv_path)
    export_metadata(result, json_path)

    return {
        "csv": str(csv_path),
        "metadata": str(json_path)
    }
