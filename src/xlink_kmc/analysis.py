"""
Deterministic, headless analysis of exported population logs.

Scope:
- Consumes the population CSV written by exporters.export_csv.
- Produces summary statistics and a Matplotlib figure (Agg backend).
- NO GUI dependency. NO randomness.
"""

import csv
import os
from typing import Any, Dict, List, Sequence

import matplotlib

# Headless, deterministic backend.
matplotlib.use("Agg")  # must be set before importing pyplot
import matplotlib.pyplot as plt

from .exporters import CSV_COLUMNS

INT_FIELDS = ("step", "ntot", "nfree", "nbound1_0", "nbound1_1", "nbound2")
FLOAT_FIELDS = ("t", "n_exp_0_1", "n_exp_1_2")


def load_population_csv(path: str) -> List[Dict[str, Any]]:
    """
    Load a population CSV into typed rows.

    Raises:
        ValueError: Required columns are missing.
    """
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        missing = [c for c in CSV_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"Population CSV missing columns: {missing}")
        rows = []
        for r in reader:
            d = dict(r)
            for k in INT_FIELDS:
                d[k] = int(d[k])
            for k in FLOAT_FIELDS:
                d[k] = float(d[k])
            rows.append(d)
    return rows


def summarize_population(rows: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Summary of a population history.

    The steady-state fractions average the second half of the records.
    """
    if not rows:
        return {"n_records": 0}
    tail = rows[len(rows) // 2:]
    ntot = rows[-1]["ntot"]

    def mean_fraction(key_fn):
        if ntot == 0:
            return 0.0
        return sum(key_fn(r) for r in tail) / (len(tail) * ntot)

    return {
        "n_records": len(rows),
        "t_final": rows[-1]["t"],
        "ntot": ntot,
        "final_free": rows[-1]["nfree"],
        "final_bound1": rows[-1]["nbound1_0"] + rows[-1]["nbound1_1"],
        "final_bound2": rows[-1]["nbound2"],
        "steady_free_fraction": mean_fraction(lambda r: r["nfree"]),
        "steady_bound1_fraction": mean_fraction(lambda r: r["nbound1_0"] + r["nbound1_1"]),
        "steady_bound2_fraction": mean_fraction(lambda r: r["nbound2"]),
    }


def plot_population(rows: Sequence[Dict[str, Any]], out_path: str, title: str = "Crosslink population") -> str:
    """Write a population-vs-time figure and return its path."""
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    t = [r["t"] for r in rows]
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.plot(t, [r["nfree"] for r in rows], label="free")
    ax.plot(t, [r["nbound1_0"] for r in rows], label="singly (head 0)")
    ax.plot(t, [r["nbound1_1"] for r in rows], label="singly (head 1)")
    ax.plot(t, [r["nbound2"] for r in rows], label="doubly")
    ax.set_xlabel("time")
    ax.set_ylabel("count")
    ax.set_title(title)
    ax.legend(loc="best")
    fig.tight_layout()
    fig.savefig(out_path, dpi=120)
    plt.close(fig)
    return out_path
