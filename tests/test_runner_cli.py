"""
Tests for the static-filament runner and the command-line interface.

These tests verify:
- A run records the population at every report step
- Checkpoint and restore reproduce an uninterrupted run exactly
- The CLI writes its output files and exits 1 on bad input
"""

import json

import numpy as np
import pytest
import yaml

from xlink_kmc.checkpoint import write_checkpoint
from xlink_kmc.cli import main
from xlink_kmc.config import parse_config
from xlink_kmc.exceptions import CheckpointFormatError
from xlink_kmc.runner import KMCRunner, total_tether_force


def raw_config(tmp_path, n_steps=20, checkpoint_every=0, n_report=5):
    return {
        "species": {"name": "xlink", "num": 40, "seed": 11, "insertion": "random"},
        "kinetics": {
            "concentration_0_1": 20.0,
            "concentration_1_2": 20.0,
            "off_rate_1_0": 2.0,
            "off_rate_2_1": 2.0,
            "r_capture": 1.0,
            "force_dep_factor": 0.2,
        },
        "tether": {"k_spring": 10.0, "rest_length": 0.5, "f_spring_max": 50.0},
        "system": {"delta": 0.01, "n_steps": n_steps, "system_radius": 1.0, "seed": 5},
        "filaments": [
            {"rid": 0, "position": [0.0, 0.0, 0.0], "orientation": [1.0, 0.0, 0.0],
             "length": 4.0, "n_segments": 2},
            {"rid": 1, "position": [0.0, 0.6, 0.0], "orientation": [-1.0, 0.0, 0.0],
             "length": 4.0, "n_segments": 2},
        ],
        "output": {"out_dir": str(tmp_path), "run_name": "test_run",
                   "n_report": n_report, "checkpoint_every": checkpoint_every},
    }


def motor_config(tmp_path, **kwargs):
    """Motors walking on tethers stiff enough that load slows them down."""
    raw = raw_config(tmp_path, **kwargs)
    raw["species"]["kind"] = "motor"
    raw["kinetics"]["off_rate_1_0"] = 0.0
    raw["kinetics"]["off_rate_2_1"] = 0.0
    raw["tether"].update({"rest_length": 0.0, "f_spring_max": 8.0, "velocity": 1.0})
    return raw


def crosslink_state(species):
    return [
        (
            int(x.state),
            tuple(a.head for a in x.anchors),
            tuple(a.attached_oid for a in x.anchors),
            tuple(a.lam for a in x.anchors),
            tuple(x.position),
            x.tension,
        )
        for x in species
    ]


class TestKMCRunner:
    """Tests for KMCRunner."""

    def test_builds_segments_then_crosslinks(self, tmp_path):
        runner = KMCRunner(parse_config(raw_config(tmp_path)))
        assert [s.oid for s in runner.segments] == [0, 1, 2, 3]
        assert runner.species.crosslinks[0].oid == 4
        assert len(runner.species) == 40

    def test_population_records(self, tmp_path):
        result = KMCRunner(parse_config(raw_config(tmp_path))).run()
        assert result.steps_completed == 20
        assert [r.step for r in result.records] == [4, 9, 14, 19]
        for record in result.records:
            assert record.n_total == 40
            assert record.n_free + record.n_bound1_0 + record.n_bound1_1 + record.n_bound2 == 40
        assert result.records[-1].t == pytest.approx(0.2)
        assert result.events["0_1"] > 0

    def test_same_seed_same_run(self, tmp_path):
        config = parse_config(raw_config(tmp_path))
        first = KMCRunner(config)
        first.run()
        second = KMCRunner(config)
        second.run()
        assert crosslink_state(first.species) == crosslink_state(second.species)

    def test_checkpoint_restart_matches_uninterrupted(self, tmp_path):
        full = KMCRunner(parse_config(raw_config(tmp_path, n_steps=20, checkpoint_every=10)))
        result = full.run()
        assert len(result.checkpoints) == 2
        assert result.checkpoints[0].endswith("test_run_step00000010.ckpt")

        resumed = KMCRunner(parse_config(raw_config(tmp_path, n_steps=10)))
        resumed.restore(result.checkpoints[0])
        resumed.run()
        assert crosslink_state(resumed.species) == crosslink_state(full.species)

    def test_motor_checkpoint_restart_matches_uninterrupted(self, tmp_path):
        """Loaded motor heads walk at the same speed before and after a restore."""
        full = KMCRunner(parse_config(motor_config(tmp_path, n_steps=20, checkpoint_every=10)))
        result = full.run()

        resumed = KMCRunner(parse_config(motor_config(tmp_path, n_steps=10)))
        resumed.restore(result.checkpoints[0])
        assert any(x.tension > 0.0 for x in resumed.species)
        resumed.run()
        assert crosslink_state(resumed.species) == crosslink_state(full.species)

    def test_restore_rejects_anchor_beyond_segment(self, tmp_path):
        runner = KMCRunner(parse_config(raw_config(tmp_path)))
        runner.species.crosslinks[0].bind_anchor(0, runner.segments[0], 1.5)
        path = write_checkpoint(tmp_path / "long.ckpt", runner.species, runner.engine)

        raw = raw_config(tmp_path)
        for filament in raw["filaments"]:
            filament["length"] = 2.0
        short = KMCRunner(parse_config(raw))
        with pytest.raises(CheckpointFormatError):
            short.restore(path)

    def test_abort_stops_after_current_step(self, tmp_path):
        runner = KMCRunner(parse_config(raw_config(tmp_path, n_report=1)))
        result = runner.run(on_report=lambda record: runner.request_abort())
        assert result.aborted
        assert result.steps_completed == 1
        assert len(result.records) == 1

    def test_segment_forces_balance(self, tmp_path):
        runner = KMCRunner(parse_config(raw_config(tmp_path)))
        for _ in range(30):
            runner.step()
        assert np.allclose(total_tether_force(runner.segments), 0.0)

    def test_population_logged(self, tmp_path, memory_log):
        KMCRunner(parse_config(raw_config(tmp_path))).run()
        assert any(m.startswith("step 20: 40 ") for m in memory_log.messages("INFO"))


class TestCLI:
    """Tests for the xlink-kmc entry point."""

    def write_config(self, tmp_path, raw):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(raw))
        return path

    def test_run_writes_outputs(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XLINK_KMC_LOG_PATH", str(tmp_path / "log.txt"))
        path = self.write_config(tmp_path, raw_config(tmp_path, n_steps=10))
        out = tmp_path / "out"

        assert main(["--config", str(path), "--out", str(out), "--name", "cli", "--quiet"]) == 0
        assert (out / "cli.csv").exists()
        assert (out / "cli_final.spec").exists()
        metadata = json.loads((out / "cli_metadata.json").read_text())
        assert metadata["summary"]["steps_completed"] == 10

    def test_invalid_config_exits_1(self, tmp_path, capsys):
        raw = raw_config(tmp_path)
        raw["system"]["delta"] = -1.0
        path = self.write_config(tmp_path, raw)
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(path)])
        assert exc_info.value.code == 1
        assert "delta" in capsys.readouterr().err

    def test_missing_config_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(tmp_path / "missing.yaml")])
        assert exc_info.value.code == 1

    def test_missing_restart_exits_1(self, tmp_path):
        path = self.write_config(tmp_path, raw_config(tmp_path, n_steps=5))
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(path), "--restart", str(tmp_path / "missing.ckpt"), "-q"])
        assert exc_info.value.code == 1

    def test_restart_from_checkpoint(self, tmp_path):
        raw = raw_config(tmp_path, n_steps=10, checkpoint_every=10)
        result = KMCRunner(parse_config(raw)).run()
        path = self.write_config(tmp_path, raw)
        code = main(["--config", str(path), "--restart", result.checkpoints[0], "--name", "resumed", "-q"])
        assert code == 0
        assert (tmp_path / "resumed.csv").exists()

    def test_plot_flag_writes_figure(self, tmp_path, capsys):
        path = self.write_config(tmp_path, raw_config(tmp_path, n_steps=10))
        out = tmp_path / "out"
        assert main(["--config", str(path), "--out", str(out), "--name", "fig", "--plot"]) == 0
        assert (out / "fig_population.png").stat().st_size > 0
        stdout = capsys.readouterr().out
        assert "Steady state:" in stdout
        assert "plot:" in stdout
