"""
Tests for the command-line interface and pipelines
"""

import numpy as np
import pytest

from malheur.backends.io_store import load_prototypes, load_table
from malheur.cli import main
from malheur.config import load_config
from malheur.errors import ConfigurationError
from malheur.pipeline import Task, run_prototype


class TestCLI:
    def test_prototype_task(self, tmp_path, report_dir, config_file):
        result = tmp_path / "result.txt"
        protos = tmp_path / "protos.npz"
        code = main(["-c", str(config_file), "-r", str(result), "-s", str(protos),
                     "prototype", str(report_dir)])
        assert code == 0

        df = load_table(str(result))
        assert df["prototype"].tolist() == [0, 0, 0, 1, 1]
        assert df["label"].tolist() == ["alpha"] * 3 + ["beta"] * 2

        pset = load_prototypes(str(protos))
        assert [p.members for p in pset] == [[0, 1, 2], [3, 4]]

    def test_prototype_task_from_saved(self, tmp_path, report_dir, config_file):
        protos = tmp_path / "protos.npz"
        assert main(["-c", str(config_file), "-s", str(protos), "prototype", str(report_dir)]) == 0

        result = tmp_path / "reloaded.txt"
        code = main(["-c", str(config_file), "-l", str(protos), "-r", str(result),
                     "prototype", str(report_dir)])
        assert code == 0
        assert load_table(str(result))["prototype"].tolist() == [0, 0, 0, 1, 1]

    def test_loaded_prototypes_reassign_reports(self, tmp_path, report_dir, config_file):
        protos = tmp_path / "protos.npz"
        assert main(["-c", str(config_file), "-s", str(protos), "prototype", str(report_dir)]) == 0

        other = tmp_path / "other"
        other.mkdir()
        for name, text in [("q1.x", "z"), ("q2.x", "a a b"), ("q3.x", "z z y")]:
            (other / name).write_text(text)

        result = tmp_path / "reassigned.txt"
        code = main(["-c", str(config_file), "-l", str(protos), "-r", str(result),
                     "prototype", str(other)])
        assert code == 0
        df = load_table(str(result))
        assert df["prototype"].tolist() == [1, 0, 1]
        assert df["prototype_report"].tolist() == ["q1.x", "q2.x", "q1.x"]

    def test_corrupt_loaded_prototypes(self, tmp_path, report_dir, config_file):
        protos = tmp_path / "protos.npz"
        assert main(["-c", str(config_file), "-s", str(protos), "prototype", str(report_dir)]) == 0

        with np.load(str(protos)) as data:
            arrays = {k: data[k] for k in data.files}
        arrays["mem_index"][-1] = 99
        bad = tmp_path / "bad.npz"
        with open(bad, "wb") as f:
            np.savez(f, **arrays)

        result = tmp_path / "result.txt"
        code = main(["-c", str(config_file), "-l", str(bad), "-r", str(result),
                     "prototype", str(report_dir)])
        assert code == 1
        assert not result.exists()

    def test_kernel_task(self, tmp_path, report_dir, config_file):
        result = tmp_path / "kernel.txt"
        assert main(["-c", str(config_file), "-r", str(result), "kernel", str(report_dir)]) == 0

        df = load_table(str(result), index_col=0)
        values = df.values
        assert values.shape == (5, 5)
        np.testing.assert_array_equal(values, values.T)
        assert values[0, 2] == pytest.approx(1.0)

    def test_cluster_task(self, tmp_path, report_dir):
        assert main(["cluster", str(report_dir)]) == 0
        assert sorted(p.name for p in tmp_path.iterdir()) == ["reports"]

    def test_unknown_task(self, tmp_path, report_dir):
        assert main(["-r", str(tmp_path / "x"), "classify", str(report_dir)]) == 1

    def test_missing_outputs(self, report_dir):
        assert main(["prototype", str(report_dir)]) == 1
        assert main(["kernel", str(report_dir)]) == 1

    def test_missing_input(self, tmp_path):
        assert main(["-r", str(tmp_path / "x"), "kernel", str(tmp_path / "missing")]) == 1

    def test_bad_config(self, tmp_path, report_dir):
        cfg = tmp_path / "bad.json"
        cfg.write_text('{"features": {"dimension": 12}}')
        result = tmp_path / "r.txt"
        assert main(["-c", str(cfg), "-r", str(result), "kernel", str(report_dir)]) == 1
        assert not result.exists()

    def test_matrix_too_large(self, tmp_path, report_dir):
        cfg = tmp_path / "small.json"
        cfg.write_text('{"kernel": {"max_matrix_bytes": 64}}')
        result = tmp_path / "r.txt"
        assert main(["-c", str(cfg), "-r", str(result), "kernel", str(report_dir)]) == 1
        assert not result.exists()


class TestPipeline:
    def test_task_parse(self):
        assert Task.parse("Prototype") is Task.PROTOTYPE
        with pytest.raises(ConfigurationError):
            Task.parse("bogus")

    def test_run_prototype_requires_output(self, report_dir, config_file):
        with pytest.raises(ConfigurationError):
            run_prototype(str(report_dir), load_config(str(config_file)))

    def test_run_prototype_result(self, tmp_path, report_dir, config_file):
        cfg = load_config(str(config_file))
        res = run_prototype(str(report_dir), cfg, result_file=str(tmp_path / "r.txt"))
        assert len(res.prototypes) == 2
        assert res.array.sources[0] == "r1.alpha"
