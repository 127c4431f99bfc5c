"""Tests for the result schema validation, writing, and run ID generation."""

import json
import re
from dataclasses import replace
from pathlib import Path

import numpy as np
import pytest
import scipy.sparse

from nmf_cluster.config import DEFAULT_CONFIG, POISSON_CONFIG
from nmf_cluster.graph import fixture_graph
from nmf_cluster.optimizer import cluster_graph
from nmf_cluster.results import (
    build_result,
    generate_run_id,
    load_result,
    validate_result,
    write_result,
)


@pytest.fixture
def finished_run():
    return cluster_graph(fixture_graph("two_triangles"), POISSON_CONFIG)


class TestValidateResult:
    """validate_result accepts valid dicts and rejects invalid ones."""

    @pytest.fixture
    def valid_result(self):
        return {
            "schema_version": "1.0",
            "run_id": "ones3_one_b0_s1234567_20261019_120000",
            "timestamp": "2026-10-19T12:00:00+00:00",
            "description": "test run",
            "tags": ["test"],
            "config": {"seed": 1234567},
            "metrics": {
                "scalars": {
                    "initial_loss": 3.0,
                    "final_loss": 1.5,
                    "num_passes": 2,
                    "num_moves": 3,
                    "converged": True,
                    "num_nodes": 3,
                    "num_clusters": 2,
                    "nnz": 4,
                }
            },
            "clusters": {"size": [3, 1], "weight": [2.5, 0.5]},
        }

    def test_validate_result_valid(self, valid_result):
        assert validate_result(valid_result) == []

    def test_validate_result_missing_fields(self):
        errors = validate_result({"schema_version": "1.0"})
        assert any("Missing required" in e for e in errors)

    def test_validate_result_missing_scalars(self, valid_result):
        valid_result["metrics"] = {"curves": {}}
        errors = validate_result(valid_result)
        assert any("scalars" in e for e in errors)

    def test_validate_result_incomplete_scalars(self, valid_result):
        del valid_result["metrics"]["scalars"]["final_loss"]
        errors = validate_result(valid_result)
        assert any("final_loss" in e for e in errors)

    def test_validate_result_cluster_length_mismatch(self, valid_result):
        valid_result["clusters"]["weight"] = [2.5]
        errors = validate_result(valid_result)
        assert any("clusters.weight" in e for e in errors)

    def test_validate_result_bad_schema_version_type(self, valid_result):
        valid_result["schema_version"] = 1.0
        errors = validate_result(valid_result)
        assert any("schema_version" in e for e in errors)

    def test_validate_result_bad_tags_type(self, valid_result):
        valid_result["tags"] = "not-a-list"
        errors = validate_result(valid_result)
        assert any("tags" in e for e in errors)

    def test_validate_result_bad_timestamp(self, valid_result):
        valid_result["timestamp"] = "yesterday"
        errors = validate_result(valid_result)
        assert any("ISO 8601" in e for e in errors)


class TestGenerateRunId:
    """Run ID follows the scannable slug format."""

    def test_run_id_format(self):
        run_id = generate_run_id(DEFAULT_CONFIG, "two_triangles")
        assert re.match(r"^two_triangles_one_b0_s1234567_\d{8}_\d{6}$", run_id)

    def test_run_id_poisson(self):
        run_id = generate_run_id(POISSON_CONFIG, "ones3")
        assert run_id.startswith("ones3_poisson_b0.01_s1234567_")

    def test_run_id_uses_file_stem(self):
        run_id = generate_run_id(DEFAULT_CONFIG, "data/my graph.edges.txt")
        assert run_id.startswith("my-graph_one_")


class TestBuildResult:
    """build_result assembles a valid payload."""

    def test_payload_is_valid(self, finished_run):
        payload = build_result(finished_run, POISSON_CONFIG, "two_triangles")
        assert validate_result(payload) == []
        assert payload["metadata"]["graph"] == "two_triangles"
        assert len(payload["metadata"]["config_hash"]) == 16

    def test_scalars_match_run(self, finished_run):
        payload = build_result(finished_run, POISSON_CONFIG, "two_triangles", "rid")
        scalars = payload["metrics"]["scalars"]
        assert payload["run_id"] == "rid"
        assert scalars["final_loss"] == finished_run.final_loss
        assert scalars["num_passes"] == finished_run.num_passes
        assert scalars["nnz"] == finished_run.state.nnz
        assert payload["metrics"]["curves"]["loss"] == finished_run.loss_history

    def test_clusters_in_export_order(self, finished_run):
        payload = build_result(finished_run, POISSON_CONFIG, "two_triangles")
        state = finished_run.state
        clus_id, num_clus, _ = state.compressed_cluster_ids()
        original = payload["clusters"]["original_id"]
        assert len(original) == num_clus
        assert [int(clus_id[k]) for k in original] == list(range(num_clus))

        matrix = state.to_sparse_matrix().to_dense()
        np.testing.assert_allclose(matrix.sum(axis=1), payload["clusters"]["weight"])
        assert (matrix > 0).sum(axis=1).tolist() == payload["clusters"]["size"]

    def test_payload_is_json_serializable(self, finished_run):
        config = replace(POISSON_CONFIG, tags=("smoke",))
        payload = build_result(finished_run, config, "two_triangles")
        restored = json.loads(json.dumps(payload))
        assert restored["tags"] == ["smoke"]
        assert restored["config"]["objective"]["support_prior"] == "poisson"


class TestWriteResult:
    """write_result creates the run directory and its files."""

    def test_write_result_creates_files(self, finished_run, tmp_path: Path):
        run_dir = write_result(finished_run, POISSON_CONFIG, "two_triangles", tmp_path)
        assert run_dir.parent == tmp_path
        assert (run_dir / "result.json").exists()
        assert (run_dir / "clustering.npz").exists()
        assert (run_dir / "clustering.txt").exists()

    def test_clustering_files_match_state(self, finished_run, tmp_path: Path):
        run_dir = write_result(finished_run, POISSON_CONFIG, "two_triangles", tmp_path)
        exported = finished_run.state.to_sparse_matrix()

        loaded = scipy.sparse.load_npz(str(run_dir / "clustering.npz"))
        np.testing.assert_allclose(loaded.toarray(), exported.to_dense())
        assert (run_dir / "clustering.txt").read_text() == exported.format()

    def test_load_result_round_trip(self, finished_run, tmp_path: Path):
        run_dir = write_result(finished_run, POISSON_CONFIG, "two_triangles", tmp_path)
        loaded = load_result(run_dir / "result.json")
        assert loaded["run_id"] == run_dir.name
        assert loaded["metrics"]["scalars"]["converged"] == finished_run.converged

    def test_load_result_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_result(tmp_path / "missing.json")

    def test_load_result_invalid(self, tmp_path: Path):
        path = tmp_path / "result.json"
        path.write_text(json.dumps({"schema_version": "1.0"}))
        with pytest.raises(ValueError, match="Result validation failed"):
            load_result(path)
