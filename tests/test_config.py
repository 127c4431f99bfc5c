"""Tests for the clustering configuration system."""

import json
import re

import pytest
from dataclasses import FrozenInstanceError, replace

from nmf_cluster.config import (
    ClusteringConfig,
    InitStrategy,
    ObjectiveConfig,
    OptimizerConfig,
    SupportPrior,
    DEFAULT_CONFIG,
    POISSON_CONFIG,
    config_hash,
    full_config_hash,
    objective_config_hash,
    config_to_json,
    config_from_json,
    config_to_dict,
    config_from_dict,
)


class TestDefaultConfig:
    """DEFAULT_CONFIG has the documented values."""

    def test_default_config_values(self):
        assert DEFAULT_CONFIG.objective.weight_beta == 0.0
        assert DEFAULT_CONFIG.objective.support_prior is SupportPrior.ONE
        assert DEFAULT_CONFIG.objective.support_lambda == 1.0
        assert DEFAULT_CONFIG.optimizer.num_iter == 100
        assert DEFAULT_CONFIG.optimizer.verbosity == 0
        assert DEFAULT_CONFIG.optimizer.max_num_clus is None
        assert DEFAULT_CONFIG.optimizer.max_cluster_per_node is None
        assert DEFAULT_CONFIG.optimizer.init is InitStrategy.SINGLETON
        assert DEFAULT_CONFIG.seed == 1234567

    def test_poisson_config_values(self):
        assert POISSON_CONFIG.objective.support_prior is SupportPrior.POISSON
        assert POISSON_CONFIG.objective.weight_beta == 0.01
        assert POISSON_CONFIG.optimizer.num_iter == 16


class TestConfigImmutability:
    """Frozen dataclasses prevent mutation."""

    def test_config_frozen(self):
        with pytest.raises(FrozenInstanceError):
            DEFAULT_CONFIG.seed = 99  # type: ignore[misc]

    def test_objective_config_frozen(self):
        with pytest.raises(FrozenInstanceError):
            DEFAULT_CONFIG.objective.weight_beta = 1.0  # type: ignore[misc]

    def test_optimizer_config_frozen(self):
        with pytest.raises(FrozenInstanceError):
            DEFAULT_CONFIG.optimizer.num_iter = 5  # type: ignore[misc]


class TestConfigRoundTrip:
    """JSON serialization round-trip preserves identity."""

    def test_config_round_trip_hash(self):
        restored = config_from_json(config_to_json(POISSON_CONFIG))
        assert config_hash(POISSON_CONFIG) == config_hash(restored)

    def test_config_round_trip_values(self):
        restored = config_from_json(config_to_json(POISSON_CONFIG))
        assert restored == POISSON_CONFIG
        assert restored.objective.support_prior is SupportPrior.POISSON
        assert restored.optimizer.weight_steps == DEFAULT_CONFIG.optimizer.weight_steps

    def test_json_holds_plain_strings_for_enums(self):
        data = json.loads(config_to_json(POISSON_CONFIG))
        assert data["objective"]["support_prior"] == "poisson"
        assert data["optimizer"]["init"] == "singleton"

    def test_dict_round_trip_with_tags(self):
        cfg = replace(DEFAULT_CONFIG, tags=("a", "b"), description="run")
        restored = config_from_dict(config_to_dict(cfg))
        assert restored.tags == ("a", "b")
        assert restored.description == "run"

    def test_partial_json_uses_defaults(self):
        cfg = config_from_json('{"objective": {"support_prior": "poisson"}}')
        assert cfg.objective.support_prior is SupportPrior.POISSON
        assert cfg.optimizer == OptimizerConfig()


class TestConfigHashing:
    """Hashing behaviour for run identity and objective comparison."""

    def test_objective_hash_ignores_seed(self):
        cfg2 = replace(DEFAULT_CONFIG, seed=99)
        assert objective_config_hash(DEFAULT_CONFIG) == objective_config_hash(cfg2)

    def test_full_hash_includes_seed(self):
        cfg2 = replace(DEFAULT_CONFIG, seed=99)
        assert full_config_hash(DEFAULT_CONFIG) != full_config_hash(cfg2)

    def test_full_hash_ignores_verbosity_and_labels(self):
        cfg2 = replace(
            DEFAULT_CONFIG,
            optimizer=OptimizerConfig(verbosity=2),
            description="noisy",
            tags=("x",),
        )
        assert full_config_hash(DEFAULT_CONFIG) == full_config_hash(cfg2)

    def test_config_hash_is_hex_string(self):
        h = full_config_hash(DEFAULT_CONFIG)
        assert len(h) == 16
        assert re.match(r"^[0-9a-f]{16}$", h)

    def test_different_objectives_different_hash(self):
        assert objective_config_hash(DEFAULT_CONFIG) != objective_config_hash(
            POISSON_CONFIG
        )


class TestConfigValidation:
    """Field validation catches invalid configs."""

    def test_unknown_support_prior(self):
        with pytest.raises(ValueError, match="support_prior"):
            ObjectiveConfig(support_prior="gaussian")  # type: ignore[arg-type]

    def test_support_prior_from_string(self):
        cfg = ObjectiveConfig(support_prior="poisson")  # type: ignore[arg-type]
        assert cfg.support_prior is SupportPrior.POISSON

    def test_negative_weight_beta(self):
        with pytest.raises(ValueError, match="weight_beta"):
            ObjectiveConfig(weight_beta=-1.0)

    def test_non_positive_lambda(self):
        with pytest.raises(ValueError, match="support_lambda"):
            ObjectiveConfig(support_lambda=0.0)

    def test_negative_num_iter(self):
        with pytest.raises(ValueError, match="num_iter"):
            OptimizerConfig(num_iter=-1)

    def test_zero_cluster_cap(self):
        with pytest.raises(ValueError, match="max_cluster_per_node"):
            OptimizerConfig(max_cluster_per_node=0)

    def test_unit_weight_step_rejected(self):
        with pytest.raises(ValueError, match="weight_steps"):
            OptimizerConfig(weight_steps=(1.0,))

    def test_valid_config_passes(self):
        cfg = ClusteringConfig()
        assert cfg.optimizer.num_iter == 100


class TestSerializationStrict:
    """Strict mode rejects unknown keys and unknown enum values."""

    def test_serialization_strict_rejects_extra_keys(self):
        data = json.loads(config_to_json(DEFAULT_CONFIG))
        data["unknown_field"] = "sneaky"
        with pytest.raises(Exception):
            config_from_json(json.dumps(data))

    def test_unknown_prior_in_json_rejected(self):
        data = json.loads(config_to_json(DEFAULT_CONFIG))
        data["objective"]["support_prior"] = "gaussian"
        with pytest.raises(Exception):
            config_from_json(json.dumps(data))
