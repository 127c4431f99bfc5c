"""Clustering run parameters as frozen, slotted dataclasses."""

from dataclasses import dataclass, field
from enum import Enum


class SupportPrior(str, Enum):
    """Penalty on the number of clusters a node belongs to."""

    ONE = "one"  # uniform: no penalty on membership count
    POISSON = "poisson"  # -log Poisson(count; support_lambda)


class InitStrategy(str, Enum):
    """Starting clustering for the local search."""

    SINGLETON = "singleton"  # node i in cluster i (mod max_num_clus), weight 1
    EMPTY = "empty"


@dataclass(frozen=True, slots=True)
class ObjectiveConfig:
    """Terms of the objective the local search minimises."""

    weight_beta: float = 0.0  # penalty per unit of total cluster weight
    support_prior: SupportPrior = SupportPrior.ONE
    support_lambda: float = 1.0  # Poisson rate for the support prior

    def __post_init__(self) -> None:
        if not isinstance(self.support_prior, SupportPrior):
            try:
                object.__setattr__(
                    self, "support_prior", SupportPrior(self.support_prior)
                )
            except ValueError:
                raise ValueError(
                    f"Unknown support_prior {self.support_prior!r}, expected one of "
                    f"{[p.value for p in SupportPrior]}"
                ) from None
        if self.weight_beta < 0:
            raise ValueError(f"weight_beta must be >= 0, got {self.weight_beta}")
        if self.support_lambda <= 0:
            raise ValueError(
                f"support_lambda must be > 0, got {self.support_lambda}"
            )


@dataclass(frozen=True, slots=True)
class OptimizerConfig:
    """Local search budget and move generation."""

    num_iter: int = 100  # maximum passes over all nodes
    verbosity: int = 0  # 0 quiet, 1 per-pass INFO, 2 per-move DEBUG
    max_num_clus: int | None = None  # cluster slots; None = number of nodes
    max_cluster_per_node: int | None = None  # None = unlimited
    init: InitStrategy = InitStrategy.SINGLETON
    initial_weight: float = 1.0  # weight for newly added memberships
    weight_steps: tuple[float, ...] = (0.5, 0.8, 1.25, 2.0)  # rescale factors
    tolerance: float = 1e-9  # minimum loss decrease to accept a move
    check_invariants: bool = False  # recompute aggregates after every pass

    def __post_init__(self) -> None:
        if not isinstance(self.init, InitStrategy):
            object.__setattr__(self, "init", InitStrategy(self.init))
        if self.num_iter < 0:
            raise ValueError(f"num_iter must be >= 0, got {self.num_iter}")
        if self.max_num_clus is not None and self.max_num_clus < 1:
            raise ValueError(
                f"max_num_clus must be >= 1 when given, got {self.max_num_clus}"
            )
        if self.max_cluster_per_node is not None and self.max_cluster_per_node < 1:
            raise ValueError(
                f"max_cluster_per_node must be >= 1 when given, "
                f"got {self.max_cluster_per_node}"
            )
        if self.initial_weight <= 0:
            raise ValueError(
                f"initial_weight must be > 0, got {self.initial_weight}"
            )
        if any(step <= 0 or step == 1.0 for step in self.weight_steps):
            raise ValueError(
                f"weight_steps must be positive and != 1, got {self.weight_steps}"
            )
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")


@dataclass(frozen=True, slots=True)
class ClusteringConfig:
    """Top-level run configuration composing objective and optimizer."""

    objective: ObjectiveConfig = field(default_factory=ObjectiveConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    seed: int = 1234567
    description: str = ""
    tags: tuple[str, ...] = ()
