"""Default run configuration and the reference parameters of the test driver."""

from nmf_cluster.config.params import (
    ClusteringConfig,
    ObjectiveConfig,
    OptimizerConfig,
    SupportPrior,
)

# All-default values: uniform support prior, no weight penalty,
# singleton initialisation, 100 passes, seed 1234567.
DEFAULT_CONFIG = ClusteringConfig()

# Poisson support prior with a light weight penalty, 16 passes.
POISSON_CONFIG = ClusteringConfig(
    objective=ObjectiveConfig(
        weight_beta=0.01,
        support_prior=SupportPrior.POISSON,
        support_lambda=1.0,
    ),
    optimizer=OptimizerConfig(num_iter=16),
    description="poisson support prior",
)
