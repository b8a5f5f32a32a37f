"""Covariate lookup tables and the adapter used by the evaluation loop."""

from unitdensity.covariates.covariate_table import (
    CovariateTable,
    table_lookup,
)
from unitdensity.covariates.adapter import (
    CovariateAdapter,
    default_covariate_adapter,
)

__all__ = [
    "CovariateTable",
    "table_lookup",
    "CovariateAdapter",
    "default_covariate_adapter",
]
