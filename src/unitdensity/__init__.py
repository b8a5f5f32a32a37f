"""
unitdensity: unit measurement densities for spatiotemporal POMP models
"""

from importlib.metadata import PackageNotFoundError, version

from unitdensity.errors import (
    ContractViolationError,
    CovariateExtrapolationWarning,
    DimensionError,
    EvaluationInterrupted,
    IndexResolutionError,
    UndefinedDensityWarning,
    UnitDensityError,
    UnrecognizedModeError,
)
from unitdensity.covariates import *    # noqa
from unitdensity.model import *         # noqa
from unitdensity.evaluation import (
    EvaluatorConfig,
    UnitDensityEvaluator,
    evaluate_units,
    get_userdata,
    get_userdata_double,
    get_userdata_int,
    unit_dmeasure,
)
from unitdensity.time_logger import TimeLogger, default_timelogger

__all__ = [
    "ContractViolationError",
    "CovariateAdapter",
    "CovariateExtrapolationWarning",
    "CovariateTable",
    "DimensionError",
    "EvaluationInterrupted",
    "EvaluationMode",
    "EvaluatorConfig",
    "IndexResolutionError",
    "TimeLogger",
    "UndefinedDensityWarning",
    "UnitDensityError",
    "UnitDensityEvaluator",
    "UnitFunction",
    "UnitMeasureModel",
    "UnrecognizedModeError",
    "default_timelogger",
    "evaluate_units",
    "get_userdata",
    "get_userdata_double",
    "get_userdata_int",
    "resolve_unit_function",
    "unit_dmeasure",
]

try:
    __version__ = version("unitdensity")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "unknown"
