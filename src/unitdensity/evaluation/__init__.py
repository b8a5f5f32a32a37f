"""Evaluation of unit measurement densities."""

from unitdensity.evaluation.layout import (
    DensityLayout,
    as_matrix,
    as_state_array,
    as_times,
    resolve_layout,
    resolve_names,
)
from unitdensity.evaluation.contexts import (
    ArgumentFrame,
    CompiledContext,
    InterpretedContext,
    UndefinedContext,
    build_context,
    name_index,
)
from unitdensity.evaluation.results import (
    RESULT_DIMS,
    allocate_result,
    label_result,
)
from unitdensity.evaluation.userdata import (
    get_userdata,
    get_userdata_double,
    get_userdata_int,
    userdata_installed,
    userdata_scope,
)
from unitdensity.evaluation.ReplicateKernel import ReplicateKernel
from unitdensity.evaluation.UnitDensityEvaluator import (
    EvaluatorConfig,
    UnitDensityEvaluator,
    evaluate_units,
    unit_dmeasure,
)

__all__ = [
    "ArgumentFrame",
    "CompiledContext",
    "DensityLayout",
    "EvaluatorConfig",
    "InterpretedContext",
    "RESULT_DIMS",
    "ReplicateKernel",
    "UndefinedContext",
    "UnitDensityEvaluator",
    "allocate_result",
    "as_matrix",
    "as_state_array",
    "as_times",
    "build_context",
    "evaluate_units",
    "get_userdata",
    "get_userdata_double",
    "get_userdata_int",
    "label_result",
    "name_index",
    "resolve_layout",
    "resolve_names",
    "unit_dmeasure",
    "userdata_installed",
    "userdata_scope",
]
