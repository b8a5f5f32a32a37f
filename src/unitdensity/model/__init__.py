"""Model-side inputs to the unit measurement-density engine."""

from unitdensity.model.unit_function import (
    EvaluationMode,
    UnitFunction,
    is_compiled_function,
    resolve_unit_function,
)
from unitdensity.model.spatial_model import UnitMeasureModel

__all__ = [
    "EvaluationMode",
    "UnitFunction",
    "UnitMeasureModel",
    "is_compiled_function",
    "resolve_unit_function",
]
