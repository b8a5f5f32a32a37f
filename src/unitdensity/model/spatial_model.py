"""Container for the pieces of a spatiotemporal model used by the engine."""

from typing import Any, Callable, Dict, Optional, Tuple, Union

from attrs import define, field, validators

from unitdensity._utils import name_tuple_converter
from unitdensity.covariates.covariate_table import CovariateTable
from unitdensity.model.unit_function import UnitFunction


def _covariate_converter(value: Any) -> Optional[CovariateTable]:
    if value is None or isinstance(value, CovariateTable):
        return value
    if isinstance(value, dict):
        return CovariateTable.from_dict(value)
    raise TypeError(
        f"covar must be a CovariateTable, a dict or None, got "
        f"{type(value).__name__}."
    )


@define
class UnitMeasureModel:
    """Model object supplying everything but the arrays to an evaluation.

    Attributes
    ----------
    unit_dmeasure : UnitFunction, callable, str or None
        The unit measurement density. ``None`` leaves the density
        undefined, in which case evaluations return NaN with a warning.
    covar : CovariateTable or None
        Covariates interpolated at each observation time. A dictionary is
        converted with :meth:`CovariateTable.from_dict`.
    userdata : dict
        Extra data forwarded to the density: as keyword arguments for
        interpreted densities, through
        :func:`~unitdensity.evaluation.userdata.get_userdata` for compiled
        ones.
    obsnames, statenames, paramnames : tuple[str, ...]
        Row labels of ``y``, ``x`` and ``params``, used when the arrays do
        not carry their own labels.
    unit_names : tuple[str, ...]
        Names of the spatial units, in unit-number order.
    """

    unit_dmeasure: Union[UnitFunction, Callable, str, None] = field(
        default=None
    )
    covar: Optional[CovariateTable] = field(
        default=None, converter=_covariate_converter
    )
    userdata: Dict[str, Any] = field(
        factory=dict, validator=validators.instance_of(dict)
    )
    obsnames: Tuple[str, ...] = field(
        factory=tuple, converter=name_tuple_converter
    )
    statenames: Tuple[str, ...] = field(
        factory=tuple, converter=name_tuple_converter
    )
    paramnames: Tuple[str, ...] = field(
        factory=tuple, converter=name_tuple_converter
    )
    unit_names: Tuple[str, ...] = field(
        factory=tuple, converter=name_tuple_converter
    )

    def __attrs_post_init__(self) -> None:
        if isinstance(self.unit_dmeasure, str):
            self.unit_dmeasure = UnitFunction(function=self.unit_dmeasure)

    @property
    def covariate_names(self) -> Tuple[str, ...]:
        """Names of the covariates, in table column order."""
        if self.covar is None:
            return tuple()
        return tuple(self.covar.names)

    def unit_number(self, unit: Union[int, str]) -> int:
        """Return the integer identifier of ``unit``.

        Integers, and floats holding integral values, pass through; names
        are looked up in :attr:`unit_names`.
        """
        if isinstance(unit, str):
            try:
                return self.unit_names.index(unit)
            except ValueError:
                raise KeyError(
                    f"unit '{unit}' not found among {list(self.unit_names)}"
                ) from None
        number = int(unit)
        if number != unit:
            raise KeyError(f"unit {unit!r} is not an integral unit number")
        return number
