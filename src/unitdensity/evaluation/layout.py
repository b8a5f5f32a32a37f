"""Shape validation and layout resolution for density evaluations.

Arrays are accepted as anything :func:`numpy.asarray` understands, or as
:class:`xarray.DataArray` objects whose first dimension carries the
variable names as a coordinate. After coercion:

- ``y`` is ``(nobs, ntimes)``;
- ``x`` is ``(nvars, nrepsx, ntimes)``;
- ``params`` is ``(npars, nrepsp)``;

all stored in Fortran order so that the per-replicate, per-time vectors the
density sees are contiguous.
"""

from typing import Any, Optional, Sequence, Tuple

import numpy as np
import xarray as xr
from attrs import define, field

from unitdensity._utils import getype_validator
from unitdensity.errors import DimensionError


@define(frozen=True)
class DensityLayout:
    """Counts derived from the input shapes.

    Attributes
    ----------
    ntimes : int
        Number of observation times.
    nobs : int
        Number of observables per unit.
    nvars : int
        Number of state variables.
    npars : int
        Number of parameters.
    nrepsx : int
        Replicates carried by the state array.
    nrepsp : int
        Replicates carried by the parameter matrix.
    nreps : int
        Working replicate count, ``max(nrepsx, nrepsp)``.
    """

    ntimes: int = field(validator=getype_validator(int, 1))
    nobs: int = field(validator=getype_validator(int, 0))
    nvars: int = field(validator=getype_validator(int, 0))
    npars: int = field(validator=getype_validator(int, 0))
    nrepsx: int = field(validator=getype_validator(int, 1))
    nrepsp: int = field(validator=getype_validator(int, 1))
    nreps: int = field(validator=getype_validator(int, 1))

    @property
    def result_shape(self) -> Tuple[int, int]:
        """Shape of the ``(rep, time)`` result array."""
        return self.nreps, self.ntimes

    def state_replicate(self, j: int) -> int:
        """Replicate of ``x`` used for working replicate ``j``."""
        return j % self.nrepsx

    def param_replicate(self, j: int) -> int:
        """Replicate of ``params`` used for working replicate ``j``."""
        return j % self.nrepsp


def row_names(array: Any) -> Optional[Tuple[str, ...]]:
    """Labels of the first dimension of a DataArray, if it has any."""
    if isinstance(array, xr.DataArray) and array.ndim > 0:
        dim = array.dims[0]
        if dim in array.coords:
            return tuple(str(name) for name in array.coords[dim].values)
    return None


def _values(array: Any, precision: type) -> np.ndarray:
    if isinstance(array, xr.DataArray):
        array = array.values
    return np.asarray(array, dtype=precision)


def as_matrix(array: Any, precision: type = np.float64) -> np.ndarray:
    """Coerce ``array`` to a Fortran-ordered matrix.

    Vectors become single-column matrices.
    """
    values = _values(array, precision)
    if values.ndim == 1:
        values = values.reshape((values.shape[0], 1))
    elif values.ndim != 2:
        raise DimensionError(
            f"expected a vector or a matrix, got an array of rank "
            f"{values.ndim}."
        )
    return np.asfortranarray(values)


def as_state_array(array: Any, precision: type = np.float64) -> np.ndarray:
    """Coerce ``array`` to a Fortran-ordered rank-3 state array.

    A vector of length ``n`` becomes ``(n, 1, 1)`` and an ``(a, b)`` matrix
    becomes ``(a, b, 1)``.
    """
    values = _values(array, precision)
    if values.ndim == 1:
        values = values.reshape((values.shape[0], 1, 1))
    elif values.ndim == 2:
        values = values.reshape((values.shape[0], values.shape[1], 1))
    elif values.ndim != 3:
        raise DimensionError(
            f"expected a state array of rank 1 to 3, got rank "
            f"{values.ndim}."
        )
    return np.asfortranarray(values)


def as_times(times: Any, precision: type = np.float64) -> np.ndarray:
    """Coerce ``times`` to a one-dimensional vector."""
    return np.ravel(_values(times, precision))


def resolve_names(
    array: Any,
    fallback: Sequence[str],
    nrows: int,
    what: str,
) -> Tuple[str, ...]:
    """Choose and check the names labelling the rows of an input.

    Parameters
    ----------
    array
        The input as passed by the caller; DataArray labels win.
    fallback
        Names declared on the model.
    nrows
        Number of rows the names must label.
    what
        Name of the input for error messages.

    Raises
    ------
    DimensionError
        If the names do not match the row count or are not unique.
    """
    names = row_names(array)
    if names is None:
        names = tuple(fallback)
    if len(names) != nrows:
        raise DimensionError(
            f"in 'unit_dmeasure': '{what}' has {nrows} rows but "
            f"{len(names)} names.",
            hint=f"Label the rows of '{what}' with a DataArray coordinate "
                 f"or declare the names on the model.",
        )
    if len(set(names)) != len(names):
        raise DimensionError(
            f"in 'unit_dmeasure': names of '{what}' must be unique."
        )
    return names


def resolve_layout(
    y: np.ndarray, x: np.ndarray, params: np.ndarray, times: np.ndarray
) -> DensityLayout:
    """Derive and validate the evaluation layout.

    Parameters
    ----------
    y, x, params, times
        Coerced inputs (see :func:`as_matrix`, :func:`as_state_array`,
        :func:`as_times`).

    Returns
    -------
    DensityLayout
        Validated counts.

    Raises
    ------
    DimensionError
        If ``times`` is empty, if the time axis of ``y`` or ``x`` does not
        have ``len(times)`` entries, or if the larger replicate count is
        not a multiple of the smaller.
    """
    ntimes = int(times.shape[0])
    if ntimes < 1:
        raise DimensionError(
            "in 'unit_dmeasure': length('times') = 0, no work to do."
        )

    nobs = int(y.shape[0])
    if ntimes != y.shape[1]:
        raise DimensionError(
            "in 'unit_dmeasure': length of 'times' and 2nd dimension of "
            "'y' do not agree."
        )

    nvars, nrepsx = int(x.shape[0]), int(x.shape[1])
    if ntimes != x.shape[2]:
        raise DimensionError(
            "in 'unit_dmeasure': length of 'times' and 3rd dimension of "
            "'x' do not agree."
        )

    npars, nrepsp = int(params.shape[0]), int(params.shape[1])
    if nrepsx < 1 or nrepsp < 1:
        raise DimensionError(
            "in 'unit_dmeasure': 'x' and 'params' need at least one "
            "replicate."
        )

    nreps = max(nrepsx, nrepsp)
    if (nreps % nrepsp != 0) or (nreps % nrepsx != 0):
        raise DimensionError(
            "in 'unit_dmeasure': larger number of replicates is not a "
            "multiple of smaller.",
            hint=f"'x' has {nrepsx} replicates and 'params' has {nrepsp}.",
        )

    return DensityLayout(
        ntimes=ntimes,
        nobs=nobs,
        nvars=nvars,
        npars=npars,
        nrepsx=nrepsx,
        nrepsp=nrepsp,
        nreps=nreps,
    )
