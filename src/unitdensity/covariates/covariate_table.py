"""Lookup tables for interpolating time-varying covariates.

This module provides :class:`CovariateTable`, an immutable table of covariate
samples indexed by time, and :func:`table_lookup`, which writes the
covariate vector valid at a given time into a caller-owned buffer.

Interpolation behaviour
-----------------------
``"linear"``
    Values are linearly interpolated between the two samples bracketing the
    query time. Outside the sampled range the first or last interval is
    extended, i.e. values are linearly extrapolated.
``"constant"``
    Values are piecewise constant and right-continuous: a query inside
    ``[t_i, t_{i+1})`` returns row ``i``. Queries before the first sample
    return the first row, queries after the last sample return the last
    row. A query exactly at the final sample returns the row preceding it,
    because the final interval is closed on the right.

Any query outside ``[times[0], times[-1]]`` issues a
:class:`~unitdensity.errors.CovariateExtrapolationWarning`.
"""

from typing import Any, Dict, Optional, Tuple
from warnings import warn

import numpy as np
from attrs import define, field, validators
from numpy.typing import NDArray

from unitdensity.errors import CovariateExtrapolationWarning

FloatArray = NDArray[np.floating]


def _as_readonly(array: FloatArray) -> FloatArray:
    array = np.array(array, dtype=np.float64, order="C", copy=True)
    array.flags.writeable = False
    return array


@define(frozen=True)
class CovariateTable:
    """Time-indexed table of covariate samples.

    Attributes
    ----------
    times : numpy.ndarray
        Non-decreasing sample times, shape ``(length,)``.
    values : numpy.ndarray
        Covariate samples, shape ``(length, width)``; column ``i`` holds
        the samples of ``names[i]``.
    names : tuple[str, ...]
        Covariate names in column order.
    order : {"linear", "constant"}
        Interpolation scheme used by :func:`table_lookup`.
    """

    times: FloatArray = field(converter=_as_readonly, eq=False)
    values: FloatArray = field(converter=_as_readonly, eq=False)
    names: Tuple[str, ...] = field(converter=tuple)
    order: str = field(
        default="linear",
        validator=validators.in_({"linear", "constant"}),
    )

    def __attrs_post_init__(self) -> None:
        if self.times.ndim != 1:
            raise ValueError("Covariate times must be one-dimensional.")
        if self.values.ndim != 2:
            raise ValueError(
                "Covariate values must be a (times x covariates) matrix."
            )
        if self.values.shape[0] != self.times.shape[0]:
            raise ValueError(
                "All covariate vectors must have the same length as the "
                "time vector."
            )
        if self.values.shape[1] != len(self.names):
            raise ValueError(
                f"{self.values.shape[1]} covariate columns supplied for "
                f"{len(self.names)} names."
            )
        if len(set(self.names)) != len(self.names):
            raise ValueError("Covariate names must be unique.")
        if np.any(np.diff(self.times) < 0):
            raise ValueError("Covariate times must be non-decreasing.")
        if self.width > 0 and self.length < 1:
            raise ValueError(
                "At least one sample is required for each covariate."
            )

    @classmethod
    def from_dict(cls, covariate_dict: Dict[str, Any]) -> "CovariateTable":
        """Build a table from a dictionary of named sample vectors.

        Parameters
        ----------
        covariate_dict
            Must contain ``"time"``, a 1D array of sample times. Every other
            key, except the optional ``"order"`` setting, names a covariate
            and maps to a 1D array of samples taken at those times.

        Returns
        -------
        CovariateTable
            Table with covariates in the dictionary's insertion order.
        """
        covariate_dict = dict(covariate_dict)
        if "time" not in covariate_dict:
            raise ValueError(
                "Covariate dictionary must contain a 'time' entry."
            )
        times = np.asarray(covariate_dict.pop("time"), dtype=np.float64)
        order = covariate_dict.pop("order", "linear")
        names = tuple(covariate_dict.keys())
        columns = []
        for name in names:
            column = np.asarray(covariate_dict[name], dtype=np.float64)
            if column.ndim != 1:
                raise ValueError(
                    f"Covariate {name} must be one-dimensional."
                )
            columns.append(column)
        if columns:
            values = np.column_stack(columns)
        else:
            values = np.empty((times.shape[0], 0))
        return cls(times=times, values=values, names=names, order=order)

    @classmethod
    def empty(cls) -> "CovariateTable":
        """Return a table without covariates; lookups are no-ops."""
        return cls(
            times=np.empty(0), values=np.empty((0, 0)), names=(),
        )

    @property
    def length(self) -> int:
        """Number of time samples."""
        return int(self.times.shape[0])

    @property
    def width(self) -> int:
        """Number of covariates."""
        return int(self.values.shape[1])

    def __call__(self, t: float, out: Optional[FloatArray] = None):
        """Return the covariates at ``t``, allocating ``out`` if needed."""
        if out is None:
            out = np.empty(self.width, dtype=np.float64)
        table_lookup(self, t, out)
        return out


def table_lookup(table: CovariateTable, t: float, out: FloatArray) -> None:
    """Write the covariate vector valid at time ``t`` into ``out``.

    Parameters
    ----------
    table
        Lookup table to interpolate.
    t
        Query time.
    out
        Buffer of length ``table.width``, overwritten in place.

    Notes
    -----
    A table with no covariates or no samples leaves ``out`` untouched.
    """
    length = table.length
    width = table.width
    if length < 1 or width < 1:
        return

    times = table.times
    if t < times[0] or t > times[-1]:
        warn(
            f"in 'table_lookup': extrapolating at {t:e}.",
            CovariateExtrapolationWarning,
            stacklevel=2,
        )

    if length == 1:
        out[:] = table.values[0]
        return

    # Bracketing interval [index - 1, index], clamped inside the table so
    # that out-of-range queries reuse the first or last interval.
    index = int(np.searchsorted(times, t, side="right"))
    if index < 1:
        index = 1
        flag = -1
    elif index >= length:
        flag = 1 if t > times[-1] else 0
        index = length - 1
    else:
        flag = 0

    if table.order == "linear":
        lower = times[index - 1]
        upper = times[index]
        if upper == lower:
            out[:] = table.values[index]
            return
        e = (t - lower) / (upper - lower)
        out[:] = e * table.values[index] + (1.0 - e) * table.values[index - 1]
    else:
        if flag < 0:
            row = 0
        elif flag > 0:
            row = length - 1
        else:
            row = index - 1
        out[:] = table.values[row]
