"""Allocation and labelling of the ``(rep, time)`` result array."""

import numpy as np
import xarray as xr

RESULT_DIMS = ("rep", "time")


def allocate_result(nreps: int, ntimes: int, precision=np.float64):
    """Return an uninitialised Fortran-ordered ``(nreps, ntimes)`` buffer.

    Each time step's column is contiguous, matching the order in which the
    evaluation loop fills it.
    """
    return np.empty((nreps, ntimes), dtype=precision, order="F")


def label_result(values: np.ndarray, times: np.ndarray) -> xr.DataArray:
    """Wrap a filled result buffer with its ``rep`` and ``time`` axes.

    The buffer is not copied.
    """
    return xr.DataArray(
        values,
        dims=RESULT_DIMS,
        coords={"time": np.asarray(times)},
        name="unit_dmeasure",
    )
