import numpy as np
import pytest
import xarray as xr

from unitdensity.errors import DimensionError
from unitdensity.evaluation import (
    DensityLayout,
    as_matrix,
    as_state_array,
    as_times,
    resolve_layout,
    resolve_names,
)


def arrays(nobs=1, nvars=2, npars=1, nrepsx=2, nrepsp=1, ntimes=3):
    return (
        as_matrix(np.zeros((nobs, ntimes))),
        as_state_array(np.zeros((nvars, nrepsx, ntimes))),
        as_matrix(np.zeros((npars, nrepsp))),
        as_times(np.arange(float(ntimes))),
    )


@pytest.mark.parametrize(
    "nrepsx, nrepsp, nreps",
    [(1, 1, 1), (1, 4, 4), (4, 1, 4), (2, 6, 6), (6, 3, 6), (5, 5, 5)],
)
def test_replicate_counts(nrepsx, nrepsp, nreps):
    layout = resolve_layout(*arrays(nrepsx=nrepsx, nrepsp=nrepsp))
    assert layout.nreps == nreps
    assert layout.result_shape == (nreps, 3)
    assert [layout.state_replicate(j) for j in range(nreps)] == [
        j % nrepsx for j in range(nreps)
    ]
    assert [layout.param_replicate(j) for j in range(nreps)] == [
        j % nrepsp for j in range(nreps)
    ]


def test_counts():
    layout = resolve_layout(*arrays(nobs=3, nvars=4, npars=5))
    assert layout == DensityLayout(
        ntimes=3, nobs=3, nvars=4, npars=5, nrepsx=2, nrepsp=1, nreps=2
    )


@pytest.mark.parametrize("nrepsx, nrepsp", [(3, 5), (5, 3), (4, 6)])
def test_replicates_must_divide(nrepsx, nrepsp):
    with pytest.raises(DimensionError, match="not a multiple of smaller"):
        resolve_layout(*arrays(nrepsx=nrepsx, nrepsp=nrepsp))


def test_zero_times_checked_first():
    # y and x would disagree with any time vector too
    y = as_matrix(np.zeros((1, 0)))
    x = as_state_array(np.zeros((2, 3, 0)))
    params = as_matrix(np.zeros((1, 5)))
    with pytest.raises(DimensionError, match="no work to do"):
        resolve_layout(y, x, params, as_times([]))


def test_time_axis_mismatch():
    y, x, params, times = arrays(ntimes=3)
    with pytest.raises(DimensionError, match="2nd dimension of 'y'"):
        resolve_layout(as_matrix(np.zeros((1, 2))), x, params, times)
    with pytest.raises(DimensionError, match="3rd dimension of 'x'"):
        resolve_layout(
            y, as_state_array(np.zeros((2, 1, 4))), params, times
        )


def test_empty_replicates_rejected():
    y, x, params, times = arrays()
    with pytest.raises(DimensionError, match="at least one"):
        resolve_layout(y, as_state_array(np.zeros((2, 0, 3))), params, times)


def test_as_matrix():
    vector = as_matrix(np.arange(3.0))
    assert vector.shape == (3, 1)
    matrix = as_matrix(np.arange(6.0).reshape(2, 3), np.float32)
    assert matrix.dtype == np.float32
    assert matrix.flags.f_contiguous
    with pytest.raises(DimensionError, match="rank 3"):
        as_matrix(np.zeros((1, 1, 1)))


def test_as_state_array():
    assert as_state_array(np.arange(3.0)).shape == (3, 1, 1)
    assert as_state_array(np.zeros((3, 2))).shape == (3, 2, 1)
    x = as_state_array(np.arange(24.0).reshape(2, 3, 4))
    assert x.flags.f_contiguous
    assert x[:, 1, 2].flags.c_contiguous
    with pytest.raises(DimensionError):
        as_state_array(np.zeros((1, 1, 1, 1)))


def test_as_times_accepts_dataarray():
    times = xr.DataArray([0.0, 1.0], dims="time")
    np.testing.assert_array_equal(as_times(times), [0.0, 1.0])


def test_resolve_names_prefers_labels():
    labelled = xr.DataArray(
        np.zeros((2, 3)),
        dims=("variable", "time"),
        coords={"variable": ["S", "I"]},
    )
    assert resolve_names(labelled, ("a", "b"), 2, "x") == ("S", "I")
    assert resolve_names(np.zeros((2, 3)), ("a", "b"), 2, "x") == ("a", "b")


def test_resolve_names_errors():
    with pytest.raises(DimensionError, match="2 rows but 1 names"):
        resolve_names(np.zeros((2, 3)), ("a",), 2, "x")
    with pytest.raises(DimensionError, match="unique"):
        resolve_names(np.zeros((2, 3)), ("a", "a"), 2, "x")
