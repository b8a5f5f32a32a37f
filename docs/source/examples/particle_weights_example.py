"""Compare interpreted and compiled unit measurement densities.

The example sets up a small two-unit measles-like model with a Poisson-ish
reporting density, evaluates the log likelihood of each unit for a cloud of
particles once with a plain Python density and once with a Numba-compiled
density, and prints the largest disagreement between the two along with the
timing summary. The script requires NumPy, Numba and xarray.
"""

import math

import numpy as np
from numba import njit

from unitdensity import (
    CovariateTable,
    UnitDensityEvaluator,
    UnitFunction,
    UnitMeasureModel,
    evaluate_units,
)


def reporting_density(t, cases, C, unit, rho, psi, pop, log):
    """Gaussian approximation to overdispersed binomial reporting."""
    mean = rho * C
    var = mean * (1.0 - rho) + (psi * mean) ** 2 + 1.0
    z = (cases - mean) / math.sqrt(var)
    logdens = -0.5 * z * z - 0.5 * math.log(2.0 * math.pi * var)
    return logdens if log else math.exp(logdens)


@njit
def compiled_reporting_density(
    lik, y, x, p, give_log, obsindex, stateindex, paramindex, covarindex,
    ncovars, covars, t, unit,
):
    cases = y[obsindex[0]]
    C = x[stateindex[0]]
    rho = p[paramindex[0]]
    psi = p[paramindex[1]]
    mean = rho * C
    var = mean * (1.0 - rho) + (psi * mean) ** 2 + 1.0
    z = (cases - mean) / math.sqrt(var)
    logdens = -0.5 * z * z - 0.5 * math.log(2.0 * math.pi * var)
    if give_log:
        lik[0] = logdens
    else:
        lik[0] = math.exp(logdens)


def simulate_inputs(nparticles: int = 200, ntimes: int = 26, seed: int = 1):
    """Draw synthetic observations and particle states.

    Returns
    -------
    tuple
        Observation times, per-unit observation matrices, states and
        parameters.
    """
    rng = np.random.default_rng(seed)
    times = np.arange(ntimes, dtype=np.float64)
    states = rng.gamma(20.0, 5.0, size=(1, nparticles, ntimes))
    y_by_unit = [
        rng.poisson(50.0, size=(1, ntimes)).astype(np.float64)
        for _ in range(2)
    ]
    params = np.array([[0.5], [0.1]])
    return times, y_by_unit, states, params


def main():
    times, y_by_unit, states, params = simulate_inputs()
    covar = CovariateTable.from_dict(
        {
            "time": np.linspace(-1.0, 27.0, 8),
            "pop": np.linspace(1.0e5, 1.1e5, 8),
        }
    )
    common = dict(
        covar=covar,
        obsnames=["cases"],
        statenames=["C"],
        paramnames=["rho", "psi"],
        unit_names=["London", "Bristol"],
    )
    interpreted = UnitMeasureModel(unit_dmeasure=reporting_density, **common)
    compiled = UnitMeasureModel(
        unit_dmeasure=UnitFunction(
            compiled_reporting_density,
            obsnames=["cases"],
            statenames=["C"],
            paramnames=["rho", "psi"],
        ),
        **common,
    )

    evaluator = UnitDensityEvaluator(time_logging_level="verbose")
    slow = evaluate_units(
        interpreted, y_by_unit, states, times, params, log=True,
        evaluator=evaluator,
    )
    fast = evaluate_units(
        compiled, y_by_unit, states, times, params, log=True,
        evaluator=evaluator,
    )
    print(slow.dims, slow.shape)
    print("max |difference|:", float(abs(slow - fast).max()))
    evaluator.time_logger.print_summary()


if __name__ == "__main__":
    main()
