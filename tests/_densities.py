"""Measurement densities shared by the test suite."""

import math

from numba import njit

LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)


def normal_logpdf(y, mean, sd):
    z = (y - mean) / sd
    return -0.5 * z * z - math.log(sd) - LOG_SQRT_2PI


def gaussian_density(t, cases, mu, unit, sigma, log, **others):
    """Normal density of ``cases`` around the first state ``mu``."""
    logdens = normal_logpdf(cases, mu, sigma)
    return logdens if log else math.exp(logdens)


def two_state_density(t, cases, mu, nu, unit, sigma, log):
    """Density depending on ``mu`` only; ``nu`` is a nuisance state."""
    logdens = normal_logpdf(cases, mu, sigma)
    return logdens if log else math.exp(logdens)


@njit
def compiled_gaussian(
    lik, y, x, p, give_log, obsindex, stateindex, paramindex, covarindex,
    ncovars, covars, t, unit,
):
    sd = p[paramindex[0]]
    z = (y[obsindex[0]] - x[stateindex[0]]) / sd
    logdens = -0.5 * z * z - math.log(sd) - LOG_SQRT_2PI
    if give_log:
        lik[0] = logdens
    else:
        lik[0] = math.exp(logdens)


@njit
def compiled_unit_and_time(
    lik, y, x, p, give_log, obsindex, stateindex, paramindex, covarindex,
    ncovars, covars, t, unit,
):
    lik[0] = 100.0 * unit + t


@njit
def compiled_first_covariate(
    lik, y, x, p, give_log, obsindex, stateindex, paramindex, covarindex,
    ncovars, covars, t, unit,
):
    lik[0] = covars[covarindex[0]] + 0.0 * ncovars


@njit
def compiled_replicate_tag(
    lik, y, x, p, give_log, obsindex, stateindex, paramindex, covarindex,
    ncovars, covars, t, unit,
):
    # state in the thousands, parameter in the units
    lik[0] = 1000.0 * x[stateindex[0]] + p[paramindex[0]]
