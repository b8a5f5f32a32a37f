import numpy as np
import pytest

from unitdensity import (
    CovariateAdapter,
    CovariateTable,
    UnitDensityEvaluator,
    UnitFunction,
    UnitMeasureModel,
)
from unitdensity.covariates import table_lookup
from tests._densities import compiled_gaussian, gaussian_density

np.set_printoptions(linewidth=120, precision=12)


# --------------------------------------------------------------------------- #
#                              Settings fixtures                              #
# --------------------------------------------------------------------------- #
@pytest.fixture(scope="session")
def precision(request):
    """Evaluation precision; override with indirect parametrisation."""
    return getattr(request, "param", np.float64)


@pytest.fixture(scope="function")
def evaluator_settings_override(request):
    """Override evaluator settings through indirect parametrisation."""
    return getattr(request, "param", {})


@pytest.fixture(scope="function")
def evaluator(precision, evaluator_settings_override):
    settings = {"precision": precision}
    settings.update(evaluator_settings_override)
    return UnitDensityEvaluator(**settings)


# --------------------------------------------------------------------------- #
#                               Input fixtures                                #
# --------------------------------------------------------------------------- #
@pytest.fixture(scope="function")
def inputs_override(request):
    return getattr(request, "param", {})


@pytest.fixture(scope="function")
def inputs(inputs_override):
    """Observations, states and parameters for a one-observable model.

    ``x`` has a single state variable ``mu`` and ``params`` a single
    parameter ``sigma``. Replicate counts and the number of times can be
    overridden with ``nrepsx``, ``nrepsp`` and ``ntimes``.
    """
    settings = {"nrepsx": 2, "nrepsp": 1, "ntimes": 3, "seed": 1}
    settings.update(inputs_override)
    rng = np.random.default_rng(settings["seed"])
    ntimes = settings["ntimes"]
    nrepsx = settings["nrepsx"]
    nrepsp = settings["nrepsp"]
    times = np.arange(ntimes, dtype=np.float64) * 0.5
    y = rng.normal(size=(1, ntimes))
    x = rng.normal(size=(1, nrepsx, ntimes))
    params = rng.uniform(0.5, 2.0, size=(1, nrepsp))
    return {"y": y, "x": x, "times": times, "params": params}


@pytest.fixture(scope="function")
def interpreted_model():
    return UnitMeasureModel(
        unit_dmeasure=gaussian_density,
        obsnames=["cases"],
        statenames=["mu"],
        paramnames=["sigma"],
    )


@pytest.fixture(scope="function")
def compiled_model():
    return UnitMeasureModel(
        unit_dmeasure=UnitFunction(
            compiled_gaussian,
            obsnames=["cases"],
            statenames=["mu"],
            paramnames=["sigma"],
        ),
        obsnames=["cases"],
        statenames=["mu"],
        paramnames=["sigma"],
    )


@pytest.fixture(scope="function")
def covariate_table():
    return CovariateTable.from_dict(
        {
            "time": np.array([-1.0, 0.0, 1.0, 2.0]),
            "temp": np.array([5.0, 10.0, 20.0, 40.0]),
            "rain": np.array([0.0, 1.0, 0.0, 1.0]),
        }
    )


# --------------------------------------------------------------------------- #
#                               Stub adapters                                 #
# --------------------------------------------------------------------------- #
class CountingAdapter(CovariateAdapter):
    """Covariate adapter recording every build and interpolation."""

    def __init__(self):
        self.builds = 0
        self.lookups = []

    def build(self, model):
        self.builds += 1
        return super().build(model)

    def interpolate(self, table, t, out):
        self.lookups.append(t)
        table_lookup(table, t, out)


@pytest.fixture(scope="function")
def counting_adapter():
    return CountingAdapter()
