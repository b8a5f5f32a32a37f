import numpy as np
import pytest

from unitdensity import CovariateTable, UnitFunction, UnitMeasureModel


def test_defaults():
    model = UnitMeasureModel()
    assert model.unit_dmeasure is None
    assert model.covar is None
    assert model.userdata == {}
    assert model.covariate_names == ()


def test_string_density_becomes_unit_function():
    model = UnitMeasureModel(
        unit_dmeasure="tests._densities:gaussian_density"
    )
    assert isinstance(model.unit_dmeasure, UnitFunction)


def test_covar_from_dict():
    model = UnitMeasureModel(
        covar={"time": np.arange(3.0), "pop": [1.0, 2.0, 3.0]}
    )
    assert isinstance(model.covar, CovariateTable)
    assert model.covariate_names == ("pop",)


def test_covar_rejects_other_types():
    with pytest.raises(TypeError, match="covar must be"):
        UnitMeasureModel(covar=[1.0, 2.0])


def test_userdata_must_be_dict():
    with pytest.raises(TypeError):
        UnitMeasureModel(userdata=[("a", 1)])


def test_unit_number():
    model = UnitMeasureModel(unit_names=["London", "Bristol"])
    assert model.unit_names == ("London", "Bristol")
    assert model.unit_number("Bristol") == 1
    assert model.unit_number(4) == 4
    assert model.unit_number(np.int64(2)) == 2
    with pytest.raises(KeyError, match="Leeds"):
        model.unit_number("Leeds")


@pytest.mark.parametrize("unit", [1.7, np.float64(0.5)])
def test_unit_number_rejects_fractional_ids(unit):
    with pytest.raises(KeyError, match="integral"):
        UnitMeasureModel().unit_number(unit)


def test_unit_number_accepts_integral_floats():
    assert UnitMeasureModel().unit_number(3.0) == 3
