import pytest

from unitdensity.errors import UnrecognizedModeError
from unitdensity.model import (
    EvaluationMode,
    UnitFunction,
    is_compiled_function,
    resolve_unit_function,
)
from tests._densities import compiled_gaussian, gaussian_density


def test_none_is_undefined():
    spec, mode = resolve_unit_function(None)
    assert mode is EvaluationMode.UNDEFINED
    assert spec.handle() is None


def test_plain_callable_is_interpreted():
    spec, mode = resolve_unit_function(gaussian_density)
    assert mode is EvaluationMode.INTERPRETED
    assert spec.handle() is gaussian_density


def test_dispatcher_is_compiled():
    assert is_compiled_function(compiled_gaussian)
    assert not is_compiled_function(gaussian_density)
    spec, mode = resolve_unit_function(UnitFunction(compiled_gaussian))
    assert mode is EvaluationMode.COMPILED


def test_undefined_unit_function():
    _, mode = resolve_unit_function(UnitFunction())
    assert mode is EvaluationMode.UNDEFINED


@pytest.mark.parametrize("spec", [3.0, "not callable", object()])
def test_unrecognized_spec_raises(spec):
    with pytest.raises(UnrecognizedModeError, match="unrecognized 'mode'"):
        resolve_unit_function(spec)


@pytest.mark.parametrize(
    "mode, expected",
    [
        ("compiled", EvaluationMode.COMPILED),
        ("INTERPRETED", EvaluationMode.INTERPRETED),
        (0, EvaluationMode.UNDEFINED),
        (EvaluationMode.COMPILED, EvaluationMode.COMPILED),
    ],
)
def test_mode_converter(mode, expected):
    assert UnitFunction(gaussian_density, mode=mode).mode is expected


@pytest.mark.parametrize("mode", ["jit", 7])
def test_bad_pinned_mode(mode):
    with pytest.raises(UnrecognizedModeError):
        UnitFunction(gaussian_density, mode=mode)


def test_pinned_mode_wins():
    spec, mode = resolve_unit_function(
        UnitFunction(gaussian_density, mode="undefined")
    )
    assert mode is EvaluationMode.UNDEFINED


def test_pinned_mode_needs_callable():
    with pytest.raises(UnrecognizedModeError, match="requires a callable"):
        resolve_unit_function(UnitFunction(mode="interpreted"))


def test_declared_names_are_tuples():
    spec = UnitFunction(
        compiled_gaussian, obsnames="cases", statenames=["mu", "nu"]
    )
    assert spec.obsnames == ("cases",)
    assert spec.statenames == ("mu", "nu")
    assert spec.paramnames == ()


def test_import_reference_resolution(monkeypatch):
    spec = UnitFunction("tests._densities:gaussian_density")
    resolved, mode = resolve_unit_function(spec)
    assert mode is EvaluationMode.INTERPRETED
    assert resolved.handle() is gaussian_density

    import tests._densities as densities

    def replacement(**kwargs):
        return 0.0

    monkeypatch.setattr(densities, "gaussian_density", replacement)
    # the cached lookup is reused until a refresh is requested
    assert spec.handle() is gaussian_density
    assert spec.handle(refresh=True) is replacement
    _, mode = resolve_unit_function(spec, refresh=True)
    assert spec.handle() is replacement


def test_bad_import_reference():
    with pytest.raises(UnrecognizedModeError, match="cannot resolve"):
        UnitFunction("tests._densities").handle()
