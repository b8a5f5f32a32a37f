"""User-supplied unit measurement densities and their resolution.

A measurement density reaches the engine in one of three forms:

- a plain Python callable, evaluated through a named-argument frame
  (:attr:`EvaluationMode.INTERPRETED`);
- a Numba ``njit`` dispatcher honouring the fixed positional calling
  convention below (:attr:`EvaluationMode.COMPILED`);
- ``None``, meaning no density was specified
  (:attr:`EvaluationMode.UNDEFINED`).

Compiled calling convention
---------------------------
::

    density(lik, y, x, p, give_log, obsindex, stateindex, paramindex,
            covarindex, ncovars, covars, t, unit)

``lik`` is a length-one output array that receives the density (or log
density when ``give_log`` is non-zero). ``y``, ``x`` and ``p`` are the
observation, state and parameter vectors of one replicate at one time;
``covars`` holds ``ncovars`` interpolated covariates. The four index arrays
translate the names declared on the :class:`UnitFunction` into positions in
those vectors, e.g. ``x[stateindex[0]]`` is the first declared state. ``t``
is the time and ``unit`` the integer identifier of the evaluated unit.

Callables may also be referenced by an import string ``"package.module:name"``;
the reference is resolved on first use and cached until a refresh is
requested.
"""

from enum import IntEnum
from importlib import import_module
from typing import Any, Callable, Optional, Tuple, Union

from attrs import define, field, validators
from numba.core.dispatcher import Dispatcher

from unitdensity._utils import name_tuple_converter
from unitdensity.errors import UnrecognizedModeError


class EvaluationMode(IntEnum):
    UNDEFINED = 0
    INTERPRETED = 1
    COMPILED = 2


def is_compiled_function(function: Any) -> bool:
    """Return True if ``function`` is a Numba CPU dispatcher."""
    return isinstance(function, Dispatcher)


def _mode_converter(value: Any) -> Optional[EvaluationMode]:
    if value is None or isinstance(value, EvaluationMode):
        return value
    if isinstance(value, str):
        try:
            return EvaluationMode[value.upper()]
        except KeyError:
            raise UnrecognizedModeError(
                f"unrecognized 'mode' {value!r}.",
                hint="Use 'interpreted', 'compiled' or 'undefined'.",
            ) from None
    try:
        return EvaluationMode(value)
    except ValueError:
        raise UnrecognizedModeError(
            f"unrecognized 'mode' {value!r}."
        ) from None


@define
class UnitFunction:
    """A unit measurement density together with its declared names.

    Attributes
    ----------
    function : callable, str or None
        The density, or an import reference ``"module:name"`` to it.
    mode : EvaluationMode or None
        Evaluation mode. ``None`` infers it from ``function``: Numba
        dispatchers are compiled, other callables interpreted.
    obsnames, statenames, paramnames, covarnames : tuple[str, ...]
        Names the compiled density addresses through its index tables.
        Ignored by interpreted densities, which receive every variable by
        name.
    """

    function: Union[Callable, str, None] = field(
        default=None,
        validator=validators.optional(
            validators.or_(
                validators.is_callable(), validators.instance_of(str)
            )
        ),
    )
    mode: Optional[EvaluationMode] = field(
        default=None, converter=_mode_converter
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
    covarnames: Tuple[str, ...] = field(
        factory=tuple, converter=name_tuple_converter
    )
    _resolved: Optional[Callable] = field(
        default=None, init=False, repr=False, eq=False
    )

    def handle(self, refresh: bool = False) -> Optional[Callable]:
        """Return the callable behind :attr:`function`.

        Parameters
        ----------
        refresh
            Look an import reference up again instead of reusing the
            cached object.
        """
        if not isinstance(self.function, str):
            return self.function
        if self._resolved is None or refresh:
            module_name, _, attribute = self.function.partition(":")
            if not attribute:
                raise UnrecognizedModeError(
                    f"cannot resolve unit measurement density "
                    f"{self.function!r}.",
                    hint="Reference callables as 'package.module:name'.",
                )
            module = import_module(module_name)
            self._resolved = getattr(module, attribute)
        return self._resolved


def resolve_unit_function(
    spec: Any, refresh: bool = False
) -> Tuple[UnitFunction, EvaluationMode]:
    """Resolve a measurement-density specification and its mode.

    Parameters
    ----------
    spec
        A :class:`UnitFunction`, a callable, a Numba dispatcher or ``None``.
    refresh
        Re-resolve import references rather than using cached lookups.

    Returns
    -------
    tuple[UnitFunction, EvaluationMode]
        The (possibly wrapped) specification and the mode it runs in.

    Raises
    ------
    UnrecognizedModeError
        If ``spec`` is of an unsupported type, or a pinned mode is
        inconsistent with the function it wraps.
    """
    if spec is None:
        return UnitFunction(), EvaluationMode.UNDEFINED
    if not isinstance(spec, UnitFunction):
        if not callable(spec):
            raise UnrecognizedModeError(
                f"in 'unit_dmeasure': unrecognized 'mode' for object of "
                f"type {type(spec).__name__}.",
                hint="Supply a Python callable, a numba.njit function, a "
                     "UnitFunction or None.",
            )
        spec = UnitFunction(function=spec)

    function = spec.handle(refresh=refresh)
    mode = spec.mode
    if mode is None:
        if function is None:
            mode = EvaluationMode.UNDEFINED
        elif is_compiled_function(function):
            mode = EvaluationMode.COMPILED
        elif callable(function):
            mode = EvaluationMode.INTERPRETED
        else:
            raise UnrecognizedModeError(
                "in 'unit_dmeasure': unrecognized 'mode'."
            )
    elif mode is not EvaluationMode.UNDEFINED and not callable(function):
        raise UnrecognizedModeError(
            f"in 'unit_dmeasure': mode {mode.name} requires a callable "
            f"density."
        )
    return spec, mode
