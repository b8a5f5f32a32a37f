"""Invocation contexts for the two density evaluation strategies.

One context is built per evaluation and reused for every (time, replicate)
pair. The context type is the evaluation mode: an
:class:`InterpretedContext` carries a pre-allocated named-argument frame, a
:class:`CompiledContext` carries index tables and the compiled replicate
kernel, and an :class:`UndefinedContext` carries nothing.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, \
    Union

import numpy as np
from attrs import define, field

from unitdensity.errors import (
    ContractViolationError,
    IndexResolutionError,
    UnrecognizedModeError,
)
from unitdensity.model.unit_function import EvaluationMode, UnitFunction


class ArgumentFrame:
    """Reusable keyword-argument frame for interpreted densities.

    The frame holds one slot per argument and is written in place before
    each call with :meth:`bind`; :meth:`invoke` then calls the density with
    the current slot values.

    Parameters
    ----------
    obsnames, statenames, paramnames, covarnames
        Variable names, in the order their values are bound.
    unit
        Identifier bound to the ``unit`` slot for the whole evaluation.
    log
        Value of the ``log`` slot.
    userdata
        Extra keyword arguments passed unchanged on every call.
    style : {"scalar", "vector"}
        ``"scalar"`` passes every variable as its own keyword argument,
        in the order ``t``, observables, states, ``unit``, parameters,
        covariates, ``log``. ``"vector"`` passes the keyword arguments
        ``y``, ``x``, ``t``, ``unit``, ``params``, ``log`` and ``covars``,
        the array-valued ones as numpy vectors in name order.

    Raises
    ------
    ContractViolationError
        If two slots would share a name.
    """

    def __init__(
        self,
        obsnames: Sequence[str],
        statenames: Sequence[str],
        paramnames: Sequence[str],
        covarnames: Sequence[str],
        unit: Any,
        log: bool,
        userdata: Optional[Mapping[str, Any]] = None,
        style: str = "scalar",
        precision: type = np.float64,
    ) -> None:
        if style not in ("scalar", "vector"):
            raise ValueError(
                f"style must be 'scalar' or 'vector', got '{style}'"
            )
        self.style = style
        self.obsnames = tuple(obsnames)
        self.statenames = tuple(statenames)
        self.paramnames = tuple(paramnames)
        self.covarnames = tuple(covarnames)
        if userdata is None:
            userdata = {}

        if style == "scalar":
            slot_names = (
                ("t",) + self.obsnames + self.statenames + ("unit",)
                + self.paramnames + self.covarnames + ("log",)
            )
        else:
            slot_names = ("y", "x", "t", "unit", "params", "log", "covars")
        slot_names = slot_names + tuple(userdata.keys())

        seen = set()
        duplicated = []
        for name in slot_names:
            if name in seen:
                duplicated.append(name)
            seen.add(name)
        if duplicated:
            raise ContractViolationError(
                f"in 'unit_dmeasure': argument name(s) "
                f"{sorted(set(duplicated))} are used more than once.",
                hint="Variable, covariate and userdata names must differ "
                     "from each other and from 't', 'unit' and 'log'.",
            )

        self.kwargs: Dict[str, Any] = dict.fromkeys(slot_names, 0.0)
        self.kwargs["unit"] = unit
        self.kwargs["log"] = bool(log)
        self.kwargs.update(userdata)

        if style == "vector":
            self._y = np.zeros(len(self.obsnames), dtype=precision)
            self._x = np.zeros(len(self.statenames), dtype=precision)
            self._p = np.zeros(len(self.paramnames), dtype=precision)
            self._c = np.zeros(len(self.covarnames), dtype=precision)
            self.kwargs.update(
                y=self._y, x=self._x, params=self._p, covars=self._c
            )

    @property
    def slot_names(self) -> Tuple[str, ...]:
        """Argument names in call order."""
        return tuple(self.kwargs.keys())

    def bind_time(
        self, t: float, y: np.ndarray, covars: np.ndarray
    ) -> None:
        """Write the slots shared by every replicate at one time."""
        kwargs = self.kwargs
        kwargs["t"] = t
        if self.style == "scalar":
            for name, value in zip(self.obsnames, y.tolist()):
                kwargs[name] = value
            for name, value in zip(self.covarnames, covars.tolist()):
                kwargs[name] = value
        else:
            self._y[:] = y
            self._c[:] = covars

    def bind_replicate(self, x: np.ndarray, p: np.ndarray) -> None:
        """Write the state and parameter slots of one replicate."""
        if self.style == "scalar":
            kwargs = self.kwargs
            for name, value in zip(self.statenames, x.tolist()):
                kwargs[name] = value
            for name, value in zip(self.paramnames, p.tolist()):
                kwargs[name] = value
        else:
            self._x[:] = x
            self._p[:] = p

    def bind(
        self,
        t: float,
        y: np.ndarray,
        x: np.ndarray,
        p: np.ndarray,
        covars: np.ndarray,
    ) -> None:
        """Write the values of one (time, replicate) pair into the frame."""
        self.bind_time(t, y, covars)
        self.bind_replicate(x, p)

    def invoke(self, function: Callable) -> Any:
        """Call ``function`` with the frame's current arguments."""
        return function(**self.kwargs)


@define
class UndefinedContext:
    """Context for an unspecified density."""

    mode: EvaluationMode = field(default=EvaluationMode.UNDEFINED,
                                 init=False)


@define
class InterpretedContext:
    """Context for a Python density called by keyword."""

    function: Callable = field()
    frame: ArgumentFrame = field()
    mode: EvaluationMode = field(default=EvaluationMode.INTERPRETED,
                                 init=False)


@define
class CompiledContext:
    """Context for a compiled density reached through its index tables."""

    function: Callable = field()
    obsindex: np.ndarray = field(eq=False)
    stateindex: np.ndarray = field(eq=False)
    paramindex: np.ndarray = field(eq=False)
    covarindex: np.ndarray = field(eq=False)
    give_log: int = field()
    unit: int = field()
    kernel: Optional[Callable] = field(default=None, eq=False)
    mode: EvaluationMode = field(default=EvaluationMode.COMPILED, init=False)


EvaluationContext = Union[UndefinedContext, InterpretedContext,
                          CompiledContext]


def name_index(
    provided: Sequence[str], declared: Sequence[str], kind: str
) -> np.ndarray:
    """Translate declared names into positions among provided names.

    Parameters
    ----------
    provided
        Names labelling the rows of the input array, in row order.
    declared
        Names the compiled density refers to, in index-table order.
    kind
        Description of ``provided`` used in error messages.

    Returns
    -------
    numpy.ndarray
        ``int32`` array with ``provided[index[i]] == declared[i]``.

    Raises
    ------
    IndexResolutionError
        If a declared name is not among the provided names.
    """
    positions = {name: i for i, name in enumerate(provided)}
    index = np.empty(len(declared), dtype=np.int32)
    for i, name in enumerate(declared):
        if name not in positions:
            raise IndexResolutionError(name, kind)
        index[i] = positions[name]
    return index


def build_context(
    mode: EvaluationMode,
    spec: UnitFunction,
    function: Optional[Callable],
    obsnames: Sequence[str],
    statenames: Sequence[str],
    paramnames: Sequence[str],
    covarnames: Sequence[str],
    unit: Any,
    log: bool,
    userdata: Optional[Mapping[str, Any]] = None,
    argument_style: str = "scalar",
    precision: type = np.float64,
) -> EvaluationContext:
    """Build the invocation context for one evaluation.

    Parameters
    ----------
    mode
        Resolved evaluation mode.
    spec
        The density specification, supplying declared names.
    function
        The density callable resolved from ``spec``.
    obsnames, statenames, paramnames, covarnames
        Names of the rows of ``y``, ``x``, ``params`` and of the covariates.
    unit
        Unit bound for the whole evaluation.
    log
        Whether the log density is requested.
    userdata
        Extra keyword arguments for interpreted densities.
    argument_style
        Frame style for interpreted densities.
    precision
        Dtype of the frame's vector slots.

    Raises
    ------
    UnrecognizedModeError
        If ``mode`` is not a known evaluation mode.
    IndexResolutionError
        If a compiled density declares a name missing from the inputs.
    """
    if mode == EvaluationMode.UNDEFINED:
        return UndefinedContext()

    if mode == EvaluationMode.INTERPRETED:
        frame = ArgumentFrame(
            obsnames,
            statenames,
            paramnames,
            covarnames,
            unit=unit,
            log=log,
            userdata=userdata,
            style=argument_style,
            precision=precision,
        )
        return InterpretedContext(function=function, frame=frame)

    if mode == EvaluationMode.COMPILED:
        return CompiledContext(
            function=function,
            obsindex=name_index(obsnames, spec.obsnames, "observables"),
            stateindex=name_index(
                statenames, spec.statenames, "state variables"
            ),
            paramindex=name_index(paramnames, spec.paramnames, "parameters"),
            covarindex=name_index(covarnames, spec.covarnames, "covariates"),
            give_log=int(bool(log)),
            unit=int(unit),
        )

    raise UnrecognizedModeError("in 'unit_dmeasure': unrecognized 'mode'.")
