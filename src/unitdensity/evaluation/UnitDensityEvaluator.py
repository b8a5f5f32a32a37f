"""Evaluation of unit measurement densities over times and replicates.

This module exposes :class:`UnitDensityEvaluator`, which owns the settings
and cached compiled kernel of the engine, and the convenience wrappers
:func:`unit_dmeasure` and :func:`evaluate_units`.

An evaluation proceeds as follows:

1. the inputs are coerced and their shapes validated
   (:mod:`~unitdensity.evaluation.layout`);
2. the density is resolved to a mode and an invocation context is built
   (:mod:`~unitdensity.evaluation.contexts`);
3. the ``(rep, time)`` result buffer is allocated;
4. for every time the interrupt hook is polled, covariates are
   interpolated once, and every replicate is evaluated, reading state
   column ``j % nrepsx`` and parameter column ``j % nrepsp``;
5. the filled buffer is returned as a labelled :class:`xarray.DataArray`.

Examples
--------
>>> import numpy as np
>>> from unitdensity import UnitMeasureModel, unit_dmeasure
>>> def dnorm(t, cases, mu, unit, sigma, log):
...     z = (cases - mu) / sigma
...     logdens = -0.5 * z * z - np.log(sigma * np.sqrt(2.0 * np.pi))
...     return logdens if log else np.exp(logdens)
>>> model = UnitMeasureModel(
...     unit_dmeasure=dnorm, obsnames=["cases"], statenames=["mu"],
...     paramnames=["sigma"],
... )
>>> y = np.array([[1.0, 2.0]])
>>> x = np.array([[[1.0, 2.0], [0.0, 0.0]]])
>>> params = np.array([[1.0]])
>>> unit_dmeasure(model, y, x, [0.0, 1.0], [0], params, log=True).shape
(2, 2)
"""

from typing import Any, Callable, Dict, Optional, Sequence
from warnings import warn

import numpy as np
import xarray as xr
from attrs import define, field, validators

from unitdensity.KernelFactory import KernelConfig
from unitdensity._utils import PrecisionDType, callable_validator
from unitdensity.covariates.adapter import (
    CovariateAdapter,
    default_covariate_adapter,
)
from unitdensity.errors import (
    ContractViolationError,
    DimensionError,
    EvaluationInterrupted,
    UndefinedDensityWarning,
)
from unitdensity.evaluation.ReplicateKernel import ReplicateKernel
from unitdensity.evaluation.contexts import (
    CompiledContext,
    InterpretedContext,
    UndefinedContext,
    build_context,
)
from unitdensity.evaluation.layout import (
    DensityLayout,
    as_matrix,
    as_state_array,
    as_times,
    resolve_layout,
    resolve_names,
)
from unitdensity.evaluation.results import allocate_result, label_result
from unitdensity.evaluation.userdata import userdata_scope
from unitdensity.model.spatial_model import UnitMeasureModel
from unitdensity.model.unit_function import (
    EvaluationMode,
    resolve_unit_function,
)
from unitdensity.time_logger import TimeLogger, default_timelogger


@define
class EvaluatorConfig(KernelConfig):
    """Settings controlling how densities are evaluated.

    Attributes
    ----------
    precision : numpy.dtype
        Floating-point precision of the arrays handed to densities and of
        the result.
    argument_style : {"scalar", "vector"}
        How interpreted densities receive their arguments; see
        :class:`~unitdensity.evaluation.contexts.ArgumentFrame`.
    unit_binding : {"units", "unset"}
        ``"units"`` binds the evaluated unit to the ``unit`` argument of
        interpreted densities. ``"unset"`` leaves it NaN, as some
        historical engines did. Compiled densities always receive the unit.
    check_every_call : bool
        Check that every interpreted call returns a single number, rather
        than only the first.
    interrupt : callable or None
        Polled with no arguments once per time step; a truthy return
        aborts the evaluation with
        :class:`~unitdensity.errors.EvaluationInterrupted`.
    """

    argument_style: str = field(
        default="scalar",
        validator=validators.in_({"scalar", "vector"}),
    )
    unit_binding: str = field(
        default="units",
        validator=validators.in_({"units", "unset"}),
    )
    check_every_call: bool = field(
        default=False,
        validator=validators.instance_of(bool),
    )
    interrupt: Optional[Callable] = field(
        default=None,
        validator=callable_validator,
        eq=False,
    )


def _scalar_result(answer: Any) -> float:
    """Return ``answer`` as a float if it is exactly one number."""
    values = np.asarray(answer)
    if values.size != 1:
        raise ContractViolationError(
            f"in 'unit_dmeasure': user 'unit_dmeasure' returns a vector of "
            f"length {values.size} when it should return a scalar."
        )
    if values.dtype.kind not in "biuf":
        raise ContractViolationError(
            f"in 'unit_dmeasure': user 'unit_dmeasure' returns a value of "
            f"type {values.dtype} when it should return a number."
        )
    return float(values.reshape(-1)[0])


class UnitDensityEvaluator:
    """Evaluate unit measurement densities for replicated states.

    Parameters
    ----------
    precision
        Floating-point precision of evaluation arrays. Default float64.
    argument_style
        ``"scalar"`` or ``"vector"`` keyword arguments for interpreted
        densities.
    unit_binding
        ``"units"`` or ``"unset"``; see :class:`EvaluatorConfig`.
    check_every_call
        Validate every interpreted return value instead of only the first.
    interrupt
        Cancellation hook polled once per time step.
    covariate_adapter
        Object with ``build(model)`` and ``interpolate(table, t, out)``
        methods. Defaults to the :class:`CovariateTable` adapter.
    time_logging_level
        Verbosity of a private :class:`TimeLogger`. ``None`` uses the
        silent shared logger.

    Notes
    -----
    The evaluator caches the replicate kernel built for the last compiled
    density it saw, so repeated evaluations of the same model only pay
    Numba's compilation cost once.
    """

    def __init__(
        self,
        precision: PrecisionDType = np.float64,
        argument_style: str = "scalar",
        unit_binding: str = "units",
        check_every_call: bool = False,
        interrupt: Optional[Callable] = None,
        covariate_adapter: Optional[CovariateAdapter] = None,
        time_logging_level: Optional[str] = None,
    ) -> None:
        self._config = EvaluatorConfig(
            precision=precision,
            argument_style=argument_style,
            unit_binding=unit_binding,
            check_every_call=check_every_call,
            interrupt=interrupt,
        )
        if covariate_adapter is None:
            covariate_adapter = default_covariate_adapter
        self.covariate_adapter = covariate_adapter

        if time_logging_level is None:
            self._time_logger = default_timelogger
        else:
            self._time_logger = TimeLogger(verbosity=time_logging_level)
        logger = self._time_logger
        logger._register_event(
            "unit_dmeasure.layout", "build", "Validate input shapes"
        )
        logger._register_event(
            "unit_dmeasure.context", "build", "Build invocation context"
        )
        logger._register_event(
            "unit_dmeasure.loop", "runtime", "Evaluate densities"
        )
        self._kernel: Optional[ReplicateKernel] = None

    # ------------------------------------------------------------------ #
    #                              Settings                              #
    # ------------------------------------------------------------------ #
    @property
    def config(self) -> EvaluatorConfig:
        """Current evaluator settings."""
        return self._config

    @property
    def precision(self) -> type:
        """Floating-point precision of evaluation arrays."""
        return self._config.precision

    @property
    def time_logger(self) -> TimeLogger:
        """Logger receiving this evaluator's timing events."""
        return self._time_logger

    def update(
        self,
        updates_dict: Optional[Dict[str, Any]] = None,
        silent: bool = False,
        **kwargs: Any,
    ) -> set:
        """Update evaluator settings.

        Parameters
        ----------
        updates_dict
            Mapping of setting names to new values.
        silent
            Suppress the ``KeyError`` raised for unknown settings.
        **kwargs
            Additional settings to update.

        Returns
        -------
        set[str]
            Names of the recognised settings.
        """
        if updates_dict is None:
            updates_dict = {}
        updates_dict = updates_dict.copy()
        updates_dict.update(kwargs)
        if not updates_dict:
            return set()

        recognized, changed = self._config.update(updates_dict)
        unrecognised = set(updates_dict.keys()) - recognized
        if unrecognised and not silent:
            invalid = ", ".join(sorted(unrecognised))
            raise KeyError(
                f"'{invalid}' is not a valid evaluator setting, and so was "
                f"not updated."
            )
        if "precision" in changed and self._kernel is not None:
            self._kernel.update_compile_settings(precision=self.precision)
        return recognized

    # ------------------------------------------------------------------ #
    #                             Evaluation                             #
    # ------------------------------------------------------------------ #
    def evaluate(
        self,
        model: UnitMeasureModel,
        y: Any,
        x: Any,
        times: Any,
        units: Any,
        params: Any,
        log: bool = False,
        refresh: bool = False,
    ) -> xr.DataArray:
        """Evaluate the model's unit measurement density.

        Parameters
        ----------
        model
            Supplies the density, covariates, userdata and default names.
        y
            Observations of one unit, ``(nobs, ntimes)``.
        x
            States, ``(nvars, nrepsx, ntimes)``.
        times
            Observation times, ``(ntimes,)``; must not be empty.
        units
            Unit identifiers; the first one is evaluated. Names are looked
            up in ``model.unit_names``.
        params
            Parameters, ``(npars, nrepsp)``.
        log
            Return log densities.
        refresh
            Re-resolve the density and rebuild any cached compiled kernel.

        Returns
        -------
        xarray.DataArray
            Densities with dims ``("rep", "time")`` and shape
            ``(max(nrepsx, nrepsp), ntimes)``.

        Raises
        ------
        DimensionError
            If the input shapes are inconsistent.
        ContractViolationError
            If an interpreted density does not return a single number, or
            a compiled density declares names that are not available.
        UnrecognizedModeError
            If the density cannot be assigned an evaluation mode.
        EvaluationInterrupted
            If the interrupt hook requested cancellation.
        """
        config = self._config
        precision = config.precision
        logger = self._time_logger

        with logger.timed("unit_dmeasure.layout"):
            times_array = as_times(times, np.float64)
            y_array = as_matrix(y, precision)
            x_array = as_state_array(x, precision)
            p_array = as_matrix(params, precision)
            layout = resolve_layout(y_array, x_array, p_array, times_array)
            obsnames = resolve_names(y, model.obsnames, layout.nobs, "y")
            statenames = resolve_names(
                x, model.statenames, layout.nvars, "x"
            )
            paramnames = resolve_names(
                params, model.paramnames, layout.npars, "params"
            )

        with logger.timed("unit_dmeasure.context"):
            table, ncovars = self.covariate_adapter.build(model)
            names = getattr(self.covariate_adapter, "names", None)
            if names is None:
                covarnames = model.covariate_names
            else:
                covarnames = tuple(names(table))
            if len(covarnames) != ncovars:
                raise DimensionError(
                    f"in 'unit_dmeasure': {ncovars} covariates interpolated "
                    f"but {len(covarnames)} covariate names declared."
                )
            covars = np.zeros(ncovars, dtype=precision)

            spec, mode = resolve_unit_function(
                model.unit_dmeasure, refresh=refresh
            )
            function = spec.handle()
            unit = self._select_unit(model, units, mode)
            context = build_context(
                mode,
                spec,
                function,
                obsnames,
                statenames,
                paramnames,
                covarnames,
                unit=unit,
                log=log,
                userdata=model.userdata,
                argument_style=config.argument_style,
                precision=precision,
            )
            if isinstance(context, CompiledContext):
                context.kernel = self._replicate_kernel(function, refresh)

        result = allocate_result(layout.nreps, layout.ntimes, precision)
        logger.print_message(
            f"unit_dmeasure: {mode.name.lower()} density, "
            f"{layout.nreps} replicates x {layout.ntimes} times"
        )

        with logger.timed("unit_dmeasure.loop", mode=mode.name):
            if isinstance(context, UndefinedContext):
                result.fill(np.nan)
                warn(
                    "'unit_dmeasure' unspecified: likelihood undefined.",
                    UndefinedDensityWarning,
                    stacklevel=2,
                )
            elif isinstance(context, InterpretedContext):
                self._run_interpreted(
                    context, layout, result, y_array, x_array, p_array,
                    times_array, table, covars,
                )
            else:
                with userdata_scope(model.userdata):
                    self._run_compiled(
                        context, layout, result, y_array, x_array, p_array,
                        times_array, table, covars,
                    )

        return label_result(result, times_array)

    def _select_unit(
        self, model: UnitMeasureModel, units: Any, mode: EvaluationMode
    ) -> Any:
        """Return the unit identifier bound for this evaluation."""
        if mode == EvaluationMode.UNDEFINED:
            return None
        if (mode == EvaluationMode.INTERPRETED
                and self._config.unit_binding == "unset"):
            return np.nan
        if units is None or np.ndim(units) == 0:
            unit_list = [] if units is None else [units]
        else:
            unit_list = list(np.ravel(np.asarray(units, dtype=object)))
        if not unit_list:
            raise DimensionError(
                "in 'unit_dmeasure': 'units' must contain at least one unit."
            )
        first = unit_list[0]
        if isinstance(first, np.generic):
            first = first.item()
        return model.unit_number(first)

    def _replicate_kernel(
        self, function: Callable, refresh: bool
    ) -> Callable:
        """Return the cached replicate loop for ``function``."""
        if self._kernel is None or refresh:
            self._kernel = ReplicateKernel(
                precision=self.precision,
                density_function=function,
                time_logger=self._time_logger,
            )
        elif self._kernel.density_function is not function:
            self._kernel.update_density(function)
        return self._kernel.kernel

    def _start_step(self, k: int, ntimes: int) -> None:
        """Poll the interrupt hook and report progress for time step k."""
        interrupt = self._config.interrupt
        if interrupt is not None and interrupt():
            raise EvaluationInterrupted(
                f"in 'unit_dmeasure': evaluation interrupted at time index "
                f"{k}."
            )
        self._time_logger.progress(
            "unit_dmeasure.loop", f"time step {k + 1}/{ntimes}"
        )

    def _run_interpreted(
        self,
        context: InterpretedContext,
        layout: DensityLayout,
        result: np.ndarray,
        y: np.ndarray,
        x: np.ndarray,
        params: np.ndarray,
        times: np.ndarray,
        table: Any,
        covars: np.ndarray,
    ) -> None:
        """Fill ``result`` by calling a Python density per replicate."""
        frame = context.frame
        function = context.function
        interpolate = self.covariate_adapter.interpolate
        check_every_call = self._config.check_every_call
        nrepsx = layout.nrepsx
        nrepsp = layout.nrepsp
        first = True

        for k in range(layout.ntimes):
            self._start_step(k, layout.ntimes)
            t = float(times[k])
            interpolate(table, t, covars)
            frame.bind_time(t, y[:, k], covars)
            for j in range(layout.nreps):
                frame.bind_replicate(x[:, j % nrepsx, k],
                                     params[:, j % nrepsp])
                answer = frame.invoke(function)
                if first or check_every_call:
                    result[j, k] = _scalar_result(answer)
                    first = False
                else:
                    result[j, k] = np.ravel(answer)[0]

    def _run_compiled(
        self,
        context: CompiledContext,
        layout: DensityLayout,
        result: np.ndarray,
        y: np.ndarray,
        x: np.ndarray,
        params: np.ndarray,
        times: np.ndarray,
        table: Any,
        covars: np.ndarray,
    ) -> None:
        """Fill ``result`` one time column at a time with the kernel."""
        kernel = context.kernel
        interpolate = self.covariate_adapter.interpolate
        ncovars = covars.shape[0]

        for k in range(layout.ntimes):
            self._start_step(k, layout.ntimes)
            t = float(times[k])
            interpolate(table, t, covars)
            args = (
                result[:, k],
                y[:, k],
                x[:, :, k],
                params,
                context.give_log,
                context.obsindex,
                context.stateindex,
                context.paramindex,
                context.covarindex,
                ncovars,
                covars,
                t,
                context.unit,
            )
            if k == 0 and self._kernel.needs_compile:
                # numba compiles on the first call
                with self._time_logger.timed("unit_dmeasure.kernel"):
                    kernel(*args)
            else:
                kernel(*args)


def unit_dmeasure(
    model: UnitMeasureModel,
    y: Any,
    x: Any,
    times: Any,
    units: Any,
    params: Any,
    log: bool = False,
    refresh: bool = False,
    **kwargs: Any,
) -> xr.DataArray:
    """Evaluate a unit measurement density in one call.

    Parameters
    ----------
    model, y, x, times, units, params, log, refresh
        See :meth:`UnitDensityEvaluator.evaluate`.
    **kwargs
        Settings passed to :class:`UnitDensityEvaluator`.

    Returns
    -------
    xarray.DataArray
        ``(rep, time)`` array of densities.
    """
    evaluator = UnitDensityEvaluator(**kwargs)
    return evaluator.evaluate(
        model, y, x, times, units, params, log=log, refresh=refresh
    )


def evaluate_units(
    model: UnitMeasureModel,
    y_by_unit: Sequence[Any],
    x: Any,
    times: Any,
    params: Any,
    units: Optional[Sequence[Any]] = None,
    log: bool = False,
    evaluator: Optional[UnitDensityEvaluator] = None,
    **kwargs: Any,
) -> xr.DataArray:
    """Evaluate the density of several units and stack the results.

    Parameters
    ----------
    model
        Model supplying the density.
    y_by_unit
        One observation matrix per unit, in the order of ``units``.
    x, times, params, log
        As for :meth:`UnitDensityEvaluator.evaluate`; shared by all units.
    units
        Unit identifiers. Defaults to ``model.unit_names`` if declared,
        otherwise ``0 .. len(y_by_unit) - 1``.
    evaluator
        Evaluator to reuse; a new one is built from ``kwargs`` otherwise.

    Returns
    -------
    xarray.DataArray
        Densities with dims ``("unit", "rep", "time")``.
    """
    if units is None:
        if model.unit_names:
            units = list(model.unit_names)
        else:
            units = list(range(len(y_by_unit)))
    if len(units) != len(y_by_unit):
        raise DimensionError(
            f"{len(y_by_unit)} observation matrices supplied for "
            f"{len(units)} units."
        )
    if evaluator is None:
        evaluator = UnitDensityEvaluator(**kwargs)

    per_unit = [
        evaluator.evaluate(model, y, x, times, [unit], params, log=log)
        for unit, y in zip(units, y_by_unit)
    ]
    return xr.concat(per_unit, dim="unit").assign_coords(unit=list(units))
