"""Numba kernel evaluating a compiled density over all replicates.

The compiled path of the evaluation loop keeps the time loop in Python, so
that covariate interpolation and interrupt polling happen once per time
step, and hands each time step's replicate loop to a Numba ``njit`` kernel
built around the user's compiled density. :class:`ReplicateKernel` builds
that kernel and caches it until the density changes.
"""

from typing import Callable, Optional

from attrs import define, field
from numba import njit

from unitdensity.KernelFactory import KernelCache, KernelConfig, KernelFactory
from unitdensity._utils import PrecisionDType, callable_validator
from unitdensity.time_logger import TimeLogger, default_timelogger


@define
class ReplicateKernelConfig(KernelConfig):
    """Compile settings for :class:`ReplicateKernel`.

    Attributes
    ----------
    precision : numpy.dtype
        Floating-point precision of the arrays the kernel receives.
    density_function : callable or None
        Compiled unit measurement density; excluded from hashing.
    density_key : int
        Identity of ``density_function``, hashed in its place so that
        swapping densities invalidates the cached kernel.
    """

    density_function: Optional[Callable] = field(
        default=None, validator=callable_validator, eq=False
    )
    density_key: int = field(default=0)


@define
class ReplicateKernelCache(KernelCache):
    """Container for the built replicate loop."""

    kernel: Callable = field()


class ReplicateKernel(KernelFactory):
    """Factory for the per-time-step replicate loop of compiled densities.

    Parameters
    ----------
    precision
        Floating-point precision of the evaluation arrays.
    density_function
        Numba-compiled density following the fixed calling convention of
        :mod:`unitdensity.model.unit_function`.
    time_logger
        Logger owning the ``unit_dmeasure.kernel`` compile event. Numba
        compiles the loop on its first call, so the caller times that call
        while :meth:`needs_compile` is True.

    Notes
    -----
    The kernel signature is::

        kernel(ft, yk, xk, ps, give_log, obsindex, stateindex, paramindex,
               covarindex, ncovars, covars, t, unit)

    where ``ft`` is the result column of the current time step, ``yk`` the
    observations at that time, ``xk`` the ``(nvars, nrepsx)`` states at that
    time and ``ps`` the ``(npars, nrepsp)`` parameters. Replicate ``j``
    reads state column ``j % nrepsx`` and parameter column ``j % nrepsp``
    and writes ``ft[j]``.
    """

    def __init__(
        self,
        precision: PrecisionDType,
        density_function: Optional[Callable] = None,
        time_logger: Optional[TimeLogger] = None,
    ) -> None:
        super().__init__()
        if time_logger is None:
            time_logger = default_timelogger
        self._time_logger = time_logger
        self._time_logger._register_event(
            "unit_dmeasure.kernel", "compile",
            "Build compiled replicate loop",
        )
        config = ReplicateKernelConfig(
            precision=precision,
            density_function=density_function,
            density_key=id(density_function),
        )
        self.setup_compile_settings(config)

    def update_density(self, density_function: Callable) -> None:
        """Point the kernel at a new compiled density."""
        self.update_compile_settings(
            density_function=density_function,
            density_key=id(density_function),
        )

    @property
    def density_function(self) -> Optional[Callable]:
        """The compiled density wrapped by the kernel."""
        return self.compile_settings.density_function

    @property
    def needs_compile(self) -> bool:
        """True until the built loop has been called once."""
        return not self.kernel.signatures

    def build(self) -> ReplicateKernelCache:
        """Build the replicate loop around the configured density."""
        density = self.compile_settings.density_function
        if density is None:
            raise ValueError(
                "A compiled density must be supplied before the replicate "
                "kernel can be built."
            )
        return ReplicateKernelCache(kernel=_replicate_loop(density))


def _replicate_loop(density):
    """Return an njit loop calling ``density`` once per replicate."""

    @njit
    def replicate_loop(
        ft, yk, xk, ps, give_log, oidx, sidx, pidx, cidx,
        ncovars, cov, t, unit,
    ):
        nreps = ft.shape[0]
        nrepsx = xk.shape[1]
        nrepsp = ps.shape[1]
        for j in range(nreps):
            density(
                ft[j:j + 1],
                yk,
                xk[:, j % nrepsx],
                ps[:, j % nrepsp],
                give_log,
                oidx,
                sidx,
                pidx,
                cidx,
                ncovars,
                cov,
                t,
                unit,
            )

    return replicate_loop
