"""Exceptions and warnings raised by the unit measurement-density engine.

Every fatal condition aborts the whole evaluation: no partially filled
result array is ever returned. Recoverable conditions are reported through
:func:`warnings.warn` and the evaluation carries on.

Fatal
-----
- :class:`DimensionError`: shapes of ``y``, ``x``, ``params`` and ``times``
  are inconsistent, ``times`` is empty, or the replicate counts cannot be
  broadcast onto each other.
- :class:`ContractViolationError`: a user callback broke its calling
  contract, e.g. an interpreted density returned a vector instead of a
  scalar. :class:`IndexResolutionError` is the compiled-path flavour, raised
  when a declared variable name cannot be found.
- :class:`UnrecognizedModeError`: the model's measurement density resolves
  to neither an interpreted, a compiled, nor an explicitly undefined
  function.
- :class:`EvaluationInterrupted`: the interrupt hook requested cancellation.

Recoverable
-----------
- :class:`UndefinedDensityWarning`: no measurement density was supplied;
  the result is filled with NaN.
- :class:`CovariateExtrapolationWarning`: covariates were requested outside
  the sampled time range of the covariate table.

All exceptions derive from :class:`UnitDensityError`, so a single ``except``
clause catches any package error.
"""

from typing import Optional


class UnitDensityError(Exception):
    """Base exception for all unitdensity errors.

    Parameters
    ----------
    message
        Description of what went wrong.
    hint
        Optional actionable suggestion appended to the message.
    """

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        if hint is not None:
            message = f"{message}\n\nHint: {hint}"
        super().__init__(message)


class DimensionError(UnitDensityError, ValueError):
    """Raised when input array dimensions are inconsistent."""


class ContractViolationError(UnitDensityError):
    """Raised when a user callback does not honour its calling contract."""


class IndexResolutionError(ContractViolationError, KeyError):
    """Raised when a declared variable name is missing from the inputs.

    Parameters
    ----------
    name
        The declared name that could not be found.
    kind
        Human readable description of the name vector that was searched,
        e.g. ``"state variables"``.
    """

    def __init__(self, name: str, kind: str) -> None:
        self.name = name
        self.kind = kind
        super().__init__(
            f"variable '{name}' not found among the {kind}.",
            hint=f"Check the names declared for the {kind} against the row "
                 f"labels of the arrays passed in.",
        )

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return Exception.__str__(self)


class UnrecognizedModeError(UnitDensityError):
    """Raised when a measurement density cannot be assigned a mode."""


class EvaluationInterrupted(UnitDensityError):
    """Raised when the interrupt hook asks for the evaluation to stop."""


class UndefinedDensityWarning(UserWarning):
    """Issued when the measurement density is unspecified."""


class CovariateExtrapolationWarning(UserWarning):
    """Issued when a covariate lookup falls outside the sampled times."""
