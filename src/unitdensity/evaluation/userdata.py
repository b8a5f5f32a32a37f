"""Scoped access to a model's extra user data during compiled evaluations.

Compiled densities have a fixed positional signature, so auxiliary
read-only data cannot be passed as an argument. Instead the evaluator
installs the model's ``userdata`` for the duration of the loop with
:func:`userdata_scope`, and Python-level code running inside the
evaluation (object-mode blocks, interrupt hooks, covariate adapters) reads
it with :func:`get_userdata` and friends. The data is always removed when
the scope exits, whether the loop finished, failed or was interrupted.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping

import numpy as np

# each thread sees only the scopes it installed
_local = threading.local()


def _stack() -> List[Dict[str, Any]]:
    stack = getattr(_local, "stack", None)
    if stack is None:
        stack = _local.stack = []
    return stack


@contextmanager
def userdata_scope(userdata: Mapping[str, Any]) -> Iterator[None]:
    """Install ``userdata`` until the ``with`` block exits.

    Scopes nest; the innermost one is visible. Scopes are per thread.
    """
    stack = _stack()
    stack.append(dict(userdata))
    try:
        yield
    finally:
        stack.pop()


def userdata_installed() -> bool:
    """Return True while a :func:`userdata_scope` is active."""
    return bool(_stack())


def _current() -> Dict[str, Any]:
    stack = _stack()
    if not stack:
        raise LookupError(
            "no userdata is installed; userdata is only available while a "
            "compiled unit measurement density is being evaluated."
        )
    return stack[-1]


def get_userdata(name: str) -> Any:
    """Return the userdata element ``name``."""
    userdata = _current()
    if name not in userdata:
        raise KeyError(f"no user-data element '{name}' is found.")
    return userdata[name]


def get_userdata_double(name: str) -> np.ndarray:
    """Return userdata element ``name`` as a read-only float64 array."""
    value = np.array(get_userdata(name), dtype=np.float64, ndmin=1)
    value.flags.writeable = False
    return value


def get_userdata_int(name: str) -> np.ndarray:
    """Return userdata element ``name`` as a read-only int32 array."""
    raw = np.asarray(get_userdata(name))
    if raw.dtype.kind not in "biu":
        raise TypeError(f"user-data element '{name}' is not an integer.")
    value = np.array(raw, dtype=np.int32, ndmin=1)
    value.flags.writeable = False
    return value
