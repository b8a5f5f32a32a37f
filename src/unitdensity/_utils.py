"""Shared helpers for attrs configuration containers and arrays."""

from typing import Any, Callable, Type, Union

import numpy as np
from attrs import Attribute, fields, has

PrecisionDType = Union[Type[np.float32], Type[np.float64]]

ALLOWED_PRECISIONS = {np.dtype(np.float32), np.dtype(np.float64)}


def in_attr(name, attrs_class_instance):
    """Checks if a name is in the attributes of a class instance."""
    field_names = {field.name for field in
                   fields(attrs_class_instance.__class__)}
    return name in field_names or ("_" + name) in field_names


def is_attrs_class(putative_class_instance):
    """Checks if the given object is an attrs class instance."""
    return has(putative_class_instance)


def precision_converter(value: Any) -> PrecisionDType:
    """Return the numpy scalar type matching ``value``.

    Parameters
    ----------
    value
        Anything accepted by :func:`numpy.dtype`.

    Returns
    -------
    type
        ``numpy.float32`` or ``numpy.float64``.

    Raises
    ------
    ValueError
        If ``value`` is not one of the supported floating-point precisions.
    """
    dtype = np.dtype(value)
    if dtype not in ALLOWED_PRECISIONS:
        raise ValueError(
            f"precision must be float32 or float64, got {dtype}."
        )
    return dtype.type


def precision_validator(
    instance: Any, attribute: Attribute, value: Any
) -> None:
    """attrs validator rejecting unsupported precisions."""
    if np.dtype(value) not in ALLOWED_PRECISIONS:
        raise ValueError(
            f"{attribute.name} must be float32 or float64, got {value}."
        )


def getype_validator(dtype: type, minimum: Any) -> Callable:
    """Return an attrs validator checking type and ``value >= minimum``."""

    def _validator(instance: Any, attribute: Attribute, value: Any) -> None:
        if not isinstance(value, dtype):
            raise TypeError(
                f"{attribute.name} must be {dtype.__name__}, "
                f"got {type(value).__name__}."
            )
        if value < minimum:
            raise ValueError(
                f"{attribute.name} must be >= {minimum}, got {value}."
            )

    return _validator


def callable_validator(
    instance: Any, attribute: Attribute, value: Any
) -> None:
    """attrs validator accepting ``None`` or any callable."""
    if value is not None and not callable(value):
        raise TypeError(
            f"{attribute.name} must be callable or None, "
            f"got {type(value).__name__}."
        )


def name_tuple_converter(value: Any) -> tuple:
    """Normalise a name sequence (or ``None``) into a tuple of strings."""
    if value is None:
        return tuple()
    if isinstance(value, str):
        return (value,)
    return tuple(str(name) for name in value)
