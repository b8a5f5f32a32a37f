"""Base classes for building and caching compiled evaluation kernels."""

from hashlib import sha256
from abc import ABC, abstractmethod
from typing import Set, Any, Tuple, Dict

from attrs import define, field, fields, Attribute, astuple
from numpy import (
    array_equal,
    asarray,
    ndarray,
    dtype as np_dtype,
)
from numba import from_dtype

from unitdensity._utils import (
    in_attr,
    is_attrs_class,
    PrecisionDType,
    precision_validator,
    precision_converter,
)


def _hash_tuple(input: Tuple) -> str:
    """Serialize a value tuple to a stable SHA256 hexdigest.

    Parameters
    ----------
    input
        Tuple to serialize.

    Returns
    -------
    str
        Digest of the string representation of every element.
    """
    parts = []
    for value in input:
        if value is None:
            parts.append("None")
        elif isinstance(value, ndarray):
            array_hash = sha256(value.tobytes()).hexdigest()
            parts.append(f"ndarray:{array_hash}")
        else:
            parts.append(str(value))
    combined = "|".join(parts)
    return sha256(combined.encode("utf-8")).hexdigest()


def attribute_is_hashable(attribute: Attribute, value: Any) -> bool:
    """Return False for fields marked ``eq=False`` (callables, hooks)."""
    return attribute.eq is not False


@define
class KernelConfig:
    """Base class for settings containers that drive a kernel build.

    Provides updating and hashing logic. Subclasses are defined with
    ``@attrs.define``.

    .. warning::

        **All field modifications MUST be done via the :meth:`update`
        method.** Direct attribute assignment skips the hash refresh that
        the owning factory relies on to invalidate its cache.

    Notes
    -----
    Fields declared with ``eq=False`` are excluded from the hash; use this
    for callables and other objects without a meaningful value identity.
    """

    precision: PrecisionDType = field(
        validator=precision_validator, converter=precision_converter
    )
    _values_hash: str = field(default="", init=False, repr=False, eq=False)
    _field_map: Dict[str, Attribute] = field(
        factory=dict, init=False, repr=False, eq=False
    )

    def __attrs_post_init__(self):
        field_map = {}
        for fld in fields(type(self)):
            if fld.name in ("_values_hash", "_field_map"):
                continue
            field_map[fld.name] = fld
            if fld.alias is not None:
                field_map[fld.alias] = fld
        self._field_map = field_map
        self._values_hash = self._generate_values_hash()

    def update(
        self, updates_dict: dict = None, **kwargs
    ) -> Tuple[Set[str], Set[str]]:
        """Update configuration fields with new values.

        Parameters
        ----------
        updates_dict
            Mapping of setting names to new values. Underscored fields are
            addressed by their public alias (``"style"`` for ``_style``).
        **kwargs
            Additional settings to update.

        Returns
        -------
        tuple[set[str], set[str]]
            recognized: Names of settings that matched known fields.
            changed: Names of settings whose values were updated.

        Notes
        -----
        Values pass through the field's converter and validator before
        being stored, so an invalid update raises and leaves the config
        untouched.
        """
        if updates_dict is None:
            updates_dict = {}
        updates_dict = updates_dict.copy()
        updates_dict.update(kwargs)
        if not updates_dict:
            return set(), set()

        recognized = set()
        changed = set()

        for key, value in updates_dict.items():
            fld = self._field_map.get(key)
            if fld is None:
                continue
            recognized.add(key)

            if fld.converter is not None:
                value = fld.converter(value)
            if fld.validator is not None:
                fld.validator(self, fld, value)

            old_value = getattr(self, fld.name)
            if isinstance(old_value, ndarray) or isinstance(value, ndarray):
                value_changed = not array_equal(
                    asarray(old_value), asarray(value)
                )
            elif fld.eq is False:
                value_changed = old_value is not value
            else:
                value_changed = old_value != value

            if value_changed:
                object.__setattr__(self, fld.name, value)
                changed.add(key)

        if changed:
            self._values_hash = self._generate_values_hash()

        return recognized, changed

    def _generate_values_hash(self) -> str:
        return _hash_tuple(self.values_tuple)

    @property
    def values_tuple(self) -> Tuple:
        """Tuple of all attrs field values without eq=False."""
        return astuple(self, recurse=True, filter=attribute_is_hashable)

    @property
    def values_hash(self) -> str:
        """SHA256 hexdigest of :attr:`values_tuple`."""
        return self._values_hash

    @property
    def numba_precision(self) -> type:
        """Return the Numba dtype associated with ``precision``."""
        return from_dtype(np_dtype(self.precision))


@define
class KernelCache:
    """Base class for containers of built kernel outputs."""

    pass


class KernelFactory(ABC):
    """Factory for creating and caching compiled kernels.

    Subclasses implement :meth:`build` to construct Numba-compiled
    functions. Settings are stored as a :class:`KernelConfig` and any
    change to them invalidates the cache so the kernel is rebuilt on next
    access.

    .. warning::

        **All settings modifications MUST be done via
        :meth:`update_compile_settings`.**

    Notes
    -----
    Always fetch :attr:`kernel` at the point of use. Holding on to a kernel
    across a settings update keeps the stale build alive.
    """

    def __init__(self):
        self._compile_settings = None
        self._cache_valid = True
        self._cache = None

    @abstractmethod
    def build(self):
        """Build and return a :class:`KernelCache` instance."""
        return None

    def setup_compile_settings(self, compile_settings):
        """Attach a container of compile-critical settings to the object.

        Parameters
        ----------
        compile_settings : attrs class
            Settings object used to configure the kernel.
        """
        if not is_attrs_class(compile_settings):
            raise TypeError(
                "Compile settings must be an attrs class instance."
            )
        self._compile_settings = compile_settings
        self._invalidate_cache()

    @property
    def cache_valid(self):
        """bool: ``True`` if cached outputs are up to date."""
        return self._cache_valid

    @property
    def kernel(self):
        """Return the compiled kernel, building it if necessary."""
        return self.get_cached_output("kernel")

    @property
    def compile_settings(self):
        """Return the current compile settings object."""
        return self._compile_settings

    def update_compile_settings(
        self, updates_dict=None, silent=False, **kwargs
    ) -> Set[str]:
        """Update compile settings with new values.

        Parameters
        ----------
        updates_dict : dict, optional
            Mapping of setting names to new values.
        silent : bool, default=False
            Suppress errors for unrecognised parameters.
        **kwargs
            Additional settings to update.

        Returns
        -------
        set[str]
            Names of settings that were recognised.

        Raises
        ------
        ValueError
            If compile settings have not been set up.
        KeyError
            If an unrecognised parameter is supplied and ``silent`` is
            ``False``.
        """
        if updates_dict is None:
            updates_dict = {}
        updates_dict = updates_dict.copy()
        updates_dict.update(kwargs)
        if updates_dict == {}:
            return set()

        if self._compile_settings is None:
            raise ValueError(
                "Compile settings must be set up using "
                "self.setup_compile_settings before updating."
            )
        recognized, changed = self._compile_settings.update(updates_dict)

        unrecognised = set(updates_dict.keys()) - recognized
        if unrecognised and not silent:
            invalid = ", ".join(sorted(unrecognised))
            raise KeyError(
                f"'{invalid}' is not a valid compile setting for this "
                "object, and so was not updated.",
            )
        if changed:
            self._invalidate_cache()

        return recognized

    def _invalidate_cache(self):
        """Mark cached kernels as invalid."""
        self._cache_valid = False

    def _build(self):
        """Rebuild cached outputs if they are invalid."""
        build_result = self.build()

        if not isinstance(build_result, KernelCache):
            raise TypeError(
                "build() must return an attrs class (KernelCache subclass)"
            )

        self._cache = build_result
        self._cache_valid = True

    def get_cached_output(self, output_name):
        """Return a named cached output.

        Parameters
        ----------
        output_name : str
            Name of the cached item to retrieve.

        Raises
        ------
        KeyError
            If ``output_name`` is not present in the cache.
        """
        if not self.cache_valid:
            self._build()
        if self._cache is None:
            raise RuntimeError("Cache has not been initialized by build().")
        if not in_attr(output_name, self._cache):
            raise KeyError(
                f"Output '{output_name}' not found in cached outputs."
            )
        return getattr(self._cache, output_name)

    @property
    def config_hash(self):
        """Hash of the current compile settings."""
        return self.compile_settings.values_hash

    @property
    def precision(self) -> type:
        """Return the precision dtype used by compiled kernels."""
        return self.compile_settings.precision

    @property
    def numba_precision(self) -> type:
        """Return the Numba dtype used by compiled kernels."""
        return self.compile_settings.numba_precision
