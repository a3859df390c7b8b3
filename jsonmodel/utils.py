#  -*- coding: utf-8 -*-
"""
Helpers shared by the model and array codecs.

This module holds the pieces of the load/dump engine that do not depend on
any model class:

- the indifferent tree (``IndifferentDict``), a ``dict`` whose keys may be
  referenced by string, by attribute access or by an ``Enum`` member,
- the primitive coercions applied to declared element types at load time,
- the conversion of Python values to JSON primitives at dump time,
- small introspection helpers (arity, qualified names).
"""

from __future__ import annotations

import datetime
import inspect
import json

from collections.abc import Mapping
from enum import Enum

import numpy

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Any, Callable


PRIMITIVE_TYPES: tuple[type, ...] = (int, float, str, datetime.date, datetime.datetime)
"""Element types that are coerced directly rather than loaded as models"""


# ========== ========== ========== ========== ========== ==========
def get_full_qualified_name(cls: type) -> str:
    """
    Return ``"<module>.<qualname>"`` for ``cls``, or just the qualname for builtins.

    Parameters
    ----------
    cls : type
        The class to identify.

    Returns
    -------
    str
        Fully qualified name, used in error messages.
    """
    module = cls.__module__

    if module is None or module == 'builtins':
        return cls.__qualname__

    return f"{module}.{cls.__qualname__}"


def positional_arity(func: Callable) -> int:
    """
    Number of positional parameters ``func`` accepts.

    Returns -1 when the function takes ``*args`` or its signature cannot be
    inspected (some builtins). Callers treat -1 as "call with one argument".
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return -1

    count = 0

    for parameter in signature.parameters.values():

        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return -1

        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY,
                              inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1

    return count


def is_present(value: Any) -> bool:
    """Truthiness as JSON sees it: only ``None`` and ``False`` are absent."""
    return value is not None and value is not False


def is_blank(data: Any) -> bool:
    """True for ``None`` and for strings made only of whitespace."""
    if data is None:
        return True

    if isinstance(data, (str, bytes, bytearray)):
        return not data.strip()

    return False


def parse_json_input(data: Any) -> Any:
    """Parse JSON text; already-parsed trees are returned unchanged."""
    if isinstance(data, (str, bytes, bytearray)):
        return json.loads(data)

    return data


# ========== ========== ========== ========== ========== indifferent tree
class IndifferentDict(dict):
    """
    A ``dict`` whose keys can be referenced indifferently.

    Keys are normalised to strings on every access, so ``tree['type']``,
    ``tree.type`` and ``tree[Kind.TYPE]`` (for an ``Enum`` whose value or
    name is ``'type'``) all address the same entry. Because it is a plain
    ``dict`` subclass it compares equal to, and encodes like, ordinary dicts.

    Examples
    --------
    >>> data = IndifferentDict({'type': 'text'})
    >>> data.type
    'text'
    >>> 'type' in data
    True
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.update(*args, **kwargs)

    @staticmethod
    def normalize_key(key: Any) -> Any:
        if isinstance(key, Enum):
            return key.value if isinstance(key.value, str) else key.name

        if isinstance(key, str) or key is None:
            return key

        return str(key)

    def __getitem__(self, key: Any) -> Any:
        return super().__getitem__(self.normalize_key(key))

    def __setitem__(self, key: Any, value: Any) -> None:
        super().__setitem__(self.normalize_key(key), value)

    def __delitem__(self, key: Any) -> None:
        super().__delitem__(self.normalize_key(key))

    def __contains__(self, key: Any) -> bool:
        return super().__contains__(self.normalize_key(key))

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)

        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"'{type(self).__name__}' has no key '{name}'") from None

    def get(self, key: Any, default: Any = None) -> Any:
        return super().get(self.normalize_key(key), default)

    def pop(self, key: Any, *args: Any) -> Any:
        return super().pop(self.normalize_key(key), *args)

    def setdefault(self, key: Any, default: Any = None) -> Any:
        return super().setdefault(self.normalize_key(key), default)

    def update(self, *args: Any, **kwargs: Any) -> None:
        for key, value in dict(*args, **kwargs).items():
            self[key] = value

    def copy(self) -> IndifferentDict:
        return type(self)(self)


def recursively_make_indifferent(value: Any) -> Any:
    """
    Normalise a parsed JSON tree so every mapping is an ``IndifferentDict``.

    Lists and tuples are rebuilt as lists with their elements normalised.
    Anything else is returned unchanged.
    """
    if isinstance(value, Mapping):
        return IndifferentDict((k, recursively_make_indifferent(v)) for k, v in value.items())

    if isinstance(value, (list, tuple)):
        return [recursively_make_indifferent(v) for v in value]

    return value


# ========== ========== ========== ========== ========== primitives
def is_primitive_type(element_type: Any) -> bool:
    """True for the element types coerced by ``coerce_primitive``."""
    if element_type in PRIMITIVE_TYPES:
        return True

    return isinstance(element_type, type) and issubclass(element_type, Enum)


def coerce_primitive(element_type: type, value: Any) -> Any:
    """
    Convert a raw JSON value into ``element_type``.

    Parameters
    ----------
    element_type : type
        One of ``int``, ``float``, ``str``, ``datetime.date``,
        ``datetime.datetime`` or an ``Enum`` subclass.
    value : object
        Raw value. Values already of the target type are returned as they are.

    Returns
    -------
    object
        The coerced value.

    Raises
    ------
    ValueError
        If the value cannot be converted, e.g. a malformed ISO-8601 string.
    """
    if isinstance(value, element_type) and not isinstance(value, bool):
        return value

    if element_type is datetime.datetime:
        return datetime.datetime.fromisoformat(value)

    if element_type is datetime.date:
        return datetime.date.fromisoformat(value)

    return element_type(value)


def dump_primitive(value: Any) -> Any:
    """
    Convert a Python value into JSON primitives.

    Nested models are dumped, dates become ISO-8601 strings, enum members
    their values and NumPy scalars/arrays plain numbers/lists. Mappings and
    sequences are converted recursively.
    """
    if value is None:
        return None

    if hasattr(value, 'dump_to_json'):
        return value.dump_to_json()

    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, numpy.ndarray):
        return value.tolist()

    if isinstance(value, numpy.generic):
        return value.item()

    if isinstance(value, Mapping):
        return {k: dump_primitive(v) for k, v in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [dump_primitive(v) for v in value]

    return value


def values_equal(a: Any, b: Any) -> bool:
    """
    Equality used by change tracking and model comparison.

    Uses ``numpy.all`` so that array-valued attributes compare element-wise.
    """
    if a is b:
        return True

    try:
        return bool(numpy.all(a == b))
    except ValueError:
        # element-wise comparison of arrays with mismatching shapes
        return False
