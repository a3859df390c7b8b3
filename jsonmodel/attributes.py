#  -*- coding: utf-8 -*-
"""
Class-body declarations understood by ``Model`` and ``Array``.

- ``JsonAttribute``: a serialised attribute, with element type, default,
  render policy, validation and optional custom (de)serialisation.
- ``FixedAttribute``: a constant that is always rendered and can never be
  changed.
- ``AfterLoadCallback`` / ``after_load``: hooks fired after a successful load.
- ``SelectType`` / ``SelectInstance``: values a custom load function may
  return to steer how the raw value is materialised.
"""

from __future__ import annotations

import copy

from dataclasses import dataclass

from jsonmodel.errors import ConfigurationError, ImmutableAttributeError
from jsonmodel.utils import dump_primitive, is_primitive_type, positional_arity, values_equal
from jsonmodel.validation import Check, build_validators

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Any, Callable, TypeAlias, Self


Loader: TypeAlias = Callable[..., Any]
"""Custom load function: ``f(value)`` or ``f(value, parent_tree)``"""

Dumper: TypeAlias = Callable[..., Any]
"""Custom dump function: ``f(value)`` or ``f(value, owner)``"""


def _check_arity(func: Callable | None, what: str, second: str) -> None:
    if func is None:
        return

    if not callable(func):
        raise ConfigurationError(f"{what} must be callable, got {type(func).__name__}")

    if positional_arity(func) not in (-1, 1, 2):
        raise ConfigurationError(f"{what} must take 1 (value) or 2 (value, {second}) arguments")


def call_with_arity(func: Callable, value: Any, extra: Any) -> Any:
    """Call ``func(value, extra)`` when it takes two arguments, ``func(value)`` otherwise."""
    if positional_arity(func) == 2:
        return func(value, extra)

    return func(value)


class JsonAttribute:

    # ========== ========== ========== ========== ========== class attributes
    __slots__ = ('element_type', '_default', 'render_default', 'validation', 'validators',
                 '_serialize_with', '_deserialize_with', '_loader', '_dumper',
                 'name', 'private_name', 'owner', '__doc__', '__weakref__')

    # ========== ========== ========== ========== ========== special methods
    def __init__(self,
                 element_type: type | None = None,
                 *,
                 default: Any = None,
                 render_default: bool = True,
                 validation: Any = None,
                 serialize_with: Dumper | None = None,
                 deserialize_with: Loader | None = None,
                 loader: Loader | None = None,
                 dumper: Dumper | None = None,
                 doc: str | None = None) -> None:
        """
        Descriptor declaring a JSON-serialised attribute.

        Parameters
        ----------
        element_type : type, optional
            ``int``, ``float``, ``str``, an ``Enum`` subclass, ``datetime.date``,
            ``datetime.datetime`` or a ``Model``/``Array`` subclass. When omitted
            raw JSON values are stored as they are.
        default : object or callable, optional
            Default value. Callables are invoked with no arguments; any other
            value is shallow-copied for each instance. ``None`` means no default.
        render_default : bool, default True
            If False, the attribute is omitted from dumps while it still holds
            its default.
        validation : mapping or callable, optional
            Validation options, see :py:func:`jsonmodel.validation.build_validators`.
        serialize_with : callable, optional
            Dump function taking ``(value)`` or ``(value, owner)``.
        deserialize_with : callable, optional
            Load function taking ``(value)`` or ``(value, parent_tree)``.
        doc : str, optional
            Docstring of the attribute.

        Examples
        --------
        >>> class Cell(Model):
        ...     text = JsonAttribute(str, default='')
        ...     color = JsonAttribute(Color, default=Color.BLACK, render_default=False)
        ...
        ...     @JsonAttribute(int).loader
        ...     def width(value, parent):
        ...         return value or parent.get('default_width')
        """

        if element_type is not None and not self._is_valid_element_type(element_type):
            raise ConfigurationError(f"Invalid element type {element_type!r}. Expected a primitive type, "
                                     f"an Enum subclass or a class that can load from JSON")

        if loader is not None and deserialize_with is not None:
            raise ConfigurationError("Cannot specify both a loader function and deserialize_with")

        if dumper is not None and serialize_with is not None:
            raise ConfigurationError("Cannot specify both a dumper function and serialize_with")

        _check_arity(loader or deserialize_with, 'Load function', 'parent_tree')
        _check_arity(dumper or serialize_with, 'Dump function', 'owner')

        self.element_type: type | None = element_type
        self._default: Any = default
        self.render_default: bool = render_default
        self.validation: Any = validation
        self.validators: tuple[Check, ...] = build_validators(validation)

        self._serialize_with: Dumper | None = serialize_with
        self._deserialize_with: Loader | None = deserialize_with
        self._loader: Loader | None = loader
        self._dumper: Dumper | None = dumper

        self.__doc__: str | None = loader.__doc__ if doc is None and loader is not None else doc

        self.name: str | None = None
        self.owner: type | None = None
        self.private_name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.owner = owner
        self.private_name = f"_json_attribute__{name}"

    def __get__(self, instance: object | None, owner: type) -> Any:
        if instance is None:
            return self

        return instance.__dict__.get(self.private_name)

    def __set__(self, instance: object, value: Any) -> None:
        instance.__dict__[self.private_name] = value
        instance.__dict__.setdefault('_json_default_attributes', set()).discard(self.name)

    def __repr__(self) -> str:
        type_name = getattr(self.element_type, '__name__', None)
        return f"{type(self).__name__}(name={self.name!r}, element_type={type_name})"

    # ========== ========== ========== ========== ========== decorators
    def _replace(self, **changes: Any) -> Self:
        options = dict(default=self._default,
                       render_default=self.render_default,
                       validation=self.validation,
                       serialize_with=self._serialize_with,
                       deserialize_with=self._deserialize_with,
                       loader=self._loader,
                       dumper=self._dumper,
                       doc=self.__doc__)
        options.update(changes)
        return type(self)(self.element_type, **options)

    def loader(self, func: Loader) -> Self:
        """Attach a block-style load function."""
        return self._replace(loader=func, doc=self.__doc__ or func.__doc__)

    def dumper(self, func: Dumper) -> Self:
        """Attach a block-style dump function."""
        return self._replace(dumper=func)

    # ========== ========== ========== ========== ========== public methods
    @staticmethod
    def _is_valid_element_type(element_type: Any) -> bool:
        if is_primitive_type(element_type):
            return True

        return isinstance(element_type, type) and hasattr(element_type, 'load_from_json')

    @property
    def load_function(self) -> Loader | None:
        return self._loader or self._deserialize_with

    @property
    def dump_function(self) -> Dumper | None:
        return self._dumper or self._serialize_with

    @property
    def has_default(self) -> bool:
        return self._default is not None

    def get_default_value(self) -> Any:
        """A fresh default value: called if callable, shallow-copied otherwise."""
        if callable(self._default):
            return self._default()

        return copy.copy(self._default)

    def initialize(self, instance: object) -> None:
        """Store the default on ``instance`` without counting as an explicit set."""
        if self.has_default:
            instance.__dict__[self.private_name] = self.get_default_value()
            instance.__dict__.setdefault('_json_default_attributes', set()).add(self.name)

        else:
            instance.__dict__[self.private_name] = None

    def is_default(self, instance: object) -> bool:
        return self.name in instance.__dict__.get('_json_default_attributes', ())

    def dump_value(self, instance: object) -> Any:
        """The JSON form of this attribute's value on ``instance``."""
        value = self.__get__(instance, type(instance))

        if hasattr(value, 'dump_to_json'):
            value = value.dump_to_json()

        elif self.dump_function is None:
            value = dump_primitive(value)

        if self.dump_function is not None:
            return call_with_arity(self.dump_function, value, instance)

        return value

    def validate_value(self, value: Any) -> list[str]:
        """Messages produced by this attribute's validators for ``value``."""
        messages = []

        for check in self.validators:
            messages.extend(check(value))

        return messages


def json_attribute(element_type: type | None = None, **options: Any) -> Callable[[Loader], JsonAttribute]:
    """
    Declare an attribute whose load function is the decorated function.

    Examples
    --------
    >>> class Sheet(Model):
    ...     @json_attribute(int, default=10)
    ...     def width(value, parent):
    ...         return value * parent.get('scale', 1)
    """

    def decorator(func: Loader) -> JsonAttribute:
        return JsonAttribute(element_type, loader=func, **options)

    return decorator


class FixedAttribute:

    __slots__ = ('value', 'name', 'owner', '__doc__')

    def __init__(self, value: Any, *, doc: str | None = None) -> None:
        """
        A constant attribute.

        Reading returns the constant; setting it to an equal value is accepted
        and ignored, any other value raises ``ImmutableAttributeError``. Fixed
        attributes always appear in dumps and overwrite the input on load.
        """
        self.value: Any = value
        self.__doc__: str | None = doc
        self.name: str | None = None
        self.owner: type | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.owner = owner

    def __get__(self, instance: object | None, owner: type) -> Any:
        if instance is None:
            return self

        return self.value

    def __set__(self, instance: object, value: Any) -> None:
        if not values_equal(self.value, value):
            raise ImmutableAttributeError(type(instance).__name__, self.name, self.value, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


# ========== ========== ========== ========== ========== callbacks
@dataclass(frozen=True)
class AfterLoadCallback:
    """A hook invoked after load: either a method name or a callable taking the object."""

    method_name: str | None = None
    callback: Callable[[Any], Any] | None = None

    def __post_init__(self) -> None:
        if self.method_name is None and self.callback is None:
            raise ConfigurationError("An after-load callback needs either a method name or a callback")

        if self.method_name is not None and self.callback is not None:
            raise ConfigurationError("An after-load callback cannot have both a method name and a callback")

        if self.callback is not None and not callable(self.callback):
            raise ConfigurationError(f"callback must be callable, got {type(self.callback).__name__}")

    def invoke(self, obj: Any) -> Any:
        if self.method_name is not None:
            return getattr(obj, self.method_name)()

        return self.callback(obj)


def after_load(method: Callable | str | None = None, *,
               callback: Callable[[Any], Any] | None = None) -> Any:
    """
    Register code to run after an object has been loaded.

    Three forms are accepted in a class body::

        @after_load
        def compute_totals(self): ...

        refresh = after_load('compute_totals')

        log_it = after_load(callback=lambda obj: print(obj))

    Callbacks fire in ancestry order (base classes first, then declaration
    order within a class).
    """
    if callable(method) and callback is None:
        method.__json_after_load__ = True
        return method

    if callable(method):
        raise ConfigurationError("Cannot give both a decorated method and a callback to after_load")

    return AfterLoadCallback(method_name=method, callback=callback)


# ========== ========== ========== ========== ========== load results
@dataclass(frozen=True)
class SelectType:
    """Load result telling the codec to instantiate ``cls`` and load the raw value into it."""
    cls: type


@dataclass(frozen=True)
class SelectInstance:
    """Load result telling the codec to load the raw value into ``instance``."""
    instance: Any


__all__ = [
    'JsonAttribute',
    'json_attribute',
    'FixedAttribute',
    'AfterLoadCallback',
    'after_load',
    'SelectType',
    'SelectInstance',
]
