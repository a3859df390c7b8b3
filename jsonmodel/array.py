#  -*- coding: utf-8 -*-
"""
Arrays: list-like objects loaded from and dumped to JSON arrays.

An ``Array`` subclass declares exactly one serialization strategy in its
class body:

- ``array_of(cls)``: every element is a primitive (``int``, ``float``,
  ``str``, an ``Enum``, ``date``, ``datetime``) or a ``Model`` subclass,
- ``polymorphic_array_by(factory)``: a function chooses the class of each
  element from its raw data,
- ``json_array(serialize=..., deserialize=...)``: fully custom element
  conversion.

Examples
--------
>>> class Scores(Array):
...     serialization = array_of(int, nil_data_to_empty_array=True)
>>> scores = Scores.load('[1, "2", 3]')
>>> list(scores)
[1, 2, 3]
>>> Scores.load(None).values
[]
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Mapping, MutableSequence

from jsonmodel.errors import ArgumentError, ConfigurationError
from jsonmodel.model import Model
from jsonmodel.schema import JsonModelBase, SerializationTuple, load_instance
from jsonmodel.utils import (coerce_primitive, dump_primitive, is_blank, is_primitive_type,
                             parse_json_input, positional_arity, recursively_make_indifferent, values_equal)
from jsonmodel.validation import Errors, Validatable

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Any, Callable, TypeAlias


logger = logging.getLogger(__name__)

ItemValidator: TypeAlias = Callable[..., None] | str
"""``f(value, index, errors)``, ``f(value, index, errors, array)`` or a method name"""


# ========== ========== ========== ========== ========== strategies
def _check_converter(converter: Any, what: str) -> None:
    if isinstance(converter, str):
        return

    if not callable(converter):
        raise ConfigurationError(f"{what} must be a callable or the name of a method of the array class")

    if positional_arity(converter) not in (-1, 1):
        raise ConfigurationError(f"{what} function must take exactly one argument")


def _check_item_validator(validate: Any) -> None:
    if validate is None or isinstance(validate, str):
        return

    if not callable(validate):
        raise ConfigurationError("validate must be a callable or the name of a method of the array class")

    if positional_arity(validate) not in (-1, 3, 4):
        raise ConfigurationError("validate function must take (value, index, errors) or (value, index, errors, array)")


def json_array(*,
               serialize: Callable[[Any], Any] | str,
               deserialize: Callable[[Any], Any] | str,
               validate: ItemValidator | None = None,
               nil_data_to_empty_array: bool = False) -> SerializationTuple:
    """
    Declare custom element conversion for an array class.

    Parameters
    ----------
    serialize, deserialize : callable or str
        One-argument functions, or names of one-argument methods of the array
        class, converting an element to and from its JSON form.
    validate : callable or str, optional
        Per-element validator receiving ``(value, index, errors)``, or
        ``(value, index, errors, array)`` when it takes four arguments. A
        method name is called as ``method(value, index)``.
    nil_data_to_empty_array : bool, default False
        Load ``None`` as an empty array instead of no array at all.
    """
    _check_converter(serialize, 'serialize')
    _check_converter(deserialize, 'deserialize')
    _check_item_validator(validate)

    return SerializationTuple(serialize=serialize,
                              deserialize=deserialize,
                              validate=validate,
                              nil_data_to_empty_array=nil_data_to_empty_array)


def validator_for_item_type(element_type: type, validate: ItemValidator | None = None) -> Callable[..., None]:
    """
    Element validator checking the runtime type of every element.

    Runs ``validate`` afterwards, with the call shape matching its arity.
    """

    def validate_item(value: Any, index: int, errors: Errors, owner: Array) -> None:
        wrong_type = not isinstance(value, element_type)

        if isinstance(value, bool) and element_type is not bool:
            wrong_type = True

        if wrong_type:
            errors.add('values', f"Element {index} must be of type {element_type.__name__} "
                                 f"but is of type {type(value).__name__}")

        if validate is not None:
            owner.call_item_validator(validate, value, index)

    return validate_item


def array_of(element_type: type,
             validate: ItemValidator | None = None,
             nil_data_to_empty_array: bool = False) -> SerializationTuple:
    """
    Declare an array whose elements all have the same type.

    Parameters
    ----------
    element_type : type
        ``int``, ``float``, ``str``, an ``Enum`` subclass, ``datetime.date``,
        ``datetime.datetime`` or a ``Model`` subclass. Model elements are
        resolved polymorphically one by one.
    validate : callable or str, optional
        Extra per-element validator, see ``json_array``. Runs after the
        element type check.
    nil_data_to_empty_array : bool, default False
        Load ``None`` as an empty array.
    """
    is_model = isinstance(element_type, type) and issubclass(element_type, Model)

    if not is_primitive_type(element_type) and not is_model:
        raise ConfigurationError(f"array_of requires a Model subclass or one of int, float, str, an Enum, "
                                 f"date or datetime. Received {element_type!r}")

    _check_item_validator(validate)

    def deserialize(raw: Any) -> Any:
        if raw is None:
            return None

        if is_model:
            return load_instance(element_type, raw)

        return coerce_primitive(element_type, raw)

    return SerializationTuple(serialize=dump_primitive,
                              deserialize=deserialize,
                              validate=validator_for_item_type(element_type, validate),
                              nil_data_to_empty_array=nil_data_to_empty_array,
                              element_type=element_type)


def polymorphic_array_by(factory: Callable[[Any], type | None] | None = None, *,
                         validate: ItemValidator | None = None,
                         nil_data_to_empty_array: bool = False) -> Any:
    """
    Declare an array whose element classes are chosen from the element data.

    Usable directly, ``items = polymorphic_array_by(choose)``, or as a
    decorator, with or without options::

        @polymorphic_array_by(nil_data_to_empty_array=True)
        def cells(data):
            return TextCell if data['type'] == 'text' else NumberCell

    ``factory`` takes one raw element and returns the class to load it
    into, or None to store None. The chosen class is narrowed by its own
    polymorphic factories before it is instantiated.
    """
    if factory is None:

        def decorator(func: Callable[[Any], type | None]) -> SerializationTuple:
            return polymorphic_array_by(func, validate=validate, nil_data_to_empty_array=nil_data_to_empty_array)

        return decorator

    if not callable(factory) or positional_arity(factory) != 1:
        raise ConfigurationError("polymorphic_array_by requires a factory taking exactly one argument")

    _check_item_validator(validate)

    def deserialize(raw: Any) -> Any:
        cls = factory(raw)

        if cls is None:
            return None

        return load_instance(cls, raw)

    return SerializationTuple(serialize=dump_primitive,
                              deserialize=deserialize,
                              validate=validate,
                              nil_data_to_empty_array=nil_data_to_empty_array,
                              factory=factory)


# ========== ========== ========== ========== ========== array
class Array(JsonModelBase, MutableSequence):
    """
    Base class of JSON-backed arrays.

    Behaves as a mutable sequence over ``values``. ``values`` may be None,
    which is how an array loaded from ``null`` (without
    ``nil_data_to_empty_array``) looks; it then reads as empty.
    """

    # ========== ========== ========== ========== ========== special methods
    def __init__(self, *args: Any, values: Iterable | None = None) -> None:
        super().__init__()

        if len(args) > 1:
            raise ArgumentError(f"{type(self).__name__} takes at most one positional argument")

        if args and args[0] is not None and values is not None:
            raise ArgumentError(f"Can only specify either an array or values for {type(self).__name__}")

        if args and args[0] is not None:
            values = args[0]

        self.values: list | None = [] if values is None else list(values)
        self._json_values_set: bool = False

        self.clear_changes()

    def __getitem__(self, index: int | slice) -> Any:
        return self.values[index]

    def __setitem__(self, index: int | slice, value: Any) -> None:
        self.values[index] = value

    def __delitem__(self, index: int | slice) -> None:
        del self.values[index]

    def __len__(self) -> int:
        return 0 if self.values is None else len(self.values)

    def __iter__(self):
        return iter(self.values or ())

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented

        return values_equal(self.values, other.values)

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.values!r})"

    # ========== ========== ========== ========== ========== protected methods
    def _serialization(self) -> SerializationTuple:
        serialization = type(self).json_ancestry.serialization

        if serialization is None:
            raise ConfigurationError(f"{type(self).__name__} is not configured. Declare one of array_of, "
                                     f"polymorphic_array_by or json_array in its class body")

        return serialization

    def _convert(self, converter: Callable[[Any], Any] | str, value: Any) -> Any:
        if isinstance(converter, str):
            return getattr(self, converter)(value)

        return converter(value)

    def _validate_json(self) -> None:
        if not isinstance(self.values, list):
            self.errors.add('values', f"{type(self).__name__} values must be a list")
            return

        serialization = type(self).json_ancestry.serialization

        for index, value in enumerate(self.values):

            if isinstance(value, Validatable):
                self.merge_child_errors(value, f"[{index}]")

            if serialization is not None and serialization.validate is not None:
                self.call_item_validator(serialization.validate, value, index)

    # ========== ========== ========== ========== ========== public methods
    @classmethod
    def load(cls, data: Any) -> Array | None:
        """
        Load an instance from JSON text or an already parsed list.

        ``None`` and blank strings give ``None``, unless the class chosen for
        an empty array is declared with ``nil_data_to_empty_array``, in which
        case an empty instance with ``values_set`` False is returned.
        """
        if data is None or is_blank(data):
            concrete = cls.concrete_class_from_ancestry([])
            serialization = getattr(concrete, 'json_ancestry', None) and concrete.json_ancestry.serialization

            if serialization is not None and serialization.nil_data_to_empty_array:
                instance = concrete()
                instance.load_from_json(None)
                return instance

            return None

        tree = parse_json_input(data)

        if isinstance(tree, (Mapping, str, bytes)) or not isinstance(tree, Iterable):
            raise ArgumentError(f"Invalid value for {cls.__name__}.load. Expected array-like object, "
                                f"received {type(tree).__name__}")

        tree = recursively_make_indifferent(list(tree))
        concrete = cls.concrete_class_from_ancestry(tree)

        instance = concrete()
        instance.load_from_json(tree)

        return instance

    def load_from_json(self, data: Iterable | None) -> None:
        """
        Populate this array from a JSON array.

        ``None`` sets ``values`` to ``[]`` or None according to
        ``nil_data_to_empty_array`` and leaves ``values_set`` False; the
        after-load callbacks do not fire in that case.
        """
        self._json_loaded = True
        serialization = self._serialization()

        if data is None:
            self.values = [] if serialization.nil_data_to_empty_array else None
            self._json_values_set = False
            self.clear_changes()
            return

        if isinstance(data, (Mapping, str, bytes)) or not isinstance(data, Iterable):
            raise ArgumentError(f"Invalid value for {type(self).__name__}.load_from_json. "
                                f"Expected array-like object, received {type(data).__name__}")

        self._json_values_set = True
        self.values = [self._convert(serialization.deserialize, raw)
                       for raw in recursively_make_indifferent(list(data))]

        self.clear_changes()
        logger.debug(f"Loaded {type(self).__name__} with {len(self.values)} elements from JSON")

        self._run_after_load_callbacks()

    def dump_to_json(self) -> list | None:
        """Render the elements as a JSON array; None when ``values`` is None."""
        self._json_dumped = True
        serialization = self._serialization()

        if self.values is None:
            return None

        dumped = [self._convert(serialization.serialize, value) for value in self.values]
        self.clear_changes()

        return dumped

    def call_item_validator(self, validate: ItemValidator, value: Any, index: int) -> None:
        """Run a per-element validator with the call shape it declares."""
        if isinstance(validate, str):
            getattr(self, validate)(value, index)

        elif positional_arity(validate) == 4:
            validate(value, index, self.errors, self)

        else:
            validate(value, index, self.errors)

    def filter(self, predicate: Callable[[Any], bool]) -> Array:
        """A new array of the same class holding the elements satisfying ``predicate``."""
        return type(self)(values=[value for value in self if predicate(value)])

    select = filter

    def insert(self, index: int, value: Any) -> None:
        self.values.insert(index, value)

    def clear_changes(self) -> None:
        """Accept the current values as the new baseline."""
        self._json_baseline = None if self.values is None else list(self.values)

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def values_set(self) -> bool:
        """True once a non-null JSON array was loaded into this instance."""
        return self._json_values_set

    @property
    def changed(self) -> bool:
        """True if the elements differ from the baseline or an element reports a change."""
        if self.values is None or self._json_baseline is None:
            if self.values is not self._json_baseline:
                return True

        elif len(self.values) != len(self._json_baseline):
            return True

        elif not all(values_equal(a, b) for a, b in zip(self.values, self._json_baseline)):
            return True

        return any(isinstance(value, JsonModelBase) and value.changed for value in self)


__all__ = [
    'Array',
    'array_of',
    'polymorphic_array_by',
    'json_array',
    'validator_for_item_type',
]
