#  -*- coding: utf-8 -*-
"""
Models: objects with declared JSON attributes.

A ``Model`` subclass declares its attributes in the class body and gains
JSON load/dump, recursive validation, recursive change tracking and
polymorphic class selection at load time.

Examples
--------
>>> class BaseCell(Model):
...     @polymorphic_via
...     def choose(data):
...         return {'text': TextCell, 'number': NumberCell}.get(data.get('type'))
>>> class TextCell(BaseCell):
...     type = FixedAttribute('text')
...     text = JsonAttribute(str)
>>> class NumberCell(BaseCell):
...     type = FixedAttribute('number')
...     number = JsonAttribute(int)
>>> cell = BaseCell.load('{"type": "number", "number": 5}')
>>> type(cell).__name__, cell.number
('NumberCell', 5)
>>> cell.dump_to_json()
{'number': 5, 'type': 'number'}
"""

from __future__ import annotations

import copy
import json
import logging

from collections.abc import Mapping

from jsonmodel.attributes import SelectInstance, SelectType, call_with_arity
from jsonmodel.errors import ArgumentError
from jsonmodel.schema import JsonModelBase, load_instance, load_typed_value
from jsonmodel.utils import (dump_primitive, is_blank, is_present, IndifferentDict,
                             parse_json_input, recursively_make_indifferent, values_equal)
from jsonmodel.validation import Validatable

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Any


logger = logging.getLogger(__name__)


def _snapshot_value(value: Any) -> Any:
    # containers are deep-copied so in-place edits at any depth show up as changes
    if isinstance(value, (list, dict, set)):
        return copy.deepcopy(value)

    return value


class Model(JsonModelBase):
    """
    Base class of JSON-backed models.

    Keyword arguments given to the constructor set attributes by name.
    Attributes not given take their default, without counting as explicitly
    set, so ``render_default=False`` attributes stay out of dumps.
    """

    # ========== ========== ========== ========== ========== special methods
    def __init__(self, **kwargs: Any) -> None:
        super().__init__()

        cls = type(self)
        self._json_default_attributes: set[str] = set()

        for attribute in cls.json_ancestry.attributes:
            attribute.initialize(self)

        attributes = cls.json_attributes
        fixed_attributes = cls.json_ancestry.fixed_attributes

        for name, value in kwargs.items():

            if name in attributes or name in fixed_attributes or isinstance(getattr(cls, name, None), property):
                setattr(self, name, value)

            else:
                raise ArgumentError(f"Unknown attribute '{name}' for {cls.__name__}")

        self.clear_changes()

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented

        for name in type(self).json_attributes:

            if not values_equal(getattr(self, name), getattr(other, name)):
                return False

        return True

    __hash__ = None

    def __repr__(self) -> str:
        cls = type(self)
        items = [f"{name}={getattr(self, name)!r}" for name in cls.json_attributes]
        items += [f"{name}={value!r}" for name, value in cls.json_ancestry.fixed_attributes.items()
                  if name not in cls.json_attributes]
        return f"{cls.__name__}({', '.join(items)})"

    # ========== ========== ========== ========== ========== protected methods
    @staticmethod
    def _materialize(result: Any, raw: Any) -> Any:
        """Turn the result of a custom load function into the attribute value."""
        if isinstance(result, SelectType):
            return load_instance(result.cls, raw)

        if isinstance(result, SelectInstance):
            instance = result.instance

            if hasattr(instance, 'load_from_json'):
                instance.load_from_json(raw)

            return instance

        return result

    def _validate_json(self) -> None:
        for attribute in type(self).json_ancestry.attributes:
            value = getattr(self, attribute.name)

            for message in attribute.validate_value(value):
                self.errors.add(attribute.name, message)

            if isinstance(value, Validatable):
                self.merge_child_errors(value, attribute.name)

    def _snapshot(self) -> dict[str, Any]:
        return {attribute.name: _snapshot_value(getattr(self, attribute.name))
                for attribute in type(self).json_ancestry.attributes}

    # ========== ========== ========== ========== ========== public methods
    @classmethod
    def load(cls, data: Any) -> Model | None:
        """
        Load an instance from JSON text or an already parsed tree.

        Parameters
        ----------
        data : str, bytes, mapping or None
            JSON object. ``None`` and blank strings give ``None``.

        Returns
        -------
        Model or None
            An instance of the class chosen by polymorphic resolution.
        """
        if data is None or is_blank(data):
            return None

        tree = parse_json_input(data)

        if not isinstance(tree, Mapping):
            raise ArgumentError(f"Invalid JSON data for {cls.__name__}. Expected an object, "
                                f"received {type(tree).__name__}")

        tree = recursively_make_indifferent(tree)
        concrete = cls.concrete_class_from_ancestry(tree)

        instance = concrete()
        instance.load_from_json(tree)

        return instance

    def load_from_json(self, data: Mapping) -> None:
        """
        Populate this instance from a JSON object.

        For each attribute of the ancestry, in order:

        1. fixed attributes take their constant whatever the input says,
        2. keys absent from the input take the default, if there is one,
        3. present values go through the custom load function, if any,
        4. present values are coerced or loaded into the element type, if any,
        5. otherwise the raw value is stored.

        A value is present when it is neither None nor False. Change tracking
        is reset and the after-load callbacks fire once every attribute is set.
        """
        self._json_loaded = True

        if not isinstance(data, Mapping):
            raise ArgumentError(f"Invalid value for {type(self).__name__}.load_from_json. Expected a mapping, "
                                f"received {type(data).__name__}")

        tree = data if isinstance(data, IndifferentDict) else recursively_make_indifferent(data)

        ancestry = type(self).json_ancestry
        fixed_attributes = ancestry.fixed_attributes

        for attribute in ancestry.attributes:
            name = attribute.name
            raw = tree.get(name)

            if name in fixed_attributes:
                value = fixed_attributes[name]

            elif name not in tree and attribute.has_default:
                value = attribute.get_default_value()

            elif attribute.load_function is not None and is_present(raw):
                value = self._materialize(call_with_arity(attribute.load_function, raw, tree), raw)

            elif attribute.element_type is not None and is_present(raw):
                value = load_typed_value(attribute.element_type, raw)

            else:
                value = raw

            setattr(self, name, value)

        self.clear_changes()
        logger.debug(f"Loaded {type(self).__name__} from JSON")

        self._run_after_load_callbacks()

    def dump_to_json(self) -> dict[str, Any]:
        """
        Render this instance as a JSON object (a ``dict`` of JSON primitives).

        Attributes holding an unset default with ``render_default=False`` are
        left out. Fixed attributes are appended last and win over regular
        attributes of the same name.
        """
        self._json_dumped = True

        ancestry = type(self).json_ancestry
        fixed_attributes = ancestry.fixed_attributes

        tree = {}

        for attribute in ancestry.attributes:

            if attribute.name in fixed_attributes:
                continue

            if not attribute.render_default and attribute.is_default(self):
                continue

            tree[attribute.name] = attribute.dump_value(self)

        for name, value in fixed_attributes.items():
            tree[name] = dump_primitive(value)

        self.clear_changes()

        return tree

    def to_json(self, **kwargs: Any) -> str:
        """Dump to JSON text. Keyword arguments are given to ``json.dumps``."""
        return json.dumps(self.dump_to_json(), **kwargs)

    def is_default(self, name: str) -> bool:
        """True while attribute ``name`` holds its default and was never set or loaded."""
        return type(self).json_attributes[name].is_default(self)

    def attribute_changed(self, name: str) -> bool:
        return name in self.changed_attributes

    def clear_changes(self) -> None:
        """Accept the current values as the new baseline."""
        self._json_baseline = self._snapshot()

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def changed_attributes(self) -> list[str]:
        """Names of the attributes whose values differ from the baseline."""
        baseline = self._json_baseline
        return [name for name in type(self).json_attributes
                if not values_equal(baseline.get(name), getattr(self, name))]

    @property
    def changes(self) -> dict[str, tuple[Any, Any]]:
        """``{name: (old, new)}`` for every changed attribute."""
        return {name: (self._json_baseline.get(name), getattr(self, name)) for name in self.changed_attributes}

    @property
    def changed(self) -> bool:
        """True if an attribute changed or a nested model/array reports a change."""
        if self.changed_attributes:
            return True

        for name in type(self).json_attributes:
            value = getattr(self, name)

            if isinstance(value, JsonModelBase) and value.changed:
                return True

        return False


__all__ = [
    'Model',
]
