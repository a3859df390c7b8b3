#  -*- coding: utf-8 -*-
"""
Per-class declaration registry and polymorphic class resolution.

Every class built by ``JsonModelMetatype`` carries a ``ClassSchema`` with the
declarations made in its own body. The ``AncestrySchema`` merges the schemas
of all participating classes in the MRO, base classes first, and is cached on
the class the first time it is requested.
"""

from __future__ import annotations

import logging

from abc import ABCMeta, abstractmethod
from dataclasses import dataclass, field

from jsonmodel.attributes import AfterLoadCallback, FixedAttribute, JsonAttribute
from jsonmodel.errors import ArgumentError, ConfigurationError
from jsonmodel.utils import coerce_primitive, get_full_qualified_name, is_primitive_type, positional_arity
from jsonmodel.validation import Validatable

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Any, Callable, Type


logger = logging.getLogger(__name__)


# ========== ========== ========== ========== ========== declarations
@dataclass(frozen=True)
class PolymorphicFactory:
    """Chooses a concrete class from raw JSON data, or returns None to pass."""
    func: Callable[[Any], type | None]

    def __call__(self, data: Any) -> type | None:
        return self.func(data)


def polymorphic_via(func: Callable[[Any], type | None]) -> PolymorphicFactory:
    """
    Declare the polymorphic factory of a class.

    Examples
    --------
    >>> class BaseCell(Model):
    ...     @polymorphic_via
    ...     def choose(data):
    ...         return {'text': TextCell, 'number': NumberCell}.get(data.get('type'))
    """
    if not callable(func):
        raise ConfigurationError(f"A polymorphic factory must be callable, got {type(func).__name__}")

    if positional_arity(func) not in (-1, 1):
        raise ConfigurationError("A polymorphic factory must take exactly one argument (the JSON data)")

    return PolymorphicFactory(func)


@dataclass(frozen=True)
class SerializationTuple:
    """
    How an ``Array`` converts its elements.

    ``serialize``, ``deserialize`` and ``validate`` are either callables or
    names of methods on the array class.
    """
    serialize: Callable[[Any], Any] | str
    deserialize: Callable[[Any], Any] | str
    validate: Callable[..., Any] | str | None = None
    nil_data_to_empty_array: bool = False
    element_type: type | None = None
    factory: Callable[[Any], Any] | None = None


@dataclass(frozen=True)
class ClassSchema:
    """Declarations made in the body of a single class."""

    attributes: tuple[JsonAttribute, ...] = ()
    fixed_attributes: dict[str, Any] = field(default_factory=dict)
    after_load_callbacks: tuple[AfterLoadCallback, ...] = ()
    polymorphic_factory: PolymorphicFactory | None = None
    validators: tuple[str, ...] = ()
    serialization: SerializationTuple | None = None

    @classmethod
    def from_namespace(cls, owner_name: str, namespace: dict[str, Any]) -> ClassSchema:
        attributes = []
        fixed_attributes = {}
        callbacks = []
        validators = []
        factory = None
        serialization = None

        for key, value in namespace.items():

            if isinstance(value, JsonAttribute):
                attributes.append(value)

            elif isinstance(value, FixedAttribute):
                fixed_attributes[key] = value.value

            elif isinstance(value, AfterLoadCallback):
                callbacks.append(value)

            elif isinstance(value, PolymorphicFactory):

                if factory is not None:
                    raise ConfigurationError(f"{owner_name} declares more than one polymorphic factory")

                factory = value

            elif isinstance(value, SerializationTuple):

                if serialization is not None:
                    raise ConfigurationError(f"{owner_name} declares more than one array serialization strategy")

                serialization = value

            elif callable(value):

                if getattr(value, '__json_after_load__', False):
                    callbacks.append(AfterLoadCallback(method_name=key))

                if getattr(value, '__json_validator__', False):
                    validators.append(key)

        return cls(attributes=tuple(attributes),
                   fixed_attributes=fixed_attributes,
                   after_load_callbacks=tuple(callbacks),
                   polymorphic_factory=factory,
                   validators=tuple(validators),
                   serialization=serialization)


@dataclass(frozen=True)
class AncestrySchema:
    """Declarations merged across the participating classes of an MRO."""

    attributes: tuple[JsonAttribute, ...]
    fixed_attributes: dict[str, Any]
    after_load_callbacks: tuple[AfterLoadCallback, ...]
    polymorphic_factories: tuple[PolymorphicFactory, ...]
    validators: tuple[str, ...]
    serialization: SerializationTuple | None

    @classmethod
    def of(cls, owner: type) -> AncestrySchema:
        schemas = [base.__dict__['_json_schema'] for base in reversed(owner.__mro__)
                   if '_json_schema' in base.__dict__]

        attributes: dict[str, JsonAttribute] = {}
        fixed_attributes: dict[str, Any] = {}
        callbacks = []
        factories = []
        validators: dict[str, None] = {}
        serialization = None

        for schema in schemas:

            # a redeclared name keeps its first position with the derived descriptor
            for attribute in schema.attributes:
                attributes[attribute.name] = attribute

            fixed_attributes.update(schema.fixed_attributes)
            callbacks.extend(schema.after_load_callbacks)
            validators.update(dict.fromkeys(schema.validators))

            if schema.polymorphic_factory is not None:
                factories.append(schema.polymorphic_factory)

            if schema.serialization is not None:
                serialization = schema.serialization

        return cls(attributes=tuple(attributes.values()),
                   fixed_attributes=fixed_attributes,
                   after_load_callbacks=tuple(callbacks),
                   polymorphic_factories=tuple(factories),
                   validators=tuple(validators),
                   serialization=serialization)


class DeclarationNamespace(dict):
    """
    Class-body namespace that refuses a second factory or array strategy.

    Rebinding a name to a second ``polymorphic_via`` factory or array strategy
    raises ``ConfigurationError``.
    """

    def __init__(self, owner_name: str) -> None:
        super().__init__()
        self.owner_name = owner_name

    def __setitem__(self, key: str, value: Any) -> None:
        previous = self.get(key)

        if isinstance(value, PolymorphicFactory) and isinstance(previous, PolymorphicFactory):
            raise ConfigurationError(f"{self.owner_name} declares more than one polymorphic factory")

        if isinstance(value, SerializationTuple) and isinstance(previous, SerializationTuple):
            raise ConfigurationError(f"{self.owner_name} declares more than one array serialization strategy")

        super().__setitem__(key, value)


# ========== ========== ========== ========== ========== metaclass
class JsonModelMetatype(ABCMeta):
    """
    Metaclass of every model and array class.

    Collects the class-body declarations into a ``ClassSchema`` and keeps a
    registry of participating classes keyed by fully qualified name.

    Examples
    --------
    >>> JsonModelBase['myapp.cells.TextCell']
    <class 'myapp.cells.TextCell'>
    """

    _registry: dict[str, type] = {}

    # ========== ========== ========== ========== ========== special methods
    @classmethod
    def __prepare__(mcs, name: str, bases: tuple[type, ...], **kwargs: Any) -> DeclarationNamespace:
        return DeclarationNamespace(name)

    def __new__(mcs,
                name: str,
                bases: tuple[type, ...],
                namespace: dict[str, Any],
                **kwargs: Any) -> Type[JsonModelBase]:

        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        cls._json_schema = ClassSchema.from_namespace(name, namespace)
        cls._json_ancestry = None

        JsonModelMetatype._registry[get_full_qualified_name(cls)] = cls

        return cls

    def __getitem__(cls, qualname: str) -> Type[JsonModelBase]:
        return JsonModelMetatype._registry[qualname]

    def __contains__(cls, subclass: str | type) -> bool:
        if isinstance(subclass, str):
            return subclass in JsonModelMetatype._registry

        if isinstance(subclass, type):
            return subclass in JsonModelMetatype._registry.values()

        raise TypeError('Expected the class full qualified name or the class itself')

    # ========== ========== ========== ========== ========== public methods
    def concrete_class_from_ancestry(cls, data: Any, _seen: frozenset[type] = frozenset()) -> type:
        """
        Pick the concrete class to instantiate for ``data``.

        The polymorphic factories of the ancestry are tried base-first and
        the first non-None answer wins. If it names a different participating
        class, resolution continues from that class.

        Raises
        ------
        ConfigurationError
            If resolution revisits a class already chosen.
        """
        chosen = None

        for factory in cls.json_ancestry.polymorphic_factories:
            chosen = factory(data)

            if chosen is not None:
                break

        if chosen is None or chosen is cls:
            return cls

        logger.debug(f"Polymorphic resolution: {cls.__name__} -> {getattr(chosen, '__name__', chosen)}")

        if not isinstance(chosen, JsonModelMetatype):
            return chosen

        seen = _seen | {cls}

        if chosen in seen:
            raise ConfigurationError(f"Polymorphic resolution of {cls.__name__} cycles back to {chosen.__name__}")

        return chosen.concrete_class_from_ancestry(data, seen)

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def json_schema(cls) -> ClassSchema:
        return cls.__dict__['_json_schema']

    @property
    def json_ancestry(cls) -> AncestrySchema:
        ancestry = cls.__dict__.get('_json_ancestry')

        if ancestry is None:
            ancestry = AncestrySchema.of(cls)
            cls._json_ancestry = ancestry

        return ancestry

    @property
    def json_attributes(cls) -> dict[str, JsonAttribute]:
        return {attribute.name: attribute for attribute in cls.json_ancestry.attributes}

    @property
    def fixed_attributes(cls) -> dict[str, Any]:
        return {**cls.json_ancestry.fixed_attributes}


# ========== ========== ========== ========== ========== loading helpers
def load_instance(cls: type, raw: Any) -> Any:
    """Resolve ``cls`` polymorphically, instantiate it and load ``raw`` into it."""
    if isinstance(cls, JsonModelMetatype):
        cls = cls.concrete_class_from_ancestry(raw)

    instance = cls()

    if hasattr(instance, 'load_from_json'):
        instance.load_from_json(raw)

    return instance


def load_typed_value(element_type: type, raw: Any) -> Any:
    """Materialise ``raw`` as ``element_type``: coerced if primitive, loaded otherwise."""
    if is_primitive_type(element_type):
        return coerce_primitive(element_type, raw)

    return load_instance(element_type, raw)


# ========== ========== ========== ========== ========== base class
class JsonModelBase(Validatable, metaclass=JsonModelMetatype):
    """
    State and behaviour shared by ``Model`` and ``Array``.

    Tracks whether the instance was loaded from or dumped to JSON, runs the
    after-load callbacks and hosts the validation entry points.
    """

    # ========== ========== ========== ========== ========== special methods
    def __init__(self) -> None:
        self._json_loaded: bool = False
        self._json_dumped: bool = False

    # ========== ========== ========== ========== ========== protected methods
    def _run_after_load_callbacks(self) -> None:
        for callback in type(self).json_ancestry.after_load_callbacks:
            callback.invoke(self)

    def _validator_names(self) -> tuple[str, ...]:
        return type(self).json_ancestry.validators

    # ========== ========== ========== ========== ========== public methods
    @classmethod
    @abstractmethod
    def load(cls, data: Any) -> JsonModelBase | None:
        ...

    @classmethod
    def dump(cls, obj: Any) -> Any:
        """Dump ``obj`` to a JSON tree, checking it is an instance of this class."""
        if not isinstance(obj, cls):
            raise ArgumentError(f"Invalid object type. Expected {cls.__name__} got {type(obj).__name__} "
                                f"to dump to JSON")

        return obj.dump_to_json()

    @abstractmethod
    def load_from_json(self, data: Any) -> None:
        ...

    @abstractmethod
    def dump_to_json(self) -> Any:
        ...

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def loaded(self) -> bool:
        """True if this instance was populated by ``load_from_json``."""
        return self._json_loaded

    @property
    def dumped(self) -> bool:
        """True if this instance has been dumped to JSON."""
        return self._json_dumped

    @property
    def new(self) -> bool:
        """True if the instance was neither loaded nor dumped."""
        return not self._json_loaded and not self._json_dumped

    @property
    @abstractmethod
    def changed(self) -> bool:
        ...


__all__ = [
    'PolymorphicFactory',
    'polymorphic_via',
    'SerializationTuple',
    'ClassSchema',
    'AncestrySchema',
    'DeclarationNamespace',
    'JsonModelMetatype',
    'JsonModelBase',
    'load_instance',
    'load_typed_value',
]
