#  -*- coding: utf-8 -*-
"""
Validation framework used by models and arrays.

Validation never raises: every failure is recorded in an ``Errors``
collection attached to the object being validated. Validators come from
three places:

- the ``validation`` option of a ``JsonAttribute``, built here into
  per-attribute checks (``presence``, ``inclusion``, ``length`` ...) that
  run the value through pydantic ``TypeAdapter``s carrying ``Field`` and
  ``annotated_types`` constraints,
- the recursive walk into nested models and arrays, which merges their
  errors under composed keys,
- methods decorated with ``@validator`` on the class.

Examples
--------
>>> class Rating(Model):
...     stars = JsonAttribute(int, validation={'inclusion': {'in': range(1, 6)}})
...
...     @validator
...     def not_thirteen(self):
...         if self.stars == 13:
...             self.errors.add('stars', 'is unlucky')
>>> Rating(stars=7).is_valid()
False
"""

from __future__ import annotations

import numbers
import re

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sized
from dataclasses import dataclass
from decimal import Decimal

from annotated_types import Predicate
from pydantic import BeforeValidator, Field, TypeAdapter, ValidationError

from jsonmodel.errors import ConfigurationError

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Annotated, Any, Callable, Iterator, TypeAlias


Check: TypeAlias = Callable[[Any], list[str]]
"""A built validator: receives the attribute value, returns error messages"""


# ========== ========== ========== ========== ========== errors
@dataclass(frozen=True)
class Error:
    """A single validation failure."""

    attribute: str
    message: str

    @property
    def full_message(self) -> str:
        if self.attribute == 'base':
            return self.message

        return f"{self.attribute} {self.message}"


class Errors:
    """
    Ordered collection of validation errors.

    Errors are keyed by attribute name. Nested failures use composed keys
    such as ``"rating.stars"`` or ``"[2].value"``.

    Examples
    --------
    >>> errors = Errors()
    >>> errors.add('stars', 'is not included in the list')
    >>> len(errors)
    1
    >>> errors['stars']
    ['is not included in the list']
    """

    def __init__(self) -> None:
        self._errors: list[Error] = []

    def __iter__(self) -> Iterator[Error]:
        return iter(list(self._errors))

    def __len__(self) -> int:
        return len(self._errors)

    def __contains__(self, attribute: str) -> bool:
        return any(error.attribute == attribute for error in self._errors)

    def __getitem__(self, attribute: str) -> list[str]:
        return [error.message for error in self._errors if error.attribute == attribute]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    def add(self, attribute: str, message: str = 'is invalid') -> Error:
        """Record a failure for ``attribute`` and return it."""
        error = Error(str(attribute), message)
        self._errors.append(error)
        return error

    def clear(self) -> None:
        self._errors.clear()

    @property
    def count(self) -> int:
        return len(self._errors)

    @property
    def attributes(self) -> list[str]:
        """Attribute keys with at least one error, in insertion order."""
        return list(dict.fromkeys(error.attribute for error in self._errors))

    @property
    def full_messages(self) -> list[str]:
        return [error.full_message for error in self._errors]

    def to_dict(self) -> dict[str, list[str]]:
        return {attribute: self[attribute] for attribute in self.attributes}


# ========== ========== ========== ========== ========== helpers
def validator(method: Callable) -> Callable:
    """
    Mark a method as an additional validation step.

    The method takes no arguments besides ``self`` and reports failures
    through ``self.errors.add``. Marked methods run after attribute and
    nested validation, in ancestry order.
    """
    method.__json_validator__ = True
    return method


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True

    if isinstance(value, str):
        return not value.strip()

    if isinstance(value, Sized):
        return len(value) == 0

    return False


def _contains(container: Any, value: Any) -> bool:
    try:
        return value in container
    except TypeError:
        # unhashable values are never members of hashed containers
        return False


def _size(value: Any) -> int:
    if value is None:
        return 0

    if isinstance(value, Sized):
        return len(value)

    return len(str(value))


def _options(options: Any, shorthand: str) -> dict[str, Any]:
    # ``{'inclusion': [1, 2]}`` is shorthand for ``{'inclusion': {'in': [1, 2]}}``
    if isinstance(options, Mapping):
        return dict(options)

    return {shorthand: options}


def _rule(annotation: Any, message: str) -> Check:
    """
    Build a check from a pydantic-annotated type.

    The value is validated with a ``TypeAdapter`` over ``annotation``; any
    ``ValidationError`` is reported as ``message``.
    """
    adapter = TypeAdapter(annotation)

    def check(value: Any) -> list[str]:
        try:
            adapter.validate_python(value)
        except ValidationError:
            return [message]

        return []

    return check


def _combine(*rules: Check) -> Check:

    def check(value: Any) -> list[str]:
        return [message for rule in rules for message in rule(value)]

    return check


# ========== ========== ========== ========== ========== built-in checks
def presence(options: Any) -> Check:
    message = _options(options, 'enabled').get('message', "can't be blank")
    return _rule(Annotated[Any, Predicate(lambda value: not _is_blank(value))], message)


def absence(options: Any) -> Check:
    message = _options(options, 'enabled').get('message', 'must be blank')
    return _rule(Annotated[Any, Predicate(_is_blank)], message)


def inclusion(options: Any) -> Check:
    options = _options(options, 'in')

    if 'in' not in options:
        raise ConfigurationError("inclusion validation requires an 'in' option")

    container = options['in']
    message = options.get('message', 'is not included in the list')

    return _rule(Annotated[Any, Predicate(lambda value: _contains(container, value))], message)


def exclusion(options: Any) -> Check:
    options = _options(options, 'in')

    if 'in' not in options:
        raise ConfigurationError("exclusion validation requires an 'in' option")

    container = options['in']
    message = options.get('message', 'is reserved')

    return _rule(Annotated[Any, Predicate(lambda value: not _contains(container, value))], message)


def length(options: Any) -> Check:
    """
    Bounds on ``len(value)``.

    Values without a length are measured through ``str(value)``; ``None`` has
    length zero.
    """
    options = _options(options, 'is')

    if 'in' in options:
        bounds = options.pop('in')
        options.setdefault('minimum', min(bounds))
        options.setdefault('maximum', max(bounds))

    if all(options.get(key) is None for key in ('is', 'minimum', 'maximum')):
        raise ConfigurationError("length validation requires 'minimum', 'maximum', 'is' or 'in'")

    for key in ('is', 'minimum', 'maximum'):
        bound = options.get(key)

        if bound is not None and (isinstance(bound, bool) or not isinstance(bound, int)):
            raise ConfigurationError(f"length option '{key}' must be an integer, got {bound!r}")

    exact, minimum, maximum = options.get('is'), options.get('minimum'), options.get('maximum')
    rules = []

    if exact is not None:
        message = options.get('message', f"is the wrong length (should be {exact} characters)")
        rules.append(_rule(Annotated[int, Field(ge=exact, le=exact)], message))

    if minimum is not None:
        message = options.get('message', f"is too short (minimum is {minimum} characters)")
        rules.append(_rule(Annotated[int, Field(ge=minimum)], message))

    if maximum is not None:
        message = options.get('message', f"is too long (maximum is {maximum} characters)")
        rules.append(_rule(Annotated[int, Field(le=maximum)], message))

    sized = _combine(*rules)

    def check(value: Any) -> list[str]:
        return sized(_size(value))

    return check


def format_check(options: Any) -> Check:
    options = _options(options, 'with')

    if ('with' in options) == ('without' in options):
        raise ConfigurationError("format validation requires either a 'with' or a 'without' pattern")

    key = 'with' if 'with' in options else 'without'

    try:
        pattern = re.compile(options[key])
    except re.error as error:
        raise ConfigurationError(f"Invalid format pattern {options[key]!r}: {error}") from error

    if key == 'with':
        predicate = Predicate(lambda text: pattern.search(text) is not None)
    else:
        predicate = Predicate(lambda text: pattern.search(text) is None)

    matches = _rule(Annotated[str, predicate], options.get('message', 'is invalid'))

    def check(value: Any) -> list[str]:
        return matches('' if value is None else str(value))

    return check


def _plain_number(value: Any) -> Any:
    # booleans are not numbers; numpy scalars become Python numbers
    if isinstance(value, bool):
        raise ValueError('is not a number')

    if isinstance(value, numbers.Integral):
        return int(value)

    if isinstance(value, numbers.Real):
        return float(value)

    return value


_NUMBER = TypeAdapter(Annotated[Decimal, BeforeValidator(_plain_number)])
"""Parses numbers and numeric strings the way JSON payloads carry them"""

_COMPARISONS: dict[str, tuple[Callable[[Decimal], Any], str]] = {
    'greater_than': (lambda count: Field(gt=count), 'must be greater than {count}'),
    'greater_than_or_equal_to': (lambda count: Field(ge=count), 'must be greater than or equal to {count}'),
    'equal_to': (lambda count: Field(ge=count, le=count), 'must be equal to {count}'),
    'other_than': (lambda count: Predicate(lambda number: number != count), 'must be other than {count}'),
    'less_than': (lambda count: Field(lt=count), 'must be less than {count}'),
    'less_than_or_equal_to': (lambda count: Field(le=count), 'must be less than or equal to {count}'),
}


def _as_decimal(key: str, count: Any) -> Decimal:
    if isinstance(count, bool) or not isinstance(count, (numbers.Real, Decimal)):
        raise ConfigurationError(f"numericality option '{key}' must be a number, got {count!r}")

    return Decimal(str(count))


def numericality(options: Any) -> Check:
    options = _options(options, 'enabled')
    unknown = set(options) - {'enabled', 'message', 'only_integer', 'odd', 'even', *_COMPARISONS}

    if unknown:
        raise ConfigurationError(f"Unknown numericality options: {sorted(unknown)}")

    message = options.get('message')
    integer = None
    rules = []

    if options.get('only_integer'):
        integer = _rule(Annotated[Decimal, Predicate(lambda number: number == number.to_integral_value())],
                        message or 'must be an integer')

    for key, (constraint, template) in _COMPARISONS.items():

        if key in options:
            count = _as_decimal(key, options[key])
            rules.append(_rule(Annotated[Decimal, constraint(count)], message or template.format(count=options[key])))

    if options.get('odd'):
        rules.append(_rule(Annotated[Decimal, Predicate(lambda number: int(number) % 2 == 1)],
                           message or 'must be odd'))

    if options.get('even'):
        rules.append(_rule(Annotated[Decimal, Field(multiple_of=Decimal(2))], message or 'must be even'))

    compared = _combine(*rules)

    def check(value: Any) -> list[str]:
        try:
            number = _NUMBER.validate_python(value)
        except ValidationError:
            return [message or 'is not a number']

        if integer is not None:
            failures = integer(number)

            if failures:
                return failures

        return compared(number)

    return check


BUILTIN_VALIDATORS: dict[str, Callable[[Any], Check]] = {
    'presence': presence,
    'absence': absence,
    'inclusion': inclusion,
    'exclusion': exclusion,
    'length': length,
    'format': format_check,
    'numericality': numericality,
}


def _callable_check(func: Callable[[Any], Any]) -> Check:

    def check(value: Any) -> list[str]:
        result = func(value)

        if result is None:
            return []

        if isinstance(result, str):
            return [result]

        return list(result)

    return check


def build_validators(validation: Any) -> tuple[Check, ...]:
    """
    Build the checks described by a ``JsonAttribute(validation=...)`` option.

    Parameters
    ----------
    validation : mapping, callable or None
        Either a mapping from built-in validator names to their options,
        optionally with a top-level ``allow_nil`` flag, or a callable that
        receives the value and returns an error message, a list of messages
        or None.

    Returns
    -------
    tuple of callables
        Checks mapping a value to a list of messages.

    Raises
    ------
    ConfigurationError
        For unknown validator names or malformed options.
    """
    if validation is None:
        return ()

    if callable(validation):
        return (_callable_check(validation),)

    if not isinstance(validation, Mapping):
        raise ConfigurationError(f"validation must be a mapping or a callable, got {type(validation).__name__}")

    options = dict(validation)
    allow_nil = options.pop('allow_nil', False)
    checks = []

    for name, validator_options in options.items():

        try:
            factory = BUILTIN_VALIDATORS[name]
        except KeyError:
            raise ConfigurationError(f"Unknown validation '{name}'. "
                                     f"Expected one of: {', '.join(BUILTIN_VALIDATORS)}") from None

        checks.append(factory(validator_options))

    if allow_nil:
        checks = [_skip_nil(check) for check in checks]

    return tuple(checks)


def _skip_nil(check: Check) -> Check:

    def wrapper(value: Any) -> list[str]:
        return [] if value is None else check(value)

    return wrapper


class Validatable(ABC):
    """
    Mixin giving an object an ``errors`` collection and ``validate``/``is_valid``.

    Subclasses implement ``_validate_json`` (attribute and nested checks) and
    ``_validator_names`` (names of the ``@validator`` methods to run after it).
    """

    @property
    def errors(self) -> Errors:
        try:
            return self.__dict__['_json_errors']
        except KeyError:
            errors = self.__dict__['_json_errors'] = Errors()
            return errors

    def validate(self) -> Errors:
        """Run every validation step and return the (refreshed) errors."""
        self.errors.clear()
        self._validate_json()

        for name in self._validator_names():
            getattr(self, name)()

        return self.errors

    def is_valid(self) -> bool:
        return not self.validate()

    def merge_child_errors(self, child: Validatable, prefix: str) -> None:
        """Validate ``child`` and copy its errors under ``prefix``-composed keys."""
        if child.is_valid():
            return

        for error in child.errors:
            self.errors.add(f"{prefix}.{error.attribute}", error.message)

    @abstractmethod
    def _validate_json(self) -> None:
        ...

    def _validator_names(self) -> tuple[str, ...]:
        return ()


__all__ = [
    'Error',
    'Errors',
    'Validatable',
    'validator',
    'build_validators',
    'BUILTIN_VALIDATORS',
]
