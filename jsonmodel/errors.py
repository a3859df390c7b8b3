#  -*- coding: utf-8 -*-
"""
Exceptions raised by the jsonmodel package.

Every exception derives from ``JsonModelError`` and from the built-in
exception that best describes it, so callers may catch either family.

Validation failures are never raised: they are collected into
:py:class:`jsonmodel.validation.Errors`.
"""

from __future__ import annotations

from typing import Any


class JsonModelError(Exception):
    """
    Root of the jsonmodel exception hierarchy.

    Subclasses define a ``message`` template that is filled with the
    positional arguments given at construction.
    """

    message: str = "%s"

    def __init__(self, *context: Any) -> None:
        self.context = context
        super().__init__(self.message % context if context else self.message)


class ConfigurationError(JsonModelError, ValueError):
    """Conflicting or malformed declarations, raised at class-definition time."""
    message = "%s"


class ImmutableAttributeError(JsonModelError, AttributeError):
    """Attempt to set a fixed attribute to a value other than its constant."""
    message = "%s.%s is a fixed attribute with a value of %r. Its value cannot be set to %r."


class ArgumentError(JsonModelError, TypeError):
    """Input of the wrong shape or class given to a load/dump operation."""
    message = "%s"


__all__ = [
    'JsonModelError',
    'ConfigurationError',
    'ImmutableAttributeError',
    'ArgumentError',
]
