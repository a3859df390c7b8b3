#  -*- coding: utf-8 -*-
"""
jsonmodel: declarative JSON object mapping.

A class declares its attributes once and gains JSON load/dump, recursive
validation, recursive change tracking, polymorphic class selection at load
time and constant ("fixed") attributes.

Modules
-------
attributes
    Class-body declarations: JsonAttribute, FixedAttribute, after_load
schema
    Per-class registry, ancestry merging and polymorphic resolution
model
    Model, the JSON object codec
array
    Array, the JSON array codec, with array_of, polymorphic_array_by and json_array
validation
    Errors collection, built-in validators and the @validator decorator
persistence
    JSON/encrypted column types and HDF5 persistence
display
    Rich terminal rendering: Displayable and DisplaySettings

Examples
--------
>>> from jsonmodel import Model, JsonAttribute, FixedAttribute, polymorphic_via
>>>
>>> class Credential(Model):
...     @polymorphic_via
...     def choose(data):
...         return PasswordCredential if data.get('kind') == 'password' else None
>>>
>>> class PasswordCredential(Credential):
...     kind = FixedAttribute('password')
...     username = JsonAttribute(str)
...     password = JsonAttribute(str, validation={'length': {'minimum': 8}})
>>>
>>> credential = Credential.load({'kind': 'password', 'username': 'ana', 'password': 'secret'})
>>> type(credential).__name__
'PasswordCredential'
>>> credential.is_valid()
False
>>> credential.errors['password']
['is too short (minimum is 8 characters)']
"""


from .errors import *
from .validation import *
from .attributes import *
from .schema import *
from .model import *
from .array import *
from .persistence import *
from .display import *


__all__ = [
    "JsonModelError",
    "ConfigurationError",
    "ImmutableAttributeError",
    "ArgumentError",
    "Errors",
    "validator",
    "JsonAttribute",
    "json_attribute",
    "FixedAttribute",
    "after_load",
    "SelectType",
    "SelectInstance",
    "polymorphic_via",
    "JsonModelBase",
    "Model",
    "Array",
    "array_of",
    "polymorphic_array_by",
    "json_array",
    "JsonAttributeType",
    "EncryptedJsonAttributeType",
    "Persistable",
    "Displayable",
    "DisplaySettings",
]


try:
    # this will run if jsonmodel is installed
    from importlib.metadata import metadata, PackageNotFoundError

    meta = metadata('jsonmodel')

    __author__ = meta['Author']
    __license__ = meta['License-Expression'] or meta['License']
    __version__ = meta['Version']

except PackageNotFoundError:
    # this will run during development
    import toml
    from pathlib import Path

    pyproject_filepath = Path(__file__).parent.parent / "pyproject.toml"

    with pyproject_filepath.open() as file:
        pyproject = toml.load(file)

    __version__ = pyproject["project"]["version"]
    __author__ = pyproject["project"]["authors"][0]["name"]
    __license__ = pyproject["project"]["license"]
