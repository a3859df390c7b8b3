#  -*- coding: utf-8 -*-
"""
Adapters between models and storage.

- ``JsonAttributeType`` stores a model or array in a JSON text column.
- ``EncryptedJsonAttributeType`` stores it as encrypted text, using an
  encryptor supplied by the application.
- ``Persistable`` saves a model or array to an HDF5 file and loads it back.
"""

from __future__ import annotations

import json
import logging

from numbers import Number
from pathlib import Path

import h5py
import numpy

from jsonmodel.errors import ArgumentError
from jsonmodel.schema import JsonModelBase, JsonModelMetatype
from jsonmodel.utils import get_full_qualified_name

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Any, Protocol, Type


logger = logging.getLogger(__name__)


# ========== ========== ========== ========== ========== column types
class JsonAttributeType:
    """
    Column type storing instances of ``cls`` as JSON text.

    Parameters
    ----------
    cls : type
        A ``Model`` or ``Array`` subclass.

    Examples
    --------
    >>> column = JsonAttributeType(Credentials)
    >>> text = column.serialize(Credentials(user='u'))
    >>> column.deserialize(text).user
    'u'
    """

    def __init__(self, cls: Type[JsonModelBase]) -> None:
        if not isinstance(cls, JsonModelMetatype):
            raise ArgumentError(f"Expected a model or array class, got {cls!r}")

        self.cls = cls

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.cls.__name__})"

    @property
    def type(self) -> str:
        return 'json'

    def cast(self, value: Any) -> JsonModelBase | None:
        """Instances pass through; JSON text and parsed trees are loaded."""
        if isinstance(value, self.cls):
            return value

        if isinstance(value, (str, bytes, list, dict)):
            return self.cls.load(value)

        return None

    def serialize(self, value: Any) -> str | None:
        if value is None:
            return None

        if isinstance(value, self.cls):
            return json.dumps(self.cls.dump(value))

        if isinstance(value, (list, dict)):
            return json.dumps(value)

        return value

    def deserialize(self, value: Any) -> JsonModelBase | None:
        """Load from stored text; undecodable text loads as None."""
        if not isinstance(value, (str, bytes)):
            return self.cast(value)

        try:
            decoded = json.loads(value)
        except ValueError:
            logger.warning(f"Could not decode stored JSON for {self.cls.__name__}")
            decoded = None

        return self.cls.load(decoded)

    def changed_in_place(self, raw_old_value: Any, new_value: Any) -> bool:
        """
        Whether ``new_value`` differs from the stored ``raw_old_value``.

        The comparison is structural: the stored text is decoded and compared
        with the dump of ``new_value``, so key order and whitespace do not
        matter.
        """
        if raw_old_value is None or new_value is None:
            return raw_old_value is not new_value

        decoded_raw = json.loads(raw_old_value)
        round_tripped_new = json.loads(json.dumps(type(new_value).dump(new_value)))

        return decoded_raw != round_tripped_new


class Encryptor(Protocol):
    """What ``EncryptedJsonAttributeType`` needs from an encryption backend."""

    def encrypt(self, text: str) -> str:
        ...

    def decrypt(self, text: str) -> str:
        ...


class EncryptedJsonAttributeType(JsonAttributeType):
    """
    Column type storing instances of ``cls`` as encrypted JSON text.

    Parameters
    ----------
    cls : type
        A ``Model`` or ``Array`` subclass.
    encryptor : Encryptor
        Object with ``encrypt(text)`` and ``decrypt(text)`` methods.
    """

    def __init__(self, cls: Type[JsonModelBase], encryptor: Encryptor) -> None:
        super().__init__(cls)
        self.encryptor = encryptor

    @property
    def type(self) -> str:
        return 'string'

    def serialize(self, value: Any) -> str | None:
        text = super().serialize(value)

        if text is None:
            return None

        return self.encryptor.encrypt(text)

    def deserialize(self, value: Any) -> JsonModelBase | None:
        if not isinstance(value, (str, bytes)):
            return self.cast(value)

        return super().deserialize(self.encryptor.decrypt(value))

    def changed_in_place(self, raw_old_value: Any, new_value: Any) -> bool:
        if raw_old_value is not None:
            raw_old_value = self.encryptor.decrypt(raw_old_value)

        return super().changed_in_place(raw_old_value, new_value)


# ========== ========== ========== ========== ========== HDF5 files
class Persistable:
    """
    Mixin saving a model or array to an HDF5 file.

    The dumped JSON tree is written under the ``root`` key of the file and
    the fully qualified class name is kept in the file attributes, so
    ``load_file`` called on a base class returns the saved subclass.

    HDF5 encoding rules
    -------------------
    - None: stored as the attribute value ``"NoneType:None"``.
    - str, numbers, bool: stored directly as attributes.
    - list: a subgroup with ``__container_type__ = "list"``, items stored
      under their index.
    - dict: a subgroup with ``__container_type__ = "dict"``.

    Examples
    --------
    >>> class Settings(Persistable, Model):
    ...     extension = '.cfg'
    ...     theme = JsonAttribute(str, default='dark')
    >>> Settings(theme='light').save('user')   # writes user.cfg
    >>> Settings.load_file('user.cfg').theme
    'light'
    """

    # ========== ========== ========== ========== ========== class attributes
    extension: str = '.hdf5'

    # ========== ========== ========== ========== ========== protected methods
    @staticmethod
    def _save_data_in_group(key: str, value: Any, group: h5py.Group) -> None:
        if value is None:
            group.attrs[key] = 'NoneType:None'

        elif isinstance(value, (str, Number)):
            group.attrs[key] = value

        elif isinstance(value, list):
            subgroup = group.create_group(key, track_order=True)
            subgroup.attrs['__container_type__'] = 'list'

            for index, item in enumerate(value):
                Persistable._save_data_in_group(str(index), item, subgroup)

        elif isinstance(value, dict):
            subgroup = group.create_group(key, track_order=True)
            subgroup.attrs['__container_type__'] = 'dict'

            for item_key, item in value.items():
                Persistable._save_data_in_group(str(item_key), item, subgroup)

        else:
            raise TypeError(f"instances of {type(value).__name__} cannot be saved in h5py.Groups")

    @staticmethod
    def _load_data_from_h5py_tree(value: Any) -> Any:
        if isinstance(value, h5py.Group):
            data = {k: Persistable._load_data_from_h5py_tree(v) for k, v in value.items()}
            data.update({k: Persistable._load_data_from_h5py_tree(v) for k, v in value.attrs.items()})

            container_type = data.pop('__container_type__')

            if container_type == 'list':
                return [data[key] for key in sorted(data.keys(), key=int)]

            if container_type == 'dict':
                return data

            raise ValueError(f"Could not resolve __container_type__={container_type}")

        if isinstance(value, str):
            return None if value == 'NoneType:None' else value

        if isinstance(value, numpy.bool_):
            return bool(value)

        if isinstance(value, numpy.generic):
            return value.item()

        return value

    # ========== ========== ========== ========== ========== public methods
    def save(self, path: Path | str, overwrite: bool = True, use_default_extension: bool = True) -> Path:
        """
        Dump this instance and write it to an HDF5 file.

        Parameters
        ----------
        path : str or Path
            Output path.
        overwrite : bool, default True
            If False and the file exists, raises FileExistsError.
        use_default_extension : bool, default True
            If True, the suffix of ``path`` is replaced by ``extension``.

        Returns
        -------
        Path
            The path written.
        """
        path = Path(path)

        if use_default_extension:
            path = path.with_suffix(type(self).extension)

        if path.is_file() and not overwrite:
            raise FileExistsError(f"Path {path} already exists")

        data = type(self).dump(self)

        with h5py.File(path, 'w') as file:
            file.attrs['__class__'] = get_full_qualified_name(type(self))
            self._save_data_in_group('root', data, file)

        logger.info(f"Saved {type(self).__name__} to {path}")

        return path

    @classmethod
    def load_file(cls, path: Path | str) -> Any:
        """
        Read an HDF5 file written by ``save`` and load it.

        The class recorded in the file is used when it is a subclass of
        ``cls``; otherwise ``cls`` loads the data.

        Raises
        ------
        FileNotFoundError
            If the path does not exist or is not a file.
        """
        path = Path(path)

        if not path.is_file():
            raise FileNotFoundError(f"Path {path} does not exist")

        with h5py.File(path, 'r') as file:
            qualname = file.attrs.get('__class__')
            # a null tree is stored as an attribute rather than a group
            root = file['root'] if 'root' in file else file.attrs['root']
            data = cls._load_data_from_h5py_tree(root)

        target = cls

        if qualname is not None and qualname in JsonModelBase:
            saved = JsonModelBase[qualname]

            if issubclass(saved, cls):
                target = saved

        logger.info(f"Loaded {target.__name__} from {path}")

        return target.load(data)


__all__ = [
    'JsonAttributeType',
    'EncryptedJsonAttributeType',
    'Encryptor',
    'Persistable',
]
