#  -*- coding: utf-8 -*-
"""
Tests for the storage adapters.

Tests cover:
- JsonAttributeType casting, (de)serialisation and in-place change detection
- EncryptedJsonAttributeType with a pluggable encryptor
- Persistable saving and loading models and arrays in HDF5 files
"""

from __future__ import annotations

import base64
import json
import logging

import pytest

from jsonmodel import (ArgumentError, Array, EncryptedJsonAttributeType, JsonAttribute, JsonAttributeType, Model,
                       Persistable, array_of)


class Base64Encryptor:
    """Stand-in encryption backend."""

    def encrypt(self, text: str) -> str:
        return base64.b64encode(text.encode()).decode()

    def decrypt(self, text: str) -> str:
        return base64.b64decode(text).decode()


# ========== ========== ========== ========== Fixtures
class Credentials(Model):
    user = JsonAttribute(str)
    scopes = JsonAttribute(default=list)


class Tags(Array):
    serialization = array_of(str)


class Profile(Persistable, Model):
    name = JsonAttribute(str)
    age = JsonAttribute(int)
    active = JsonAttribute(default=True)
    nickname = JsonAttribute()
    scores = JsonAttribute(default=list)
    address = JsonAttribute()


class Admin(Profile):
    level = JsonAttribute(int)


class Series(Persistable, Array):
    extension = '.series'
    serialization = array_of(float)


@pytest.fixture
def column() -> JsonAttributeType:
    return JsonAttributeType(Credentials)


@pytest.fixture
def encrypted_column() -> EncryptedJsonAttributeType:
    return EncryptedJsonAttributeType(Credentials, Base64Encryptor())


@pytest.fixture
def profile() -> Profile:
    return Profile(name='Ana',
                   age=30,
                   scores=list(range(12)),
                   address={'city': 'Lisbon', 'zip': None, 'lines': ['a', 'b']})


# ========== ========== ========== ========== Column types
class TestJsonAttributeType:
    """Test the JSON text column type."""

    def test_requires_model_class(self) -> None:
        # plain classes are rejected
        with pytest.raises(ArgumentError, match='Expected a model or array class'):
            JsonAttributeType(dict)

    def test_type(self, column) -> None:
        # database type name
        assert column.type == 'json'

    def test_cast(self, column) -> None:
        # instances pass, text and trees load, anything else is None
        credentials = Credentials(user='u')
        assert column.cast(credentials) is credentials
        assert column.cast('{"user": "u"}').user == 'u'
        assert column.cast({'user': 'v'}).user == 'v'
        assert column.cast(5) is None
        assert column.cast(None) is None

    def test_serialize(self, column) -> None:
        # instances are dumped to text
        assert json.loads(column.serialize(Credentials(user='u'))) == {'user': 'u', 'scopes': []}
        assert column.serialize(None) is None
        assert json.loads(column.serialize({'user': 'x'})) == {'user': 'x'}

    def test_deserialize(self, column) -> None:
        # stored text is loaded
        credentials = column.deserialize('{"user": "u", "scopes": ["read"]}')
        assert isinstance(credentials, Credentials)
        assert credentials.scopes == ['read']
        assert column.deserialize(None) is None

    def test_deserialize_invalid_text(self, column, caplog) -> None:
        # undecodable text loads as None and is logged
        with caplog.at_level(logging.WARNING, logger='jsonmodel.persistence'):
            assert column.deserialize('{not json') is None

        assert 'Could not decode stored JSON for Credentials' in caplog.text

    def test_array_column(self) -> None:
        # arrays are stored the same way
        column = JsonAttributeType(Tags)
        assert column.serialize(Tags(['a', 'b'])) == '["a", "b"]'
        assert column.deserialize('["a"]').values == ['a']

    def test_changed_in_place(self, column) -> None:
        # structural comparison, key order does not matter
        raw = '{"scopes": [], "user": "u"}'
        assert not column.changed_in_place(raw, Credentials(user='u'))
        assert column.changed_in_place(raw, Credentials(user='v'))

    def test_changed_in_place_with_none(self, column) -> None:
        # None only matches None
        assert not column.changed_in_place(None, None)
        assert column.changed_in_place(None, Credentials(user='u'))
        assert column.changed_in_place('{"user": "u"}', None)


class TestEncryptedJsonAttributeType:
    """Test the encrypted column type."""

    def test_type(self, encrypted_column) -> None:
        # stored as text
        assert encrypted_column.type == 'string'

    def test_round_trip(self, encrypted_column) -> None:
        # the stored text is not readable JSON
        stored = encrypted_column.serialize(Credentials(user='secret-user'))
        assert 'secret-user' not in stored

        loaded = encrypted_column.deserialize(stored)
        assert loaded.user == 'secret-user'

    def test_none(self, encrypted_column) -> None:
        # None is not encrypted
        assert encrypted_column.serialize(None) is None
        assert encrypted_column.deserialize(None) is None

    def test_changed_in_place(self, encrypted_column) -> None:
        # the old value is decrypted before comparing
        stored = encrypted_column.serialize(Credentials(user='u'))
        assert not encrypted_column.changed_in_place(stored, Credentials(user='u'))
        assert encrypted_column.changed_in_place(stored, Credentials(user='w'))


# ========== ========== ========== ========== HDF5 files
class TestPersistable:
    """Test saving to and loading from HDF5 files."""

    def test_save_uses_extension(self, profile, tmp_path) -> None:
        # the default extension replaces the suffix
        path = profile.save(tmp_path / 'profile.txt')
        assert path == tmp_path / 'profile.hdf5'
        assert path.is_file()

        path = profile.save(tmp_path / 'profile.h5', use_default_extension=False)
        assert path.suffix == '.h5'

    def test_round_trip(self, profile, tmp_path) -> None:
        # every JSON type survives
        path = profile.save(tmp_path / 'profile')
        loaded = Profile.load_file(path)

        assert type(loaded) is Profile
        assert loaded == profile
        assert loaded.active is True
        assert loaded.nickname is None
        assert loaded.scores == list(range(12))
        assert loaded.address['zip'] is None
        assert loaded.address['lines'] == ['a', 'b']

    def test_saved_subclass_is_restored(self, tmp_path) -> None:
        # the class stored in the file wins when it is a subclass
        path = Admin(name='Root', level=3).save(tmp_path / 'admin')
        loaded = Profile.load_file(path)

        assert type(loaded) is Admin
        assert loaded.level == 3

    def test_overwrite(self, profile, tmp_path) -> None:
        # existing files are protected on request
        path = profile.save(tmp_path / 'profile')

        with pytest.raises(FileExistsError):
            profile.save(path, overwrite=False)

    def test_missing_file(self, tmp_path) -> None:
        # nothing to read
        with pytest.raises(FileNotFoundError):
            Profile.load_file(tmp_path / 'missing.hdf5')

    def test_array_round_trip(self, tmp_path) -> None:
        # arrays are stored as list groups
        path = Series([1.5, 2.5, 3.0]).save(tmp_path / 'series')
        assert path.suffix == '.series'
        assert Series.load_file(path).values == [1.5, 2.5, 3.0]

    def test_null_array(self, tmp_path) -> None:
        # a null array is stored and loaded back as None
        series = Series()
        series.values = None
        path = series.save(tmp_path / 'series')

        assert Series.load_file(path) is None

    def test_save_logs(self, profile, tmp_path, caplog) -> None:
        # saving and loading are logged at info level
        with caplog.at_level(logging.INFO, logger='jsonmodel.persistence'):
            path = profile.save(tmp_path / 'profile')
            Profile.load_file(path)

        assert 'Saved Profile' in caplog.text
        assert 'Loaded Profile' in caplog.text
