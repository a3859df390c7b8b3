#  -*- coding: utf-8 -*-
"""
Tests for the helpers shared by the model and array codecs.

Tests cover:
- The indifferent tree (string, attribute and Enum key access)
- Primitive coercions and their error behaviour
- Conversion of Python values to JSON primitives
- Arity introspection
"""

from __future__ import annotations

import datetime
import enum

import numpy
import pytest

from jsonmodel.utils import (IndifferentDict, coerce_primitive, dump_primitive, is_blank, is_present,
                             is_primitive_type, parse_json_input, positional_arity,
                             recursively_make_indifferent, values_equal)


class Kind(enum.Enum):
    TYPE = 'type'
    OTHER = 2


# ========== ========== ========== ========== Indifferent tree
class TestIndifferentDict:
    """Test indifferent key access on parsed trees."""

    def test_string_and_attribute_access(self) -> None:
        # the same entry is reachable by key and by attribute
        data = IndifferentDict({'type': 'text'})
        assert data['type'] == 'text'
        assert data.type == 'text'

    def test_enum_key_access(self) -> None:
        # Enum members address entries by string value, otherwise by name
        data = IndifferentDict({'type': 'text', 'OTHER': 1})
        assert data[Kind.TYPE] == 'text'
        assert data[Kind.OTHER] == 1
        assert Kind.TYPE in data

    def test_non_string_keys_are_normalised(self) -> None:
        # integer keys are stored as strings
        data = IndifferentDict({1: 'one'})
        assert data['1'] == 'one'
        assert data[1] == 'one'

    def test_missing_attribute_raises_attribute_error(self) -> None:
        # missing keys raise AttributeError on attribute access
        data = IndifferentDict()

        with pytest.raises(AttributeError):
            data.missing

        with pytest.raises(KeyError):
            data['missing']

    def test_compares_equal_to_plain_dict(self) -> None:
        # it is still a dict
        assert IndifferentDict({'a': 1}) == {'a': 1}
        assert isinstance(IndifferentDict(), dict)

    def test_get_pop_setdefault(self) -> None:
        # dict helpers also normalise keys
        data = IndifferentDict()
        data.setdefault(Kind.TYPE, 'x')
        assert data.get('type') == 'x'
        assert data.pop(Kind.TYPE) == 'x'
        assert 'type' not in data

    def test_recursive_conversion(self) -> None:
        # nested mappings inside lists become indifferent too
        tree = recursively_make_indifferent({'a': [{'b': 1}], 'c': ({'d': 2},)})
        assert isinstance(tree, IndifferentDict)
        assert tree.a[0].b == 1
        assert isinstance(tree['c'], list)
        assert tree.c[0].d == 2

    def test_scalars_unchanged(self) -> None:
        # non-container values pass through
        assert recursively_make_indifferent(5) == 5
        assert recursively_make_indifferent(None) is None


# ========== ========== ========== ========== Input helpers
class TestInputHelpers:
    """Test blank/present checks and JSON text parsing."""

    @pytest.mark.parametrize('value', [None, '', '   ', b'', '\n'])
    def test_blank_values(self, value) -> None:
        # None and whitespace-only strings are blank
        assert is_blank(value)

    @pytest.mark.parametrize('value', ['x', [], {}, 0, False])
    def test_non_blank_values(self, value) -> None:
        # containers and numbers are never blank
        assert not is_blank(value)

    def test_presence(self) -> None:
        # only None and False are absent
        assert not is_present(None)
        assert not is_present(False)
        assert is_present(0)
        assert is_present('')
        assert is_present([])

    def test_parse_json_text(self) -> None:
        # text is parsed, trees are returned unchanged
        assert parse_json_input('{"a": 1}') == {'a': 1}
        tree = {'a': 1}
        assert parse_json_input(tree) is tree


# ========== ========== ========== ========== Primitives
class TestCoercion:
    """Test the coercions applied to primitive element types."""

    def test_primitive_types(self) -> None:
        # the built-in tags and Enum subclasses are primitive
        for element_type in (int, float, str, datetime.date, datetime.datetime, Kind):
            assert is_primitive_type(element_type)

        assert not is_primitive_type(dict)
        assert not is_primitive_type(None)

    def test_number_and_string_coercion(self) -> None:
        # direct conversions
        assert coerce_primitive(int, '12') == 12
        assert coerce_primitive(float, '1.5') == 1.5
        assert coerce_primitive(str, 12) == '12'

    def test_bool_is_converted_for_int(self) -> None:
        # bools are not accepted as-is for int
        value = coerce_primitive(int, True)
        assert value == 1
        assert type(value) is int

    def test_enum_coercion(self) -> None:
        # the symbol analog
        assert coerce_primitive(Kind, 'type') is Kind.TYPE

    def test_date_coercion(self) -> None:
        # strict ISO-8601 parsing
        assert coerce_primitive(datetime.date, '2024-02-29') == datetime.date(2024, 2, 29)
        assert coerce_primitive(datetime.datetime, '2024-02-29T10:30:00') == \
            datetime.datetime(2024, 2, 29, 10, 30)

    def test_malformed_date_raises(self) -> None:
        # parser errors propagate
        with pytest.raises(ValueError):
            coerce_primitive(datetime.date, 'not a date')

    def test_values_of_target_type_pass_through(self) -> None:
        # nothing to convert
        moment = datetime.datetime(2020, 1, 1)
        assert coerce_primitive(datetime.datetime, moment) is moment


class TestDumpPrimitive:
    """Test the conversion of Python values to JSON primitives."""

    def test_dates(self) -> None:
        # ISO-8601 strings
        assert dump_primitive(datetime.date(2024, 1, 2)) == '2024-01-02'
        assert dump_primitive(datetime.datetime(2024, 1, 2, 3, 4, 5)) == '2024-01-02T03:04:05'

    def test_enum(self) -> None:
        # enum members become their values
        assert dump_primitive(Kind.TYPE) == 'type'

    def test_numpy(self) -> None:
        # numpy scalars and arrays become plain Python values
        assert dump_primitive(numpy.float64(1.5)) == 1.5
        assert type(dump_primitive(numpy.int64(3))) is int
        assert dump_primitive(numpy.array([1, 2])) == [1, 2]

    def test_nested_containers(self) -> None:
        # conversion recurses into dicts and sequences
        value = {'when': [datetime.date(2024, 1, 2)], 'kinds': (Kind.TYPE,)}
        assert dump_primitive(value) == {'when': ['2024-01-02'], 'kinds': ['type']}

    def test_plain_values(self) -> None:
        # JSON primitives are unchanged
        assert dump_primitive(None) is None
        assert dump_primitive('x') == 'x'
        assert dump_primitive(True) is True


# ========== ========== ========== ========== Misc
class TestIntrospection:
    """Test arity detection and equality."""

    def test_positional_arity(self) -> None:
        # counts positional parameters, -1 for *args
        assert positional_arity(lambda value: value) == 1
        assert positional_arity(lambda value, parent: value) == 2
        assert positional_arity(lambda *args: None) == -1
        assert positional_arity(lambda value, *, flag=False: value) == 1

    def test_bound_method_arity(self) -> None:
        # self is not counted
        class Thing:
            def method(self, value):
                return value

        assert positional_arity(Thing().method) == 1

    def test_values_equal(self) -> None:
        # element-wise for arrays, plain equality otherwise
        assert values_equal(numpy.array([1, 2]), numpy.array([1, 2]))
        assert not values_equal(numpy.array([1, 2]), numpy.array([1, 3]))
        assert not values_equal(numpy.array([1, 2]), numpy.array([1, 2, 3]))
        assert values_equal([1, 2], [1, 2])
        assert not values_equal(None, 0)
