# Copyright (c) 2024 NASK. All rights reserved.

import collections
import datetime
import decimal
import json
import os.path as osp
import shutil
import tempfile
import unittest
from unittest.mock import patch

from unittest_expander import (
    expand,
    foreach,
    param,
    paramseq,
)

from recspec.config import (
    ConfigError,
    ConfigSection,
)
from recspec.conversion import (
    CONVERTER_CONFIG_SPEC,
    Converter,
)
from recspec.exceptions import (
    ConversionError,
    InvalidTypeDescriptor,
    MissingRequiredField,
    RegistryFrozenError,
    TypeMismatch,
    UnknownRecord,
    UnparseableValue,
    ValidationError,
)
from recspec.registry import default_registry
from recspec.tests._generic_helpers import (
    RegistryTestMixin,
    TestCaseMixin,
)
from recspec.types import (
    BOOLEAN,
    DATE,
    FLOAT,
    INT,
    PLAIN_OBJECT,
    STRING,
    ArrayOf,
    RecordRef,
)
from recspec.validators import (
    chain_validators,
    min_validator,
    string_not_empty_validator,
)


UTC = datetime.timezone.utc

case = collections.namedtuple('case', ('value', 'target_type', 'expected'))
failure_case = collections.namedtuple('failure_case', ('value', 'target_type', 'exc_class'))


def end_not_before_start_validator(value, field_name, record):
    start = record.get('start')
    if start is not None and value is not None and value < start:
        return '{} must not precede start'.format(field_name)
    return None


#
# Scalars
#

@expand
class TestConverter_scalars(TestCaseMixin, RegistryTestMixin, unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.converter = Converter(self.registry)

    @paramseq
    def ok_cases(cls):
        # Int
        yield case(42, INT, 42)
        yield case(-7, INT, -7)
        yield case(10 ** 30, INT, 10 ** 30)
        yield case('42', INT, 42)
        yield case(' -42\n', INT, -42)
        yield case('1e3', INT, 1000)
        yield case('3.0', INT, 3)
        yield case(3.0, INT, 3)
        yield case(decimal.Decimal('5.000'), INT, 5)
        # Float
        yield case(2.5, FLOAT, 2.5)
        yield case(1, FLOAT, 1.0)
        yield case('2.5', FLOAT, 2.5)
        yield case(' 17 ', FLOAT, 17.0)
        yield case('-1.5e-3', FLOAT, -0.0015)
        yield case(decimal.Decimal('0.5'), FLOAT, 0.5)
        # String
        yield case('abc', STRING, 'abc')
        yield case('', STRING, '')
        yield case(' 1 ', STRING, ' 1 ')
        yield case(5, STRING, '5')
        yield case(-5.0, STRING, '-5')
        yield case(2.5, STRING, '2.5')
        yield case(decimal.Decimal('1.10'), STRING, '1.10')
        # Boolean
        yield case(True, BOOLEAN, True)
        yield case(False, BOOLEAN, False)
        yield case('true', BOOLEAN, True)
        yield case('false', BOOLEAN, False)
        # Date
        yield case(datetime.datetime(2013, 6, 13, 10, 2, 4, 5),
                   DATE, datetime.datetime(2013, 6, 13, 10, 2, 4, 5))
        yield case(datetime.datetime(2013, 6, 13, 12, 2,
                                     tzinfo=datetime.timezone(datetime.timedelta(hours=2))),
                   DATE, datetime.datetime(2013, 6, 13, 10, 2))
        yield case(datetime.date(2013, 6, 13), DATE, datetime.datetime(2013, 6, 13))
        yield case('2013-06-13T10:02:04.123Z', DATE, datetime.datetime(2013, 6, 13, 10, 2, 4, 123000))
        yield case('2013-06-13 12:02+02:00', DATE, datetime.datetime(2013, 6, 13, 10, 2))
        yield case('2013-06-13', DATE, datetime.datetime(2013, 6, 13))
        yield case(' 2013-06-13T10:02 ', DATE, datetime.datetime(2013, 6, 13, 10, 2))
        yield case('June 13, 2013', DATE, datetime.datetime(2013, 6, 13))
        yield case('Thu, 13 Jun 2013 12:02:04 +0200', DATE, datetime.datetime(2013, 6, 13, 10, 2, 4))
        yield case(0, DATE, datetime.datetime(1970, 1, 1))
        yield case(1370513637751, DATE, datetime.datetime(2013, 6, 6, 10, 13, 57, 751000))
        yield case(-86400000, DATE, datetime.datetime(1969, 12, 31))
        # PlainObject
        yield case({}, PLAIN_OBJECT, {})
        yield case({'a': [1, {'b': None}]}, PLAIN_OBJECT, {'a': [1, {'b': None}]})
        yield case(collections.OrderedDict(a=1), PLAIN_OBJECT, collections.OrderedDict(a=1))

    @foreach(ok_cases)
    def test_ok(self, value, target_type, expected):
        result = self.converter.convert(value, target_type)
        self.assertEqualIncludingTypes(result, expected)

    @paramseq
    def failure_cases(cls):
        # Int
        yield failure_case(3.5, INT, UnparseableValue)
        yield failure_case('3.5', INT, UnparseableValue)
        yield failure_case('', INT, UnparseableValue)
        yield failure_case('abc', INT, UnparseableValue)
        yield failure_case('12abc', INT, UnparseableValue)
        yield failure_case('0x10', INT, UnparseableValue)
        yield failure_case(float('inf'), INT, UnparseableValue)
        yield failure_case(float('nan'), INT, UnparseableValue)
        yield failure_case('nan', INT, UnparseableValue)
        yield failure_case(decimal.Decimal('0.1'), INT, UnparseableValue)
        yield failure_case(True, INT, TypeMismatch)
        yield failure_case(None, INT, TypeMismatch)
        yield failure_case([1], INT, TypeMismatch)
        yield failure_case({'value': 1}, INT, TypeMismatch)
        # Float
        yield failure_case(float('nan'), FLOAT, UnparseableValue)
        yield failure_case('NaN', FLOAT, UnparseableValue)
        yield failure_case(decimal.Decimal('NaN'), FLOAT, UnparseableValue)
        yield failure_case(10 ** 400, FLOAT, UnparseableValue)
        yield failure_case('2,5', FLOAT, UnparseableValue)
        yield failure_case(False, FLOAT, TypeMismatch)
        yield failure_case(None, FLOAT, TypeMismatch)
        # String
        yield failure_case(None, STRING, TypeMismatch)
        yield failure_case(True, STRING, TypeMismatch)
        yield failure_case(['a'], STRING, TypeMismatch)
        yield failure_case({}, STRING, TypeMismatch)
        yield failure_case(b'abc', STRING, TypeMismatch)
        # Boolean
        yield failure_case('True', BOOLEAN, TypeMismatch)
        yield failure_case('yes', BOOLEAN, TypeMismatch)
        yield failure_case(' true', BOOLEAN, TypeMismatch)
        yield failure_case(1, BOOLEAN, TypeMismatch)
        yield failure_case(0, BOOLEAN, TypeMismatch)
        yield failure_case(None, BOOLEAN, TypeMismatch)
        # Date
        yield failure_case('not a date at all', DATE, UnparseableValue)
        yield failure_case('', DATE, UnparseableValue)
        yield failure_case('2013-02-31', DATE, UnparseableValue)
        yield failure_case(float('nan'), DATE, UnparseableValue)
        yield failure_case(10 ** 20, DATE, UnparseableValue)
        yield failure_case(None, DATE, TypeMismatch)
        yield failure_case(True, DATE, TypeMismatch)
        yield failure_case([2013, 6, 13], DATE, TypeMismatch)
        # PlainObject
        yield failure_case(None, PLAIN_OBJECT, TypeMismatch)
        yield failure_case([], PLAIN_OBJECT, TypeMismatch)
        yield failure_case('{}', PLAIN_OBJECT, TypeMismatch)

    @foreach(failure_cases)
    def test_failure(self, value, target_type, exc_class):
        with self.assertRaises(exc_class) as cm:
            self.converter.convert(value, target_type)
        exc = cm.exception
        self.assertIsInstance(exc, ConversionError)
        self.assertIs(exc.target_type, target_type)
        if value == value:    # (NaN is not equal to itself)
            self.assertEqual(exc.input_value, value)
        self.assertEqual(exc.location_path, ())

    def test_plain_object_is_passed_through(self):
        value = {'nested': {'x': [1, 2]}}
        self.assertIs(self.converter.convert(value, PLAIN_OBJECT), value)
        self.assertIs(self.converter.convert(value, dict), value)

    def test_python_type_shorthands(self):
        self.assertEqual(self.converter.convert('7', int), 7)
        self.assertEqual(self.converter.convert(7, str), '7')
        self.assertEqual(self.converter.convert(['1', 2], [float]), [1.0, 2.0])

    @foreach(
        param(object()),
        param('Int'),
        param([]),
        param([INT, STRING]),
    )
    def test_invalid_target_type(self, target_type):
        with self.assertRaises(InvalidTypeDescriptor):
            self.converter.convert(42, target_type)

    def test_failure_is_logged(self):
        with patch('recspec.conversion._LOGGER') as logger:
            with self.assertRaises(ConversionError):
                self.converter.convert('abc', INT)
        logger.debug.assert_called_once()

    def test_conversion_is_idempotent(self):
        for value, target_type in [
                ('42', INT),
                ('2.5', FLOAT),
                (5.0, STRING),
                ('true', BOOLEAN),
                ('2013-06-13T12:02:04.5+02:00', DATE),
                (1370513637751, DATE),
                (['1', 2.0, '3'], ArrayOf(INT)),
                ([['a', 1]], ArrayOf(ArrayOf(STRING))),
        ]:
            once = self.converter.convert(value, target_type)
            twice = self.converter.convert(once, target_type)
            self.assertEqualIncludingTypes(twice, once)


#
# Settings
#

@expand
class TestConverter_settings(RegistryTestMixin, unittest.TestCase):

    def test_defaults(self):
        converter = Converter(self.registry)
        self.assertIs(converter.registry, self.registry)
        self.assertIsInstance(converter.config, ConfigSection)
        self.assertEqual(converter.config, {
            'keep_sec_fraction': True,
            'lenient_date_parsing': True,
            'numeric_date_unit': 'milliseconds',
            'freeze_registry_on_first_conversion': False,
        })

    def test_default_registry(self):
        self.assertIs(Converter().registry, default_registry)

    def test_keep_sec_fraction_off(self):
        converter = Converter(self.registry, settings={'recspec.keep_sec_fraction': 'no'})
        self.assertEqual(
            converter.convert('2013-06-13T10:02:04.123456Z', DATE),
            datetime.datetime(2013, 6, 13, 10, 2, 4))
        self.assertEqual(
            converter.convert(1370513637751, DATE),
            datetime.datetime(2013, 6, 6, 10, 13, 57))
        self.assertEqual(
            converter.convert(datetime.datetime(2013, 6, 13, 10, 2, 4, 1), DATE),
            datetime.datetime(2013, 6, 13, 10, 2, 4))

    def test_lenient_date_parsing_off(self):
        converter = Converter(self.registry, settings={'recspec.lenient_date_parsing': 'false'})
        self.assertEqual(converter.convert('2013-06-13', DATE), datetime.datetime(2013, 6, 13))
        with self.assertRaises(UnparseableValue):
            converter.convert('June 13, 2013', DATE)

    def test_numeric_date_unit_seconds(self):
        converter = Converter(self.registry, settings={'recspec.numeric_date_unit': 'seconds'})
        self.assertEqual(
            converter.convert(1370513637, DATE),
            datetime.datetime(2013, 6, 6, 10, 13, 57))
        self.assertEqual(
            converter.convert(decimal.Decimal('1370513637.5'), DATE),
            datetime.datetime(2013, 6, 6, 10, 13, 57, 500000))

    def test_freeze_registry_on_first_conversion(self):
        converter = Converter(self.registry, settings={
            'recspec.freeze_registry_on_first_conversion': 'true',
        })
        schema = self.declare('Point', ('x', INT))
        self.assertFalse(self.registry.frozen)
        self.assertEqual(converter.convert({'x': '1'}, schema), {'x': 1})
        self.assertTrue(self.registry.frozen)
        with self.assertRaises(RegistryFrozenError):
            self.declare('Other', ('x', INT))

    def test_registry_is_not_frozen_by_default(self):
        converter = Converter(self.registry)
        schema = self.declare('Point', ('x', INT))
        converter.convert({'x': 1}, schema)
        self.assertFalse(self.registry.frozen)

    def test_settings_given_as_config_section(self):
        section = ConfigSection('recspec', {
            'keep_sec_fraction': False,
            'lenient_date_parsing': False,
            'numeric_date_unit': 'seconds',
            'freeze_registry_on_first_conversion': False,
        })
        converter = Converter(self.registry, settings=section)
        self.assertIs(converter.config, section)
        self.assertEqual(converter.convert(1.5, DATE), datetime.datetime(1970, 1, 1, 0, 0, 1))

    @foreach(
        param({'recspec.numeric_date_unit': 'hours'}).label('illegal unit'),
        param({'recspec.keep_sec_fraction': 'perhaps'}).label('illegal bool'),
        param({'recspec.spam': 'ham'}).label('illegal option'),
    )
    def test_illegal_settings(self, settings):
        with self.assertRaises(ConfigError):
            Converter(self.registry, settings=settings)

    def test_from_config_files(self):
        tmp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, tmp_dir)
        with open(osp.join(tmp_dir, '00_recspec.conf'), 'w') as f:
            f.write('[recspec]\n'
                    'numeric_date_unit = seconds\n'
                    'keep_sec_fraction = off\n')
        with open(osp.join(tmp_dir, 'logging.conf'), 'w') as f:
            f.write('[recspec]\nnot_a_converter_option = 1\n')
        converter = Converter.from_config_files(self.registry, config_dirs=[tmp_dir])
        self.assertIs(converter.registry, self.registry)
        self.assertEqual(converter.config['numeric_date_unit'], 'seconds')
        self.assertIs(converter.config['keep_sec_fraction'], False)
        self.assertIs(converter.config['lenient_date_parsing'], True)
        self.assertEqual(converter.convert(1.5, DATE), datetime.datetime(1970, 1, 1, 0, 0, 1))

    def test_from_config_files_without_any_files(self):
        tmp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, tmp_dir)
        converter = Converter.from_config_files(self.registry, config_dirs=[tmp_dir])
        self.assertEqual(converter.config['numeric_date_unit'], 'milliseconds')

    def test_config_spec_section(self):
        self.assertIn('[recspec]', CONVERTER_CONFIG_SPEC)


#
# Arrays
#

@expand
class TestConverter_arrays(TestCaseMixin, RegistryTestMixin, unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.converter = Converter(self.registry)

    @foreach(
        param([], ArrayOf(INT), []),
        param(['1', 2, 3.0], ArrayOf(INT), [1, 2, 3]),
        param(('a', 1), ArrayOf(STRING), ['a', '1']),
        param([['1'], [], ['2', '3']], ArrayOf(ArrayOf(INT)), [[1], [], [2, 3]]),
        param([None, ['x']], ArrayOf(ArrayOf(STRING)), [None, ['x']]),
        param(None, ArrayOf(INT), None),
    )
    def test_ok(self, value, target_type, expected):
        self.assertEqualIncludingTypes(self.converter.convert(value, target_type), expected)

    def test_output_is_new_list(self):
        value = [1, 2, 3]
        result = self.converter.convert(value, [int])
        self.assertEqual(result, value)
        self.assertIsNot(result, value)

    def test_large_array(self):
        value = list(map(str, range(100000)))
        result = self.converter.convert(value, ArrayOf(INT))
        self.assertEqual(len(result), 100000)
        self.assertEqual(result[-1], 99999)

    @foreach(
        param('abc'),
        param(b'abc'),
        param({'0': 1}),
        param({1, 2}),
        param(42),
    )
    def test_not_an_array(self, value):
        with self.assertRaises(TypeMismatch) as cm:
            self.converter.convert(value, ArrayOf(STRING))
        self.assertEqual(cm.exception.location_path, ())
        self.assertEqual(cm.exception.target_type, ArrayOf(STRING))

    def test_element_failure_location(self):
        with self.assertRaises(UnparseableValue) as cm:
            self.converter.convert([['1'], ['2', 'x']], ArrayOf(ArrayOf(INT)))
        exc = cm.exception
        self.assertEqual(exc.location_path, (1, 1))
        self.assertIs(exc.target_type, INT)
        self.assertEqual(exc.input_value, 'x')
        self.assertTrue(str(exc).startswith('[1.1] '))

    def test_null_element_of_scalar_array_fails(self):
        with self.assertRaises(TypeMismatch) as cm:
            self.converter.convert([1, None], ArrayOf(INT))
        self.assertEqual(cm.exception.location_path, (1,))


#
# Records
#

@expand
class TestConverter_records(TestCaseMixin, RegistryTestMixin, unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.converter = Converter(self.registry)
        self.address = self.declare(
            'Address',
            ('street', STRING, dict(default='')),
            ('city', STRING),
            ('zip', STRING, dict(optional=True)))
        self.person = self.declare(
            'Person',
            ('name', STRING),
            ('age', INT, dict(optional=True, validators=[min_validator(0)])),
            ('address', RecordRef('Address'), dict(optional=True)),
            ('addresses', ArrayOf(RecordRef('Address')), dict(default=[])),
            ('friends', ArrayOf(RecordRef('Person')), dict(optional=True)))

    def test_simple(self):
        result = self.converter.convert({'name': 'Ann', 'age': '42'}, self.person)
        self.assertEqualIncludingTypes(result, {'name': 'Ann', 'age': 42, 'addresses': []})

    def test_target_given_as_record_ref_or_str_shorthands(self):
        value = {'city': 'Warsaw'}
        expected = {'street': '', 'city': 'Warsaw'}
        self.assertEqual(self.converter.convert(value, RecordRef('Address')), expected)
        self.assertEqual(self.converter.convert(value, self.address), expected)
        self.assertEqual(self.converter.convert([value], [self.address]), [expected])

    def test_output_follows_field_order_and_drops_unknown_keys(self):
        result = self.converter.convert(
            {'zip': '00-001', 'spam': 1, 'city': 'Warsaw', 'street': 'Main'},
            self.address)
        self.assertEqual(list(result), ['street', 'city', 'zip'])
        self.assertEqual(result, {'street': 'Main', 'city': 'Warsaw', 'zip': '00-001'})

    def test_input_is_not_modified(self):
        value = {'name': 'Ann', 'age': '42', 'addresses': [{'city': 'X'}]}
        self.converter.convert(value, self.person)
        self.assertEqual(value, {'name': 'Ann', 'age': '42', 'addresses': [{'city': 'X'}]})

    def test_missing_required_field(self):
        with self.assertRaises(MissingRequiredField) as cm:
            self.converter.convert({'age': 3}, self.person)
        exc = cm.exception
        self.assertEqual(exc.record_id, 'Person')
        self.assertEqual(exc.field_name, 'name')
        self.assertEqual(exc.location_path, ('name',))
        self.assertEqual(str(exc), "[name] missing required field 'name' of record 'Person'")

    def test_null_required_field_without_default(self):
        with self.assertRaises(MissingRequiredField):
            self.converter.convert({'name': None}, self.person)

    def test_absent_optional_field_is_skipped(self):
        result = self.converter.convert({'city': 'Warsaw'}, self.address)
        self.assertNotIn('zip', result)

    def test_null_optional_field_is_materialized(self):
        result = self.converter.convert({'name': 'Ann', 'address': None, 'friends': None},
                                        self.person)
        self.assertEqual(result, {'name': 'Ann', 'address': None, 'addresses': [],
                                  'friends': None})

    def test_null_optional_scalar_field_fails(self):
        with self.assertRaises(TypeMismatch) as cm:
            self.converter.convert({'name': 'Ann', 'age': None}, self.person)
        self.assertEqual(cm.exception.location_path, ('age',))
        self.assertIs(cm.exception.target_type, INT)

    @foreach(
        param({'city': 'X'}).label('absent'),
        param({'city': 'X', 'street': None}).label('null'),
    )
    def test_default_substitution(self, value):
        self.assertEqual(self.converter.convert(value, self.address),
                         {'street': '', 'city': 'X'})

    def test_default_is_converted(self):
        schema = self.declare('Counter', ('count', INT, dict(default='0')))
        self.assertEqualIncludingTypes(self.converter.convert({}, schema), {'count': 0})

    def test_null_default_is_materialized(self):
        schema = self.declare('Holder', ('address', RecordRef('Address'), dict(default=None)))
        self.assertEqual(self.converter.convert({}, schema), {'address': None})

    def test_default_is_not_shared(self):
        first = self.converter.convert({'name': 'Ann'}, self.person)
        first['addresses'].append({'city': 'X'})
        second = self.converter.convert({'name': 'Bob'}, self.person)
        self.assertEqual(second['addresses'], [])
        self.assertEqual(self.person.fields['addresses'].default, [])

    def test_nested_records(self):
        result = self.converter.convert({
            'name': 'Ann',
            'address': {'city': 'Warsaw', 'zip': 1234},
            'friends': [
                {'name': 'Bob', 'addresses': [{'city': 'Cracow'}]},
                {'name': 'Cid', 'friends': []},
            ],
        }, self.person)
        self.assertEqual(result, {
            'name': 'Ann',
            'address': {'street': '', 'city': 'Warsaw', 'zip': '1234'},
            'addresses': [],
            'friends': [
                {'name': 'Bob', 'addresses': [{'street': '', 'city': 'Cracow'}]},
                {'name': 'Cid', 'addresses': [], 'friends': []},
            ],
        })

    def test_nested_failure_location(self):
        value = {
            'name': 'Ann',
            'friends': [
                {'name': 'Bob'},
                {'name': 'Cid', 'addresses': [{'city': 'X'}, {'street': 'Main'}]},
            ],
        }
        with self.assertRaises(MissingRequiredField) as cm:
            self.converter.convert(value, self.person)
        exc = cm.exception
        self.assertEqual(exc.location_path, ('friends', 1, 'addresses', 1, 'city'))
        self.assertEqual(exc.record_id, 'Address')
        self.assertEqual(
            str(exc),
            "[friends.1.addresses.1.city] missing required field 'city' of record 'Address'")

    def test_nested_validation_failure_location(self):
        with self.assertRaises(ValidationError) as cm:
            self.converter.convert(
                [{'name': 'Ann'}, {'name': 'Bob', 'friends': [{'name': 'Cid', 'age': -1}]}],
                [self.person])
        exc = cm.exception
        self.assertEqual(exc.location_path, (1, 'friends', 0))
        self.assertEqual(exc.field_name, 'age')
        self.assertEqual(exc.value, -1)
        self.assertEqual(
            str(exc),
            "[1.friends.0] field 'age' of record 'Person' is invalid: age must be >= 0 (got -1)")

    @foreach(
        param(['Ann']),
        param('Ann'),
        param(42),
    )
    def test_not_a_mapping(self, value):
        with self.assertRaises(TypeMismatch):
            self.converter.convert(value, self.person)

    def test_null_record(self):
        self.assertIsNone(self.converter.convert(None, self.person))

    def test_unknown_record(self):
        with self.assertRaises(UnknownRecord) as cm:
            self.converter.convert({'x': 1}, RecordRef('Nope'))
        exc = cm.exception
        self.assertEqual(exc.record_id, 'Nope')
        self.assertEqual(exc.target_type, RecordRef('Nope'))
        self.assertEqual(exc.input_value, {'x': 1})

    def test_unknown_nested_record(self):
        schema = self.declare('Order', ('customer', RecordRef('Customer')))
        with self.assertRaises(UnknownRecord) as cm:
            self.converter.convert({'customer': {}}, schema)
        self.assertEqual(cm.exception.location_path, ('customer',))

    def test_record_declared_after_referring_record(self):
        schema = self.declare('Order', ('customer', RecordRef('Customer')))
        self.declare('Customer', ('id', INT))
        self.assertEqual(self.converter.convert({'customer': {'id': '1'}}, schema),
                         {'customer': {'id': 1}})

    def test_record_class(self):
        class Point(dict):
            def norm(self):
                return abs(self['x']) + abs(self['y'])

        schema = self.declare('Point', ('x', INT), ('y', INT), record_class=Point)
        result = self.converter.convert({'x': '-1', 'y': 2}, schema)
        self.assertIs(type(result), Point)
        self.assertEqual(result.norm(), 3)

    def test_deeply_nested_records(self):
        schema = self.declare('Node', ('children', ArrayOf(RecordRef('Node')), dict(default=[])))
        depth = 200
        value = json.loads('{"children": [' * depth + '{}' + ']}' * depth)
        result = self.converter.convert(value, schema)
        for _ in range(depth):
            self.assertEqual(len(result['children']), 1)
            result = result['children'][0]
        self.assertEqual(result, {'children': []})

    def test_too_deeply_nested_records(self):
        schema = self.declare('Node', ('children', ArrayOf(RecordRef('Node')), dict(default=[])))
        value = {}
        for _ in range(100000):
            value = {'children': [value]}
        with patch('recspec.conversion._LOGGER') as logger_mock, \
             self.assertRaises(UnparseableValue) as cm:
            self.converter.convert(value, schema)
        exc = cm.exception
        self.assertIsInstance(exc.__cause__, RecursionError)
        self.assertIs(exc.input_value, value)
        self.assertEqual(exc.target_type, RecordRef('Node'))
        self.assertEqual(exc.location_path, ())
        self.assertIn('nested too deeply', str(exc))
        self.assertEqual(logger_mock.debug.call_count, 1)


#
# Inheritance
#

class TestConverter_inheritance(RegistryTestMixin, unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.converter = Converter(self.registry)
        self.declare(
            'BaseEquipment',
            ('name', STRING),
            ('type', STRING, dict(validators=string_not_empty_validator(trim=True))))
        self.declare(
            'OffensiveEquipment',
            ('attack', INT),
            parent='BaseEquipment')
        self.weapon = self.declare(
            'Weapon',
            ('type', STRING, dict(default='Weapon')),
            parent='OffensiveEquipment')

    def test_inherited_fields_are_converted(self):
        result = self.converter.convert({'name': 'Sword', 'attack': '12'}, self.weapon)
        self.assertEqual(result, {'type': 'Weapon', 'attack': 12, 'name': 'Sword'})

    def test_inherited_validator_applies_to_redeclared_field(self):
        result = self.converter.convert(
            {'name': 'Sword', 'attack': 1, 'type': '  Blade '}, self.weapon)
        self.assertEqual(result['type'], 'Blade')
        with self.assertRaises(ValidationError) as cm:
            self.converter.convert({'name': 'Sword', 'attack': 1, 'type': '   '}, self.weapon)
        self.assertEqual(cm.exception.field_name, 'type')
        self.assertEqual(cm.exception.record_id, 'Weapon')

    def test_parent_requirements_still_apply(self):
        with self.assertRaises(MissingRequiredField) as cm:
            self.converter.convert({'name': 'Sword'}, self.weapon)
        self.assertEqual(cm.exception.field_name, 'attack')
        with self.assertRaises(MissingRequiredField) as cm:
            self.converter.convert({'name': 'Sword', 'attack': 1},
                                   RecordRef('BaseEquipment'))
        self.assertEqual(cm.exception.field_name, 'type')


#
# Validation pass
#

class TestConverter_validation(RegistryTestMixin, unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.converter = Converter(self.registry)
        self.event = self.declare(
            'Event',
            ('start', DATE),
            ('end', DATE, dict(validators=end_not_before_start_validator)))

    def test_end_after_start(self):
        result = self.converter.convert(
            {'start': '2020-01-01T00:00Z', 'end': '2020-01-02T00:00Z'}, self.event)
        self.assertEqual(result, {'start': datetime.datetime(2020, 1, 1),
                                  'end': datetime.datetime(2020, 1, 2)})

    def test_end_equal_to_start(self):
        result = self.converter.convert(
            {'start': '2020-01-01T00:00Z', 'end': '2020-01-01T01:00+01:00'}, self.event)
        self.assertEqual(result['start'], result['end'])

    def test_end_before_start(self):
        with self.assertRaises(ValidationError) as cm:
            self.converter.convert(
                {'start': '2020-01-02T00:00Z', 'end': 1577836800000}, self.event)
        exc = cm.exception
        self.assertEqual(exc.record_id, 'Event')
        self.assertEqual(exc.field_name, 'end')
        self.assertEqual(exc.value, datetime.datetime(2020, 1, 1))
        self.assertEqual(exc.reason, 'end must not precede start')
        self.assertEqual(exc.location_path, ())
        self.assertEqual(exc.target_type, RecordRef('Event'))

    def test_validators_see_populated_record_and_run_in_order(self):
        calls = []

        def recording_validator(tag):
            def validator(value, field_name, record):
                calls.append((tag, field_name, value, dict(record)))
            return validator

        schema = self.declare(
            'Pair',
            ('a', INT, dict(validators=[recording_validator(1), recording_validator(2)])),
            ('b', INT, dict(default=0, validators=recording_validator(3))),
            ('c', INT, dict(optional=True, validators=recording_validator(4))))
        self.converter.convert({'a': '5'}, schema)
        self.assertEqual(calls, [
            (1, 'a', 5, {'a': 5, 'b': 0}),
            (2, 'a', 5, {'a': 5, 'b': 0}),
            (3, 'b', 0, {'a': 5, 'b': 0}),
        ])

    def test_validation_is_fail_fast(self):
        calls = []

        def failing(value, field_name, record):
            calls.append(field_name)
            return '{} is wrong'.format(field_name)

        schema = self.declare(
            'Pair',
            ('a', INT, dict(validators=[failing, failing])),
            ('b', INT, dict(validators=failing)))
        with self.assertRaises(ValidationError) as cm:
            self.converter.convert({'a': 1, 'b': 2}, schema)
        self.assertEqual(cm.exception.field_name, 'a')
        self.assertEqual(calls, ['a'])

    def test_empty_reason_means_success(self):
        schema = self.declare('X', ('a', INT, dict(validators=lambda v, n, r: '')))
        self.assertEqual(self.converter.convert({'a': 1}, schema), {'a': 1})

    def test_validator_exception_propagates(self):
        def broken(value, field_name, record):
            return 1 / 0

        schema = self.declare('X', ('a', INT, dict(validators=broken)))
        with self.assertRaises(ZeroDivisionError):
            self.converter.convert({'a': 1}, schema)

    def test_validators_run_on_materialized_null(self):
        seen = []
        schema = self.declare(
            'X', ('a', ArrayOf(INT), dict(optional=True,
                                           validators=lambda v, n, r: seen.append(v))))
        self.converter.convert({'a': None}, schema)
        self.converter.convert({}, schema)
        self.assertEqual(seen, [None])

    def test_next_validator_sees_value_replaced_by_previous_one(self):
        seen = []
        schema = self.declare(
            'X', ('s', STRING, dict(validators=[
                string_not_empty_validator(trim=True),
                lambda v, n, r: seen.append(v),
            ])))
        result = self.converter.convert({'s': '  x  '}, schema)
        self.assertEqual(result, {'s': 'x'})
        self.assertEqual(seen, ['x'])

    def test_failure_reports_value_replaced_by_failing_validator(self):
        schema = self.declare(
            'X', ('s', STRING, dict(validators=string_not_empty_validator(
                trim=True, max_length=3))))
        with self.assertRaises(ValidationError) as cm:
            self.converter.convert({'s': '  abcd  '}, schema)
        exc = cm.exception
        self.assertEqual(exc.value, 'abcd')
        self.assertEqual(exc.input_value, 'abcd')
        self.assertEqual(exc.reason, 's must not be longer than 3 characters (got 4)')

    def test_chained_validators_see_value_replaced_by_previous_one(self):
        schema = self.declare(
            'X', ('name', STRING, dict(validators=chain_validators(
                string_not_empty_validator(trim=True),
                string_not_empty_validator(max_length=3)))))
        self.assertEqual(self.converter.convert({'name': '  ab  '}, schema), {'name': 'ab'})


#
# Module-level API (the default registry)
#

class TestDefaultRegistryApi(unittest.TestCase):

    def test_declare_and_convert(self):
        import recspec
        from recspec import FieldDeclaration as F

        record_id = 'recspec.tests.test_conversion.Sample'
        if record_id in recspec.default_registry:
            schema = recspec.resolve(record_id)
        else:
            schema = recspec.declare(record_id, [F('n', int), F('tags', [str], default=[])])
        self.assertIs(recspec.resolve(record_id), schema)
        self.assertIs(recspec.get_default_converter(), recspec.get_default_converter())
        self.assertIs(recspec.get_default_converter().registry, recspec.default_registry)
        self.assertEqual(recspec.convert({'n': '3'}, schema), {'n': 3, 'tags': []})
        self.assertEqual(recspec.convert([{'n': 1, 'tags': [2]}], [schema]),
                         [{'n': 1, 'tags': ['2']}])
