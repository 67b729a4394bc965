# Copyright (c) 2024 NASK. All rights reserved.

"""
The conversion engine: recursive conversion (and validation) of
loosely-typed input data to the declared target types.

>>> from recspec.registry import FieldDeclaration, SchemaRegistry
>>> from recspec.validators import min_validator
>>> registry = SchemaRegistry()
>>> person = registry.declare('Person', [
...     FieldDeclaration('name', str),
...     FieldDeclaration('age', int, validators=[min_validator(0)]),
...     FieldDeclaration('nicknames', [str], optional=True),
... ])
>>> converter = Converter(registry)
>>> converter.convert({'name': 'Ann', 'age': '42', 'spam': 'ignored'}, person)
{'name': 'Ann', 'age': 42}
>>> converter.convert([{'name': 'Bob', 'age': 3.0, 'nicknames': None}], [person])
[{'name': 'Bob', 'age': 3, 'nicknames': None}]
>>> converter.convert([{'name': 'Bob', 'age': -1}], [person])
Traceback (most recent call last):
  ...
recspec.exceptions.ValidationError: [0] field 'age' of record 'Person' is invalid: age must be >= 0 (got -1)
"""


import datetime
import decimal
import math
from collections.abc import Mapping

from recspec.class_helpers import is_seq
from recspec.config import (
    Config,
    ConfigError,
    ConfigSection,
)
from recspec.datetime_helpers import (
    TIMESTAMP_UNITS,
    datetime_from_timestamp,
    datetime_utc_normalize,
    parse_iso_date,
    parse_iso_datetime_to_utc,
    parse_lenient_datetime_to_utc,
)
from recspec.encoding_helpers import limited_ascii_repr
from recspec.exceptions import (
    ConversionError,
    InvalidTypeDescriptor,
    MissingRequiredField,
    TypeMismatch,
    UnknownRecord,
    UnparseableValue,
    ValidationError,
)
from recspec.log_helpers import get_logger
from recspec.registry import default_registry
from recspec.types import as_type_descriptor


_LOGGER = get_logger(__name__)


CONVERTER_CONFIG_SPEC = '''
    [recspec]
    keep_sec_fraction = true :: bool
    lenient_date_parsing = true :: bool
    numeric_date_unit = milliseconds        ; or: seconds
    freeze_registry_on_first_conversion = false :: bool
'''


_ABSENT = object()


def _is_number(value):
    return isinstance(value, (int, float, decimal.Decimal)) and not isinstance(value, bool)


def _describe(value):
    return '{} ({})'.format(limited_ascii_repr(value), type(value).__qualname__)


class Converter(object):

    """
    The conversion engine.

    Args/kwargs:
        `registry` (default: :obj:`None`):
            The :class:`~recspec.registry.SchemaRegistry` to resolve
            record references with; :obj:`None` means the default
            (process-wide) registry.
        `settings` (default: :obj:`None`):
            Either a :class:`~recspec.config.ConfigSection` (as made
            from :data:`CONVERTER_CONFIG_SPEC`) or a mapping of raw
            (`str`) settings (``'recspec.<option>'`` -> value); missing
            options get their default values.

    Raises:
        :exc:`~recspec.config.ConfigError` for invalid settings.

    A :class:`Converter` keeps no mutable state (except that it may
    freeze the registry, if configured to do so) so it can be shared
    freely.
    """

    def __init__(self, registry=None, settings=None):
        self._registry = registry if registry is not None else default_registry
        self._config = self._get_config(settings)
        self._keep_sec_fraction = self._config['keep_sec_fraction']
        self._lenient_date_parsing = self._config['lenient_date_parsing']
        self._numeric_date_unit = self._config['numeric_date_unit']
        self._freeze_registry_on_first_conversion = (
            self._config['freeze_registry_on_first_conversion'])
        self._dispatch = {
            'Int': self._convert_int,
            'Float': self._convert_float,
            'String': self._convert_string,
            'Boolean': self._convert_boolean,
            'Date': self._convert_date,
            'PlainObject': self._convert_plain_object,
            'ArrayOf': self._convert_array,
            'RecordRef': self._convert_record,
        }

    @classmethod
    def from_config_files(cls, registry=None, config_dirs=None):
        """
        Create a converter configured with the `[recspec]` section of
        the configuration files (see :mod:`recspec.config`).
        """
        config = Config.section(CONVERTER_CONFIG_SPEC, config_dirs=config_dirs)
        return cls(registry, settings=config)

    @property
    def registry(self):
        return self._registry

    @property
    def config(self):
        return self._config

    def convert(self, value, target_type):
        """
        Convert the given value to the given target type.

        Args:
            `value`:
                The input value (typically, the result of parsing some
                JSON-like wire format).
            `target_type`:
                A :class:`~recspec.types.TypeDescriptor` or anything
                :func:`~recspec.types.as_type_descriptor` accepts (e.g.,
                a :class:`~recspec.registry.RecordSchema`).

        Returns:
            The converted value (a new object, except for values that
            are passed through unchanged: scalars that are already of
            the target type and *plain objects*).

        Raises:
            :exc:`~recspec.exceptions.ConversionError` (one of its
            subclasses) describing the first (innermost) failure;
            :exc:`~recspec.exceptions.InvalidTypeDescriptor` if
            `target_type` is not a valid type descriptor.

        Any exception raised by a validator (as opposed to a failure
        reason returned by it) is propagated unchanged.  Input data
        nested so deeply that the interpreter's recursion limit is
        exceeded is rejected with
        :exc:`~recspec.exceptions.UnparseableValue`.
        """
        target_type = as_type_descriptor(target_type)
        if self._freeze_registry_on_first_conversion and not self._registry.frozen:
            self._registry.freeze()
        try:
            return self._convert(value, target_type)
        except ConversionError as exc:
            _LOGGER.debug('Conversion to %r failed: %s', target_type, exc)
            raise
        except RecursionError as exc:
            error = UnparseableValue(
                'input data nested too deeply (the recursion limit '
                'has been exceeded)',
                target_type=target_type, input_value=value)
            _LOGGER.debug('Conversion to %r failed: %s', target_type, error)
            raise error from exc

    #
    # Private helpers

    @staticmethod
    def _get_config(settings):
        if isinstance(settings, ConfigSection):
            config = settings
        else:
            config = Config.section(CONVERTER_CONFIG_SPEC,
                                    settings=(settings if settings is not None else {}))
        if config['numeric_date_unit'] not in TIMESTAMP_UNITS:
            raise ConfigError('illegal value of option `recspec.numeric_date_unit`: '
                              '{!a} (should be one of: {})'.format(
                                  config['numeric_date_unit'],
                                  ', '.join(sorted(TIMESTAMP_UNITS))))
        return config

    def _convert(self, value, target_type):
        return self._get_converter(target_type)(value, target_type)

    # (nested items are converted by calling the method obtained from
    # `_get_converter()` directly, not via `_convert()`: one stack frame
    # per nesting level of input arrays or records)

    def _get_converter(self, target_type):
        try:
            return self._dispatch[target_type.tag]
        except (KeyError, AttributeError):
            raise InvalidTypeDescriptor(
                '{!a} is not a valid type descriptor'.format(target_type)) from None

    #
    # Scalars

    def _convert_int(self, value, target_type):
        if type(value) is int:
            return value
        number = self._get_number(value, target_type)
        if isinstance(number, int):
            return int(number)
        if not self._is_finite(number):
            raise UnparseableValue(
                '{} is not a finite number'.format(_describe(value)),
                target_type=target_type, input_value=value)
        if not self._is_integral(number):
            raise UnparseableValue(
                '{} is not an integer number (non-zero fractional part)'.format(
                    _describe(value)),
                target_type=target_type, input_value=value)
        return int(number)

    def _convert_float(self, value, target_type):
        if type(value) is float and value == value:
            return value
        number = self._get_number(value, target_type)
        if self._is_nan(number):
            raise UnparseableValue(
                '{} is not a number (NaN)'.format(_describe(value)),
                target_type=target_type, input_value=value)
        try:
            return float(number)
        except OverflowError:
            raise UnparseableValue(
                '{} is too large to be a floating-point number'.format(_describe(value)),
                target_type=target_type, input_value=value) from None

    def _convert_string(self, value, target_type):
        if isinstance(value, str):
            return str(value)
        if not _is_number(value):
            raise TypeMismatch(
                'expected a string or a number, got {}'.format(_describe(value)),
                target_type=target_type, input_value=value)
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def _convert_boolean(self, value, target_type):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            if value == 'true':
                return True
            if value == 'false':
                return False
        raise TypeMismatch(
            'expected true, false, "true" or "false", got {}'.format(_describe(value)),
            target_type=target_type, input_value=value)

    def _convert_date(self, value, target_type):
        if isinstance(value, datetime.datetime):
            try:
                dt = datetime_utc_normalize(value)
            except ValueError as exc:
                raise UnparseableValue(
                    '{} cannot be normalized to UTC ({})'.format(_describe(value), exc),
                    target_type=target_type, input_value=value) from exc
        elif isinstance(value, datetime.date):
            dt = datetime.datetime.combine(value, datetime.time())
        elif isinstance(value, str):
            dt = self._parse_date_str(value, target_type)
        elif _is_number(value):
            try:
                dt = datetime_from_timestamp(value, unit=self._numeric_date_unit)
            except ValueError as exc:
                raise UnparseableValue(
                    '{} is not a valid timestamp ({})'.format(_describe(value), exc),
                    target_type=target_type, input_value=value) from exc
        else:
            raise TypeMismatch(
                'expected a date/time, a string or a number, got {}'.format(_describe(value)),
                target_type=target_type, input_value=value)
        if not self._keep_sec_fraction and dt.microsecond:
            dt = dt.replace(microsecond=0)
        return dt

    def _parse_date_str(self, value, target_type):
        try:
            return parse_iso_datetime_to_utc(value)
        except ValueError:
            pass
        try:
            return datetime.datetime.combine(parse_iso_date(value), datetime.time())
        except ValueError:
            pass
        if self._lenient_date_parsing:
            try:
                return parse_lenient_datetime_to_utc(value)
            except ValueError:
                pass
        raise UnparseableValue(
            '{} is not a valid date/time'.format(_describe(value)),
            target_type=target_type, input_value=value)

    def _convert_plain_object(self, value, target_type):
        if isinstance(value, Mapping):
            return value
        raise TypeMismatch(
            'expected a key/value object, got {}'.format(_describe(value)),
            target_type=target_type, input_value=value)

    #
    # Arrays and records

    def _convert_array(self, value, target_type):
        if value is None:
            return None
        if not is_seq(value):
            raise TypeMismatch(
                'expected an array, got {}'.format(_describe(value)),
                target_type=target_type, input_value=value)
        element_type = target_type.element_type
        convert_item = self._get_converter(element_type)
        result = [None] * len(value)
        index = 0
        try:
            for index, item in enumerate(value):
                result[index] = convert_item(item, element_type)
        except ConversionError as exc:
            exc.prepend_location(index)
            raise
        return result

    def _convert_record(self, value, target_type):
        if value is None:
            return None
        if not isinstance(value, Mapping):
            raise TypeMismatch(
                'expected a key/value object (record {!a}), got {}'.format(
                    target_type.record_id, _describe(value)),
                target_type=target_type, input_value=value)
        try:
            schema = self._registry.resolve(target_type.record_id)
        except UnknownRecord as exc:
            exc.target_type = target_type
            exc.input_value = value
            raise
        record = schema.record_class()
        get_converter = self._get_converter
        name = None
        try:
            for name, field in schema.fields.items():
                raw = value.get(name, _ABSENT)
                if raw is _ABSENT or raw is None:
                    if field.has_default:
                        raw = field.get_default_copy()
                    if raw is _ABSENT or raw is None:
                        if not field.optional:
                            raise MissingRequiredField(
                                schema.record_id, name,
                                target_type=target_type, input_value=value)
                        if raw is _ABSENT:
                            continue
                field_type = field.type
                record[name] = get_converter(field_type)(raw, field_type)
        except ConversionError as exc:
            exc.prepend_location(name)
            raise
        self._validate_record(schema, record, target_type)
        return record

    @staticmethod
    def _validate_record(schema, record, target_type):
        for name, validators in schema.validation_plan:
            if name not in record:
                continue
            for validator in validators:
                # (fetched each time: a validator may have replaced the value)
                field_value = record[name]
                reason = validator(field_value, name, record)
                if reason:
                    raise ValidationError(
                        schema.record_id, name, record.get(name, field_value), reason,
                        target_type=target_type)

    #
    # Numbers

    @staticmethod
    def _get_number(value, target_type):
        if _is_number(value):
            return value
        if isinstance(value, str):
            s = value.strip()
            try:
                return int(s)
            except ValueError:
                pass
            try:
                return float(s)
            except ValueError:
                pass
            raise UnparseableValue(
                '{} is not a numeric string'.format(_describe(value)),
                target_type=target_type, input_value=value)
        raise TypeMismatch(
            'expected a number or a numeric string, got {}'.format(_describe(value)),
            target_type=target_type, input_value=value)

    @staticmethod
    def _is_nan(number):
        if isinstance(number, decimal.Decimal):
            return number.is_nan()
        if isinstance(number, float):
            return math.isnan(number)
        return False

    @staticmethod
    def _is_finite(number):
        if isinstance(number, decimal.Decimal):
            return number.is_finite()
        return math.isfinite(number)

    @staticmethod
    def _is_integral(number):
        if isinstance(number, decimal.Decimal):
            return number == number.to_integral_value()
        return float(number).is_integer()
