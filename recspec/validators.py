# Copyright (c) 2024 NASK. All rights reserved.

"""
Field validators and built-in validator factories.

A *validator* is any callable with the signature::

    validator(value, field_name, record) -> Optional[str]

It is called -- by the converter, after all fields of a record have
been converted -- with the converted value of the field, the field
name and the whole (populated) output record, so that cross-field
checks are possible.  Returning :obj:`None` (or an empty string) means
success; returning a non-empty string means failure, the string being
the failure reason.  A validator may also modify the record's item of
*its own* field (see :func:`string_not_empty_validator` with
`trim=True`).

The factories provided by this module return closures whose
`__name__` describes their configuration:

>>> v = min_max_validator(1, 10)
>>> v.__name__
'min_max_validator(1, 10)'
>>> v(5, 'level', {}) is None
True
>>> v(11, 'level', {})
'level must be <= 10 (got 11)'

>>> record = {'name': '  Jane  '}
>>> string_not_empty_validator(trim=True)(record['name'], 'name', record) is None
True
>>> record
{'name': 'Jane'}
"""


import collections.abc as collections_abc
import decimal
import enum

from recspec.class_helpers import (
    get_class_name,
    is_seq,
)
from recspec.encoding_helpers import limited_ascii_repr


def _is_number(value):
    return isinstance(value, (int, float, decimal.Decimal)) and not isinstance(value, bool)


def _describe_value(value):
    return limited_ascii_repr(value)


def _named(name):
    def decorator(validator):
        validator.__name__ = validator.__qualname__ = name
        return validator
    return decorator


def _args_repr(*args, **kwargs):
    return ', '.join(
        [limited_ascii_repr(arg) for arg in args] +
        ['{}={}'.format(key, limited_ascii_repr(val)) for key, val in kwargs.items()])


def _verify_number_arg(arg_name, arg):
    if not _is_number(arg):
        raise TypeError('{} should be a number (got {!a})'.format(arg_name, arg))


#
# Numeric bounds

def min_validator(min_value):
    """
    Make a validator that checks that the value is a number >= `min_value`.

    >>> v = min_validator(0)
    >>> v(0, 'x', {}) is None
    True
    >>> v(-0.5, 'x', {})
    'x must be >= 0 (got -0.5)'
    >>> v('1', 'x', {})
    "x must be a number (got '1')"
    """
    _verify_number_arg('min_value', min_value)

    @_named('min_validator({})'.format(_args_repr(min_value)))
    def validator(value, field_name, record):
        if not _is_number(value):
            return '{} must be a number (got {})'.format(field_name, _describe_value(value))
        if value < min_value:
            return '{} must be >= {} (got {})'.format(
                field_name, _describe_value(min_value), _describe_value(value))
        return None

    return validator


def max_validator(max_value):
    """
    Make a validator that checks that the value is a number <= `max_value`.

    >>> v = max_validator(100)
    >>> v(100, 'x', {}) is None
    True
    >>> v(101, 'x', {})
    'x must be <= 100 (got 101)'
    """
    _verify_number_arg('max_value', max_value)

    @_named('max_validator({})'.format(_args_repr(max_value)))
    def validator(value, field_name, record):
        if not _is_number(value):
            return '{} must be a number (got {})'.format(field_name, _describe_value(value))
        if value > max_value:
            return '{} must be <= {} (got {})'.format(
                field_name, _describe_value(max_value), _describe_value(value))
        return None

    return validator


def min_max_validator(min_value, max_value):
    """
    Make a validator that checks that the value is a number within
    the range `min_value`...`max_value` (inclusive).

    Raises:
        :exc:`~exceptions.ValueError` if `max_value` < `min_value`.

    >>> v = min_max_validator(-1, 1)
    >>> v(-1, 'x', {}) is None and v(1, 'x', {}) is None
    True
    >>> v(-2, 'x', {})
    'x must be >= -1 (got -2)'
    >>> min_max_validator(5, 4)      # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...
    """
    _verify_number_arg('min_value', min_value)
    _verify_number_arg('max_value', max_value)
    if max_value < min_value:
        raise ValueError('max_value ({!a}) is less than min_value ({!a})'
                         .format(max_value, min_value))

    @_named('min_max_validator({})'.format(_args_repr(min_value, max_value)))
    def validator(value, field_name, record):
        if not _is_number(value):
            return '{} must be a number (got {})'.format(field_name, _describe_value(value))
        if value < min_value:
            return '{} must be >= {} (got {})'.format(
                field_name, _describe_value(min_value), _describe_value(value))
        if value > max_value:
            return '{} must be <= {} (got {})'.format(
                field_name, _describe_value(max_value), _describe_value(value))
        return None

    return validator


#
# Enumerations

def enum_value_validator(enum_def):
    """
    Make a validator that checks that the value is one of the values
    of a *numeric* enumeration.

    Args:
        `enum_def`:
            An :class:`enum.Enum` subclass, or a mapping (member name
            -> value), or a collection of values.  All values must be
            numbers.

    Raises:
        :exc:`~exceptions.TypeError` if any of the values is not a number
        (in particular, *string-valued enumerations are not supported*).
        :exc:`~exceptions.ValueError` if there are no values.

    >>> class Color(enum.IntEnum):
    ...     RED = 1
    ...     GREEN = 2
    ...
    >>> v = enum_value_validator(Color)
    >>> v.__name__
    'enum_value_validator(Color)'
    >>> v(2, 'color', {}) is None
    True
    >>> v(3, 'color', {})
    'color must be one of: 1, 2 (got 3)'
    >>> enum_value_validator({'ON': 'on', 'OFF': 'off'})  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    TypeError: ...
    """
    if isinstance(enum_def, type) and issubclass(enum_def, enum.Enum):
        values = [member.value for member in enum_def]
        enum_name = enum_def.__qualname__
    elif isinstance(enum_def, collections_abc.Mapping):
        values = list(enum_def.values())
        enum_name = _args_repr(dict(enum_def))
    elif is_seq(enum_def) or isinstance(enum_def, collections_abc.Set):
        values = list(enum_def)
        enum_name = _args_repr(enum_def)
    else:
        raise TypeError('{!a} is neither an Enum subclass, nor a mapping, nor '
                        'a collection of values'.format(enum_def))
    for val in values:
        if not _is_number(val):
            raise TypeError(
                'enumeration value {!a} is not a number (only numeric '
                'enumerations are supported by enum_value_validator)'.format(val))
    if not values:
        raise ValueError('no enumeration values given')
    allowed = frozenset(values)
    allowed_descr = ', '.join(map(_describe_value, sorted(allowed)))

    @_named('enum_value_validator({})'.format(enum_name))
    def validator(value, field_name, record):
        if not (_is_number(value) and value in allowed):
            return '{} must be one of: {} (got {})'.format(
                field_name, allowed_descr, _describe_value(value))
        return None

    return validator


#
# Strings and sequences

def string_not_empty_validator(trim=False, min_length=None, max_length=None):
    """
    Make a validator that checks that the value is a non-empty string.

    Kwargs:
        `trim` (default: :obj:`False`):
            If true, the leading and trailing whitespace characters are
            stripped before the checks -- **and the stripped string is
            stored back into the record** (replacing the field's value).
        `min_length` (default: :obj:`None`):
            If not :obj:`None`, the minimum length of the string.
        `max_length` (default: :obj:`None`):
            If not :obj:`None`, the maximum length of the string.

    Raises:
        :exc:`~exceptions.ValueError` for nonsensical length limits.

    >>> v = string_not_empty_validator(min_length=2, max_length=3)
    >>> v.__name__
    'string_not_empty_validator(trim=False, min_length=2, max_length=3)'
    >>> v('abc', 's', {}) is None
    True
    >>> v('abcd', 's', {})
    's must not be longer than 3 characters (got 4)'
    >>> v('a', 's', {})
    's must not be shorter than 2 characters (got 1)'
    >>> string_not_empty_validator()('', 's', {})
    's must not be empty'
    >>> record = {'s': ' \\t '}
    >>> string_not_empty_validator(trim=True)(record['s'], 's', record)
    's must not be empty'
    >>> record
    {'s': ''}
    """
    if min_length is not None and (not isinstance(min_length, int) or min_length < 0):
        raise ValueError('min_length should be a non-negative int (got {!a})'.format(min_length))
    if max_length is not None and (not isinstance(max_length, int) or max_length < 1):
        raise ValueError('max_length should be a positive int (got {!a})'.format(max_length))
    if min_length is not None and max_length is not None and max_length < min_length:
        raise ValueError('max_length ({!a}) is less than min_length ({!a})'
                         .format(max_length, min_length))

    @_named('string_not_empty_validator({})'.format(_args_repr(
        trim=trim, min_length=min_length, max_length=max_length)))
    def validator(value, field_name, record):
        if not isinstance(value, str):
            return '{} must be a string (got {})'.format(field_name, _describe_value(value))
        if trim:
            value = value.strip()
            record[field_name] = value
        length = len(value)
        if min_length is not None and length < min_length:
            return '{} must not be shorter than {} characters (got {})'.format(
                field_name, min_length, length)
        if max_length is not None and length > max_length:
            return '{} must not be longer than {} characters (got {})'.format(
                field_name, max_length, length)
        if not length:
            return '{} must not be empty'.format(field_name)
        return None

    return validator


def sequence_not_empty_validator():
    """
    Make a validator that checks that the value is a non-empty array.

    >>> v = sequence_not_empty_validator()
    >>> v([0], 'items', {}) is None
    True
    >>> v([], 'items', {})
    'items must not be empty'
    >>> v(None, 'items', {})
    'items must be an array (got None)'
    """

    @_named('sequence_not_empty_validator()')
    def validator(value, field_name, record):
        if not is_seq(value):
            return '{} must be an array (got {})'.format(field_name, _describe_value(value))
        if not value:
            return '{} must not be empty'.format(field_name)
        return None

    return validator


#
# Composition

def chain_validators(*validators):
    """
    Compose validators into one that calls them in the given order,
    stopping at the first failure.

    >>> v = chain_validators(min_validator(0), max_validator(9))
    >>> v.__name__
    'chain_validators(min_validator(0), max_validator(9))'
    >>> v(10, 'digit', {})
    'digit must be <= 9 (got 10)'
    """
    for validator in validators:
        if not callable(validator):
            raise TypeError('{!a} is not callable'.format(validator))
    validators = tuple(validators)

    @_named('chain_validators({})'.format(', '.join(map(describe_validator, validators))))
    def chained(value, field_name, record):
        for validator in validators:
            if field_name in record:
                # (a validator may have replaced the value, e.g., trimmed it)
                value = record[field_name]
            reason = validator(value, field_name, record)
            if reason:
                return reason
        return None

    return chained


def describe_validator(validator):
    """
    >>> describe_validator(min_validator(3))
    'min_validator(3)'
    """
    return getattr(validator, '__name__', get_class_name(validator))
