# Copyright (c) 2024 NASK. All rights reserved.

"""
Exception classes used by the *recspec* library.

There are two families of them:

* schema declaration errors (:exc:`SchemaDeclarationError` and its
  subclasses) -- raised when a record type is being declared, i.e.,
  they are schema-author errors;

* conversion errors (:exc:`ConversionError` and its subclasses) --
  raised by :meth:`recspec.conversion.Converter.convert` when the input
  data cannot be converted to the requested type; such an error always
  describes the innermost failure, and its *location path* points to the
  offending item within the whole converted structure.

Both families derive from :exc:`RecspecError` and provide the
:attr:`~_ErrorWithPublicMessageMixin.public_message` property.
"""


import collections

from recspec.class_helpers import attr_repr
from recspec.encoding_helpers import (
    ascii_str,
    limited_ascii_repr,
)


#
# Generic mix-ins
#

class _ErrorWithPublicMessageMixin(object):

    """
    A mix-in class that provides the :attr:`public_message` property.

    The value of this property is an ASCII-only `str`.  It is taken
    either from the `public_message` constructor keyword argument or
    -- if the argument was not specified -- from the value of the
    :attr:`default_public_message` attribute (which in subclasses can
    also be a property).

    .. warning::

       Generally, the message is intended to be presented to clients.
       **Ensure that you do not disclose any sensitive details in the
       message.**

    The :class:`str` conversion uses the value of :attr:`public_message`:

    >>> class SomeError(_ErrorWithPublicMessageMixin, Exception):
    ...     pass
    ...
    >>> str(SomeError('a', 'b'))  # using attribute default_public_message
    'Internal error.'
    >>> str(SomeError('a', 'b', public_message='Spąm.'))
    'Sp\\\\u0105m.'

    The :func:`repr` conversion results in a programmer-readable
    representation (containing the class name, :func:`repr`-formatted
    constructor arguments and the :attr:`public_message` property):

    >>> SomeError('a', 'b')
    <SomeError: args=('a', 'b'); public_message='Internal error.'>
    """

    #: (overridable in subclasses)
    default_public_message = 'Internal error.'

    def __init__(self, *args, **kwargs):
        try:
            public_message = kwargs.pop('public_message')
        except KeyError:
            pass
        else:
            self._public_message = ascii_str(public_message)
        try:
            super(_ErrorWithPublicMessageMixin, self).__init__(*args, **kwargs)
        except TypeError:
            if kwargs:
                raise TypeError(
                    'illegal keyword arguments for {} constructor: {}'.format(
                        self.__class__.__name__,
                        ', '.join(sorted(map(repr, kwargs))))) from None
            raise

    @property
    def public_message(self):
        """The aforementioned property."""
        try:
            return self._public_message
        except AttributeError:
            # (not cached: `default_public_message` may be a property
            # whose value changes, e.g., when a location path grows)
            return ascii_str(self.default_public_message)

    def __str__(self):
        return self.public_message

    def __repr__(self):
        return ('<{0.__class__.__name__}: args={0.args!r}; '
                'public_message={0.public_message!r}>'.format(self))


#
# Public exception classes
#

class RecspecError(_ErrorWithPublicMessageMixin, Exception):

    """
    The base class of all *recspec*-specific exceptions.
    """

    default_public_message = 'Record-schema-related error.'


#
# Schema declaration errors

class SchemaDeclarationError(RecspecError, ValueError):

    """
    Raised when a record type declaration is erroneous (e.g., a record
    with the same identifier has already been declared, or two fields
    of one declaration have the same name).

    >>> exc = SchemaDeclarationError("duplicate field name 'x'")
    >>> isinstance(exc, RecspecError) and isinstance(exc, ValueError)
    True
    >>> str(exc)
    "duplicate field name 'x'"
    >>> str(SchemaDeclarationError())
    'Invalid record schema declaration.'
    """

    #: (overridable in subclasses; used if no message has been given)
    generic_message = 'Invalid record schema declaration.'

    @property
    def default_public_message(self):
        if self.args:
            return ascii_str(self.args[0])
        return self.generic_message


class InvalidTypeDescriptor(SchemaDeclarationError, TypeError):

    """
    Raised when something that is not (and cannot be normalized to)
    a type descriptor is used as a field type or a conversion target.
    """

    generic_message = 'Invalid type descriptor.'


class MalformedArrayDescriptor(InvalidTypeDescriptor):

    """
    Raised when an array type descriptor does not wrap exactly one
    element type descriptor.

    >>> issubclass(MalformedArrayDescriptor, SchemaDeclarationError)
    True
    >>> DuplicateFieldShape is MalformedArrayDescriptor
    True
    """

    generic_message = 'Array type descriptor must wrap exactly one element type.'


DuplicateFieldShape = MalformedArrayDescriptor


class RegistryFrozenError(SchemaDeclarationError):

    """
    Raised when a declaration is attempted on a frozen registry.
    """

    generic_message = 'The schema registry is frozen.'


#
# Conversion errors

class ConversionError(RecspecError, ValueError):

    """
    Raised when input data cannot be converted to the target type.

    Constructor args/kwargs:
        `reason` (a `str`; positional):
            A human-readable description of the failure.
        `target_type` (keyword-only; default: :obj:`None`):
            The type descriptor the value was being converted to.
        `input_value` (keyword-only; default: :obj:`None`):
            The offending input value.

    While an error propagates up through nested arrays and records, the
    converter calls :meth:`prepend_location` with each *relative location*
    (an array index or a field name); the public message of the error is
    then prefixed with the resultant *location path* pointing to the
    problematic item within the whole converted structure:

    >>> exc = ConversionError('bad value', target_type='T', input_value=42)
    >>> exc.reason, exc.target_type, exc.input_value, exc.location_path
    ('bad value', 'T', 42, ())
    >>> exc.prepend_location(0)
    >>> exc.prepend_location('items')
    >>> exc.location_path
    ('items', 0)
    >>> str(exc)
    '[items.0] bad value'
    """

    default_reason = 'conversion failed'

    def __init__(self, reason=None, *, target_type=None, input_value=None, **kwargs):
        if reason is None:
            reason = self.default_reason
        super(ConversionError, self).__init__(reason, **kwargs)
        self.reason = reason
        self.target_type = target_type
        self.input_value = input_value
        self._location_path = collections.deque()

    def prepend_location(self, name_or_index):
        self._verify_is_name_or_index(name_or_index)
        self._location_path.appendleft(name_or_index)

    @property
    def location_path(self):
        return tuple(self._location_path)

    @property
    def default_public_message(self):
        return self._get_location_prefix() + self._get_description()

    __repr__ = attr_repr('reason', 'target_type', 'input_value', 'location_path')

    @staticmethod
    def _verify_is_name_or_index(name_or_index):
        if not isinstance(name_or_index, (str, int)) or isinstance(name_or_index, bool):
            raise TypeError('{!a} is neither a name (`str`) nor an '
                            'index (`int`)'.format(name_or_index))

    def _get_location_prefix(self):
        if self._location_path:
            return '[{}] '.format('.'.join(map(ascii_str, self._location_path)))
        return ''

    def _get_description(self):
        return ascii_str(self.reason)


class UnknownRecord(ConversionError, LookupError):

    """
    Raised when a record identifier has never been declared.

    >>> exc = UnknownRecord('Spam')
    >>> exc.record_id
    'Spam'
    >>> str(exc)
    "unknown record type 'Spam'"
    >>> isinstance(exc, LookupError)
    True
    """

    def __init__(self, record_id, **kwargs):
        super(UnknownRecord, self).__init__(
            'unknown record type {}'.format(limited_ascii_repr(record_id)),
            **kwargs)
        self.record_id = record_id


class TypeMismatch(ConversionError):

    """
    Raised when the kind of the input value is wrong for the target type
    (e.g., a list given where a record is expected).
    """

    default_reason = 'unexpected type of input value'


class UnparseableValue(ConversionError):

    """
    Raised when a numeric or date value could not be parsed (or
    does not satisfy the target type's constraints, e.g., a number
    with a non-zero fractional part being converted to an integer).
    """

    default_reason = 'unparseable value'


class MissingRequiredField(ConversionError):

    """
    Raised when a required field is absent (or null and without
    a default) in the input of a record conversion.

    >>> exc = MissingRequiredField('Person', 'name')
    >>> exc.record_id, exc.field_name
    ('Person', 'name')
    >>> str(exc)
    "missing required field 'name' of record 'Person'"
    """

    def __init__(self, record_id, field_name, **kwargs):
        super(MissingRequiredField, self).__init__(
            'missing required field {} of record {}'.format(
                limited_ascii_repr(field_name),
                limited_ascii_repr(record_id)),
            **kwargs)
        self.record_id = record_id
        self.field_name = field_name


class ValidationError(ConversionError):

    """
    Raised when a field validator reports a failure.

    The :attr:`reason` attribute is the failure reason returned by the
    validator.

    >>> exc = ValidationError('Event', 'end', 7, 'end must not precede start')
    >>> exc.record_id, exc.field_name, exc.value, exc.reason
    ('Event', 'end', 7, 'end must not precede start')
    >>> exc.input_value
    7
    >>> str(exc)
    "field 'end' of record 'Event' is invalid: end must not precede start"
    >>> exc.prepend_location('event')
    >>> str(exc)
    "[event] field 'end' of record 'Event' is invalid: end must not precede start"
    """

    def __init__(self, record_id, field_name, value, reason, **kwargs):
        kwargs.setdefault('input_value', value)
        super(ValidationError, self).__init__(reason, **kwargs)
        self.record_id = record_id
        self.field_name = field_name
        self.value = value

    def _get_description(self):
        return 'field {} of record {} is invalid: {}'.format(
            limited_ascii_repr(self.field_name),
            limited_ascii_repr(self.record_id),
            ascii_str(self.reason))
