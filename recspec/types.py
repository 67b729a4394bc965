# Copyright (c) 2024 NASK. All rights reserved.

"""
Type descriptors: the closed set of conversion targets.

A type descriptor is one of:

* a scalar descriptor -- one of the singletons :data:`INT`,
  :data:`FLOAT`, :data:`STRING`, :data:`BOOLEAN`, :data:`DATE`,
  :data:`PLAIN_OBJECT`;

* :class:`ArrayOf` -- wrapping exactly one element type descriptor;

* :class:`RecordRef` -- referring (by identifier) to a record type
  declared in a schema registry.

Descriptors are plain immutable data; all behavior lives in
:mod:`recspec.conversion`.

>>> INT
INT
>>> INT.tag
'Int'
>>> ArrayOf(ArrayOf(STRING))
ArrayOf(ArrayOf(STRING))
>>> RecordRef('Person') == RecordRef('Person')
True
>>> as_type_descriptor([int]) == ArrayOf(INT)
True
"""


import datetime

from recspec.exceptions import (
    InvalidTypeDescriptor,
    MalformedArrayDescriptor,
)


class TypeDescriptor(object):

    """
    The base class of all type descriptors.

    Each concrete descriptor has the :attr:`tag` attribute (a `str`)
    which identifies its variant.
    """

    __slots__ = ()

    tag = None


class ScalarType(TypeDescriptor):

    # Instances are the module-level singletons only.

    __slots__ = ('_tag', '_name')

    def __init__(self, tag, name):
        self._tag = tag
        self._name = name

    @property
    def tag(self):
        return self._tag

    def __repr__(self):
        return self._name

    def __reduce__(self):
        # (makes copying/pickling preserve the singletons' identity)
        return self._name


INT = ScalarType('Int', 'INT')
FLOAT = ScalarType('Float', 'FLOAT')
STRING = ScalarType('String', 'STRING')
BOOLEAN = ScalarType('Boolean', 'BOOLEAN')
DATE = ScalarType('Date', 'DATE')
PLAIN_OBJECT = ScalarType('PlainObject', 'PLAIN_OBJECT')


class ArrayOf(TypeDescriptor):

    """
    Array type descriptor.

    The constructor takes exactly one positional argument: the element
    type (anything :func:`as_type_descriptor` accepts).

    >>> ArrayOf(int)
    ArrayOf(INT)
    >>> ArrayOf(INT).element_type
    INT
    >>> ArrayOf()                  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    recspec.exceptions.MalformedArrayDescriptor: ...
    >>> ArrayOf(INT, STRING)       # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    recspec.exceptions.MalformedArrayDescriptor: ...
    """

    __slots__ = ('_element_type',)

    tag = 'ArrayOf'

    def __init__(self, *element_types):
        if len(element_types) != 1:
            raise MalformedArrayDescriptor(
                'array type descriptor must wrap exactly one element '
                'type (got {})'.format(len(element_types)))
        [element_type] = element_types
        self._element_type = as_type_descriptor(element_type)

    @property
    def element_type(self):
        return self._element_type

    def __eq__(self, other):
        if isinstance(other, ArrayOf):
            return self._element_type == other._element_type
        return NotImplemented

    def __hash__(self):
        return hash((ArrayOf, self._element_type))

    def __repr__(self):
        return 'ArrayOf({!r})'.format(self._element_type)


class RecordRef(TypeDescriptor):

    """
    Record type descriptor: a reference to a declared record type.

    The reference is resolved lazily (by the converter, when a value is
    being converted), so the referred record type does not need to be
    declared when the descriptor is created.

    >>> RecordRef('Person')
    RecordRef('Person')
    >>> RecordRef('Person').record_id
    'Person'
    >>> RecordRef('')              # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    recspec.exceptions.InvalidTypeDescriptor: ...
    """

    __slots__ = ('_record_id',)

    tag = 'RecordRef'

    def __init__(self, record_id):
        if not isinstance(record_id, str) or not record_id:
            raise InvalidTypeDescriptor(
                'record identifier must be a non-empty str (got {!a})'.format(record_id))
        self._record_id = record_id

    @property
    def record_id(self):
        return self._record_id

    def __eq__(self, other):
        if isinstance(other, RecordRef):
            return self._record_id == other._record_id
        return NotImplemented

    def __hash__(self):
        return hash((RecordRef, self._record_id))

    def __repr__(self):
        return 'RecordRef({!r})'.format(self._record_id)


_PYTHON_TYPE_TO_DESCRIPTOR = {
    int: INT,
    float: FLOAT,
    str: STRING,
    bool: BOOLEAN,
    datetime.datetime: DATE,
    dict: PLAIN_OBJECT,
}


def as_type_descriptor(obj):
    """
    Normalize a type declaration to a :class:`TypeDescriptor`.

    Accepted forms:

    * a :class:`TypeDescriptor` instance (returned intact);
    * a `list` or `tuple` of exactly one item: the array shorthand,
      the item being the element type (in any of the accepted forms);
    * a :class:`~recspec.registry.RecordSchema` (as returned by
      :meth:`~recspec.registry.SchemaRegistry.declare`);
    * one of the classes: `int`, `float`, `str`, `bool`,
      `datetime.datetime`, `dict`.

    Raises:
        :exc:`~recspec.exceptions.MalformedArrayDescriptor` if the
        array shorthand does not contain exactly one item;
        :exc:`~recspec.exceptions.InvalidTypeDescriptor` for any other
        unsupported object.

    >>> as_type_descriptor(FLOAT)
    FLOAT
    >>> as_type_descriptor((str,))
    ArrayOf(STRING)
    >>> as_type_descriptor([[datetime.datetime]])
    ArrayOf(ArrayOf(DATE))
    >>> as_type_descriptor(dict)
    PLAIN_OBJECT
    >>> as_type_descriptor([int, str])  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    recspec.exceptions.MalformedArrayDescriptor: ...
    >>> as_type_descriptor(list)        # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    recspec.exceptions.InvalidTypeDescriptor: ...
    """
    from recspec.registry import RecordSchema

    if isinstance(obj, TypeDescriptor):
        return obj
    if isinstance(obj, (list, tuple)):
        return ArrayOf(*obj)
    if isinstance(obj, RecordSchema):
        return RecordRef(obj.record_id)
    if isinstance(obj, type):
        try:
            return _PYTHON_TYPE_TO_DESCRIPTOR[obj]
        except KeyError:
            pass
    raise InvalidTypeDescriptor('{!a} is not a valid type descriptor'.format(obj))
