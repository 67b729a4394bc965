# Copyright (c) 2024 NASK. All rights reserved.

"""
The schema registry: declaration and lookup of record types.

A record type is declared -- once, during the application's startup
phase -- by calling :meth:`SchemaRegistry.declare` with the record
identifier, a sequence of :class:`FieldDeclaration` instances and
(optionally) the parent record type.  The call returns an immutable
:class:`RecordSchema` handle that contains the *merged* (i.e.,
inheritance-resolved) field declarations and validators.

>>> registry = SchemaRegistry()
>>> base = registry.declare('Base', [
...     FieldDeclaration('id', int),
...     FieldDeclaration('name', str, validators=lambda v, n, r: None),
... ])
>>> child = registry.declare('Child', [
...     FieldDeclaration('name', str, default=''),
...     FieldDeclaration('tags', [str], optional=True),
... ], parent=base)
>>> child.field_names
('name', 'tags', 'id')
>>> child.required_field_names
frozenset({'id'})
>>> child.fields['name'].default
''
>>> len(child.get_validators('name'))     # (inherited from `Base`)
1
>>> registry.resolve('Child') is child
True
"""


import copy
import threading
import types

from pyramid.decorator import reify

from recspec.class_helpers import (
    attr_repr,
    get_class_name,
    is_seq,
)
from recspec.exceptions import (
    RegistryFrozenError,
    SchemaDeclarationError,
    UnknownRecord,
)
from recspec.log_helpers import get_logger
from recspec.types import (
    RecordRef,
    as_type_descriptor,
)


_LOGGER = get_logger(__name__)


class _NoDefaultType(object):

    __slots__ = ()

    def __repr__(self):
        return 'NO_DEFAULT'

    def __reduce__(self):
        return 'NO_DEFAULT'

    def __bool__(self):
        return False


#: The marker of the absence of a field's default value (note that
#: `None` is a legal default value).
NO_DEFAULT = _NoDefaultType()


class FieldDeclaration(object):

    """
    A declaration of one record field.

    Args:
        `name` (a non-empty `str`):
            The field name (the key in input/output mappings).
        `type`:
            The field's type: a :class:`~recspec.types.TypeDescriptor`
            or anything :func:`~recspec.types.as_type_descriptor`
            accepts.

    Kwargs (keyword-only):
        `optional` (default: :obj:`False`):
            Whether the field may be absent in the input.
        `default` (default: :data:`NO_DEFAULT`):
            The value substituted when the field is absent or null;
            if given, the field is always optional.
        `validators` (default: empty tuple):
            A validator or a sequence of validators (see
            :mod:`recspec.validators`).

    >>> f = FieldDeclaration('age', int, default=0)
    >>> f
    <FieldDeclaration name='age', type=INT, optional=True, default=0, validators=()>
    >>> f.has_default
    True
    >>> FieldDeclaration('age', int).optional
    False
    """

    def __init__(self, name, type, *, optional=False, default=NO_DEFAULT, validators=()):
        if not isinstance(name, str) or not name:
            raise SchemaDeclarationError(
                'field name must be a non-empty str (got {!a})'.format(name))
        self._name = name
        self._type = as_type_descriptor(type)
        self._default = default
        self._optional = bool(optional) or default is not NO_DEFAULT
        self._validators = self._get_validators_tuple(name, validators)

    name = property(lambda self: self._name)
    type = property(lambda self: self._type)
    optional = property(lambda self: self._optional)
    default = property(lambda self: self._default)
    validators = property(lambda self: self._validators)

    @property
    def has_default(self):
        return self._default is not NO_DEFAULT

    def get_default_copy(self):
        """Get a deep copy of the default value (so that no output shares state with the schema)."""
        return copy.deepcopy(self._default)

    __repr__ = attr_repr('name', 'type', 'optional', 'default', 'validators')

    @staticmethod
    def _get_validators_tuple(name, validators):
        if validators is None:
            return ()
        if callable(validators):
            return (validators,)
        if not is_seq(validators):
            raise SchemaDeclarationError(
                'validators of field {!a} should be specified as a '
                'callable or a sequence of callables (got {!a})'.format(name, validators))
        validators = tuple(validators)
        for validator in validators:
            if not callable(validator):
                raise SchemaDeclarationError(
                    '{!a} (specified as a validator of field {!a}) '
                    'is not callable'.format(validator, name))
        return validators


class RecordSchema(object):

    """
    An immutable handle of a declared record type.

    Instances should be obtained only by calling
    :meth:`SchemaRegistry.declare` or :meth:`SchemaRegistry.resolve`.

    Attributes/properties:
        `record_id`:
            The record type identifier.
        `parent`:
            The parent's :class:`RecordSchema` or :obj:`None`.
        `fields`:
            A read-only mapping: field name -> :class:`FieldDeclaration`,
            ordered: first the record type's own fields (in declaration
            order), then the inherited fields that have not been
            redeclared (in the parent's order).
        `validators`:
            A read-only mapping: field name -> non-empty tuple of
            validators (merged independently of `fields`: a redeclared
            field with no validators of its own inherits the validators
            of the parent's field of the same name).
        `record_class`:
            The class of output records (`dict` or its subclass).
    """

    def __init__(self, record_id, own_fields, parent=None, record_class=dict):
        self._record_id = record_id
        self._parent = parent
        self._record_class = record_class
        fields = {f.name: f for f in own_fields}
        validators = {f.name: f.validators for f in own_fields if f.validators}
        if parent is not None:
            for name, field in parent.fields.items():
                fields.setdefault(name, field)
            for name, parent_validators in parent.validators.items():
                validators.setdefault(name, parent_validators)
        self._fields = types.MappingProxyType(fields)
        self._validators = types.MappingProxyType(validators)

    record_id = property(lambda self: self._record_id)
    parent = property(lambda self: self._parent)
    fields = property(lambda self: self._fields)
    validators = property(lambda self: self._validators)
    record_class = property(lambda self: self._record_class)

    @property
    def parent_id(self):
        return self._parent.record_id if self._parent is not None else None

    @reify
    def field_names(self):
        return tuple(self._fields)

    @reify
    def required_field_names(self):
        return frozenset(name for name, f in self._fields.items() if not f.optional)

    @reify
    def optional_field_names(self):
        return frozenset(name for name, f in self._fields.items() if f.optional)

    @reify
    def validation_plan(self):
        """A tuple of (field name, validators) pairs, in field order."""
        return tuple((name, self._validators[name])
                     for name in self._fields
                     if name in self._validators)

    def get_validators(self, field_name):
        return self._validators.get(field_name, ())

    def to_type_descriptor(self):
        return RecordRef(self._record_id)

    __repr__ = attr_repr('record_id', 'parent_id', 'field_names')


class SchemaRegistry(object):

    """
    A store of record schemas.

    The registry only grows: there is no way to remove or modify a
    declared record type.  Declarations are serialized with a lock;
    lookups (:meth:`resolve`) do not acquire it, as the underlying
    mapping is only ever added to.  After :meth:`freeze` is called,
    any further declaration attempt causes
    :exc:`~recspec.exceptions.RegistryFrozenError`.

    >>> registry = SchemaRegistry()
    >>> 'Point' in registry
    False
    >>> point = registry.declare('Point', [FieldDeclaration('x', float),
    ...                                    FieldDeclaration('y', float)])
    >>> 'Point' in registry, len(registry)
    (True, 1)
    >>> registry.freeze()
    >>> registry.declare('Other')    # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    recspec.exceptions.RegistryFrozenError: ...
    """

    def __init__(self):
        self._schemas = {}
        self._lock = threading.Lock()
        self._frozen = False

    @property
    def frozen(self):
        return self._frozen

    def __contains__(self, record_id):
        return record_id in self._schemas

    def __len__(self):
        return len(self._schemas)

    def record_ids(self):
        return tuple(self._schemas)

    def declare(self, record_id, fields=(), *, parent=None, record_class=dict):
        """
        Declare a new record type.

        Args:
            `record_id` (a non-empty `str`):
                The identifier of the record type (must not have been
                declared yet).
            `fields` (default: empty tuple):
                A sequence of :class:`FieldDeclaration` instances.

        Kwargs (keyword-only):
            `parent` (default: :obj:`None`):
                The identifier or :class:`RecordSchema` of an already
                declared record type to inherit fields and validators
                from.
            `record_class` (default: `dict`):
                The class of output records: `dict` or a subclass of it
                (which can provide some record-specific methods).

        Returns:
            The new :class:`RecordSchema`.

        Raises:
            :exc:`~recspec.exceptions.SchemaDeclarationError` (or its
            subclass) for an erroneous declaration;
            :exc:`~recspec.exceptions.UnknownRecord` if the specified
            parent has not been declared.
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    'cannot declare record type {!a}: the registry '
                    'is frozen'.format(record_id))
            self._verify_record_id(record_id)
            self._verify_record_class(record_id, record_class)
            own_fields = self._get_own_fields(record_id, fields)
            parent_schema = self._get_parent_schema(parent)
            schema = RecordSchema(record_id, own_fields,
                                  parent=parent_schema,
                                  record_class=record_class)
            self._verify_no_direct_self_reference(schema)
            self._schemas[record_id] = schema
        _LOGGER.debug('Declared record type %a (parent: %a; fields: %s)',
                      record_id,
                      schema.parent_id,
                      ', '.join(map(ascii, schema.field_names)))
        return schema

    def resolve(self, record_id):
        """
        Get the :class:`RecordSchema` of the specified record type.

        Args:
            `record_id`:
                The record type identifier (or a :class:`RecordSchema`).

        Raises:
            :exc:`~recspec.exceptions.UnknownRecord` if the record type
            has not been declared.
        """
        if isinstance(record_id, RecordSchema):
            record_id = record_id.record_id
        try:
            return self._schemas[record_id]
        except KeyError:
            raise UnknownRecord(record_id) from None

    def freeze(self):
        """Disallow any further declarations."""
        with self._lock:
            if not self._frozen:
                self._frozen = True
                _LOGGER.info('Schema registry frozen (%d record types declared)',
                             len(self._schemas))

    def _verify_record_id(self, record_id):
        if not isinstance(record_id, str) or not record_id:
            raise SchemaDeclarationError(
                'record identifier must be a non-empty str (got {!a})'.format(record_id))
        if record_id in self._schemas:
            raise SchemaDeclarationError(
                'record type {!a} has already been declared'.format(record_id))

    @staticmethod
    def _verify_record_class(record_id, record_class):
        if not (isinstance(record_class, type) and issubclass(record_class, dict)):
            raise SchemaDeclarationError(
                'record class of {!a} must be dict or a subclass of '
                'it (got {!a})'.format(record_id, record_class))

    @staticmethod
    def _get_own_fields(record_id, fields):
        if not is_seq(fields):
            raise SchemaDeclarationError(
                'fields of record type {!a} should be specified as a '
                'sequence of FieldDeclaration instances (got {})'.format(
                    record_id, get_class_name(fields)))
        seen_names = set()
        for field in fields:
            if not isinstance(field, FieldDeclaration):
                raise SchemaDeclarationError(
                    '{!a} (specified as a field of record type {!a}) is '
                    'not a FieldDeclaration instance'.format(field, record_id))
            if field.name in seen_names:
                raise SchemaDeclarationError(
                    'duplicate field name {!a} in the declaration of '
                    'record type {!a}'.format(field.name, record_id))
            seen_names.add(field.name)
        return tuple(fields)

    def _get_parent_schema(self, parent):
        if parent is None:
            return None
        parent_schema = self.resolve(parent)
        if isinstance(parent, RecordSchema) and parent is not parent_schema:
            raise SchemaDeclarationError(
                'the specified parent ({!a}) is not the record schema '
                'declared in this registry'.format(parent))
        return parent_schema

    @staticmethod
    def _verify_no_direct_self_reference(schema):
        # A record type may refer to itself only through an array,
        # so that the recursion is bounded by the depth of input data.
        for field in schema.fields.values():
            if isinstance(field.type, RecordRef) and field.type.record_id == schema.record_id:
                raise SchemaDeclarationError(
                    'field {!a} of record type {!a} refers directly to its '
                    'own record type (only an array of it is allowed)'.format(
                        field.name, schema.record_id))


#: The default (process-wide) registry.
default_registry = SchemaRegistry()
