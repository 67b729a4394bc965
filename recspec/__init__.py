# Copyright (c) 2024 NASK. All rights reserved.

"""
*recspec*: declare record schemas once, then convert loosely-typed,
externally-sourced structured data (nested mappings/arrays/scalars, as
produced by a JSON parser) into validated, possibly nested, records.

Typical usage (with the default, process-wide, registry)::

    import recspec
    from recspec import FieldDeclaration as F

    # (at startup)
    ADDRESS = recspec.declare('Address', [
        F('city', str, validators=recspec.string_not_empty_validator(trim=True)),
        F('zip_code', str, optional=True),
    ])
    PERSON = recspec.declare('Person', [
        F('name', str),
        F('born', recspec.DATE),
        F('addresses', [ADDRESS], default=[]),
    ])

    # (when handling requests)
    person = recspec.convert(untrusted_data, PERSON)
"""

import threading

from recspec.conversion import (
    CONVERTER_CONFIG_SPEC,
    Converter,
)
from recspec.exceptions import (
    ConversionError,
    DuplicateFieldShape,
    InvalidTypeDescriptor,
    MalformedArrayDescriptor,
    MissingRequiredField,
    RecspecError,
    RegistryFrozenError,
    SchemaDeclarationError,
    TypeMismatch,
    UnknownRecord,
    UnparseableValue,
    ValidationError,
)
from recspec.registry import (
    NO_DEFAULT,
    FieldDeclaration,
    RecordSchema,
    SchemaRegistry,
    default_registry,
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
    TypeDescriptor,
    as_type_descriptor,
)
from recspec.validators import (
    chain_validators,
    enum_value_validator,
    max_validator,
    min_max_validator,
    min_validator,
    sequence_not_empty_validator,
    string_not_empty_validator,
)


declare = default_registry.declare
resolve = default_registry.resolve


_default_converter = None
_default_converter_lock = threading.Lock()


def get_default_converter():
    """Get the (lazily created) :class:`Converter` that uses the default registry."""
    global _default_converter
    if _default_converter is None:
        with _default_converter_lock:
            if _default_converter is None:
                _default_converter = Converter(default_registry)
    return _default_converter


def convert(value, target_type):
    """
    Convert `value` to `target_type` using the default converter
    (see :meth:`Converter.convert`).
    """
    return get_default_converter().convert(value, target_type)
