#!/usr/bin/env python3
"""
avro_validate.py - Check whether a Python value is an example of a schema

Generic values map onto schema kinds as follows:

    null      None
    boolean   bool
    string    str
    bytes     bytes
    int/long  int (not bool) within the signed 32/64-bit range
    float     float
    double    float
    fixed     bytes of exactly the declared size
    enum      str, one of the symbols
    array     list
    map       dict (keys are not checked)
    record    dict keyed by field name; a missing key counts as None
    union     any value valid for at least one branch

Usage:
    from avro_validate import validate, validate_path

    validate(schema, {"f": 1})          # True / False
    validate_path(schema, {"f": "x"})   # None, or "f" for the failing spot
"""

from typing import Any, Optional

from avro_schema import Schema, SchemaType

INT_MIN_VALUE = -(1 << 31)
INT_MAX_VALUE = (1 << 31) - 1
LONG_MIN_VALUE = -(1 << 63)
LONG_MAX_VALUE = (1 << 63) - 1


def _is_integer(datum: Any) -> bool:
    return isinstance(datum, int) and not isinstance(datum, bool)


def validate(schema: Schema, datum: Any) -> bool:
    """Return True if datum conforms to schema. Never raises for bad data."""
    schema_type = schema.type

    if schema_type == SchemaType.NULL:
        return datum is None
    elif schema_type == SchemaType.BOOLEAN:
        return isinstance(datum, bool)
    elif schema_type == SchemaType.STRING:
        return isinstance(datum, str)
    elif schema_type == SchemaType.BYTES:
        return isinstance(datum, bytes)
    elif schema_type == SchemaType.INT:
        return _is_integer(datum) and INT_MIN_VALUE <= datum <= INT_MAX_VALUE
    elif schema_type == SchemaType.LONG:
        return _is_integer(datum) and LONG_MIN_VALUE <= datum <= LONG_MAX_VALUE
    elif schema_type in (SchemaType.FLOAT, SchemaType.DOUBLE):
        return isinstance(datum, float)
    elif schema_type == SchemaType.FIXED:
        return isinstance(datum, bytes) and len(datum) == schema.size
    elif schema_type == SchemaType.ENUM:
        return isinstance(datum, str) and schema.ordinal(datum) is not None
    elif schema_type == SchemaType.ARRAY:
        return (isinstance(datum, list)
                and all(validate(schema.items, item) for item in datum))
    elif schema_type == SchemaType.MAP:
        return (isinstance(datum, dict)
                and all(validate(schema.values, v) for v in datum.values()))
    elif schema_type == SchemaType.RECORD:
        return (isinstance(datum, dict)
                and all(validate(f.type, datum.get(f.name)) for f in schema.fields))
    elif schema_type == SchemaType.UNION:
        return any(validate(s, datum) for s in schema.schemas)
    return False


def validate_path(schema: Schema, datum: Any, path: str = '') -> Optional[str]:
    """Locate the first place where datum does not conform to schema.

    Returns None when the datum is valid, otherwise a path such as
    "children[2].label" ("" meaning the top-level value itself).
    """
    if validate(schema, datum):
        return None

    schema_type = schema.type
    if schema_type == SchemaType.ARRAY and isinstance(datum, list):
        for i, item in enumerate(datum):
            found = validate_path(schema.items, item, f"{path}[{i}]")
            if found is not None:
                return found
    elif schema_type == SchemaType.MAP and isinstance(datum, dict):
        for key, value in datum.items():
            found = validate_path(schema.values, value, f"{path}[{key!r}]")
            if found is not None:
                return found
    elif schema_type == SchemaType.RECORD and isinstance(datum, dict):
        for field in schema.fields:
            child = f"{path}.{field.name}" if path else field.name
            found = validate_path(field.type, datum.get(field.name), child)
            if found is not None:
                return found
    return path
