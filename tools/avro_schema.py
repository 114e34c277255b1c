#!/usr/bin/env python3
"""
avro_schema.py - Schema model, name registry and schema text parser/printer

Schemas are parsed from JSON text (or an already-decoded JSON tree) into a
closed set of schema classes:

    Primitive:  null, boolean, string, bytes, int, long, float, double
    Named:      record (and its "error" variant), enum, fixed
    Complex:    array, map, union

Named types are registered in a Names registry that is created fresh for
every parse call. A named type is registered before its body is parsed, so
records may refer to themselves or to each other by name; every reference
resolves to the same schema instance.

Usage:
    from avro_schema import parse

    schema = parse('{"type": "array", "items": "long"}')
    print(schema)            # canonical schema text
    schema == parse(str(schema))
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from avro_errors import SchemaParseError


class SchemaType(Enum):
    """Schema kinds. Values are the type names used in schema text."""
    NULL = 'null'
    BOOLEAN = 'boolean'
    STRING = 'string'
    BYTES = 'bytes'
    INT = 'int'
    LONG = 'long'
    FLOAT = 'float'
    DOUBLE = 'double'
    FIXED = 'fixed'
    ENUM = 'enum'
    ARRAY = 'array'
    MAP = 'map'
    UNION = 'union'
    RECORD = 'record'


PRIMITIVE_TYPES = frozenset([
    SchemaType.NULL, SchemaType.BOOLEAN, SchemaType.STRING, SchemaType.BYTES,
    SchemaType.INT, SchemaType.LONG, SchemaType.FLOAT, SchemaType.DOUBLE,
])

NAMED_TYPES = frozenset([SchemaType.FIXED, SchemaType.ENUM, SchemaType.RECORD])

# Type names that introduce a named schema in schema text
NAMED_TYPE_NAMES = ('record', 'error', 'enum', 'fixed')


def make_fullname(name: str, namespace: Optional[str] = None) -> str:
    """Qualify a name with a namespace unless it is already a full name."""
    if '.' in name or not namespace:
        return name
    return f"{namespace}.{name}"


class Schema:
    """Base class of all schema kinds."""

    def __init__(self, type_: SchemaType):
        self.type = type_

    def equals(self, other: Any, seen: Set[str]) -> bool:
        """Compare with another schema.

        `seen` holds the full names already compared in this call; a named
        type seen again is assumed equal, which is what stops the comparison
        on recursive definitions.
        """
        return isinstance(other, Schema) and self.type == other.type

    def hash_with(self, seen: Set[str]) -> int:
        return hash(self.type)

    def __eq__(self, other: Any) -> bool:
        return self.equals(other, set())

    def __ne__(self, other: Any) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return self.hash_with(set())

    def to_json(self, seen: Optional[Set[str]] = None,
                namespace: Optional[str] = None) -> Any:
        """Return the schema as a JSON tree.

        `seen` collects the full names already printed; later occurrences of
        a named type print as a bare name reference.
        `namespace` is the enclosing namespace the tree is printed under.
        """
        raise NotImplementedError

    def __str__(self) -> str:
        return json.dumps(self.to_json(set()))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self}>"


class PrimitiveSchema(Schema):
    """null, boolean, string, bytes, int, long, float or double."""

    def __init__(self, type_: SchemaType):
        if type_ not in PRIMITIVE_TYPES:
            raise SchemaParseError(f"{type_.value} is not a primitive type")
        super().__init__(type_)

    def to_json(self, seen: Optional[Set[str]] = None,
                namespace: Optional[str] = None) -> Any:
        return self.type.value


class NamedSchema(Schema):
    """Common part of record, enum and fixed."""

    def __init__(self, type_: SchemaType, name: str,
                 namespace: Optional[str] = None):
        super().__init__(type_)
        if not name or not isinstance(name, str):
            raise SchemaParseError(f"Invalid name for {type_.value}: {name!r}")
        if namespace is not None and not isinstance(namespace, str):
            raise SchemaParseError(f"Invalid namespace: {namespace!r}")
        self.fullname = make_fullname(name, namespace)
        if '.' in self.fullname:
            self.namespace, self.name = self.fullname.rsplit('.', 1)
        else:
            self.namespace, self.name = None, self.fullname

    def name_props(self, enclosing: Optional[str] = None) -> Dict[str, Any]:
        """Name and namespace as printed inside `enclosing`.

        A type in the null namespace nested under a namespaced type prints an
        empty namespace so it does not inherit the enclosing one when reparsed.
        """
        props = {'name': self.name}
        if self.namespace:
            props['namespace'] = self.namespace
        elif enclosing:
            props['namespace'] = ''
        return props

    def to_json(self, seen: Optional[Set[str]] = None,
                namespace: Optional[str] = None) -> Any:
        if seen is None:
            seen = set()
        if self.fullname in seen:
            return self.fullname
        seen.add(self.fullname)
        return self.definition_json(seen, namespace)

    def definition_json(self, seen: Set[str], namespace: Optional[str]) -> Dict[str, Any]:
        raise NotImplementedError

    def hash_with(self, seen: Set[str]) -> int:
        return hash((self.type, self.fullname))


class FixedSchema(NamedSchema):
    def __init__(self, name: str, namespace: Optional[str], size: int):
        super().__init__(SchemaType.FIXED, name, namespace)
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise SchemaParseError(f"Fixed size must be a non-negative integer: {size!r}")
        self.size = size

    def equals(self, other: Any, seen: Set[str]) -> bool:
        return (isinstance(other, FixedSchema)
                and self.fullname == other.fullname
                and self.size == other.size)

    def hash_with(self, seen: Set[str]) -> int:
        return hash((self.type, self.fullname, self.size))

    def definition_json(self, seen: Set[str], namespace: Optional[str]) -> Dict[str, Any]:
        result = {'type': 'fixed'}
        result.update(self.name_props(namespace))
        result['size'] = self.size
        return result


class EnumSchema(NamedSchema):
    def __init__(self, name: str, namespace: Optional[str], symbols: List[str]):
        super().__init__(SchemaType.ENUM, name, namespace)
        if not all(isinstance(s, str) for s in symbols):
            raise SchemaParseError(f"Enum symbols must be strings: {symbols!r}")
        if len(set(symbols)) != len(symbols):
            raise SchemaParseError(f"Duplicate symbol in enum {self.fullname}: {symbols!r}")
        self.symbols = tuple(symbols)
        self._ordinals = {s: i for i, s in enumerate(self.symbols)}

    def ordinal(self, symbol: str) -> Optional[int]:
        """Zero-based position of a symbol, None when absent."""
        return self._ordinals.get(symbol)

    def equals(self, other: Any, seen: Set[str]) -> bool:
        return (isinstance(other, EnumSchema)
                and self.fullname == other.fullname
                and self.symbols == other.symbols)

    def definition_json(self, seen: Set[str], namespace: Optional[str]) -> Dict[str, Any]:
        result = {'type': 'enum'}
        result.update(self.name_props(namespace))
        result['symbols'] = list(self.symbols)
        return result


class Field:
    """A record field: name, schema and optional default literal.

    `has_default` is tracked separately so that a JSON null default is a
    real default.
    """

    def __init__(self, name: str, schema: Schema, has_default: bool = False,
                 default: Any = None):
        if not name or not isinstance(name, str):
            raise SchemaParseError(f"Invalid field name: {name!r}")
        self.name = name
        self.type = schema
        self.has_default = has_default
        self.default = default if has_default else None

    def equals(self, other: Any, seen: Set[str]) -> bool:
        return (isinstance(other, Field)
                and self.name == other.name
                and self.has_default == other.has_default
                and self.default == other.default
                and self.type.equals(other.type, seen))

    def __eq__(self, other: Any) -> bool:
        return self.equals(other, set())

    def __hash__(self) -> int:
        return hash((self.name, self.type.hash_with(set())))

    def to_json(self, seen: Optional[Set[str]] = None,
                namespace: Optional[str] = None) -> Dict[str, Any]:
        result = {'name': self.name, 'type': self.type.to_json(seen, namespace)}
        if self.has_default:
            result['default'] = self.default
        return result

    def __repr__(self) -> str:
        return f"<Field {self.name}: {self.type}>"


class RecordSchema(NamedSchema):
    """Record (or error) with an ordered field list.

    The field list is filled once, after the record is registered, so field
    types may refer back to the record itself.
    """

    def __init__(self, name: str, namespace: Optional[str] = None,
                 fields: Optional[List[Field]] = None, is_error: bool = False):
        super().__init__(SchemaType.RECORD, name, namespace)
        self.is_error = is_error
        self.fields: Tuple[Field, ...] = ()
        self.fields_dict: Dict[str, Field] = {}
        if fields is not None:
            self._set_fields(fields)

    def _set_fields(self, fields: List[Field]) -> None:
        fields_dict = {}
        for field in fields:
            if field.name in fields_dict:
                raise SchemaParseError(
                    f"Duplicate field name {field.name!r} in record {self.fullname}")
            fields_dict[field.name] = field
        self.fields = tuple(fields)
        self.fields_dict = fields_dict

    def field(self, name: str) -> Optional[Field]:
        return self.fields_dict.get(name)

    def equals(self, other: Any, seen: Set[str]) -> bool:
        if not isinstance(other, RecordSchema):
            return False
        if self.fullname != other.fullname or self.is_error != other.is_error:
            return False
        if self.fullname in seen:
            return True
        seen.add(self.fullname)
        if len(self.fields) != len(other.fields):
            return False
        return all(f.equals(g, seen) for f, g in zip(self.fields, other.fields))

    def hash_with(self, seen: Set[str]) -> int:
        if self.fullname in seen:
            return hash((self.type, self.fullname))
        seen.add(self.fullname)
        return hash((self.type, self.fullname,
                     tuple((f.name, f.type.hash_with(seen)) for f in self.fields)))

    def definition_json(self, seen: Set[str], namespace: Optional[str]) -> Dict[str, Any]:
        result = {'type': 'error' if self.is_error else 'record'}
        result.update(self.name_props(namespace))
        result['fields'] = [f.to_json(seen, self.namespace) for f in self.fields]
        return result


class ArraySchema(Schema):
    def __init__(self, items: Schema):
        super().__init__(SchemaType.ARRAY)
        self.items = items

    def equals(self, other: Any, seen: Set[str]) -> bool:
        return isinstance(other, ArraySchema) and self.items.equals(other.items, seen)

    def hash_with(self, seen: Set[str]) -> int:
        return hash((self.type, self.items.hash_with(seen)))

    def to_json(self, seen: Optional[Set[str]] = None,
                namespace: Optional[str] = None) -> Any:
        return {'type': 'array', 'items': self.items.to_json(seen, namespace)}


class MapSchema(Schema):
    def __init__(self, values: Schema):
        super().__init__(SchemaType.MAP)
        self.values = values

    def equals(self, other: Any, seen: Set[str]) -> bool:
        return isinstance(other, MapSchema) and self.values.equals(other.values, seen)

    def hash_with(self, seen: Set[str]) -> int:
        return hash((self.type, self.values.hash_with(seen)))

    def to_json(self, seen: Optional[Set[str]] = None,
                namespace: Optional[str] = None) -> Any:
        return {'type': 'map', 'values': self.values.to_json(seen, namespace)}


class UnionSchema(Schema):
    """Ordered branch list. Branch order fixes the wire-format index."""

    def __init__(self, schemas: List[Schema]):
        super().__init__(SchemaType.UNION)
        self.schemas = tuple(schemas)

    def equals(self, other: Any, seen: Set[str]) -> bool:
        if not isinstance(other, UnionSchema) or len(self.schemas) != len(other.schemas):
            return False
        return all(s.equals(o, seen) for s, o in zip(self.schemas, other.schemas))

    def hash_with(self, seen: Set[str]) -> int:
        return hash((self.type, tuple(s.hash_with(seen) for s in self.schemas)))

    def to_json(self, seen: Optional[Set[str]] = None,
                namespace: Optional[str] = None) -> Any:
        if seen is None:
            seen = set()
        return [s.to_json(seen, namespace) for s in self.schemas]


PRIMITIVES = {t.value: PrimitiveSchema(t) for t in PRIMITIVE_TYPES}


class Names:
    """Registry of schemas by full name, scoped to one parse call.

    Seeded with the primitive type names so that a named type can never
    shadow a primitive.
    """

    def __init__(self):
        self.names: Dict[str, Schema] = dict(PRIMITIVES)

    def __contains__(self, fullname: str) -> bool:
        return fullname in self.names

    def __getitem__(self, fullname: str) -> Schema:
        return self.names[fullname]

    def get_name(self, name: str, namespace: Optional[str] = None) -> Optional[Schema]:
        """Resolve a reference, trying the enclosing namespace first."""
        fullname = make_fullname(name, namespace)
        if fullname in self.names:
            return self.names[fullname]
        return self.names.get(name)

    def add_name(self, schema: NamedSchema) -> None:
        if schema.fullname in self.names:
            raise SchemaParseError(f"Can't redefine: {schema.fullname}")
        self.names[schema.fullname] = schema


def _parse_field(field_data: Any, names: Names, namespace: Optional[str]) -> Field:
    if not isinstance(field_data, dict):
        raise SchemaParseError(f"Not a field: {field_data!r}")
    if 'name' not in field_data:
        raise SchemaParseError(f"No field name: {field_data!r}")
    if 'type' not in field_data:
        raise SchemaParseError(f"No field type: {field_data!r}")
    field_schema = make_schema(field_data['type'], names, namespace)
    return Field(field_data['name'], field_schema,
                 has_default='default' in field_data,
                 default=field_data.get('default'))


def make_field_objects(field_data: Any, names: Names,
                       namespace: Optional[str] = None) -> List[Field]:
    """Parse a JSON list of field declarations."""
    if not isinstance(field_data, list):
        raise SchemaParseError(f"Fields must be a list: {field_data!r}")
    return [_parse_field(f, names, namespace) for f in field_data]


def _make_named_schema(json_data: Dict[str, Any], type_name: str, names: Names,
                       namespace: Optional[str]) -> NamedSchema:
    name = json_data.get('name')
    if not name:
        raise SchemaParseError(f"No name in schema: {json_data!r}")
    namespace = json_data.get('namespace', namespace)

    if type_name == 'fixed':
        if 'size' not in json_data:
            raise SchemaParseError(f"Fixed has no size: {json_data!r}")
        schema = FixedSchema(name, namespace, json_data['size'])
        names.add_name(schema)
        return schema

    if type_name == 'enum':
        symbols = json_data.get('symbols')
        if not isinstance(symbols, list):
            raise SchemaParseError(f"Enum has no symbols: {json_data!r}")
        schema = EnumSchema(name, namespace, symbols)
        names.add_name(schema)
        return schema

    schema = RecordSchema(name, namespace, is_error=(type_name == 'error'))
    names.add_name(schema)
    if 'fields' not in json_data:
        raise SchemaParseError(f"Record has no fields: {json_data!r}")
    schema._set_fields(make_field_objects(json_data['fields'], names, schema.namespace))
    return schema


def make_schema(json_data: Any, names: Optional[Names] = None,
                namespace: Optional[str] = None) -> Schema:
    """Build a schema from an already-decoded JSON tree."""
    if names is None:
        names = Names()

    if isinstance(json_data, str):
        schema = names.get_name(json_data, namespace)
        if schema is None:
            raise SchemaParseError(f"Undefined name: {json_data}")
        return schema

    if isinstance(json_data, list):
        return UnionSchema([make_schema(s, names, namespace) for s in json_data])

    if not isinstance(json_data, dict):
        raise SchemaParseError(f"Could not make a schema from {json_data!r}")

    if 'type' not in json_data:
        raise SchemaParseError(f"No type: {json_data!r}")
    type_name = json_data['type']

    if type_name in NAMED_TYPE_NAMES:
        return _make_named_schema(json_data, type_name, names, namespace)
    if type_name == 'array':
        if 'items' not in json_data:
            raise SchemaParseError(f"Array has no items: {json_data!r}")
        return ArraySchema(make_schema(json_data['items'], names, namespace))
    if type_name == 'map':
        if 'values' not in json_data:
            raise SchemaParseError(f"Map has no values: {json_data!r}")
        return MapSchema(make_schema(json_data['values'], names, namespace))
    # {"type": "string"} or {"type": "SomeRecord"}
    if isinstance(type_name, str) and names.get_name(type_name, namespace) is not None:
        return names.get_name(type_name, namespace)
    if isinstance(type_name, (list, dict)):
        return make_schema(type_name, names, namespace)
    raise SchemaParseError(f"Unknown type: {type_name!r}")


def parse(json_string: str) -> Schema:
    """Parse schema text into a Schema, using a fresh Names registry."""
    try:
        json_data = json.loads(json_string)
    except ValueError as e:
        raise SchemaParseError(f"Error parsing JSON: {json_string!r}") from e
    return make_schema(json_data, Names())
