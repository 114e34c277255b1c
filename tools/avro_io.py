#!/usr/bin/env python3
"""
avro_io.py - Generic datum writer and reader with schema resolution

DatumWriter serializes a Python value against one schema. DatumReader
deserializes bytes written with the writer's schema and resolves them into
the reader's schema, which may be a different version of the same schema:

    - int/long/float values promote to wider numeric types
    - record fields pair by name; writer-only fields are skipped and
      reader-only fields are filled from their defaults
    - a non-union value read into a union picks the first matching branch

Usage:
    import io
    from avro_schema import parse
    from avro_binary import BinaryEncoder, BinaryDecoder
    from avro_io import DatumWriter, DatumReader

    buf = io.BytesIO()
    DatumWriter(writer_schema).write(datum, BinaryEncoder(buf))

    reader = DatumReader(writer_schema, reader_schema)
    value = reader.read(BinaryDecoder(io.BytesIO(buf.getvalue())))
"""

import logging
from typing import Any, Dict, List, Optional

from avro_binary import BinaryDecoder, BinaryEncoder
from avro_errors import (
    AvroTypeError, BinaryDecodeError, SchemaMismatchError, UnknownSchemaTypeError,
)
from avro_schema import PRIMITIVE_TYPES, Schema, SchemaType
from avro_validate import validate

logger = logging.getLogger(__name__)

# Writer type -> reader types it can be promoted to
PROMOTIONS = {
    SchemaType.INT: (SchemaType.LONG, SchemaType.FLOAT, SchemaType.DOUBLE),
    SchemaType.LONG: (SchemaType.FLOAT, SchemaType.DOUBLE),
    SchemaType.FLOAT: (SchemaType.DOUBLE,),
}


def match_schemas(writers_schema: Schema, readers_schema: Schema) -> bool:
    """Return True if data written with one schema can be read with the other.

    This is a shallow check: unions always match here (the branch is chosen
    later) and named types match on full name only. Array items and map
    values are matched with this same function rather than by kind alone,
    so they may promote too: array<int> reads as array<long>.
    """
    w_type = writers_schema.type
    r_type = readers_schema.type

    if SchemaType.UNION in (w_type, r_type):
        return True
    if w_type == r_type:
        if w_type in PRIMITIVE_TYPES:
            return True
        if w_type in (SchemaType.RECORD, SchemaType.ENUM):
            return writers_schema.fullname == readers_schema.fullname
        if w_type == SchemaType.FIXED:
            return (writers_schema.fullname == readers_schema.fullname
                    and writers_schema.size == readers_schema.size)
        if w_type == SchemaType.MAP:
            return match_schemas(writers_schema.values, readers_schema.values)
        if w_type == SchemaType.ARRAY:
            return match_schemas(writers_schema.items, readers_schema.items)
    return r_type in PROMOTIONS.get(w_type, ())


def resolve_union_branch(writers_schema: Schema, readers_union: Schema) -> Optional[Schema]:
    """First reader branch, in declared order, that matches the writer's schema."""
    for branch in readers_union.schemas:
        if match_schemas(writers_schema, branch):
            return branch
    return None


class DatumWriter:
    """Writes generic Python values against a schema."""

    def __init__(self, writers_schema: Optional[Schema] = None):
        self.writers_schema = writers_schema

    def write(self, datum: Any, encoder: BinaryEncoder) -> None:
        self.write_data(self.writers_schema, datum, encoder)

    def write_data(self, writers_schema: Schema, datum: Any, encoder: BinaryEncoder) -> None:
        if not validate(writers_schema, datum):
            raise AvroTypeError(writers_schema, datum)

        schema_type = writers_schema.type
        if schema_type == SchemaType.NULL:
            encoder.write_null(datum)
        elif schema_type == SchemaType.BOOLEAN:
            encoder.write_boolean(datum)
        elif schema_type == SchemaType.STRING:
            encoder.write_utf8(datum)
        elif schema_type == SchemaType.INT:
            encoder.write_int(datum)
        elif schema_type == SchemaType.LONG:
            encoder.write_long(datum)
        elif schema_type == SchemaType.FLOAT:
            encoder.write_float(datum)
        elif schema_type == SchemaType.DOUBLE:
            encoder.write_double(datum)
        elif schema_type == SchemaType.BYTES:
            encoder.write_bytes(datum)
        elif schema_type == SchemaType.FIXED:
            self.write_fixed(writers_schema, datum, encoder)
        elif schema_type == SchemaType.ENUM:
            self.write_enum(writers_schema, datum, encoder)
        elif schema_type == SchemaType.ARRAY:
            self.write_array(writers_schema, datum, encoder)
        elif schema_type == SchemaType.MAP:
            self.write_map(writers_schema, datum, encoder)
        elif schema_type == SchemaType.UNION:
            self.write_union(writers_schema, datum, encoder)
        elif schema_type == SchemaType.RECORD:
            self.write_record(writers_schema, datum, encoder)
        else:
            raise UnknownSchemaTypeError(f"Unknown type: {schema_type}")

    def write_fixed(self, writers_schema: Schema, datum: bytes, encoder: BinaryEncoder) -> None:
        encoder.write(datum)

    def write_enum(self, writers_schema: Schema, datum: str, encoder: BinaryEncoder) -> None:
        encoder.write_int(writers_schema.ordinal(datum))

    def write_array(self, writers_schema: Schema, datum: List[Any], encoder: BinaryEncoder) -> None:
        """Single block of all items, then the zero terminator."""
        if datum:
            encoder.write_long(len(datum))
            for item in datum:
                self.write_data(writers_schema.items, item, encoder)
        encoder.write_long(0)

    def write_map(self, writers_schema: Schema, datum: Dict[str, Any], encoder: BinaryEncoder) -> None:
        if datum:
            encoder.write_long(len(datum))
            for key, value in datum.items():
                if not isinstance(key, str):
                    raise AvroTypeError(writers_schema, datum)
                encoder.write_utf8(key)
                self.write_data(writers_schema.values, value, encoder)
        encoder.write_long(0)

    def write_union(self, writers_schema: Schema, datum: Any, encoder: BinaryEncoder) -> None:
        """Write the first branch that validates, not the best one."""
        for index, branch in enumerate(writers_schema.schemas):
            if validate(branch, datum):
                encoder.write_long(index)
                self.write_data(branch, datum, encoder)
                return
        raise AvroTypeError(writers_schema, datum)

    def write_record(self, writers_schema: Schema, datum: Dict[str, Any], encoder: BinaryEncoder) -> None:
        for field in writers_schema.fields:
            self.write_data(field.type, datum.get(field.name), encoder)


class DatumReader:
    """Reads generic Python values, resolving writer's schema to reader's schema.

    A reader field that the writer lacks and that has no default is left
    out of the result record. An enum symbol the reader does not declare is
    returned as written.
    """

    def __init__(self, writers_schema: Optional[Schema] = None,
                 readers_schema: Optional[Schema] = None):
        self.writers_schema = writers_schema
        self.readers_schema = readers_schema

    def read(self, decoder: BinaryDecoder) -> Any:
        if self.readers_schema is None:
            self.readers_schema = self.writers_schema
        return self.read_data(self.writers_schema, self.readers_schema, decoder)

    def read_data(self, writers_schema: Schema, readers_schema: Schema,
                  decoder: BinaryDecoder) -> Any:
        if not match_schemas(writers_schema, readers_schema):
            raise SchemaMismatchError(writers_schema, readers_schema)

        # writer's schema is a union, reader's is not
        if writers_schema.type == SchemaType.UNION and readers_schema.type != SchemaType.UNION:
            return self.read_union(writers_schema, readers_schema, decoder)

        # reader's schema is a union, writer's is not
        if readers_schema.type == SchemaType.UNION and writers_schema.type != SchemaType.UNION:
            branch = resolve_union_branch(writers_schema, readers_schema)
            if branch is None:
                raise SchemaMismatchError(writers_schema, readers_schema)
            return self.read_data(writers_schema, branch, decoder)

        schema_type = writers_schema.type
        if schema_type == SchemaType.NULL:
            return decoder.read_null()
        elif schema_type == SchemaType.BOOLEAN:
            return decoder.read_boolean()
        elif schema_type == SchemaType.STRING:
            return decoder.read_utf8()
        elif schema_type == SchemaType.INT:
            return self.promote(decoder.read_int(), readers_schema)
        elif schema_type == SchemaType.LONG:
            return self.promote(decoder.read_long(), readers_schema)
        elif schema_type == SchemaType.FLOAT:
            return decoder.read_float()
        elif schema_type == SchemaType.DOUBLE:
            return decoder.read_double()
        elif schema_type == SchemaType.BYTES:
            return decoder.read_bytes()
        elif schema_type == SchemaType.FIXED:
            return self.read_fixed(writers_schema, readers_schema, decoder)
        elif schema_type == SchemaType.ENUM:
            return self.read_enum(writers_schema, readers_schema, decoder)
        elif schema_type == SchemaType.ARRAY:
            return self.read_array(writers_schema, readers_schema, decoder)
        elif schema_type == SchemaType.MAP:
            return self.read_map(writers_schema, readers_schema, decoder)
        elif schema_type == SchemaType.UNION:
            return self.read_union(writers_schema, readers_schema, decoder)
        elif schema_type == SchemaType.RECORD:
            return self.read_record(writers_schema, readers_schema, decoder)
        raise UnknownSchemaTypeError(f"Cannot read unknown schema type: {schema_type}")

    @staticmethod
    def promote(value: int, readers_schema: Schema) -> Any:
        """Integer read into a float/double reader becomes a float."""
        if readers_schema.type in (SchemaType.FLOAT, SchemaType.DOUBLE):
            return float(value)
        return value

    def read_fixed(self, writers_schema: Schema, readers_schema: Schema,
                   decoder: BinaryDecoder) -> bytes:
        return decoder.read(writers_schema.size)

    def read_enum(self, writers_schema: Schema, readers_schema: Schema,
                  decoder: BinaryDecoder) -> str:
        index = decoder.read_int()
        if not 0 <= index < len(writers_schema.symbols):
            raise BinaryDecodeError(
                f"Enum index {index} out of range for {writers_schema.fullname}")
        symbol = writers_schema.symbols[index]
        if readers_schema.ordinal(symbol) is None:
            logger.warning("Symbol %r is not in reader's enum %s; returned unresolved",
                           symbol, readers_schema.fullname)
        return symbol

    def read_array(self, writers_schema: Schema, readers_schema: Schema,
                   decoder: BinaryDecoder) -> List[Any]:
        items = []
        block_count = decoder.read_long()
        while block_count != 0:
            if block_count < 0:
                block_count = -block_count
                decoder.read_long()  # block size in bytes
            for _ in range(block_count):
                items.append(self.read_data(writers_schema.items,
                                            readers_schema.items, decoder))
            block_count = decoder.read_long()
        return items

    def read_map(self, writers_schema: Schema, readers_schema: Schema,
                 decoder: BinaryDecoder) -> Dict[str, Any]:
        result = {}
        block_count = decoder.read_long()
        while block_count != 0:
            if block_count < 0:
                block_count = -block_count
                decoder.read_long()  # block size in bytes
            for _ in range(block_count):
                key = decoder.read_utf8()
                result[key] = self.read_data(writers_schema.values,
                                             readers_schema.values, decoder)
            block_count = decoder.read_long()
        return result

    def read_union(self, writers_schema: Schema, readers_schema: Schema,
                   decoder: BinaryDecoder) -> Any:
        index = decoder.read_long()
        if not 0 <= index < len(writers_schema.schemas):
            raise BinaryDecodeError(
                f"Union branch index {index} out of range for {writers_schema}")
        return self.read_data(writers_schema.schemas[index], readers_schema, decoder)

    def read_record(self, writers_schema: Schema, readers_schema: Schema,
                    decoder: BinaryDecoder) -> Dict[str, Any]:
        read_record = {}
        for field in writers_schema.fields:
            readers_field = readers_schema.field(field.name)
            if readers_field is not None:
                read_record[field.name] = self.read_data(field.type, readers_field.type, decoder)
            else:
                logger.debug("Skipping writer field %s.%s", writers_schema.fullname, field.name)
                self.skip_data(field.type, decoder)

        for field in readers_schema.fields:
            if field.name in read_record or writers_schema.field(field.name) is not None:
                continue
            if field.has_default:
                logger.debug("Filling reader field %s.%s from its default",
                             readers_schema.fullname, field.name)
                read_record[field.name] = self.read_default_value(field.type, field.default)
            else:
                logger.debug("Reader field %s.%s has no writer value and no default; left unset",
                             readers_schema.fullname, field.name)

        # result keys follow the reader's declaration order
        return {f.name: read_record[f.name] for f in readers_schema.fields if f.name in read_record}

    def read_default_value(self, field_schema: Schema, default_value: Any) -> Any:
        """Turn a JSON default literal into a value of the field's schema."""
        schema_type = field_schema.type
        if schema_type == SchemaType.NULL:
            return None
        elif schema_type == SchemaType.BOOLEAN:
            return default_value
        elif schema_type in (SchemaType.INT, SchemaType.LONG):
            return int(default_value)
        elif schema_type in (SchemaType.FLOAT, SchemaType.DOUBLE):
            return float(default_value)
        elif schema_type in (SchemaType.ENUM, SchemaType.STRING):
            return default_value
        elif schema_type in (SchemaType.FIXED, SchemaType.BYTES):
            # JSON has no bytes; code points 0-255 stand for single bytes
            if isinstance(default_value, str):
                return default_value.encode('iso-8859-1')
            return default_value
        elif schema_type == SchemaType.ARRAY:
            return [self.read_default_value(field_schema.items, v) for v in default_value]
        elif schema_type == SchemaType.MAP:
            return {k: self.read_default_value(field_schema.values, v)
                    for k, v in default_value.items()}
        elif schema_type == SchemaType.UNION:
            return self.read_default_value(field_schema.schemas[0], default_value)
        elif schema_type == SchemaType.RECORD:
            record = {}
            for field in field_schema.fields:
                if field.name in default_value:
                    record[field.name] = self.read_default_value(field.type, default_value[field.name])
                elif field.has_default:
                    record[field.name] = self.read_default_value(field.type, field.default)
            return record
        raise UnknownSchemaTypeError(f"Unknown type: {schema_type}")

    def skip_data(self, writers_schema: Schema, decoder: BinaryDecoder) -> None:
        """Consume one value written with writers_schema."""
        schema_type = writers_schema.type
        if schema_type == SchemaType.NULL:
            decoder.skip_null()
        elif schema_type == SchemaType.BOOLEAN:
            decoder.skip_boolean()
        elif schema_type == SchemaType.STRING:
            decoder.skip_utf8()
        elif schema_type in (SchemaType.INT, SchemaType.LONG):
            decoder.skip_long()
        elif schema_type == SchemaType.FLOAT:
            decoder.skip_float()
        elif schema_type == SchemaType.DOUBLE:
            decoder.skip_double()
        elif schema_type == SchemaType.BYTES:
            decoder.skip_bytes()
        elif schema_type == SchemaType.FIXED:
            decoder.skip(writers_schema.size)
        elif schema_type == SchemaType.ENUM:
            decoder.skip_int()
        elif schema_type == SchemaType.ARRAY:
            self.skip_blocks(decoder, lambda: self.skip_data(writers_schema.items, decoder))
        elif schema_type == SchemaType.MAP:
            def skip_entry():
                decoder.skip_utf8()
                self.skip_data(writers_schema.values, decoder)
            self.skip_blocks(decoder, skip_entry)
        elif schema_type == SchemaType.UNION:
            index = decoder.read_long()
            if not 0 <= index < len(writers_schema.schemas):
                raise BinaryDecodeError(
                    f"Union branch index {index} out of range for {writers_schema}")
            self.skip_data(writers_schema.schemas[index], decoder)
        elif schema_type == SchemaType.RECORD:
            for field in writers_schema.fields:
                self.skip_data(field.type, decoder)
        else:
            raise UnknownSchemaTypeError(f"Unknown type: {schema_type}")

    @staticmethod
    def skip_blocks(decoder: BinaryDecoder, skip_item) -> None:
        """Skip array/map blocks; sized blocks are skipped without decoding."""
        block_count = decoder.read_long()
        while block_count != 0:
            if block_count < 0:
                decoder.skip(decoder.read_long())
            else:
                for _ in range(block_count):
                    skip_item()
            block_count = decoder.read_long()
