#!/usr/bin/env python3
"""
avro_random.py - Generate random values that conform to a schema

Usage:
    from avro_random import RandomData

    for datum in itertools.islice(RandomData(schema, seed=42), 10):
        ...

Arrays and maps get shorter with nesting depth, so generation terminates
for recursive record types.
"""

import random
from typing import Any, Iterator, Optional

from avro_errors import UnknownSchemaTypeError
from avro_schema import PRIMITIVE_TYPES, Schema, SchemaType
from avro_validate import INT_MAX_VALUE, INT_MIN_VALUE, LONG_MAX_VALUE, LONG_MIN_VALUE

CHARPOOL = 'abcdefghjkmnpqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ23456789'
BYTEPOOL = b'12345abcd'
MAX_STRING_LENGTH = 20
# past this depth a union picks a primitive branch when it has one
MAX_DEPTH = 8


class RandomData:
    """Infinite iterator of random data for one schema."""

    def __init__(self, schema: Schema, seed: Optional[int] = None):
        self.schema = schema
        self.seed = seed if seed is not None else random.randint(0, 2**32)
        self.rng = random.Random(self.seed)

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        return self.next_data(self.schema)

    def random_string(self, length: int = MAX_STRING_LENGTH) -> str:
        return ''.join(self.rng.choice(CHARPOOL) for _ in range(self.rng.randint(0, length)))

    def random_bytes(self, length: int) -> bytes:
        return bytes(self.rng.choice(BYTEPOOL) for _ in range(length))

    def next_data(self, schema: Schema, depth: int = 0) -> Any:
        schema_type = schema.type

        if schema_type == SchemaType.NULL:
            return None
        elif schema_type == SchemaType.BOOLEAN:
            return self.rng.random() > 0.5
        elif schema_type == SchemaType.STRING:
            return self.random_string()
        elif schema_type == SchemaType.BYTES:
            return self.random_bytes(self.rng.randint(0, MAX_STRING_LENGTH))
        elif schema_type == SchemaType.INT:
            return self.rng.randint(INT_MIN_VALUE, INT_MAX_VALUE)
        elif schema_type == SchemaType.LONG:
            return self.rng.randint(LONG_MIN_VALUE, LONG_MAX_VALUE)
        elif schema_type == SchemaType.FLOAT:
            # integral values survive the single-precision round trip exactly
            return float(round(-1024 + 2048 * self.rng.random()))
        elif schema_type == SchemaType.DOUBLE:
            return LONG_MIN_VALUE + (LONG_MAX_VALUE - LONG_MIN_VALUE) * self.rng.random()
        elif schema_type == SchemaType.FIXED:
            return self.random_bytes(schema.size)
        elif schema_type == SchemaType.ENUM:
            return self.rng.choice(schema.symbols) if schema.symbols else None
        elif schema_type == SchemaType.ARRAY:
            length = max(self.rng.randint(0, 4) + 2 - depth, 0)
            return [self.next_data(schema.items, depth + 1) for _ in range(length)]
        elif schema_type == SchemaType.MAP:
            length = max(self.rng.randint(0, 4) + 2 - depth, 0)
            return {self.random_string(): self.next_data(schema.values, depth + 1)
                    for _ in range(length)}
        elif schema_type == SchemaType.RECORD:
            return {f.name: self.next_data(f.type, depth + 1) for f in schema.fields}
        elif schema_type == SchemaType.UNION:
            branches = schema.schemas
            if depth >= MAX_DEPTH:
                leaves = [s for s in branches if s.type in PRIMITIVE_TYPES]
                branches = leaves or branches
            return self.next_data(self.rng.choice(branches), depth)
        raise UnknownSchemaTypeError(f"Unknown type: {schema_type}")
