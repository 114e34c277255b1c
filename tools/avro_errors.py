#!/usr/bin/env python3
"""
avro_errors.py - Exception hierarchy shared by the schema, codec and IO modules

Every error raised by these tools derives from AvroError, so callers that
only care about "the data or schema is bad" can catch one type.
"""

from typing import Any


class AvroError(Exception):
    """Base class for all schema, codec and resolution errors."""


class SchemaParseError(AvroError):
    """Schema text is malformed or incomplete."""


class AvroTypeError(AvroError):
    """A datum is not an example of the schema it is being written with."""

    def __init__(self, schema: Any, datum: Any):
        self.schema = schema
        self.datum = datum
        super().__init__(
            f"The datum {datum!r} is not an example of schema {schema}")


class SchemaMismatchError(AvroError):
    """Writer's and reader's schemas cannot be resolved against each other."""

    def __init__(self, writers_schema: Any, readers_schema: Any):
        self.writers_schema = writers_schema
        self.readers_schema = readers_schema
        super().__init__(
            f"Writer's schema {writers_schema} and reader's schema "
            f"{readers_schema} do not match")


class UnknownSchemaTypeError(AvroError):
    """A schema kind has no codec handler."""


class BinaryDecodeError(AvroError):
    """The byte source does not hold a complete, well-formed encoding."""


class DataFileError(AvroError):
    """A container file is invalid or uses an unsupported codec."""
