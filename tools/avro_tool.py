#!/usr/bin/env python3
"""
avro_tool.py - Command-line front end for schemas, binary data and container files

Schema and datum files may be JSON or YAML. Bytes and fixed values are
written in JSON as strings whose code points 0-255 stand for single bytes.

Usage:
  # Print the canonical form of a schema
  python tools/avro_tool.py canonical schema.avsc

  # Check a datum against a schema
  python tools/avro_tool.py validate schema.avsc datum.json

  # Encode a datum (hex on stdout, or binary to a file)
  python tools/avro_tool.py encode schema.avsc datum.json -o datum.bin

  # Decode, optionally resolving into a newer reader's schema
  python tools/avro_tool.py decode schema.avsc datum.bin --reader-schema v2.avsc

  # Random data, container files
  python tools/avro_tool.py random schema.avsc -n 5 --seed 1
  python tools/avro_tool.py fromjson schema.avsc records.jsonl -o records.avro
  python tools/avro_tool.py tojson records.avro
"""

import argparse
import io
import itertools
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from avro_binary import BinaryDecoder, BinaryEncoder
from avro_datafile import DataFileReader, DataFileWriter
from avro_errors import AvroError
from avro_io import DatumReader, DatumWriter
from avro_random import RandomData
from avro_schema import Schema, SchemaType, make_schema
from avro_validate import validate, validate_path

logger = logging.getLogger(__name__)


def load_schema(path: Path) -> Schema:
    """Load schema text from a JSON or YAML file."""
    return make_schema(yaml.safe_load(path.read_text()))


def json_to_datum(schema: Schema, value: Any) -> Any:
    """Convert a JSON value into the Python value the writer expects."""
    schema_type = schema.type
    if schema_type in (SchemaType.BYTES, SchemaType.FIXED) and isinstance(value, str):
        return value.encode('iso-8859-1')
    if schema_type in (SchemaType.FLOAT, SchemaType.DOUBLE) and isinstance(value, int) \
            and not isinstance(value, bool):
        return float(value)
    if schema_type == SchemaType.ARRAY and isinstance(value, list):
        return [json_to_datum(schema.items, v) for v in value]
    if schema_type == SchemaType.MAP and isinstance(value, dict):
        return {k: json_to_datum(schema.values, v) for k, v in value.items()}
    if schema_type == SchemaType.RECORD and isinstance(value, dict):
        return {f.name: json_to_datum(f.type, value[f.name])
                for f in schema.fields if f.name in value}
    if schema_type == SchemaType.UNION:
        for branch in schema.schemas:
            converted = json_to_datum(branch, value)
            if validate(branch, converted):
                return converted
    return value


def datum_to_json(datum: Any) -> Any:
    """Convert a decoded value into something json.dumps accepts."""
    if isinstance(datum, bytes):
        return datum.decode('iso-8859-1')
    if isinstance(datum, list):
        return [datum_to_json(v) for v in datum]
    if isinstance(datum, dict):
        return {k: datum_to_json(v) for k, v in datum.items()}
    return datum


def cmd_canonical(args: argparse.Namespace) -> int:
    print(load_schema(args.schema))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    schema = load_schema(args.schema)
    datum = json_to_datum(schema, yaml.safe_load(args.datum.read_text()))
    path = validate_path(schema, datum)
    if path is None:
        print("OK")
        return 0
    print(f"Invalid datum at {path or '<root>'}", file=sys.stderr)
    return 1


def cmd_encode(args: argparse.Namespace) -> int:
    schema = load_schema(args.schema)
    datum = json_to_datum(schema, yaml.safe_load(args.datum.read_text()))
    buf = io.BytesIO()
    DatumWriter(schema).write(datum, BinaryEncoder(buf))
    binary = buf.getvalue()

    if args.output:
        args.output.write_bytes(binary)
        print(f"Encoded to {args.output} ({len(binary)} bytes)", file=sys.stderr)
    else:
        print(binary.hex())
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    writers_schema = load_schema(args.schema)
    readers_schema = load_schema(args.reader_schema) if args.reader_schema else None
    if args.hex:
        binary = bytes.fromhex(args.input.read_text().strip())
    else:
        binary = args.input.read_bytes()

    decoder = BinaryDecoder(io.BytesIO(binary))
    datum = DatumReader(writers_schema, readers_schema).read(decoder)
    print(json.dumps(datum_to_json(datum)))
    return 0


def cmd_random(args: argparse.Namespace) -> int:
    schema = load_schema(args.schema)
    generator = RandomData(schema, args.seed)
    logger.info("Random data seed: %d", generator.seed)
    for datum in itertools.islice(generator, args.count):
        print(json.dumps(datum_to_json(datum)))
    return 0


def cmd_tojson(args: argparse.Namespace) -> int:
    with args.input.open('rb') as fo:
        reader = DataFileReader(fo, DatumReader())
        for datum in reader:
            print(json.dumps(datum_to_json(datum)))
    return 0


def cmd_fromjson(args: argparse.Namespace) -> int:
    schema = load_schema(args.schema)
    count = 0
    with args.output.open('wb') as fo:
        with DataFileWriter(fo, DatumWriter(), schema) as writer:
            for line in args.input.read_text().splitlines():
                if not line.strip():
                    continue
                writer.append(json_to_datum(schema, json.loads(line)))
                count += 1
    print(f"Wrote {count} records to {args.output}", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Schema, binary datum and container file tool')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    can = subparsers.add_parser('canonical', help='Print canonical schema text')
    can.add_argument('schema', type=Path, help='Schema file')
    can.set_defaults(func=cmd_canonical)

    val = subparsers.add_parser('validate', help='Validate a datum against a schema')
    val.add_argument('schema', type=Path, help='Schema file')
    val.add_argument('datum', type=Path, help='Datum file (JSON/YAML)')
    val.set_defaults(func=cmd_validate)

    enc = subparsers.add_parser('encode', help='Encode a datum to binary')
    enc.add_argument('schema', type=Path, help='Schema file')
    enc.add_argument('datum', type=Path, help='Datum file (JSON/YAML)')
    enc.add_argument('-o', '--output', type=Path, help='Output binary file')
    enc.set_defaults(func=cmd_encode)

    dec = subparsers.add_parser('decode', help='Decode a binary datum to JSON')
    dec.add_argument('schema', type=Path, help="Writer's schema file")
    dec.add_argument('input', type=Path, help='Binary input file')
    dec.add_argument('--reader-schema', type=Path, help="Reader's schema file")
    dec.add_argument('--hex', action='store_true', help='Input file holds hex text')
    dec.set_defaults(func=cmd_decode)

    rnd = subparsers.add_parser('random', help='Generate random data as JSON lines')
    rnd.add_argument('schema', type=Path, help='Schema file')
    rnd.add_argument('-n', '--count', type=int, default=10, help='Number of values')
    rnd.add_argument('--seed', type=int, default=None, help='Random seed')
    rnd.set_defaults(func=cmd_random)

    toj = subparsers.add_parser('tojson', help='Dump a container file as JSON lines')
    toj.add_argument('input', type=Path, help='Container file')
    toj.set_defaults(func=cmd_tojson)

    frj = subparsers.add_parser('fromjson', help='Write JSON lines into a container file')
    frj.add_argument('schema', type=Path, help='Schema file')
    frj.add_argument('input', type=Path, help='JSON lines file')
    frj.add_argument('-o', '--output', type=Path, required=True, help='Container file')
    frj.set_defaults(func=cmd_fromjson)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='[%(levelname)s] %(message)s', stream=sys.stderr)
    try:
        return args.func(args)
    except (AvroError, OSError, ValueError, yaml.YAMLError) as e:
        # unreadable files, malformed YAML/JSON/hex and schema or data errors
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
