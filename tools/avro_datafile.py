#!/usr/bin/env python3
"""
avro_datafile.py - Object container files holding a stream of records

File layout:

    Header:  magic "Obj\\x01" + metadata map<bytes> + 16-byte sync marker
    Block:   long record count + long byte size + records + sync marker

The metadata carries the writer's schema text ("avro.schema") and the codec
name ("avro.codec"). Only the "null" codec (no compression) is supported.

Usage:
    with open('records.avro', 'wb') as fo:
        with DataFileWriter(fo, DatumWriter(), schema) as writer:
            writer.append({'name': 'a'})

    with open('records.avro', 'rb') as fo:
        for record in DataFileReader(fo, DatumReader()):
            print(record)
"""

import io
import logging
import os
from typing import Any, BinaryIO, Dict, Optional

from avro_binary import BinaryDecoder, BinaryEncoder
from avro_errors import AvroError, DataFileError
from avro_io import DatumReader, DatumWriter
from avro_schema import Schema, parse

logger = logging.getLogger(__name__)

VERSION = 1
MAGIC = b'Obj' + bytes([VERSION])
SYNC_SIZE = 16
SYNC_INTERVAL = 1000 * SYNC_SIZE
VALID_CODECS = ('null',)
SCHEMA_KEY = 'avro.schema'
CODEC_KEY = 'avro.codec'

META_SCHEMA = parse("""
{"type": "record", "name": "org.apache.avro.file.Header",
 "fields": [{"name": "magic", "type": {"type": "fixed", "name": "Magic", "size": 4}},
            {"name": "meta", "type": {"type": "map", "values": "bytes"}},
            {"name": "sync", "type": {"type": "fixed", "name": "Sync", "size": 16}}]}
""")


class DataFileWriter:
    """Appends records to a new container file, one block per sync interval."""

    def __init__(self, writer: BinaryIO, datum_writer: DatumWriter,
                 writers_schema: Optional[Schema] = None, codec: str = 'null',
                 sync_interval: int = SYNC_INTERVAL,
                 metadata: Optional[Dict[str, bytes]] = None):
        if codec not in VALID_CODECS:
            raise DataFileError(f"Unknown codec: {codec!r}")
        if writers_schema is None:
            writers_schema = datum_writer.writers_schema
        if writers_schema is None:
            raise DataFileError("A writer's schema is required for a new file")

        self.writer = writer
        self.encoder = BinaryEncoder(writer)
        self.datum_writer = datum_writer
        self.datum_writer.writers_schema = writers_schema
        self.sync_interval = sync_interval
        self.sync_marker = os.urandom(SYNC_SIZE)
        self.meta: Dict[str, bytes] = dict(metadata or {})
        self.meta[SCHEMA_KEY] = str(writers_schema).encode('utf-8')
        self.meta[CODEC_KEY] = codec.encode('utf-8')

        self.buffer_writer = io.BytesIO()
        self.block_count = 0
        self._write_header()

    def _write_header(self) -> None:
        header = {'magic': MAGIC, 'meta': self.meta, 'sync': self.sync_marker}
        DatumWriter(META_SCHEMA).write(header, self.encoder)

    def _write_block(self) -> None:
        if self.block_count <= 0:
            return
        block = self.buffer_writer.getvalue()
        self.encoder.write_long(self.block_count)
        self.encoder.write_long(len(block))
        self.writer.write(block)
        self.writer.write(self.sync_marker)
        logger.debug("Wrote block of %d records (%d bytes)", self.block_count, len(block))
        self.buffer_writer = io.BytesIO()
        self.block_count = 0

    def append(self, datum: Any) -> None:
        """Encode a datum into the current block.

        A datum that fails to encode leaves the block unchanged.
        """
        record = io.BytesIO()
        self.datum_writer.write(datum, BinaryEncoder(record))
        self.buffer_writer.write(record.getvalue())
        self.block_count += 1
        if self.buffer_writer.tell() >= self.sync_interval:
            self._write_block()

    def flush(self) -> None:
        self._write_block()
        self.writer.flush()

    def close(self) -> None:
        self.flush()
        self.writer.close()

    def __enter__(self) -> 'DataFileWriter':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class DataFileReader:
    """Iterates the records of a container file.

    The writer's schema is taken from the file header and set on the datum
    reader; a reader's schema already set on it is kept.
    """

    def __init__(self, reader: BinaryIO, datum_reader: DatumReader):
        self.reader = reader
        self.decoder = BinaryDecoder(reader)
        self.datum_reader = datum_reader
        self.block_count = 0

        try:
            header = DatumReader(META_SCHEMA).read(self.decoder)
        except AvroError as e:
            raise DataFileError("Not a container file: truncated header") from e
        if header['magic'] != MAGIC:
            raise DataFileError(f"Not a container file: bad magic {header['magic']!r}")

        self.meta: Dict[str, bytes] = header['meta']
        self.sync_marker: bytes = header['sync']
        self.codec = self.meta.get(CODEC_KEY, b'null').decode('utf-8')
        if self.codec not in VALID_CODECS:
            raise DataFileError(f"Unknown codec: {self.codec!r}")
        if SCHEMA_KEY not in self.meta:
            raise DataFileError("Container file header has no schema")
        self.datum_reader.writers_schema = parse(self.meta[SCHEMA_KEY].decode('utf-8'))

    def get_meta(self, key: str) -> Optional[bytes]:
        return self.meta.get(key)

    @property
    def writers_schema(self) -> Schema:
        return self.datum_reader.writers_schema

    def _check_sync(self) -> None:
        marker = self.decoder.read(SYNC_SIZE)
        if marker != self.sync_marker:
            raise DataFileError("Sync marker mismatch")

    def __iter__(self) -> 'DataFileReader':
        return self

    def __next__(self) -> Any:
        while self.block_count == 0:
            block_count = self.decoder.read_long_or_eof()
            if block_count is None:
                raise StopIteration
            if block_count < 0:
                raise DataFileError(f"Negative block count: {block_count}")
            self.block_count = block_count
            self.decoder.read_long()  # block size in bytes
            if self.block_count == 0:
                self._check_sync()
        datum = self.datum_reader.read(self.decoder)
        self.block_count -= 1
        if self.block_count == 0:
            self._check_sync()
        return datum

    def close(self) -> None:
        self.reader.close()

    def __enter__(self) -> 'DataFileReader':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
