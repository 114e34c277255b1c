"""
pytest configuration and fixtures for schema and codec tests.

Provides reusable fixtures for:
- Schema parsing
- Encoding/decoding through in-memory buffers
- Hypothesis property-based testing configuration
"""

import io
import pytest
import sys
from pathlib import Path

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from avro_binary import BinaryDecoder, BinaryEncoder
from avro_io import DatumReader, DatumWriter

# Configure Hypothesis profiles
try:
    from hypothesis import settings, Verbosity, Phase

    # Default profile: balanced speed and coverage
    settings.register_profile(
        "default",
        max_examples=100,
        deadline=None,
    )

    # CI profile: more thorough testing
    settings.register_profile(
        "ci",
        max_examples=500,
        deadline=None,
        suppress_health_check=[],
        phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    )

    # Dev profile: fast iteration
    settings.register_profile(
        "dev",
        max_examples=10,
        deadline=None,
    )

    # Debug profile: verbose output
    settings.register_profile(
        "debug",
        max_examples=10,
        verbosity=Verbosity.verbose,
        deadline=None,
    )

    # Load profile from environment
    import os
    profile = os.environ.get("HYPOTHESIS_PROFILE", "default")
    settings.load_profile(profile)

except ImportError:
    pass  # Hypothesis not installed


def write_datum(schema, datum) -> bytes:
    """Encode one datum and return the bytes."""
    buf = io.BytesIO()
    DatumWriter(schema).write(datum, BinaryEncoder(buf))
    return buf.getvalue()


def read_datum(data: bytes, writers_schema, readers_schema=None):
    """Decode one datum, resolving into readers_schema when given."""
    reader = DatumReader(writers_schema, readers_schema)
    return reader.read(BinaryDecoder(io.BytesIO(data)))


@pytest.fixture
def roundtrip():
    """
    Encode then decode a datum with the same schema.

    Usage:
        def test_thing(roundtrip):
            assert roundtrip(schema, datum) == datum
    """
    def _roundtrip(schema, datum, readers_schema=None):
        return read_datum(write_datum(schema, datum), schema, readers_schema)
    return _roundtrip


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
