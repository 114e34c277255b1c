"""
Tests for protocol descriptor parsing and printing.
"""

import json
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from avro_errors import SchemaParseError
from avro_protocol import Protocol, ProtocolParseError
from avro_schema import RecordSchema, SchemaType, UnionSchema


MAIL_PROTOCOL = """
{"protocol": "Mail", "namespace": "example.proto",
 "types": [{"type": "record", "name": "Message",
            "fields": [{"name": "to", "type": "string"},
                       {"name": "body", "type": "string"}]},
           {"type": "error", "name": "Bounce",
            "fields": [{"name": "reason", "type": "string"}]},
           {"type": "enum", "name": "Priority", "symbols": ["LOW", "HIGH"]}],
 "messages": {"send": {"request": [{"name": "message", "type": "Message"},
                                   {"name": "priority", "type": "Priority"}],
                       "response": "string",
                       "errors": ["Bounce"]},
              "last": {"request": [], "response": "Message"}}}
"""


class TestProtocolParse:
    """Tests for types and messages."""

    def test_types(self):
        protocol = Protocol.parse(MAIL_PROTOCOL)
        assert protocol.name == 'Mail'
        assert protocol.namespace == 'example.proto'
        assert [t.fullname for t in protocol.types] == [
            'example.proto.Message', 'example.proto.Bounce', 'example.proto.Priority']
        assert protocol.types[1].is_error

    def test_messages_share_type_names(self):
        protocol = Protocol.parse(MAIL_PROTOCOL)
        send = protocol.messages['send']
        assert [f.name for f in send.request] == ['message', 'priority']
        assert send.request[0].type is protocol.types[0]
        assert send.response.type == SchemaType.STRING
        assert isinstance(send.errors, UnionSchema)
        assert send.errors.schemas[0] is protocol.types[1]

    def test_named_response(self):
        last = Protocol.parse(MAIL_PROTOCOL).messages['last']
        assert last.response_from_names
        assert isinstance(last.response, RecordSchema)
        assert last.to_json()['response'] == 'example.proto.Message'
        assert last.errors is None

    def test_print_and_reparse(self):
        protocol = Protocol.parse(MAIL_PROTOCOL)
        again = Protocol.parse(str(protocol))
        assert again == protocol
        assert again.md5 == protocol.md5
        assert len(protocol.md5) == 16

    def test_types_print_in_full_once(self):
        printed = json.loads(str(Protocol.parse(MAIL_PROTOCOL)))
        assert printed['types'][0]['type'] == 'record'
        assert printed['messages']['send']['request'][0]['type'] == 'example.proto.Message'


class TestProtocolErrors:
    """Malformed protocols fail with ProtocolParseError."""

    @pytest.mark.parametrize("text,message", [
        ('[]', "Not a JSON object"),
        ('{"types": []}', "non-empty name"),
        ('{"protocol": 5}', "name property must be a string"),
        ('{"protocol": "P", "namespace": 5}', "namespace property"),
        ('{"protocol": "P", "types": {}}', "types property must be a list"),
        ('{"protocol": "P", "messages": []}', "messages property"),
        ('{"protocol": "P", "types": ["string"]}', "not an enum, record, fixed or error"),
        ('{"protocol": "P", "messages": {"m": 1}}', "non-object body"),
        ('{"protocol": "P", "messages": {"m": {"request": {}, "response": "null"}}}',
         "Request property not a list"),
        ('{"protocol": "P", "messages": {"m": {"request": []}}}', "needs both request and response"),
        ('{"protocol": "P", "messages": {"m": {"request": [], "response": "null", "errors": "x"}}}',
         "Errors property not a list"),
        ('{"protocol": ', "Error parsing JSON"),
    ])
    def test_parse_error(self, text, message):
        with pytest.raises(ProtocolParseError, match=message):
            Protocol.parse(text)

    def test_is_a_schema_parse_error(self):
        with pytest.raises(SchemaParseError):
            Protocol.parse('{"protocol": "P", "messages": {"m": {"request": [], "response": "Nope"}}}')
