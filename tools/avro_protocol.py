#!/usr/bin/env python3
"""
avro_protocol.py - Protocol descriptors: named types plus request/response messages

A protocol is a JSON object:

    {"protocol": "Mail", "namespace": "example.proto",
     "types": [{"type": "record", "name": "Message", "fields": [...]}],
     "messages": {"send": {"request": [{"name": "message", "type": "Message"}],
                           "response": "string",
                           "errors": ["string"]}}}

Types and messages share one Names registry, so messages can refer to the
declared types by name. Nothing here sends or receives anything.
"""

import hashlib
import json
from typing import Any, Dict, List, Optional

from avro_errors import SchemaParseError
from avro_schema import (
    Field, Names, NamedSchema, Schema, SchemaType, make_field_objects, make_schema,
)

VALID_TYPE_SCHEMA_TYPES = (SchemaType.ENUM, SchemaType.RECORD, SchemaType.FIXED)


class ProtocolParseError(SchemaParseError):
    """Protocol text is malformed."""


class Message:
    """A remote call: request fields, response schema, optional error union."""

    def __init__(self, name: str, request: Any, response: Any,
                 errors: Any = None, names: Optional[Names] = None,
                 namespace: Optional[str] = None):
        if names is None:
            names = Names()
        self.name = name
        self.response_from_names = False
        self.request = self._parse_request(request, names, namespace)
        self.response = self._parse_response(response, names, namespace)
        self.errors = self._parse_errors(errors, names, namespace) if errors is not None else None

    def _parse_request(self, request: Any, names: Names,
                       namespace: Optional[str]) -> List[Field]:
        if not isinstance(request, list):
            raise ProtocolParseError(f"Request property not a list: {request!r}")
        return make_field_objects(request, names, namespace)

    def _parse_response(self, response: Any, names: Names,
                        namespace: Optional[str]) -> Schema:
        if isinstance(response, str):
            schema = names.get_name(response, namespace)
            if isinstance(schema, NamedSchema):
                self.response_from_names = True
                return schema
        return make_schema(response, names, namespace)

    def _parse_errors(self, errors: Any, names: Names,
                      namespace: Optional[str]) -> Schema:
        if not isinstance(errors, list):
            raise ProtocolParseError(f"Errors property not a list: {errors!r}")
        return make_schema(errors, names, namespace)

    def to_json(self, seen: Optional[set] = None,
                namespace: Optional[str] = None) -> Dict[str, Any]:
        if seen is None:
            seen = set()
        result = {'request': [f.to_json(seen, namespace) for f in self.request]}
        if self.response_from_names:
            result['response'] = self.response.fullname
        else:
            result['response'] = self.response.to_json(seen, namespace)
        if self.errors is not None:
            result['errors'] = self.errors.to_json(seen, namespace)
        return result

    def __str__(self) -> str:
        return json.dumps(self.to_json())


class Protocol:
    """Parsed protocol with its named types and messages."""

    def __init__(self, name: str, namespace: Optional[str] = None,
                 types: Optional[List[Any]] = None,
                 messages: Optional[Dict[str, Any]] = None):
        if not name:
            raise ProtocolParseError("Protocols must have a non-empty name.")
        if not isinstance(name, str):
            raise ProtocolParseError("The name property must be a string.")
        if namespace is not None and not isinstance(namespace, str):
            raise ProtocolParseError("The namespace property must be a string.")
        if types is not None and not isinstance(types, list):
            raise ProtocolParseError("The types property must be a list.")
        if messages is not None and not isinstance(messages, dict):
            raise ProtocolParseError("The messages property must be a JSON object.")

        self.name = name
        self.namespace = namespace
        names = Names()
        self.types = self._parse_types(types or [], names)
        self.messages = self._parse_messages(messages or {}, names)
        self.md5 = hashlib.md5(str(self).encode('utf-8')).digest()

    @classmethod
    def parse(cls, json_string: str) -> 'Protocol':
        try:
            json_data = json.loads(json_string)
        except ValueError as e:
            raise ProtocolParseError(f"Error parsing JSON: {json_string!r}") from e
        if not isinstance(json_data, dict):
            raise ProtocolParseError(f"Not a JSON object: {json_data!r}")
        return cls(json_data.get('protocol'), json_data.get('namespace'),
                   json_data.get('types'), json_data.get('messages'))

    def _parse_types(self, types: List[Any], names: Names) -> List[Schema]:
        type_objects = []
        for type_data in types:
            schema = make_schema(type_data, names, self.namespace)
            if schema.type not in VALID_TYPE_SCHEMA_TYPES:
                raise ProtocolParseError(
                    f"Type {type_data!r} not an enum, record, fixed or error.")
            type_objects.append(schema)
        return type_objects

    def _parse_messages(self, messages: Dict[str, Any], names: Names) -> Dict[str, Message]:
        message_objects = {}
        for name, body in messages.items():
            if not isinstance(body, dict):
                raise ProtocolParseError(
                    f'Message name "{name}" has non-object body {body!r}')
            if 'request' not in body or 'response' not in body:
                raise ProtocolParseError(
                    f'Message name "{name}" needs both request and response')
            message_objects[name] = Message(name, body['request'], body['response'],
                                            body.get('errors'), names, self.namespace)
        return message_objects

    def to_json(self) -> Dict[str, Any]:
        seen = set()
        result = {'protocol': self.name}
        if self.namespace:
            result['namespace'] = self.namespace
        result['types'] = [t.to_json(seen, self.namespace) for t in self.types]
        result['messages'] = {name: m.to_json(seen, self.namespace) for name, m in self.messages.items()}
        return result

    def __str__(self) -> str:
        return json.dumps(self.to_json())

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Protocol) and self.to_json() == other.to_json()

    def __hash__(self) -> int:
        return hash(self.md5)
