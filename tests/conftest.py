"""Shared pytest fixtures for avroserde tests."""

import pytest

from avroserde.config import SerdeConfig
from avroserde.serialization.binary import BytesSink
from avroserde.serialization.schema import SchemaService, parse_schema


class Person:
    pass


class Salamander:
    pass


class MyRecord:
    pass


class NestedArrayModel:
    pass


class BigNumberHolder:
    pass


PERSON_SCHEMA = {
    "type": "record",
    "name": "Person",
    "namespace": "com.example",
    "fields": [
        {"name": "age", "type": "int"},
        {"name": "name", "type": "string"},
    ],
}

SALAMANDER_SCHEMA = {
    "type": "record",
    "name": "Salamander",
    "namespace": "com.example",
    "fields": [
        {"name": "age", "type": "int"},
        {"name": "name", "type": "string"},
        {"name": "strings", "type": {"type": "array", "items": "string"}},
    ],
}

MY_RECORD_SCHEMA = {
    "type": "record",
    "name": "MyRecord",
    "namespace": "com.example",
    "fields": [
        {"name": "testByte", "type": {"type": "int", "nativeType": "byte"}},
        {"name": "testChar", "type": {"type": "int", "nativeType": "char"}},
        {"name": "testDouble", "type": "double"},
        {"name": "testFloat", "type": "float"},
        {"name": "testInt", "type": "int"},
        {"name": "testLong", "type": "long"},
        {"name": "testShort", "type": {"type": "int", "nativeType": "short"}},
    ],
}

NESTED_ARRAY_SCHEMA = {
    "type": "record",
    "name": "NestedArrayModel",
    "namespace": "com.example",
    "fields": [
        {"name": "name", "type": "string"},
        {
            "name": "strings",
            "type": {"type": "array", "items": {"type": "array", "items": "string"}},
        },
    ],
}

BIG_NUMBER_HOLDER_SCHEMA = {
    "type": "record",
    "name": "BigNumberHolder",
    "namespace": "com.example",
    "fields": [
        {"name": "bigInt", "type": "bytes"},
        {"name": "bigDecimal", "type": "bytes"},
        {
            "name": "color",
            "type": {
                "type": "enum",
                "name": "Color",
                "symbols": ["GREEN", "BLUE", "RED", "YELLOW"],
            },
        },
    ],
}


@pytest.fixture
def sink():
    """Create an empty in-memory sink."""
    return BytesSink()


@pytest.fixture
def default_config():
    """Create a default SerdeConfig."""
    return SerdeConfig()


@pytest.fixture
def person_schema():
    return parse_schema(PERSON_SCHEMA)


@pytest.fixture
def salamander_schema():
    return parse_schema(SALAMANDER_SCHEMA)


@pytest.fixture
def my_record_schema():
    return parse_schema(MY_RECORD_SCHEMA)


@pytest.fixture
def nested_array_schema():
    return parse_schema(NESTED_ARRAY_SCHEMA)


@pytest.fixture
def big_number_holder_schema():
    return parse_schema(BIG_NUMBER_HOLDER_SCHEMA)


@pytest.fixture
def schema_service():
    """Create a SchemaService with the test model classes registered."""
    service = SchemaService()
    service.register(Person, PERSON_SCHEMA)
    service.register(Salamander, SALAMANDER_SCHEMA)
    service.register(MyRecord, MY_RECORD_SCHEMA)
    service.register(NestedArrayModel, NESTED_ARRAY_SCHEMA)
    service.register(BigNumberHolder, BIG_NUMBER_HOLDER_SCHEMA)
    return service
