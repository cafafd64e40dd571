"""Tests for the schema model, parser and registry."""

import pytest

from avroserde.exceptions import SchemaException, SchemaNotFoundException
from avroserde.serialization.schema import (
    Field,
    Kind,
    LogicalType,
    SchemaNode,
    SchemaService,
    parse_schema,
)
from tests.conftest import PERSON_SCHEMA, Person, Salamander


class TestSchemaNode:
    """Tests for SchemaNode construction and helpers."""

    def test_primitive_from_name(self):
        node = SchemaNode.primitive("int")
        assert node.kind is Kind.INT
        assert node.logical_type is None

    def test_primitive_rejects_complex_kind(self):
        with pytest.raises(SchemaException):
            SchemaNode.primitive(Kind.RECORD)

    def test_record_fields_keep_order(self):
        node = SchemaNode.record(
            "Point", [("y", SchemaNode.primitive("int")), ("x", SchemaNode.primitive("int"))]
        )
        assert node.field_names() == ["y", "x"]
        assert node.get_field("x").type.kind is Kind.INT
        assert node.get_field("z") is None

    def test_record_duplicate_fields(self):
        int_node = SchemaNode.primitive("int")
        with pytest.raises(SchemaException, match="Duplicate field"):
            SchemaNode.record("Point", [("x", int_node), ("x", int_node)])

    def test_record_needs_name(self):
        with pytest.raises(SchemaException):
            SchemaNode(Kind.RECORD)

    def test_full_name(self):
        node = SchemaNode.record("Person", [], namespace="com.example")
        assert node.full_name == "com.example.Person"
        assert SchemaNode.primitive("int").full_name is None

    def test_enum_validation(self):
        with pytest.raises(SchemaException):
            SchemaNode.enum("Color", [])
        with pytest.raises(SchemaException):
            SchemaNode.enum("Color", ["RED", "RED"])

    def test_fixed_validation(self):
        assert SchemaNode.fixed("Hash", 16).size == 16
        with pytest.raises(SchemaException):
            SchemaNode.fixed("Hash", -1)

    def test_array_and_map_need_children(self):
        with pytest.raises(SchemaException):
            SchemaNode(Kind.ARRAY)
        with pytest.raises(SchemaException):
            SchemaNode(Kind.MAP)

    def test_union_validation(self):
        null = SchemaNode.primitive("null")
        string = SchemaNode.primitive("string")
        with pytest.raises(SchemaException):
            SchemaNode.union()
        with pytest.raises(SchemaException):
            SchemaNode.union(null, SchemaNode.union(string))
        with pytest.raises(SchemaException):
            SchemaNode.union(string, SchemaNode.primitive("string"))

    def test_is_nullable(self):
        null = SchemaNode.primitive("null")
        string = SchemaNode.primitive("string")
        assert null.is_nullable
        assert SchemaNode.union(null, string).is_nullable
        assert not string.is_nullable

    def test_logical_type_must_match_kind(self):
        with pytest.raises(SchemaException):
            SchemaNode.primitive("string", logical_type=LogicalType.DATE)

    def test_decimal_scale_within_precision(self):
        with pytest.raises(SchemaException):
            SchemaNode.primitive("bytes", logical_type=LogicalType.DECIMAL, precision=2, scale=3)

    def test_duration_needs_twelve_bytes(self):
        with pytest.raises(SchemaException):
            SchemaNode.fixed("D", 8, logical_type=LogicalType.DURATION)

    def test_nodes_are_immutable(self):
        node = SchemaNode.primitive("int")
        with pytest.raises(AttributeError):
            node.kind = Kind.LONG

    def test_equal_nodes(self):
        assert SchemaNode.array(SchemaNode.primitive("string")) == SchemaNode.array(
            SchemaNode.primitive("string")
        )

    def test_describe(self):
        node = SchemaNode.union(
            SchemaNode.primitive("null"), SchemaNode.array(SchemaNode.primitive("string"))
        )
        assert node.describe() == "union[null, array<string>]"
        assert repr(SchemaNode.primitive("int", LogicalType.DATE)) == "SchemaNode(int (date))"

    def test_field_requires_node(self):
        with pytest.raises(SchemaException):
            Field("x", "int")


class TestParseSchema:
    """Tests for parse_schema."""

    def test_primitive_name(self):
        assert parse_schema("string").kind is Kind.STRING

    def test_record(self):
        node = parse_schema(PERSON_SCHEMA)
        assert node.kind is Kind.RECORD
        assert node.full_name == "com.example.Person"
        assert node.field_names() == ["age", "name"]

    def test_union(self):
        node = parse_schema(["null", "long"])
        assert node.kind is Kind.UNION
        assert [t.kind for t in node.types] == [Kind.NULL, Kind.LONG]

    def test_logical_types(self):
        node = parse_schema({
            "type": "record",
            "name": "Event",
            "fields": [
                {"name": "day", "type": {"type": "int", "logicalType": "date"}},
                {"name": "at", "type": {"type": "long", "logicalType": "timestamp-millis"}},
                {"name": "id", "type": {"type": "string", "logicalType": "uuid"}},
                {
                    "name": "price",
                    "type": {"type": "bytes", "logicalType": "decimal", "precision": 9, "scale": 2},
                },
            ],
        })
        assert node.get_field("day").type.logical_type is LogicalType.DATE
        assert node.get_field("at").type.logical_type is LogicalType.TIMESTAMP_MILLIS
        assert node.get_field("id").type.logical_type is LogicalType.UUID
        price = node.get_field("price").type
        assert price.logical_type is LogicalType.DECIMAL
        assert price.precision == 9
        assert price.scale == 2

    def test_unknown_logical_type_ignored(self):
        node = parse_schema({"type": "string", "logicalType": "made-up"})
        assert node.kind is Kind.STRING
        assert node.logical_type is None

    def test_named_reference(self):
        node = parse_schema({
            "type": "record",
            "name": "Line",
            "namespace": "geo",
            "fields": [
                {
                    "name": "start",
                    "type": {
                        "type": "record",
                        "name": "Point",
                        "fields": [{"name": "x", "type": "int"}],
                    },
                },
                {"name": "end", "type": "Point"},
            ],
        })
        start = node.get_field("start").type
        assert start.full_name == "geo.Point"
        assert node.get_field("end").type is start

    def test_named_types_are_collected(self):
        named = {}
        parse_schema({"type": "enum", "name": "Color", "symbols": ["RED"]}, named)
        assert parse_schema("Color", named).kind is Kind.ENUM

    def test_unknown_reference(self):
        with pytest.raises(SchemaException, match="Unknown type"):
            parse_schema({"type": "array", "items": "Missing"})

    def test_recursive_reference_rejected(self):
        with pytest.raises(SchemaException, match="Recursive"):
            parse_schema({
                "type": "record",
                "name": "Node",
                "fields": [{"name": "next", "type": ["null", "Node"]}],
            })

    def test_duplicate_definition(self):
        with pytest.raises(SchemaException):
            parse_schema([
                {"type": "fixed", "name": "Hash", "size": 4},
                {"type": "fixed", "name": "Hash", "size": 4},
            ])

    def test_missing_type(self):
        with pytest.raises(SchemaException):
            parse_schema({"name": "x"})

    def test_invalid_description(self):
        with pytest.raises(SchemaException):
            parse_schema(42)

    def test_native_type(self):
        node = parse_schema({"type": "int", "nativeType": "char"})
        assert node.native_type == "char"


class TestSchemaService:
    """Tests for SchemaService."""

    def test_register_and_get(self):
        service = SchemaService()
        node = service.register(Person, PERSON_SCHEMA)
        assert service.get(Person) is node
        assert service.get_schema("Person") is node
        assert service.get_schema("com.example.Person") is node
        assert service.has_schema(Person)

    def test_get_missing(self):
        service = SchemaService()
        assert service.get(Salamander) is None
        assert service.find_schema(Salamander) is None
        with pytest.raises(SchemaNotFoundException) as exc_info:
            service.get_schema(Salamander)
        assert exc_info.value.type_key is Salamander
        assert "Salamander" in str(exc_info.value)

    def test_declared_schema(self):
        class Point:
            __avro_schema__ = {
                "type": "record",
                "name": "Point",
                "fields": [{"name": "x", "type": "int"}],
            }

        service = SchemaService()
        node = service.get_schema(Point)
        assert node.full_name == "Point"
        assert service.get(Point) is node

    def test_all_schemas_unique(self):
        service = SchemaService()
        service.register(Person, PERSON_SCHEMA)
        service.register("int-schema", "int")
        assert len(service.all_schemas()) == 2
        assert len(service) == 2
