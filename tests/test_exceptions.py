"""Unit tests for avroserde.exceptions module."""

import pytest

from avroserde.exceptions import (
    AvroSerdeException,
    ConfigurationException,
    FramingException,
    IllegalArgumentException,
    IllegalStateException,
    MissingFieldException,
    SchemaException,
    SchemaMismatchException,
    SchemaNotFoundException,
)


class TestAvroSerdeException:
    """Tests for AvroSerdeException base class."""

    def test_create_with_message(self):
        ex = AvroSerdeException("test message")
        assert str(ex) == "test message"
        assert ex.cause is None

    def test_create_with_message_and_cause(self):
        cause = ValueError("original error")
        ex = AvroSerdeException("wrapper message", cause=cause)
        assert str(ex) == "wrapper message"
        assert ex.cause is cause

    def test_create_empty(self):
        ex = AvroSerdeException()
        assert str(ex) == ""
        assert ex.cause is None

    def test_inheritance(self):
        assert isinstance(AvroSerdeException("test"), Exception)


class TestStateAndArgumentExceptions:
    """Tests for IllegalStateException and IllegalArgumentException."""

    def test_illegal_state(self):
        ex = IllegalStateException("Not in array context")
        assert isinstance(ex, AvroSerdeException)
        assert str(ex) == "Not in array context"

    def test_illegal_argument_with_cause(self):
        cause = OverflowError("too big")
        ex = IllegalArgumentException("invalid", cause=cause)
        assert isinstance(ex, AvroSerdeException)
        assert ex.cause is cause

    def test_configuration(self):
        ex = ConfigurationException("bad config")
        assert isinstance(ex, AvroSerdeException)
        assert "bad config" in str(ex)


class TestFramingException:
    """Tests for FramingException."""

    def test_position(self):
        ex = FramingException("Unexpected end of stream", 12)
        assert ex.position == 12
        assert str(ex) == "Unexpected end of stream"

    def test_default_position(self):
        assert FramingException("bad").position == -1

    def test_cause(self):
        cause = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        ex = FramingException("Invalid UTF-8", 3, cause=cause)
        assert ex.cause is cause

    def test_catch_as_base(self):
        with pytest.raises(AvroSerdeException):
            raise FramingException("bad")


class TestSchemaExceptions:
    """Tests for the schema related exceptions."""

    def test_schema_exception(self):
        assert isinstance(SchemaException("Duplicate field"), AvroSerdeException)

    def test_schema_not_found(self):
        ex = SchemaNotFoundException("No schema registered for Person", "Person")
        assert ex.type_key == "Person"
        assert isinstance(ex, AvroSerdeException)

    def test_schema_mismatch(self):
        ex = SchemaMismatchException("Cannot decode string from int")
        assert isinstance(ex, AvroSerdeException)
        assert not isinstance(ex, SchemaException)

    def test_missing_field(self):
        ex = MissingFieldException("age", "com.example.Person")
        assert isinstance(ex, SchemaMismatchException)
        assert ex.field_name == "age"
        assert str(ex) == "Missing field: age in record com.example.Person"

    def test_missing_field_without_record(self):
        assert str(MissingFieldException("age")) == "Missing field: age"
