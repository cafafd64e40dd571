"""Serialization API interfaces.

This module defines the collaborators of the Avro binary engine:

- :class:`ByteSink` and :class:`ByteSource`, the raw byte-level writer and
  reader the engine works against.
- :class:`SchemaProvider`, which resolves a type identifier to a schema node.
- :class:`Encoder` and :class:`Decoder`, the field-oriented interfaces
  exposed to object mappers.

Example:
    Writing a record with a schema-driven encoder::

        from avroserde.serialization import AvroSerdeEncoder, BytesSink

        sink = BytesSink()
        encoder = AvroSerdeEncoder(sink, schema_provider=schemas)
        with encoder.encode_object(Person) as person:
            person.encode_key("name")
            person.encode_string("ali")
            person.encode_key("age")
            person.encode_int(23)
        encoder.finish_structure()
        payload = sink.getvalue()
"""

import datetime
import decimal
import uuid
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from avroserde.exceptions import SchemaNotFoundException

if TYPE_CHECKING:
    from avroserde.serialization.schema import SchemaNode


class ByteSink(ABC):
    """Destination for encoded bytes."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write raw bytes.

        Args:
            data: The bytes to append.
        """
        pass

    @abstractmethod
    def flush(self) -> None:
        """Flush any buffered bytes to the underlying target."""
        pass


class ByteSource(ABC):
    """Origin of bytes to decode.

    Implementations raise :class:`~avroserde.exceptions.FramingException`
    when fewer bytes remain than requested.
    """

    @abstractmethod
    def read_byte(self) -> int:
        """Read a single byte.

        Returns:
            The byte value, 0 to 255.
        """
        pass

    @abstractmethod
    def read_bytes(self, n: int) -> bytes:
        """Read exactly ``n`` bytes.

        Args:
            n: Number of bytes to read.

        Returns:
            The bytes read.
        """
        pass

    @property
    def position(self) -> int:
        """Get the number of bytes consumed so far, or -1 if unknown."""
        return -1


class SchemaProvider(ABC):
    """Resolves a type identifier to its schema.

    The type identifier is whatever the caller passes to ``encode_object``,
    ``encode_array``, ``decode_object`` or ``decode_array``: usually a class,
    sometimes a schema name.
    """

    @abstractmethod
    def get_schema(self, type_key: Any) -> "SchemaNode":
        """Get the schema for a type.

        Args:
            type_key: The class or name to resolve.

        Returns:
            The schema node.

        Raises:
            SchemaNotFoundException: If no schema is known for the type.
        """
        pass

    def find_schema(self, type_key: Any) -> Optional["SchemaNode"]:
        """Get the schema for a type, or None if none is known."""
        try:
            return self.get_schema(type_key)
        except SchemaNotFoundException:
            return None


class Encoder(ABC):
    """Interface for writing values field by field.

    Fields of a record may be supplied in any order; the encoder emits them
    in the order the schema declares.
    """

    @abstractmethod
    def encode_key(self, name: str) -> None:
        """Set the field name or map key for the next value.

        Args:
            name: The field name or map key.
        """
        pass

    @abstractmethod
    def encode_boolean(self, value: bool) -> None:
        """Write a boolean value."""
        pass

    @abstractmethod
    def encode_int(self, value: int) -> None:
        """Write a 32-bit integer value."""
        pass

    @abstractmethod
    def encode_long(self, value: int) -> None:
        """Write a 64-bit integer value."""
        pass

    @abstractmethod
    def encode_float(self, value: float) -> None:
        """Write a single precision float."""
        pass

    @abstractmethod
    def encode_double(self, value: float) -> None:
        """Write a double precision float."""
        pass

    @abstractmethod
    def encode_string(self, value: Optional[str]) -> None:
        """Write a string, or an enum symbol where the schema has an enum."""
        pass

    @abstractmethod
    def encode_bytes(self, value: bytes) -> None:
        """Write a bytes or fixed value."""
        pass

    @abstractmethod
    def encode_decimal(self, value: decimal.Decimal) -> None:
        """Write a decimal value."""
        pass

    @abstractmethod
    def encode_null(self) -> None:
        """Write an Avro null."""
        pass

    @abstractmethod
    def encode_uuid(self, value: uuid.UUID) -> None:
        """Write a UUID."""
        pass

    @abstractmethod
    def encode_date(self, value: datetime.date) -> None:
        """Write a date as days since the Unix epoch."""
        pass

    @abstractmethod
    def encode_timestamp(self, value: datetime.datetime) -> None:
        """Write a timestamp as milliseconds since the Unix epoch."""
        pass

    @abstractmethod
    def encode_object(self, type_key: Any = None) -> "Encoder":
        """Start a nested record or map.

        Args:
            type_key: Identifier used to look up the schema when the
                enclosing context does not define it.

        Returns:
            A child encoder. Call its ``finish_structure`` before using
            this encoder again.
        """
        pass

    @abstractmethod
    def encode_array(self, type_key: Any = None) -> "Encoder":
        """Start a nested array.

        Returns:
            A child encoder whose values become the array items.
        """
        pass

    @abstractmethod
    def finish_structure(self) -> None:
        """Finish the current structure and emit its buffered values."""
        pass


class Decoder(ABC):
    """Interface for reading values field by field."""

    @abstractmethod
    def decode_key(self) -> Optional[str]:
        """Advance to the next field or map entry.

        Returns:
            The field name or map key, or None when there are no more.
        """
        pass

    @abstractmethod
    def decode_boolean(self) -> bool:
        """Read a boolean value."""
        pass

    @abstractmethod
    def decode_int(self) -> int:
        """Read a 32-bit integer value."""
        pass

    @abstractmethod
    def decode_long(self) -> int:
        """Read a 64-bit integer value."""
        pass

    @abstractmethod
    def decode_float(self) -> float:
        """Read a single precision float."""
        pass

    @abstractmethod
    def decode_double(self) -> float:
        """Read a double precision float."""
        pass

    @abstractmethod
    def decode_string(self) -> str:
        """Read a string or enum symbol."""
        pass

    @abstractmethod
    def decode_bytes(self) -> bytes:
        """Read a bytes or fixed value."""
        pass

    @abstractmethod
    def decode_decimal(self) -> decimal.Decimal:
        """Read a decimal value."""
        pass

    @abstractmethod
    def decode_null(self) -> bool:
        """Consume the current value if it is null.

        Returns:
            True if the value was null and has been consumed.
        """
        pass

    @abstractmethod
    def decode_uuid(self) -> uuid.UUID:
        """Read a UUID."""
        pass

    @abstractmethod
    def decode_date(self) -> datetime.date:
        """Read a date."""
        pass

    @abstractmethod
    def decode_timestamp(self) -> datetime.datetime:
        """Read a timestamp."""
        pass

    @abstractmethod
    def decode_object(self, type_key: Any = None) -> "Decoder":
        """Start reading a nested record or map.

        Returns:
            A child decoder with its own field cursor.
        """
        pass

    @abstractmethod
    def decode_array(self, type_key: Any = None) -> "Decoder":
        """Start reading a nested array.

        Returns:
            This decoder, now positioned inside the array.
        """
        pass

    @abstractmethod
    def has_next_array_value(self) -> bool:
        """Check whether the current array has another item.

        Returns:
            True if an item follows and may be decoded.
        """
        pass

    @abstractmethod
    def skip_value(self) -> None:
        """Skip the current value without decoding it."""
        pass

    @abstractmethod
    def finish_structure(self, consume_remaining: bool = False) -> None:
        """Finish the current array or record.

        Args:
            consume_remaining: Skip any items or fields not read yet.
        """
        pass
