"""avroserde exceptions.

This module defines the exception hierarchy for avroserde. All exceptions
inherit from :class:`AvroSerdeException`.

Errors fall into three groups:

- Framing errors (:class:`FramingException`): the byte stream is malformed or
  truncated. The stream position can no longer be trusted, so the current
  encode or decode must be abandoned.
- Schema-mismatch errors (:class:`SchemaMismatchException`,
  :class:`MissingFieldException`): a caller asked for something the schema
  does not allow. These indicate a bug in the caller or the schema.
- State errors (:class:`IllegalStateException`): an encoder or decoder was
  driven out of order, e.g. used after ``finish_structure``.

Errors raised by the underlying byte sink or source are not wrapped.

Example:
    Handling decode errors::

        from avroserde.exceptions import (
            AvroSerdeException,
            FramingException,
            SchemaMismatchException,
        )

        try:
            name = decoder.decode_string()
        except FramingException as e:
            print(f"Corrupted payload at byte {e.position}")
        except SchemaMismatchException:
            print("Reader does not match the schema")
        except AvroSerdeException as e:
            print(f"avroserde error: {e}")
"""

from typing import Any, Optional


class AvroSerdeException(Exception):
    """Base class for all avroserde exceptions.

    Args:
        message: The error message describing the exception.
        cause: The underlying exception that caused this error, if any.

    Attributes:
        cause: The underlying cause of this exception, if any.
    """

    def __init__(self, message: str = "", cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class IllegalStateException(AvroSerdeException):
    """Raised when an operation is invoked on an illegal state.

    Example:
        - Using an encoder after ``finish_structure``
        - Calling ``has_next_array_value`` outside of an array
        - Using a parent while a nested child is still open
    """
    pass


class IllegalArgumentException(AvroSerdeException):
    """Raised when an illegal or inappropriate argument is passed.

    Example:
        - An int value outside the 32-bit range
        - A fixed value whose length differs from the schema size
    """
    pass


class ConfigurationException(AvroSerdeException):
    """Raised when a :class:`~avroserde.config.SerdeConfig` is invalid."""
    pass


class FramingException(AvroSerdeException):
    """Raised when the binary stream is malformed.

    Args:
        message: The error message.
        position: Byte offset where the problem was detected, or -1.

    Example:
        - A varint longer than the numeric width allows
        - The stream ends in the middle of a value
        - A union branch or enum index out of range
    """

    def __init__(self, message: str, position: int = -1, cause: Exception = None):
        super().__init__(message, cause)
        self._position = position

    @property
    def position(self) -> int:
        """Get the byte offset at which the error was detected.

        Returns:
            The offset, or -1 if the source does not track positions.
        """
        return self._position


class SchemaException(AvroSerdeException):
    """Raised when a schema description or node is invalid.

    Example:
        - A record with two fields of the same name
        - An array without an ``items`` type
        - A reference to an undefined named type
    """
    pass


class SchemaNotFoundException(AvroSerdeException):
    """Raised when a schema provider has no schema for a type.

    Args:
        message: The error message.
        type_key: The class or name that was looked up.
    """

    def __init__(self, message: str, type_key: Any = None):
        super().__init__(message)
        self._type_key = type_key

    @property
    def type_key(self) -> Any:
        """Get the class or name that could not be resolved."""
        return self._type_key


class SchemaMismatchException(AvroSerdeException):
    """Raised when an operation does not match the schema.

    This exception is raised both when encoding a value the expected Avro
    type cannot hold and when a decode call does not match the type
    declared at the current position.
    """
    pass


class MissingFieldException(SchemaMismatchException):
    """Raised when a record is finished without a declared field.

    Args:
        field_name: Name of the first missing field.
        record_name: Full name of the record schema, if known.
    """

    def __init__(self, field_name: str, record_name: Optional[str] = None):
        if record_name:
            message = f"Missing field: {field_name} in record {record_name}"
        else:
            message = f"Missing field: {field_name}"
        super().__init__(message)
        self._field_name = field_name

    @property
    def field_name(self) -> str:
        """Get the name of the missing field."""
        return self._field_name
