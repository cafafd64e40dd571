"""Schema-driven Avro decoder.

Avro binary is positional, so the decoder walks the schema: records are
read field by field in declaration order, arrays and maps block by block.
Values that are not needed must be skipped explicitly to keep the stream
aligned.
"""

import datetime
import decimal
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from avroserde.config import SerdeConfig
from avroserde.exceptions import (
    FramingException,
    IllegalArgumentException,
    IllegalStateException,
    SchemaMismatchException,
)
from avroserde.logging import get_logger
from avroserde.serialization import logical
from avroserde.serialization.api import Decoder, SchemaProvider
from avroserde.serialization.binary import BinaryDecoder, BytesSource
from avroserde.serialization.schema import Kind, LogicalType, SchemaNode


_logger = get_logger("decoder")


@dataclass
class ArrayContext:
    """Progress through an array being decoded."""

    items_remaining: int
    item_node: SchemaNode
    done: bool = False
    pending: bool = False


class DecoderMode(Enum):
    ROOT = "root"
    RECORD = "record"
    MAP = "map"


_BOOLEAN_SOURCES = frozenset({Kind.BOOLEAN})
_INT_SOURCES = frozenset({Kind.INT})
_LONG_SOURCES = frozenset({Kind.INT, Kind.LONG})
_FLOAT_SOURCES = frozenset({Kind.FLOAT, Kind.INT, Kind.LONG})
_DOUBLE_SOURCES = frozenset({Kind.DOUBLE, Kind.FLOAT, Kind.INT, Kind.LONG})
_STRING_SOURCES = frozenset({Kind.STRING, Kind.ENUM})
_BYTES_SOURCES = frozenset({Kind.BYTES, Kind.FIXED})
_DECIMAL_SOURCES = frozenset({Kind.STRING, Kind.BYTES, Kind.FIXED})
_UUID_SOURCES = frozenset({Kind.STRING, Kind.FIXED})
_FIXED_SOURCES = frozenset({Kind.FIXED})
_OBJECT_SOURCES = frozenset({Kind.RECORD, Kind.MAP})
_ARRAY_SOURCES = frozenset({Kind.ARRAY})


class AvroSerdeDecoder(Decoder):
    """Decoder that reads Avro binary, driven by a schema.

    ``decode_object`` returns a child decoder with its own field cursor;
    ``decode_array`` stays on the same decoder and pushes an array context.
    A parent cannot be used until its open child is finished.

    Args:
        source: Bytes, a :class:`ByteSource`, a readable binary file object
            or a :class:`BinaryDecoder`.
        schema: Schema of the root value. When omitted, the root structure's
            schema is looked up from the type key given to ``decode_object``
            or ``decode_array``.
        schema_provider: Resolves schemas for type keys.
        config: Decoding limits.
    """

    def __init__(
        self,
        source: Any,
        schema: Optional[SchemaNode] = None,
        schema_provider: Optional[SchemaProvider] = None,
        config: Optional[SerdeConfig] = None,
    ):
        config = config or SerdeConfig()
        binary = source if isinstance(source, BinaryDecoder) else BinaryDecoder(source, config)
        self._setup(binary, schema, None, schema_provider, config)

    def _setup(
        self,
        binary: BinaryDecoder,
        schema: Optional[SchemaNode],
        parent: Optional["AvroSerdeDecoder"],
        schema_provider: Optional[SchemaProvider],
        config: SerdeConfig,
    ) -> None:
        self._in = binary
        self._schema = schema
        if schema is not None and schema.kind is Kind.RECORD:
            self._mode = DecoderMode.RECORD
        elif schema is not None and schema.kind is Kind.MAP:
            self._mode = DecoderMode.MAP
        else:
            self._mode = DecoderMode.ROOT
        self._parent = parent
        self._schema_provider = schema_provider
        self._config = config
        self._field_index = -1
        self._slot_open = False
        self._slot_name: Optional[str] = None
        self._value_consumed = False
        self._map_remaining = 0
        self._map_done = False
        self._array_stack: List[ArrayContext] = []
        self._union_branch: Optional[SchemaNode] = None
        self._active_child: Optional["AvroSerdeDecoder"] = None
        self._closed = False
        self._entered_depths: List[int] = []

    @classmethod
    def _child_of(cls, parent: "AvroSerdeDecoder", schema: SchemaNode) -> "AvroSerdeDecoder":
        child = cls.__new__(cls)
        child._setup(parent._in, schema, parent, parent._schema_provider, parent._config)
        return child

    @property
    def mode(self) -> DecoderMode:
        return self._mode

    @property
    def schema(self) -> Optional[SchemaNode]:
        return self._schema

    @property
    def field_index(self) -> int:
        """Get the record field cursor; -1 before the first ``decode_key``."""
        return self._field_index

    @property
    def array_depth(self) -> int:
        return len(self._array_stack)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "AvroSerdeDecoder":
        self._entered_depths.append(len(self._array_stack))
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        depth = self._entered_depths.pop()
        if exc_type is None and not self._closed and len(self._array_stack) == depth:
            self.finish_structure()
        return False

    def _check_usable(self) -> None:
        if self._closed:
            raise IllegalStateException("Decoder has already been finished")
        if self._active_child is not None:
            raise IllegalStateException("A nested decoder is still open; finish it first")

    def _location(self) -> str:
        if self._array_stack:
            return " (array item)"
        if self._slot_open:
            return f" (field '{self._slot_name}')"
        return ""

    def decode_key(self) -> Optional[str]:
        self._check_usable()
        if self._array_stack:
            raise IllegalStateException("Keys cannot be decoded inside an array")
        if self._mode is DecoderMode.ROOT:
            raise IllegalStateException("Keys can only be decoded from a record or map")
        if self._slot_open and not self._value_consumed:
            raise IllegalStateException(
                f"Value of '{self._slot_name}' was neither decoded nor skipped"
            )
        self._union_branch = None
        self._value_consumed = False
        if self._mode is DecoderMode.MAP:
            key = self._next_map_key()
        else:
            key = self._next_field_name()
        self._slot_open = key is not None
        self._slot_name = key
        return key

    def _next_field_name(self) -> Optional[str]:
        fields = self._schema.fields
        if self._field_index < len(fields):
            self._field_index += 1
        if self._field_index >= len(fields):
            return None
        return fields[self._field_index].name

    def _next_map_key(self) -> Optional[str]:
        if self._map_remaining == 0:
            if self._map_done:
                return None
            count = self._in.read_block_count()
            if count == 0:
                self._map_done = True
                return None
            self._map_remaining = count
        self._map_remaining -= 1
        return self._in.read_string()

    def _current_node(self) -> SchemaNode:
        if self._mode is DecoderMode.ROOT:
            if self._schema is None:
                raise IllegalStateException("No schema is available for the root value")
            if self._value_consumed:
                raise IllegalStateException("The root value has already been read")
            return self._schema
        if not self._slot_open:
            raise IllegalStateException("No current field; call decode_key() first")
        if self._value_consumed:
            raise IllegalStateException(f"Value of '{self._slot_name}' was already read")
        if self._mode is DecoderMode.MAP:
            return self._schema.values
        return self._schema.fields[self._field_index].type

    def _peek_node(self) -> SchemaNode:
        """Get the node of the current value without consuming it."""
        if self._union_branch is not None:
            return self._union_branch
        if self._array_stack:
            context = self._array_stack[-1]
            if not context.pending:
                raise IllegalStateException(
                    "No array item is pending; call has_next_array_value() first"
                )
            return context.item_node
        return self._current_node()

    def _take_node(self, resolve_union: bool = True) -> SchemaNode:
        """Mark the current value as consumed and get its node."""
        node = self._peek_node()
        resolved = self._union_branch is not None
        self._union_branch = None
        if self._array_stack:
            self._array_stack[-1].pending = False
        else:
            self._value_consumed = True
        if resolve_union and not resolved and node.kind is Kind.UNION:
            node = self._read_branch(node)
        return node

    def _read_branch(self, union: SchemaNode) -> SchemaNode:
        return union.types[self._in.read_index(len(union.types))]

    def _take_as(self, sources: FrozenSet[Kind], what: str) -> SchemaNode:
        self._check_usable()
        node = self._peek_node()
        if node.kind is not Kind.UNION and node.kind not in sources:
            raise SchemaMismatchException(
                f"Cannot decode {what} from {node.describe()}{self._location()}"
            )
        location = self._location()
        node = self._take_node()
        if node.kind not in sources:
            raise SchemaMismatchException(f"Cannot decode {what} from {node.describe()}{location}")
        return node

    def _read_number(self, kind: Kind) -> Any:
        if kind is Kind.INT:
            return self._in.read_int()
        if kind is Kind.LONG:
            return self._in.read_long()
        if kind is Kind.FLOAT:
            return self._in.read_float()
        return self._in.read_double()

    def decode_boolean(self) -> bool:
        self._take_as(_BOOLEAN_SOURCES, "boolean")
        return self._in.read_boolean()

    def decode_int(self) -> int:
        self._take_as(_INT_SOURCES, "int")
        return self._in.read_int()

    def _decode_narrow_int(self, low: int, high: int, type_name: str) -> int:
        value = self.decode_int()
        if value < low or value > high:
            raise SchemaMismatchException(f"Value {value} does not fit in a {type_name}")
        return value

    def decode_byte(self) -> int:
        return self._decode_narrow_int(-128, 127, "byte")

    def decode_short(self) -> int:
        return self._decode_narrow_int(-32768, 32767, "short")

    def decode_char(self) -> str:
        return chr(self._decode_narrow_int(0, 0x10FFFF, "char"))

    def decode_long(self) -> int:
        node = self._take_as(_LONG_SOURCES, "long")
        return self._read_number(node.kind)

    def decode_float(self) -> float:
        node = self._take_as(_FLOAT_SOURCES, "float")
        return float(self._read_number(node.kind))

    def decode_double(self) -> float:
        node = self._take_as(_DOUBLE_SOURCES, "double")
        return float(self._read_number(node.kind))

    def decode_string(self) -> str:
        node = self._take_as(_STRING_SOURCES, "string")
        if node.kind is Kind.ENUM:
            return node.symbols[self._in.read_enum(len(node.symbols))]
        return self._in.read_string()

    def decode_bytes(self) -> bytes:
        node = self._take_as(_BYTES_SOURCES, "bytes")
        if node.kind is Kind.FIXED:
            return self._in.read_fixed(node.size)
        return self._in.read_bytes()

    def decode_big_integer(self) -> int:
        node = self._take_as(_BYTES_SOURCES, "big integer")
        if node.kind is Kind.FIXED:
            return logical.twos_complement_to_int(self._in.read_fixed(node.size))
        return logical.twos_complement_to_int(self._in.read_bytes())

    def decode_decimal(self) -> decimal.Decimal:
        node = self._take_as(_DECIMAL_SOURCES, "decimal")
        if node.kind is Kind.FIXED and node.logical_type is not LogicalType.DECIMAL:
            raise SchemaMismatchException(f"Cannot decode decimal from {node.describe()}")
        return self._read_decimal(node)

    def _read_decimal(self, node: SchemaNode) -> decimal.Decimal:
        if node.logical_type is LogicalType.DECIMAL:
            if node.kind is Kind.FIXED:
                data = self._in.read_fixed(node.size)
            else:
                data = self._in.read_bytes()
            return logical.unscaled_to_decimal(logical.twos_complement_to_int(data), node.scale or 0)
        if node.kind is Kind.BYTES:
            try:
                text = self._in.read_bytes().decode("utf-8")
            except UnicodeDecodeError as e:
                raise FramingException("Invalid UTF-8 in decimal text", self._in.position, cause=e)
        else:
            text = self._in.read_string()
        try:
            return logical.parse_decimal(text)
        except IllegalArgumentException as e:
            raise FramingException(str(e), self._in.position, cause=e)

    def decode_uuid(self) -> uuid.UUID:
        node = self._take_as(_UUID_SOURCES, "uuid")
        if node.kind is Kind.FIXED and node.size != logical.UUID_SIZE:
            raise SchemaMismatchException(f"Cannot decode uuid from {node.describe()}")
        return self._read_uuid(node)

    def _read_uuid(self, node: SchemaNode) -> uuid.UUID:
        if node.kind is Kind.FIXED:
            return uuid.UUID(bytes=self._in.read_fixed(logical.UUID_SIZE))
        text = self._in.read_string()
        try:
            return logical.parse_uuid(text)
        except IllegalArgumentException as e:
            raise FramingException(str(e), self._in.position, cause=e)

    def decode_date(self) -> datetime.date:
        self._take_as(_INT_SOURCES, "date")
        return logical.days_to_date(self._in.read_int())

    def decode_time(self) -> datetime.time:
        self._take_as(_INT_SOURCES, "time")
        return logical.millis_to_time(self._in.read_int())

    def decode_timestamp(self) -> datetime.datetime:
        node = self._take_as(_LONG_SOURCES, "timestamp")
        return logical.millis_to_datetime(self._read_number(node.kind))

    def decode_duration(self) -> logical.Duration:
        node = self._take_as(_FIXED_SOURCES, "duration")
        if node.size != logical.DURATION_SIZE:
            raise SchemaMismatchException(f"Cannot decode duration from {node.describe()}")
        return logical.bytes_to_duration(self._in.read_fixed(node.size))

    def decode_null(self) -> bool:
        """Consume the current value if it is null.

        For a union the branch index is read here. When the branch is not
        null it is kept for the next ``decode_*`` call, which must follow.

        Returns:
            True if the value was null and has been consumed.
        """
        self._check_usable()
        node = self._peek_node()
        if node.kind is Kind.NULL:
            self._take_node()
            return True
        if node.kind is Kind.UNION and self._union_branch is None:
            self._union_branch = self._read_branch(node)
            if self._union_branch.kind is Kind.NULL:
                self._take_node()
                return True
        return False

    def decode_object(self, type_key: Any = None) -> "AvroSerdeDecoder":
        """Start reading a nested record or map.

        Returns:
            A child decoder. Call its ``finish_structure`` before using this
            decoder again.
        """
        self._check_usable()
        node = self._structure_node(type_key, _OBJECT_SOURCES, "object")
        child = AvroSerdeDecoder._child_of(self, node)
        self._active_child = child
        _logger.debug("Opened decoder for %s", node.describe())
        return child

    def decode_array(self, type_key: Any = None) -> "AvroSerdeDecoder":
        """Start reading a nested array.

        Args:
            type_key: Item type, used to look up the schema of a root array
                when the decoder has none.

        Returns:
            This decoder, now inside the array. Call
            ``has_next_array_value`` before each item.
        """
        self._check_usable()
        node = self._structure_node(type_key, _ARRAY_SOURCES, "array")
        count = self._in.read_block_count()
        self._array_stack.append(ArrayContext(count, node.items, done=count == 0))
        _logger.debug("Entered %s, first block has %d items", node.describe(), count)
        return self

    def _structure_node(self, type_key: Any, sources: FrozenSet[Kind], what: str) -> SchemaNode:
        if (
            self._mode is DecoderMode.ROOT
            and self._schema is None
            and not self._array_stack
            and self._union_branch is None
        ):
            if type_key is None:
                raise IllegalStateException(f"A type is required to decode a root {what}")
            if self._schema_provider is None:
                raise IllegalStateException(f"No schema provider to resolve {type_key!r}")
            if self._value_consumed:
                raise IllegalStateException("The root value has already been read")
            node = self._schema_provider.get_schema(type_key)
            if what == "array" and node.kind not in (Kind.ARRAY, Kind.UNION):
                node = SchemaNode.array(node)
            self._value_consumed = True
            if node.kind is Kind.UNION:
                node = self._read_branch(node)
            if node.kind not in sources:
                raise SchemaMismatchException(f"Cannot decode {what} from {node.describe()}")
            return node
        return self._take_as(sources, what)

    def has_next_array_value(self) -> bool:
        """Check whether the current array has another item.

        Reads the next block header when the current block is exhausted.

        Raises:
            IllegalStateException: Outside an array, or when the previous
                item was neither decoded nor skipped.
        """
        self._check_usable()
        if not self._array_stack:
            raise IllegalStateException("Not in array context")
        context = self._array_stack[-1]
        if context.pending:
            raise IllegalStateException("The current array item was neither decoded nor skipped")
        if context.items_remaining == 0:
            if context.done:
                return False
            count = self._in.read_block_count()
            if count == 0:
                context.done = True
                return False
            context.items_remaining = count
        context.items_remaining -= 1
        context.pending = True
        return True

    def skip_value(self) -> None:
        """Skip the current value, including any union branch index."""
        self._check_usable()
        self._skip(self._take_node(resolve_union=False))

    def _skip(self, node: SchemaNode) -> None:
        kind = node.kind
        if kind is Kind.NULL:
            return
        if kind is Kind.BOOLEAN:
            self._in.read_boolean()
        elif kind is Kind.INT:
            self._in.read_int()
        elif kind is Kind.ENUM:
            self._in.read_enum(len(node.symbols))
        elif kind is Kind.LONG:
            self._in.read_long()
        elif kind is Kind.FLOAT:
            self._in.skip(4)
        elif kind is Kind.DOUBLE:
            self._in.skip(8)
        elif kind in (Kind.BYTES, Kind.STRING):
            self._in.skip_bytes()
        elif kind is Kind.FIXED:
            self._in.skip_fixed(node.size)
        elif kind is Kind.RECORD:
            for f in node.fields:
                self._skip(f.type)
        elif kind is Kind.UNION:
            self._skip(self._read_branch(node))
        elif kind is Kind.ARRAY:
            self._skip_blocks(lambda: self._skip(node.items))
        elif kind is Kind.MAP:

            def skip_entry() -> None:
                self._in.skip_string()
                self._skip(node.values)

            self._skip_blocks(skip_entry)

    def _skip_blocks(self, skip_entry: Callable[[], None]) -> None:
        while True:
            count, byte_size = self._in.read_block_header()
            if count == 0:
                return
            if byte_size is not None:
                self._in.skip(byte_size)
            else:
                for _ in range(count):
                    skip_entry()

    def finish_structure(self, consume_remaining: bool = False) -> None:
        """Finish the innermost array, or else this record or map.

        Args:
            consume_remaining: Skip the items, fields or entries not read
                yet, leaving the stream after the structure. Without it the
                caller must have read everything.
        """
        if self._closed:
            raise IllegalStateException("Decoder has already been finished")
        if self._active_child is not None:
            raise IllegalStateException("A nested decoder is still open; finish it first")

        if self._array_stack:
            context = self._array_stack[-1]
            if consume_remaining:
                if context.pending:
                    self.skip_value()
                while self.has_next_array_value():
                    self.skip_value()
            elif context.pending or not context.done:
                _logger.debug("Leaving an array with unread items")
            self._array_stack.pop()
            return

        if consume_remaining and self._mode is not DecoderMode.ROOT:
            if self._slot_open and not self._value_consumed:
                self.skip_value()
            while self.decode_key() is not None:
                self.skip_value()
        self._closed = True
        if self._parent is not None:
            self._parent._active_child = None
        _logger.debug("Finished %s decoder", self._mode.value)

    def decode_buffer(self) -> "AvroSerdeDecoder":
        """Capture the current value and get an independent decoder for it.

        The value is consumed from this decoder. The returned decoder reads
        the captured bytes with the value's schema as its root.
        """
        self._check_usable()
        with self._in.capture() as captured:
            node = self._take_node(resolve_union=False)
            self._skip(node)
        return AvroSerdeDecoder(
            BytesSource(bytes(captured)),
            schema=node,
            schema_provider=self._schema_provider,
            config=self._config,
        )

    def decode_arbitrary(self) -> Any:
        """Decode the current value into plain Python values.

        Records and maps become dicts, arrays lists, enums their symbol and
        logical types their Python value.
        """
        self._check_usable()
        return self._read_value(self._take_node(resolve_union=False))

    def _read_value(self, node: SchemaNode) -> Any:
        kind = node.kind
        logical_type = node.logical_type
        if kind is Kind.NULL:
            return None
        if kind is Kind.BOOLEAN:
            return self._in.read_boolean()
        if kind is Kind.INT:
            value = self._in.read_int()
            if logical_type is LogicalType.DATE:
                return logical.days_to_date(value)
            if logical_type is LogicalType.TIME_MILLIS:
                return logical.millis_to_time(value)
            if node.native_type == "char":
                return chr(value)
            return value
        if kind is Kind.LONG:
            value = self._in.read_long()
            if logical_type is LogicalType.TIMESTAMP_MILLIS:
                return logical.millis_to_datetime(value)
            return value
        if kind in (Kind.FLOAT, Kind.DOUBLE):
            return self._read_number(kind)
        if kind is Kind.STRING:
            if logical_type is LogicalType.UUID:
                return self._read_uuid(node)
            return self._in.read_string()
        if kind is Kind.BYTES:
            if logical_type in (LogicalType.DECIMAL, LogicalType.BIG_DECIMAL):
                return self._read_decimal(node)
            return self._in.read_bytes()
        if kind is Kind.FIXED:
            if logical_type is LogicalType.DECIMAL:
                return self._read_decimal(node)
            if logical_type is LogicalType.UUID:
                return self._read_uuid(node)
            if logical_type is LogicalType.DURATION:
                return logical.bytes_to_duration(self._in.read_fixed(node.size))
            return self._in.read_fixed(node.size)
        if kind is Kind.ENUM:
            return node.symbols[self._in.read_enum(len(node.symbols))]
        if kind is Kind.UNION:
            return self._read_value(self._read_branch(node))
        if kind is Kind.RECORD:
            return {f.name: self._read_value(f.type) for f in node.fields}
        if kind is Kind.ARRAY:
            items: List[Any] = []
            while True:
                count = self._in.read_block_count()
                if count == 0:
                    return items
                for _ in range(count):
                    items.append(self._read_value(node.items))
        result: Dict[str, Any] = {}
        while True:
            count = self._in.read_block_count()
            if count == 0:
                return result
            for _ in range(count):
                key = self._in.read_string()
                result[key] = self._read_value(node.values)
