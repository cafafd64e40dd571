"""Schema-driven Avro encoder.

Values are supplied field by field in any order and buffered as pending
writes. When a structure finishes, its buffered writes are replayed in the
order the schema declares, so the output is always positional Avro binary.
"""

import datetime
import decimal
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from avroserde.config import SerdeConfig
from avroserde.exceptions import (
    IllegalArgumentException,
    IllegalStateException,
    MissingFieldException,
    SchemaMismatchException,
)
from avroserde.logging import get_logger
from avroserde.serialization import logical
from avroserde.serialization.api import Encoder, SchemaProvider
from avroserde.serialization.binary import (
    INT_MAX,
    INT_MIN,
    LONG_MAX,
    LONG_MIN,
    BinaryEncoder,
    BytesSink,
    check_range,
    pack_float,
)
from avroserde.serialization.schema import Kind, LogicalType, SchemaNode


_logger = get_logger("encoder")

WriteAction = Callable[[BinaryEncoder], None]
BuildAction = Callable[[Kind, Optional[SchemaNode]], WriteAction]


@dataclass
class PendingWrite:
    """A buffered value, written to the target encoder when replayed."""

    kind: Kind
    write: WriteAction


class EncoderMode(Enum):
    ROOT = "root"
    RECORD = "record"
    MAP = "map"
    ARRAY = "array"


_BOOLEAN_TARGETS = frozenset({Kind.BOOLEAN})
_INT_TARGETS = frozenset({Kind.INT, Kind.LONG, Kind.FLOAT, Kind.DOUBLE})
_LONG_TARGETS = frozenset({Kind.LONG, Kind.FLOAT, Kind.DOUBLE})
_FLOAT_TARGETS = frozenset({Kind.FLOAT, Kind.DOUBLE})
_DOUBLE_TARGETS = frozenset({Kind.DOUBLE})
_STRING_TARGETS = frozenset({Kind.STRING, Kind.ENUM})
_BYTES_TARGETS = frozenset({Kind.BYTES, Kind.FIXED})
_DECIMAL_TARGETS = frozenset({Kind.STRING, Kind.BYTES, Kind.FIXED})
_UUID_TARGETS = frozenset({Kind.STRING, Kind.FIXED})
_NULL_TARGETS = frozenset({Kind.NULL})
_OBJECT_TARGETS = frozenset({Kind.RECORD, Kind.MAP})
_ARRAY_TARGETS = frozenset({Kind.ARRAY})


def _check_integer(value: Any, type_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise IllegalArgumentException(
            f"Expected an integer for {type_name} but got {type(value).__name__}"
        )


def _check_number(value: Any, type_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise IllegalArgumentException(
            f"Expected a number for {type_name} but got {type(value).__name__}"
        )


def _number_action(kind: Kind, value: Any) -> WriteAction:
    """Validate a number against the target kind and build its write."""
    if kind is Kind.INT:
        check_range(value, INT_MIN, INT_MAX, "int")
        return lambda out: out.write_int(value)
    if kind is Kind.LONG:
        check_range(value, LONG_MIN, LONG_MAX, "long")
        return lambda out: out.write_long(value)
    if kind is Kind.FLOAT:
        data = pack_float(float(value))
        return lambda out: out.write_raw(data)
    value = float(value)
    return lambda out: out.write_double(value)


def _with_branch(branch: Optional[int], action: WriteAction) -> WriteAction:
    if branch is None:
        return action

    def write(out: BinaryEncoder) -> None:
        out.write_index(branch)
        action(out)

    return write


class AvroSerdeEncoder(Encoder):
    """Encoder that writes Avro binary, driven by an optional schema.

    The root encoder owns the byte sink. ``encode_object`` and
    ``encode_array`` return child encoders that share it; a parent cannot be
    used until its open child is finished. Without a schema, records are
    written in sorted key order.

    Args:
        sink: A :class:`ByteSink`, a writable binary file object or a
            :class:`BinaryEncoder`.
        schema: Schema of the root value, if known.
        schema_provider: Resolves schemas for ``encode_object`` and
            ``encode_array`` type keys.
        config: Block framing and compatibility settings.
    """

    def __init__(
        self,
        sink: Any,
        schema: Optional[SchemaNode] = None,
        schema_provider: Optional[SchemaProvider] = None,
        config: Optional[SerdeConfig] = None,
    ):
        out = sink if isinstance(sink, BinaryEncoder) else BinaryEncoder(sink)
        mode = EncoderMode.ROOT
        if schema is not None and schema.kind is Kind.RECORD:
            mode = EncoderMode.RECORD
        elif schema is not None and schema.kind is Kind.MAP:
            mode = EncoderMode.MAP
        self._setup(out, mode, schema, None, schema_provider, config or SerdeConfig())

    def _setup(
        self,
        out: BinaryEncoder,
        mode: EncoderMode,
        schema: Optional[SchemaNode],
        parent: Optional["AvroSerdeEncoder"],
        schema_provider: Optional[SchemaProvider],
        config: SerdeConfig,
    ) -> None:
        self._out = out
        self._mode = mode
        self._schema = schema
        self._parent = parent
        self._schema_provider = schema_provider
        self._config = config
        self._fields: Dict[str, PendingWrite] = {}
        self._items: List[PendingWrite] = []
        self._current_key: Optional[str] = None
        self._active_child: Optional["AvroSerdeEncoder"] = None
        self._finished = False
        self._emit_on_finish = False
        self._branch: Optional[int] = None

    @classmethod
    def _child_of(
        cls, parent: "AvroSerdeEncoder", mode: EncoderMode, schema: Optional[SchemaNode]
    ) -> "AvroSerdeEncoder":
        child = cls.__new__(cls)
        child._setup(
            parent._out, mode, schema, parent, parent._schema_provider, parent._config
        )
        return child

    @property
    def mode(self) -> EncoderMode:
        return self._mode

    @property
    def schema(self) -> Optional[SchemaNode]:
        return self._schema

    @property
    def is_finished(self) -> bool:
        return self._finished

    def __enter__(self) -> "AvroSerdeEncoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None and not self._finished:
            self.finish_structure()
        return False

    def _check_usable(self) -> None:
        if self._finished:
            raise IllegalStateException("Encoder has already been finished")
        if self._active_child is not None:
            raise IllegalStateException(
                f"A nested {self._active_child._mode.value} is still open; finish it first"
            )

    def _location(self) -> str:
        if self._mode is EncoderMode.ARRAY:
            return " (array item)"
        if self._current_key is not None:
            return f" (field '{self._current_key}')"
        return ""

    def _expected_node(self) -> Optional[SchemaNode]:
        """Get the schema of the next value, or None when unknown."""
        schema = self._schema
        if schema is None:
            return None
        if self._mode is EncoderMode.ARRAY:
            return schema.items
        if self._mode is EncoderMode.MAP:
            return schema.values
        if self._mode is EncoderMode.RECORD:
            if self._current_key is None:
                return None
            f = schema.get_field(self._current_key)
            return f.type if f is not None else None
        return schema if self._current_key is None else None

    def _select(
        self, expected: SchemaNode, targets: FrozenSet[Kind], preferred: Kind, what: str
    ) -> Tuple[Optional[int], SchemaNode]:
        """Match a value against the expected node.

        Returns:
            The union branch index (None when not a union) and the node the
            value is written as.
        """
        if expected.kind is Kind.UNION:
            for index, candidate in enumerate(expected.types):
                if candidate.kind is preferred:
                    return index, candidate
            for index, candidate in enumerate(expected.types):
                if candidate.kind in targets:
                    return index, candidate
        elif expected.kind in targets:
            return None, expected
        raise SchemaMismatchException(
            f"Cannot encode {what} as {expected.describe()}{self._location()}"
        )

    def _buffer(
        self, what: str, targets: FrozenSet[Kind], preferred: Kind, build: BuildAction
    ) -> None:
        self._check_usable()
        expected = self._expected_node()
        branch = None
        node = None
        if expected is not None:
            branch, node = self._select(expected, targets, preferred, what)
        kind = node.kind if node is not None else preferred
        self._store(PendingWrite(kind, _with_branch(branch, build(kind, node))))

    def _buffer_number(
        self, what: str, targets: FrozenSet[Kind], preferred: Kind, value: Any
    ) -> None:
        self._buffer(what, targets, preferred, lambda kind, node: _number_action(kind, value))

    def _store(self, pending: PendingWrite) -> None:
        if self._mode is EncoderMode.ARRAY:
            self._items.append(pending)
        elif self._current_key is not None:
            self._fields[self._current_key] = pending
            self._current_key = None
        elif self._mode is EncoderMode.ROOT:
            pending.write(self._out)
        else:
            raise IllegalStateException(
                f"A key is required before writing a value into a {self._mode.value}"
            )

    def encode_key(self, name: str) -> None:
        self._check_usable()
        if self._mode is EncoderMode.ARRAY:
            raise IllegalStateException("Keys cannot be used inside an array")
        if self._current_key is not None:
            raise IllegalStateException(f"No value was written for key '{self._current_key}'")
        if name in self._fields:
            raise IllegalStateException(f"Duplicate key '{name}'")
        if (
            self._mode is EncoderMode.RECORD
            and self._schema is not None
            and self._schema.get_field(name) is None
        ):
            _logger.debug(
                "Key '%s' is not a field of %s and will not be written",
                name,
                self._schema.describe(),
            )
        self._current_key = name

    def encode_boolean(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise IllegalArgumentException(f"Expected a bool but got {type(value).__name__}")

        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            return lambda out: out.write_boolean(value)

        self._buffer("boolean", _BOOLEAN_TARGETS, Kind.BOOLEAN, build)

    def encode_int(self, value: int) -> None:
        _check_integer(value, "int")
        self._buffer_number("int", _INT_TARGETS, Kind.INT, value)

    def encode_byte(self, value: int) -> None:
        _check_integer(value, "byte")
        check_range(value, -128, 127, "byte")
        self.encode_int(value)

    def encode_short(self, value: int) -> None:
        _check_integer(value, "short")
        check_range(value, -32768, 32767, "short")
        self.encode_int(value)

    def encode_char(self, value: str) -> None:
        """Write a single character as its code point."""
        if not isinstance(value, str) or len(value) != 1:
            raise IllegalArgumentException(f"Expected a single character but got {value!r}")
        self.encode_int(ord(value))

    def encode_long(self, value: int) -> None:
        _check_integer(value, "long")
        self._buffer_number("long", _LONG_TARGETS, Kind.LONG, value)

    def encode_float(self, value: float) -> None:
        _check_number(value, "float")
        self._buffer_number("float", _FLOAT_TARGETS, Kind.FLOAT, value)

    def encode_double(self, value: float) -> None:
        _check_number(value, "double")
        self._buffer_number("double", _DOUBLE_TARGETS, Kind.DOUBLE, value)

    def encode_string(self, value: Optional[str]) -> None:
        """Write a string, or an enum symbol where the schema has an enum.

        ``None`` is written as Avro ``null``, unless ``null_string_as_empty``
        is configured.
        """
        if value is None:
            if not self._config.null_string_as_empty:
                self.encode_null()
                return
            _logger.warning("Encoding a None string as an empty string")
            value = ""
        if not isinstance(value, str):
            raise IllegalArgumentException(f"Expected a str but got {type(value).__name__}")

        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            if kind is Kind.ENUM:
                if value not in node.symbols:
                    raise SchemaMismatchException(
                        f"'{value}' is not a symbol of {node.describe()}{self._location()}"
                    )
                index = node.symbols.index(value)
                return lambda out: out.write_enum(index)
            return lambda out: out.write_string(value)

        self._buffer("string", _STRING_TARGETS, Kind.STRING, build)

    def encode_bytes(self, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise IllegalArgumentException(f"Expected bytes but got {type(value).__name__}")
        data = bytes(value)

        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            if kind is Kind.FIXED:
                if len(data) != node.size:
                    raise IllegalArgumentException(
                        f"{node.describe()} needs {node.size} bytes but got {len(data)}"
                    )
                return lambda out: out.write_fixed(data)
            return lambda out: out.write_bytes(data)

        self._buffer("bytes", _BYTES_TARGETS, Kind.BYTES, build)

    def encode_big_integer(self, value: int) -> None:
        """Write an arbitrary size integer as big-endian two's complement bytes."""
        _check_integer(value, "big integer")

        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            if kind is Kind.FIXED:
                data = logical.int_to_twos_complement(value, node.size)
                return lambda out: out.write_fixed(data)
            data = logical.int_to_twos_complement(value)
            return lambda out: out.write_bytes(data)

        self._buffer("big integer", _BYTES_TARGETS, Kind.BYTES, build)

    def encode_decimal(self, value: decimal.Decimal) -> None:
        """Write a decimal.

        With a ``decimal`` logical type the unscaled value is written as two's
        complement bytes at the schema's scale. Otherwise the plain string
        form is written as a string or as UTF-8 bytes.
        """
        if isinstance(value, int) and not isinstance(value, bool):
            value = decimal.Decimal(value)
        if not isinstance(value, decimal.Decimal):
            raise IllegalArgumentException(f"Expected a Decimal but got {type(value).__name__}")

        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            if node is not None and node.logical_type is LogicalType.DECIMAL:
                unscaled = logical.decimal_to_unscaled(value, node.scale or 0, node.precision)
                if kind is Kind.FIXED:
                    data = logical.int_to_twos_complement(unscaled, node.size)
                    return lambda out: out.write_fixed(data)
                data = logical.int_to_twos_complement(unscaled)
                return lambda out: out.write_bytes(data)
            if kind is Kind.FIXED:
                raise SchemaMismatchException(
                    f"Cannot encode decimal as {node.describe()}{self._location()}"
                )
            text = logical.decimal_to_plain_string(value)
            if kind is Kind.BYTES:
                data = text.encode("utf-8")
                return lambda out: out.write_bytes(data)
            return lambda out: out.write_string(text)

        self._buffer("decimal", _DECIMAL_TARGETS, Kind.STRING, build)

    def encode_null(self) -> None:
        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            return lambda out: out.write_null()

        self._buffer("null", _NULL_TARGETS, Kind.NULL, build)

    def encode_uuid(self, value: uuid.UUID) -> None:
        if isinstance(value, str):
            value = logical.parse_uuid(value)
        if not isinstance(value, uuid.UUID):
            raise IllegalArgumentException(f"Expected a UUID but got {type(value).__name__}")

        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            if kind is Kind.FIXED:
                if node.size != logical.UUID_SIZE:
                    raise SchemaMismatchException(
                        f"Cannot encode uuid as {node.describe()}{self._location()}"
                    )
                data = value.bytes
                return lambda out: out.write_fixed(data)
            text = str(value)
            return lambda out: out.write_string(text)

        self._buffer("uuid", _UUID_TARGETS, Kind.STRING, build)

    def encode_date(self, value: datetime.date) -> None:
        if not isinstance(value, datetime.date):
            raise IllegalArgumentException(f"Expected a date but got {type(value).__name__}")
        days = logical.date_to_days(value)
        self._buffer_number("date", _INT_TARGETS, Kind.INT, days)

    def encode_time(self, value: datetime.time) -> None:
        """Write a time of day as milliseconds after midnight."""
        if not isinstance(value, datetime.time):
            raise IllegalArgumentException(f"Expected a time but got {type(value).__name__}")
        millis = logical.time_to_millis(value)
        self._buffer_number("time", _INT_TARGETS, Kind.INT, millis)

    def encode_timestamp(self, value: datetime.datetime) -> None:
        if not isinstance(value, datetime.datetime):
            raise IllegalArgumentException(f"Expected a datetime but got {type(value).__name__}")
        millis = logical.datetime_to_millis(value)
        self._buffer_number("timestamp", _LONG_TARGETS, Kind.LONG, millis)

    def encode_duration(self, value: logical.Duration) -> None:
        """Write a duration as a 12 byte fixed."""
        if not isinstance(value, tuple) or len(value) != 3:
            raise IllegalArgumentException(f"Expected a Duration but got {value!r}")
        data = logical.duration_to_bytes(logical.Duration(*value))

        def build(kind: Kind, node: Optional[SchemaNode]) -> WriteAction:
            if node is not None and node.size != logical.DURATION_SIZE:
                raise SchemaMismatchException(
                    f"Cannot encode duration as {node.describe()}{self._location()}"
                )
            return lambda out: out.write_fixed(data)

        self._buffer("duration", frozenset({Kind.FIXED}), Kind.FIXED, build)

    def encode_object(self, type_key: Any = None) -> "AvroSerdeEncoder":
        """Start a nested record or map.

        The schema comes from the enclosing context; when that has none,
        ``type_key`` is looked up in the schema provider. Without either the
        object is written as a schemaless record.
        """
        self._check_usable()
        branch, node = self._structure_node(type_key, _OBJECT_TARGETS, Kind.RECORD, "object")
        if node is not None and node.kind is Kind.MAP:
            return self._spawn(EncoderMode.MAP, node, branch)
        return self._spawn(EncoderMode.RECORD, node, branch)

    def encode_array(self, type_key: Any = None) -> "AvroSerdeEncoder":
        """Start a nested array.

        Args:
            type_key: The item type, looked up in the schema provider when
                the enclosing context has no schema.
        """
        self._check_usable()
        branch, node = self._structure_node(type_key, _ARRAY_TARGETS, Kind.ARRAY, "array")
        return self._spawn(EncoderMode.ARRAY, node, branch)

    def _structure_node(
        self, type_key: Any, targets: FrozenSet[Kind], preferred: Kind, what: str
    ) -> Tuple[Optional[int], Optional[SchemaNode]]:
        expected = self._expected_node()
        if expected is None and type_key is not None and self._schema_provider is not None:
            expected = self._schema_provider.find_schema(type_key)
            if expected is not None and preferred is Kind.ARRAY and expected.kind not in (
                Kind.ARRAY,
                Kind.UNION,
            ):
                expected = SchemaNode.array(expected)
        if expected is None:
            return None, None
        return self._select(expected, targets, preferred, what)

    def _spawn(
        self, mode: EncoderMode, node: Optional[SchemaNode], branch: Optional[int]
    ) -> "AvroSerdeEncoder":
        child = AvroSerdeEncoder._child_of(self, mode, node)
        if self._mode is EncoderMode.ROOT and self._current_key is None:
            child._emit_on_finish = True
            child._branch = branch
        else:
            if node is not None:
                kind = node.kind
            else:
                kind = Kind.ARRAY if mode is EncoderMode.ARRAY else Kind.RECORD
            self._store(PendingWrite(kind, _with_branch(branch, child._emit)))
        self._active_child = child
        _logger.debug(
            "Opened %s encoder for %s",
            mode.value,
            node.describe() if node is not None else "schemaless value",
        )
        return child

    def finish_structure(self) -> None:
        """Finish this structure.

        A record with a schema is checked for missing fields before anything
        is written. A child encoder then becomes part of its parent's buffer;
        the root writes everything and flushes the sink.

        Raises:
            MissingFieldException: If a declared field was not supplied.
            IllegalStateException: If a child is still open, a key has no
                value, or the encoder is already finished.
        """
        self._check_usable()
        if self._current_key is not None:
            raise IllegalStateException(f"No value was written for key '{self._current_key}'")
        if self._mode is EncoderMode.RECORD and self._schema is not None:
            for f in self._schema.fields:
                if f.name not in self._fields:
                    raise MissingFieldException(f.name, self._schema.full_name)
        self._finished = True

        parent = self._parent
        if parent is None:
            self._emit(self._out)
            self._out.flush()
        else:
            parent._active_child = None
            if self._emit_on_finish:
                if self._branch is not None:
                    self._out.write_index(self._branch)
                self._emit(self._out)
        _logger.debug("Finished %s encoder", self._mode.value)

    def _emit(self, out: BinaryEncoder) -> None:
        if not self._finished:
            raise IllegalStateException(f"Nested {self._mode.value} was not finished")
        if self._mode is EncoderMode.ARRAY:
            self._write_blocks(out, self._items, lambda o, item: item.write(o))
        elif self._mode is EncoderMode.MAP:
            self._write_blocks(out, list(self._fields.items()), _write_map_entry)
        elif self._schema is not None and self._schema.kind is Kind.RECORD:
            for f in self._schema.fields:
                self._fields[f.name].write(out)
        else:
            for key in sorted(self._fields):
                self._fields[key].write(out)

    def _write_blocks(
        self, out: BinaryEncoder, entries: List[Any], write_entry: Callable[[BinaryEncoder, Any], None]
    ) -> None:
        block_size = self._config.array_block_size or len(entries)
        for start in range(0, len(entries), max(block_size, 1)):
            block = entries[start:start + block_size]
            if self._config.write_block_byte_size:
                sink = BytesSink()
                scratch = BinaryEncoder(sink)
                for entry in block:
                    write_entry(scratch, entry)
                data = sink.getvalue()
                out.write_block_count(len(block), len(data))
                out.write_raw(data)
            else:
                out.write_block_count(len(block))
                for entry in block:
                    write_entry(out, entry)
        out.write_block_end()


def _write_map_entry(out: BinaryEncoder, entry: Tuple[str, PendingWrite]) -> None:
    key, pending = entry
    out.write_string(key)
    pending.write(out)
