"""Avro binary primitive codec.

Encoding rules:

- int and long: zigzag transform, then little-endian base-128 varint.
- float and double: IEEE-754 bit pattern, least significant byte first.
- bytes and string: long length prefix followed by the raw (UTF-8) bytes.
- enum and union index: a single int.
- array and map: blocks of ``count`` items terminated by a zero count. A
  negative count is followed by the block size in bytes.
"""

import io
import struct
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Tuple

from avroserde.config import SerdeConfig
from avroserde.exceptions import FramingException, IllegalArgumentException
from avroserde.serialization.api import ByteSink, ByteSource


INT_MIN = -(1 << 31)
INT_MAX = (1 << 31) - 1
LONG_MIN = -(1 << 63)
LONG_MAX = (1 << 63) - 1

MAX_INT_VARINT_BYTES = 5
MAX_LONG_VARINT_BYTES = 10


def check_range(value: int, low: int, high: int, type_name: str) -> int:
    """Check that an integer fits in a signed range.

    Raises:
        IllegalArgumentException: If the value is out of range.
    """
    if value < low or value > high:
        raise IllegalArgumentException(f"Value {value} is out of range for {type_name}")
    return value


def zigzag_encode(value: int, bits: int = 64) -> int:
    """Map a signed integer to an unsigned one, keeping small magnitudes small.

    Args:
        value: Signed value that fits in ``bits`` bits.
        bits: Width of the signed type, 32 or 64.

    Returns:
        The zigzag encoded value: 0 -> 0, -1 -> 1, 1 -> 2, -2 -> 3, ...
    """
    check_range(value, -(1 << (bits - 1)), (1 << (bits - 1)) - 1, f"{bits}-bit integer")
    return (value << 1) ^ (value >> (bits - 1))


def zigzag_decode(value: int) -> int:
    """Reverse :func:`zigzag_encode`."""
    return (value >> 1) ^ -(value & 1)


def encode_varint(value: int) -> bytes:
    """Encode an unsigned integer as a base-128 varint, low group first."""
    if value < 0:
        raise IllegalArgumentException(f"Varint value must not be negative: {value}")
    out = bytearray()
    while value & ~0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_int(value: int) -> bytes:
    """Encode a 32-bit int."""
    return encode_varint(zigzag_encode(value, 32))


def encode_long(value: int) -> bytes:
    """Encode a 64-bit long."""
    return encode_varint(zigzag_encode(value, 64))


def pack_float(value: float) -> bytes:
    """Encode a single precision float.

    Raises:
        IllegalArgumentException: If the value overflows a 32-bit float.
    """
    try:
        return struct.pack("<f", value)
    except OverflowError as e:
        raise IllegalArgumentException(f"Value {value} is out of range for float", cause=e)


def pack_double(value: float) -> bytes:
    """Encode a double precision float."""
    return struct.pack("<d", value)


class BytesSink(ByteSink):
    """In-memory byte sink."""

    def __init__(self):
        self._buffer = bytearray()

    def write(self, data: bytes) -> None:
        self._buffer.extend(data)

    def flush(self) -> None:
        pass

    def getvalue(self) -> bytes:
        """Get everything written so far."""
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)


class StreamSink(ByteSink):
    """Byte sink over a binary file object."""

    def __init__(self, stream: Any):
        self._stream = stream

    def write(self, data: bytes) -> None:
        self._stream.write(data)

    def flush(self) -> None:
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            flush()


class BytesSource(ByteSource):
    """In-memory byte source."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._pos = 0

    def read_byte(self) -> int:
        if self._pos >= len(self._data):
            raise FramingException("Unexpected end of stream", self._pos)
        value = self._data[self._pos]
        self._pos += 1
        return value

    def read_bytes(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise FramingException(
                f"Unexpected end of stream: needed {n} bytes, "
                f"{len(self._data) - self._pos} available",
                self._pos,
            )
        data = self._data[self._pos:end]
        self._pos = end
        return data

    @property
    def position(self) -> int:
        return self._pos

    def remaining(self) -> int:
        """Get the number of unread bytes."""
        return len(self._data) - self._pos


class StreamSource(ByteSource):
    """Byte source over a readable binary file object."""

    def __init__(self, stream: Any):
        self._stream = stream
        self._pos = 0

    def read_byte(self) -> int:
        data = self._stream.read(1)
        if not data:
            raise FramingException("Unexpected end of stream", self._pos)
        self._pos += 1
        return data[0]

    def read_bytes(self, n: int) -> bytes:
        chunks = []
        missing = n
        while missing > 0:
            chunk = self._stream.read(missing)
            if not chunk:
                raise FramingException(
                    f"Unexpected end of stream: needed {n} bytes, {n - missing} available",
                    self._pos,
                )
            chunks.append(chunk)
            missing -= len(chunk)
            self._pos += len(chunk)
        return b"".join(chunks)

    @property
    def position(self) -> int:
        return self._pos


def as_sink(target: Any) -> ByteSink:
    """Adapt a sink or a writable binary file object to :class:`ByteSink`."""
    if isinstance(target, ByteSink):
        return target
    if hasattr(target, "write"):
        return StreamSink(target)
    raise IllegalArgumentException(f"Cannot write to {type(target).__name__}")


def as_source(source: Any) -> ByteSource:
    """Adapt bytes, a source or a readable binary file object to :class:`ByteSource`."""
    if isinstance(source, ByteSource):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return BytesSource(source)
    if isinstance(source, io.BytesIO) or hasattr(source, "read"):
        return StreamSource(source)
    raise IllegalArgumentException(f"Cannot read from {type(source).__name__}")


class BinaryEncoder:
    """Writes Avro binary primitives to a byte sink."""

    def __init__(self, sink: Any):
        self._sink = as_sink(sink)

    @property
    def sink(self) -> ByteSink:
        return self._sink

    def write_null(self) -> None:
        pass

    def write_boolean(self, value: bool) -> None:
        self._sink.write(b"\x01" if value else b"\x00")

    def write_int(self, value: int) -> None:
        self._sink.write(encode_int(value))

    def write_long(self, value: int) -> None:
        self._sink.write(encode_long(value))

    def write_float(self, value: float) -> None:
        self._sink.write(pack_float(value))

    def write_double(self, value: float) -> None:
        self._sink.write(pack_double(value))

    def write_bytes(self, value: bytes) -> None:
        self.write_long(len(value))
        self._sink.write(bytes(value))

    def write_string(self, value: str) -> None:
        self.write_bytes(value.encode("utf-8"))

    def write_fixed(self, value: bytes, size: Optional[int] = None) -> None:
        if size is not None and len(value) != size:
            raise IllegalArgumentException(
                f"Fixed value has {len(value)} bytes, expected {size}"
            )
        self._sink.write(bytes(value))

    def write_enum(self, index: int) -> None:
        self.write_int(index)

    def write_index(self, index: int) -> None:
        self.write_int(index)

    def write_block_count(self, count: int, byte_size: Optional[int] = None) -> None:
        """Write a block header.

        Args:
            count: Number of items in the block.
            byte_size: Size of the block body; when given the count is
                written negated and followed by the size.
        """
        if byte_size is None:
            self.write_long(count)
        else:
            self.write_long(-count)
            self.write_long(byte_size)

    def write_block_end(self) -> None:
        self.write_long(0)

    def write_raw(self, data: bytes) -> None:
        self._sink.write(data)

    def flush(self) -> None:
        self._sink.flush()


class BinaryDecoder:
    """Reads Avro binary primitives from a byte source.

    Every malformed input raises :class:`FramingException`; after that the
    decoder must not be used again.
    """

    def __init__(self, source: Any, config: Optional[SerdeConfig] = None):
        self._source = as_source(source)
        self._config = config or SerdeConfig()
        self._captures: List[bytearray] = []

    @property
    def position(self) -> int:
        return self._source.position

    def _read(self, n: int) -> bytes:
        data = self._source.read_bytes(n)
        for capture in self._captures:
            capture.extend(data)
        return data

    def _read_byte(self) -> int:
        value = self._source.read_byte()
        for capture in self._captures:
            capture.append(value)
        return value

    @contextmanager
    def capture(self) -> Iterator[bytearray]:
        """Record the raw bytes consumed inside the ``with`` block."""
        buffer = bytearray()
        self._captures.append(buffer)
        try:
            yield buffer
        finally:
            self._captures = [c for c in self._captures if c is not buffer]

    def _read_varint(self, max_bytes: int) -> int:
        result = 0
        shift = 0
        for _ in range(max_bytes):
            b = self._read_byte()
            result |= (b & 0x7F) << shift
            if not b & 0x80:
                return result
            shift += 7
        raise FramingException(
            f"Malformed varint: longer than {max_bytes} bytes", self.position
        )

    def read_null(self) -> None:
        return None

    def read_boolean(self) -> bool:
        value = self._read_byte()
        if value > 1:
            raise FramingException(f"Invalid boolean byte: {value}", self.position)
        return value == 1

    def read_int(self) -> int:
        value = zigzag_decode(self._read_varint(MAX_INT_VARINT_BYTES))
        if value < INT_MIN or value > INT_MAX:
            raise FramingException(f"Varint does not fit in an int: {value}", self.position)
        return value

    def read_long(self) -> int:
        value = zigzag_decode(self._read_varint(MAX_LONG_VARINT_BYTES))
        if value < LONG_MIN or value > LONG_MAX:
            raise FramingException(f"Varint does not fit in a long: {value}", self.position)
        return value

    def read_float(self) -> float:
        return struct.unpack("<f", self._read(4))[0]

    def read_double(self) -> float:
        return struct.unpack("<d", self._read(8))[0]

    def _read_length(self) -> int:
        length = self.read_long()
        if length < 0:
            raise FramingException(f"Negative length: {length}", self.position)
        if length > self._config.max_bytes_length:
            raise FramingException(
                f"Length {length} exceeds the limit of {self._config.max_bytes_length} bytes",
                self.position,
            )
        return length

    def read_bytes(self) -> bytes:
        return self._read(self._read_length())

    def read_string(self) -> str:
        data = self.read_bytes()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FramingException("Invalid UTF-8 in string", self.position, cause=e)

    def read_fixed(self, size: int) -> bytes:
        return self._read(size)

    def _read_bounded_index(self, count: Optional[int], what: str) -> int:
        index = self.read_int()
        if count is not None and not 0 <= index < count:
            raise FramingException(
                f"{what} index {index} out of range [0, {count})", self.position
            )
        return index

    def read_enum(self, symbol_count: Optional[int] = None) -> int:
        return self._read_bounded_index(symbol_count, "Enum")

    def read_index(self, branch_count: Optional[int] = None) -> int:
        return self._read_bounded_index(branch_count, "Union")

    def read_block_header(self) -> Tuple[int, Optional[int]]:
        """Read an array or map block header.

        Returns:
            ``(count, byte_size)``. ``byte_size`` is None unless the writer
            stored it. A count of 0 marks the end of the collection.
        """
        count = self.read_long()
        byte_size = None
        if count < 0:
            count = -count
            byte_size = self.read_long()
            if byte_size < 0:
                raise FramingException(f"Negative block size: {byte_size}", self.position)
        if count > self._config.max_collection_length:
            raise FramingException(
                f"Block of {count} items exceeds the limit of "
                f"{self._config.max_collection_length}",
                self.position,
            )
        return count, byte_size

    def read_block_count(self) -> int:
        return self.read_block_header()[0]

    def skip(self, n: int) -> None:
        self._read(n)

    def skip_bytes(self) -> None:
        self.skip(self._read_length())

    skip_string = skip_bytes

    def skip_fixed(self, size: int) -> None:
        self.skip(size)
