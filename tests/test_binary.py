"""Tests for the Avro binary primitive codec."""

import io
import struct

import pytest

from avroserde.config import SerdeConfig
from avroserde.exceptions import FramingException, IllegalArgumentException
from avroserde.serialization.binary import (
    BinaryDecoder,
    BinaryEncoder,
    BytesSink,
    BytesSource,
    StreamSink,
    StreamSource,
    as_sink,
    as_source,
    encode_varint,
    zigzag_decode,
    zigzag_encode,
)


def encode(write):
    sink = BytesSink()
    write(BinaryEncoder(sink))
    return list(sink.getvalue())


class TestZigzag:
    """Tests for the zigzag transform."""

    def test_small_values(self):
        assert zigzag_encode(0) == 0
        assert zigzag_encode(-1) == 1
        assert zigzag_encode(1) == 2
        assert zigzag_encode(-2) == 3
        assert zigzag_encode(2) == 4

    def test_int_extremes(self):
        assert zigzag_encode(2147483647, 32) == 4294967294
        assert zigzag_encode(-2147483648, 32) == 4294967295

    def test_long_extremes(self):
        assert zigzag_encode((1 << 63) - 1) == (1 << 64) - 2
        assert zigzag_encode(-(1 << 63)) == (1 << 64) - 1

    @pytest.mark.parametrize("value", [0, 1, -1, 63, -64, 2 ** 31 - 1, -(2 ** 31), 2 ** 63 - 1])
    def test_decode_reverses_encode(self, value):
        assert zigzag_decode(zigzag_encode(value)) == value

    def test_dense_int_range(self):
        values = list(range(-70000, 70000)) + [
            -(2 ** 31), -(2 ** 31) + 1, 2 ** 31 - 2, 2 ** 31 - 1,
        ]
        for value in values:
            encoded = zigzag_encode(value, 32)
            assert 0 <= encoded < 2 ** 32
            assert zigzag_decode(encoded) == value

    @pytest.mark.parametrize("value", [-(2 ** 31), -70000, -8193, -65, 64, 8192, 2 ** 31 - 1])
    def test_int_round_trip_through_varint(self, value):
        assert BinaryDecoder(encode_varint(zigzag_encode(value, 32))).read_int() == value

    def test_out_of_range(self):
        with pytest.raises(IllegalArgumentException):
            zigzag_encode(2 ** 31, 32)
        with pytest.raises(IllegalArgumentException):
            zigzag_encode(-(2 ** 63) - 1)


class TestVarint:
    """Tests for base-128 varints."""

    def test_single_byte(self):
        assert encode_varint(0) == b"\x00"
        assert encode_varint(127) == b"\x7f"

    def test_multi_byte(self):
        assert encode_varint(128) == b"\x80\x01"
        assert encode_varint(300) == b"\xac\x02"

    def test_negative_rejected(self):
        with pytest.raises(IllegalArgumentException):
            encode_varint(-1)


class TestBinaryEncoder:
    """Tests for BinaryEncoder."""

    def test_int(self):
        assert encode(lambda e: e.write_int(10)) == [20]
        assert encode(lambda e: e.write_int(-1)) == [1]
        assert encode(lambda e: e.write_int(64)) == [128, 1]

    def test_int_out_of_range(self):
        with pytest.raises(IllegalArgumentException):
            encode(lambda e: e.write_int(2 ** 31))

    def test_long(self):
        assert encode(lambda e: e.write_long(-3)) == [5]
        assert len(encode(lambda e: e.write_long(-(2 ** 63)))) == 10

    def test_boolean(self):
        assert encode(lambda e: e.write_boolean(True)) == [1]
        assert encode(lambda e: e.write_boolean(False)) == [0]

    def test_null_writes_nothing(self):
        assert encode(lambda e: e.write_null()) == []

    def test_float(self):
        assert encode(lambda e: e.write_float(23.0)) == [0, 0, 184, 65]

    def test_float_overflow(self):
        with pytest.raises(IllegalArgumentException):
            encode(lambda e: e.write_float(1e300))

    def test_double(self):
        assert encode(lambda e: e.write_double(1.0)) == list(struct.pack("<d", 1.0))

    def test_string(self):
        assert encode(lambda e: e.write_string("foo")) == [6, 102, 111, 111]

    def test_empty_string(self):
        assert encode(lambda e: e.write_string("")) == [0]

    def test_utf8_string(self):
        assert encode(lambda e: e.write_string("é")) == [4, 0xC3, 0xA9]

    def test_bytes(self):
        assert encode(lambda e: e.write_bytes(b"\x01\x02")) == [4, 1, 2]

    def test_fixed(self):
        assert encode(lambda e: e.write_fixed(b"\x01\x02", 2)) == [1, 2]

    def test_fixed_wrong_size(self):
        with pytest.raises(IllegalArgumentException):
            encode(lambda e: e.write_fixed(b"\x01", 2))

    def test_block_count(self):
        assert encode(lambda e: e.write_block_count(3)) == [6]

    def test_block_count_with_byte_size(self):
        assert encode(lambda e: e.write_block_count(2, 5)) == [3, 10]

    def test_block_end(self):
        assert encode(lambda e: e.write_block_end()) == [0]


class TestBinaryDecoder:
    """Tests for BinaryDecoder."""

    def test_read_int(self):
        assert BinaryDecoder(b"\x14").read_int() == 10
        assert BinaryDecoder(b"\x80\x01").read_int() == 64

    def test_read_int_extremes(self):
        assert BinaryDecoder(b"\xff\xff\xff\xff\x0f").read_int() == -(2 ** 31)
        assert BinaryDecoder(b"\xfe\xff\xff\xff\x0f").read_int() == 2 ** 31 - 1

    def test_read_int_overflow(self):
        with pytest.raises(FramingException):
            BinaryDecoder(b"\xff\xff\xff\xff\x1f").read_int()

    def test_read_int_too_long(self):
        with pytest.raises(FramingException, match="longer than 5 bytes"):
            BinaryDecoder(b"\x80\x80\x80\x80\x80\x01").read_int()

    def test_read_long_too_long(self):
        with pytest.raises(FramingException, match="longer than 10 bytes"):
            BinaryDecoder(b"\x80" * 10 + b"\x01").read_long()

    def test_read_boolean(self):
        decoder = BinaryDecoder(b"\x01\x00")
        assert decoder.read_boolean() is True
        assert decoder.read_boolean() is False

    def test_invalid_boolean(self):
        with pytest.raises(FramingException):
            BinaryDecoder(b"\x02").read_boolean()

    def test_read_float_and_double(self):
        decoder = BinaryDecoder(bytes([0, 0, 184, 65]) + struct.pack("<d", 2.5))
        assert decoder.read_float() == 23.0
        assert decoder.read_double() == 2.5

    def test_read_string(self):
        assert BinaryDecoder(b"\x06foo").read_string() == "foo"
        assert BinaryDecoder(b"\x00").read_string() == ""

    def test_truncated_string(self):
        with pytest.raises(FramingException, match="Unexpected end of stream"):
            BinaryDecoder(b"\x06fo").read_string()

    def test_empty_stream(self):
        with pytest.raises(FramingException):
            BinaryDecoder(b"").read_int()

    def test_negative_length(self):
        with pytest.raises(FramingException, match="Negative length"):
            BinaryDecoder(b"\x01").read_bytes()

    def test_length_above_limit(self):
        decoder = BinaryDecoder(b"\x06foo", SerdeConfig(max_bytes_length=2))
        with pytest.raises(FramingException, match="exceeds the limit"):
            decoder.read_string()

    def test_invalid_utf8(self):
        with pytest.raises(FramingException, match="UTF-8"):
            BinaryDecoder(b"\x02\xff").read_string()

    def test_read_fixed(self):
        assert BinaryDecoder(b"\x01\x02\x03").read_fixed(2) == b"\x01\x02"

    def test_read_enum_out_of_range(self):
        with pytest.raises(FramingException):
            BinaryDecoder(b"\x08").read_enum(3)

    def test_read_block_header(self):
        decoder = BinaryDecoder(b"\x06\x03\x0a\x00")
        assert decoder.read_block_header() == (3, None)
        assert decoder.read_block_header() == (2, 5)
        assert decoder.read_block_count() == 0

    def test_block_count_above_limit(self):
        decoder = BinaryDecoder(b"\x04", SerdeConfig(max_collection_length=1))
        with pytest.raises(FramingException):
            decoder.read_block_count()

    def test_skip(self):
        decoder = BinaryDecoder(b"\x06foo\x14")
        decoder.skip_bytes()
        assert decoder.read_int() == 10

    def test_skip_fixed(self):
        decoder = BinaryDecoder(b"\x01\x02\x14")
        decoder.skip_fixed(2)
        assert decoder.read_int() == 10

    def test_position(self):
        decoder = BinaryDecoder(b"\x06foo\x14")
        decoder.read_string()
        assert decoder.position == 4

    def test_capture(self):
        decoder = BinaryDecoder(b"\x14\x06foo\x02")
        decoder.read_int()
        with decoder.capture() as captured:
            decoder.read_string()
        decoder.read_int()
        assert bytes(captured) == b"\x06foo"

    def test_nested_capture(self):
        decoder = BinaryDecoder(b"\x02\x04")
        with decoder.capture() as outer:
            decoder.read_int()
            with decoder.capture() as inner:
                decoder.read_int()
        assert bytes(outer) == b"\x02\x04"
        assert bytes(inner) == b"\x04"


class TestSinksAndSources:
    """Tests for byte sinks and sources."""

    def test_bytes_sink(self):
        sink = BytesSink()
        sink.write(b"ab")
        sink.write(b"c")
        assert sink.getvalue() == b"abc"
        assert len(sink) == 3

    def test_stream_sink(self):
        stream = io.BytesIO()
        encoder = BinaryEncoder(StreamSink(stream))
        encoder.write_string("foo")
        encoder.flush()
        assert stream.getvalue() == b"\x06foo"

    def test_bytes_source_remaining(self):
        source = BytesSource(b"abc")
        source.read_byte()
        assert source.position == 1
        assert source.remaining() == 2

    def test_stream_source(self):
        decoder = BinaryDecoder(StreamSource(io.BytesIO(b"\x06foo")))
        assert decoder.read_string() == "foo"
        assert decoder.position == 4

    def test_stream_source_truncated(self):
        decoder = BinaryDecoder(io.BytesIO(b"\x06f"))
        with pytest.raises(FramingException):
            decoder.read_string()

    def test_as_sink(self):
        sink = BytesSink()
        assert as_sink(sink) is sink
        assert isinstance(as_sink(io.BytesIO()), StreamSink)

    def test_as_sink_rejects_other_objects(self):
        with pytest.raises(IllegalArgumentException):
            as_sink(42)

    def test_as_source(self):
        assert isinstance(as_source(b"abc"), BytesSource)
        assert isinstance(as_source(bytearray(b"abc")), BytesSource)
        assert isinstance(as_source(io.BytesIO(b"abc")), StreamSource)

    def test_as_source_rejects_other_objects(self):
        with pytest.raises(IllegalArgumentException):
            as_source(42)
