"""avroserde serialization package."""

from avroserde.serialization.api import (
    ByteSink,
    ByteSource,
    SchemaProvider,
    Encoder,
    Decoder,
)
from avroserde.serialization.binary import (
    BinaryEncoder,
    BinaryDecoder,
    BytesSink,
    BytesSource,
    StreamSink,
    StreamSource,
    as_sink,
    as_source,
    zigzag_encode,
    zigzag_decode,
    encode_varint,
)
from avroserde.serialization.logical import Duration
from avroserde.serialization.schema import (
    Kind,
    LogicalType,
    Field,
    SchemaNode,
    SchemaService,
    parse_schema,
)
from avroserde.serialization.encoder import AvroSerdeEncoder, EncoderMode, PendingWrite
from avroserde.serialization.decoder import AvroSerdeDecoder, ArrayContext, DecoderMode

__all__ = [
    "ByteSink",
    "ByteSource",
    "SchemaProvider",
    "Encoder",
    "Decoder",
    "BinaryEncoder",
    "BinaryDecoder",
    "BytesSink",
    "BytesSource",
    "StreamSink",
    "StreamSource",
    "as_sink",
    "as_source",
    "zigzag_encode",
    "zigzag_decode",
    "encode_varint",
    "Duration",
    "Kind",
    "LogicalType",
    "Field",
    "SchemaNode",
    "SchemaService",
    "parse_schema",
    "AvroSerdeEncoder",
    "EncoderMode",
    "PendingWrite",
    "AvroSerdeDecoder",
    "ArrayContext",
    "DecoderMode",
]
