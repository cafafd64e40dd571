"""avroserde: schema-driven Avro binary serialization."""

from avroserde.config import SerdeConfig
from avroserde.exceptions import (
    AvroSerdeException,
    IllegalStateException,
    IllegalArgumentException,
    ConfigurationException,
    FramingException,
    SchemaException,
    SchemaNotFoundException,
    SchemaMismatchException,
    MissingFieldException,
)
from avroserde.logging import configure_logging, get_logger, set_level
from avroserde.serialization import (
    AvroSerdeEncoder,
    AvroSerdeDecoder,
    BytesSink,
    BytesSource,
    Duration,
    Kind,
    LogicalType,
    Field,
    SchemaNode,
    SchemaService,
    parse_schema,
)

__all__ = [
    "SerdeConfig",
    # Exceptions
    "AvroSerdeException",
    "IllegalStateException",
    "IllegalArgumentException",
    "ConfigurationException",
    "FramingException",
    "SchemaException",
    "SchemaNotFoundException",
    "SchemaMismatchException",
    "MissingFieldException",
    # Logging
    "configure_logging",
    "get_logger",
    "set_level",
    # Serialization
    "AvroSerdeEncoder",
    "AvroSerdeDecoder",
    "BytesSink",
    "BytesSource",
    "Duration",
    "Kind",
    "LogicalType",
    "Field",
    "SchemaNode",
    "SchemaService",
    "parse_schema",
]

__version__ = "0.1.0"
