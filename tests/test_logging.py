"""Unit tests for avroserde.logging module."""

import logging

from avroserde.logging import (
    AVROSERDE_ROOT_LOGGER,
    AvroSerdeLoggerFactory,
    configure_logging,
    get_logger,
    set_level,
)
from avroserde.serialization.binary import BytesSink
from avroserde.serialization.encoder import AvroSerdeEncoder
from avroserde.serialization.schema import parse_schema


class TestAvroSerdeLoggerFactory:
    """Tests for AvroSerdeLoggerFactory class."""

    def test_get_logger_root(self):
        logger = AvroSerdeLoggerFactory.get_logger()
        assert logger.name == AVROSERDE_ROOT_LOGGER

    def test_get_logger_component(self):
        logger = AvroSerdeLoggerFactory.get_logger("decoder")
        assert logger.name == f"{AVROSERDE_ROOT_LOGGER}.decoder"

    def test_configure(self):
        logger = AvroSerdeLoggerFactory.configure(level=logging.DEBUG)
        assert logger.level == logging.DEBUG
        assert AvroSerdeLoggerFactory.is_configured() is True

    def test_configure_with_handler(self):
        handler = logging.StreamHandler()
        logger = AvroSerdeLoggerFactory.configure(handler=handler)
        assert handler in logger.handlers or len(logger.handlers) > 0

    def test_set_level(self):
        AvroSerdeLoggerFactory.configure()
        AvroSerdeLoggerFactory.set_level(logging.WARNING, "schema")
        logger = AvroSerdeLoggerFactory.get_logger("schema")
        assert logger.level == logging.WARNING

    def test_configure_component_levels(self):
        AvroSerdeLoggerFactory.configure(component_levels={"encoder": logging.DEBUG})
        assert AvroSerdeLoggerFactory.get_logger("encoder").level == logging.DEBUG

    def test_silent_by_default(self):
        root = logging.getLogger(AVROSERDE_ROOT_LOGGER)
        assert any(isinstance(h, logging.NullHandler) for h in root.handlers)

    def test_disable_and_enable(self):
        AvroSerdeLoggerFactory.configure()
        AvroSerdeLoggerFactory.disable()
        assert logging.getLogger(AVROSERDE_ROOT_LOGGER).disabled is True
        AvroSerdeLoggerFactory.enable()
        assert logging.getLogger(AVROSERDE_ROOT_LOGGER).disabled is False


class TestModuleFunctions:
    """Tests for module-level functions."""

    def test_get_logger(self):
        logger = get_logger("encoder")
        assert logger.name == f"{AVROSERDE_ROOT_LOGGER}.encoder"

    def test_get_logger_empty(self):
        assert get_logger().name == AVROSERDE_ROOT_LOGGER

    def test_configure_logging(self):
        assert configure_logging(level=logging.INFO) is not None

    def test_set_level_function(self):
        configure_logging()
        set_level(logging.ERROR, "config")
        assert get_logger("config").level == logging.ERROR

    def test_loggers_are_hierarchical(self):
        parent = get_logger()
        child = get_logger("decoder")
        assert child.parent is parent or child.parent.name == parent.name


class TestLibraryLogging:
    """Tests for messages logged by the codec."""

    def test_dropped_key_is_logged(self, caplog):
        schema = parse_schema({
            "type": "record",
            "name": "Point",
            "fields": [{"name": "x", "type": "int"}],
        })
        encoder = AvroSerdeEncoder(BytesSink(), schema=schema)
        with caplog.at_level(logging.DEBUG, logger=AVROSERDE_ROOT_LOGGER):
            encoder.encode_key("x")
            encoder.encode_int(1)
            encoder.encode_key("y")
            encoder.encode_int(2)
            encoder.finish_structure()
        assert any("Key 'y'" in record.getMessage() for record in caplog.records)
