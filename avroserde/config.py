"""avroserde configuration."""

import os
from typing import Any, Dict

import yaml

from avroserde.exceptions import ConfigurationException
from avroserde.logging import get_logger


_logger = get_logger("config")

DEFAULT_MAX_BYTES_LENGTH = 64 * 1024 * 1024
DEFAULT_MAX_COLLECTION_LENGTH = 10_000_000

CONFIG_ROOT_KEY = "avro_serde"


class SerdeConfig:
    """Settings shared by encoders and decoders.

    Args:
        max_bytes_length: Largest string or bytes payload, in bytes, that a
            decoder accepts before treating the length prefix as corrupt.
        max_collection_length: Largest item count a single array or map
            block may declare.
        array_block_size: Maximum number of items written per array or map
            block. 0 writes every item in a single block.
        write_block_byte_size: Write blocks as a negative item count followed
            by the block size in bytes, so readers can skip whole blocks.
        null_string_as_empty: Encode ``None`` strings as the empty string
            instead of treating them as Avro ``null``. Only for peers that
            depend on that legacy behaviour.
    """

    def __init__(
        self,
        max_bytes_length: int = DEFAULT_MAX_BYTES_LENGTH,
        max_collection_length: int = DEFAULT_MAX_COLLECTION_LENGTH,
        array_block_size: int = 0,
        write_block_byte_size: bool = False,
        null_string_as_empty: bool = False,
    ):
        self._max_bytes_length = max_bytes_length
        self._max_collection_length = max_collection_length
        self._array_block_size = array_block_size
        self._write_block_byte_size = write_block_byte_size
        self._null_string_as_empty = null_string_as_empty
        self._validate()

    def _validate(self) -> None:
        for name in ("max_bytes_length", "max_collection_length"):
            value = getattr(self, f"_{name}")
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationException(f"{name} must be a positive integer")
        block_size = self._array_block_size
        if isinstance(block_size, bool) or not isinstance(block_size, int) or block_size < 0:
            raise ConfigurationException("array_block_size must be >= 0")
        for name in ("write_block_byte_size", "null_string_as_empty"):
            if not isinstance(getattr(self, f"_{name}"), bool):
                raise ConfigurationException(f"{name} must be true or false")

    @property
    def max_bytes_length(self) -> int:
        """Get the largest accepted string or bytes payload."""
        return self._max_bytes_length

    @max_bytes_length.setter
    def max_bytes_length(self, value: int) -> None:
        self._max_bytes_length = value
        self._validate()

    @property
    def max_collection_length(self) -> int:
        """Get the largest accepted block item count."""
        return self._max_collection_length

    @max_collection_length.setter
    def max_collection_length(self, value: int) -> None:
        self._max_collection_length = value
        self._validate()

    @property
    def array_block_size(self) -> int:
        """Get the maximum number of items per written block."""
        return self._array_block_size

    @array_block_size.setter
    def array_block_size(self, value: int) -> None:
        self._array_block_size = value
        self._validate()

    @property
    def write_block_byte_size(self) -> bool:
        """Get whether blocks are written with their byte size."""
        return self._write_block_byte_size

    @write_block_byte_size.setter
    def write_block_byte_size(self, value: bool) -> None:
        self._write_block_byte_size = value
        self._validate()

    @property
    def null_string_as_empty(self) -> bool:
        """Get whether ``None`` strings are written as empty strings."""
        return self._null_string_as_empty

    @null_string_as_empty.setter
    def null_string_as_empty(self, value: bool) -> None:
        self._null_string_as_empty = value
        self._validate()

    def to_dict(self) -> Dict[str, Any]:
        """Return the settings as a plain dictionary."""
        return {
            "max_bytes_length": self._max_bytes_length,
            "max_collection_length": self._max_collection_length,
            "array_block_size": self._array_block_size,
            "write_block_byte_size": self._write_block_byte_size,
            "null_string_as_empty": self._null_string_as_empty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SerdeConfig":
        """Create SerdeConfig from a dictionary.

        Raises:
            ConfigurationException: If the dictionary has unknown keys or
                invalid values.
        """
        known = {
            "max_bytes_length",
            "max_collection_length",
            "array_block_size",
            "write_block_byte_size",
            "null_string_as_empty",
        }
        if not isinstance(data, dict):
            raise ConfigurationException(
                f"Configuration must be a mapping, got {type(data).__name__}"
            )
        unknown = set(data) - known
        if unknown:
            raise ConfigurationException(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}"
            )
        return cls(
            max_bytes_length=data.get("max_bytes_length", DEFAULT_MAX_BYTES_LENGTH),
            max_collection_length=data.get(
                "max_collection_length", DEFAULT_MAX_COLLECTION_LENGTH
            ),
            array_block_size=data.get("array_block_size", 0),
            write_block_byte_size=data.get("write_block_byte_size", False),
            null_string_as_empty=data.get("null_string_as_empty", False),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "SerdeConfig":
        """Load configuration from a YAML file.

        The settings may sit at the top level or under an ``avro_serde`` key.

        Args:
            yaml_path: Path to the YAML configuration file.

        Returns:
            SerdeConfig instance.

        Raises:
            ConfigurationException: If the file cannot be read or parsed.
        """
        if not os.path.exists(yaml_path):
            raise ConfigurationException(f"Configuration file not found: {yaml_path}")

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}", cause=e)
        except IOError as e:
            raise ConfigurationException(f"Failed to read configuration file: {e}", cause=e)

        _logger.debug("Loaded configuration from %s", yaml_path)
        return cls._from_yaml_data(data)

    @classmethod
    def from_yaml_string(cls, yaml_content: str) -> "SerdeConfig":
        """Load configuration from a YAML string.

        Raises:
            ConfigurationException: If the YAML cannot be parsed.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}", cause=e)

        return cls._from_yaml_data(data)

    @classmethod
    def _from_yaml_data(cls, data: Any) -> "SerdeConfig":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationException("Configuration root must be a mapping")
        if CONFIG_ROOT_KEY in data:
            data = data[CONFIG_ROOT_KEY] or {}
        return cls.from_dict(data)

    def __repr__(self) -> str:
        return (
            f"SerdeConfig(max_bytes_length={self._max_bytes_length}, "
            f"max_collection_length={self._max_collection_length}, "
            f"array_block_size={self._array_block_size}, "
            f"write_block_byte_size={self._write_block_byte_size}, "
            f"null_string_as_empty={self._null_string_as_empty})"
        )
