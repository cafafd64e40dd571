"""Logging for avroserde.

Every module logs through a component logger below the ``avroserde``
logger: ``avroserde.encoder``, ``avroserde.decoder``, ``avroserde.schema``
and ``avroserde.config``. The codec only logs at DEBUG (structures opened
and finished, dropped keys, registrations) and WARNING (compatibility
switches in use), so a library user sees nothing until logging is set up,
either with :func:`configure_logging` or with the application's own
``logging`` configuration.

Example:
    >>> import logging
    >>> from avroserde.logging import configure_logging, set_level
    >>> configure_logging(level=logging.WARNING)
    >>> set_level(logging.DEBUG, "decoder")
"""

import logging
from typing import Dict, Optional


AVROSERDE_ROOT_LOGGER = "avroserde"

COMPONENTS = ("encoder", "decoder", "schema", "config")

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

logging.getLogger(AVROSERDE_ROOT_LOGGER).addHandler(logging.NullHandler())


class AvroSerdeLoggerFactory:
    """Hands out avroserde component loggers and applies levels to them."""

    _configured: bool = False

    @classmethod
    def get_logger(cls, name: str = "") -> logging.Logger:
        """Get the logger of a component, or the ``avroserde`` logger.

        Args:
            name: Component name such as ``"encoder"``. Nested names like
                ``"decoder.skip"`` are allowed.
        """
        if not name:
            return logging.getLogger(AVROSERDE_ROOT_LOGGER)
        return logging.getLogger(f"{AVROSERDE_ROOT_LOGGER}.{name}")

    @classmethod
    def configure(
        cls,
        level: int = logging.INFO,
        format_string: str = DEFAULT_FORMAT,
        handler: Optional[logging.Handler] = None,
        component_levels: Optional[Dict[str, int]] = None,
    ) -> logging.Logger:
        """Attach an output handler to the ``avroserde`` logger.

        A handler is only added the first time; later calls just adjust
        levels.

        Args:
            level: Level of the ``avroserde`` logger.
            format_string: Format of the added handler.
            handler: Handler to add. Defaults to a stderr ``StreamHandler``.
            component_levels: Per-component overrides, for instance
                ``{"decoder": logging.DEBUG}``.

        Returns:
            The ``avroserde`` logger.
        """
        root = cls.get_logger()
        root.setLevel(level)

        has_output = any(not isinstance(h, logging.NullHandler) for h in root.handlers)
        if not has_output:
            if handler is None:
                handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(format_string))
            root.addHandler(handler)

        for component, component_level in (component_levels or {}).items():
            cls.set_level(component_level, component)

        cls._configured = True
        return root

    @classmethod
    def set_level(cls, level: int, component: str = "") -> None:
        cls.get_logger(component).setLevel(level)

    @classmethod
    def disable(cls) -> None:
        """Silence avroserde entirely, whatever the configured levels."""
        cls.get_logger().disabled = True

    @classmethod
    def enable(cls) -> None:
        cls.get_logger().disabled = False

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured


def get_logger(name: str = "") -> logging.Logger:
    """Get an avroserde component logger; see :data:`COMPONENTS`."""
    return AvroSerdeLoggerFactory.get_logger(name)


def configure_logging(
    level: int = logging.INFO,
    format_string: str = DEFAULT_FORMAT,
    handler: Optional[logging.Handler] = None,
    component_levels: Optional[Dict[str, int]] = None,
) -> logging.Logger:
    """Send avroserde log records to a handler.

    See :meth:`AvroSerdeLoggerFactory.configure`.
    """
    return AvroSerdeLoggerFactory.configure(level, format_string, handler, component_levels)


def set_level(level: int, component: str = "") -> None:
    """Set the level of one component, or of all of avroserde.

    Args:
        level: A ``logging`` level.
        component: One of :data:`COMPONENTS`, or empty for the
            ``avroserde`` logger itself.
    """
    AvroSerdeLoggerFactory.set_level(level, component)
