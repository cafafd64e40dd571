"""Avro schema model, description parser and schema registry."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from avroserde.exceptions import SchemaException, SchemaNotFoundException
from avroserde.logging import get_logger
from avroserde.serialization.api import SchemaProvider


_logger = get_logger("schema")


class Kind(Enum):
    """Avro schema kinds. Values are the Avro type names."""

    NULL = "null"
    BOOLEAN = "boolean"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    BYTES = "bytes"
    STRING = "string"
    RECORD = "record"
    ENUM = "enum"
    ARRAY = "array"
    MAP = "map"
    UNION = "union"
    FIXED = "fixed"


class LogicalType(Enum):
    """Logical types understood by the encoder and decoder."""

    DECIMAL = "decimal"
    BIG_DECIMAL = "big-decimal"
    DATE = "date"
    TIME_MILLIS = "time-millis"
    TIMESTAMP_MILLIS = "timestamp-millis"
    DURATION = "duration"
    UUID = "uuid"


PRIMITIVE_KINDS = frozenset({
    Kind.NULL,
    Kind.BOOLEAN,
    Kind.INT,
    Kind.LONG,
    Kind.FLOAT,
    Kind.DOUBLE,
    Kind.BYTES,
    Kind.STRING,
})

NAMED_KINDS = frozenset({Kind.RECORD, Kind.ENUM, Kind.FIXED})

PRIMITIVE_TYPE_MAP = {kind.value: kind for kind in PRIMITIVE_KINDS}

LOGICAL_TYPE_MAP = {logical.value: logical for logical in LogicalType}

# Kinds each logical type may annotate.
LOGICAL_TYPE_KINDS: Dict[LogicalType, frozenset] = {
    LogicalType.DECIMAL: frozenset({Kind.BYTES, Kind.FIXED}),
    LogicalType.BIG_DECIMAL: frozenset({Kind.BYTES}),
    LogicalType.DATE: frozenset({Kind.INT}),
    LogicalType.TIME_MILLIS: frozenset({Kind.INT}),
    LogicalType.TIMESTAMP_MILLIS: frozenset({Kind.LONG}),
    LogicalType.DURATION: frozenset({Kind.FIXED}),
    LogicalType.UUID: frozenset({Kind.STRING, Kind.FIXED}),
}


@dataclass(frozen=True)
class Field:
    """A named, typed slot of a record."""

    name: str
    type: "SchemaNode"
    aliases: Tuple[str, ...] = ()
    doc: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise SchemaException("Field name must not be empty")
        if not isinstance(self.type, SchemaNode):
            raise SchemaException(f"Field '{self.name}' has no schema node")
        object.__setattr__(self, "aliases", tuple(self.aliases))


@dataclass(frozen=True, repr=False)
class SchemaNode:
    """An immutable Avro schema node.

    Only the attributes relevant to ``kind`` are set: ``fields`` for records,
    ``items`` for arrays, ``values`` for maps, ``symbols`` for enums, ``size``
    for fixed and ``types`` for unions. Record field order is the wire order.

    ``native_type`` is a hint about the value type a mapper uses (``"byte"``,
    ``"short"`` or ``"char"`` for ints) used when decoding arbitrary values.
    """

    kind: Kind
    name: Optional[str] = None
    namespace: Optional[str] = None
    logical_type: Optional[LogicalType] = None
    native_type: Optional[str] = None
    fields: Tuple[Field, ...] = ()
    items: Optional["SchemaNode"] = None
    values: Optional["SchemaNode"] = None
    symbols: Tuple[str, ...] = ()
    size: Optional[int] = None
    types: Tuple["SchemaNode", ...] = ()
    precision: Optional[int] = None
    scale: Optional[int] = None
    doc: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    _field_index: Dict[str, Field] = field(
        default=None, init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "symbols", tuple(self.symbols))
        object.__setattr__(self, "types", tuple(self.types))
        object.__setattr__(self, "aliases", tuple(self.aliases))
        self._validate()
        object.__setattr__(self, "_field_index", {f.name: f for f in self.fields})

    def _validate(self) -> None:
        kind = self.kind
        if kind in NAMED_KINDS and not self.name:
            raise SchemaException(f"A {kind.value} schema needs a name")

        if kind is Kind.RECORD:
            seen: Set[str] = set()
            for f in self.fields:
                if f.name in seen:
                    raise SchemaException(f"Duplicate field '{f.name}' in record {self.name}")
                seen.add(f.name)
        elif kind is Kind.ENUM:
            if not self.symbols:
                raise SchemaException(f"Enum {self.name} has no symbols")
            if len(set(self.symbols)) != len(self.symbols):
                raise SchemaException(f"Enum {self.name} has duplicate symbols")
        elif kind is Kind.FIXED:
            if not isinstance(self.size, int) or self.size < 0:
                raise SchemaException(f"Fixed {self.name} needs a non-negative size")
        elif kind is Kind.ARRAY:
            if self.items is None:
                raise SchemaException("Array schema needs an items schema")
        elif kind is Kind.MAP:
            if self.values is None:
                raise SchemaException("Map schema needs a values schema")
        elif kind is Kind.UNION:
            self._validate_union()

        if self.logical_type is not None:
            self._validate_logical_type()

    def _validate_union(self) -> None:
        if not self.types:
            raise SchemaException("Union needs at least one branch")
        seen: Set[str] = set()
        for branch in self.types:
            if branch.kind is Kind.UNION:
                raise SchemaException("Unions may not directly contain other unions")
            key = branch.full_name if branch.kind in NAMED_KINDS else branch.kind.value
            if key in seen:
                raise SchemaException(f"Union contains '{key}' more than once")
            seen.add(key)

    def _validate_logical_type(self) -> None:
        logical = self.logical_type
        if self.kind not in LOGICAL_TYPE_KINDS[logical]:
            raise SchemaException(
                f"Logical type {logical.value} cannot annotate {self.kind.value}"
            )
        if logical is LogicalType.DURATION and self.size != 12:
            raise SchemaException("Logical type duration needs a fixed of size 12")
        if logical is LogicalType.UUID and self.kind is Kind.FIXED and self.size != 16:
            raise SchemaException("Logical type uuid needs a fixed of size 16")
        if logical is LogicalType.DECIMAL:
            scale = self.scale or 0
            if scale < 0:
                raise SchemaException("Decimal scale must not be negative")
            if self.precision is not None:
                if self.precision <= 0:
                    raise SchemaException("Decimal precision must be positive")
                if scale > self.precision:
                    raise SchemaException("Decimal scale must not exceed its precision")

    @property
    def full_name(self) -> Optional[str]:
        """Get the namespace-qualified name of a named schema."""
        if self.name is None:
            return None
        if self.namespace and "." not in self.name:
            return f"{self.namespace}.{self.name}"
        return self.name

    def get_field(self, name: str) -> Optional[Field]:
        """Get a record field by name."""
        return self._field_index.get(name)

    def field_names(self) -> List[str]:
        """Get the record field names in wire order."""
        return [f.name for f in self.fields]

    @property
    def is_nullable(self) -> bool:
        """Check whether ``null`` is a legal value."""
        if self.kind is Kind.NULL:
            return True
        return self.kind is Kind.UNION and any(t.kind is Kind.NULL for t in self.types)

    def describe(self) -> str:
        """Get a short human readable form such as ``array<string>``."""
        if self.kind in NAMED_KINDS:
            text = f"{self.kind.value} {self.full_name}"
        elif self.kind is Kind.ARRAY:
            text = f"array<{self.items.describe()}>"
        elif self.kind is Kind.MAP:
            text = f"map<{self.values.describe()}>"
        elif self.kind is Kind.UNION:
            text = "union[" + ", ".join(t.describe() for t in self.types) + "]"
        else:
            text = self.kind.value
        if self.logical_type is not None:
            text += f" ({self.logical_type.value})"
        return text

    def __repr__(self) -> str:
        return f"SchemaNode({self.describe()})"

    @classmethod
    def primitive(
        cls,
        kind: Union[Kind, str],
        logical_type: Optional[LogicalType] = None,
        native_type: Optional[str] = None,
        precision: Optional[int] = None,
        scale: Optional[int] = None,
    ) -> "SchemaNode":
        if isinstance(kind, str):
            if kind not in PRIMITIVE_TYPE_MAP:
                raise SchemaException(f"Not a primitive type: {kind}")
            kind = PRIMITIVE_TYPE_MAP[kind]
        elif kind not in PRIMITIVE_KINDS:
            raise SchemaException(f"Not a primitive kind: {kind}")
        return cls(
            kind,
            logical_type=logical_type,
            native_type=native_type,
            precision=precision,
            scale=scale,
        )

    @classmethod
    def record(
        cls,
        name: str,
        fields: Sequence[Union[Field, Tuple[str, "SchemaNode"]]],
        namespace: Optional[str] = None,
        doc: Optional[str] = None,
        aliases: Sequence[str] = (),
    ) -> "SchemaNode":
        """Create a record schema.

        Args:
            name: Record name.
            fields: ``Field`` objects or ``(name, node)`` pairs, in wire order.
            namespace: Optional namespace.
            doc: Optional documentation.
            aliases: Alternative names.
        """
        built = tuple(f if isinstance(f, Field) else Field(f[0], f[1]) for f in fields)
        return cls(
            Kind.RECORD, name=name, namespace=namespace, fields=built, doc=doc, aliases=aliases
        )

    @classmethod
    def array(cls, items: "SchemaNode") -> "SchemaNode":
        return cls(Kind.ARRAY, items=items)

    @classmethod
    def map(cls, values: "SchemaNode") -> "SchemaNode":
        return cls(Kind.MAP, values=values)

    @classmethod
    def enum(cls, name: str, symbols: Sequence[str], namespace: Optional[str] = None) -> "SchemaNode":
        return cls(Kind.ENUM, name=name, namespace=namespace, symbols=tuple(symbols))

    @classmethod
    def fixed(
        cls,
        name: str,
        size: int,
        namespace: Optional[str] = None,
        logical_type: Optional[LogicalType] = None,
        precision: Optional[int] = None,
        scale: Optional[int] = None,
    ) -> "SchemaNode":
        return cls(
            Kind.FIXED,
            name=name,
            namespace=namespace,
            size=size,
            logical_type=logical_type,
            precision=precision,
            scale=scale,
        )

    @classmethod
    def union(cls, *types: "SchemaNode") -> "SchemaNode":
        return cls(Kind.UNION, types=types)


def parse_schema(
    description: Any, named_types: Optional[Dict[str, SchemaNode]] = None
) -> SchemaNode:
    """Build a schema node from an already-parsed Avro schema description.

    The description is what ``json.load`` produces from an Avro schema: a
    type name string, a list (union) or a dict. Named types defined earlier
    in the description may be referenced by name.

    Args:
        description: The parsed description.
        named_types: Named schemas, by full name, that references may
            resolve to. Types defined while parsing are added to it.

    Returns:
        The schema node.

    Raises:
        SchemaException: If the description is invalid or references an
            unknown type.
    """
    return _SchemaParser(named_types).parse(description, None)


class _SchemaParser:
    def __init__(self, named_types: Optional[Dict[str, SchemaNode]]):
        self._named = named_types if named_types is not None else {}
        self._in_progress: Set[str] = set()

    def parse(self, description: Any, namespace: Optional[str]) -> SchemaNode:
        if isinstance(description, SchemaNode):
            return description
        if isinstance(description, str):
            return self._parse_name(description, namespace)
        if isinstance(description, list):
            return SchemaNode.union(*(self.parse(t, namespace) for t in description))
        if isinstance(description, Mapping):
            return self._parse_mapping(description, namespace)
        raise SchemaException(f"Invalid schema description: {description!r}")

    def _parse_name(self, name: str, namespace: Optional[str]) -> SchemaNode:
        if name in PRIMITIVE_TYPE_MAP:
            return SchemaNode.primitive(name)
        candidates = [name]
        if namespace and "." not in name:
            candidates.insert(0, f"{namespace}.{name}")
        for candidate in candidates:
            if candidate in self._named:
                return self._named[candidate]
        if any(c in self._in_progress for c in candidates):
            raise SchemaException(f"Recursive reference to {name} is not supported")
        raise SchemaException(f"Unknown type: {name}")

    def _parse_mapping(self, description: Mapping, namespace: Optional[str]) -> SchemaNode:
        type_name = description.get("type")
        if type_name is None:
            raise SchemaException(f"Schema description has no type: {dict(description)!r}")
        if not isinstance(type_name, str):
            return self.parse(type_name, namespace)

        logical_type = self._logical_type(description)
        native_type = description.get("nativeType", description.get("javaClass"))

        if type_name in PRIMITIVE_TYPE_MAP:
            return SchemaNode.primitive(
                type_name,
                logical_type=logical_type,
                native_type=native_type,
                precision=description.get("precision"),
                scale=description.get("scale"),
            )
        if type_name in ("record", "error"):
            return self._parse_record(description, namespace)
        if type_name == "enum":
            name, namespace = self._name_of(description, namespace)
            node = SchemaNode(
                Kind.ENUM,
                name=name,
                namespace=namespace,
                symbols=tuple(description.get("symbols", ())),
                doc=description.get("doc"),
                aliases=tuple(description.get("aliases", ())),
            )
            return self._define(node)
        if type_name == "fixed":
            name, namespace = self._name_of(description, namespace)
            node = SchemaNode(
                Kind.FIXED,
                name=name,
                namespace=namespace,
                size=description.get("size"),
                logical_type=logical_type,
                precision=description.get("precision"),
                scale=description.get("scale"),
                aliases=tuple(description.get("aliases", ())),
            )
            return self._define(node)
        if type_name == "array":
            if "items" not in description:
                raise SchemaException("Array schema needs an items schema")
            return SchemaNode.array(self.parse(description["items"], namespace))
        if type_name == "map":
            if "values" not in description:
                raise SchemaException("Map schema needs a values schema")
            return SchemaNode.map(self.parse(description["values"], namespace))
        return self._parse_name(type_name, namespace)

    def _parse_record(self, description: Mapping, namespace: Optional[str]) -> SchemaNode:
        name, namespace = self._name_of(description, namespace)
        full_name = f"{namespace}.{name}" if namespace else name
        self._in_progress.add(full_name)
        try:
            fields = []
            for field_desc in description.get("fields", ()):
                if not isinstance(field_desc, Mapping) or not {"name", "type"} <= field_desc.keys():
                    raise SchemaException(f"Invalid field in record {full_name}: {field_desc!r}")
                fields.append(
                    Field(
                        field_desc["name"],
                        self.parse(field_desc["type"], namespace),
                        aliases=tuple(field_desc.get("aliases", ())),
                        doc=field_desc.get("doc"),
                    )
                )
        finally:
            self._in_progress.discard(full_name)
        node = SchemaNode(
            Kind.RECORD,
            name=name,
            namespace=namespace,
            fields=tuple(fields),
            doc=description.get("doc"),
            aliases=tuple(description.get("aliases", ())),
        )
        return self._define(node)

    @staticmethod
    def _name_of(description: Mapping, namespace: Optional[str]) -> Tuple[str, Optional[str]]:
        name = description.get("name")
        if not name:
            raise SchemaException(f"Named type '{description.get('type')}' needs a name")
        if "." in name:
            namespace, name = name.rsplit(".", 1)
        else:
            namespace = description.get("namespace", namespace) or None
        return name, namespace

    @staticmethod
    def _logical_type(description: Mapping) -> Optional[LogicalType]:
        value = description.get("logicalType")
        if value is None:
            return None
        logical = LOGICAL_TYPE_MAP.get(value)
        if logical is None:
            _logger.debug("Ignoring unknown logical type %s", value)
        return logical

    def _define(self, node: SchemaNode) -> SchemaNode:
        if node.full_name in self._named:
            raise SchemaException(f"Type {node.full_name} is defined more than once")
        self._named[node.full_name] = node
        return node


class SchemaService(SchemaProvider):
    """Registry of schemas keyed by class, class name or schema full name.

    Classes may also carry their schema in an ``__avro_schema__`` attribute,
    either as a :class:`SchemaNode` or as a parsed description; it is
    registered on first lookup.
    """

    def __init__(self):
        self._schemas: Dict[Any, SchemaNode] = {}

    def register(self, type_key: Any, schema: Any) -> SchemaNode:
        """Register a schema.

        Args:
            type_key: A class or a name.
            schema: A :class:`SchemaNode` or a parsed description.

        Returns:
            The registered schema node.
        """
        if not isinstance(schema, SchemaNode):
            schema = parse_schema(schema)
        self._schemas[type_key] = schema
        if isinstance(type_key, type):
            self._schemas.setdefault(type_key.__name__, schema)
        if schema.full_name is not None:
            self._schemas.setdefault(schema.full_name, schema)
        _logger.debug("Registered schema %s for %r", schema.describe(), type_key)
        return schema

    def get(self, type_key: Any) -> Optional[SchemaNode]:
        """Get a schema by key, or None."""
        schema = self._schemas.get(type_key)
        if schema is None and isinstance(type_key, type):
            declared = getattr(type_key, "__avro_schema__", None)
            if declared is not None:
                schema = self.register(type_key, declared)
        return schema

    def get_schema(self, type_key: Any) -> SchemaNode:
        schema = self.get(type_key)
        if schema is None:
            name = type_key.__name__ if isinstance(type_key, type) else type_key
            raise SchemaNotFoundException(f"No schema registered for {name}", type_key)
        return schema

    def find_schema(self, type_key: Any) -> Optional[SchemaNode]:
        return self.get(type_key)

    def has_schema(self, type_key: Any) -> bool:
        return self.get(type_key) is not None

    def all_schemas(self) -> List[SchemaNode]:
        """Get every distinct registered schema."""
        unique: List[SchemaNode] = []
        for schema in self._schemas.values():
            if not any(schema is s for s in unique):
                unique.append(schema)
        return unique

    def __len__(self) -> int:
        return len(self.all_schemas())
