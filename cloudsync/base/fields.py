"""Field mapping metadata.

A resource kind is described by a :class:`ResourceSchema`: a table of
:class:`FieldSpec` records, one per local field, naming the field's type,
its mutability, where it lives in the provider's wire model and how values
are transformed on the way in and out. Adding a resource kind means adding
a table, not a class.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping

if TYPE_CHECKING:
    from cloudsync.base.resource import ResourceConfig


class Mutability(enum.Enum):
    """How a field behaves once the remote entity exists."""

    IMMUTABLE = "immutable"  # create-only; changing it needs replacement
    UPDATABLE = "updatable"
    OUTPUT = "output"  # server-assigned, never sent upstream


class FieldKind(enum.Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    STRING_SET = "string_set"
    STRING_LIST = "string_list"
    MAPPING = "mapping"
    NESTED = "nested"
    NESTED_LIST = "nested_list"

    @property
    def is_collection(self) -> bool:
        return self in _COLLECTIONS


_COLLECTIONS = {
    FieldKind.STRING_SET,
    FieldKind.STRING_LIST,
    FieldKind.MAPPING,
    FieldKind.NESTED_LIST,
}


@dataclass(frozen=True)
class SyncContext:
    """What a transform may consult besides the value itself."""

    project: str | None = None
    config: ResourceConfig | None = None


# ── Transforms ────────────────────────────────────────────────────────
class Transform:
    """Identity conversion between a local value and its remote form."""

    def to_remote(self, value: Any, ctx: SyncContext) -> Any:
        return value

    def from_remote(self, value: Any, ctx: SyncContext) -> Any:
        return value


IDENTITY = Transform()


class LastSegment(Transform):
    """Remote holds a URL; locally only its last path segment is kept."""

    def from_remote(self, value: Any, ctx: SyncContext) -> Any:
        if not value:
            return None
        return str(value).rsplit("/", 1)[-1]


class ResourceLink(LastSegment):
    """Reference to another project-scoped resource by name.

    ``ResourceLink("global/networks")`` turns ``"default"`` into
    ``"projects/<project>/global/networks/default"``. Values that already
    look like a path are sent unchanged.
    """

    def __init__(self, collection: str) -> None:
        self.collection = collection

    def to_remote(self, value: Any, ctx: SyncContext) -> Any:
        if "/" in value:
            return value
        if ctx.project:
            return f"projects/{ctx.project}/{self.collection}/{value}"
        return f"{self.collection}/{value}"


class ZonalLink(LastSegment):
    """Reference to a per-zone collection, using the config's own ``zone`` field."""

    def __init__(self, collection: str, zone_field: str = "zone") -> None:
        self.collection = collection
        self.zone_field = zone_field

    def to_remote(self, value: Any, ctx: SyncContext) -> Any:
        if "/" in value:
            return value
        zone = ctx.config.get(self.zone_field) if ctx.config is not None else None
        if not zone:
            return value
        return f"zones/{zone}/{self.collection}/{value}"


class KeyValueItems(Transform):
    """Local ``{k: v}`` mapping stored remotely as ``[{"key": k, "value": v}]``."""

    def to_remote(self, value: Any, ctx: SyncContext) -> Any:
        return [{"key": k, "value": v} for k, v in sorted(value.items())]

    def from_remote(self, value: Any, ctx: SyncContext) -> Any:
        return {item["key"]: item.get("value", "") for item in value or [] if "key" in item}


# ── Specs ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class FieldSpec:
    """Metadata for one local field."""

    name: str
    kind: FieldKind = FieldKind.STRING
    mutability: Mutability = Mutability.IMMUTABLE
    remote: str | None = None
    transform: Transform = IDENTITY
    required: bool = False
    choices: tuple[str, ...] = ()
    minimum: int | None = None
    maximum: int | None = None
    normalize: Callable[[Any], Any] | None = None
    schema: ResourceSchema | None = None
    setter: str | None = None

    def __post_init__(self) -> None:
        if self.kind in (FieldKind.NESTED, FieldKind.NESTED_LIST) and self.schema is None:
            raise ValueError(f"Field '{self.name}' is nested but has no schema")
        if self.mutability is Mutability.OUTPUT and self.required:
            raise ValueError(f"Output field '{self.name}' cannot be required")

    @property
    def is_output(self) -> bool:
        return self.mutability is Mutability.OUTPUT

    def empty(self) -> Any:
        """The neutral default read back for an unset field."""
        if self.kind is FieldKind.STRING_SET:
            return set()
        if self.kind in (FieldKind.STRING_LIST, FieldKind.NESTED_LIST):
            return []
        if self.kind is FieldKind.MAPPING:
            return {}
        return None


@dataclass(frozen=True)
class ResourceSchema:
    """FieldMapping table for one resource kind.

    Attributes:
        kind: Resource type name (e.g. ``firewall``).
        fields: One :class:`FieldSpec` per local field.
        identity: Field names whose values, joined with ``/``, form the primary key.
        create_defaults: Constant body fragment merged under every create request.
        validators: Callables returning error messages for a config; run at create time.
    """

    kind: str
    fields: tuple[FieldSpec, ...]
    identity: tuple[str, ...] = ("name",)
    create_defaults: Mapping[str, Any] = field(default_factory=dict)
    validators: tuple[Callable[[ResourceConfig], list[str]], ...] = ()

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate field names in schema '{self.kind}'")
        missing = set(self.identity) - set(names)
        if missing:
            raise ValueError(f"Identity fields {sorted(missing)} not declared in '{self.kind}'")

    def spec(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.kind} has no field '{name}'")

    def has_field(self, name: str) -> bool:
        return any(spec.name == name for spec in self.fields)

    def mutability(self) -> dict[str, Mutability]:
        """Per-field mutability tags, for the host's diff classification."""
        return {spec.name: spec.mutability for spec in self.fields}

    def output_fields(self) -> list[str]:
        return [spec.name for spec in self.fields if spec.is_output]


# ── Remote paths ──────────────────────────────────────────────────────
def _segments(path: str) -> list[str | int]:
    return [int(p) if p.isdigit() else p for p in path.split(".")]


def get_path(data: Any, path: str) -> Any:
    """Read a dotted path from nested dicts/lists; ``None`` when any hop is absent."""
    current = data
    for seg in _segments(path):
        if isinstance(seg, int):
            if not isinstance(current, list) or seg >= len(current):
                return None
            current = current[seg]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(seg)
        if current is None:
            return None
    return current


def set_path(data: dict, path: str, value: Any) -> None:
    """Write *value* at a dotted path, creating intermediate dicts/lists."""
    segs = _segments(path)
    current: Any = data
    for seg, nxt in zip(segs, segs[1:]):
        container: Any = [] if isinstance(nxt, int) else {}
        if isinstance(seg, int):
            while len(current) <= seg:
                current.append(None)
            if current[seg] is None:
                current[seg] = container
            current = current[seg]
        else:
            current = current.setdefault(seg, container)
    last = segs[-1]
    if isinstance(last, int):
        while len(current) <= last:
            current.append(None)
    current[last] = value


def deep_merge(base: dict, overlay: Mapping[str, Any]) -> dict:
    """Merge *overlay* into *base* in place; dicts and index-aligned lists recurse."""
    for key, value in overlay.items():
        existing = base.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            deep_merge(existing, value)
        elif isinstance(existing, list) and isinstance(value, list):
            for i, item in enumerate(value):
                if i < len(existing) and isinstance(existing[i], dict) and isinstance(item, Mapping):
                    deep_merge(existing[i], item)
                elif i < len(existing):
                    existing[i] = _copy(item)
                else:
                    existing.append(_copy(item))
        else:
            base[key] = _copy(value)
    return base


def _copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value
