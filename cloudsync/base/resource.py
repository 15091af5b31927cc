"""User-declared resource configuration."""

from __future__ import annotations

from typing import Any, Iterator, Mapping

from cloudsync.base.fields import FieldKind, FieldSpec, ResourceSchema


class ResourceConfig:
    """Typed field values for one resource, described by a :class:`ResourceSchema`.

    Assignment coerces values to the field's declared kind: string sets
    deduplicate, nested dicts become nested configs. Unset fields read back
    as the kind's neutral default (``None``, empty set, empty list, empty dict).

    Attributes:
        schema: FieldMapping table for this resource kind.
    """

    def __init__(self, schema: ResourceSchema, values: Mapping[str, Any] | None = None) -> None:
        self.schema = schema
        self._values: dict[str, Any] = {}
        for name, value in (values or {}).items():
            self.set(name, value)

    @property
    def kind(self) -> str:
        return self.schema.kind

    # --- Field access ---

    def get(self, name: str) -> Any:
        spec = self.schema.spec(name)
        if name in self._values:
            return self._values[name]
        return spec.empty()

    def set(self, name: str, value: Any) -> None:
        """Assign a field, or unset it when *value* is ``None``."""
        spec = self.schema.spec(name)
        if value is None:
            self._values.pop(name, None)
            return
        self._values[name] = _coerce(spec, value)

    def unset(self, name: str) -> None:
        self.set(name, None)

    def is_set(self, name: str) -> bool:
        """True when the field holds a value; empty collections count as unset."""
        if name not in self._values:
            return False
        value = self._values[name]
        if self.schema.spec(name).kind.is_collection:
            return len(value) > 0
        return True

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __iter__(self) -> Iterator[str]:
        return (spec.name for spec in self.schema.fields if self.is_set(spec.name))

    # --- Identity ---

    def primary_key(self) -> str:
        """Stable identity used by the host for diffing and state storage."""
        parts = [self.get(name) for name in self.schema.identity]
        return "/".join("" if part is None else str(part) for part in parts)

    # --- Comparison ---

    def diff(self, other: ResourceConfig) -> set[str]:
        """Names of non-output fields whose values differ from *other*."""
        if other.schema.kind != self.schema.kind:
            raise ValueError(f"Cannot diff {self.kind} against {other.kind}")
        return {
            spec.name
            for spec in self.schema.fields
            if not spec.is_output and _plain(self.get(spec.name)) != _plain(other.get(spec.name))
        }

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view of every set field (nested configs become dicts)."""
        return {name: _plain(self.get(name)) for name in self}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceConfig):
            return NotImplemented
        return self.schema.kind == other.schema.kind and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"ResourceConfig({self.kind!r}, {self.to_dict()!r})"


def _coerce(spec: FieldSpec, value: Any) -> Any:
    kind = spec.kind
    if kind is FieldKind.STRING_SET:
        value = {str(v) for v in _as_iterable(spec, value)}
    elif kind is FieldKind.STRING_LIST:
        value = [str(v) for v in _as_iterable(spec, value)]
    elif kind is FieldKind.MAPPING:
        if not isinstance(value, Mapping):
            raise TypeError(f"Field '{spec.name}' expects a mapping, got {type(value).__name__}")
        value = {str(k): str(v) for k, v in value.items()}
    elif kind is FieldKind.NESTED:
        value = _nested(spec, value)
    elif kind is FieldKind.NESTED_LIST:
        value = [_nested(spec, item) for item in _as_iterable(spec, value)]
    elif kind is FieldKind.INTEGER:
        if isinstance(value, bool):
            raise TypeError(f"Field '{spec.name}' expects an integer, got bool")
        value = int(value)
    elif kind is FieldKind.BOOLEAN:
        if not isinstance(value, bool):
            raise TypeError(f"Field '{spec.name}' expects a boolean, got {type(value).__name__}")
    else:
        value = str(value)

    if spec.normalize is not None:
        value = spec.normalize(value)
    return value


def _as_iterable(spec: FieldSpec, value: Any) -> Any:
    if isinstance(value, (str, bytes, Mapping)):
        raise TypeError(f"Field '{spec.name}' expects a collection, got {type(value).__name__}")
    return value


def _nested(spec: FieldSpec, value: Any) -> ResourceConfig:
    assert spec.schema is not None
    if isinstance(value, ResourceConfig):
        if value.schema.kind != spec.schema.kind:
            raise TypeError(f"Field '{spec.name}' expects {spec.schema.kind}, got {value.kind}")
        return value
    return ResourceConfig(spec.schema, value)


def _plain(value: Any) -> Any:
    if isinstance(value, ResourceConfig):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, set):
        return sorted(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value
