"""Bidirectional mapping between a ResourceConfig and the provider wire model.

The adapter never performs I/O; it only walks the schema's field table.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from cloudsync.base.exceptions import ValidationError
from cloudsync.base.fields import (
    FieldKind,
    FieldSpec,
    SyncContext,
    deep_merge,
    get_path,
    set_path,
)
from cloudsync.base.resource import ResourceConfig


class SyncAdapter:
    """Copies field values between a bound :class:`ResourceConfig` and a RemoteModel dict.

    Attributes:
        config: The resource config this adapter reads and mutates.
        project: Project ID handed to link transforms.
    """

    def __init__(self, config: ResourceConfig, project: str | None = None) -> None:
        self.config = config
        self.project = project

    @property
    def context(self) -> SyncContext:
        return SyncContext(project=self.project, config=self.config)

    # --- remote -> local ---

    def copy_from(self, remote: Mapping[str, Any] | None) -> ResourceConfig:
        """Overwrite every mapped field of the bound config from *remote*.

        Missing remote values leave the field unset; this never raises for
        absent optional data.
        """
        remote = remote or {}
        ctx = self.context
        for spec in self.config.schema.fields:
            if spec.remote is None:
                continue
            raw = get_path(remote, spec.remote)
            if raw is None:
                self.config.unset(spec.name)
                continue
            self.config.set(spec.name, self._local_value(spec, raw, ctx))
        return self.config

    def _local_value(self, spec: FieldSpec, raw: Any, ctx: SyncContext) -> Any:
        if spec.kind is FieldKind.NESTED:
            return self._nested_from(spec, raw)
        if spec.kind is FieldKind.NESTED_LIST:
            return [self._nested_from(spec, item) for item in raw or []]
        value = spec.transform.from_remote(raw, ctx)
        if value is None:
            return None
        if spec.kind in (FieldKind.STRING_SET, FieldKind.STRING_LIST) and isinstance(value, str):
            value = [value]
        return value

    def _nested_from(self, spec: FieldSpec, raw: Any) -> ResourceConfig:
        assert spec.schema is not None
        child = ResourceConfig(spec.schema)
        SyncAdapter(child, self.project).copy_from(raw if isinstance(raw, Mapping) else {})
        return child

    # --- local -> remote ---

    def copy_to(
        self,
        *,
        for_create: bool = False,
        fields: Iterable[str] | None = None,
        clear_unset: bool = False,
    ) -> dict[str, Any]:
        """Build the RemoteModel fragment for the bound config.

        Output fields and unset (or empty) fields are left out entirely so
        provider-side defaults are not overwritten.

        Args:
            for_create: Validate required fields and constraints first, and
                merge the schema's ``create_defaults`` under the result.
            fields: Restrict emission to these local field names.
            clear_unset: Instead of omitting an unset field, emit the remote
                form of its empty value (``[]``, ``{}`` or ``None``) so an
                update clears it upstream.

        Returns:
            A dict in the provider's field naming.

        Raises:
            ValidationError: Only when *for_create* is set and the config is invalid.
        """
        if for_create:
            errors = self.validate()
            if errors:
                raise ValidationError(errors)

        selected = set(fields) if fields is not None else None
        body: dict[str, Any] = {}
        if for_create:
            deep_merge(body, self.config.schema.create_defaults)

        ctx = self.context
        for spec in self.config.schema.fields:
            if spec.is_output or spec.remote is None:
                continue
            if selected is not None and spec.name not in selected:
                continue
            if not self.config.is_set(spec.name):
                if clear_unset:
                    set_path(body, spec.remote, self._cleared_value(spec, ctx))
                continue
            value = self._remote_value(spec, self.config.get(spec.name), ctx, for_create)
            existing = get_path(body, spec.remote)
            if isinstance(existing, dict) and isinstance(value, Mapping):
                deep_merge(existing, value)
            else:
                set_path(body, spec.remote, value)
        return body

    def _cleared_value(self, spec: FieldSpec, ctx: SyncContext) -> Any:
        empty = spec.empty()
        if empty is None:
            return None
        return self._remote_value(spec, empty, ctx, False)

    def _remote_value(self, spec: FieldSpec, value: Any, ctx: SyncContext, for_create: bool) -> Any:
        if spec.kind is FieldKind.NESTED:
            return SyncAdapter(value, self.project).copy_to(for_create=for_create)
        if spec.kind is FieldKind.NESTED_LIST:
            return [SyncAdapter(item, self.project).copy_to(for_create=for_create) for item in value]
        if spec.kind is FieldKind.STRING_SET:
            value = sorted(value)
        elif spec.kind is FieldKind.STRING_LIST:
            value = list(value)
        elif spec.kind is FieldKind.MAPPING:
            value = dict(value)
        return spec.transform.to_remote(value, ctx)

    # --- validation ---

    def validate(self, prefix: str = "") -> list[str]:
        """Collect create-time errors for the bound config and its nested configs."""
        errors: list[str] = []
        config = self.config
        for spec in config.schema.fields:
            label = f"{prefix}{spec.name}"
            if not config.is_set(spec.name):
                if spec.required:
                    errors.append(f"'{label}' is required")
                continue
            value = config.get(spec.name)
            if spec.choices and value not in spec.choices:
                errors.append(f"'{label}' must be one of {', '.join(spec.choices)}; got '{value}'")
            if spec.minimum is not None and value < spec.minimum:
                errors.append(f"'{label}' must be at least {spec.minimum}; got {value}")
            if spec.maximum is not None and value > spec.maximum:
                errors.append(f"'{label}' must be at most {spec.maximum}; got {value}")
            if spec.kind is FieldKind.NESTED:
                errors.extend(SyncAdapter(value, self.project).validate(f"{label}."))
            elif spec.kind is FieldKind.NESTED_LIST:
                for i, item in enumerate(value):
                    errors.extend(SyncAdapter(item, self.project).validate(f"{label}[{i}]."))
        for validator in config.schema.validators:
            errors.extend(f"{prefix.rstrip('.')}: {msg}" if prefix else msg for msg in validator(config))
        return errors
