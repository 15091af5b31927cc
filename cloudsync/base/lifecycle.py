"""Generic lifecycle controller.

One controller class serves every resource kind: behaviour comes from the
resource's :class:`~cloudsync.base.fields.ResourceSchema` and the
:class:`~cloudsync.base.provider.ProviderClient` it is handed.
"""

from __future__ import annotations

import enum
import threading
from typing import Any, Callable, Iterable

from cloudsync.base.adapter import SyncAdapter
from cloudsync.base.config import PollingPolicy, RetryPolicy
from cloudsync.base.exceptions import (
    ImmutableFieldError,
    ProviderError,
    ResourceNotFoundError,
    ValidationError,
)
from cloudsync.base.fields import Mutability
from cloudsync.base.logger import resource_log
from cloudsync.base.provider import Operation, ProviderClient, RemoteModel
from cloudsync.base.resource import ResourceConfig
from cloudsync.base.retry import call_with_retry
from cloudsync.base.waiter import OperationWaiter


class LifecycleState(enum.Enum):
    ABSENT = "absent"
    PENDING_CREATE = "pending_create"
    PRESENT = "present"
    PENDING_UPDATE = "pending_update"
    PENDING_DELETE = "pending_delete"


class LifecycleController:
    """Drives refresh / create / update / delete for one resource.

    The host guarantees at most one lifecycle call in flight per resource,
    so a controller is never used from two threads at once.

    Attributes:
        config: The declared (and, after refresh, observed) resource config.
        provider: Capability set for the resource's collection.
        state: Last known lifecycle state.
        waiter: Polls async provider operations.
        log: Structured logger bound to the provider and resource kind.
    """

    def __init__(
        self,
        config: ResourceConfig,
        provider: ProviderClient,
        *,
        polling: PollingPolicy | None = None,
        retry_policy: RetryPolicy | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.adapter = SyncAdapter(config, project=provider.project)
        self.retry_policy = retry_policy or RetryPolicy()
        self.waiter = OperationWaiter(polling, cancel_event)
        self.state = LifecycleState.ABSENT
        self.log = resource_log(provider.provider_name, config.kind)

    @property
    def kind(self) -> str:
        return self.config.kind

    def primary_key(self) -> str:
        return self.config.primary_key()

    def cancel(self) -> None:
        """Stop any in-progress operation wait; the remote operation keeps running.

        The controller stays cancelled: every later call that has to wait on
        an operation raises :class:`~cloudsync.base.exceptions.Cancelled`
        until :meth:`resume` is called.
        """
        self.waiter.cancel_event.set()

    def resume(self) -> None:
        """Clear a previous :meth:`cancel` so the controller can be used again."""
        self.waiter.cancel_event.clear()

    # --- Lifecycle ---

    def refresh(self) -> bool:
        """Re-read the live entity into the config.

        Returns:
            False if the entity no longer exists (state becomes ``ABSENT``).
        """
        try:
            remote = self._call(self.provider.get, self.primary_key())
        except ResourceNotFoundError:
            self._log("Resource not found during refresh", "refresh")
            self.state = LifecycleState.ABSENT
            return False
        self.adapter.copy_from(remote)
        self.state = LifecycleState.PRESENT
        return True

    def create(self) -> RemoteModel:
        """Create the remote entity and populate output fields from it.

        Returns:
            The entity as fetched after the create operation finished.

        Raises:
            ValidationError: Before any provider call, if the config is incomplete.
            ProviderError: If the provider rejects the request or the operation fails.
            OperationTimeoutError: If the operation outlives the polling budget.
        """
        body = self.adapter.copy_to(for_create=True)
        self.state = LifecycleState.PENDING_CREATE
        self._log("Creating resource", "create")
        try:
            self._wait(self._call(self.provider.insert, body))
        except ProviderError:
            self.state = LifecycleState.ABSENT
            raise

        remote = self._call(self.provider.get, self.primary_key())
        self.adapter.copy_from(remote)
        self.state = LifecycleState.PRESENT
        self._log("Created resource", "create")
        return remote

    def update(self, current: ResourceConfig, changed_fields: Iterable[str]) -> None:
        """Apply the changed fields computed by the host's diff.

        Fields with a provider setter are sent one at a time; all other
        updatable fields go in a single patch. A changed field that is now
        unset is sent as an explicit empty value so the live value is cleared.

        Args:
            current: The live config the diff was computed against.
            changed_fields: Names of fields that differ from live state.

        Raises:
            ImmutableFieldError: If any changed field is create-only. No
                provider call is made in that case.
        """
        schema = self.config.schema
        changed_fields = list(changed_fields)
        unknown = [name for name in changed_fields if not schema.has_field(name)]
        if unknown:
            raise ValidationError([f"'{name}' is not a field of {self.kind}" for name in unknown])

        changed = [
            schema.spec(name)
            for name in changed_fields
            if schema.spec(name).mutability is not Mutability.OUTPUT
        ]
        immutable = [spec.name for spec in changed if spec.mutability is Mutability.IMMUTABLE]
        if immutable:
            raise ImmutableFieldError(self.kind, immutable)
        if not changed:
            return

        resource_id = current.primary_key() or self.primary_key()
        self.state = LifecycleState.PENDING_UPDATE
        self._log(f"Updating {', '.join(sorted(s.name for s in changed))}", "update")

        patched = [spec.name for spec in changed if spec.setter is None]
        for spec in changed:
            if spec.setter is None:
                continue
            body = self.adapter.copy_to(fields=[spec.name], clear_unset=True)
            self._wait(self._call(self.provider.update_field, spec.setter, resource_id, body))
        if patched:
            body = self.adapter.copy_to(fields=patched, clear_unset=True)
            self._wait(self._call(self.provider.patch, resource_id, body))

        self.refresh()

    def delete(self) -> None:
        """Delete the remote entity; an already-absent entity counts as success."""
        self.state = LifecycleState.PENDING_DELETE
        self._log("Deleting resource", "delete")
        try:
            self._wait(self._call(self.provider.delete, self.primary_key()))
        except ResourceNotFoundError:
            self._log("Resource already absent", "delete")
        except ProviderError as e:
            if e.code != 404:
                raise
            self._log("Resource already absent", "delete")
        self.state = LifecycleState.ABSENT

    # --- Helpers ---

    def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return call_with_retry(self.retry_policy, fn, *args)

    def _wait(self, operation: Operation) -> Operation:
        return self.waiter.wait(
            lambda op: self._call(self.provider.get_operation, op), operation
        )

    def _log(self, message: str, operation: str) -> None:
        self.log.info(
            message,
            operation=operation,
            state=self.state.value,
            resource_id=self.primary_key(),
        )
