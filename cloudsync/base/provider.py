"""Provider client blueprint.

The lifecycle core talks to a cloud API only through this capability set.
Every method here is the single place network I/O happens.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping

# Remote entities and operation handles are plain dicts in the provider's
# REST field naming (e.g. ``selfLink``, ``IPProtocol``).
RemoteModel = dict[str, Any]
Operation = dict[str, Any]

DONE = "DONE"


@dataclass
class Page:
    """One page of a list call."""

    items: list[RemoteModel] = field(default_factory=list)
    next_page_token: str | None = None


class ProviderClient(ABC):
    """Abstract capability set for one resource collection.

    Implementations translate SDK failures to
    :class:`~cloudsync.base.exceptions.ProviderError` and raise
    :class:`~cloudsync.base.exceptions.ResourceNotFoundError` for missing entities.
    """

    #: Provider name used in log records.
    provider_name: str = "unknown"

    #: Project the collection lives in; handed to link transforms.
    project: str | None = None

    @abstractmethod
    def get(self, resource_id: str) -> RemoteModel:
        """Fetch one entity by primary key.

        Raises:
            ResourceNotFoundError: If no such entity exists.
        """

    @abstractmethod
    def list(self, filters: Mapping[str, str], page_token: str | None = None) -> Page:
        """Return one page of entities matching *filters*."""

    @abstractmethod
    def insert(self, body: RemoteModel) -> Operation:
        """Submit a create request and return its operation handle."""

    @abstractmethod
    def patch(self, resource_id: str, body: RemoteModel) -> Operation:
        """Submit a partial update and return its operation handle."""

    @abstractmethod
    def delete(self, resource_id: str) -> Operation:
        """Submit a delete request and return its operation handle."""

    @abstractmethod
    def get_operation(self, operation: Operation) -> Operation:
        """Return the current state of an operation (``status`` is ``DONE`` once finished)."""

    def update_field(self, setter: str, resource_id: str, body: RemoteModel) -> Operation:
        """Dispatch a field-specific update call by name (e.g. ``set_labels``).

        Raises:
            NotImplementedError: If this collection has no such setter.
        """
        method = getattr(self, setter, None)
        if method is None or not callable(method):
            raise NotImplementedError(
                f"{type(self).__name__} has no field setter '{setter}'"
            )
        return method(resource_id, body)
