"""Shared fixtures: an in-memory provider with scripted operation timelines."""

from __future__ import annotations

import copy
from typing import Any, Mapping

import pytest

from cloudsync.base.config import PollingPolicy, RetryPolicy
from cloudsync.base.exceptions import ProviderError, ResourceNotFoundError
from cloudsync.base.provider import Operation, Page, ProviderClient, RemoteModel


def _merge_patch(target: dict[str, Any], body: Mapping[str, Any]) -> None:
    """PATCH semantics: ``None`` drops a key, objects merge, lists are replaced."""
    for key, value in body.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class FakeProvider(ProviderClient):
    """Stores entities in a dict and records every call.

    * ``poll_statuses``: statuses handed out by successive ``get_operation``
      calls for the next submitted operation; empty means the submit call
      returns an already finished operation.
    * ``failures``: method name -> exceptions raised (in order) before the
      method starts succeeding.
    * ``pages``: when set, ``list`` serves these pages in order regardless
      of filters.
    """

    provider_name = "fake"

    def __init__(self, project: str = "test-project") -> None:
        self.project = project
        self.entities: dict[str, RemoteModel] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.poll_statuses: list[str] = []
        self.operation_error: dict[str, Any] | None = None
        self.failures: dict[str, list[Exception]] = {}
        self.pages: list[list[RemoteModel]] | None = None
        self._ops: dict[str, list[str]] = {}
        self._counter = 0

    # --- helpers ---

    def _maybe_fail(self, method: str) -> None:
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def _operation(self, target: str) -> Operation:
        self._counter += 1
        name = f"operation-{self._counter}"
        statuses = list(self.poll_statuses)
        self.poll_statuses = []
        self._ops[name] = statuses
        return {"name": name, "status": "PENDING" if statuses else "DONE", "targetLink": target}

    def seed(self, entity: Mapping[str, Any]) -> None:
        self.entities[entity["name"]] = copy.deepcopy(dict(entity))

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    # --- ProviderClient ---

    def get(self, resource_id: str) -> RemoteModel:
        self.calls.append(("get", resource_id))
        self._maybe_fail("get")
        if resource_id not in self.entities:
            raise ResourceNotFoundError(f"The resource '{resource_id}' was not found")
        return copy.deepcopy(self.entities[resource_id])

    def list(self, filters: Mapping[str, str], page_token: str | None = None) -> Page:
        self.calls.append(("list", dict(filters), page_token))
        self._maybe_fail("list")
        if self.pages is not None:
            index = int(page_token) if page_token else 0
            token = str(index + 1) if index + 1 < len(self.pages) else None
            return Page(items=copy.deepcopy(self.pages[index]), next_page_token=token)
        items = [
            copy.deepcopy(e)
            for e in self.entities.values()
            if all(str(e.get(k)) == v for k, v in filters.items())
        ]
        return Page(items=items)

    def insert(self, body: RemoteModel) -> Operation:
        self.calls.append(("insert", copy.deepcopy(body)))
        self._maybe_fail("insert")
        name = body["name"]
        if name in self.entities:
            raise ProviderError(f"The resource '{name}' already exists", 409)
        entity = copy.deepcopy(body)
        entity["id"] = str(1000 + len(self.entities))
        entity["selfLink"] = f"https://example.test/projects/{self.project}/{name}"
        self.entities[name] = entity
        return self._operation(name)

    def patch(self, resource_id: str, body: RemoteModel) -> Operation:
        self.calls.append(("patch", resource_id, copy.deepcopy(body)))
        self._maybe_fail("patch")
        if resource_id not in self.entities:
            raise ResourceNotFoundError(f"The resource '{resource_id}' was not found")
        _merge_patch(self.entities[resource_id], body)
        return self._operation(resource_id)

    def delete(self, resource_id: str) -> Operation:
        self.calls.append(("delete", resource_id))
        self._maybe_fail("delete")
        if resource_id not in self.entities:
            raise ResourceNotFoundError(f"The resource '{resource_id}' was not found")
        del self.entities[resource_id]
        return self._operation(resource_id)

    def get_operation(self, operation: Operation) -> Operation:
        name = operation["name"]
        self.calls.append(("get_operation", name))
        self._maybe_fail("get_operation")
        statuses = self._ops.get(name, [])
        status = statuses.pop(0) if statuses else "DONE"
        result = {"name": name, "status": status}
        if status == "DONE" and self.operation_error is not None:
            result["error"] = self.operation_error
            result["httpErrorStatusCode"] = self.operation_error.get("code")
        return result

    def update_field(self, setter: str, resource_id: str, body: RemoteModel) -> Operation:
        self.calls.append(("update_field", setter, resource_id, copy.deepcopy(body)))
        self._maybe_fail("update_field")
        self.entities[resource_id].update(copy.deepcopy(body))
        return self._operation(resource_id)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def fast_polling():
    return PollingPolicy(initial_interval=0, max_interval=0, timeout=5)


@pytest.fixture
def no_wait_retry():
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)
