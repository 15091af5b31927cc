"""Read-only queries over a provider collection."""

from __future__ import annotations

from typing import Any, Iterator, Mapping

from cloudsync.base.adapter import SyncAdapter
from cloudsync.base.config import RetryPolicy
from cloudsync.base.fields import ResourceSchema
from cloudsync.base.logger import ROOT_LOGGER, get_logger
from cloudsync.base.provider import ProviderClient, RemoteModel
from cloudsync.base.resource import ResourceConfig
from cloudsync.base.retry import call_with_retry

logger = get_logger(ROOT_LOGGER)


class Finder:
    """Lists remote entities of one kind, following page tokens transparently.

    Attributes:
        schema: FieldMapping table used to build configs from results.
        provider: Capability set for the collection.
    """

    def __init__(
        self,
        schema: ResourceSchema,
        provider: ProviderClient,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.schema = schema
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy()

    def find_all(self) -> Iterator[RemoteModel]:
        """Lazily yield every entity in the collection."""
        return self.find({})

    def find(self, filters: Mapping[str, Any] | None = None) -> Iterator[RemoteModel]:
        """Lazily yield entities matching *filters*; no filters means everything."""
        converted = {key: str(value) for key, value in (filters or {}).items()}
        return self._pages(converted)

    def find_resources(self, filters: Mapping[str, Any] | None = None) -> Iterator[ResourceConfig]:
        """Like :meth:`find`, but yield configs populated from each entity (import)."""
        for remote in self.find(filters):
            config = ResourceConfig(self.schema)
            SyncAdapter(config, project=self.provider.project).copy_from(remote)
            yield config

    def _pages(self, filters: dict[str, str]) -> Iterator[RemoteModel]:
        token: str | None = None
        pages = 0
        while True:
            page = call_with_retry(self.retry_policy, self.provider.list, filters, token)
            pages += 1
            yield from page.items
            token = page.next_page_token
            if not token:
                break
        logger.debug("Listed %s across %d page(s)", self.schema.kind, pages)
