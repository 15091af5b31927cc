"""Lifecycle controller and finder factory.

Dispatches to provider-specific registries (currently GCP) based on
``cloud_provider``. Provider clients are shared across controllers through
:class:`~cloudsync.base.client_cache.ClientCache`.
"""

from __future__ import annotations

import threading
from typing import Any, Mapping

from cloudsync.base import (
    Finder,
    LifecycleController,
    ProviderClient,
    ResourceConfig,
    ResourceSchema,
    existing_cloud_providers,
    existing_resource_kinds,
)
from cloudsync.base.client_cache import ClientCache
from cloudsync.base.config import PollingPolicy, RetryPolicy, validate_config
from cloudsync.gcp.factory import RESOURCE_REGISTRY as GCP_RESOURCES


# Nested factory registry: cloud_provider -> resource registry
_FACTORY_REGISTRY: dict[str, dict[str, tuple[ResourceSchema, type[ProviderClient]]]] = {
    "gcp": GCP_RESOURCES,
}


def resolve(
    kind: existing_resource_kinds,
    cloud_provider: existing_cloud_providers,
    config: dict,
) -> tuple[ResourceSchema, ProviderClient]:
    """Look up the FieldMapping table and a (cached) provider client for *kind*.

    Raises:
        ValueError: If the cloud provider or resource kind is not supported.
    """
    if cloud_provider not in _FACTORY_REGISTRY:
        raise ValueError(f"Unsupported cloud provider: {cloud_provider}")

    provider_resources = _FACTORY_REGISTRY[cloud_provider]

    if kind not in provider_resources:
        raise ValueError(
            f"Unsupported resource kind '{kind}' for provider '{cloud_provider}'"
        )

    schema, client_class = provider_resources[kind]
    config_obj = validate_config(cloud_provider, config)
    client = ClientCache().get_or_create(
        cloud_provider, kind, config, lambda: client_class(config_obj)
    )
    return schema, client


def lifecycle_controller(
    kind: existing_resource_kinds,
    cloud_provider: existing_cloud_providers,
    config: dict,
    values: Mapping[str, Any] | None = None,
    *,
    polling: PollingPolicy | None = None,
    retry_policy: RetryPolicy | None = None,
    cancel_event: threading.Event | None = None,
) -> LifecycleController:
    """Create a lifecycle controller for one resource.

    Args:
        kind: Resource kind (e.g. 'firewall').
        cloud_provider: The cloud provider (e.g. 'gcp').
        config: Provider configuration dictionary.
        values: Declared field values for the resource.
        polling: Override the operation polling budget.
        retry_policy: Override the transient-failure retry budget.
        cancel_event: Event the host sets to abort operation waits.

    Returns:
        A controller bound to a new :class:`ResourceConfig`.
    """
    schema, client = resolve(kind, cloud_provider, config)
    return LifecycleController(
        ResourceConfig(schema, values),
        client,
        polling=polling,
        retry_policy=retry_policy,
        cancel_event=cancel_event,
    )


def resource_finder(
    kind: existing_resource_kinds,
    cloud_provider: existing_cloud_providers,
    config: dict,
) -> Finder:
    """Create a read-only finder over every entity of *kind*."""
    schema, client = resolve(kind, cloud_provider, config)
    return Finder(schema, client)
