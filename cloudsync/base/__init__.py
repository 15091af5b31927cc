"""Provider-independent synchronization core.

Import the building blocks from here to declare your own resource kinds
or to plug in a different provider client.
"""

from .adapter import SyncAdapter
from .fields import FieldKind, FieldSpec, Mutability, ResourceSchema
from .finder import Finder
from .lifecycle import LifecycleController, LifecycleState
from .provider import Page, ProviderClient
from .resource import ResourceConfig
from .supported_services import existing_cloud_providers, existing_resource_kinds


__all__ = [
    "SyncAdapter",
    "FieldKind",
    "FieldSpec",
    "Mutability",
    "ResourceSchema",
    "Finder",
    "LifecycleController",
    "LifecycleState",
    "Page",
    "ProviderClient",
    "ResourceConfig",
    "existing_cloud_providers",
    "existing_resource_kinds",
]
