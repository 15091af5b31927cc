"""Cloudsync: declarative cloud resource synchronization.

Maps declared resource configs onto a cloud provider's API and drives
their refresh / create / update / delete lifecycle::

    from cloudsync import lifecycle_controller

    net = lifecycle_controller(
        "network", "gcp", {"project_id": "my-project"},
        {"name": "prod", "routing_mode": "GLOBAL"},
    )
    if not net.refresh():
        net.create()
"""

from .base import (
    Finder,
    LifecycleController,
    ResourceConfig,
    ResourceSchema,
    SyncAdapter,
)
from .factory import lifecycle_controller, resource_finder

__all__ = [
    "Finder",
    "LifecycleController",
    "ResourceConfig",
    "ResourceSchema",
    "SyncAdapter",
    "lifecycle_controller",
    "resource_finder",
]
