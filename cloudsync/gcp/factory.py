"""GCP resource factory.

Maps resource kinds to their FieldMapping table and Compute Engine
collection. ``RESOURCE_REGISTRY`` is consumed by :mod:`cloudsync.factory`.
"""

from cloudsync.base.fields import ResourceSchema
from cloudsync.base.provider import ProviderClient
from cloudsync.gcp.compute import Firewalls, Instances, Networks, TargetHttpProxies
from cloudsync.gcp.resources import FIREWALL, INSTANCE, NETWORK, TARGET_HTTP_PROXY


# Resource registry for GCP
RESOURCE_REGISTRY: dict[str, tuple[ResourceSchema, type[ProviderClient]]] = {
    "network": (NETWORK, Networks),
    "firewall": (FIREWALL, Firewalls),
    "target_http_proxy": (TARGET_HTTP_PROXY, TargetHttpProxies),
    "instance": (INSTANCE, Instances),
}
