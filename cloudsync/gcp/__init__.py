"""GCP Compute Engine bindings."""

from .compute import ComputeCollection, Firewalls, Instances, Networks, TargetHttpProxies
from .resources import FIREWALL, FIREWALL_RULE, INSTANCE, NETWORK, TARGET_HTTP_PROXY

__all__ = [
    "ComputeCollection",
    "Firewalls",
    "Instances",
    "Networks",
    "TargetHttpProxies",
    "FIREWALL",
    "FIREWALL_RULE",
    "INSTANCE",
    "NETWORK",
    "TARGET_HTTP_PROXY",
]
