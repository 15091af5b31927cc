from typing import Literal


existing_resource_kinds = Literal[
    "network",
    "firewall",
    "target_http_proxy",
    "instance",
]


existing_cloud_providers = Literal["gcp"]
