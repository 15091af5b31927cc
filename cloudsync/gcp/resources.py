"""Compute Engine resource tables.

Each resource kind is a :class:`ResourceSchema`; local names are
snake_case, remote paths follow the Compute REST API.
"""

from __future__ import annotations

import re

from cloudsync.base.fields import (
    FieldKind,
    FieldSpec,
    KeyValueItems,
    LastSegment,
    Mutability,
    ResourceLink,
    ResourceSchema,
    ZonalLink,
)
from cloudsync.base.resource import ResourceConfig

IMMUTABLE = Mutability.IMMUTABLE
UPDATABLE = Mutability.UPDATABLE
OUTPUT = Mutability.OUTPUT

_PORT = re.compile(r"[1-9]\d*(-[1-9]\d*)?")


def _upper(value: str) -> str:
    return value.upper()


def _outputs() -> tuple[FieldSpec, ...]:
    return (
        FieldSpec("id", mutability=OUTPUT, remote="id"),
        FieldSpec("self_link", mutability=OUTPUT, remote="selfLink"),
    )


# ── Network ───────────────────────────────────────────────────────────
NETWORK = ResourceSchema(
    kind="network",
    fields=(
        FieldSpec("name", required=True, remote="name"),
        FieldSpec("description", remote="description"),
        FieldSpec(
            "routing_mode",
            mutability=UPDATABLE,
            remote="routingConfig.routingMode",
            required=True,
            choices=("GLOBAL", "REGIONAL"),
            normalize=_upper,
        ),
        *_outputs(),
    ),
    create_defaults={"autoCreateSubnetworks": False},
)


# ── Firewall ──────────────────────────────────────────────────────────
def _validate_rule(rule: ResourceConfig) -> list[str]:
    errors = []
    protocol = rule.get("protocol")
    ports = rule.get("ports")
    if ports and protocol not in ("tcp", "udp"):
        errors.append("'ports' can only be set when 'protocol' is 'tcp' or 'udp'")
    for port in sorted(ports):
        match = _PORT.fullmatch(port)
        if match is None:
            errors.append(f"invalid port '{port}'; must be an integer or a range")
            continue
        if match.group(1):
            low, high = (int(p) for p in port.split("-"))
            if low >= high:
                errors.append(f"invalid port range '{port}'")
    return errors


FIREWALL_RULE = ResourceSchema(
    kind="firewall_rule",
    fields=(
        FieldSpec("protocol", required=True, mutability=UPDATABLE, remote="IPProtocol"),
        FieldSpec("ports", kind=FieldKind.STRING_SET, mutability=UPDATABLE, remote="ports"),
    ),
    identity=("protocol",),
    validators=(_validate_rule,),
)

_INGRESS_ONLY = ("source_ranges", "source_tags", "source_service_accounts")
_EGRESS_ONLY = ("destination_ranges", "target_tags", "target_service_accounts")


def _validate_firewall(firewall: ResourceConfig) -> list[str]:
    errors = []
    if firewall.is_set("allowed") == firewall.is_set("denied"):
        errors.append("exactly one of 'allowed' or 'denied' must be set")

    direction = firewall.get("direction")
    if direction == "INGRESS":
        errors.extend(
            f"'{name}' cannot be set when 'direction' is 'INGRESS'"
            for name in _EGRESS_ONLY
            if firewall.is_set(name)
        )
    elif direction == "EGRESS":
        errors.extend(
            f"'{name}' cannot be set when 'direction' is 'EGRESS'"
            for name in _INGRESS_ONLY
            if firewall.is_set(name)
        )

    if firewall.is_set("target_service_accounts") and (
        firewall.is_set("target_tags") or firewall.is_set("source_tags")
    ):
        errors.append(
            "'target_service_accounts' cannot be set together with 'target_tags' or 'source_tags'"
        )
    return errors


FIREWALL = ResourceSchema(
    kind="firewall",
    fields=(
        FieldSpec("name", required=True, remote="name"),
        FieldSpec("network", required=True, remote="network", transform=ResourceLink("global/networks")),
        FieldSpec("description", mutability=UPDATABLE, remote="description"),
        FieldSpec(
            "direction",
            required=True,
            remote="direction",
            choices=("INGRESS", "EGRESS"),
            normalize=_upper,
        ),
        FieldSpec(
            "priority",
            kind=FieldKind.INTEGER,
            mutability=UPDATABLE,
            remote="priority",
            minimum=0,
            maximum=65535,
        ),
        FieldSpec("disabled", kind=FieldKind.BOOLEAN, mutability=UPDATABLE, remote="disabled"),
        FieldSpec("log_config", kind=FieldKind.BOOLEAN, mutability=UPDATABLE, remote="logConfig.enable"),
        FieldSpec(
            "allowed",
            kind=FieldKind.NESTED_LIST,
            mutability=UPDATABLE,
            remote="allowed",
            schema=FIREWALL_RULE,
        ),
        FieldSpec(
            "denied",
            kind=FieldKind.NESTED_LIST,
            mutability=UPDATABLE,
            remote="denied",
            schema=FIREWALL_RULE,
        ),
        FieldSpec("source_ranges", kind=FieldKind.STRING_SET, mutability=UPDATABLE, remote="sourceRanges"),
        FieldSpec("source_tags", kind=FieldKind.STRING_SET, mutability=UPDATABLE, remote="sourceTags"),
        FieldSpec(
            "source_service_accounts",
            kind=FieldKind.STRING_SET,
            mutability=UPDATABLE,
            remote="sourceServiceAccounts",
        ),
        FieldSpec(
            "destination_ranges",
            kind=FieldKind.STRING_SET,
            mutability=UPDATABLE,
            remote="destinationRanges",
        ),
        FieldSpec("target_tags", kind=FieldKind.STRING_SET, mutability=UPDATABLE, remote="targetTags"),
        FieldSpec(
            "target_service_accounts",
            kind=FieldKind.STRING_SET,
            mutability=UPDATABLE,
            remote="targetServiceAccounts",
        ),
        *_outputs(),
    ),
    validators=(_validate_firewall,),
)


# ── Target HTTP proxy ─────────────────────────────────────────────────
TARGET_HTTP_PROXY = ResourceSchema(
    kind="target_http_proxy",
    fields=(
        FieldSpec("name", required=True, remote="name"),
        FieldSpec("description", remote="description"),
        FieldSpec(
            "url_map",
            mutability=UPDATABLE,
            required=True,
            remote="urlMap",
            transform=ResourceLink("global/urlMaps"),
            setter="set_url_map",
        ),
        FieldSpec("region", mutability=OUTPUT, remote="region", transform=LastSegment()),
        *_outputs(),
    ),
)


# ── Instance ──────────────────────────────────────────────────────────
INSTANCE = ResourceSchema(
    kind="instance",
    fields=(
        FieldSpec("name", required=True, remote="name"),
        FieldSpec("zone", required=True, remote="zone", transform=LastSegment()),
        FieldSpec(
            "machine_type",
            mutability=UPDATABLE,
            required=True,
            remote="machineType",
            transform=ZonalLink("machineTypes"),
            setter="set_machine_type",
        ),
        FieldSpec("image", required=True, remote="disks.0.initializeParams.sourceImage"),
        FieldSpec(
            "network",
            remote="networkInterfaces.0.network",
            transform=ResourceLink("global/networks"),
        ),
        FieldSpec("description", remote="description"),
        FieldSpec(
            "labels",
            kind=FieldKind.MAPPING,
            mutability=UPDATABLE,
            remote="labels",
            setter="set_labels",
        ),
        FieldSpec(
            "tags",
            kind=FieldKind.STRING_SET,
            mutability=UPDATABLE,
            remote="tags.items",
            setter="set_tags",
        ),
        FieldSpec(
            "metadata",
            kind=FieldKind.MAPPING,
            mutability=UPDATABLE,
            remote="metadata.items",
            transform=KeyValueItems(),
            setter="set_metadata",
        ),
        FieldSpec("status", mutability=OUTPUT, remote="status"),
        *_outputs(),
    ),
    identity=("zone", "name"),
    create_defaults={"disks": [{"boot": True, "autoDelete": True}]},
)


RESOURCE_SCHEMAS: dict[str, ResourceSchema] = {
    schema.kind: schema for schema in (NETWORK, FIREWALL, TARGET_HTTP_PROXY, INSTANCE)
}
