"""GCP Compute Engine implementation of the provider blueprint."""

from __future__ import annotations

import json
from typing import Any, Mapping

from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from cloudsync.base.config import GCPConfig
from cloudsync.base.exceptions import ProviderError, ResourceNotFoundError
from cloudsync.base.provider import Operation, Page, ProviderClient, RemoteModel


def to_remote(message: Any) -> RemoteModel:
    """Render a compute_v1 message as a dict in REST field naming."""
    return type(message).to_dict(
        message, preserving_proto_field_name=False, use_integers_for_enums=False
    )


def to_message(message_class: Any, body: Mapping[str, Any]) -> Any:
    """Build a compute_v1 message from a REST-named dict."""
    return message_class.from_json(json.dumps(body), ignore_unknown_fields=True)


def to_filter_expression(filters: Mapping[str, str]) -> str:
    """Render ``{"routing-mode": "GLOBAL"}`` as ``(routingMode = "GLOBAL")``."""
    return " ".join(
        f'({".".join(_camel(part) for part in key.split("."))} = "{value}")'
        for key, value in filters.items()
    )


def _camel(name: str) -> str:
    head, *rest = name.replace("-", "_").split("_")
    return head + "".join(word[:1].upper() + word[1:] for word in rest)


def _last_segment(link: str) -> str:
    return link.rsplit("/", 1)[-1]


class ComputeCollection(ProviderClient):
    """One global Compute Engine collection (networks, firewalls, …).

    Subclasses only name the SDK classes and the request argument; all
    calls share the same shape::

        client.get(project=..., <resource_arg>=name)
        client.insert_unary(project=..., <resource_arg>_resource=message)

    Attributes:
        project: GCP project ID.
        zone: Default zone for zonal collections.
        client: Compute Engine client for this collection.
    """

    provider_name = "gcp"

    client_class: Any = None
    message_class: Any = None
    list_request_class: Any = None
    resource_arg: str = ""

    def __init__(self, config: GCPConfig) -> None:
        """Initialize the collection client and the operation clients.

        Args:
            config: GCP configuration object containing project ID and credentials.
        """
        assert config.project_id is not None  # guaranteed by GCPConfig validator
        self.project: str = config.project_id
        self.zone: str = config.zone
        self.client = self.client_class(credentials=config.credentials)
        self._global_ops = compute_v1.GlobalOperationsClient(credentials=config.credentials)
        self._region_ops = compute_v1.RegionOperationsClient(credentials=config.credentials)
        self._zone_ops = compute_v1.ZoneOperationsClient(credentials=config.credentials)

    def _locate(self, resource_id: str) -> dict[str, Any]:
        """Request arguments that address one entity."""
        return {"project": self.project, self.resource_arg: resource_id}

    def _scope(self, filters: dict[str, str]) -> dict[str, Any]:
        """Request arguments that address the whole collection."""
        return {"project": self.project}

    # --- Read ---

    def get(self, resource_id: str) -> RemoteModel:
        """Fetch one entity.

        Raises:
            ResourceNotFoundError: If the entity does not exist.
            ProviderError: On any other Compute Engine API failure.
        """
        try:
            return to_remote(self.client.get(**self._locate(resource_id)))
        except gcp_exceptions.NotFound as e:
            raise ResourceNotFoundError(f"{self.resource_arg} '{resource_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e

    def list(self, filters: Mapping[str, str], page_token: str | None = None) -> Page:
        """Fetch one page of entities matching *filters*."""
        filters = dict(filters)
        request_args = self._scope(filters)
        expression = to_filter_expression(filters)
        if expression:
            request_args["filter"] = expression
        if page_token:
            request_args["page_token"] = page_token
        try:
            pager = self.client.list(request=self.list_request_class(**request_args))
            response = next(iter(pager.pages))
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return Page(
            items=[to_remote(item) for item in response.items],
            next_page_token=response.next_page_token or None,
        )

    # --- Write ---

    def insert(self, body: RemoteModel) -> Operation:
        try:
            op = self.client.insert_unary(
                **self._scope({}),
                **{f"{self.resource_arg}_resource": to_message(self.message_class, body)},
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return to_remote(op)

    def patch(self, resource_id: str, body: RemoteModel) -> Operation:
        try:
            op = self.client.patch_unary(
                **self._locate(resource_id),
                **{f"{self.resource_arg}_resource": to_message(self.message_class, body)},
            )
        except gcp_exceptions.NotFound as e:
            raise ResourceNotFoundError(f"{self.resource_arg} '{resource_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return to_remote(op)

    def delete(self, resource_id: str) -> Operation:
        try:
            op = self.client.delete_unary(**self._locate(resource_id))
        except gcp_exceptions.NotFound as e:
            raise ResourceNotFoundError(f"{self.resource_arg} '{resource_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return to_remote(op)

    # --- Operations ---

    def get_operation(self, operation: Operation) -> Operation:
        """Poll an operation through the zonal, regional or global operations client."""
        name = operation["name"]
        try:
            if operation.get("zone"):
                op = self._zone_ops.get(
                    project=self.project, zone=_last_segment(operation["zone"]), operation=name
                )
            elif operation.get("region"):
                op = self._region_ops.get(
                    project=self.project, region=_last_segment(operation["region"]), operation=name
                )
            else:
                op = self._global_ops.get(project=self.project, operation=name)
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return to_remote(op)


class Networks(ComputeCollection):
    client_class = compute_v1.NetworksClient
    message_class = compute_v1.Network
    list_request_class = compute_v1.ListNetworksRequest
    resource_arg = "network"


class Firewalls(ComputeCollection):
    client_class = compute_v1.FirewallsClient
    message_class = compute_v1.Firewall
    list_request_class = compute_v1.ListFirewallsRequest
    resource_arg = "firewall"


class TargetHttpProxies(ComputeCollection):
    client_class = compute_v1.TargetHttpProxiesClient
    message_class = compute_v1.TargetHttpProxy
    list_request_class = compute_v1.ListTargetHttpProxiesRequest
    resource_arg = "target_http_proxy"

    def set_url_map(self, resource_id: str, body: RemoteModel) -> Operation:
        """Point the proxy at a different URL map."""
        try:
            op = self.client.set_url_map_unary(
                **self._locate(resource_id),
                url_map_reference_resource=compute_v1.UrlMapReference(url_map=body["urlMap"]),
            )
        except gcp_exceptions.NotFound as e:
            raise ResourceNotFoundError(f"target_http_proxy '{resource_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return to_remote(op)


class Instances(ComputeCollection):
    """Zonal VM instances; ids are ``<zone>/<name>`` (bare names use the default zone).

    Instances have no partial PATCH; every updatable field has its own setter.
    """

    client_class = compute_v1.InstancesClient
    message_class = compute_v1.Instance
    list_request_class = compute_v1.ListInstancesRequest
    resource_arg = "instance"

    def _split(self, resource_id: str) -> tuple[str, str]:
        zone, _, name = resource_id.rpartition("/")
        return zone or self.zone, name

    def _locate(self, resource_id: str) -> dict[str, Any]:
        zone, name = self._split(resource_id)
        return {"project": self.project, "zone": zone, "instance": name}

    def _scope(self, filters: dict[str, str]) -> dict[str, Any]:
        return {"project": self.project, "zone": filters.pop("zone", None) or self.zone}

    def list(self, filters: Mapping[str, str], page_token: str | None = None) -> Page:
        """Fetch one page of instances.

        A ``zone`` filter lists that zone only; without one every zone is
        searched through the aggregated list.
        """
        if filters.get("zone"):
            return super().list(filters, page_token)
        request_args: dict[str, Any] = {"project": self.project}
        expression = to_filter_expression(filters)
        if expression:
            request_args["filter"] = expression
        if page_token:
            request_args["page_token"] = page_token
        try:
            pager = self.client.aggregated_list(
                request=compute_v1.AggregatedListInstancesRequest(**request_args)
            )
            response = next(iter(pager.pages))
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return Page(
            items=[
                to_remote(instance)
                for scoped in response.items.values()
                for instance in scoped.instances
            ],
            next_page_token=response.next_page_token or None,
        )

    def insert(self, body: RemoteModel) -> Operation:
        zone = _last_segment(body["zone"]) if body.get("zone") else self.zone
        try:
            op = self.client.insert_unary(
                project=self.project,
                zone=zone,
                instance_resource=to_message(self.message_class, body),
            )
        except gcp_exceptions.AlreadyExists as e:
            raise ProviderError(f"instance '{body.get('name')}' already exists", e.code) from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return to_remote(op)

    def patch(self, resource_id: str, body: RemoteModel) -> Operation:
        raise ProviderError(
            f"instance '{resource_id}' cannot be patched; use a field setter", 405
        )

    def _current(self, resource_id: str) -> Any:
        try:
            return self.client.get(**self._locate(resource_id))
        except gcp_exceptions.NotFound as e:
            raise ResourceNotFoundError(f"instance '{resource_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e

    def _submit(self, method: str, resource_id: str, **kwargs: Any) -> Operation:
        try:
            op = getattr(self.client, method)(**self._locate(resource_id), **kwargs)
        except gcp_exceptions.NotFound as e:
            raise ResourceNotFoundError(f"instance '{resource_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ProviderError(e.message, e.code) from e
        return to_remote(op)

    # --- Field setters ---

    def set_machine_type(self, resource_id: str, body: RemoteModel) -> Operation:
        """Change the machine type (the instance must be stopped)."""
        request = compute_v1.InstancesSetMachineTypeRequest(machine_type=body["machineType"])
        return self._submit(
            "set_machine_type_unary",
            resource_id,
            instances_set_machine_type_request_resource=request,
        )

    def set_labels(self, resource_id: str, body: RemoteModel) -> Operation:
        """Replace all labels; an empty body clears them."""
        current = self._current(resource_id)
        request = compute_v1.InstancesSetLabelsRequest(
            labels=body.get("labels", {}),
            label_fingerprint=current.label_fingerprint,
        )
        return self._submit(
            "set_labels_unary",
            resource_id,
            instances_set_labels_request_resource=request,
        )

    def set_tags(self, resource_id: str, body: RemoteModel) -> Operation:
        """Replace network tags."""
        current = self._current(resource_id)
        tags = compute_v1.Tags(
            items=body.get("tags", {}).get("items", []),
            fingerprint=current.tags.fingerprint,
        )
        return self._submit("set_tags_unary", resource_id, tags_resource=tags)

    def set_metadata(self, resource_id: str, body: RemoteModel) -> Operation:
        """Replace instance metadata items."""
        current = self._current(resource_id)
        items = [
            compute_v1.Items(key=item["key"], value=item.get("value", ""))
            for item in body.get("metadata", {}).get("items", [])
        ]
        metadata = compute_v1.Metadata(items=items, fingerprint=current.metadata.fingerprint)
        return self._submit("set_metadata_unary", resource_id, metadata_resource=metadata)
