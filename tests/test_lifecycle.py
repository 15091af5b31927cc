"""Tests for LifecycleController against the in-memory provider."""

import itertools
import logging
import threading

import pytest

from cloudsync.base.config import PollingPolicy
from cloudsync.base.exceptions import (
    Cancelled,
    ImmutableFieldError,
    OperationTimeoutError,
    ProviderError,
    ValidationError,
)
from cloudsync.base.fields import FieldSpec, Mutability, ResourceSchema
from cloudsync.base.lifecycle import LifecycleController, LifecycleState
from cloudsync.base.resource import ResourceConfig
from cloudsync.base.waiter import OperationWaiter
from cloudsync.gcp.resources import FIREWALL, INSTANCE, TARGET_HTTP_PROXY


LIVE_FIREWALL = {
    "name": "allow-web",
    "network": "https://www.googleapis.com/compute/v1/projects/test-project/global/networks/prod",
    "direction": "INGRESS",
    "description": "live",
    "priority": 1000,
    "allowed": [{"IPProtocol": "tcp", "ports": ["80"]}],
    "id": "5",
}


# A kind whose update needs both a field setter and a patch.
GATEWAY = ResourceSchema(
    kind="gateway",
    fields=(
        FieldSpec("name", required=True, remote="name"),
        FieldSpec("description", mutability=Mutability.UPDATABLE, remote="description"),
        FieldSpec("url_map", mutability=Mutability.UPDATABLE, remote="urlMap", setter="set_url_map"),
    ),
)


def _firewall(**values):
    base = {
        "name": "allow-web",
        "network": "prod",
        "direction": "INGRESS",
        "allowed": [{"protocol": "tcp", "ports": ["80"]}],
    }
    base.update(values)
    return ResourceConfig(FIREWALL, base)


@pytest.fixture
def make_controller(provider, fast_polling, no_wait_retry):
    def _make(config, **kwargs):
        kwargs.setdefault("polling", fast_polling)
        kwargs.setdefault("retry_policy", no_wait_retry)
        return LifecycleController(config, provider, **kwargs)

    return _make


# --- refresh ---

class TestRefresh:
    def test_refresh_existing(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        controller = make_controller(_firewall(description="declared"))
        assert controller.refresh() is True
        assert controller.config.get("description") == "live"
        assert controller.config.get("id") == "5"
        assert controller.state is LifecycleState.PRESENT

    def test_refresh_missing(self, provider, make_controller):
        controller = make_controller(_firewall())
        assert controller.refresh() is False
        assert controller.state is LifecycleState.ABSENT
        assert provider.calls == [("get", "allow-web")]

    def test_refresh_uses_composite_key(self, provider, make_controller):
        config = ResourceConfig(INSTANCE, {"name": "vm", "zone": "us-central1-a"})
        controller = make_controller(config)
        assert controller.primary_key() == "us-central1-a/vm"
        controller.refresh()
        assert provider.calls == [("get", "us-central1-a/vm")]

    def test_transient_failure_is_retried(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        provider.failures["get"] = [ProviderError("backend unavailable", 503)]
        assert make_controller(_firewall()).refresh() is True
        assert provider.count("get") == 2

    def test_retries_exhausted(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        provider.failures["get"] = [ProviderError("backend unavailable", 503) for _ in range(3)]
        with pytest.raises(ProviderError) as exc:
            make_controller(_firewall()).refresh()
        assert exc.value.code == 503
        assert provider.count("get") == 3


# --- create ---

class TestCreate:
    def test_create_polls_until_done(self, provider, make_controller):
        provider.poll_statuses = ["RUNNING", "RUNNING", "RUNNING"]
        controller = make_controller(_firewall())

        controller.create()

        assert provider.count("insert") == 1
        assert provider.count("get_operation") == 4
        assert controller.config.get("id") == "1000"
        assert controller.config.get("self_link").endswith("/allow-web")
        assert controller.state is LifecycleState.PRESENT

    def test_create_sends_provider_body(self, provider, make_controller):
        make_controller(_firewall(priority=100)).create()
        _, body = provider.calls[0]
        assert body == {
            "name": "allow-web",
            "network": "projects/test-project/global/networks/prod",
            "direction": "INGRESS",
            "priority": 100,
            "allowed": [{"IPProtocol": "tcp", "ports": ["80"]}],
        }

    def test_validation_happens_before_any_call(self, provider, make_controller):
        controller = make_controller(ResourceConfig(FIREWALL, {"name": "fw"}))
        with pytest.raises(ValidationError):
            controller.create()
        assert provider.calls == []
        assert controller.state is LifecycleState.ABSENT

    def test_failed_operation_raises_provider_error(self, provider, make_controller):
        provider.poll_statuses = ["RUNNING"]
        provider.operation_error = {"errors": [{"message": "quota exceeded"}], "code": 403}
        controller = make_controller(_firewall())

        with pytest.raises(ProviderError, match="quota exceeded") as exc:
            controller.create()
        assert exc.value.code == 403
        assert controller.state is LifecycleState.ABSENT

    def test_rejected_request_is_not_retried(self, provider, make_controller):
        provider.failures["insert"] = [ProviderError("Invalid value for field", 400)]
        with pytest.raises(ProviderError):
            make_controller(_firewall()).create()
        assert provider.count("insert") == 1

    def test_already_exists(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        with pytest.raises(ProviderError) as exc:
            make_controller(_firewall()).create()
        assert exc.value.code == 409

    def test_timeout(self, provider, make_controller):
        provider.poll_statuses = ["RUNNING"] * 10
        controller = make_controller(_firewall())
        ticks = itertools.count(0, 6)
        controller.waiter = OperationWaiter(
            PollingPolicy(initial_interval=0, max_interval=0, timeout=10),
            clock=lambda: next(ticks),
        )

        with pytest.raises(OperationTimeoutError):
            controller.create()
        assert provider.count("get_operation") == 1
        assert controller.state is LifecycleState.PENDING_CREATE

    def test_cancelled_before_first_poll(self, provider, make_controller):
        event = threading.Event()
        event.set()
        provider.poll_statuses = ["RUNNING"]
        controller = make_controller(_firewall(), cancel_event=event)

        with pytest.raises(Cancelled):
            controller.create()
        assert provider.count("get_operation") == 0

    def test_cancel_sets_event(self, make_controller):
        controller = make_controller(_firewall())
        controller.cancel()
        assert controller.waiter.cancel_event.is_set()

    def test_cancelled_controller_is_usable_after_resume(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        controller = make_controller(_firewall())
        controller.cancel()

        provider.poll_statuses = ["RUNNING"]
        with pytest.raises(Cancelled):
            controller.delete()

        controller.resume()
        provider.poll_statuses = ["RUNNING"]
        controller.create()
        assert controller.state is LifecycleState.PRESENT
        assert provider.count("get_operation") == 2


# --- update ---

class TestUpdate:
    def test_immutable_field_rejected_without_calls(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        current = _firewall()
        controller = make_controller(_firewall(network="other"))

        with pytest.raises(ImmutableFieldError) as exc:
            controller.update(current, ["network", "priority"])
        assert exc.value.fields == ["network"]
        assert provider.calls == []

    def test_unknown_field(self, provider, make_controller):
        with pytest.raises(ValidationError):
            make_controller(_firewall()).update(_firewall(), ["colour"])
        assert provider.calls == []

    def test_updatable_fields_share_one_patch(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        controller = make_controller(_firewall(priority=100, description="new"))

        controller.update(_firewall(), ["priority", "description"])

        patches = [call for call in provider.calls if call[0] == "patch"]
        assert patches == [("patch", "allow-web", {"description": "new", "priority": 100})]
        assert controller.config.get("priority") == 100
        assert controller.state is LifecycleState.PRESENT

    def test_output_fields_ignored(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        make_controller(_firewall()).update(_firewall(), ["id", "self_link"])
        assert provider.calls == []

    def test_setter_field_uses_dedicated_call(self, provider, make_controller):
        provider.seed({
            "name": "proxy",
            "urlMap": "https://www.googleapis.com/compute/v1/projects/test-project/global/urlMaps/old",
        })
        desired = ResourceConfig(TARGET_HTTP_PROXY, {"name": "proxy", "url_map": "new"})
        current = ResourceConfig(TARGET_HTTP_PROXY, {"name": "proxy", "url_map": "old"})
        controller = make_controller(desired)

        controller.update(current, {"url_map"})

        assert provider.count("patch") == 0
        assert ("update_field", "set_url_map", "proxy",
                {"urlMap": "projects/test-project/global/urlMaps/new"}) in provider.calls
        assert controller.config.get("url_map") == "new"

    def test_instance_fields_each_use_their_setter(self, provider, make_controller):
        provider.seed({"name": "vm", "zone": "us-central1-a", "labels": {}})
        provider.entities["us-central1-a/vm"] = provider.entities.pop("vm")
        desired = ResourceConfig(INSTANCE, {
            "name": "vm",
            "zone": "us-central1-a",
            "machine_type": "e2-small",
            "labels": {"env": "prod"},
        })
        controller = make_controller(desired)

        controller.update(ResourceConfig(INSTANCE, {"name": "vm", "zone": "us-central1-a"}),
                          ["machine_type", "labels"])

        setters = [call[1] for call in provider.calls if call[0] == "update_field"]
        assert setters == ["set_machine_type", "set_labels"]
        assert provider.count("patch") == 0

    def test_setter_and_patch_in_one_update(self, provider, make_controller):
        provider.seed({"name": "gw", "description": "old", "urlMap": "maps/a"})
        desired = ResourceConfig(GATEWAY, {"name": "gw", "description": "new", "url_map": "maps/b"})
        current = ResourceConfig(GATEWAY, {"name": "gw", "description": "old", "url_map": "maps/a"})
        controller = make_controller(desired)

        controller.update(current, ["url_map", "description"])

        writes = [call for call in provider.calls if call[0] in ("update_field", "patch")]
        assert writes == [
            ("update_field", "set_url_map", "gw", {"urlMap": "maps/b"}),
            ("patch", "gw", {"description": "new"}),
        ]
        assert provider.entities["gw"] == {"name": "gw", "description": "new", "urlMap": "maps/b"}
        assert controller.state is LifecycleState.PRESENT

    # --- clearing fields ---

    def test_removed_set_is_cleared(self, provider, make_controller):
        provider.seed({**LIVE_FIREWALL, "sourceRanges": ["0.0.0.0/0"]})
        current = _firewall(source_ranges=["0.0.0.0/0"])
        controller = make_controller(_firewall())

        controller.update(current, ["source_ranges"])

        patches = [call for call in provider.calls if call[0] == "patch"]
        assert patches == [("patch", "allow-web", {"sourceRanges": []})]
        assert provider.entities["allow-web"]["sourceRanges"] == []
        assert not controller.config.is_set("source_ranges")

    def test_removed_scalar_is_cleared(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        controller = make_controller(_firewall())

        controller.update(_firewall(description="live"), ["description"])

        assert ("patch", "allow-web", {"description": None}) in provider.calls
        assert "description" not in provider.entities["allow-web"]
        assert controller.config.get("description") is None

    def test_switch_allowed_to_denied(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        desired = ResourceConfig(FIREWALL, {
            "name": "allow-web",
            "network": "prod",
            "direction": "INGRESS",
            "denied": [{"protocol": "tcp", "ports": ["22"]}],
        })
        controller = make_controller(desired)

        controller.update(_firewall(), ["allowed", "denied"])

        patches = [call for call in provider.calls if call[0] == "patch"]
        assert patches == [("patch", "allow-web", {
            "allowed": [],
            "denied": [{"IPProtocol": "tcp", "ports": ["22"]}],
        })]
        assert not controller.config.is_set("allowed")
        assert [rule.get("protocol") for rule in controller.config.get("denied")] == ["tcp"]

    def test_removed_mapping_cleared_through_setter(self, provider, make_controller):
        provider.seed({"name": "vm", "zone": "us-central1-a", "labels": {"env": "prod"}})
        provider.entities["us-central1-a/vm"] = provider.entities.pop("vm")
        current = ResourceConfig(INSTANCE, {"name": "vm", "zone": "us-central1-a", "labels": {"env": "prod"}})
        controller = make_controller(ResourceConfig(INSTANCE, {"name": "vm", "zone": "us-central1-a"}))

        controller.update(current, ["labels"])

        assert ("update_field", "set_labels", "us-central1-a/vm", {"labels": {}}) in provider.calls
        assert controller.config.get("labels") == {}


# --- delete ---

class TestDelete:
    def test_delete(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        controller = make_controller(_firewall())
        controller.delete()
        assert "allow-web" not in provider.entities
        assert controller.state is LifecycleState.ABSENT

    def test_delete_twice_succeeds(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        controller = make_controller(_firewall())
        controller.delete()
        controller.delete()
        assert provider.count("delete") == 2
        assert controller.state is LifecycleState.ABSENT

    def test_operation_reporting_not_found_is_success(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        provider.poll_statuses = ["RUNNING"]
        provider.operation_error = {"errors": [{"message": "gone"}], "code": 404}
        controller = make_controller(_firewall())
        controller.delete()
        assert controller.state is LifecycleState.ABSENT

    def test_other_errors_propagate(self, provider, make_controller):
        provider.seed(LIVE_FIREWALL)
        provider.failures["delete"] = [ProviderError("in use by another resource", 400)]
        with pytest.raises(ProviderError):
            make_controller(_firewall()).delete()

    def test_logs_carry_resource_context(self, provider, make_controller, caplog):
        provider.seed(LIVE_FIREWALL)
        with caplog.at_level(logging.INFO, logger="cloudsync.lifecycle"):
            make_controller(_firewall()).delete()
        record = caplog.records[0]
        assert record.operation == "delete"
        assert record.state == "pending_delete"
        assert record.provider == "fake"
        assert record.resource_type == "firewall"
        assert record.resource_id == "allow-web"
