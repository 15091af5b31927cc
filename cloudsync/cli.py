"""Cloudsync CLI: run one lifecycle operation against one resource.

Usage examples::

    cloudsync -k network find --filters '{"name": "default"}'
    cloudsync -k firewall refresh allow-http
    cloudsync -k instance delete us-central1-a/vm-1
    cloudsync -k network create '{"name": "n1", "routing_mode": "GLOBAL"}'

Exit status is 0 on success and 1 when the operation fails or the
resource id is malformed. Usage errors (including malformed JSON) and a
``refresh`` that finds nothing exit with 2.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, get_args

from cloudsync.base.exceptions import CloudsyncError
from cloudsync.base.supported_services import existing_cloud_providers, existing_resource_kinds

EXIT_FAILED = 1
EXIT_NOT_FOUND = 2


def _json_object(raw: str) -> dict[str, Any]:
    """argparse ``type=`` hook: parse a JSON object or reject the argument."""
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"not valid JSON ({e})") from None
    if not isinstance(value, dict):
        raise argparse.ArgumentTypeError("expected a JSON object")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudsync",
        description="Declarative cloud resource synchronization",
    )
    parser.add_argument(
        "-p", "--provider",
        default="gcp",
        choices=get_args(existing_cloud_providers),
    )
    parser.add_argument(
        "-k", "--kind",
        required=True,
        choices=get_args(existing_resource_kinds),
    )
    parser.add_argument(
        "-c", "--config",
        type=_json_object,
        default={},
        metavar="JSON",
        help='provider config, e.g. \'{"project_id": "my-project"}\'',
    )

    commands = parser.add_subparsers(dest="operation", required=True)

    find = commands.add_parser("find", help="list remote entities")
    find.add_argument("-f", "--filters", type=_json_object, default={}, metavar="JSON")

    create = commands.add_parser("create", help="create a resource from field values")
    create.add_argument("values", type=_json_object, metavar="JSON")

    for name, text in (("refresh", "print the live entity"), ("delete", "delete an entity")):
        command = commands.add_parser(name, help=text)
        command.add_argument("resource_id", help="primary key, e.g. 'my-net' or 'us-central1-a/vm-1'")

    return parser


def _identity_values(identity: tuple[str, ...], resource_id: str) -> dict[str, str]:
    """Split a primary key back into the fields it was joined from.

    Raises:
        ValueError: If *resource_id* has the wrong number of segments.
    """
    parts = resource_id.split("/", len(identity) - 1)
    if len(parts) != len(identity):
        raise ValueError(f"resource id must look like {'/'.join(identity)}")
    return dict(zip(identity, parts))


def _run(ns: argparse.Namespace) -> Any:
    # Deferred so --help does not import the SDK
    from cloudsync.factory import lifecycle_controller, resolve, resource_finder

    if ns.operation == "find":
        return list(resource_finder(ns.kind, ns.provider, ns.config).find(ns.filters))

    if ns.operation == "create":
        controller = lifecycle_controller(ns.kind, ns.provider, ns.config, ns.values)
        controller.create()
        return controller.config.to_dict()

    schema, _ = resolve(ns.kind, ns.provider, ns.config)
    values = _identity_values(schema.identity, ns.resource_id)
    controller = lifecycle_controller(ns.kind, ns.provider, ns.config, values)
    if ns.operation == "delete":
        controller.delete()
        return None
    if not controller.refresh():
        print(f"{ns.kind} '{ns.resource_id}' not found", file=sys.stderr)
        sys.exit(EXIT_NOT_FOUND)
    return controller.config.to_dict()


def main(argv: list[str] | None = None) -> None:
    """Console entry point; prints the result as JSON (or ``OK``)."""
    ns = _build_parser().parse_args(argv)
    try:
        result = _run(ns)
    except CloudsyncError as e:
        print(f"Operation failed: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILED)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILED)

    print("OK" if result is None else json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
