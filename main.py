"""CLI entry point: python main.py --type dr primary enable --cluster-addr 10.0.0.1:8201"""

import argparse
import json
import sys

from src.logging_config import LogFormat, LoggingConfig, LogLevel, configure_logging
from src.replication import (
    ConvergenceConfig,
    ConvergencePoller,
    ReplicationController,
    ReplicationError,
    ReplicationRole,
    ReplicationType,
    VaultClient,
)
from src.replication.projector import record_to_fields
from src.settings import get_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage Vault DR / performance replication"
    )
    parser.add_argument(
        "--type", dest="replication_type", default=ReplicationType.DR.value,
        choices=[t.value for t in ReplicationType],
        help="Replication type (default: dr)"
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log request and polling detail"
    )
    groups = parser.add_subparsers(dest="group", required=True)

    primary = groups.add_parser("primary", help="Primary replication")
    primary_actions = primary.add_subparsers(dest="action", required=True)
    enable = primary_actions.add_parser("enable", help="Enable as primary and wait")
    enable.add_argument("--cluster-addr", default="", help="Primary cluster address")
    enable.add_argument("--no-wait", action="store_true", help="Do not wait for convergence")
    disable = primary_actions.add_parser("disable", help="Disable primary replication")
    disable.add_argument("--no-wait", action="store_true", help="Do not wait for convergence")
    primary_actions.add_parser("status", help="Show primary status")

    secondary = groups.add_parser("secondary", help="Secondary replication")
    secondary_actions = secondary.add_subparsers(dest="action", required=True)
    enable = secondary_actions.add_parser("enable", help="Enable as secondary")
    enable.add_argument("--token", required=True, help="Secondary activation token")
    enable.add_argument("--primary-api-addr", default="", help="Primary API address")
    enable.add_argument("--ca-file", default="", help="CA file for the primary")
    enable.add_argument("--ca-path", default="", help="CA directory for the primary")
    enable.add_argument("--wait", action="store_true", help="Wait for secondary mode")
    secondary_actions.add_parser("disable", help="Disable secondary replication")
    secondary_actions.add_parser("status", help="Show secondary status")

    token = groups.add_parser("token", help="Secondary activation tokens")
    token_actions = token.add_subparsers(dest="action", required=True)
    issue = token_actions.add_parser("issue", help="Issue a secondary token")
    issue.add_argument("token_id", help="Identifier for the secondary")
    issue.add_argument("--ttl", default="", help="Token TTL, e.g. 30m")
    issue.add_argument("--secondary-public-key", default="", help="Secondary public key")
    revoke = token_actions.add_parser("revoke", help="Revoke a secondary token")
    revoke.add_argument("token_id", help="Identifier for the secondary")
    exists = token_actions.add_parser("exists", help="Check whether a secondary is listed")
    exists.add_argument("token_id", help="Identifier for the secondary")

    return parser


def run(args: argparse.Namespace, controller: ReplicationController) -> dict:
    """Dispatch parsed arguments to the controller and return a JSON-able result."""
    t = args.replication_type

    if args.group == "primary":
        if args.action == "enable":
            resource_id = controller.enable_primary(t, args.cluster_addr, wait=not args.no_wait)
            return {"id": resource_id, **_status(controller, t, ReplicationRole.PRIMARY)}
        if args.action == "disable":
            outcome = controller.disable_primary(t, wait=not args.no_wait)
            return {
                "path": outcome.path,
                "converged": outcome.converged,
                "warning": str(outcome.wait_error) if outcome.wait_error else None,
            }
        return _status(controller, t, ReplicationRole.PRIMARY)

    if args.group == "secondary":
        if args.action == "enable":
            resource_id = controller.enable_secondary(
                t, args.token,
                primary_api_addr=args.primary_api_addr,
                ca_file=args.ca_file,
                ca_path=args.ca_path,
                wait=args.wait,
            )
            return {"id": resource_id, **_status(controller, t, ReplicationRole.SECONDARY)}
        if args.action == "disable":
            return {"path": controller.disable_secondary(t).path}
        return _status(controller, t, ReplicationRole.SECONDARY)

    if args.action == "issue":
        secondary_token = controller.issue_token(
            t, args.token_id, ttl=args.ttl, secondary_public_key=args.secondary_public_key,
        )
        return {"id": args.token_id, "secondary_token": secondary_token}
    if args.action == "revoke":
        controller.revoke_token(t, args.token_id)
        return {"id": args.token_id, "revoked": True}
    return {"id": args.token_id, "exists": controller.token_exists(t, args.token_id)}


def _status(controller: ReplicationController, replication_type: str, role: ReplicationRole) -> dict:
    result = controller.read_status(replication_type, role)
    return {"purged": result.should_purge, **record_to_fields(result.record)}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    level = LogLevel.DEBUG if args.verbose else LogLevel(settings.log_level.upper())
    configure_logging(LoggingConfig(level=level, format=LogFormat(settings.log_format.lower())))

    client = VaultClient.from_settings(settings)
    poller = ConvergencePoller(client, ConvergenceConfig(
        max_attempts=settings.convergence_max_attempts,
        interval=settings.convergence_interval,
        deadline=settings.convergence_deadline,
    ))
    controller = ReplicationController(client, poller=poller)

    try:
        result = run(args, controller)
    except ReplicationError as e:
        print(json.dumps({"error": type(e).__name__, "message": str(e)}), file=sys.stderr)
        return 1
    finally:
        client.close()

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
