"""
Reconciler Server

Referential integrity maintenance for the member document store.
Runs the HTTP API or a single maintenance command and prints JSON.

Environment variables:
    RECONCILER_DEBUG: Enable debug logging (default: debug from config.yaml)
    RECONCILER_LOG_FILE: Log file path, "-" to disable (default: reconciler.log in the data dir)
    RECONCILER_STORE: Document store backend, "chromadb" or "memory"
"""

import argparse
import json
import sys
from typing import Optional

from reconciler.configs import get_logger, setup_logging

# Initialize logging
setup_logging()
logger = get_logger("server")


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the FastAPI HTTP server."""
    from reconciler.configs import create_default_config
    from reconciler.configs.services import CONFIG
    from reconciler.controllers.http import run_server

    if create_default_config():
        logger.info("Wrote default config.yaml")

    port = args.port or int((CONFIG.get("_yaml") or {}).get("http_port", 8090))
    run_server(host=args.host, port=port)
    return 0


def cmd_reconcile(args: argparse.Namespace) -> int:
    """Scan registered targets for orphans."""
    from reconciler.tools.maintenance import cleanup_storage

    output = cleanup_storage(
        action="execute" if args.apply else "preview",
        targets=args.target or None,
        batch_size=args.batch_size,
    )
    print(output)
    return 0 if json.loads(output)["status"] == "success" else 1


def cmd_cascade(args: argparse.Namespace) -> int:
    """Delete one member and its dependent records."""
    from reconciler.tools.maintenance import delete_member

    output = delete_member(args.member_id, dry_run=args.dry_run)
    print(output)
    return 0 if json.loads(output)["status"] == "success" else 1


def cmd_sweep(args: argparse.Namespace) -> int:
    """Run the profile refresh sweep, one batch or until done."""
    from reconciler.tools.maintenance import refresh_profiles

    cursor = args.cursor
    totals = {"processed_total": 0, "refreshed_total": 0, "failed_total": 0}
    while True:
        output = refresh_profiles(
            cursor=cursor,
            batch_size=args.batch_size,
            max_duration_ms=args.max_duration_ms,
            **totals,
        )
        result = json.loads(output)
        print(output)
        if result["status"] != "success":
            return 1
        if not args.all or not result["has_more"]:
            return 0
        if result["cursor"] == cursor:
            logger.warning("Sweep made no progress, stopping")
            return 1
        cursor = result["cursor"]
        totals = {
            "processed_total": result["processed"],
            "refreshed_total": result["refreshed"],
            "failed_total": result["failed"],
        }


def cmd_test_members(args: argparse.Namespace) -> int:
    """Cascade-delete members tagged as test accounts."""
    from reconciler.configs.services import CONFIG, get_engine
    from reconciler.tools.maintenance import cleanup_test_members

    result = cleanup_test_members(get_engine(), dry_run=not args.apply, tag=CONFIG["test_member_tag"])
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if not result.summary.errors else 1


def cmd_battle_reset(args: argparse.Namespace) -> int:
    """Remove all PVE/PVP battle records."""
    from reconciler.configs.services import get_engine
    from reconciler.tools.maintenance import reset_battle_records

    summary = reset_battle_records(get_engine(), dry_run=not args.apply)
    print(json.dumps({"dry_run": not args.apply, **summary.to_dict()}, indent=2))
    return 0 if not summary.errors else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconciler maintenance server")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None, help="Defaults to http_port from config.yaml")
    serve.set_defaults(func=cmd_serve)

    reconcile = commands.add_parser("reconcile", help="Remove records that reference deleted members")
    reconcile.add_argument("--apply", action="store_true", help="Delete instead of previewing")
    reconcile.add_argument("--target", action="append", help="Limit to a target (repeatable)")
    reconcile.add_argument("--batch-size", type=int, default=None, help="Defaults to batch_size from config")
    reconcile.set_defaults(func=cmd_reconcile)

    cascade = commands.add_parser("cascade", help="Delete a member and its dependent records")
    cascade.add_argument("member_id")
    cascade.add_argument("--dry-run", action="store_true", help="Only report what would be removed")
    cascade.set_defaults(func=cmd_cascade)

    sweep = commands.add_parser("sweep", help="Refresh derived member profiles")
    sweep.add_argument("--cursor", default="", help="Resume after this member id")
    sweep.add_argument("--batch-size", type=int, default=None)
    sweep.add_argument("--max-duration-ms", type=int, default=None)
    sweep.add_argument("--all", action="store_true", help="Keep going until every member is visited")
    sweep.set_defaults(func=cmd_sweep)

    test_members = commands.add_parser("test-members", help="Delete members tagged as test accounts")
    test_members.add_argument("--apply", action="store_true", help="Delete instead of previewing")
    test_members.set_defaults(func=cmd_test_members)

    battle_reset = commands.add_parser("battle-reset", help="Remove all PVE/PVP battle records")
    battle_reset.add_argument("--apply", action="store_true", help="Delete instead of previewing")
    battle_reset.set_defaults(func=cmd_battle_reset)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logger.debug(f"Running command: {args.command}")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
