"""
beliefsync CLI - inspect and drive local-to-remote state sync.

Usage:
    beliefsync status [--json]
    beliefsync sync
    beliefsync get KEY
    beliefsync set KEY VALUE
    beliefsync rm KEY
    beliefsync queue [--json]
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

from beliefsync.client import SyncClient
from beliefsync.config import get_settings
from beliefsync.logging_config import setup_beliefsync_logging

logger = logging.getLogger(__name__)


def _format_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat(timespec="seconds")


async def cmd_status(args, client: SyncClient) -> int:
    """Show connectivity and queue status."""
    health = await client.remote.health_check()
    if not health["healthy"]:
        client.scheduler.notify_offline()
    status = client.status()

    if args.json:
        data = status.to_dict()
        data["backend_url"] = client.credentials.backend_url
        data["health"] = health
        print(json.dumps(data, indent=2))
        return 0

    print(f"Backend:  {client.credentials.backend_url or '(not configured)'}")
    if health["healthy"]:
        print(f"Online:   yes ({health['latency_ms']} ms)")
    else:
        print(f"Online:   no ({health.get('error', 'unreachable')})")
    print(f"Pending:  {status.pending}")
    print(f"State:    {status.state}")
    return 0


async def cmd_sync(args, client: SyncClient) -> int:
    """Drain the pending-write queue once."""
    if not client.remote.configured:
        print("✗ No backend configured (set BELIEFSYNC_BACKEND_URL)")
        return 1

    pending = len(client.queue)
    if pending == 0:
        print("✓ Nothing to sync")
        return 0

    result = await client.scheduler.process_queue()
    print(f"Pushed: {result.pushed}  Failed: {result.failed}")
    for error in result.errors:
        print(f"  ✗ {error}")
    return 0 if result.success else 1


async def cmd_get(args, client: SyncClient) -> int:
    """Print a key's value after background reconciliation settles."""
    client.storage.get_item(args.key)
    await client.storage.wait_idle()
    value = client.local.read(args.key)
    if value is None:
        print(f"✗ {args.key}: not found", file=sys.stderr)
        return 1
    print(value)
    return 0


async def cmd_set(args, client: SyncClient) -> int:
    """Write a key locally and try to send it."""
    client.storage.set_item(args.key, args.value)
    await client.storage.wait_idle()
    if args.key in client.queue:
        print(f"✓ {args.key} saved locally (queued for sync)")
    else:
        print(f"✓ {args.key} saved and synced")
    return 0


async def cmd_rm(args, client: SyncClient) -> int:
    """Remove a key locally, from the queue and remotely."""
    client.storage.remove_item(args.key)
    await client.storage.wait_idle()
    print(f"✓ {args.key} removed")
    return 0


async def cmd_queue(args, client: SyncClient) -> int:
    """List queued writes."""
    items = client.queue.drain()
    if args.json:
        print(json.dumps([item.to_dict() for item in items], indent=2))
        return 0

    if not items:
        print("Queue is empty")
        return 0
    print(f"{len(items)} pending:")
    for item in items:
        print(f"  {item.name}  ({len(item.value)} bytes, queued {_format_ms(item.timestamp)})")
    return 0


COMMANDS = {
    "status": cmd_status,
    "sync": cmd_sync,
    "get": cmd_get,
    "set": cmd_set,
    "rm": cmd_rm,
    "queue": cmd_queue,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beliefsync", description="Offline-first state sync for the belief map"
    )
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_status = subparsers.add_parser("status", help="Show sync status")
    p_status.add_argument("--json", action="store_true", help="Output as JSON")

    subparsers.add_parser("sync", help="Push queued writes now")

    p_get = subparsers.add_parser("get", help="Read a key")
    p_get.add_argument("key")

    p_set = subparsers.add_parser("set", help="Write a key")
    p_set.add_argument("key")
    p_set.add_argument("value")

    p_rm = subparsers.add_parser("rm", help="Remove a key")
    p_rm.add_argument("key")

    p_queue = subparsers.add_parser("queue", help="List queued writes")
    p_queue.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


async def _run(args) -> int:
    async with SyncClient(get_settings()) as client:
        return await COMMANDS[args.command](args, client)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_beliefsync_logging(args.log_level or settings.log_level, data_dir=settings.data_dir)

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
