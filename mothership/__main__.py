# Mothership Module - Command Line
# -*- coding: utf-8 -*-
"""
 Command line interface for the mothership service

 Usage:
    python -m mothership serve [-host HOST] [-port PORT]
    python -m mothership sync [-format json|text]
    python -m mothership version

 Configuration is read from the environment (see mothership/config.py).
"""

import argparse
import asyncio
import json
import sys

# Modules
from mothership import version, set_debug


def build_parser():
    p = argparse.ArgumentParser(prog="Mothership", description=f"Mothership v{version}")
    subparsers = p.add_subparsers(dest="command", title='commands (run <command> -h to see usage information)',
                                  required=True)

    serve_args = subparsers.add_parser("serve", help='Run the HTTP control surface and polling loop')
    serve_args.add_argument("-host", type=str, default=None, help="Bind address [Default=BIND_ADDRESS]")
    serve_args.add_argument("-port", type=int, default=None, help="Port [Default=PORT]")

    sync_args = subparsers.add_parser("sync", help='Run one sync cycle and print the resulting state')
    sync_args.add_argument("-format", type=str, default="json", choices=["json", "text"],
                           help="Output format: json or text")

    subparsers.add_parser("version", help='Print version information')

    # Add a global debug flag
    p.add_argument("-debug", action="store_true", default=False, help="Enable debug output")
    return p


async def run_sync(settings):
    from mothership.core.hive_manager import hive_manager
    await hive_manager.initialize(settings, start_polling=False)
    try:
        return await hive_manager.sync_once()
    finally:
        await hive_manager.shutdown()


def print_text(snapshot):
    summary = snapshot.global_summary
    print(f"Average light: {summary.avg_light}")
    print(f"Low light:     {summary.low_light}")
    print(f"Queen:         {summary.queen_thing_id} ({summary.reason})")
    print("")
    for thing_id, bee in snapshot.bees.items():
        error = f"  ERROR: {bee.last_error}" if bee.last_error else ""
        print(f"  {thing_id:<40} ldr={bee.ldr_value}{error}")


def main(argv=None):
    p = build_parser()
    if argv is None and len(sys.argv) == 1:
        p.print_help(sys.stderr)
        sys.exit(1)
    args = p.parse_args(argv)

    if args.debug:
        set_debug(True)

    if args.command == "version":
        print(f"Mothership v{version}")
        return 0

    from mothership.config import settings

    if args.command == "serve":
        import uvicorn
        uvicorn.run(
            "mothership.main:app",
            host=args.host or settings.server_host,
            port=args.port or settings.server_port,
        )
        return 0

    if args.command == "sync":
        from mothership.exceptions import SyncError
        if not settings.thing_ids:
            print("ERROR: No things configured - set THING_IDS", file=sys.stderr)
            return 1
        try:
            snapshot = asyncio.run(run_sync(settings))
        except SyncError as e:
            print(f"ERROR: Sync failed: {e}", file=sys.stderr)
            return 1
        if args.format == "json":
            print(json.dumps(snapshot.model_dump(mode="json", by_alias=True), indent=4))
        else:
            print_text(snapshot)
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
