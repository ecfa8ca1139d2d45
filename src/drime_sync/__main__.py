# Command-line entry point
#
# Thin driver over SyncEngine.  Every command opens the local store from
# settings (see settings.py / .env), runs one engine operation and prints
# the outcome.  `autosync` keeps running until interrupted.

import argparse
import asyncio
import logging
import sys

from . import __version__
from .core.audit_log import AuditLogger, set_audit_logger
from .errors import SyncError
from .settings import load_settings
from .sync.engine import SyncEngine


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drime-sync",
        description="Encrypted backup and restore of local app state to Drime",
    )
    parser.add_argument("--version", action="version", version=f"drime-sync v{__version__}")
    parser.add_argument("--env-file", default=None, help="Read settings from this .env file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    configure = sub.add_parser("configure", help="Save API token and passphrase, test connection")
    configure.add_argument("--token", required=True)
    configure.add_argument("--passphrase", required=True)

    sub.add_parser("status", help="Show configuration and last sync")
    sub.add_parser("backup", help="Upload a new encrypted backup")
    sub.add_parser("list", help="List backups, newest first")

    restore = sub.add_parser("restore", help="Restore local state from a backup")
    restore.add_argument("backup_id")

    delete = sub.add_parser("delete", help="Delete a backup")
    delete.add_argument("backup_id")

    autosync = sub.add_parser("autosync", help="Back up periodically until interrupted")
    autosync.add_argument("--interval", type=int, default=None, help="Minutes between backups")

    sub.add_parser("clear", help="Stop auto-sync and forget stored configuration")
    return parser


async def _run(engine: SyncEngine, args) -> int:
    if args.command == "configure":
        await engine.initialize(args.token, args.passphrase)
        print("Connected. Configuration saved.")
    elif args.command == "status":
        for key, value in engine.get_status().items():
            print(f"{key:18} {value}")
    elif args.command == "backup":
        result = await engine.backup()
        print(f"Uploaded {result.filename} (id={result.artifact_id})")
    elif args.command == "list":
        backups = await engine.list_backups()
        if not backups:
            print("No backups found.")
        for b in backups:
            print(f"{b.id:>12}  {b.created_at or '-':32}  {b.size_bytes:>10}  {b.name}")
    elif args.command == "restore":
        result = await engine.restore(args.backup_id)
        print(f"Restored {len(result.sections)} section(s): {', '.join(result.sections)}")
    elif args.command == "delete":
        await engine.delete_backup(args.backup_id)
        print(f"Deleted {args.backup_id}")
    elif args.command == "autosync":
        await engine.start_auto_sync(args.interval)
        print("Auto-sync running. Press Ctrl+C to stop.")
        try:
            await asyncio.Event().wait()
        finally:
            await engine.stop_auto_sync()
    elif args.command == "clear":
        await engine.clear_config()
        print("Configuration cleared.")
    return 0


async def _main_async(args) -> int:
    settings = load_settings(args.env_file)
    set_audit_logger(AuditLogger(settings.audit_log_dir))
    async with SyncEngine.from_settings(
        settings, on_error=lambda exc: print(f"Auto-sync failed: {exc}", file=sys.stderr)
    ) as engine:
        return await _run(engine, args)


def main(argv=None) -> int:
    """Main entry point for drime-sync."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_main_async(args))
    except KeyboardInterrupt:
        return 130
    except SyncError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
