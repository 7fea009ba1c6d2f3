"""Application entry point — wires services and runs a CLI command.

Usage:
    python main.py [--config-dir DIR] [--verbose] <command> ...

Examples:
    python main.py backup Sandbox/MySave
    python main.py list Sandbox/MySave
    python main.py restore Sandbox/MySave MySave_2024-12-28_14-30-45
    python main.py undo-list Sandbox/MySave
    python main.py watch Sandbox/MySave Survival/Other --interval 600
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path

from loguru import logger

from savekeeper.config import get_config
from savekeeper.context import create_context
from savekeeper.errors import SaveKeeperError
from savekeeper.logger import setup_logger
from savekeeper.service import SaveKeeperService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="savekeeper", description="Game save backup manager")
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding config.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("backup", help="Back up a save now")
    p.add_argument("save")

    p = sub.add_parser("list", help="List backups of a save")
    p.add_argument("save")

    p = sub.add_parser("delete", help="Delete one backup")
    p.add_argument("save")
    p.add_argument("backup")

    p = sub.add_parser("restore", help="Restore a save from a backup")
    p.add_argument("save")
    p.add_argument("backup")

    p = sub.add_parser("undo-list", help="List undo snapshots of a save")
    p.add_argument("save")

    p = sub.add_parser("undo-restore", help="Restore a save from an undo snapshot")
    p.add_argument("save")
    p.add_argument("snapshot")

    p = sub.add_parser("undo-delete", help="Delete one undo snapshot")
    p.add_argument("save")
    p.add_argument("snapshot")

    p = sub.add_parser("watch", help="Run auto backup in the foreground until interrupted")
    p.add_argument("saves", nargs="+")
    p.add_argument("--interval", type=int, default=None, help="Seconds between backups")

    return parser


def _print(data: object) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def _watch(service: SaveKeeperService, saves: list[str], interval: int | None) -> None:
    if interval is not None:
        service.set_auto_backup_interval(interval)
    for save in saves:
        service.enable_auto_backup(save)

    done = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())
    signal.signal(signal.SIGTERM, lambda *_: done.set())

    service.start_auto_backup()
    logger.info(f"Watching {len(saves)} save(s), press Ctrl+C to stop")
    done.wait()
    service.stop_auto_backup()


def run(args: argparse.Namespace, service: SaveKeeperService) -> None:
    cmd = args.command
    if cmd == "backup":
        _print(service.create_backup(args.save))
    elif cmd == "list":
        _print(service.list_backups(args.save))
    elif cmd == "delete":
        service.delete_backup(args.save, args.backup)
    elif cmd == "restore":
        _print(service.restore_backup(args.save, args.backup))
    elif cmd == "undo-list":
        _print(service.list_undo_snapshots(args.save))
    elif cmd == "undo-restore":
        _print(service.restore_from_undo_snapshot(args.save, args.snapshot))
    elif cmd == "undo-delete":
        service.delete_undo_snapshot(args.save, args.snapshot)
    elif cmd == "watch":
        _watch(service, args.saves, args.interval)


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    config = get_config(args.config_dir)

    # Logger
    setup_logger(config.data_dir / "logs", "DEBUG" if args.verbose else config.log_level)

    # Wire services
    service = SaveKeeperService(create_context(config))
    try:
        run(args, service)
    except SaveKeeperError as e:
        logger.error(str(e))
        return 1
    finally:
        service.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
