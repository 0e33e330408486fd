"""hydrator.cli

Command line interface for inspecting a hydrator store.

Design constraints:
- argparse-based.
- Lazy imports: parsing `--help` does not open a database.
- Documents are printed as JSON; `verify` exits non-zero on any corrupt key.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hydrator.core.config import HydrationConfig
    from hydrator.core.store import StateStore


@dataclass(frozen=True)
class CliContext:
    config: HydrationConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hydrator",
        description="Inspect and maintain persisted component state.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit.",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding the store (default: $HYDRATOR_DATA_DIR or ./data).",
    )

    sub = parser.add_subparsers(dest="command")

    p_keys = sub.add_parser("keys", help="List stored keys")
    p_keys.add_argument("--json", action="store_true", help="Machine-readable output")

    p_show = sub.add_parser("show", help="Print the document stored under KEY")
    p_show.add_argument("key")

    p_verify = sub.add_parser("verify", help="Check record integrity (all keys when KEY is omitted)")
    p_verify.add_argument("key", nargs="?", default=None)
    p_verify.add_argument("--json", action="store_true", help="Machine-readable output")

    p_delete = sub.add_parser("delete", help="Delete one record")
    p_delete.add_argument("key")

    p_clear = sub.add_parser("clear", help="Delete every record")
    p_clear.add_argument("--yes", action="store_true", help="Confirm deletion")

    sub.add_parser("keygen", help="Print a fresh encryption key")

    return parser


def _print_version() -> None:
    from hydrator import __version__

    print(f"hydrator v{__version__}")


def _load_config(args: argparse.Namespace) -> HydrationConfig:
    from hydrator.core.config import HydrationConfig

    cfg = HydrationConfig()
    if args.data_dir:
        cfg.data_dir = Path(args.data_dir)
    return cfg


def _open(ctx: CliContext) -> StateStore:
    from hydrator.core.store import open_store

    return open_store(ctx.config)


def _cmd_keys(ctx: CliContext, args: argparse.Namespace) -> int:
    store = _open(ctx)
    try:
        keys = sorted(store.keys())
    finally:
        store.close()

    if args.json:
        print(json.dumps({"keys": keys}, indent=2, sort_keys=True))
        return 0
    for key in keys:
        print(key)
    return 0


def _cmd_show(ctx: CliContext, args: argparse.Namespace) -> int:
    from hydrator.core.exceptions import HydratorError

    store = _open(ctx)
    try:
        document = store.get(args.key, decompress=True, decrypt=True)
    except HydratorError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    if document is None:
        print(f"error: key not found: {args.key}", file=sys.stderr)
        return 1
    print(json.dumps(document, indent=2, sort_keys=True))
    return 0


def _cmd_verify(ctx: CliContext, args: argparse.Namespace) -> int:
    store = _open(ctx)
    try:
        keys = [args.key] if args.key else sorted(store.keys())
        results = {key: store.verify(key) for key in keys}
    finally:
        store.close()

    if args.json:
        print(json.dumps({"results": results}, indent=2, sort_keys=True))
    else:
        for key, status in results.items():
            print(f"{status:<8} {key}")

    bad = {"corrupt", "missing"}
    return 1 if any(status in bad for status in results.values()) else 0


def _cmd_delete(ctx: CliContext, args: argparse.Namespace) -> int:
    store = _open(ctx)
    try:
        existed = args.key in store.keys()
        store.delete(args.key)
    finally:
        store.close()

    if not existed:
        print(f"error: key not found: {args.key}", file=sys.stderr)
        return 1
    print(f"deleted {args.key}")
    return 0


def _cmd_clear(ctx: CliContext, args: argparse.Namespace) -> int:
    if not args.yes:
        print("error: refusing to clear without --yes", file=sys.stderr)
        return 2

    store = _open(ctx)
    try:
        count = len(store.keys())
        store.clear()
    finally:
        store.close()
    print(f"cleared {count} records")
    return 0


def _cmd_keygen(ctx: CliContext, args: argparse.Namespace) -> int:
    from hydrator.security.cipher import generate_key

    print(generate_key())
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        _print_version()
        return 0

    if not args.command:
        parser.print_help()
        return 2

    cfg = _load_config(args)
    logging.basicConfig(
        level=os.getenv("HYDRATOR_LOG_LEVEL", cfg.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    ctx = CliContext(config=cfg)

    dispatch: dict[str, Callable[[CliContext, argparse.Namespace], int]] = {
        "keys": _cmd_keys,
        "show": _cmd_show,
        "verify": _cmd_verify,
        "delete": _cmd_delete,
        "clear": _cmd_clear,
        "keygen": _cmd_keygen,
    }

    fn = dispatch.get(str(args.command))
    if fn is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 2

    return int(fn(ctx, args))


if __name__ == "__main__":
    raise SystemExit(main())
