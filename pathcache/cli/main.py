from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from pathcache.cache import Cache
from pathcache.settings import get_settings


DESCRIPTION = """
Inspect and maintain a pathcache storage directory.
"""

EXAMPLES = """Examples:
  # Store a string for ten minutes
  pathcache set report:today "done" --ttl 600

  # Count live keys
  pathcache exists report:today report:yesterday

  # Free a lock left behind by a crashed worker
  pathcache --root /mnt/shared/cache unlock nightly-import

  # Remove expired entries
  pathcache purge
"""


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pathcache",
        description=DESCRIPTION,
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--root",
        type=Path,
        help="Cache directory (defaults to PATHCACHE_ROOT)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug messages",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    get_cmd = commands.add_parser("get", help="Print the value stored under a key")
    get_cmd.add_argument("key")
    get_cmd.add_argument("--default", help="Value printed when the key is missing")

    set_cmd = commands.add_parser("set", help="Store a string value")
    set_cmd.add_argument("key")
    set_cmd.add_argument("value")
    set_cmd.add_argument(
        "--ttl", type=float, default=0, help="Seconds until expiry (0 never expires)"
    )
    set_cmd.add_argument(
        "--nx",
        action="store_true",
        help="Only store the value if the key holds none",
    )

    delete_cmd = commands.add_parser("delete", aliases=["del"], help="Remove keys")
    delete_cmd.add_argument("keys", nargs="+")

    exists_cmd = commands.add_parser("exists", help="Count keys holding a value")
    exists_cmd.add_argument("keys", nargs="+")

    inspect_cmd = commands.add_parser("inspect", help="Show a key's entry and expiry")
    inspect_cmd.add_argument("key")

    unlock_cmd = commands.add_parser("unlock", help="Forcibly release a named lock")
    unlock_cmd.add_argument("name")

    commands.add_parser("purge", help="Delete expired and corrupt entries")
    return parser


def build_cache(args: argparse.Namespace) -> Cache:
    settings = get_settings()
    if args.root is not None:
        settings = settings.__class__(
            **{
                **settings.__dict__,
                "root": args.root,
            }
        )
    # The CLI is an operator tool, so lock ownership is never enforced here.
    return Cache(settings.root, lock_timeout=settings.lock_timeout)


def run(args: argparse.Namespace) -> int:
    cache = build_cache(args)
    command = args.command

    if command == "get":
        value = cache.get(args.key, args.default)
        if value is None:
            print(f"Key not found: {args.key}", file=sys.stderr)
            return 1
        print(value)
        return 0

    if command == "set":
        stored = (
            cache.setnx(args.key, args.value, args.ttl)
            if args.nx
            else cache.set(args.key, args.value, args.ttl)
        )
        if not stored:
            print(f"Value not stored for {args.key}", file=sys.stderr)
            return 1
        return 0

    if command in {"delete", "del"}:
        failed = [key for key in args.keys if not cache.delete(key)]
        for key in failed:
            print(f"Failed to delete {key}", file=sys.stderr)
        return 1 if failed else 0

    if command == "exists":
        print(cache.exists(*args.keys))
        return 0

    if command == "inspect":
        entry = cache.entry(args.key)
        if entry is None:
            print(f"Key not found: {args.key}", file=sys.stderr)
            return 1
        now = time.time()
        remaining = entry.ttl_remaining(now)
        print(f"path: {cache.store.path(args.key)}")
        print(f"value: {entry.value!r}")
        if remaining is None:
            print("expires: never")
        else:
            status = "expired" if entry.is_expired(now) else f"in {remaining:.1f}s"
            print(f"expires: {entry.expires_at:.3f} ({status})")
        return 0

    if command == "unlock":
        cache.unlock(args.name)
        return 0

    if command == "purge":
        print(f"Removed {cache.purge_expired()} entries")
        return 0

    print(f"Unknown command: {command}", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return run(args)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
