"""
CLI entry point for multicache.

Usage:
    multicache [--store NAME] get KEY
    multicache put KEY VALUE [--minutes 60 | --forever]
    multicache increment KEY [--by 1]
    multicache decrement KEY [--by 1]
    multicache forget KEY
    multicache flush
    multicache tiers

Values are parsed as JSON when possible and stored as plain strings
otherwise.
"""

import argparse
import json
import sys
from typing import Any, List, Optional

from multicache.config import configure_logging
from multicache.manager import CacheManager, get_cache_manager
from multicache.tiered import TieredCache


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _emit(result: Any) -> None:
    print(json.dumps(result, indent=2, default=str))


def cmd_get(args, manager: CacheManager) -> int:
    _emit(manager.store(args.store).get(args.key))
    return 0


def cmd_put(args, manager: CacheManager) -> int:
    cache = manager.store(args.store)
    value = _parse_value(args.value)
    if args.forever:
        cache.forever(args.key, value)
    else:
        cache.put(args.key, value, args.minutes)
    return 0


def cmd_increment(args, manager: CacheManager) -> int:
    _emit(manager.store(args.store).increment(args.key, args.by))
    return 0


def cmd_decrement(args, manager: CacheManager) -> int:
    _emit(manager.store(args.store).decrement(args.key, args.by))
    return 0


def cmd_forget(args, manager: CacheManager) -> int:
    removed = manager.store(args.store).forget(args.key)
    _emit(removed)
    return 0 if removed else 1


def cmd_flush(args, manager: CacheManager) -> int:
    flushed = manager.store(args.store).flush()
    _emit(flushed)
    return 0 if flushed else 1


def cmd_tiers(args, manager: CacheManager) -> int:
    """Describe the store and, for tiered stores, each of its tiers."""
    name = args.store or manager.get_default_driver()
    store = manager.store(name).get_store()
    info = {"store": name, "type": type(store).__name__, "prefix": store.get_prefix()}
    if isinstance(store, TieredCache):
        info["tier_count"] = store.get_tier_count()
        info["tiers"] = store.get_tier_names()
    _emit(info)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multicache",
        description="multicache - tiered cache inspection and maintenance",
    )
    parser.add_argument("--store", default=None, help="Store name (default store if omitted)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # get
    p_get = subparsers.add_parser("get", help="Read a key through the tiers")
    p_get.add_argument("key")

    # put
    p_put = subparsers.add_parser("put", help="Write a key to every tier")
    p_put.add_argument("key")
    p_put.add_argument("value", help="JSON value, or a plain string")
    ttl = p_put.add_mutually_exclusive_group()
    ttl.add_argument("--minutes", type=float, default=60.0)
    ttl.add_argument("--forever", action="store_true", help="Store with no expiry")

    # counters
    for command in ("increment", "decrement"):
        p_counter = subparsers.add_parser(command, help=f"{command.capitalize()} a counter")
        p_counter.add_argument("key")
        p_counter.add_argument("--by", type=int, default=1)

    # forget
    p_forget = subparsers.add_parser("forget", help="Remove a key from every tier")
    p_forget.add_argument("key")

    # flush
    subparsers.add_parser("flush", help="Flush every tier")

    # tiers
    subparsers.add_parser("tiers", help="Describe the configured tiers")

    return parser


def main(argv: Optional[List[str]] = None, manager: Optional[CacheManager] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if manager is None:
        configure_logging()
        manager = get_cache_manager()

    commands = {
        "get": cmd_get,
        "put": cmd_put,
        "increment": cmd_increment,
        "decrement": cmd_decrement,
        "forget": cmd_forget,
        "flush": cmd_flush,
        "tiers": cmd_tiers,
    }
    return commands[args.command](args, manager)


if __name__ == "__main__":
    sys.exit(main())
