#!/usr/bin/env python3
"""Live stream probe for a Steem node.

Connects to the node from ``STEEM_URL`` (or ``--url``), prints the current
chain state, then follows the head block and prints every new block number,
transaction or operation until the duration elapses or Ctrl+C.

Use this to check a node's latency and how often the head moves.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pysteem import (  # noqa: E402
    SteemClient,
    SteemConfig,
    SteemError,
    SteemResponseDroppedError,
    SteemStreamError,
    Subscription,
)

_LOG = logging.getLogger("stream_probe")


@dataclass
class ProbeStats:
    started_at: float
    items: int = 0
    dropped: int = 0
    last_item_at: float | None = None

    def on_item(self, now: float) -> float | None:
        previous = self.last_item_at
        self.items += 1
        self.last_item_at = now
        return None if previous is None else now - previous


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Follow the head of a Steem node.")
    parser.add_argument("--url", default=None, help="WebSocket URL (default: STEEM_URL or steemit.com).")
    parser.add_argument(
        "--level",
        choices=("blocks", "transactions", "operations", "numbers"),
        default="operations",
        help="Pipeline layer to print.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument("--interval", type=float, default=None, help="Head poll interval in seconds.")
    parser.add_argument("--json", action="store_true", help="Print the raw node payload of each item.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


def _describe(item: Any, as_json: bool) -> str:
    if isinstance(item, int):
        return f"block_number={item}"
    raw = getattr(item, "raw", None)
    if as_json and raw is not None:
        return json.dumps(raw, ensure_ascii=False, sort_keys=True, default=str)
    name = getattr(item, "name", None)
    if name is not None:
        return f"op={name}"
    transactions = getattr(item, "transactions", None)
    if transactions is not None:
        return f"block witness={item.witness} txs={len(transactions)}"
    return f"tx ref_block_num={item.ref_block_num} ops={len(item.operations)}"


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s : {runtime:.1f}")
    print(f"[probe]   items     : {stats.items}")
    print(f"[probe]   dropped   : {stats.dropped}")


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.url:
        overrides["url"] = args.url
    config = SteemConfig.from_env(**overrides)
    stats = ProbeStats(started_at=time.time())
    stopped = asyncio.Event()

    def on_dropped(error: SteemResponseDroppedError) -> None:
        stats.dropped += 1
        _LOG.debug("Dropped response: %s", error)

    def on_item(item: Any) -> None:
        now = time.time()
        delta = stats.on_item(now)
        gap_text = "first" if delta is None else f"{delta:.1f}s"
        print(f"[probe] #{stats.items} gap={gap_text} {_describe(item, args.json)}")

    def on_error(error: SteemStreamError) -> None:
        print(f"[probe] Stream failed at {error.layer}: {error}", file=sys.stderr)
        stopped.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stopped.set)

    async with SteemClient(config, on_dropped=on_dropped) as client:
        try:
            props = await client.get_dynamic_global_properties()
        except SteemError as exc:
            print(f"[probe] Connect failed: {exc}", file=sys.stderr)
            return 2
        print(f"[probe] Connected to {config.url}")
        print(f"[probe]   head_block : {props.head_block_number}")
        print(f"[probe]   time       : {props.time}")
        print(f"[probe]   api_ids    : {client.api_ids}")

        stream = {
            "numbers": client.stream_block_number,
            "blocks": client.stream_blocks,
            "transactions": client.stream_transactions,
            "operations": client.stream_operations,
        }[args.level]
        subscription: Subscription = stream(on_item, on_error, interval=args.interval)
        try:
            if args.duration > 0:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(stopped.wait(), args.duration)
            else:
                await stopped.wait()
        finally:
            subscription.cancel()

    _print_summary(stats)
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(_main())
