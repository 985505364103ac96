#!/usr/bin/env python3
"""Reactive DB Live Demo Driver

Runs a small superheroes workload against a reactive collection and
prints every batch of changes the subscriber receives.

Usage:
    python demo/reactive_demo_driver.py --notify-delay-ms 200 --step-delay-ms 500
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from reactive_db import Change, ReactiveConfig, ReactiveDatabase


class ChangePrinter:
    """Watcher that prints each delivered batch."""

    def __init__(self) -> None:
        self.batches = 0

    def on_changes(self, changes: list[Change]) -> None:
        self.batches += 1
        print(f"Batch {self.batches}: {len(changes)} documents created, updated or removed")
        for change in changes:
            print(
                f"  [{change.collection}] _id {change.document_id!r} "
                f"marked with operation type {change.operation_type.value!r}"
            )
            if change.full_document is not None:
                print(f"    New content: {change.full_document}")


async def run_demo(args: argparse.Namespace) -> None:
    """Run the demo workload."""
    db = ReactiveDatabase(ReactiveConfig(notify_delay_ms=args.notify_delay_ms))
    await db.connect()

    heroes = db.get_collection("superheroes")
    printer = ChangePrinter()
    heroes.subscribe(printer, printer.on_changes)

    step = args.step_delay_ms / 1000.0

    # Both inserts fall into one debounce window
    await heroes.insert_one({"firstname": "Steve", "lastname": "ROGERS", "hasSuperPower": True})
    await heroes.insert_one({"firstname": "Peter", "lastname": "PARKER", "hasSuperPower": True})
    await asyncio.sleep(step)

    await heroes.insert_many([
        {"firstname": "Tony", "lastname": "STARK", "hasSuperPower": False},
        {"firstname": "Bruce", "lastname": "BANNER", "hasSuperPower": True},
    ])
    await asyncio.sleep(step)

    await heroes.update_many({"hasSuperPower": False}, {"$set": {"isLuckyGuy": True}})
    await asyncio.sleep(step)

    await heroes.update_one({"hasSuperPower": True}, {"$set": {"isLuckyGuy": "tooooooooot"}})
    await asyncio.sleep(step)

    await heroes.remove_one({"hasSuperPower": True})
    await asyncio.sleep(step)

    await heroes.remove({})
    await asyncio.sleep(step)

    print("Collections:")
    for name in db.show_collections():
        print(f"  - {name}")
    print(f"Received {printer.batches} batches")
    db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Reactive DB live demo")
    parser.add_argument("--notify-delay-ms", type=int, default=200, help="Debounce window")
    parser.add_argument("--step-delay-ms", type=int, default=500, help="Pause between workload steps")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(run_demo(args))


if __name__ == "__main__":
    main()
