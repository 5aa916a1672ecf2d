#!/usr/bin/env python
"""Standalone demo for the cell-backed plan store.

This demo walks the plan lifecycle against an in-memory cell:
1. Creating a phased plan
2. Picking the next task and moving it through its statuses
3. Blocking and flagging tasks for review
4. Appending working notes
5. Retrying transient remote failures

Usage:
    python examples/plan_demo.py
"""

import asyncio

from sheetplan.config import Settings
from sheetplan.errors import InvalidTransitionError, ServerError, TaskNotFoundError
from sheetplan.logging import configure_logging
from sheetplan.planning import STATUS_ICONS, PhaseInput, PlanStore, TaskUpdate
from sheetplan.remote import MemoryCellTransport, ResilientCellClient, RetryConfig


# =============================================================================
# Helpers
# =============================================================================


class FlakyTransport(MemoryCellTransport):
    """Memory transport whose first few calls fail with 503."""

    def __init__(self, failures: int):
        super().__init__()
        self.remaining_failures = failures

    async def get_cell(self, ref: str) -> str:
        if self.remaining_failures:
            self.remaining_failures -= 1
            raise ServerError("Service unavailable", status=503)
        return await super().get_cell(ref)


async def no_sleep(delay: float) -> None:
    print(f"    (would sleep {delay:.1f}s before retrying)")


async def print_plan(store: PlanStore) -> None:
    plan = await store.get_plan()
    for line in plan.to_display().split("\n"):
        print(f"    {line}")


# =============================================================================
# Demo Functions
# =============================================================================


async def demo_lifecycle(store: PlanStore):
    """Demo creating a plan and working through tasks."""
    print("\n" + "=" * 60)
    print("Plan Lifecycle Demo")
    print("=" * 60)

    await store.create_plan(
        "Q3 Budget",
        "Reconcile the Q3 budget sheet",
        [
            PhaseInput("Read", ["List sheets", "Read headers", "Fetch actuals"]),
            PhaseInput("Write", ["Fill totals", "Format summary"]),
        ],
    )
    print("  Created plan:")
    await print_plan(store)

    task = await store.get_next_task()
    print(f"\n  Next task: {task.step} {task.title}")
    await store.start_task(task.step)
    await store.complete_task(task.step)

    await store.start_task("1.2")
    await store.block_task("1.2", "Waiting for read access to Actuals")
    await store.update_task("2.1", TaskUpdate.review("Totals differ by rounding"))

    task = await store.get_next_task()
    print(f"  Next task after blocking 1.2: {task.step} {task.title}")

    print("\n  Review queue:")
    for task in await store.get_review_tasks():
        print(f"    {STATUS_ICONS[task.status]} {task.step} {task.title} ({task.review_note})")

    print("\n  Current plan:")
    await print_plan(store)
    print()


async def demo_errors(store: PlanStore):
    """Demo domain errors and their fix hints."""
    print("\n" + "=" * 60)
    print("Domain Errors Demo")
    print("=" * 60)

    try:
        await store.update_task("9.9", TaskUpdate.doing())
    except TaskNotFoundError as e:
        print(f"  {e.message}")
        print(f"    fix: {e.fix}")

    try:
        await store.complete_task("2.2")
    except InvalidTransitionError as e:
        print(f"  {e.message}")
        print(f"    fix: {e.fix}")
    print()


async def demo_notes(store: PlanStore):
    """Demo appending working memory to the Notes section."""
    print("\n" + "=" * 60)
    print("Notes Demo")
    print("=" * 60)

    await store.append_notes("currency: EUR")
    await store.append_notes("rows: 40")

    plan = await store.get_plan()
    print("  Notes section:")
    for line in plan.notes.split("\n"):
        print(f"    {line}")
    print(f"\n  Progress: {plan.progress()}")
    print()


async def demo_retry():
    """Demo transient failures being retried."""
    print("\n" + "=" * 60)
    print("Retry Demo")
    print("=" * 60)

    transport = FlakyTransport(failures=2)
    client = ResilientCellClient(transport, RetryConfig(max_attempts=3), sleep=no_sleep)
    store = PlanStore(client)

    print("  Reading a plan through two 503 responses:")
    await store.init_default_plan()
    task = await store.get_next_task()
    print(f"  Recovered; next task is {task.step} {task.title}")
    print()


async def main():
    """Run all demos."""
    configure_logging(Settings(transport="memory", log_level="warning"))

    print("\n" + "#" * 60)
    print("#  Sheet Plan Demo")
    print("#" * 60)

    store = PlanStore.from_settings(Settings(transport="memory"))

    await demo_lifecycle(store)
    await demo_errors(store)
    await demo_notes(store)
    await demo_retry()

    print("\n" + "#" * 60)
    print("#  Demo Complete!")
    print("#" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
