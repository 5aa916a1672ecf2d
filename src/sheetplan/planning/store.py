"""Plan store backed by a single spreadsheet cell.

Stores the plan markdown in one remote cell. Every call re-reads the cell
(no cache between calls), decodes it, applies at most one change, and
writes the full text back in the same call. All remote traffic goes
through a ResilientCellClient.

Only one agent is expected to write a given plan cell. Concurrent writers
get last-write-wins unless version checking is turned on, in which case a
write is refused with StaleWriteError when the cell changed since it was
read.

Example:
    >>> store = PlanStore(ResilientCellClient(MemoryCellTransport()))
    >>> await store.create_plan("Test", "Ship it", [PhaseInput("Build", ["Write code"])])
    >>> task = await store.get_next_task()
    >>> await store.update_task(task.step, TaskUpdate.doing())
"""

from __future__ import annotations

import asyncio
import functools
from datetime import date
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from sheetplan.errors import ConfigurationError, PlanNotFoundError, StaleWriteError
from sheetplan.logging import Loggers, log_context
from sheetplan.planning import state_machine
from sheetplan.planning.codec import (
    DEFAULT_PLAN_MARKDOWN,
    PLAN_MARKER,
    append_note_line,
    decode_plan,
    render_plan,
    utc_today,
)
from sheetplan.planning.models import (
    PhaseInput,
    Plan,
    Task,
    TaskUpdate,
    content_version,
)
from sheetplan.remote.resilience import ResilientCellClient
from sheetplan.remote.transport import CellTransport, MemoryCellTransport, SheetsCellTransport

if TYPE_CHECKING:
    from sheetplan.config import Settings

logger = Loggers.planning()


def _scoped(method):
    """Run a store method with the plan cell bound to the logging context."""

    @functools.wraps(method)
    async def wrapper(self: PlanStore, *args: Any, **kwargs: Any) -> Any:
        with log_context(
            plan_cell=self._plan_cell,
            spreadsheet_id=getattr(self._cells.transport, "spreadsheet_id", None),
        ):
            return await method(self, *args, **kwargs)

    return wrapper


class PlanStore:
    """Plan operations against the remote plan cell.

    Args:
        cells: Resilient client used for every read and write
        plan_cell: Cell holding the plan markdown
        marker_cell: Optional cell that must read "PLAN.md" for the plan to exist
        check_version: Re-read before every write and refuse stale writes
        today: Date source for completion stamps (UTC by default)
    """

    def __init__(
        self,
        cells: ResilientCellClient,
        plan_cell: str = "AGENTSCAPE!C6",
        marker_cell: str | None = None,
        check_version: bool = False,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._cells = cells
        self._plan_cell = plan_cell
        self._marker_cell = marker_cell
        self._check_version = check_version
        self._today = today

    @property
    def plan_cell(self) -> str:
        return self._plan_cell

    @property
    def cells(self) -> ResilientCellClient:
        return self._cells

    @classmethod
    def from_settings(
        cls,
        settings: "Settings | None" = None,
        transport: CellTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "PlanStore":
        """Build a store from settings.

        Args:
            settings: Settings to use (defaults to get_settings())
            transport: Transport override; otherwise chosen by settings.transport
            sleep: Backoff sleep function

        Raises:
            ConfigurationError: If the Sheets transport lacks a spreadsheet id
        """
        if settings is None:
            from sheetplan.config import get_settings

            settings = get_settings()

        if transport is None:
            if settings.transport == "memory":
                transport = MemoryCellTransport()
            else:
                if not settings.spreadsheet_id:
                    raise ConfigurationError("No spreadsheet configured for the Sheets transport")
                transport = SheetsCellTransport(
                    settings.spreadsheet_id,
                    token=settings.sheets_access_token,
                    base_url=settings.sheets_api_url,
                    timeout=settings.request_timeout,
                    value_input_option=settings.value_input_option,
                )

        return cls(
            ResilientCellClient.from_settings(transport, settings, sleep=sleep),
            plan_cell=settings.plan_cell,
            marker_cell=settings.plan_marker_cell,
            check_version=settings.check_version,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @_scoped
    async def get_plan(self) -> Plan | None:
        """Read and decode the current plan.

        Returns:
            The plan, or None if the cell is empty or the marker is missing.
        """
        if self._marker_cell is not None:
            marker = await self._cells.read(self._marker_cell)
            if marker.strip() != PLAN_MARKER:
                return None
        return decode_plan(await self._cells.read(self._plan_cell))

    @_scoped
    async def get_next_task(self) -> Task | None:
        """First todo task in phase order, or None."""
        plan = await self.get_plan()
        if plan is None:
            return None
        return state_machine.next_task(plan)

    @_scoped
    async def get_review_tasks(self) -> list[Task]:
        """All tasks with status review, in phase order."""
        plan = await self.get_plan()
        if plan is None:
            return []
        return state_machine.review_tasks(plan)

    # =========================================================================
    # Mutations
    # =========================================================================

    @_scoped
    async def create_plan(
        self,
        title: str,
        goal: str,
        phases: list[PhaseInput | dict[str, Any]],
    ) -> None:
        """Create a plan, replacing any existing one.

        Args:
            title: Plan title
            goal: One-sentence goal
            phases: Phases in order; steps are numbered from 1.1
        """
        phase_inputs = [p if isinstance(p, PhaseInput) else PhaseInput.from_dict(p) for p in phases]
        markdown = render_plan(title, goal, phase_inputs)

        if self._marker_cell is not None:
            await self._cells.write(self._marker_cell, PLAN_MARKER)
        await self._cells.write(self._plan_cell, markdown)

        logger.info(
            "plan_created",
            cell=self._plan_cell,
            title=title,
            phases=len(phase_inputs),
            tasks=sum(len(p.steps) for p in phase_inputs),
        )

    @_scoped
    async def init_default_plan(self) -> bool:
        """Write the starter plan if no plan exists yet.

        Returns:
            True if the starter plan was written, False if a plan already existed.
        """
        if await self.get_plan() is not None:
            return False
        if self._marker_cell is not None:
            await self._cells.write(self._marker_cell, PLAN_MARKER)
        await self._cells.write(self._plan_cell, DEFAULT_PLAN_MARKDOWN)
        logger.info("plan_created", cell=self._plan_cell, title="Getting Started", default=True)
        return True

    @_scoped
    async def update_task(
        self,
        step: str,
        update: TaskUpdate | dict[str, Any],
        expected_version: str | None = None,
    ) -> None:
        """Set a task's status, rewriting only that task's line.

        Any status may be written here, including skipping ``doing``; use
        the start/complete/block/flag helpers to enforce the diagram.

        Args:
            step: Step identifier (e.g. "1.1", "2.3")
            update: TaskUpdate or {"status": ..., "reason"/"note": ...}
            expected_version: Refuse the write unless the plan has this version

        Raises:
            PlanNotFoundError: If no plan exists
            TaskNotFoundError: If the step is not in the plan
            StaleWriteError: If version checking detects a concurrent change
        """
        await self._transition(step, update, expected_version, strict=False)

    @_scoped
    async def start_task(self, step: str, expected_version: str | None = None) -> None:
        """todo/blocked/review -> doing."""
        await self._transition(step, TaskUpdate.doing(), expected_version, strict=True)

    @_scoped
    async def complete_task(self, step: str, expected_version: str | None = None) -> None:
        """doing -> done."""
        await self._transition(step, TaskUpdate.done(), expected_version, strict=True)

    @_scoped
    async def block_task(self, step: str, reason: str, expected_version: str | None = None) -> None:
        """doing -> blocked, with a reason."""
        await self._transition(step, TaskUpdate.blocked(reason), expected_version, strict=True)

    @_scoped
    async def flag_review(self, step: str, note: str, expected_version: str | None = None) -> None:
        """doing -> review, with a note for the reviewer."""
        await self._transition(step, TaskUpdate.review(note), expected_version, strict=True)

    @_scoped
    async def append_notes(self, line: str, expected_version: str | None = None) -> None:
        """Append a line to the Notes section, creating it if needed.

        Raises:
            PlanNotFoundError: If no plan exists
        """
        plan = await self._require_plan()
        await self._write(append_note_line(plan.raw, line), plan, expected_version)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _require_plan(self) -> Plan:
        plan = await self.get_plan()
        if plan is None:
            raise PlanNotFoundError()
        return plan

    async def _transition(
        self,
        step: str,
        update: TaskUpdate | dict[str, Any],
        expected_version: str | None,
        strict: bool,
    ) -> None:
        if not isinstance(update, TaskUpdate):
            update = TaskUpdate.from_dict(update)

        plan = await self._require_plan()
        result = state_machine.apply_update(
            plan, step, update, today=self._today(), strict=strict
        )
        markdown = result.unwrap()
        await self._write(markdown, plan, expected_version)

        logger.info(
            "task_updated",
            step=step,
            previous=result.previous.value if result.previous else None,
            status=update.status.value,
        )

    async def _write(self, markdown: str, based_on: Plan, expected_version: str | None) -> None:
        if expected_version is not None and expected_version != based_on.version:
            self._reject(expected_version, based_on.version)

        if self._check_version:
            current = content_version(await self._cells.read(self._plan_cell))
            if current != based_on.version:
                self._reject(based_on.version, current)

        await self._cells.write(self._plan_cell, markdown)
        logger.info("plan_written", cell=self._plan_cell, bytes=len(markdown.encode("utf-8")))

    def _reject(self, expected: str, actual: str | None) -> None:
        logger.warning(
            "stale_write_rejected",
            cell=self._plan_cell,
            expected_version=expected,
            actual_version=actual,
        )
        raise StaleWriteError(expected, actual)

