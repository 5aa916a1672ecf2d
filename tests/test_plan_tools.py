"""Tests for agent-facing plan tools."""

from contextlib import contextmanager

import pytest

from conftest import PLAN_CELL, FlakyTransport

from sheetplan.errors import TRY_AGAIN_LATER, PermissionDeniedError, ServerError
from sheetplan.planning import PlanStore
from sheetplan.remote import ResilientCellClient, RetryConfig
from sheetplan.tools import get_context_plan_store, plan_tools, set_context_plan_store
from sheetplan.tools.plan_tools import error_kind

PHASES = [
    {"name": "Read", "steps": ["List sheets", "Read headers"]},
    {"name": "Write", "steps": ["Fill totals"]},
]


@contextmanager
def using_store(store: PlanStore):
    """Install ``store`` as the active plan store for the block."""
    set_context_plan_store(store)
    try:
        yield store
    finally:
        set_context_plan_store(None)


def failing_store(failures, sleeper) -> PlanStore:
    transport = FlakyTransport(failures, cells={PLAN_CELL: "# Plan: X\n### Phase 1: A\n- [ ] 1.1 a"})
    return PlanStore(ResilientCellClient(transport, RetryConfig(max_attempts=2), sleep=sleeper))


class TestContext:
    @pytest.mark.asyncio
    async def test_no_store(self):
        assert get_context_plan_store() is None
        result = await plan_tools.get_plan()
        assert result == {"success": False, "error": "Plan store not available"}

    def test_guard_keeps_tool_identity(self):
        assert plan_tools.update_task.__name__ == "update_task"
        assert "blocked" in plan_tools.update_task.__doc__


class TestPlanTools:
    @pytest.mark.asyncio
    async def test_get_plan_when_empty(self, store: PlanStore):
        with using_store(store):
            result = await plan_tools.get_plan()

        assert result["success"] is True
        assert result["exists"] is False

    @pytest.mark.asyncio
    async def test_create_and_get(self, store: PlanStore):
        with using_store(store):
            created = await plan_tools.create_plan("Budget", "Reconcile Q3", PHASES)
            result = await plan_tools.get_plan()

        assert created["success"] is True
        assert created["phase_count"] == 2
        assert created["task_count"] == 3
        assert result["plan"]["title"] == "Budget"
        assert result["plan"]["progress"]["todo"] == 3
        assert "☐ 1.1 List sheets" in result["display"]

    @pytest.mark.asyncio
    async def test_invalid_phases(self, store: PlanStore):
        with using_store(store):
            result = await plan_tools.create_plan("T", "G", [{"steps": ["a"]}])

        assert result["success"] is False
        assert result["error_kind"] == "plan"

    @pytest.mark.asyncio
    async def test_next_task_and_update(self, store: PlanStore):
        with using_store(store):
            await plan_tools.create_plan("T", "G", PHASES)
            first = await plan_tools.get_next_task()
            update = await plan_tools.update_task("1.1", "blocked", reason="Need write access")
            second = await plan_tools.get_next_task()

        assert first["task"]["step"] == "1.1"
        assert update == {
            "success": True,
            "step": "1.1",
            "status": "blocked",
            "message": "Task 1.1 updated to blocked",
        }
        assert second["task"]["step"] == "1.2"

    @pytest.mark.asyncio
    async def test_review_tasks(self, store: PlanStore):
        with using_store(store):
            await plan_tools.create_plan("T", "G", PHASES)
            await plan_tools.update_task("2.1", "review", note="Check totals")
            result = await plan_tools.get_review_tasks()

        assert result["count"] == 1
        assert result["tasks"][0]["review_note"] == "Check totals"

    @pytest.mark.asyncio
    async def test_unknown_step(self, store: PlanStore):
        with using_store(store):
            await plan_tools.create_plan("T", "G", PHASES)
            result = await plan_tools.update_task("9.9", "doing")

        assert result["success"] is False
        assert result["error_kind"] == "plan"
        assert result["code"] == "TASK_NOT_FOUND"
        assert result["available_steps"] == ["1.1", "1.2", "2.1"]

    @pytest.mark.asyncio
    async def test_invalid_status(self, store: PlanStore):
        with using_store(store):
            await plan_tools.create_plan("T", "G", PHASES)
            bad_status = await plan_tools.update_task("1.1", "finished")
            no_reason = await plan_tools.update_task("1.1", "blocked")

        assert bad_status["code"] == "INVALID_UPDATE"
        assert no_reason["code"] == "INVALID_UPDATE"
        assert no_reason["error_kind"] == "plan"

    @pytest.mark.asyncio
    async def test_append_notes(self, store: PlanStore):
        with using_store(store):
            missing = await plan_tools.append_notes("k: v")
            await plan_tools.init_plan()
            added = await plan_tools.append_notes("k: v")
            plan = await plan_tools.get_plan()

        assert missing["code"] == "PLAN_NOT_FOUND"
        assert added["success"] is True
        assert plan["plan"]["notes"] == "k: v"

    @pytest.mark.asyncio
    async def test_init_plan(self, store: PlanStore):
        with using_store(store):
            first = await plan_tools.init_plan()
            second = await plan_tools.init_plan()

        assert first["created"] is True
        assert second["created"] is False


class TestRemoteErrors:
    @pytest.mark.asyncio
    async def test_transient_failure_says_retry_later(self, sleeper):
        store = failing_store([ServerError("down", status=503) for _ in range(2)], sleeper)

        with using_store(store):
            result = await plan_tools.get_next_task()

        assert result["success"] is False
        assert result["error_kind"] == "retry_later"
        assert result["fix"] == TRY_AGAIN_LATER

    @pytest.mark.asyncio
    async def test_permission_failure_says_check_access(self, sleeper):
        store = failing_store([PermissionDeniedError("forbidden", status=403)], sleeper)

        with using_store(store):
            result = await plan_tools.update_task("1.1", "doing")

        assert result["error_kind"] == "check_access"
        assert "shared" in result["fix"]

    def test_error_kind(self):
        assert error_kind(ServerError("x", status=500)) == "retry_later"
        assert error_kind(PermissionDeniedError("x", status=403)) == "check_access"
