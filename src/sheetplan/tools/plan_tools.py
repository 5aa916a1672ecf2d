"""Plan tools for agent loops.

Thin wrappers over the active PlanStore. Each returns a result dict; the
error payload says what kind of failure occurred so the caller can react:

- "retry_later": transient remote failure after the retry budget
- "check_access": fatal remote failure (auth, sharing, bad reference)
- "plan": domain error (no plan, unknown step, invalid transition)

Example:
    from sheetplan.tools import plan_tools, set_context_plan_store

    set_context_plan_store(store)
    await plan_tools.update_task("1.1", "blocked", reason="Need write access")
"""

from typing import Any

from sheetplan.errors import PlanError, RemoteError, SheetPlanError
from sheetplan.logging import Loggers
from sheetplan.planning.models import PhaseInput, TaskUpdate
from sheetplan.tools import get_context_plan_store, require_context

logger = Loggers.tools()

_NO_STORE = "Plan store not available"


def error_kind(error: SheetPlanError) -> str:
    """Classify an error for presentation."""
    if isinstance(error, PlanError):
        return "plan"
    if isinstance(error, RemoteError) and error.transient:
        return "retry_later"
    return "check_access"


def _failure(error: SheetPlanError) -> dict[str, Any]:
    kind = error_kind(error)
    logger.warning("plan_tool_failed", kind=kind, code=error.code, error=error.message)
    result: dict[str, Any] = {
        "success": False,
        "error": error.message,
        "error_kind": kind,
        "code": error.code,
        "fix": error.fix,
    }
    available = getattr(error, "available_steps", None)
    if available is not None:
        result["available_steps"] = available
    return result


@require_context(get_context_plan_store, _NO_STORE)
async def get_plan() -> dict[str, Any]:
    """Get the current plan with progress and a formatted display.

    Returns:
        A dict with the plan, or ``exists: False`` if there is none.
    """
    try:
        plan = await get_context_plan_store().get_plan()
    except SheetPlanError as e:
        return _failure(e)

    if plan is None:
        return {"success": True, "exists": False, "message": "No plan yet. Create one first."}

    return {
        "success": True,
        "exists": True,
        "plan": plan.to_dict(),
        "display": plan.to_display(),
    }


@require_context(get_context_plan_store, _NO_STORE)
async def get_next_task() -> dict[str, Any]:
    """Get the next todo task (blocked and review tasks are skipped)."""
    try:
        task = await get_context_plan_store().get_next_task()
    except SheetPlanError as e:
        return _failure(e)

    if task is None:
        return {"success": True, "task": None, "message": "No todo tasks remain"}
    return {"success": True, "task": task.to_dict()}


@require_context(get_context_plan_store, _NO_STORE)
async def get_review_tasks() -> dict[str, Any]:
    """Get all tasks waiting for review."""
    try:
        tasks = await get_context_plan_store().get_review_tasks()
    except SheetPlanError as e:
        return _failure(e)

    return {"success": True, "tasks": [t.to_dict() for t in tasks], "count": len(tasks)}


@require_context(get_context_plan_store, _NO_STORE)
async def create_plan(title: str, goal: str, phases: list[dict[str, Any]]) -> dict[str, Any]:
    """Create a new plan, replacing any existing one.

    Args:
        title: Plan title.
        goal: One-sentence goal.
        phases: List of {"name": str, "steps": [str, ...]}.

    Returns:
        A dict with the number of phases and tasks created.

    Example:
        >>> await create_plan("Budget", "Reconcile Q3", [
        ...     {"name": "Read", "steps": ["List sheets", "Read headers"]},
        ...     {"name": "Write", "steps": ["Fill totals"]},
        ... ])
    """
    try:
        phase_inputs = [PhaseInput.from_dict(p) for p in phases]
    except (KeyError, TypeError) as e:
        return {"success": False, "error": f"Invalid phases: {e}", "error_kind": "plan"}

    try:
        await get_context_plan_store().create_plan(title, goal, phase_inputs)
    except SheetPlanError as e:
        return _failure(e)

    task_count = sum(len(p.steps) for p in phase_inputs)
    return {
        "success": True,
        "phase_count": len(phase_inputs),
        "task_count": task_count,
        "message": f"Created plan with {len(phase_inputs)} phases and {task_count} tasks",
    }


@require_context(get_context_plan_store, _NO_STORE)
async def update_task(
    step: str,
    status: str,
    reason: str | None = None,
    note: str | None = None,
) -> dict[str, Any]:
    """Update a task's status.

    Args:
        step: Step identifier, e.g. "1.2".
        status: "doing", "done", "blocked" (needs reason) or "review" (needs note).
        reason: Why the task is blocked.
        note: What the reviewer should look at.

    Returns:
        A dict with the step and its new status.
    """
    try:
        update = TaskUpdate.from_dict({"status": status, "reason": reason, "note": note})
        await get_context_plan_store().update_task(step, update)
    except SheetPlanError as e:
        return _failure(e)

    return {
        "success": True,
        "step": step,
        "status": status,
        "message": f"Task {step} updated to {status}",
    }


@require_context(get_context_plan_store, _NO_STORE)
async def append_notes(line: str) -> dict[str, Any]:
    """Append a line (e.g. "key: value" working memory) to the plan's Notes."""
    try:
        await get_context_plan_store().append_notes(line)
    except SheetPlanError as e:
        return _failure(e)
    return {"success": True, "message": "Note added"}


@require_context(get_context_plan_store, _NO_STORE)
async def init_plan() -> dict[str, Any]:
    """Write the starter plan if the workspace has none."""
    try:
        created = await get_context_plan_store().init_default_plan()
    except SheetPlanError as e:
        return _failure(e)
    return {
        "success": True,
        "created": created,
        "message": "Starter plan created" if created else "A plan already exists",
    }
