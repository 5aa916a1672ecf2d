"""Planning module: the markdown plan model, codec, state machine and store.

Example:
    >>> from sheetplan.planning import PlanStore, PhaseInput, TaskUpdate
    >>> await store.create_plan("Report", "Ship the report", [PhaseInput("Build", ["Draft"])])
    >>> task = await store.get_next_task()
    >>> await store.update_task(task.step, TaskUpdate.doing())
"""

from sheetplan.planning.codec import (
    DEFAULT_PLAN_MARKDOWN,
    append_note_line,
    decode_plan,
    encode_plan,
    mutate_task_line,
    render_plan,
)
from sheetplan.planning.models import (
    STATUS_ICONS,
    Phase,
    PhaseInput,
    Plan,
    PlanAnalysis,
    Task,
    TaskStatus,
    TaskUpdate,
)
from sheetplan.planning.state_machine import TransitionResult, apply_update
from sheetplan.planning.store import PlanStore

__all__ = [
    "Phase",
    "PhaseInput",
    "Plan",
    "PlanAnalysis",
    "PlanStore",
    "Task",
    "TaskStatus",
    "TaskUpdate",
    "TransitionResult",
    "STATUS_ICONS",
    "DEFAULT_PLAN_MARKDOWN",
    "apply_update",
    "append_note_line",
    "decode_plan",
    "encode_plan",
    "mutate_task_line",
    "render_plan",
]
