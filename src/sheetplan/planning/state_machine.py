"""Plan state machine.

Selection and transition rules for plan tasks, built only on the codec.
Nothing here touches the network.

Transition diagram enforced by ``check_transition``:

    todo    --start-->        doing
    doing   --complete-->     done
    doing   --block(reason)-> blocked
    doing   --review(note)->  review
    blocked --start-->        doing
    review  --start-->        doing

``apply_update`` itself is permissive and will move any task to any
non-todo status; only the strict helpers consult the diagram.
"""

from dataclasses import dataclass
from datetime import date

from sheetplan.errors import InvalidTransitionError, PlanError, TaskNotFoundError
from sheetplan.planning.codec import mutate_task_line
from sheetplan.planning.models import Plan, Task, TaskStatus, TaskUpdate

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.DOING}),
    TaskStatus.DOING: frozenset({TaskStatus.DONE, TaskStatus.BLOCKED, TaskStatus.REVIEW}),
    TaskStatus.BLOCKED: frozenset({TaskStatus.DOING}),
    TaskStatus.REVIEW: frozenset({TaskStatus.DOING}),
    TaskStatus.DONE: frozenset(),
}


def next_task(plan: Plan) -> Task | None:
    """First todo task in phase order, skipping blocked and review tasks."""
    for task in plan.all_tasks():
        if task.status == TaskStatus.TODO:
            return task
    return None


def review_tasks(plan: Plan) -> list[Task]:
    """All tasks awaiting review, in phase order."""
    return [task for task in plan.all_tasks() if task.status == TaskStatus.REVIEW]


def find_task(plan: Plan, step: str) -> Task:
    """Get a task by step or raise TaskNotFoundError listing the available steps."""
    task = plan.find_task(step)
    if task is None:
        raise TaskNotFoundError(step, plan.steps())
    return task


def allowed_targets(status: TaskStatus) -> list[TaskStatus]:
    return sorted(ALLOWED_TRANSITIONS[status], key=lambda s: s.value)


def check_transition(task: Task, target: TaskStatus) -> None:
    """Raise InvalidTransitionError unless ``task`` may move to ``target``."""
    if target not in ALLOWED_TRANSITIONS[task.status]:
        raise InvalidTransitionError(
            task.step,
            task.status.value,
            target.value,
            [s.value for s in allowed_targets(task.status)],
        )


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of applying a task update to plan text.

    Exactly one of ``markdown`` and ``error`` is set. Call ``unwrap()`` to
    get the new text or raise the domain error.
    """

    step: str
    markdown: str | None = None
    error: PlanError | None = None
    previous: TaskStatus | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        return self.markdown

    @classmethod
    def success(cls, step: str, markdown: str, previous: TaskStatus) -> "TransitionResult":
        return cls(step=step, markdown=markdown, previous=previous)

    @classmethod
    def failure(cls, step: str, error: PlanError) -> "TransitionResult":
        return cls(step=step, error=error)


def apply_update(
    plan: Plan,
    step: str,
    update: TaskUpdate,
    today: date | None = None,
    strict: bool = False,
) -> TransitionResult:
    """Apply ``update`` to the task ``step`` in ``plan.raw``.

    Args:
        plan: Decoded current plan
        step: Step identifier of the task to change
        update: Requested status (and reason/note)
        today: Completion date for done updates
        strict: Enforce the transition diagram

    Returns:
        TransitionResult with the new full text, or the domain error.
    """
    try:
        task = find_task(plan, step)
        if strict:
            check_transition(task, update.status)
    except PlanError as e:
        return TransitionResult.failure(step, e)

    markdown = mutate_task_line(
        plan.raw,
        step,
        update.status,
        annotation=update.annotation,
        today=today,
    )
    return TransitionResult.success(step, markdown, task.status)
