"""Plan data model.

A Plan is the structured view of the markdown document stored in the plan
cell. It is always built by decoding markdown (see codec.py) and keeps the
exact source in ``raw`` so mutations can be applied to the text itself.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sheetplan.errors import InvalidTaskUpdateError


class TaskStatus(Enum):
    """Status values for plan tasks."""

    TODO = "todo"
    DOING = "doing"
    DONE = "done"
    BLOCKED = "blocked"
    REVIEW = "review"


# Checkbox character for each status: "- [x] 1.1 ..."
STATUS_CHARS = {
    TaskStatus.TODO: " ",
    TaskStatus.DOING: "/",
    TaskStatus.DONE: "x",
    TaskStatus.BLOCKED: ">",
    TaskStatus.REVIEW: "!",
}

CHAR_STATUSES = {char: status for status, char in STATUS_CHARS.items()}

# Status icons for display
STATUS_ICONS = {
    TaskStatus.TODO: "☐",
    TaskStatus.DOING: "◐",
    TaskStatus.DONE: "✓",
    TaskStatus.BLOCKED: "⊘",
    TaskStatus.REVIEW: "⚑",
}


@dataclass
class Task:
    """A task line in a plan phase.

    Attributes:
        line: Zero-based line index in the source markdown
        phase: Number of the owning phase
        step: Dotted identifier ("1.2" or "2.1.3")
        status: Current status
        title: Description with any annotation stripped
        completed_date: ISO date, only for DONE
        blocked_reason: Reason text, only for BLOCKED
        review_note: Note text, only for REVIEW
    """

    line: int
    phase: int
    step: str
    status: TaskStatus
    title: str
    completed_date: str | None = None
    blocked_reason: str | None = None
    review_note: str | None = None

    @property
    def annotation(self) -> str | None:
        """The status-specific annotation, whichever applies."""
        return self.completed_date or self.blocked_reason or self.review_note

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line,
            "phase": self.phase,
            "step": self.step,
            "status": self.status.value,
            "title": self.title,
            "completed_date": self.completed_date,
            "blocked_reason": self.blocked_reason,
            "review_note": self.review_note,
        }


@dataclass
class Phase:
    """A numbered section of tasks ("### Phase 1: Build")."""

    number: int
    name: str
    tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "name": self.name,
            "tasks": [task.to_dict() for task in self.tasks],
        }


@dataclass
class PlanAnalysis:
    """Parsed "## Analysis" section."""

    spreadsheet: str = ""
    key_sheets: list[str] = field(default_factory=list)
    read_ranges: list[str] = field(default_factory=list)
    write_ranges: list[str] = field(default_factory=list)
    current_state: str | None = None

    def is_empty(self) -> bool:
        return not (
            self.spreadsheet
            or self.key_sheets
            or self.read_ranges
            or self.write_ranges
            or self.current_state
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "spreadsheet": self.spreadsheet,
            "key_sheets": list(self.key_sheets),
            "target_ranges": {
                "read": list(self.read_ranges),
                "write": list(self.write_ranges),
            },
            "current_state": self.current_state,
        }


@dataclass
class Plan:
    """Structured view of a plan document.

    Attributes:
        title: Text after "# Plan:"
        goal: Text after "Goal:"
        analysis: Parsed Analysis section, or None if absent
        questions: Open questions, or None if the section is absent
        phases: Phases in document order
        notes: Notes section text, or None if the section is absent
        raw: Exact source markdown
    """

    title: str
    goal: str
    phases: list[Phase] = field(default_factory=list)
    analysis: PlanAnalysis | None = None
    questions: list[str] | None = None
    notes: str | None = None
    raw: str = ""

    @property
    def version(self) -> str:
        """Content hash of ``raw``, used for stale-write detection."""
        return content_version(self.raw)

    def all_tasks(self) -> list[Task]:
        """All tasks in phase order, then task order."""
        return [task for phase in self.phases for task in phase.tasks]

    def find_task(self, step: str) -> Task | None:
        """Get a task by its step identifier."""
        for task in self.all_tasks():
            if task.step == step:
                return task
        return None

    def steps(self) -> list[str]:
        """All step identifiers in order."""
        return [task.step for task in self.all_tasks()]

    def progress(self) -> dict[str, int]:
        """Get task counts by status.

        Returns:
            Dictionary with a count per status value and a total.
        """
        counts = {"total": 0, **{status.value: 0 for status in TaskStatus}}
        for task in self.all_tasks():
            counts["total"] += 1
            counts[task.status.value] += 1
        return counts

    def to_display(self) -> str:
        """Generate a formatted display of the plan with status icons."""
        lines = [f"Plan: {self.title}"]
        if self.goal:
            lines.append(f"Goal: {self.goal}")

        for phase in self.phases:
            lines.append(f"Phase {phase.number}: {phase.name}")
            for task in phase.tasks:
                icon = STATUS_ICONS.get(task.status, "?")
                suffix = f" ({task.annotation})" if task.annotation else ""
                lines.append(f"  {icon} {task.step} {task.title}{suffix}")

        if not self.phases:
            lines.append("No phases.")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "goal": self.goal,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "questions": list(self.questions) if self.questions is not None else None,
            "phases": [phase.to_dict() for phase in self.phases],
            "notes": self.notes,
            "progress": self.progress(),
            "version": self.version,
        }


@dataclass
class PhaseInput:
    """A phase to create: a name and its step descriptions."""

    name: str
    steps: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PhaseInput":
        return cls(name=data["name"], steps=list(data.get("steps", [])))


@dataclass(frozen=True)
class TaskUpdate:
    """A requested status change for one task.

    Use the constructors rather than building this directly:

        TaskUpdate.doing()
        TaskUpdate.done()
        TaskUpdate.blocked("waiting on access")
        TaskUpdate.review("check totals")
    """

    status: TaskStatus
    reason: str | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        if self.status == TaskStatus.TODO:
            raise InvalidTaskUpdateError("Tasks cannot be moved back to 'todo'")
        if self.status == TaskStatus.BLOCKED and not (self.reason and self.reason.strip()):
            raise InvalidTaskUpdateError("A blocked update needs a reason")
        if self.status == TaskStatus.REVIEW and not (self.note and self.note.strip()):
            raise InvalidTaskUpdateError("A review update needs a note")

    @property
    def annotation(self) -> str | None:
        """Free-text annotation written after the em-dash, if any."""
        if self.status == TaskStatus.BLOCKED:
            return self.reason
        if self.status == TaskStatus.REVIEW:
            return self.note
        return None

    @classmethod
    def doing(cls) -> "TaskUpdate":
        return cls(TaskStatus.DOING)

    @classmethod
    def done(cls) -> "TaskUpdate":
        return cls(TaskStatus.DONE)

    @classmethod
    def blocked(cls, reason: str) -> "TaskUpdate":
        return cls(TaskStatus.BLOCKED, reason=reason)

    @classmethod
    def review(cls, note: str) -> "TaskUpdate":
        return cls(TaskStatus.REVIEW, note=note)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskUpdate":
        """Build from ``{"status": "blocked", "reason": "..."}`` style input."""
        raw_status = data.get("status")
        try:
            status = TaskStatus(raw_status)
        except ValueError:
            valid = [s.value for s in TaskStatus if s != TaskStatus.TODO]
            raise InvalidTaskUpdateError(
                f"Invalid status: {raw_status}. Valid: {', '.join(valid)}"
            ) from None
        return cls(status, reason=data.get("reason"), note=data.get("note"))


def content_version(markdown: str) -> str:
    """Short content hash identifying one exact revision of the plan text."""
    return hashlib.sha256(markdown.encode("utf-8")).hexdigest()[:16]
