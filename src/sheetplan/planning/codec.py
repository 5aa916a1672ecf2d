"""Markdown plan codec.

Converts between the plan markdown stored in the plan cell and the Plan
model. Every function here is a pure string transform and never raises on
malformed input: unparseable lines simply contribute nothing.

Grammar (one line at a time, tested in this order):

    # Plan: <title>
    Goal: <goal>
    ## Analysis | ## Questions for User | ## Notes | ## <other>
    ### Phase <N>: <name>
    - [<c>] <N>.<M>[.<K>] <description>[ ✅ YYYY-MM-DD | — <annotation>]
    anything else: text for the currently open section

Example:
    >>> plan = decode_plan("# Plan: Demo\\nGoal: Ship\\n### Phase 1: Build\\n- [ ] 1.1 Code")
    >>> plan.phases[0].tasks[0].step
    '1.1'
    >>> mutate_task_line(plan.raw, "1.1", TaskStatus.DOING)
    '# Plan: Demo\\nGoal: Ship\\n### Phase 1: Build\\n- [/] 1.1 Code'
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

from sheetplan.planning.models import (
    CHAR_STATUSES,
    STATUS_CHARS,
    Phase,
    PhaseInput,
    Plan,
    PlanAnalysis,
    Task,
    TaskStatus,
)

TITLE_RE = re.compile(r"^# Plan:\s*(.*?)\s*$")
GOAL_RE = re.compile(r"^Goal:\s*(.*?)\s*$")
SECTION_RE = re.compile(r"^## (.+?)\s*$")
PHASE_RE = re.compile(r"^### Phase (\d+):\s*(.+?)\s*$")
TASK_RE = re.compile(r"^- \[([ /x>!])\] (\d+\.\d+(?:\.\d+)?)\s+(.+)$")

# Trailing annotations
DONE_SUFFIX_RE = re.compile(r"\s*✅ (\d{4}-\d{2}-\d{2})\s*$")
NOTE_SUFFIX_RE = re.compile(r"^(.*\S)\s+—\s+(.*?\S)\s*$")

PLAN_MARKER = "PLAN.md"


def utc_today() -> date:
    """Current date in UTC, used for completion stamps."""
    return datetime.now(timezone.utc).date()


class LineKind(Enum):
    """Kinds of lines in the plan grammar."""

    TITLE = "title"
    GOAL = "goal"
    SECTION = "section"
    PHASE = "phase"
    TASK = "task"
    TEXT = "text"


class Section(Enum):
    """Which section subsequent text lines belong to."""

    NONE = "none"
    ANALYSIS = "analysis"
    QUESTIONS = "questions"
    NOTES = "notes"
    PHASE = "phase"
    OTHER = "other"


@dataclass(frozen=True)
class PlanLine:
    """One classified line.

    Only the fields relevant to ``kind`` are set: ``value`` for titles,
    goals and section names; ``number``/``value`` for phases;
    ``status``/``step``/``value`` for tasks (value is the raw description).
    """

    kind: LineKind
    text: str
    value: str = ""
    number: int | None = None
    step: str | None = None
    status: TaskStatus | None = None


def classify_line(line: str) -> PlanLine:
    """Classify a single line of plan markdown, ignoring a trailing CR."""
    text = line[:-1] if line.endswith("\r") else line

    if m := TITLE_RE.match(text):
        return PlanLine(LineKind.TITLE, text, value=m.group(1))
    if m := GOAL_RE.match(text):
        return PlanLine(LineKind.GOAL, text, value=m.group(1))
    if m := SECTION_RE.match(text):
        return PlanLine(LineKind.SECTION, text, value=m.group(1))
    if m := PHASE_RE.match(text):
        return PlanLine(LineKind.PHASE, text, value=m.group(2), number=int(m.group(1)))
    if m := TASK_RE.match(text):
        return PlanLine(
            LineKind.TASK,
            text,
            value=m.group(3),
            step=m.group(2),
            status=CHAR_STATUSES[m.group(1)],
        )
    return PlanLine(LineKind.TEXT, text)


def _section_for(name: str) -> Section:
    if name == "Analysis":
        return Section.ANALYSIS
    if name.startswith("Questions"):
        return Section.QUESTIONS
    if name == "Notes":
        return Section.NOTES
    return Section.OTHER


def split_annotation(status: TaskStatus, description: str) -> tuple[str, str | None]:
    """Split a task description into its title and the status's annotation.

    Only the annotation that belongs to ``status`` is recognized: a date
    suffix for done tasks, an em-dash note for blocked and review tasks.
    """
    if status == TaskStatus.DONE:
        if m := DONE_SUFFIX_RE.search(description):
            return description[: m.start()].strip(), m.group(1)
    elif status in (TaskStatus.BLOCKED, TaskStatus.REVIEW):
        if m := NOTE_SUFFIX_RE.match(description):
            return m.group(1).strip(), m.group(2)
    return description.strip(), None


def _make_task(index: int, phase: Phase, line: PlanLine) -> Task:
    title, annotation = split_annotation(line.status, line.value)
    return Task(
        line=index,
        phase=phase.number,
        step=line.step,
        status=line.status,
        title=title,
        completed_date=annotation if line.status == TaskStatus.DONE else None,
        blocked_reason=annotation if line.status == TaskStatus.BLOCKED else None,
        review_note=annotation if line.status == TaskStatus.REVIEW else None,
    )


def _parse_analysis(lines: list[str]) -> PlanAnalysis | None:
    analysis = PlanAnalysis()
    for line in lines:
        item = line.strip()
        if item.startswith("- "):
            item = item[2:].strip()
        if item.startswith("Spreadsheet:"):
            analysis.spreadsheet = item[len("Spreadsheet:"):].strip()
        elif item.startswith("Key sheets:"):
            sheets = item[len("Key sheets:"):].split(",")
            analysis.key_sheets = [s.strip() for s in sheets if s.strip()]
        elif item.startswith("Read:"):
            analysis.read_ranges.append(item[len("Read:"):].strip())
        elif item.startswith("Write:"):
            analysis.write_ranges.append(item[len("Write:"):].strip())
        elif item.startswith("Current state:"):
            analysis.current_state = item[len("Current state:"):].strip()
    return None if analysis.is_empty() else analysis


def decode_plan(markdown: str) -> Plan | None:
    """Decode plan markdown into a Plan.

    Returns None only for an empty string, so callers can tell a plan that
    was never created from one that is present but sparse.
    """
    if not markdown:
        return None

    title: str | None = None
    goal: str | None = None
    phases: list[Phase] = []
    current_phase: Phase | None = None
    section = Section.NONE
    seen_sections: set[Section] = set()
    analysis_lines: list[str] = []
    questions: list[str] = []
    note_lines: list[str] = []

    for index, raw_line in enumerate(markdown.split("\n")):
        line = classify_line(raw_line)

        if line.kind == LineKind.TITLE and title is None:
            title = line.value
        elif line.kind == LineKind.GOAL and goal is None:
            goal = line.value
        elif line.kind == LineKind.SECTION and not (
            section == Section.NOTES and _section_for(line.value) == Section.OTHER
        ):
            section = _section_for(line.value)
            seen_sections.add(section)
            current_phase = None
        elif line.kind == LineKind.PHASE:
            current_phase = Phase(number=line.number, name=line.value)
            phases.append(current_phase)
            section = Section.PHASE
        elif line.kind == LineKind.TASK and current_phase is not None:
            current_phase.tasks.append(_make_task(index, current_phase, line))
        elif section == Section.ANALYSIS:
            analysis_lines.append(line.text)
        elif section == Section.QUESTIONS:
            item = line.text.strip()
            if item.startswith("- ") and item[2:].strip():
                questions.append(item[2:].strip())
        elif section == Section.NOTES:
            note_lines.append(line.text)

    return Plan(
        title=title or "",
        goal=goal or "",
        phases=phases,
        analysis=_parse_analysis(analysis_lines),
        questions=questions if Section.QUESTIONS in seen_sections else None,
        notes="\n".join(note_lines).strip() if Section.NOTES in seen_sections else None,
        raw=markdown,
    )


# =============================================================================
# Encoding
# =============================================================================


def _clean_annotation(text: str) -> str:
    # Annotations must stay on the task's line
    return " ".join(text.split())


def render_task_line(
    step: str,
    status: TaskStatus,
    title: str,
    annotation: str | None = None,
) -> str:
    """Render a single task line."""
    line = f"- [{STATUS_CHARS[status]}] {step} {title}"
    if status == TaskStatus.DONE and annotation:
        line += f" ✅ {annotation}"
    elif status in (TaskStatus.BLOCKED, TaskStatus.REVIEW) and annotation:
        line += f" — {_clean_annotation(annotation)}"
    return line


def render_plan(title: str, goal: str, phases: list[PhaseInput]) -> str:
    """Render a fresh plan with every task in todo.

    Steps are numbered ``{phase}.{step}`` from 1, and placeholder Analysis,
    Questions and Notes sections are included for the agent to fill in.
    """
    phase_blocks = []
    for i, phase in enumerate(phases):
        number = i + 1
        lines = [f"### Phase {number}: {phase.name}"]
        lines.extend(
            render_task_line(f"{number}.{j + 1}", TaskStatus.TODO, step)
            for j, step in enumerate(phase.steps)
        )
        phase_blocks.append("\n".join(lines))

    phases_markdown = "\n\n".join(phase_blocks)

    return f"""# Plan: {title}

Goal: {goal}

## Analysis

- Spreadsheet: [spreadsheet name]
- Key sheets: [sheet names]
- Target ranges:
  - Read: [ranges to read]
  - Write: [ranges to write]
- Current state: [description]

## Questions for User

- [Any clarifying questions]

{phases_markdown}

## Notes

"""


def encode_plan(plan: Plan) -> str:
    """Render a Plan model in the canonical section order.

    Unlike ``plan.raw`` this does not preserve the original layout; it is
    for plans assembled in memory.
    """
    out = [f"# Plan: {plan.title}", "", f"Goal: {plan.goal}", ""]

    if plan.analysis is not None:
        a = plan.analysis
        out += ["## Analysis", "", f"- Spreadsheet: {a.spreadsheet}"]
        out.append(f"- Key sheets: {', '.join(a.key_sheets)}")
        if a.read_ranges or a.write_ranges:
            out.append("- Target ranges:")
            out += [f"  - Read: {r}" for r in a.read_ranges]
            out += [f"  - Write: {w}" for w in a.write_ranges]
        if a.current_state is not None:
            out.append(f"- Current state: {a.current_state}")
        out.append("")

    if plan.questions is not None:
        out += ["## Questions for User", ""]
        out += [f"- {q}" for q in plan.questions]
        out.append("")

    for phase in plan.phases:
        out.append(f"### Phase {phase.number}: {phase.name}")
        for task in phase.tasks:
            out.append(render_task_line(task.step, task.status, task.title, task.annotation))
        out.append("")

    if plan.notes is not None:
        out += ["## Notes", ""]
        if plan.notes:
            out.append(plan.notes)

    return "\n".join(out).rstrip("\n") + "\n"


def mutate_task_line(
    markdown: str,
    step: str,
    status: TaskStatus,
    annotation: str | None = None,
    today: date | None = None,
) -> str:
    """Rewrite the status of one task line, leaving every other line untouched.

    The line's checkbox is replaced and its previous annotation (whichever
    its old status carried) is stripped before the new one is appended.
    Done tasks get ``✅ <today>``; blocked and review tasks get
    `` — <annotation>``. Only a task line inside a phase is a target, so
    look-alike lines in Questions or Notes are never touched. If ``step``
    is not a task the input is returned unchanged.

    Args:
        markdown: Full plan text
        step: Step identifier of the task to rewrite
        status: New status
        annotation: Reason or note for blocked/review
        today: Completion date for done (defaults to today)

    Returns:
        The full plan text with at most one line changed.
    """
    plan = decode_plan(markdown)
    task = plan.find_task(step) if plan is not None else None
    if task is None:
        return markdown

    lines = markdown.split("\n")
    raw_line = lines[task.line]
    line = classify_line(raw_line)

    title, _ = split_annotation(line.status, line.value)
    # Keep the spacing between the step and its description
    head = line.text[: TASK_RE.match(line.text).start(3)]
    head = f"- [{STATUS_CHARS[status]}]" + head[len("- [ ]"):]

    if status == TaskStatus.DONE:
        new_line = f"{head}{title} ✅ {(today or utc_today()).isoformat()}"
    elif status in (TaskStatus.BLOCKED, TaskStatus.REVIEW) and annotation:
        new_line = f"{head}{title} — {_clean_annotation(annotation)}"
    else:
        new_line = f"{head}{title}"

    if raw_line.endswith("\r"):
        new_line += "\r"
    lines[task.line] = new_line
    return "\n".join(lines)


def append_note_line(markdown: str, note: str) -> str:
    """Append a line to the Notes section, creating the section if absent.

    Phases and all lines outside the Notes section are left untouched.
    """
    lines = markdown.split("\n")
    notes_at: int | None = None
    section_end = len(lines)

    for index, raw_line in enumerate(lines):
        line = classify_line(raw_line)
        if notes_at is None:
            if line.kind == LineKind.SECTION and line.value == "Notes":
                notes_at = index
        elif line.kind in (LineKind.PHASE, LineKind.TITLE) or (
            line.kind == LineKind.SECTION and _section_for(line.value) != Section.OTHER
        ):
            section_end = index
            break

    if notes_at is None:
        return markdown.rstrip() + "\n\n## Notes\n\n" + note

    body_end = section_end
    while body_end > notes_at + 1 and not lines[body_end - 1].strip():
        body_end -= 1

    if body_end == notes_at + 1:
        insert = ["", note]
    else:
        insert = [note]

    return "\n".join(lines[:body_end] + insert + lines[body_end:])


DEFAULT_PLAN_MARKDOWN = render_plan(
    "Getting Started",
    "Learn the sheet agent system and complete first task",
    [
        PhaseInput(
            "Orientation",
            [
                "List all sheets in the spreadsheet",
                "Read headers from main sheet to understand structure",
                "Confirm user's goal and create detailed plan",
            ],
        )
    ],
)
