"""Tests for task selection, transitions and the plan model."""

from datetime import date

import pytest

from sheetplan.errors import (
    InvalidTaskUpdateError,
    InvalidTransitionError,
    TaskNotFoundError,
)
from sheetplan.planning.codec import decode_plan
from sheetplan.planning.models import TaskStatus, TaskUpdate, content_version
from sheetplan.planning.state_machine import (
    allowed_targets,
    apply_update,
    check_transition,
    next_task,
    review_tasks,
)

PLAN = """# Plan: Demo
Goal: Ship

### Phase 1: Build
- [x] 1.1 Scaffold ✅ 2025-01-01
- [/] 1.2 Write code
- [>] 1.3 Deploy — no credentials

### Phase 2: Check
- [!] 2.1 Review output — totals look off
- [ ] 2.2 Publish
- [ ] 2.3 Announce
"""


@pytest.fixture
def plan():
    return decode_plan(PLAN)


class TestSelection:
    def test_next_task_skips_blocked_and_review(self, plan):
        assert next_task(plan).step == "2.2"

    def test_no_todo_left(self):
        plan = decode_plan("### Phase 1: A\n- [x] 1.1 Done ✅ 2025-01-01\n- [>] 1.2 Stuck — why")
        assert next_task(plan) is None

    def test_review_tasks(self, plan):
        assert [t.step for t in review_tasks(plan)] == ["2.1"]


class TestTransitions:
    def test_allowed_targets(self):
        assert allowed_targets(TaskStatus.TODO) == [TaskStatus.DOING]
        assert allowed_targets(TaskStatus.DOING) == [
            TaskStatus.BLOCKED,
            TaskStatus.DONE,
            TaskStatus.REVIEW,
        ]
        assert allowed_targets(TaskStatus.DONE) == []

    def test_check_transition_rejects_skip(self, plan):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition(plan.find_task("2.2"), TaskStatus.DONE)
        assert exc_info.value.allowed == ["doing"]
        assert exc_info.value.current == "todo"

    def test_done_is_terminal(self, plan):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition(plan.find_task("1.1"), TaskStatus.DOING)
        assert "terminal" in exc_info.value.fix

    @pytest.mark.parametrize("step", ["1.3", "2.1", "2.2"])
    def test_restart_allowed(self, plan, step):
        check_transition(plan.find_task(step), TaskStatus.DOING)


class TestApplyUpdate:
    def test_success(self, plan):
        result = apply_update(plan, "1.2", TaskUpdate.done(), today=date(2025, 2, 2))

        assert result.ok
        assert result.previous == TaskStatus.DOING
        assert "- [x] 1.2 Write code ✅ 2025-02-02\n" in result.unwrap()

    def test_unknown_step(self, plan):
        result = apply_update(plan, "9.9", TaskUpdate.doing())

        assert not result.ok
        assert isinstance(result.error, TaskNotFoundError)
        assert result.error.available_steps == ["1.1", "1.2", "1.3", "2.1", "2.2", "2.3"]
        with pytest.raises(TaskNotFoundError):
            result.unwrap()

    def test_permissive_by_default(self, plan):
        result = apply_update(plan, "2.2", TaskUpdate.done(), today=date(2025, 2, 2))
        assert result.ok

    def test_strict_rejects_skip(self, plan):
        result = apply_update(plan, "2.2", TaskUpdate.done(), strict=True)
        assert isinstance(result.error, InvalidTransitionError)

    def test_block_with_reason(self, plan):
        result = apply_update(plan, "1.2", TaskUpdate.blocked("waiting on data"), strict=True)
        assert "- [>] 1.2 Write code — waiting on data\n" in result.unwrap()


class TestTaskUpdate:
    def test_blocked_needs_reason(self):
        with pytest.raises(InvalidTaskUpdateError):
            TaskUpdate.blocked("  ")

    def test_review_needs_note(self):
        with pytest.raises(InvalidTaskUpdateError):
            TaskUpdate(TaskStatus.REVIEW)

    def test_todo_rejected(self):
        with pytest.raises(InvalidTaskUpdateError):
            TaskUpdate(TaskStatus.TODO)

    def test_from_dict(self):
        update = TaskUpdate.from_dict({"status": "review", "note": "check it"})
        assert update.status == TaskStatus.REVIEW
        assert update.annotation == "check it"

    def test_from_dict_unknown_status(self):
        with pytest.raises(InvalidTaskUpdateError, match="Invalid status"):
            TaskUpdate.from_dict({"status": "finished"})


class TestPlanModel:
    def test_progress(self, plan):
        assert plan.progress() == {
            "total": 6,
            "todo": 2,
            "doing": 1,
            "done": 1,
            "blocked": 1,
            "review": 1,
        }

    def test_display(self, plan):
        display = plan.to_display()
        assert display.startswith("Plan: Demo\nGoal: Ship\nPhase 1: Build")
        assert "  ✓ 1.1 Scaffold (2025-01-01)" in display
        assert "  ⊘ 1.3 Deploy (no credentials)" in display
        assert "  ☐ 2.2 Publish" in display

    def test_version_tracks_content(self, plan):
        assert plan.version == content_version(PLAN)
        assert decode_plan(PLAN + "\n").version != plan.version

    def test_to_dict(self, plan):
        data = plan.to_dict()
        assert data["title"] == "Demo"
        assert data["phases"][1]["tasks"][0]["review_note"] == "totals look off"
        assert data["questions"] is None
