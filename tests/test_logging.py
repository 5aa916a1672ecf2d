"""Tests for logging helpers."""

import pytest
import structlog
from structlog.testing import LogCapture

from conftest import PLAN_CELL

from sheetplan.config import Settings
from sheetplan.logging import (
    Loggers,
    bind_context,
    configure_logging,
    log_context,
    redact_secrets,
    unbind_context,
)
from sheetplan.planning import PhaseInput, PlanStore


@pytest.fixture
def captured():
    """Route events through the contextvars merge into a LogCapture."""
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    try:
        yield capture
    finally:
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()


def test_bind_and_unbind():
    bind_context(spreadsheet_id="sheet123", plan_cell=PLAN_CELL)
    try:
        assert structlog.contextvars.get_contextvars() == {
            "spreadsheet_id": "sheet123",
            "plan_cell": PLAN_CELL,
        }
        unbind_context("plan_cell")
        assert structlog.contextvars.get_contextvars() == {"spreadsheet_id": "sheet123"}
    finally:
        unbind_context("spreadsheet_id", "plan_cell")


def test_log_context_restores_outer_values():
    with log_context(plan_cell="A!B1", spreadsheet_id="outer"):
        with log_context(plan_cell="A!B2", spreadsheet_id=None):
            assert structlog.contextvars.get_contextvars() == {
                "plan_cell": "A!B2",
                "spreadsheet_id": "outer",
            }
        assert structlog.contextvars.get_contextvars()["plan_cell"] == "A!B1"

    assert structlog.contextvars.get_contextvars() == {}


def test_redact_secrets():
    event = redact_secrets(None, "info", {"event": "x", "token": "ya29.secret", "cell": "A1"})
    assert event == {"event": "x", "token": "***", "cell": "A1"}


def test_configure_json_logging(capsys):
    configure_logging(Settings(transport="memory", log_level="info", log_format="json"))
    try:
        structlog.get_logger("sheetplan.test").info("plan_written", cell="A1", token="secret")
        err = capsys.readouterr().err
        assert '"event": "plan_written"' in err
        assert "secret" not in err
    finally:
        structlog.reset_defaults()


@pytest.mark.asyncio
async def test_store_events_carry_plan_cell(store: PlanStore, captured: LogCapture):
    await store.create_plan("T", "G", [PhaseInput("A", ["a"])])

    written = [entry for entry in captured.entries if entry["event"] == "plan_written"]
    assert written
    assert all(entry["plan_cell"] == PLAN_CELL for entry in written)
    assert "spreadsheet_id" not in written[0]
    assert structlog.contextvars.get_contextvars() == {}


def test_component_loggers():
    assert Loggers.remote() is not None
    assert Loggers.planning() is not None
    assert Loggers.tools() is not None
    assert Loggers.config() is not None
