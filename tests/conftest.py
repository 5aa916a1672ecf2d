"""Shared test fixtures and utilities for sheetplan tests.

Provides:
- MockContext for isolating tests from global settings
- In-memory transports, including one that fails on demand
- A resilient client that records backoff delays instead of sleeping
"""

import os
from datetime import date
from typing import Generator

import pytest

from sheetplan.config import Settings, reload_settings, set_context_settings, set_settings
from sheetplan.planning import PlanStore
from sheetplan.remote import MemoryCellTransport, ResilientCellClient, RetryConfig

PLAN_CELL = "AGENTSCAPE!C6"
TODAY = date(2025, 3, 14)


class MockContext:
    """Context manager for isolating tests from global state.

    Handles:
    - Clearing SHEETPLAN_* and token environment variables
    - Installing memory-transport settings as the global settings
    - Resetting everything on exit

    Usage:
        with MockContext(retry_max_attempts=2) as ctx:
            store = PlanStore.from_settings()
    """

    def __init__(self, **settings_kwargs):
        self._settings_kwargs = {"transport": "memory", **settings_kwargs}
        self._settings: Settings | None = None
        self._original_env: dict[str, str | None] = {}

    def __enter__(self) -> "MockContext":
        env_vars = ["GOOGLE_SHEETS_TOKEN"] + [k for k in os.environ if k.startswith("SHEETPLAN_")]
        for var in env_vars:
            self._original_env[var] = os.environ.pop(var, None)

        self._settings = Settings(**self._settings_kwargs)
        set_settings(self._settings)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        set_context_settings(None)

        for var, value in self._original_env.items():
            if value is not None:
                os.environ[var] = value

        reload_settings()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            raise RuntimeError("MockContext not entered")
        return self._settings


class FlakyTransport(MemoryCellTransport):
    """Memory transport that raises queued exceptions before succeeding.

    Each call (read or write) pops the next queued failure, if any.
    """

    def __init__(self, failures: list[BaseException] | None = None, cells: dict[str, str] | None = None):
        super().__init__(cells)
        self.failures = list(failures or [])
        self.calls = 0

    def _maybe_fail(self) -> None:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)

    async def get_cell(self, ref: str) -> str:
        self._maybe_fail()
        return await super().get_cell(ref)

    async def set_cell(self, ref: str, text: str) -> None:
        self._maybe_fail()
        await super().set_cell(ref, text)


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def mock_context() -> Generator[MockContext, None, None]:
    """Fixture providing an isolated settings context."""
    with MockContext() as ctx:
        yield ctx


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def transport() -> MemoryCellTransport:
    return MemoryCellTransport()


@pytest.fixture
def client(transport: MemoryCellTransport, sleeper: SleepRecorder) -> ResilientCellClient:
    """Resilient client over the memory transport that never really sleeps."""
    return ResilientCellClient(transport, RetryConfig(), sleep=sleeper)


@pytest.fixture
def store(client: ResilientCellClient) -> PlanStore:
    """Plan store with a fixed date for completion stamps."""
    return PlanStore(client, plan_cell=PLAN_CELL, today=lambda: TODAY)
