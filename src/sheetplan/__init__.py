"""sheetplan - Markdown task plans stored in a single spreadsheet cell.

An agent keeps its working plan (title, goal, phased checklist, notes) as
markdown in one remote cell. This package provides:

- A codec between the markdown and a structured Plan model
- A state machine for task selection and status transitions
- A resilient access layer that retries transient remote failures
- A PlanStore tying them together, plus agent-facing tools

Example:
    >>> from sheetplan import PlanStore, Settings
    >>> store = PlanStore.from_settings(Settings(transport="memory"))
    >>> await store.init_default_plan()
    >>> task = await store.get_next_task()
"""

from sheetplan.config import (
    Settings,
    SettingsContext,
    SettingsValidationError,
    get_context_settings,
    get_settings,
    reload_settings,
    set_context_settings,
    set_settings,
    validate_settings,
)
from sheetplan.errors import (
    ConfigurationError,
    InvalidTaskUpdateError,
    InvalidTransitionError,
    NetworkError,
    PlanError,
    PlanNotFoundError,
    RemoteError,
    SheetPlanError,
    StaleWriteError,
    TaskNotFoundError,
)
from sheetplan.logging import (
    bind_context,
    configure_logging,
    get_logger,
    log_context,
    unbind_context,
)
from sheetplan.planning import (
    Phase,
    PhaseInput,
    Plan,
    PlanStore,
    Task,
    TaskStatus,
    TaskUpdate,
    decode_plan,
    encode_plan,
)
from sheetplan.remote import (
    CellTransport,
    MemoryCellTransport,
    ResilientCellClient,
    RetryConfig,
    SheetsCellTransport,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "Settings",
    "SettingsContext",
    "SettingsValidationError",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "get_context_settings",
    "validate_settings",
    "reload_settings",
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "log_context",
    # Errors
    "SheetPlanError",
    "RemoteError",
    "NetworkError",
    "PlanError",
    "PlanNotFoundError",
    "TaskNotFoundError",
    "InvalidTransitionError",
    "InvalidTaskUpdateError",
    "StaleWriteError",
    "ConfigurationError",
    # Planning
    "Plan",
    "Phase",
    "PhaseInput",
    "Task",
    "TaskStatus",
    "TaskUpdate",
    "PlanStore",
    "decode_plan",
    "encode_plan",
    # Remote
    "CellTransport",
    "MemoryCellTransport",
    "SheetsCellTransport",
    "ResilientCellClient",
    "RetryConfig",
]
