"""Settings mixins for the remote plan cell, retry behavior, and CLI display.

RemoteSettingsMixin: Which spreadsheet and cells hold the plan, and how to reach them.
RetrySettingsMixin: Backoff, attempt budget, and proactive rate limiting.
CLISettingsMixin: Logging settings.

These are mixins, not BaseSettings subclasses, to avoid MRO issues when
composed into Settings.
"""

from typing import Literal

from pydantic import Field, field_validator


class RemoteSettingsMixin:
    """Settings for the remote spreadsheet holding the plan."""

    app_name: str = Field(
        default="sheetplan",
        title="App Name",
        description="Application name (used for the settings.json directory)",
    )

    transport: Literal["sheets", "memory"] = Field(
        default="sheets",
        title="Transport",
        description="Remote cell transport (Google Sheets or in-process memory)",
    )
    spreadsheet_id: str | None = Field(
        default=None,
        title="Spreadsheet ID",
        description="ID of the spreadsheet that holds the plan",
    )
    plan_cell: str = Field(
        default="AGENTSCAPE!C6",
        title="Plan Cell",
        description="A1 reference of the cell holding the plan markdown",
    )
    plan_marker_cell: str | None = Field(
        default=None,
        title="Plan Marker Cell",
        description="Optional cell that must read 'PLAN.md' for the plan to exist",
    )
    sheets_api_url: str = Field(
        default="https://sheets.googleapis.com/v4",
        title="Sheets API URL",
        description="Base URL of the Google Sheets REST API",
    )
    sheets_access_token: str | None = Field(
        default=None,
        description="OAuth bearer token for the Sheets API",
        validation_alias="GOOGLE_SHEETS_TOKEN",
    )
    request_timeout: float = Field(
        default=30.0,
        title="Request Timeout",
        description="Per-request timeout in seconds",
    )
    value_input_option: Literal["RAW", "USER_ENTERED"] = Field(
        default="RAW",
        title="Value Input Option",
        description="How the Sheets API interprets written values",
    )
    check_version: bool = Field(
        default=False,
        title="Check Version",
        description="Reject writes when the plan changed since it was read",
    )

    @field_validator("plan_cell")
    @classmethod
    def non_empty_cell(cls, v: str) -> str:
        """Reject blank cell references."""
        if not v.strip():
            raise ValueError("plan_cell must not be empty")
        return v.strip()


class RetrySettingsMixin:
    """Settings for the resilient access layer."""

    retry_enabled: bool = Field(
        default=True,
        title="Retry Enabled",
        description="Retry transient remote failures (disable to fail fast)",
    )
    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        title="Max Attempts",
        description="Maximum attempts per remote call, including the first",
    )
    retry_base_delay: float = Field(
        default=1.0,
        ge=0,
        title="Base Delay",
        description="Initial backoff delay in seconds",
    )
    retry_max_delay: float = Field(
        default=30.0,
        ge=0,
        title="Max Delay",
        description="Upper bound for a single backoff delay in seconds",
    )
    retry_jitter: float = Field(
        default=0.0,
        ge=0,
        le=1,
        title="Jitter",
        description="Random jitter added to each delay, as a fraction of it",
    )
    requests_per_second: float | None = Field(
        default=None,
        gt=0,
        title="Requests Per Second",
        description="Proactive request rate limit (None = unlimited)",
    )
    rate_limit_burst: int = Field(
        default=10,
        ge=1,
        title="Rate Limit Burst",
        description="Token bucket capacity for the rate limiter",
    )


class CLISettingsMixin:
    """Settings for logging output."""

    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        title="Log Level",
        description="Logging verbosity level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        title="Log Format",
        description="Log output format (console for dev, json for production)",
    )
