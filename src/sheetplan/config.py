"""Configuration for sheetplan.

Settings Management:
    The module provides both global singleton and context-based settings:

    1. Global singleton (simple cases):
        set_settings(my_settings)
        settings = get_settings()

    2. Context-based (isolated contexts, tests):
        with SettingsContext(my_settings):
            settings = get_settings()  # Returns my_settings

Settings Loading Priority (highest to lowest):
    1. Constructor arguments
    2. Environment variables (SHEETPLAN_* prefix)
    3. Project config (./.sheetplan/settings.json)
    4. User config (~/.sheetplan/settings.json)
    5. .env file
    6. Default values
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Generator, Tuple, Type

from pydantic_settings import (
    BaseSettings as PydanticBaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from sheetplan.logging import Loggers
from sheetplan.settings_mixins import (
    CLISettingsMixin,
    RemoteSettingsMixin,
    RetrySettingsMixin,
)

__all__ = [
    "Settings",
    "SettingsContext",
    "SettingsValidationError",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "get_context_settings",
    "validate_settings",
    "reload_settings",
]


def _get_json_config_source(
    settings_cls: Type[PydanticBaseSettings],
    json_file: Path,
) -> PydanticBaseSettingsSource | None:
    """Create a JSON config source if the file exists."""
    if not json_file.exists():
        return None
    return JsonConfigSettingsSource(settings_cls, json_file=json_file)


class Settings(RemoteSettingsMixin, RetrySettingsMixin, CLISettingsMixin, PydanticBaseSettings):
    """Settings for a plan store.

    Settings are loaded from (in order of precedence):
    1. Constructor arguments
    2. Environment variables (SHEETPLAN_ prefix)
    3. Project config (./.sheetplan/settings.json)
    4. User config (~/.sheetplan/settings.json)
    5. .env file
    6. Default values

    Mixins provide organized settings:
    - RemoteSettingsMixin: Spreadsheet, cells, transport, version checks
    - RetrySettingsMixin: Backoff, attempt budget, rate limiting
    - CLISettingsMixin: Logging
    """

    model_config = SettingsConfigDict(
        env_prefix="SHEETPLAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[PydanticBaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Layer JSON config files between environment and .env.

        Note: JSON sources are only included if the files exist.
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
        ]

        app_name = "sheetplan"
        if "app_name" in cls.model_fields:
            default = cls.model_fields["app_name"].default
            if isinstance(default, str) and default:
                app_name = default

        project_json = _get_json_config_source(
            settings_cls,
            Path.cwd() / f".{app_name}" / "settings.json",
        )
        if project_json:
            sources.append(project_json)

        user_json = _get_json_config_source(
            settings_cls,
            Path.home() / f".{app_name}" / "settings.json",
        )
        if user_json:
            sources.append(user_json)

        sources.append(dotenv_settings)

        return tuple(sources)


# Context variable for settings (takes precedence over global singleton)
_settings_context: ContextVar[Settings | None] = ContextVar(
    "settings_context", default=None
)

# Global settings instance holder (fallback when no context)
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get the current settings instance.

    Settings resolution order:
    1. Context variable (set via SettingsContext or set_context_settings)
    2. Global singleton (set via set_settings)
    3. Fresh Settings instance (created on first access)
    """
    context_settings = _settings_context.get()
    if context_settings is not None:
        return context_settings

    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def set_settings(settings: Settings) -> None:
    """Set the global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings_instance
    _settings_instance = settings


def set_context_settings(settings: Settings | None) -> Token:
    """Set settings for the current context.

    Args:
        settings: Settings to use in current context, or None to clear

    Returns:
        Token that can be used to reset the context variable.
    """
    return _settings_context.set(settings)


def get_context_settings() -> Settings | None:
    """Get settings from current context (if any)."""
    return _settings_context.get()


@contextmanager
def SettingsContext(settings: Settings) -> Generator[Settings, None, None]:
    """Context manager for isolated settings.

    Example:
        with SettingsContext(test_settings) as s:
            store = PlanStore.from_settings()  # Uses test_settings

    Args:
        settings: Settings to use within the context

    Yields:
        The settings instance
    """
    token = _settings_context.set(settings)
    try:
        yield settings
    finally:
        _settings_context.reset(token)


def reload_settings() -> Settings:
    """Reload settings (clears global singleton and context cache).

    Returns:
        Fresh Settings instance
    """
    global _settings_instance
    _settings_instance = None
    _settings_context.set(None)
    return get_settings()


class SettingsValidationError(Exception):
    """Raised when settings validation fails."""

    pass


def validate_settings(settings: Settings) -> None:
    """Validate settings for runtime use.

    Checks what the field validators cannot check on their own:
    - The Sheets transport has a spreadsheet and a token
    - The retry delays are consistent

    Args:
        settings: Settings to validate

    Raises:
        SettingsValidationError: If validation fails
    """
    errors = []

    if settings.transport == "sheets":
        if not settings.spreadsheet_id:
            errors.append("No spreadsheet configured. Set SHEETPLAN_SPREADSHEET_ID.")
        if not settings.sheets_access_token:
            errors.append("No Sheets access token configured. Set GOOGLE_SHEETS_TOKEN.")

    if settings.retry_base_delay > settings.retry_max_delay:
        errors.append(
            f"retry_base_delay ({settings.retry_base_delay}) exceeds "
            f"retry_max_delay ({settings.retry_max_delay})"
        )

    if settings.plan_marker_cell and settings.plan_marker_cell == settings.plan_cell:
        errors.append("plan_marker_cell must differ from plan_cell")

    if errors:
        Loggers.config().warning("settings_invalid", errors=errors)
        raise SettingsValidationError("\n".join(errors))
