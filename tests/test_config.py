"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from sheetplan.config import (
    Settings,
    SettingsContext,
    SettingsValidationError,
    get_context_settings,
    get_settings,
    reload_settings,
    set_settings,
    validate_settings,
)


class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.transport == "sheets"
        assert settings.plan_cell == "AGENTSCAPE!C6"
        assert settings.plan_marker_cell is None
        assert settings.retry_enabled is True
        assert settings.retry_max_attempts == 3
        assert settings.retry_base_delay == 1.0
        assert settings.retry_max_delay == 30.0
        assert settings.requests_per_second is None
        assert settings.check_version is False
        assert settings.log_level == "warning"
        assert settings.app_name == "sheetplan"

    def test_environment_overrides(self):
        env = {
            "SHEETPLAN_SPREADSHEET_ID": "sheet123",
            "SHEETPLAN_RETRY_MAX_ATTEMPTS": "5",
            "GOOGLE_SHEETS_TOKEN": "env-token",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.spreadsheet_id == "sheet123"
        assert settings.retry_max_attempts == 5
        assert settings.sheets_access_token == "env-token"

    def test_token_by_field_name(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(sheets_access_token="direct")
        assert settings.sheets_access_token == "direct"

    def test_plan_cell_trimmed(self):
        with patch.dict(os.environ, {}, clear=True):
            assert Settings(plan_cell="  Plan!A1 ").plan_cell == "Plan!A1"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"plan_cell": "   "},
            {"retry_max_attempts": 0},
            {"retry_jitter": 2.0},
            {"transport": "carrier-pigeon"},
            {"requests_per_second": 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError):
                Settings(**kwargs)

    def test_project_json_config(self, tmp_path: Path, monkeypatch):
        config_dir = tmp_path / ".sheetplan"
        config_dir.mkdir()
        (config_dir / "settings.json").write_text(json.dumps({"plan_cell": "Other!B2", "check_version": True}))
        monkeypatch.chdir(tmp_path)

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
        assert settings.plan_cell == "Other!B2"
        assert settings.check_version is True

        with patch.dict(os.environ, {"SHEETPLAN_PLAN_CELL": "Env!C3"}, clear=True):
            assert Settings().plan_cell == "Env!C3"


class TestValidateSettings:
    def test_sheets_requires_spreadsheet_and_token(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(transport="sheets")

        with pytest.raises(SettingsValidationError) as exc_info:
            validate_settings(settings)
        assert "SHEETPLAN_SPREADSHEET_ID" in str(exc_info.value)
        assert "GOOGLE_SHEETS_TOKEN" in str(exc_info.value)

    def test_memory_needs_nothing(self):
        with patch.dict(os.environ, {}, clear=True):
            validate_settings(Settings(transport="memory"))

    def test_delays_consistent(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(transport="memory", retry_base_delay=10, retry_max_delay=5)
        with pytest.raises(SettingsValidationError, match="retry_base_delay"):
            validate_settings(settings)

    def test_marker_cell_distinct(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(transport="memory", plan_marker_cell="AGENTSCAPE!C6")
        with pytest.raises(SettingsValidationError, match="plan_marker_cell"):
            validate_settings(settings)


class TestSettingsContext:
    def test_context_takes_precedence(self, mock_context):
        override = Settings(transport="memory", plan_cell="Ctx!A1")

        with SettingsContext(override) as active:
            assert active is override
            assert get_settings() is override
            assert get_context_settings() is override

        assert get_settings() is mock_context.settings
        assert get_context_settings() is None

    def test_set_and_reload(self, mock_context):
        custom = Settings(transport="memory", plan_cell="Global!A1")
        set_settings(custom)
        assert get_settings() is custom

        fresh = reload_settings()
        assert fresh is not custom
        assert get_settings() is fresh
