import pytest
from pydantic import ValidationError

from orderdesk.core.config import EnvironmentMode, Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.env_mode == EnvironmentMode.DEVELOPMENT
    assert settings.retention_hours == 8.0
    assert settings.poll_interval_seconds == 10.0
    assert settings.session_idle_seconds == 300.0


def test_uvicorn_owns_host_and_port():
    assert "api_host" not in Settings.model_fields
    assert "api_port" not in Settings.model_fields


def test_env_mode_is_case_insensitive():
    assert Settings(_env_file=None, env_mode="Production").is_production


def test_unknown_env_mode_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, env_mode="qa")
