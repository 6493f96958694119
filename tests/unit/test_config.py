"""
Tests de la configuración (pydantic-settings).
"""
from __future__ import annotations

import pytest

from employee_sync.core.config import Settings, parse_host_list, validate_sync_settings


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("dummyjson.com", ["dummyjson.com"]),
        ("*.dynamics.com, login.microsoftonline.com", ["*.dynamics.com", "login.microsoftonline.com"]),
        ('["a.com", "b.com"]', ["a.com", "b.com"]),
        ('"a.com"', ["a.com"]),
        ("", []),
        (" , ", []),
    ],
)
def test_parse_host_list(raw: str, expected) -> None:
    assert parse_host_list(raw) == expected


@pytest.mark.unit
def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATAVERSE_URL", "https://org.crm.dynamics.com")
    monkeypatch.setenv("SYNC_MAX_WORKERS", "4")
    monkeypatch.setenv("API_ALLOWED_HOSTS", "dummyjson.com,api.example.com")

    config = Settings(_env_file=None)

    assert config.DATAVERSE_URL == "https://org.crm.dynamics.com"
    assert config.SYNC_MAX_WORKERS == 4
    assert config.api_allowed_hosts == ["dummyjson.com", "api.example.com"]
    assert "*.dynamics.com" in config.dataverse_allowed_hosts


@pytest.mark.unit
def test_validate_sync_settings_lists_missing_keys() -> None:
    config = Settings(
        _env_file=None,
        DATAVERSE_URL="https://org.crm.dynamics.com",
        DATAVERSE_TENANT_ID="",
        DATAVERSE_CLIENT_ID="client",
        DATAVERSE_CLIENT_SECRET="",
    )

    assert validate_sync_settings(config) == ["DATAVERSE_TENANT_ID", "DATAVERSE_CLIENT_SECRET"]
