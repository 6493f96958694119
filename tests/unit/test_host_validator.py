"""
Tests de la validación de hosts salientes.
"""
from __future__ import annotations

import pytest

from employee_sync.infrastructure.security.host_validator import HostValidator
from employee_sync.shared.exceptions.security import SecurityException


ALLOWED = ["dummyjson.com", "*.dynamics.com", "login.microsoftonline.com"]


@pytest.fixture
def validator() -> HostValidator:
    return HostValidator()


@pytest.mark.unit
@pytest.mark.parametrize(
    "url",
    [
        "https://dummyjson.com/users",
        "https://DummyJSON.com/users?limit=0",
        "https://org123.crm.dynamics.com/api/data/v9.2/",
        "https://org.api.crm4.dynamics.com",
        "https://login.microsoftonline.com/tenant/oauth2/v2.0/token",
        "https://dummyjson.com:443/users",
    ],
)
def test_allowed_urls(validator: HostValidator, url: str) -> None:
    assert validator.is_allowed(url, ALLOWED) is True


@pytest.mark.unit
@pytest.mark.parametrize(
    "url",
    [
        "http://dummyjson.com/users",
        "https://evil.com/users",
        "https://dummyjson.com.evil.com/users",
        "https://notdynamics.com/",
        "https://dynamics.com/",
        "ftp://dummyjson.com/",
        "not a url",
        "",
        "   ",
        None,
    ],
)
def test_rejected_urls(validator: HostValidator, url) -> None:
    assert validator.is_allowed(url, ALLOWED) is False


@pytest.mark.unit
def test_empty_allow_list_rejects_everything(validator: HostValidator) -> None:
    assert validator.is_allowed("https://dummyjson.com", []) is False
    assert validator.is_allowed("https://dummyjson.com", None) is False


@pytest.mark.unit
def test_bare_domain_must_be_listed_explicitly(validator: HostValidator) -> None:
    assert validator.is_allowed("https://dynamics.com", ["*.dynamics.com", "dynamics.com"]) is True


@pytest.mark.unit
def test_validate_raises_security_exception_with_caller(validator: HostValidator) -> None:
    with pytest.raises(SecurityException) as exc_info:
        validator.validate("https://evil.com/x", ALLOWED, "DummyJSON API")

    assert exc_info.value.caller == "DummyJSON API"
    assert exc_info.value.url == "https://evil.com/x"
    assert exc_info.value.status_code == 403
    assert "DummyJSON API" in exc_info.value.message


@pytest.mark.unit
def test_validate_passes_for_allowed_url(validator: HostValidator) -> None:
    validator.validate("https://dummyjson.com/users", ALLOWED, "DummyJSON API")
