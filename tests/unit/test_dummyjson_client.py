"""
Tests del cliente de la API origen (sesión HTTP simulada).
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from employee_sync.infrastructure.external.dummyjson.api_client import DummyJSONClient
from employee_sync.shared.exceptions.security import SecurityException
from employee_sync.shared.exceptions.sync import SourceApiException
from tests.conftest import session_with_routes


def _response(status_code=200, payload=None, json_error=False):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error:
        resp.json.side_effect = ValueError("no es json")
    else:
        resp.json.return_value = payload
    return resp


def _client(session, base_url="https://dummyjson.com/"):
    return DummyJSONClient(base_url=base_url, allowed_hosts=["dummyjson.com"], session=session, timeout_s=5)


@pytest.mark.unit
def test_returns_wrapped_users() -> None:
    session = MagicMock()
    session.get.return_value = _response(payload={"users": [{"id": 1}, {"id": 2}], "total": 2})

    users = _client(session).get_employees("users")

    assert users == [{"id": 1}, {"id": 2}]
    url = session.get.call_args.args[0]
    assert url == "https://dummyjson.com/users?limit=0"
    assert session.get.call_args.kwargs["timeout"] == 5


@pytest.mark.unit
def test_single_user_payload_is_wrapped_in_list() -> None:
    session = MagicMock()
    session.get.return_value = _response(payload={"id": 7, "firstName": "Solo"})

    assert _client(session, base_url="https://dummyjson.com").get_employees("users/7") == [
        {"id": 7, "firstName": "Solo"}
    ]


@pytest.mark.unit
def test_disallowed_host_is_rejected_before_calling() -> None:
    session = MagicMock()
    client = DummyJSONClient(base_url="https://evil.com/", allowed_hosts=["dummyjson.com"], session=session)

    with pytest.raises(SecurityException):
        client.get_employees()

    session.get.assert_not_called()


@pytest.mark.unit
@pytest.mark.parametrize(
    "response",
    [
        _response(status_code=500, payload={}),
        _response(json_error=True),
        _response(payload=[1, 2, 3]),
    ],
)
def test_bad_responses_raise_source_api_exception(response) -> None:
    session = MagicMock()
    session.get.return_value = response

    with pytest.raises(SourceApiException):
        _client(session).get_employees()


@pytest.mark.unit
def test_network_error_raises_source_api_exception() -> None:
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("sin red")

    with pytest.raises(SourceApiException):
        _client(session).get_employees()


@pytest.mark.unit
def test_redirect_to_other_host_is_not_followed() -> None:
    session, adapter = session_with_routes({
        "https://dummyjson.com/users?limit=0": (302, {"Location": "https://evil.example.net/steal"}, None),
        "https://evil.example.net/steal": (200, {}, {"users": [{"id": 1}]}),
    })

    with pytest.raises(SourceApiException) as exc_info:
        _client(session).get_employees("users")

    assert adapter.seen == ["https://dummyjson.com/users?limit=0"]
    assert exc_info.value.details["location"] == "https://evil.example.net/steal"


@pytest.mark.unit
def test_real_session_returns_users() -> None:
    session, adapter = session_with_routes({
        "https://dummyjson.com/users?limit=0": (200, {"Content-Type": "application/json"}, {"users": [{"id": 1}]}),
    })

    assert _client(session).get_employees("users") == [{"id": 1}]
