"""
Tests for request security-context helpers.
"""

from typing import Dict, Optional, Tuple

import pytest
from starlette.requests import Request

from shared import security


def make_request(headers: Optional[Dict[str, str]] = None, client: Optional[Tuple[str, int]] = ("10.1.1.1", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestClientIp:
    """Identity precedence: X-Forwarded-For, X-Real-IP, socket, "unknown"."""

    def test_first_forwarded_for_entry(self):
        request = make_request({"X-Forwarded-For": "1.2.3.4, 5.6.6.6", "X-Real-IP": "9.9.9.9"})
        assert security.get_client_ip(request) == "1.2.3.4"

    def test_forwarded_for_is_trimmed(self):
        request = make_request({"X-Forwarded-For": "  1.2.3.4  ,5.6.6.6"})
        assert security.get_client_ip(request) == "1.2.3.4"

    def test_real_ip_when_forwarded_for_absent(self):
        assert security.get_client_ip(make_request({"X-Real-IP": "9.9.9.9"})) == "9.9.9.9"

    def test_empty_forwarded_for_falls_through(self):
        request = make_request({"X-Forwarded-For": "", "X-Real-IP": "9.9.9.9"})
        assert security.get_client_ip(request) == "9.9.9.9"

    def test_socket_address(self):
        assert security.get_client_ip(make_request()) == "10.1.1.1"

    def test_unknown_without_any_source(self):
        assert security.get_client_ip(make_request(client=None)) == "unknown"

    def test_header_values_are_not_validated(self):
        request = make_request({"X-Forwarded-For": "not-an-ip"})
        assert security.get_client_ip(request) == "not-an-ip"


def test_user_headers():
    request = make_request({
        "X-User-Id": "user-1",
        "X-User-Email": "jane@example.com",
        "X-User-Role": "ADMIN, ROLE_HR_MANAGER,",
        "User-Agent": "ERP-Client/2.0",
    })

    assert security.get_user_id_from_headers(request) == "user-1"
    assert security.get_user_email_from_headers(request) == "jane@example.com"
    assert security.get_user_role_from_headers(request) == "ADMIN, ROLE_HR_MANAGER,"
    assert security.get_user_roles(request) == ["ADMIN", "ROLE_HR_MANAGER"]
    assert security.get_user_agent(request) == "ERP-Client/2.0"


def test_missing_user_headers():
    request = make_request()

    assert security.get_user_id_from_headers(request) is None
    assert security.get_user_roles(request) == []
    assert security.get_current_user_id(request) is None
    assert security.get_current_user_id_or_system(request) == "SYSTEM"
    assert not security.is_authenticated(request)


def test_anonymous_user_is_not_authenticated():
    request = make_request({"X-User-Id": "anonymousUser"})

    assert security.get_current_user_id(request) is None
    assert security.get_current_user_id_or_system(request) == "SYSTEM"


def test_authenticated_user():
    request = make_request({"X-User-Id": "user-1"})

    assert security.is_authenticated(request)
    assert security.get_current_user_id_or_system(request) == "user-1"


@pytest.mark.parametrize("role,expected", [
    ("ADMIN", True),
    ("HR_MANAGER", True),
    ("ROLE_HR_MANAGER", True),
    ("EMPLOYEE", False),
])
def test_has_role(role, expected):
    request = make_request({"X-User-Id": "user-1", "X-User-Role": "ADMIN,ROLE_HR_MANAGER"})
    assert security.has_role(request, role) is expected


def test_has_role_requires_authentication():
    request = make_request({"X-User-Role": "ADMIN"})
    assert not security.has_role(request, "ADMIN")
