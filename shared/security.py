"""
Request security-context helpers.

The gateway authenticates callers and forwards their identity to downstream
services as ``X-User-*`` headers; these helpers read that context back from
a Starlette request. The client IP extraction here is also the identity used
by the gateway rate limiter.
"""

from typing import List, Optional

from starlette.requests import Request

SYSTEM_USER = "SYSTEM"
ANONYMOUS_USER = "anonymousUser"

USER_ID_HEADER = "X-User-Id"
USER_EMAIL_HEADER = "X-User-Email"
USER_ROLE_HEADER = "X-User-Role"


def get_client_ip(request: Request) -> str:
    """Extract the caller IP from standard headers.

    Header values are trusted as-is; no address format validation is done.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")


def get_user_id_from_headers(request: Request) -> Optional[str]:
    return request.headers.get(USER_ID_HEADER)


def get_user_email_from_headers(request: Request) -> Optional[str]:
    return request.headers.get(USER_EMAIL_HEADER)


def get_user_role_from_headers(request: Request) -> Optional[str]:
    return request.headers.get(USER_ROLE_HEADER)


def get_user_roles(request: Request) -> List[str]:
    """Roles from the comma-separated role header, blanks dropped."""
    raw = get_user_role_from_headers(request)
    if not raw:
        return []
    return [role.strip() for role in raw.split(",") if role.strip()]


def get_current_user_id(request: Request) -> Optional[str]:
    user_id = get_user_id_from_headers(request)
    if not user_id or user_id == ANONYMOUS_USER:
        return None
    return user_id


def get_current_user_id_or_system(request: Request) -> str:
    return get_current_user_id(request) or SYSTEM_USER


def is_authenticated(request: Request) -> bool:
    return get_current_user_id(request) is not None


def has_role(request: Request, role: str) -> bool:
    """Check a role by bare name or with the ``ROLE_`` prefix."""
    if not is_authenticated(request):
        return False
    roles = get_user_roles(request)
    return role in roles or f"ROLE_{role}" in roles
