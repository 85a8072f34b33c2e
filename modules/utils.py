"""Request guards shared by the routers."""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Request
from fastapi.security import HTTPBasic
from starlette.status import HTTP_401_UNAUTHORIZED

from core.config import Settings

_basic = HTTPBasic(auto_error=False)


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def _challenge(settings: Settings) -> HTTPException:
    return HTTPException(
        status_code=HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": f'Basic realm="{settings.auth_realm}"'},
    )


# require_credentials routine
async def require_credentials(request: Request) -> str | None:
    """Dependency enforcing HTTP Basic auth when ``auth_enabled`` is set.

    Returns the authenticated username, or ``None`` when auth is disabled.
    """
    settings: Settings = request.app.state.settings
    if not settings.auth_enabled:
        return None
    try:
        credentials = await _basic(request)
    except HTTPException as exc:
        # malformed header; answer with our realm
        raise _challenge(settings) from exc
    if credentials is None:
        raise _challenge(settings)
    user_ok = _matches(credentials.username, settings.auth_username)
    pass_ok = _matches(credentials.password, settings.auth_password)
    if not (user_ok and pass_ok):
        raise _challenge(settings)
    return credentials.username
