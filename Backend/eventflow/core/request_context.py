"""
Request Session Resolution

This module is the single place that turns an inbound request into a
planner identity. Every guarded route depends on get_current_session.

RESOLUTION ORDER (first verified token wins):
    1. The session cookie (SESSION_COOKIE_NAME, default "ef-session")
    2. Authorization: Bearer <token> (API clients, first load before the
       cookie is set)

A token that fails verification is treated exactly like a missing one.
Nothing about the token is echoed back to the client.
"""

import logging
from typing import Any, Callable, Iterator, Optional

from fastapi import Depends, Request

from ..auth import IdentityVerifier, Session, build_identity_verifier
from .config import Settings, get_settings
from .errors import Unauthenticated

logger = logging.getLogger(__name__)


def _candidate_tokens(request: Request, cookie_name: str) -> Iterator[str]:
    cookie = request.cookies.get(cookie_name)
    if cookie:
        yield cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            yield token


def resolve_session(
    request: Request,
    verifier: IdentityVerifier,
    cookie_name: str,
) -> Optional[Session]:
    """
    Resolve the Session for a request, or None.

    Never raises. Malformed, expired and forged credentials all come back as
    None so the caller cannot be used as an oracle.
    """
    for token in _candidate_tokens(request, cookie_name):
        session = verifier.verify(token)
        if session is not None:
            return session
    return None


def get_identity_verifier(settings: Settings = Depends(get_settings)) -> IdentityVerifier:
    return build_identity_verifier(settings)


async def get_optional_session(
    request: Request,
    settings: Settings = Depends(get_settings),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Optional[Session]:
    return resolve_session(request, verifier, settings.session_cookie_name)


async def get_current_session(
    request: Request,
    session: Optional[Session] = Depends(get_optional_session),
) -> Session:
    """
    FastAPI dependency for guarded routes.

        @router.get("/events")
        async def handler(identity: Session = Depends(get_current_session)):
            ...

    Raises Unauthenticated (401) when no credential verifies.
    """
    if session is None:
        logger.warning(f"Unauthenticated request to {request.method} {request.url.path}")
        raise Unauthenticated()
    return session


def _depends_on(dependant: Any, call: Callable) -> bool:
    return any(dep.call is call or _depends_on(dep, call) for dep in dependant.dependencies)


def missing_required_session(request: Request) -> bool:
    """
    True when the matched route needs a session and the request has none.

    Used by error handlers that fire before dependencies run (a body that is
    not JSON), so such a request still answers 401 rather than 400.
    """
    dependant = getattr(request.scope.get("route"), "dependant", None)
    if dependant is None or not _depends_on(dependant, get_current_session):
        return False
    settings = request.app.dependency_overrides.get(get_settings, get_settings)()
    verifier = build_identity_verifier(settings)
    return resolve_session(request, verifier, settings.session_cookie_name) is None
