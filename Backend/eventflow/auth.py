"""
Session identity verification.

A planner's browser carries one credential cookie. This module turns that
opaque value into a Session (uid, email, name) or None. Verifiers never
raise: a malformed, expired or forged token is indistinguishable from no
token at all, and the caller decides whether that means 401.

VERIFIERS:
    - SignedSessionVerifier: HS256 JWT signed with SESSION_SECRET. This is the
      production mechanism and the only one that issues tokens.
    - UnsignedSessionVerifier: legacy base64 JSON envelope {uid, email, name}.
      It trusts client-supplied claims, so it is only enabled when
      ALLOW_UNSIGNED_SESSIONS=true (local development, old cookies).

Usage:
    verifier = build_identity_verifier(settings)
    session = verifier.verify(cookie_value)
    if session is None:
        raise Unauthenticated()
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import jwt

from .core.config import Settings
from .core.errors import Internal

logger = logging.getLogger(__name__)

SESSION_ALGORITHM = "HS256"
SESSION_ISSUER = "eventflow"


@dataclass(frozen=True)
class Session:
    """Who is making the request. Only the shape is trusted, never the source."""

    uid: str
    email: str
    name: Optional[str] = None


class IdentityVerifier(Protocol):
    def verify(self, token: Optional[str]) -> Optional[Session]:
        ...


def _session_from_claims(claims: object) -> Optional[Session]:
    if not isinstance(claims, dict):
        return None
    uid = claims.get("uid") or claims.get("sub")
    email = claims.get("email")
    if not isinstance(uid, str) or not isinstance(email, str) or not uid or not email:
        return None
    name = claims.get("name")
    return Session(uid=uid, email=email, name=name if isinstance(name, str) else None)


# ────────────────────────────────────────────────────────────────
# Signed sessions (production)
# ────────────────────────────────────────────────────────────────

class SignedSessionVerifier:
    """
    Issues and verifies HS256 session tokens.

    Tokens carry sub (uid), email, name, iat and exp. An empty secret
    verifies nothing and refuses to issue.
    """

    def __init__(self, secret: str, ttl_hours: int = 24 * 7):
        self.secret = secret
        self.ttl = timedelta(hours=ttl_hours)

    def issue(self, session: Session, now: Optional[datetime] = None) -> str:
        if not self.secret:
            raise Internal("Session signing is not configured")
        now = now or datetime.now(timezone.utc)
        claims = {
            "sub": session.uid,
            "email": session.email,
            "name": session.name,
            "iss": SESSION_ISSUER,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(claims, self.secret, algorithm=SESSION_ALGORITHM)

    def verify(self, token: Optional[str]) -> Optional[Session]:
        if not token or not self.secret:
            return None
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[SESSION_ALGORITHM],
                issuer=SESSION_ISSUER,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            logger.debug(f"Rejected session token: {e}")
            return None
        return _session_from_claims(claims)


# ────────────────────────────────────────────────────────────────
# Legacy unsigned envelope (development only)
# ────────────────────────────────────────────────────────────────

def decode_session_envelope(token: Optional[str]) -> Optional[Session]:
    """
    Decode a base64 JSON envelope into a Session.

    Accepts both the standard and URL-safe alphabets, with or without
    padding. Returns None for anything that is not an object carrying
    non-empty uid and email strings.

    Example:
        >>> decode_session_envelope(base64.b64encode(b'{"uid":"u1","email":"a@b.co"}').decode())
        Session(uid='u1', email='a@b.co', name=None)
        >>> decode_session_envelope("not base64!") is None
        True
    """
    if not token:
        return None
    try:
        normalized = token.strip().replace("-", "+").replace("_", "/")
        normalized += "=" * (-len(normalized) % 4)
        raw = base64.b64decode(normalized, validate=True)
        claims = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError):
        return None
    return _session_from_claims(claims)


class UnsignedSessionVerifier:
    def verify(self, token: Optional[str]) -> Optional[Session]:
        return decode_session_envelope(token)


class FallbackVerifier:
    """Try each verifier in order, first Session wins."""

    def __init__(self, *verifiers: IdentityVerifier):
        self.verifiers = verifiers

    def verify(self, token: Optional[str]) -> Optional[Session]:
        for verifier in self.verifiers:
            session = verifier.verify(token)
            if session is not None:
                return session
        return None


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    signed = SignedSessionVerifier(settings.session_secret, settings.session_ttl_hours)
    if settings.allow_unsigned_sessions:
        return FallbackVerifier(signed, UnsignedSessionVerifier())
    return signed
