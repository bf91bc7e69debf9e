"""
Firebase ID token verification for identity sync.

The browser signs in with Google through Firebase and posts the resulting ID
token to /auth/sync. We verify it here (RS256 against Google's securetoken
key set) before issuing our own signed session cookie.

Checks:
    - signature against the key named by the token's kid
    - aud == FIREBASE_PROJECT_ID
    - iss == https://securetoken.google.com/<project>
    - exp / iat
"""

import logging
import time
from typing import Awaitable, Callable, Optional

import httpx
import jwt
from jwt import PyJWK

from .core.errors import Unauthenticated

logger = logging.getLogger(__name__)

FIREBASE_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
)
JWKS_CACHE_SECONDS = 3600

JwksFetcher = Callable[[], Awaitable[dict]]

_jwks_cache: dict = {"keys": None, "fetched_at": 0.0}


async def fetch_firebase_jwks() -> dict:
    """Fetch Google's securetoken JWKS, cached for an hour."""
    now = time.monotonic()
    if _jwks_cache["keys"] is not None and now - _jwks_cache["fetched_at"] < JWKS_CACHE_SECONDS:
        return _jwks_cache["keys"]

    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.get(FIREBASE_JWKS_URL)
        response.raise_for_status()
        jwks = response.json()

    _jwks_cache["keys"] = jwks
    _jwks_cache["fetched_at"] = now
    logger.info("Fetched Firebase signing keys")
    return jwks


class FirebaseTokenVerifier:
    """
    Verifies Firebase ID tokens for one project.

    Args:
        project_id: Firebase project id (token audience)
        fetch_jwks: coroutine returning the key set; defaults to Google's endpoint

    Raises Unauthenticated for any token that does not verify.
    """

    def __init__(self, project_id: str, fetch_jwks: Optional[JwksFetcher] = None):
        self.project_id = project_id
        self.fetch_jwks = fetch_jwks or fetch_firebase_jwks

    @property
    def issuer(self) -> str:
        return f"https://securetoken.google.com/{self.project_id}"

    async def verify(self, token: str) -> dict:
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except jwt.PyJWTError as e:
            logger.warning(f"Malformed Firebase token: {e}")
            raise Unauthenticated("Invalid identity token")
        if not kid:
            raise Unauthenticated("Invalid identity token")

        try:
            jwks = await self.fetch_jwks()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch Firebase signing keys: {e}")
            raise Unauthenticated("Unable to verify identity token")

        signing_key = None
        for key in jwks.get("keys", []):
            if key.get("kid") == kid:
                signing_key = PyJWK.from_dict(key).key
                break
        if signing_key is None:
            logger.warning(f"No Firebase signing key for kid {kid}")
            raise Unauthenticated("Invalid identity token")

        try:
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("Identity token has expired")
        except jwt.PyJWTError as e:
            logger.warning(f"Firebase token verification failed: {e}")
            raise Unauthenticated("Invalid identity token")

        logger.debug(f"Firebase token verified for uid {claims.get('sub')}")
        return claims
