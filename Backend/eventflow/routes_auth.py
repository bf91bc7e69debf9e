"""
Identity sync.

    POST /auth/sync    -> upsert the planner after Google sign-in
    POST /auth/logout  -> clear the session cookie

With FIREBASE_PROJECT_ID set, /auth/sync only trusts a verified Firebase ID
token (Authorization: Bearer) and answers with a signed session cookie.
Without it the body is trusted as-is (local development).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import Session, SignedSessionVerifier
from .core.config import Settings, get_settings
from .core.db import get_session
from .core.errors import InvalidInput, Unauthenticated
from .core.responses import success_response
from .firebase_auth import FirebaseTokenVerifier
from .models import Planner
from .schemas import AuthSyncRequest, PlannerOut
from .tenancy import get_planner_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Profile fields an existing planner takes from a sync body, when sent.
SYNCED_PROFILE_FIELDS = ("name", "image")


def get_firebase_verifier(settings: Settings = Depends(get_settings)) -> Optional[FirebaseTokenVerifier]:
    if not settings.firebase_project_id:
        return None
    return FirebaseTokenVerifier(settings.firebase_project_id)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


@router.post("/sync")
async def sync_user(
    body: AuthSyncRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    firebase: Optional[FirebaseTokenVerifier] = Depends(get_firebase_verifier),
):
    email = (body.email or "").strip()
    if not email:
        raise InvalidInput("Email required")

    uid = body.uid
    if firebase is not None:
        token = _bearer_token(request)
        if not token:
            raise Unauthenticated()
        claims = await firebase.verify(token)
        if (claims.get("email") or "").lower() != email.lower():
            logger.warning(f"Identity token email does not match sync body for {claims.get('sub')}")
            raise Unauthenticated()
        uid = claims["sub"]

    planner = await get_planner_by_email(session, email)
    if planner is None:
        if not uid:
            raise InvalidInput("User id required")
        planner = Planner(id=uid, email=email, name=body.name, image=body.image)
        session.add(planner)
        logger.info(f"Created planner {uid}")
    else:
        for field, value in body.changes().items():
            if field in SYNCED_PROFILE_FIELDS:
                setattr(planner, field, value)
    await session.commit()
    await session.refresh(planner)

    if firebase is not None:
        signer = SignedSessionVerifier(settings.session_secret, settings.session_ttl_hours)
        token = signer.issue(Session(uid=planner.id, email=planner.email, name=planner.name))
        response.set_cookie(
            settings.session_cookie_name,
            token,
            max_age=settings.session_ttl_hours * 3600,
            httponly=True,
            samesite="lax",
            secure=settings.app_url.startswith("https://"),
        )

    return {"user": PlannerOut.model_validate(planner)}


@router.post("/logout")
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.delete_cookie(settings.session_cookie_name)
    return success_response()
