"""
Session resolution tests.

These tests verify that:
1. Signed session tokens verify and round-trip the Session shape
2. Expired, forged and malformed credentials resolve to nothing
3. The unsigned legacy envelope is only trusted when explicitly allowed
4. Every guarded endpoint answers 401 without a valid credential
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from eventflow.auth import (
    FallbackVerifier,
    Session,
    SignedSessionVerifier,
    UnsignedSessionVerifier,
    build_identity_verifier,
    decode_session_envelope,
)
from eventflow.core.config import Settings
from eventflow.core.errors import Internal

TEST_SESSION_SECRET = "unit-test-secret"


def _envelope(claims: dict, urlsafe: bool = False) -> str:
    raw = json.dumps(claims).encode()
    encoded = base64.urlsafe_b64encode(raw) if urlsafe else base64.b64encode(raw)
    return encoded.decode()


# ────────────────────────────────────────────────────────────────
# Unit Tests - Verifiers
# ────────────────────────────────────────────────────────────────

class TestSignedSessionVerifier:
    def test_issue_then_verify_returns_session(self):
        verifier = SignedSessionVerifier(TEST_SESSION_SECRET)
        token = verifier.issue(Session(uid="u1", email="ada@example.com", name="Ada"))
        assert verifier.verify(token) == Session(uid="u1", email="ada@example.com", name="Ada")

    def test_expired_token_is_rejected(self):
        verifier = SignedSessionVerifier(TEST_SESSION_SECRET, ttl_hours=1)
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = verifier.issue(Session(uid="u1", email="ada@example.com"), now=issued)
        assert verifier.verify(token) is None

    def test_token_signed_with_other_secret_is_rejected(self):
        forged = SignedSessionVerifier("someone-elses-secret").issue(Session(uid="u1", email="ada@example.com"))
        assert SignedSessionVerifier(TEST_SESSION_SECRET).verify(forged) is None

    @pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
    def test_malformed_tokens_are_rejected(self, token):
        assert SignedSessionVerifier(TEST_SESSION_SECRET).verify(token) is None

    def test_empty_secret_verifies_nothing_and_refuses_to_issue(self):
        verifier = SignedSessionVerifier("")
        assert verifier.verify(session_token_for_any()) is None
        with pytest.raises(Internal):
            verifier.issue(Session(uid="u1", email="ada@example.com"))


def session_token_for_any() -> str:
    return SignedSessionVerifier(TEST_SESSION_SECRET).issue(Session(uid="u1", email="ada@example.com"))


class TestUnsignedEnvelope:
    def test_decodes_standard_and_urlsafe_base64(self):
        claims = {"uid": "u1", "email": "ada@example.com", "name": "Ada"}
        assert decode_session_envelope(_envelope(claims)) == Session("u1", "ada@example.com", "Ada")
        assert decode_session_envelope(_envelope(claims, urlsafe=True)) == Session("u1", "ada@example.com", "Ada")

    @pytest.mark.parametrize(
        "token",
        [
            "not base64!",
            base64.b64encode(b"not json").decode(),
            base64.b64encode(b"[1, 2]").decode(),
            _envelope({"uid": "u1"}),
            _envelope({"email": "ada@example.com"}),
            _envelope({"uid": "", "email": "ada@example.com"}),
        ],
    )
    def test_bad_envelopes_decode_to_none(self, token):
        assert decode_session_envelope(token) is None

    def test_fallback_tries_verifiers_in_order(self):
        verifier = FallbackVerifier(SignedSessionVerifier(TEST_SESSION_SECRET), UnsignedSessionVerifier())
        assert verifier.verify(session_token_for_any()).uid == "u1"
        assert verifier.verify(_envelope({"uid": "u2", "email": "b@example.com"})).uid == "u2"
        assert verifier.verify("junk") is None

    def test_unsigned_envelopes_need_explicit_opt_in(self):
        token = _envelope({"uid": "u2", "email": "b@example.com"})
        strict = build_identity_verifier(Settings(_env_file=None, session_secret=TEST_SESSION_SECRET))
        lenient = build_identity_verifier(
            Settings(_env_file=None, session_secret=TEST_SESSION_SECRET, allow_unsigned_sessions=True)
        )
        assert strict.verify(token) is None
        assert lenient.verify(token) == Session("u2", "b@example.com")


# ────────────────────────────────────────────────────────────────
# Integration Tests - Guarded Endpoints
# ────────────────────────────────────────────────────────────────

GUARDED_ENDPOINTS = [
    ("GET", "/events"),
    ("POST", "/events"),
    ("GET", "/events/evt-1"),
    ("PATCH", "/events/evt-1"),
    ("DELETE", "/events/evt-1"),
    ("GET", "/events/evt-1/guests"),
    ("POST", "/events/evt-1/guests/import"),
    ("DELETE", "/events/evt-1/guests/g-1"),
    ("GET", "/events/evt-1/menu"),
    ("PATCH", "/events/evt-1/menu/m-1"),
    ("POST", "/events/evt-1/tables/bulk"),
    ("DELETE", "/events/evt-1/tables/t-1"),
    ("GET", "/events/evt-1/ushers"),
    ("DELETE", "/events/evt-1/vendors/v-1"),
    ("GET", "/overview/stats"),
    ("GET", "/overview/recent-rsvps"),
    ("GET", "/overview/upcoming"),
    ("GET", "/whatsapp/status"),
    ("POST", "/whatsapp/send"),
]

JSON_HEADERS = {"Content-Type": "application/json"}


class TestGuardedEndpoints:
    @pytest.mark.parametrize("method,path", GUARDED_ENDPOINTS)
    async def test_missing_session_is_401(self, client, method, path):
        response = await client.request(method, path, json={})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorised"}

    @pytest.mark.parametrize("method,path", GUARDED_ENDPOINTS)
    async def test_malformed_session_is_401(self, client, method, path):
        response = await client.request(method, path, json={}, headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    @pytest.mark.parametrize("method,path", [(m, p) for m, p in GUARDED_ENDPOINTS if m in ("POST", "PATCH")])
    async def test_missing_session_with_bad_json_is_401(self, client, method, path):
        response = await client.request(method, path, content=b"{bad", headers=JSON_HEADERS)
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorised"}

    async def test_bad_json_with_session_is_400(self, client, headers, event):
        response = await client.post(
            f"/events/{event.id}/guests/import", content=b"{bad", headers={**headers, **JSON_HEADERS}
        )
        assert response.status_code == 400

    async def test_bad_json_on_public_route_is_400(self, client):
        response = await client.post("/auth/sync", content=b"{bad", headers=JSON_HEADERS)
        assert response.status_code == 400

    async def test_forged_token_for_real_planner_is_401(self, client, token_for, planner, event):
        forged = token_for(planner, secret="guessed-secret")
        response = await client.get(f"/events/{event.id}", headers={"Authorization": f"Bearer {forged}"})
        assert response.status_code == 401

    async def test_unsigned_envelope_rejected_by_default(self, client, planner):
        token = _envelope({"uid": planner.id, "email": planner.email})
        response = await client.get("/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_session_cookie_is_accepted(self, client, settings, token_for, planner):
        cookie = f"{settings.session_cookie_name}={token_for(planner)}"
        response = await client.get("/events", headers={"Cookie": cookie})
        assert response.status_code == 200
        assert response.json() == []

    async def test_bearer_token_is_accepted(self, client, headers):
        response = await client.get("/events", headers=headers)
        assert response.status_code == 200

    async def test_upload_requires_session(self, client):
        response = await client.post("/upload/invitation-card", files={"file": ("card.png", b"png", "image/png")})
        assert response.status_code == 401


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
