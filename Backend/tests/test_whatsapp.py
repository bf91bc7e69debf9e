"""
WhatsApp gateway tests.

These tests verify that:
1. Tokens round-trip through AES-GCM and legacy plaintext passes through
2. Phone numbers normalise to E.164
3. The Graph API client reports provider failures without raising
4. Setup / status / send / disconnect and bulk invites behave end to end

No request leaves the process: the Graph API is an httpx.MockTransport.
"""

import json
import logging

import httpx
import pytest

from eventflow.core.errors import Internal
from eventflow.models import InviteModel
from eventflow.routes_whatsapp import get_credential_cipher, get_whatsapp_client
from eventflow.whatsapp import CredentialCipher, WhatsAppApiError, WhatsAppClient, normalise_phone

GRAPH = "https://graph.test/v19.0"
KEY = "0123456789abcdef" * 4


# ────────────────────────────────────────────────────────────────
# Unit Tests - Credential Cipher
# ────────────────────────────────────────────────────────────────

class TestCredentialCipher:
    @pytest.mark.parametrize("plaintext", ["EAAG-token", "", "ünïcödé ✓", "a:b:c", "x" * 2048])
    def test_round_trip(self, plaintext):
        cipher = CredentialCipher(KEY)
        sealed = cipher.encrypt(plaintext)
        assert sealed != plaintext or plaintext == ""
        assert cipher.decrypt(sealed) == plaintext

    def test_stored_format_is_iv_tag_data_hex(self):
        iv, tag, data = CredentialCipher(KEY).encrypt("secret").split(":")
        assert len(bytes.fromhex(iv)) == 12
        assert len(bytes.fromhex(tag)) == 16
        assert len(bytes.fromhex(data)) == len("secret")

    def test_fresh_iv_each_time(self):
        cipher = CredentialCipher(KEY)
        assert cipher.encrypt("secret") != cipher.encrypt("secret")

    def test_plaintext_without_separator_passes_through(self):
        assert CredentialCipher(KEY).decrypt("EAAGlegacyplaintext") == "EAAGlegacyplaintext"

    def test_undecryptable_value_passes_through(self):
        sealed = CredentialCipher(KEY).encrypt("secret")
        other = CredentialCipher("f" * 64)
        assert other.decrypt(sealed) == sealed
        assert other.decrypt("zz:yy:xx") == "zz:yy:xx"

    @pytest.mark.parametrize("key", ["", "abc", "0" * 63, "g" * 64])
    def test_encrypt_without_valid_key_refuses(self, key):
        cipher = CredentialCipher(key)
        assert not cipher.configured
        with pytest.raises(Internal):
            cipher.encrypt("secret")

    def test_cipher_built_once_per_key(self, settings, caplog):
        settings.encryption_key = "q" * 64
        with caplog.at_level(logging.ERROR, logger="eventflow.whatsapp"):
            first = get_credential_cipher(settings)
            second = get_credential_cipher(settings)
        assert first is second
        assert not first.configured
        assert len([r for r in caplog.records if "ENCRYPTION_KEY" in r.getMessage()]) == 1


class TestNormalisePhone:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("08012345678", "+2348012345678"),
            ("+2348012345678", "+2348012345678"),
            ("2348012345678", "+2348012345678"),
            ("0801 234 5678", "+2348012345678"),
            ("(0801) 234-5678", "+2348012345678"),
            ("447700900123", "+447700900123"),
        ],
    )
    def test_normalise(self, raw, expected):
        assert normalise_phone(raw) == expected

    def test_other_country_code(self):
        assert normalise_phone("07700900123", "44") == "+447700900123"


# ────────────────────────────────────────────────────────────────
# Fixtures
# ────────────────────────────────────────────────────────────────

class FakeGraph:
    """Records requests and answers like the Graph API."""

    def __init__(self):
        self.requests = []
        self.fail_to = set()
        self.reject_token = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/messages"):
            payload = json.loads(request.content)
            if payload["to"] in self.fail_to:
                return httpx.Response(400, json={"error": {"message": "Recipient not on WhatsApp"}})
            return httpx.Response(200, json={"messages": [{"id": f"wamid.{len(self.requests)}"}]})
        if request.url.path.endswith("/oauth/access_token"):
            return httpx.Response(200, json={"access_token": "EAAG-exchanged"})
        if request.url.path.endswith("/me/businesses"):
            return httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "name": "Ada Events Ltd",
                            "whatsapp_business_accounts": {
                                "data": [
                                    {
                                        "id": "waba-9",
                                        "phone_numbers": {
                                            "data": [
                                                {
                                                    "id": "pn-9",
                                                    "display_phone_number": "+234 801 000 0009",
                                                    "verified_name": "Ada Events",
                                                }
                                            ]
                                        },
                                    }
                                ]
                            },
                        }
                    ]
                },
            )
        if self.reject_token:
            return httpx.Response(401, json={"error": {"message": "Invalid OAuth access token."}})
        return httpx.Response(
            200,
            json={"verified_name": "Ada Events", "display_phone_number": "+234 801 000 0000"},
        )

    @property
    def sent(self):
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/messages")]


@pytest.fixture
def graph():
    return FakeGraph()


@pytest.fixture
def wa_client(graph):
    return WhatsAppClient(GRAPH, transport=httpx.MockTransport(graph.handler))


@pytest.fixture
def wired_app(app, wa_client):
    app.dependency_overrides[get_whatsapp_client] = lambda: wa_client
    app.dependency_overrides[get_credential_cipher] = lambda: CredentialCipher(KEY)
    return app


@pytest.fixture
async def connected_planner(db_session, planner):
    planner.wa_access_token = CredentialCipher(KEY).encrypt("EAAG-stored")
    planner.wa_phone_number_id = "pn-1"
    planner.wa_display_name = "Ada Events"
    await db_session.commit()
    return planner


# ────────────────────────────────────────────────────────────────
# Unit Tests - Graph API client
# ────────────────────────────────────────────────────────────────

class TestWhatsAppClient:
    async def test_send_text(self, wa_client, graph):
        result = await wa_client.send_text("EAAG", "pn-1", "08012345678", "Hello")
        assert result.success
        assert result.message_id == "wamid.1"

        request = graph.requests[0]
        assert request.url == f"{GRAPH}/pn-1/messages"
        assert request.headers["Authorization"] == "Bearer EAAG"
        assert graph.sent[0]["to"] == "+2348012345678"
        assert graph.sent[0]["text"] == {"preview_url": False, "body": "Hello"}

    async def test_send_failure_is_reported_not_raised(self, wa_client, graph):
        graph.fail_to.add("+2348012345678")
        result = await wa_client.send_text("EAAG", "pn-1", "+2348012345678", "Hello")
        assert not result.success
        assert result.error == "Recipient not on WhatsApp"

    async def test_verify_phone_number_rejection(self, wa_client, graph):
        graph.reject_token = True
        with pytest.raises(WhatsAppApiError, match="Invalid OAuth access token."):
            await wa_client.verify_phone_number("bad", "pn-1")

    async def test_discover_business(self, wa_client):
        account = await wa_client.discover_business("EAAG")
        assert account.waba_id == "waba-9"
        assert account.phone_number_id == "pn-9"
        assert account.display_name == "Ada Events"
        assert account.business_name == "Ada Events Ltd"


# ────────────────────────────────────────────────────────────────
# Integration Tests - Routes
# ────────────────────────────────────────────────────────────────

class TestWhatsAppRoutes:
    async def test_status_when_not_connected(self, client, headers):
        response = await client.get("/whatsapp/status", headers=headers)
        assert response.json() == {
            "connected": False,
            "phoneNumber": None,
            "displayName": None,
            "businessName": None,
            "wabaId": None,
            "phoneNumberId": None,
            "connectedAt": None,
            "messagesSentTotal": 0,
        }

    async def test_setup_stores_encrypted_token(self, wired_app, client, headers, db_session, planner):
        response = await client.post(
            "/whatsapp/setup",
            json={"accessToken": "EAAG-new", "phoneNumberId": "pn-2", "wabaId": "waba-2"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "displayName": "Ada Events"}

        await db_session.refresh(planner)
        assert planner.wa_access_token != "EAAG-new"
        assert CredentialCipher(KEY).decrypt(planner.wa_access_token) == "EAAG-new"
        assert planner.wa_phone_number == "+234 801 000 0000"

        status = (await client.get("/whatsapp/status", headers=headers)).json()
        assert status["connected"] is True
        assert status["phoneNumberId"] == "pn-2"
        assert "accessToken" not in status

    async def test_setup_rejected_by_meta(self, wired_app, client, headers, graph):
        graph.reject_token = True
        response = await client.post(
            "/whatsapp/setup",
            json={"accessToken": "bad", "phoneNumberId": "pn-2", "wabaId": "waba-2"},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Meta API rejected the credentials: Invalid OAuth access token."}

    async def test_setup_without_encryption_key_hides_detail(self, wired_app, client, headers, db_session, planner):
        wired_app.dependency_overrides[get_credential_cipher] = lambda: CredentialCipher("")
        response = await client.post(
            "/whatsapp/setup",
            json={"accessToken": "EAAG-new", "phoneNumberId": "pn-2", "wabaId": "waba-2"},
            headers=headers,
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

        await db_session.refresh(planner)
        assert planner.wa_access_token is None

    async def test_setup_requires_fields(self, wired_app, client, headers):
        response = await client.post("/whatsapp/setup", json={"accessToken": "EAAG"}, headers=headers)
        assert response.status_code == 400

    async def test_disconnect(self, wired_app, client, headers, connected_planner):
        response = await client.delete("/whatsapp/setup", headers=headers)
        assert response.json() == {"success": True}
        status = (await client.get("/whatsapp/status", headers=headers)).json()
        assert status["connected"] is False

    async def test_send_requires_connection(self, wired_app, client, headers):
        response = await client.post("/whatsapp/send", json={"to": "0801", "message": "hi"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"].startswith("WhatsApp not connected.")

    async def test_send_uses_decrypted_token_and_counts(self, wired_app, client, headers, graph, connected_planner):
        response = await client.post(
            "/whatsapp/send", json={"to": "08012345678", "message": "Hello"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "messageId": "wamid.1"}
        assert graph.requests[0].headers["Authorization"] == "Bearer EAAG-stored"
        assert graph.sent[0]["text"]["preview_url"] is True

        await client.post(
            "/whatsapp/send", json={"to": "08012345678", "message": "Test", "test": True}, headers=headers
        )
        status = (await client.get("/whatsapp/status", headers=headers)).json()
        assert status["messagesSentTotal"] == 1

    async def test_send_validation(self, wired_app, client, headers, connected_planner):
        no_to = await client.post("/whatsapp/send", json={"message": "Hello"}, headers=headers)
        no_body = await client.post("/whatsapp/send", json={"to": "0801"}, headers=headers)
        assert no_to.json() == {"error": "Recipient phone number required"}
        assert no_body.json() == {"error": "Message body required"}

    async def test_send_provider_failure_is_502(self, wired_app, client, headers, graph, connected_planner):
        graph.fail_to.add("+2348012345678")
        response = await client.post(
            "/whatsapp/send", json={"to": "08012345678", "message": "Hello"}, headers=headers
        )
        assert response.status_code == 502
        assert response.json() == {"error": "Recipient not on WhatsApp"}

    async def test_setup_callback(self, wired_app, client, headers, settings, db_session, planner):
        settings.meta_app_id = "app-1"
        settings.meta_app_secret = "shh"
        response = await client.get("/whatsapp/setup/callback", params={"code": "abc"}, headers=headers)
        assert response.status_code == 200
        assert "Connected!" in response.text

        await db_session.refresh(planner)
        assert planner.wa_phone_number_id == "pn-9"
        assert planner.wa_waba_id == "waba-9"
        assert CredentialCipher(KEY).decrypt(planner.wa_access_token) == "EAAG-exchanged"

    async def test_setup_callback_without_session(self, wired_app, client):
        response = await client.get("/whatsapp/setup/callback", params={"code": "abc"})
        assert response.status_code == 200
        assert "Connection failed" in response.text


class TestSendInvites:
    async def test_send_invites_report(
        self, wired_app, client, headers, graph, planner, make_event, make_guest, connected_planner, db_session
    ):
        event = await make_event(planner, "Private Dinner", invite_model=InviteModel.CLOSED)
        ok = await make_guest(event, "Amaka", "Obi", phone="08011111111", invite_token="tok-amaka")
        bad = await make_guest(event, "Tunde", "Bello", phone="08022222222", invite_token="tok-tunde")
        none = await make_guest(event, "Ngozi", "Eze")
        graph.fail_to.add("+2348022222222")

        response = await client.post(
            f"/events/{event.id}/guests/send-invites",
            json={"guestIds": [ok.id, bad.id, none.id, "not-in-event"]},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json() == {
            "sent": 1,
            "failed": 1,
            "noPhone": 1,
            "errors": ["Recipient not on WhatsApp"],
        }

        body = graph.sent[0]["text"]["body"]
        assert "Amaka" in body
        assert "Private Dinner" in body
        assert f"https://app.test/rsvp/{event.slug}?invite=tok-amaka" in body

        await db_session.refresh(ok)
        assert ok.invite_channel.value == "WHATSAPP"
        assert ok.invite_sent_at is not None

        status = (await client.get("/whatsapp/status", headers=headers)).json()
        assert status["messagesSentTotal"] == 1

    async def test_send_invites_requires_connection(self, wired_app, client, headers, event):
        response = await client.post(
            f"/events/{event.id}/guests/send-invites", json={"guestIds": ["x"]}, headers=headers
        )
        assert response.status_code == 400
        assert response.json() == {"error": "WhatsApp not connected."}

    async def test_send_invites_requires_ids(self, wired_app, client, headers, event, connected_planner):
        response = await client.post(f"/events/{event.id}/guests/send-invites", json={}, headers=headers)
        assert response.status_code == 400
        assert response.json() == {"error": "No guest IDs provided"}
