"""
WhatsApp Business messaging gateway (Meta Cloud API).

This module handles:
- Encrypting a planner's access token at rest (AES-256-GCM)
- Normalising guest phone numbers to E.164
- Sending text messages through the Graph API
- Verifying credentials and the embedded-signup OAuth exchange

Stored token format:
    <iv hex>:<auth tag hex>:<ciphertext hex>     (12-byte IV, 16-byte tag)

A stored value without ":" is a token saved before encryption was turned on;
decrypt() hands it back unchanged.
"""

import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import httpx
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .core.config import Settings
from .core.errors import Internal

logger = logging.getLogger(__name__)

IV_BYTES = 12
TAG_BYTES = 16
SEPARATOR = ":"
DEFAULT_COUNTRY_CODE = "234"

_PHONE_PUNCTUATION = re.compile(r"[\s\-().]")


# ────────────────────────────────────────────────────────────────
# Credential encryption
# ────────────────────────────────────────────────────────────────

class CredentialCipher:
    """
    AES-256-GCM for access tokens.

    Args:
        key_hex: 64 hex characters (32 bytes). Empty or malformed keys leave
            the cipher unconfigured: encrypt() refuses, decrypt() passes through.
    """

    def __init__(self, key_hex: str):
        self._aead: Optional[AESGCM] = None
        if key_hex:
            try:
                key = bytes.fromhex(key_hex)
            except ValueError:
                key = b""
            if len(key) == 32:
                self._aead = AESGCM(key)
            else:
                logger.error("ENCRYPTION_KEY must be 64 hex characters; credential encryption disabled")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialCipher":
        return _cipher_for_key(settings.encryption_key)

    @property
    def configured(self) -> bool:
        return self._aead is not None

    def encrypt(self, plaintext: str) -> str:
        if self._aead is None:
            raise Internal("Credential encryption is not configured")
        iv = os.urandom(IV_BYTES)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        data, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return SEPARATOR.join((iv.hex(), tag.hex(), data.hex()))

    def decrypt(self, ciphertext: str) -> str:
        """
        Recover a stored token.

        Values without the separator are returned as-is (legacy plaintext).
        A delimited value that will not decrypt is also returned as-is, with
        a warning, so a rotated key degrades to a provider-side auth failure.
        """
        if SEPARATOR not in ciphertext:
            return ciphertext
        if self._aead is None:
            logger.warning("Encrypted credential found but ENCRYPTION_KEY is not configured")
            return ciphertext
        try:
            iv_hex, tag_hex, data_hex = ciphertext.split(SEPARATOR)
            iv = bytes.fromhex(iv_hex)
            sealed = bytes.fromhex(data_hex) + bytes.fromhex(tag_hex)
            return self._aead.decrypt(iv, sealed, None).decode("utf-8")
        except (ValueError, InvalidTag) as e:
            logger.warning(f"Could not decrypt stored credential: {type(e).__name__}")
            return ciphertext


@lru_cache
def _cipher_for_key(key_hex: str) -> CredentialCipher:
    """One cipher per key, so a malformed key is reported once per process."""
    return CredentialCipher(key_hex)


# ────────────────────────────────────────────────────────────────
# Phone normalisation
# ────────────────────────────────────────────────────────────────

def normalise_phone(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalise a phone number to E.164.

    Examples (country_code="234"):
        "0801 234 5678"   -> "+2348012345678"   local trunk format
        "2348012345678"   -> "+2348012345678"
        "+2348012345678"  -> "+2348012345678"
        "447700900123"    -> "+447700900123"    assumed international
    """
    phone = _PHONE_PUNCTUATION.sub("", raw)
    if phone.startswith("+"):
        return phone
    if phone.startswith("0") and len(phone) == 11:
        return f"+{country_code}{phone[1:]}"
    if phone.startswith(country_code):
        return f"+{phone}"
    return f"+{phone}"


# ────────────────────────────────────────────────────────────────
# Graph API client
# ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BusinessAccount:
    """What embedded signup discovered about the planner's WhatsApp business."""

    waba_id: str = ""
    phone_number_id: str = ""
    display_phone: str = ""
    display_name: str = ""
    business_name: str = ""


class WhatsAppApiError(Exception):
    """The Graph API refused a request. message is the provider's text."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _provider_error(response: httpx.Response, data: dict) -> str:
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return f"Meta API error {response.status_code}"


class WhatsAppClient:
    """
    Thin async client for the WhatsApp Cloud API.

    Args:
        api_base: Graph API base, e.g. https://graph.facebook.com/v19.0
        country_code: calling code used by normalise_phone
        transport: optional httpx transport (tests pass httpx.MockTransport)

    No call is retried; failures go straight back to the caller.
    """

    def __init__(
        self,
        api_base: str,
        country_code: str = DEFAULT_COUNTRY_CODE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.api_base = api_base.rstrip("/")
        self.country_code = country_code
        self.transport = transport
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "WhatsAppClient":
        return cls(settings.messaging_api_base, settings.default_country_code, transport=transport)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def send_text(
        self,
        access_token: str,
        phone_number_id: str,
        to: str,
        message: str,
        preview_url: bool = False,
    ) -> SendResult:
        """
        Send one text message.

        Returns SendResult(success=False, error=<provider message>) when Meta
        answers non-2xx; network errors propagate.
        """
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": normalise_phone(to, self.country_code),
            "type": "text",
            "text": {"preview_url": preview_url, "body": message},
        }
        async with self._client() as client:
            response = await client.post(
                f"{self.api_base}/{phone_number_id}/messages",
                json=payload,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        data = _json_or_empty(response)

        if not response.is_success:
            error = _provider_error(response, data)
            logger.error(f"WhatsApp send error ({response.status_code}): {error}")
            return SendResult(success=False, error=error)

        messages = data.get("messages") or [{}]
        message_id = messages[0].get("id") if isinstance(messages[0], dict) else None
        logger.info(f"WhatsApp message sent via {phone_number_id}: {message_id}")
        return SendResult(success=True, message_id=message_id)

    async def verify_phone_number(self, access_token: str, phone_number_id: str) -> dict:
        """GET the phone number object; raises WhatsAppApiError when the token is refused."""
        async with self._client() as client:
            response = await client.get(
                f"{self.api_base}/{phone_number_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        data = _json_or_empty(response)
        if not response.is_success:
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise WhatsAppApiError(message or "Invalid credentials", response.status_code)
        return data

    async def exchange_code(self, app_id: str, app_secret: str, redirect_uri: str, code: str) -> str:
        """Trade an embedded-signup code for a user access token."""
        async with self._client() as client:
            response = await client.get(
                f"{self.api_base}/oauth/access_token",
                params={
                    "client_id": app_id,
                    "client_secret": app_secret,
                    "redirect_uri": redirect_uri,
                    "code": code,
                },
            )
        data = _json_or_empty(response)
        if not response.is_success or not data.get("access_token"):
            raise WhatsAppApiError(_provider_error(response, data), response.status_code)
        return data["access_token"]

    async def discover_business(self, access_token: str) -> BusinessAccount:
        """
        First business, its first WABA and that WABA's first phone number.

        Falls back to the user's own name when no phone number is attached.
        """
        fields = "whatsapp_business_accounts{id,name,phone_numbers{id,display_phone_number,verified_name}}"
        async with self._client() as client:
            response = await client.get(
                f"{self.api_base}/me/businesses",
                params={"fields": fields, "access_token": access_token},
            )
            found: dict = {}
            if response.is_success:
                business = (_json_or_empty(response).get("data") or [{}])[0]
                found["business_name"] = business.get("name") or ""
                waba = ((business.get("whatsapp_business_accounts") or {}).get("data") or [{}])[0]
                found["waba_id"] = waba.get("id") or ""
                phone = ((waba.get("phone_numbers") or {}).get("data") or [{}])[0]
                found["phone_number_id"] = phone.get("id") or ""
                found["display_phone"] = phone.get("display_phone_number") or ""
                found["display_name"] = phone.get("verified_name") or ""

            if not found.get("phone_number_id"):
                me = await client.get(
                    f"{self.api_base}/me",
                    params={"fields": "id,name", "access_token": access_token},
                )
                if me.is_success:
                    found["display_name"] = _json_or_empty(me).get("name") or ""

        return BusinessAccount(**found)
