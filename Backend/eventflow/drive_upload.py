"""
Invitation card upload relay (Google Drive).

Validates the file locally, then pushes it to Drive under

    <root folder>/<planner email>/<event name>/invitation-card-<ms>.<ext>

and makes it readable by anyone with the link.

Drive is reached over its REST API with httpx. The service account signs an
RS256 assertion with PyJWT and trades it for an OAuth access token.
"""

import json
import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
import jwt

from .core.config import Settings
from .core.errors import Unprocessable

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB
EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "application/pdf": "pdf",
}
DEFAULT_EVENT_NAME = "Untitled Event"
EVENT_FOLDER_MAX_LEN = 60

TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

_UNSAFE_PATH_CHARS = re.compile(r'[<>:"/\\|?*]')


# ────────────────────────────────────────────────────────────────
# Local validation (no network)
# ────────────────────────────────────────────────────────────────

def validate_upload(content_type: Optional[str], size: int) -> str:
    """
    Check type and size of an uploaded file.

    Returns:
        The file extension for the content type

    Raises:
        Unprocessable: type outside JPEG/PNG/PDF, or larger than 10 MiB
    """
    extension = EXTENSIONS.get(content_type or "")
    if extension is None:
        raise Unprocessable("Only JPEG, PNG, or PDF files are accepted.")
    if size > MAX_UPLOAD_BYTES:
        raise Unprocessable("File must be under 10 MB.")
    return extension


def sanitize_segment(name: str, max_length: Optional[int] = None) -> str:
    safe = _UNSAFE_PATH_CHARS.sub("_", name)
    return safe[:max_length] if max_length else safe


def destination_folders(planner_email: str, event_name: Optional[str]) -> tuple[str, str]:
    """(planner folder, event folder) names for an upload."""
    return (
        sanitize_segment(planner_email),
        sanitize_segment(event_name or DEFAULT_EVENT_NAME, EVENT_FOLDER_MAX_LEN),
    )


def invitation_card_filename(extension: str, now_ms: Optional[int] = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"invitation-card-{now_ms}.{extension}"


def public_file_url(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view"


@dataclass(frozen=True)
class UploadedFile:
    url: str
    file_id: str


class DriveError(Exception):
    """Drive or the token endpoint refused a request."""


# ────────────────────────────────────────────────────────────────
# Drive client
# ────────────────────────────────────────────────────────────────

def _quote_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveUploader:
    """
    Uploads invitation cards with a service account.

    Args:
        root_folder: Drive folder id everything lives under
        service_email: service account client email
        private_key: service account PEM private key
        transport: optional httpx transport (tests)
    """

    def __init__(
        self,
        root_folder: str,
        service_email: str,
        private_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.root_folder = root_folder
        self.service_email = service_email
        self.private_key = private_key
        self.transport = transport
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "DriveUploader":
        email, key = settings.storage_service_credential
        return cls(settings.storage_root_folder, email, key, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.root_folder and self.service_email and self.private_key)

    def _assertion(self, now: int) -> str:
        claims = {
            "iss": self.service_email,
            "scope": DRIVE_SCOPE,
            "aud": TOKEN_URL,
            "iat": now,
            "exp": now + 3600,
        }
        return jwt.encode(claims, self.private_key, algorithm="RS256")

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            TOKEN_URL,
            data={
                "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                "assertion": self._assertion(int(time.time())),
            },
        )
        if not response.is_success:
            raise DriveError(f"Token exchange failed: HTTP {response.status_code}")
        return response.json()["access_token"]

    async def _get_or_create_folder(self, client: httpx.AsyncClient, name: str, parent_id: str) -> str:
        query = (
            f"name='{_quote_query_value(name)}' and mimeType='{FOLDER_MIME_TYPE}' "
            f"and '{parent_id}' in parents and trashed=false"
        )
        response = await client.get(
            DRIVE_FILES_URL,
            params={"q": query, "fields": "files(id)", "spaces": "drive"},
        )
        if not response.is_success:
            raise DriveError(f"Folder lookup failed: HTTP {response.status_code}")
        files = response.json().get("files") or []
        if files:
            return files[0]["id"]

        response = await client.post(
            DRIVE_FILES_URL,
            params={"fields": "id"},
            json={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
        )
        if not response.is_success:
            raise DriveError(f"Folder create failed: HTTP {response.status_code}")
        logger.info(f"Created Drive folder '{name}'")
        return response.json()["id"]

    async def _upload_bytes(
        self,
        client: httpx.AsyncClient,
        content: bytes,
        filename: str,
        mime_type: str,
        folder_id: str,
    ) -> str:
        boundary = uuid.uuid4().hex
        metadata = json.dumps({"name": filename, "parents": [folder_id]})
        body = b"".join(
            [
                f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode(),
                metadata.encode(),
                f"\r\n--{boundary}\r\nContent-Type: {mime_type}\r\n\r\n".encode(),
                content,
                f"\r\n--{boundary}--".encode(),
            ]
        )
        response = await client.post(
            DRIVE_UPLOAD_URL,
            params={"uploadType": "multipart", "fields": "id"},
            content=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        if not response.is_success:
            raise DriveError(f"Upload failed: HTTP {response.status_code}")
        return response.json()["id"]

    async def upload(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        planner_email: str,
        event_name: Optional[str],
    ) -> UploadedFile:
        """
        Place a file in the planner/event folder and share it by link.

        Raises:
            DriveError: any Drive or token endpoint failure (not retried)
        """
        if not self.configured:
            raise DriveError("Google Drive upload is not configured")
        planner_folder_name, event_folder_name = destination_folders(planner_email, event_name)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            token = await self._access_token(client)
            client.headers["Authorization"] = f"Bearer {token}"

            planner_folder = await self._get_or_create_folder(client, planner_folder_name, self.root_folder)
            event_folder = await self._get_or_create_folder(client, event_folder_name, planner_folder)
            file_id = await self._upload_bytes(client, content, filename, mime_type, event_folder)

            response = await client.post(
                f"{DRIVE_FILES_URL}/{file_id}/permissions",
                json={"role": "reader", "type": "anyone"},
            )
            if not response.is_success:
                raise DriveError(f"Permission grant failed: HTTP {response.status_code}")

        logger.info(f"Uploaded {filename} ({len(content)} bytes) to Drive as {file_id}")
        return UploadedFile(url=public_file_url(file_id), file_id=file_id)
