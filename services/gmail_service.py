from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from models.email_message import EmailContent
from services.auth_service import PROVIDER_ERRORS, GoogleSession
from utils.config import AppConfig

LOGGER = logging.getLogger(__name__)
LIST_PAGE_SIZE = 100


class GmailService:
    """Wrapper around the Gmail API for the operations we need."""

    def __init__(self, config: AppConfig, session: Optional[GoogleSession] = None, client: Any = None):
        self._config = config
        if client is None:
            if session is None:
                raise ValueError("GmailService needs a GoogleSession or an API client")
            client = session.build("gmail", "v1")
        self._client = client

    @property
    def user_id(self) -> str:
        return self._config.google.user_id

    def list_message_ids(self, after: datetime) -> List[str]:
        """Return ids of messages received after ``after``, newest first as Gmail returns them.

        Every page is read: the oldest ids, which the poller handles first, come last.
        """

        query = f"after:{int(after.timestamp())}"
        ids: List[str] = []
        page_token: Optional[str] = None
        pages = 0
        try:
            while True:
                response = (
                    self._client.users()
                    .messages()
                    .list(userId=self.user_id, q=query, maxResults=LIST_PAGE_SIZE, pageToken=page_token)
                    .execute()
                )
                pages += 1
                ids.extend(message["id"] for message in response.get("messages", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except PROVIDER_ERRORS as exc:
            LOGGER.error("Failed to list messages for %r: %s", query, exc)
            raise

        LOGGER.info("Listed %s message id(s) in %s page(s) for %r", len(ids), pages, query)
        return ids

    def get_message(self, message_id: str) -> Dict[str, Any]:
        return (
            self._client.users()
            .messages()
            .get(userId=self.user_id, id=message_id, format="full")
            .execute()
        )


def extract_content(message: Mapping[str, Any]) -> EmailContent:
    """Recover subject, sender, date and plain-text body from a raw Gmail message."""

    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    return EmailContent(
        subject=_first_header(headers, "Subject"),
        sender=_first_header(headers, "From"),
        date=_first_header(headers, "Date"),
        body=_extract_body(payload),
    )


def message_received_at(message: Mapping[str, Any]) -> Optional[datetime]:
    raw = message.get("internalDate")
    if raw is None:
        return None
    try:
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        LOGGER.debug("Unable to parse internalDate: %s", raw)
        return None


def _first_header(headers: Sequence[Mapping[str, str]], name: str) -> str:
    for header in headers:
        if header.get("name") == name:
            return header.get("value") or ""
    return ""


def _extract_body(payload: Mapping[str, Any]) -> str:
    data = (payload.get("body") or {}).get("data")
    if data:
        return _decode_base64(data)
    return "".join(_plain_text_parts(payload.get("parts") or []))


def _plain_text_parts(parts: Sequence[Mapping[str, Any]]) -> List[str]:
    texts: List[str] = []
    for part in parts:
        if part.get("mimeType") == "text/plain":
            data = (part.get("body") or {}).get("data")
            if data:
                texts.append(_decode_base64(data))
        elif part.get("parts"):
            texts.extend(_plain_text_parts(part["parts"]))
    return texts


def _decode_base64(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return ""
    return decoded
