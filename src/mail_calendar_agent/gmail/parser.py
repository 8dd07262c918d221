"""Parse Gmail API message payloads into MailMessage objects."""

from __future__ import annotations

import base64
import binascii
import html as html_module
import re

from bs4 import BeautifulSoup

from mail_calendar_agent.gmail.models import MailMessage

DEFAULT_MAX_BODY_LENGTH = 5000
TRUNCATION_MARKER = "... [truncated]"


def parse_message(raw_message: dict, max_body_length: int = DEFAULT_MAX_BODY_LENGTH) -> MailMessage:
    """Extract headers and a plain-text body from a Gmail API message (format=full).

    Pure function, no network calls. The body is never longer than
    ``max_body_length`` plus the length of ``TRUNCATION_MARKER``.
    """
    payload = raw_message.get("payload", {})
    headers = _extract_headers(payload)

    return MailMessage(
        id=raw_message["id"],
        subject=headers.get("subject") or "No Subject",
        sender=headers.get("from") or "Unknown Sender",
        date=headers.get("date", ""),
        body=truncate_body(clean_body(extract_body(payload)), max_body_length),
        snippet=html_module.unescape(raw_message.get("snippet", "")),
        thread_id=raw_message.get("threadId", ""),
        label_ids=raw_message.get("labelIds", []),
    )


def _extract_headers(payload: dict) -> dict[str, str]:
    return {
        h["name"].lower(): h["value"]
        for h in payload.get("headers", [])
    }


def extract_body(payload: dict) -> str:
    """Walk the MIME tree. Plain-text parts win; HTML is used only without them."""
    plain: list[str] = []
    html_parts: list[str] = []
    _walk_parts(payload, plain, html_parts)

    if plain:
        return "\n".join(plain)
    if html_parts:
        return strip_html(html_parts[0])
    return ""


def _walk_parts(part: dict, plain: list[str], html_parts: list[str]) -> None:
    mime_type = part.get("mimeType", "")
    data = _decode_body_data(part)

    if data and not part.get("filename"):
        if mime_type == "text/html":
            html_parts.append(data)
        elif mime_type in ("text/plain", ""):
            plain.append(data)

    for child in part.get("parts", []):
        _walk_parts(child, plain, html_parts)


def _decode_body_data(part: dict) -> str:
    data = part.get("body", {}).get("data", "")
    if not data:
        return ""
    try:
        # Gmail omits base64 padding on some parts.
        padded = data + "=" * (-len(data) % 4)
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def strip_html(html: str) -> str:
    """Drop style/script blocks and tags, decoding entities."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return re.sub(r"[ \t\xa0]+", " ", text)


def clean_body(text: str) -> str:
    """Normalize line endings and collapse runs of blank lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n[ \t]+\n", "\n\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate_body(text: str, max_length: int = DEFAULT_MAX_BODY_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + TRUNCATION_MARKER
