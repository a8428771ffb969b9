"""Conversion between Gmail API message resources and RFC 822 messages.

Outgoing messages are built with :class:`email.message.EmailMessage` and
encoded as the unpadded base64url ``raw`` field. Incoming ``format=full``
resources are flattened into the plugin's message model.
"""

from __future__ import annotations

import base64
import mimetypes
from email.message import EmailMessage
from email.policy import SMTP
from typing import Any

from gworkspace_sdk.polling import from_epoch_millis, to_rfc3339


def b64url_decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def split_addresses(header: str | None) -> list[str] | None:
    if header is None:
        return None
    return [addr.strip() for addr in header.split(",") if addr.strip()]


def build_message(
    *,
    to: list[str],
    cc: list[str] | None = None,
    bcc: list[str] | None = None,
    subject: str | None = None,
    text_body: str | None = None,
    html_body: str | None = None,
    sender: str | None = None,
    attachments: list[tuple[str, bytes]] | None = None,
) -> EmailMessage:
    """Build the outgoing message.

    Text and HTML together give ``multipart/alternative``; attachments wrap
    the body in ``multipart/mixed``.
    """
    msg = EmailMessage(policy=SMTP)
    if to:
        msg["To"] = ", ".join(to)
    if cc:
        msg["Cc"] = ", ".join(cc)
    if bcc:
        msg["Bcc"] = ", ".join(bcc)
    if sender:
        msg["From"] = sender
    msg["Subject"] = subject or ""

    if text_body is not None and html_body is not None:
        msg.set_content(text_body, charset="utf-8")
        msg.add_alternative(html_body, subtype="html", charset="utf-8")
    elif html_body is not None:
        msg.set_content(html_body, subtype="html", charset="utf-8")
    else:
        msg.set_content(text_body or "", charset="utf-8")

    for filename, data in attachments or []:
        ctype, _ = mimetypes.guess_type(filename)
        maintype, subtype = (ctype or "application/octet-stream").split("/", 1)
        msg.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)
    return msg


def encode_raw(msg: EmailMessage) -> str:
    return b64url_encode(msg.as_bytes())


def _header(part: dict[str, Any], name: str) -> str | None:
    for h in part.get("headers") or []:
        if str(h.get("name", "")).lower() == name.lower():
            return h.get("value")
    return None


def is_attachment(part: dict[str, Any]) -> bool:
    if part.get("filename"):
        return True
    disposition = _header(part, "Content-Disposition")
    return disposition is not None and "attachment" in disposition


def attachment_filename(part: dict[str, Any]) -> str | None:
    if part.get("filename"):
        return part["filename"]
    disposition = _header(part, "Content-Disposition")
    if disposition and "filename=" in disposition:
        name = disposition.split("filename=", 1)[1]
        if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
            name = name[1:-1]
        return name
    return None


def walk_parts(part: dict[str, Any], attachments: list[dict[str, Any]]) -> tuple[str | None, str | None]:
    """Return ``(text_plain, text_html)`` for ``part``, collecting attachments.

    The first plain and HTML bodies found depth-first win.
    """
    if part.get("parts"):
        text = html = None
        for sub in part["parts"]:
            sub_text, sub_html = walk_parts(sub, attachments)
            text = text if text is not None else sub_text
            html = html if html is not None else sub_html
        return text, html

    mime_type = part.get("mimeType")
    body = part.get("body") or {}
    if mime_type == "text/plain" and body.get("data"):
        return b64url_decode(body["data"]).decode("utf-8", errors="replace"), None
    if mime_type == "text/html" and body.get("data"):
        return None, b64url_decode(body["data"]).decode("utf-8", errors="replace")
    if mime_type and is_attachment(part):
        filename = attachment_filename(part)
        if filename is not None:
            attachments.append(
                {
                    "attachment_id": body.get("attachmentId"),
                    "mime_type": mime_type,
                    "filename": filename,
                    "size": body.get("size"),
                    "data": body.get("data"),
                }
            )
    return None, None


def convert_message(raw: dict[str, Any]) -> dict[str, Any]:
    """Flatten a Gmail ``Message`` resource."""
    internal = from_epoch_millis(raw.get("internalDate"))
    out: dict[str, Any] = {
        "id": raw.get("id"),
        "thread_id": raw.get("threadId"),
        "label_ids": raw.get("labelIds"),
        "snippet": raw.get("snippet"),
        "history_id": str(raw["historyId"]) if raw.get("historyId") is not None else None,
        "internal_date": to_rfc3339(internal) if internal else None,
        "size_estimate": raw.get("sizeEstimate"),
        "subject": None,
        "from": None,
        "to": None,
        "cc": None,
        "bcc": None,
        "text_plain": None,
        "text_html": None,
        "attachments": None,
        "headers": None,
    }
    payload = raw.get("payload")
    if not payload:
        return out

    if payload.get("headers") is not None:
        headers = {str(h.get("name", "")).lower(): h.get("value") for h in payload["headers"]}
        out["headers"] = headers
        out["subject"] = headers.get("subject")
        out["from"] = headers.get("from")
        out["to"] = split_addresses(headers.get("to"))
        out["cc"] = split_addresses(headers.get("cc"))
        out["bcc"] = split_addresses(headers.get("bcc"))

    attachments: list[dict[str, Any]] = []
    out["text_plain"], out["text_html"] = walk_parts(payload, attachments)
    out["attachments"] = attachments
    return out
