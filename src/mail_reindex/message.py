"""Structured parsing of raw RFC 5322 messages.

Raw message bytes stay opaque ``bytes`` until they reach parse_message();
headers are decoded here (RFC 2047) and the body text is extracted here,
never by reinterpreting the raw payload as a string.
"""

from __future__ import annotations

import email
import email.errors
import logging
import re
import warnings
from dataclasses import dataclass, field
from datetime import datetime
from email.header import decode_header, make_header
from email.message import Message
from email.utils import getaddresses, parsedate_to_datetime

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from .errors import MalformedMessageError

logger = logging.getLogger(__name__)

RECIPIENT_HEADERS = ("To", "Cc", "Bcc")


@dataclass(frozen=True)
class ParsedMessage:
    """Searchable fields of a parsed message."""

    from_: str
    recipients: tuple[str, ...]
    subject: str
    date: datetime | None
    _msg: Message = field(repr=False, compare=False)

    def body_text(self) -> str:
        """Extract the plain-text body (HTML parts are stripped)."""
        return _extract_body_text(self._msg)


def _clean(text: str) -> str:
    """Replace undecodable (surrogate-escaped) characters."""
    return text.encode("utf-8", errors="replace").decode("utf-8")


def _decode(value: object) -> str:
    """Decode an RFC 2047 header value, falling back to the raw string."""
    if not value:
        return ""
    try:
        decoded = str(make_header(decode_header(value)))
    except (UnicodeError, LookupError, email.errors.HeaderParseError):
        decoded = str(value)
    return _clean(decoded)


def _parse_date(value: object) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(str(value))
    except (ValueError, TypeError, IndexError):
        return None


def _recipients(msg: Message) -> tuple[str, ...]:
    """Addresses from To, Cc and Bcc, in header order."""
    values: list[str] = []
    for header in RECIPIENT_HEADERS:
        values.extend(str(v) for v in msg.get_all(header, []))

    recipients = []
    for name, addr in getaddresses(values):
        if not addr and not name:
            continue
        name, addr = _decode(name), _clean(addr)
        recipients.append(f"{name} <{addr}>" if name else addr)
    return tuple(recipients)


def parse_message(raw: bytes) -> ParsedMessage:
    """
    Parse raw message bytes into searchable fields.

    Args:
        raw: The raw message exactly as stored

    Returns:
        ParsedMessage with decoded headers and a body extractor

    Raises:
        TypeError: If raw is not a bytes-like object
        MalformedMessageError: If no header can be parsed
    """
    if not isinstance(raw, (bytes, bytearray, memoryview)):
        raise TypeError(
            f"raw message must be bytes, not {type(raw).__name__}"
        )
    data = bytes(raw)
    if not data.strip():
        raise MalformedMessageError("Empty message")

    try:
        msg = email.message_from_bytes(data)
    except (email.errors.MessageError, ValueError) as e:
        raise MalformedMessageError(f"Unparsable message: {e}") from e

    if not msg.keys():
        raise MalformedMessageError("Message has no headers")

    try:
        return ParsedMessage(
            from_=_decode(msg["From"]),
            recipients=_recipients(msg),
            subject=_decode(msg["Subject"]),
            date=_parse_date(msg["Date"]),
            _msg=msg,
        )
    except (email.errors.MessageError, ValueError) as e:
        raise MalformedMessageError(f"Bad headers: {e}") from e


def _decode_payload(part: Message) -> str:
    payload = part.get_payload(decode=True)
    if not payload:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def _extract_body_text(msg: Message) -> str:
    """
    Extract plain text body from email message.

    Handles multipart messages, preferring text/plain over text/html.
    """
    if not msg.is_multipart():
        text = _decode_payload(msg)
        if msg.get_content_type() == "text/html":
            return _strip_html(text)
        return text

    text_parts = [
        _decode_payload(part)
        for part in msg.walk()
        if part.get_content_type() == "text/plain"
        and not part.get_filename()
    ]
    text_parts = [t for t in text_parts if t]
    if text_parts:
        return "\n".join(text_parts)

    # Fallback to HTML if no plain text
    for part in msg.walk():
        if part.get_content_type() == "text/html":
            html = _decode_payload(part)
            if html:
                return _strip_html(html)
    return ""


def _strip_html(html: str) -> str:
    """
    HTML to text with BeautifulSoup; script and style content dropped.

    Markup the parser rejects yields an empty body, so the message is still
    indexed by its headers.
    """
    try:
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
            soup = BeautifulSoup(html, "html.parser")

        for element in soup(["script", "style"]):
            element.decompose()

        text = soup.get_text(separator="\n", strip=True)
        text = re.sub(r"\n\s*\n", "\n\n", text)
        text = re.sub(r" +", " ", text)
        return text.strip()

    except Exception as e:
        logger.debug("Could not parse HTML body: %s", e)
        return ""
