"""
Email Parsing

Turns raw RFC 822 messages and JSON email dumps into Email records, and
groups emails into threads.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..common.errors import EmailLoadError
from ..common.schemas import Email, EmailAddress, EmailThread

logger = logging.getLogger("parley.mail.parser")

UNKNOWN_SENDER = "unknown@unknown.com"


def get_email_participants(email: Email) -> List[EmailAddress]:
    """Sender and all recipients, deduplicated by address"""
    return email.participants()


def build_threads(emails: Iterable[Email]) -> List[EmailThread]:
    """
    Group emails by thread id.

    Each thread is sorted oldest first, takes its subject from the first
    message, and lists every participant once. Threads keep the order in
    which their first email appeared in the input.
    """
    grouped: Dict[str, List[Email]] = {}
    for email in emails:
        grouped.setdefault(email.thread_id, []).append(email)

    threads = []
    for thread_id, messages in grouped.items():
        ordered = sorted(messages, key=lambda m: m.timestamp)
        participants: Dict[str, EmailAddress] = {}
        for message in ordered:
            for address in message.participants():
                participants.setdefault(address.email, address)
        threads.append(EmailThread(
            thread_id=thread_id,
            subject=ordered[0].subject,
            messages=ordered,
            participants=list(participants.values()),
        ))
    return threads


def load_emails(path: Union[str, Path]) -> List[Email]:
    """
    Load emails from a JSON file shaped like {"emails": [...]}.

    Raises:
        EmailLoadError: if the file is unreadable or fails validation
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise EmailLoadError(f"Failed to load emails from {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("emails"), list):
        raise EmailLoadError(f"Invalid email format in {path}: expected an 'emails' list")

    try:
        emails = [Email.model_validate(item) for item in data["emails"]]
    except ValidationError as e:
        details = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise EmailLoadError(f"Invalid email format in {path}: {details}") from e

    logger.info("Loaded %d emails from %s", len(emails), path)
    return emails


# ============================================================================
# RFC 822
# ============================================================================

def _strip_angles(value: str) -> str:
    return value.strip().replace("<", "").replace(">", "")


def _addresses(message: EmailMessage, header: str) -> List[EmailAddress]:
    values = message.get_all(header, [])
    result = []
    for name, address in getaddresses([str(v) for v in values]):
        if address:
            result.append(EmailAddress(email=address, name=name or None))
    return result


def _thread_id(message: EmailMessage) -> Optional[str]:
    """First References id, else In-Reply-To"""
    references = str(message.get("References", "") or "").split()
    if references:
        return _strip_angles(references[0])
    in_reply_to = message.get("In-Reply-To")
    if in_reply_to:
        return _strip_angles(str(in_reply_to))
    return None


def _timestamp(message: EmailMessage) -> datetime:
    date = message.get("Date")
    if date:
        try:
            parsed = parsedate_to_datetime(str(date))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except (TypeError, ValueError):
            logger.warning("Unparseable Date header: %s", date)
    return datetime.now(timezone.utc)


def _body(message: EmailMessage) -> str:
    """Plain text preferred, HTML as fallback"""
    part = message.get_body(preferencelist=("plain", "html"))
    if part is None:
        return ""
    try:
        return part.get_content().strip()
    except (LookupError, UnicodeDecodeError) as e:
        logger.warning("Could not decode message body: %s", e)
        return ""


def parse_eml(raw: Union[str, bytes]) -> Email:
    """
    Parse a raw RFC 822 message.

    Missing Message-ID or thread headers get generated ids; a missing sender
    becomes unknown@unknown.com and a missing subject "(no subject)".
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    message = BytesParser(policy=policy.default).parsebytes(raw)

    message_id = message.get("Message-ID")
    message_id = _strip_angles(str(message_id)) if message_id else f"msg-{uuid.uuid4()}"

    senders = _addresses(message, "From")
    in_reply_to = message.get("In-Reply-To")

    return Email(
        message_id=message_id,
        thread_id=_thread_id(message) or f"thread-{uuid.uuid4()}",
        sender=senders[0] if senders else EmailAddress(email=UNKNOWN_SENDER),
        to=_addresses(message, "To"),
        cc=_addresses(message, "Cc"),
        subject=str(message.get("Subject", "") or "") or "(no subject)",
        body=_body(message),
        timestamp=_timestamp(message),
        in_reply_to=_strip_angles(str(in_reply_to)) if in_reply_to else None,
        references=[
            _strip_angles(ref) for ref in str(message.get("References", "") or "").split()
        ],
    )
