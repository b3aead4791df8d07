"""
Mail

Email ingestion helpers: participants, threading, RFC 822 and JSON loading.
"""

from .parser import get_email_participants, build_threads, load_emails, parse_eml

__all__ = [
    "get_email_participants",
    "build_threads",
    "load_emails",
    "parse_eml",
]
