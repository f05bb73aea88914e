"""Codecs mapping prompt layouts to provider payloads."""

from .base import MessageCodec, verify_token_accounting
from .chat import ChatMessagesCodec
from .plaintext import PlainTextCodec

__all__ = [
    "MessageCodec",
    "verify_token_accounting",
    "ChatMessagesCodec",
    "PlainTextCodec",
]
