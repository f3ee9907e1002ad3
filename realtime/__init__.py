"""Realtime session: event decoding, transcript state and transport lifecycle."""

from .credentials import (
    SessionConfig,
    Credential,
    CredentialIssuer,
    SdpNegotiator,
    OpenAIRealtimeCredentialIssuer,
    OpenAIRealtimeNegotiator,
)
from .decoder import decode_event, decode_message, parse_message
from .errors import (
    RealtimeError,
    CredentialError,
    NegotiationError,
    CapturePermissionError,
    AcknowledgmentError,
    EventDecodeError,
)
from .session import RealtimeSessionManager, RealtimeSessionState, SessionStatus
from .transcript import TranscriptStore

__all__ = [
    "SessionConfig",
    "Credential",
    "CredentialIssuer",
    "SdpNegotiator",
    "OpenAIRealtimeCredentialIssuer",
    "OpenAIRealtimeNegotiator",
    "decode_event",
    "decode_message",
    "parse_message",
    "RealtimeError",
    "CredentialError",
    "NegotiationError",
    "CapturePermissionError",
    "AcknowledgmentError",
    "EventDecodeError",
    "RealtimeSessionManager",
    "RealtimeSessionState",
    "SessionStatus",
    "TranscriptStore",
]
