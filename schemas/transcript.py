"""Transcript and decoded realtime event schemas."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field


class Role(str, Enum):
    """Speaker of a transcript item."""
    USER = "user"
    ASSISTANT = "assistant"


class TranscriptItem(BaseModel):
    """One conversational utterance, grown by deltas until finalized."""
    id: str
    role: Role
    text: str = ""
    is_final: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


class ConversationTurn(BaseModel):
    """A finalized turn as seen by the phase engine."""
    role: Role
    text: str


class TranscriptDelta(BaseModel):
    """Fragment to append to a non-final transcript item."""
    kind: Literal["transcript_delta"] = "transcript_delta"
    role: Role
    id: str
    text: str


class TranscriptFinal(BaseModel):
    """Final text for a transcript item; role is only a hint for unseen ids."""
    kind: Literal["transcript_final"] = "transcript_final"
    role: Role
    id: str
    text: str


class Acknowledgment(BaseModel):
    """Remote confirmation that a conversation item was accepted.

    Carries every correlation id found on the event, in priority order.
    """
    kind: Literal["acknowledgment"] = "acknowledgment"
    ids: list[str] = Field(default_factory=list)


class ResponseStarted(BaseModel):
    """A generation started on the remote side."""
    kind: Literal["response_started"] = "response_started"
    response_id: str


class ResponseCompleted(BaseModel):
    """A generation completed on the remote side."""
    kind: Literal["response_completed"] = "response_completed"
    response_id: Optional[str] = None


class RemoteError(BaseModel):
    """Error reported by the remote service over the data channel."""
    kind: Literal["remote_error"] = "remote_error"
    message: str


DecodedEvent = Union[
    TranscriptDelta,
    TranscriptFinal,
    Acknowledgment,
    ResponseStarted,
    ResponseCompleted,
    RemoteError,
]
