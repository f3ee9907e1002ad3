"""
Transcript event decoder.

Maps one inbound realtime protocol event onto at most one decoded
instruction. The decoder is pure: it never touches transcript state,
the session manager applies what it returns.
"""

import json
import logging
from typing import Any, Optional, Union

from schemas.transcript import (
    Role,
    DecodedEvent,
    TranscriptDelta,
    TranscriptFinal,
    Acknowledgment,
    ResponseStarted,
    ResponseCompleted,
    RemoteError,
)
from .errors import EventDecodeError

logger = logging.getLogger(__name__)


ACKNOWLEDGMENT_EVENTS = {
    "conversation.item.added",
    "conversation.item.created",
}

RESPONSE_STARTED_EVENTS = {"response.created"}

RESPONSE_COMPLETED_EVENTS = {
    "response.completed",
    "response.done",
}

ASSISTANT_DELTA_EVENTS = {
    "response.audio_transcript.delta",
    "response.output_audio_transcript.delta",
    "response.output_text.delta",
    "response.text.delta",
    "response.delta",
}

ASSISTANT_FINAL_EVENTS = {
    "response.audio_transcript.done",
    "response.output_audio_transcript.done",
    "response.output_text.done",
    "response.text.done",
}

USER_DELTA_EVENTS = {"conversation.item.input_audio_transcription.delta"}

USER_FINAL_EVENTS = {
    "conversation.item.input_audio_transcription.completed",
    "conversation.item.input_audio_transcription.done",
}

ERROR_EVENTS = {"error"}

# Extraction priority, first non-empty wins
CORRELATION_ID_FIELDS = ("response_id", "item_id")
TEXT_FIELDS = ("delta", "text", "transcript")
NESTED_TEXT_CONTAINERS = ("delta", "text", "transcript", "part", "item")
ACK_METADATA_FIELDS = ("correlation_id", "client_id", "client_item_id", "id")


def parse_message(payload: Union[str, bytes]) -> dict:
    """
    Parse a raw data-channel payload into an event object.

    Args:
        payload: JSON text received on the data channel

    Returns:
        Event dict carrying a string ``type`` discriminator

    Raises:
        EventDecodeError: If the payload is not a JSON object with a type
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EventDecodeError(f"Payload is not valid UTF-8: {e}") from e

    try:
        event = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise EventDecodeError(f"Payload is not valid JSON: {e}") from e

    if not isinstance(event, dict):
        raise EventDecodeError(f"Expected a JSON object, got {type(event).__name__}")

    if not isinstance(event.get("type"), str) or not event["type"]:
        raise EventDecodeError("Event has no type discriminator")

    return event


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def extract_correlation_id(event: dict) -> Optional[str]:
    """Response-level id, then item-level id, then an embedded item's id."""
    for field in CORRELATION_ID_FIELDS:
        value = _non_empty(event.get(field))
        if value:
            return value

    item = event.get("item")
    if isinstance(item, dict):
        return _non_empty(item.get("id"))

    return None


def extract_text(event: dict) -> Optional[str]:
    """
    Find the text carried by an event.

    Tries the ``delta``, ``text`` and ``transcript`` fields, then the
    ``text``/``transcript`` of a nested object. The first value that is
    non-empty after trimming is returned untrimmed, so delta fragments keep
    their whitespace.
    """
    for field in TEXT_FIELDS:
        value = _non_empty(event.get(field))
        if value:
            return value

    for container in NESTED_TEXT_CONTAINERS:
        nested = event.get(container)
        if not isinstance(nested, dict):
            continue
        for field in ("text", "transcript"):
            value = _non_empty(nested.get(field))
            if value:
                return value

    return None


def extract_acknowledged_ids(event: dict) -> list[str]:
    """Every id an acknowledgment event can be matched on, in priority order."""
    ids = []
    item = event.get("item") if isinstance(event.get("item"), dict) else {}

    candidates = [item.get("id"), event.get("item_id")]
    metadata = item.get("metadata")
    if isinstance(metadata, dict):
        candidates.extend(metadata.get(field) for field in ACK_METADATA_FIELDS)

    for candidate in candidates:
        value = _non_empty(candidate)
        if value and value not in ids:
            ids.append(value)

    return ids


def _response_id(event: dict) -> Optional[str]:
    response = event.get("response")
    if isinstance(response, dict):
        value = _non_empty(response.get("id"))
        if value:
            return value
    return _non_empty(event.get("response_id"))


def _error_message(event: dict) -> str:
    error = event.get("error")
    if isinstance(error, dict):
        message = _non_empty(error.get("message"))
        if message:
            return message
    elif _non_empty(error):
        return error
    return _non_empty(event.get("message")) or "Realtime service reported an error"


def _transcript(event: dict, role: Role, final: bool) -> Optional[DecodedEvent]:
    item_id = extract_correlation_id(event)
    text = extract_text(event)
    if not item_id or not text:
        return None
    if final:
        return TranscriptFinal(role=role, id=item_id, text=text.strip())
    return TranscriptDelta(role=role, id=item_id, text=text)


def decode_event(event: dict) -> Optional[DecodedEvent]:
    """
    Decode one event object.

    Args:
        event: Parsed event with a ``type`` discriminator

    Returns:
        Decoded instruction, or None for ignorable and unknown events
    """
    event_type = event.get("type")

    if event_type in ASSISTANT_DELTA_EVENTS:
        return _transcript(event, Role.ASSISTANT, final=False)

    if event_type in ASSISTANT_FINAL_EVENTS:
        return _transcript(event, Role.ASSISTANT, final=True)

    if event_type in USER_DELTA_EVENTS:
        return _transcript(event, Role.USER, final=False)

    if event_type in USER_FINAL_EVENTS:
        return _transcript(event, Role.USER, final=True)

    if event_type in ACKNOWLEDGMENT_EVENTS:
        ids = extract_acknowledged_ids(event)
        return Acknowledgment(ids=ids) if ids else None

    if event_type in RESPONSE_STARTED_EVENTS:
        response_id = _response_id(event)
        return ResponseStarted(response_id=response_id) if response_id else None

    if event_type in RESPONSE_COMPLETED_EVENTS:
        return ResponseCompleted(response_id=_response_id(event))

    if event_type in ERROR_EVENTS:
        return RemoteError(message=_error_message(event))

    logger.debug(f"Ignoring realtime event: {event_type}")
    return None


def decode_message(payload: Union[str, bytes]) -> Optional[DecodedEvent]:
    """Parse and decode a raw payload; raises EventDecodeError on bad input."""
    return decode_event(parse_message(payload))
