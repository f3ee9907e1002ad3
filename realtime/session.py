"""
Realtime session manager.

Owns one live connection to the realtime inference service: credential
exchange, peer transport negotiation, the data channel, outbound queueing
and acknowledgment correlation. Inbound traffic goes through the decoder
and is applied here to the transcript store.
"""

import asyncio
import json
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from schemas.transcript import (
    TranscriptItem,
    DecodedEvent,
    TranscriptDelta,
    TranscriptFinal,
    Acknowledgment,
    ResponseStarted,
    ResponseCompleted,
    RemoteError,
)
from .credentials import CredentialIssuer, SdpNegotiator, SessionConfig
from .decoder import decode_message
from .errors import (
    RealtimeError,
    CapturePermissionError,
    AcknowledgmentError,
    EventDecodeError,
)
from .transcript import TranscriptStore
from .transport import (
    DATA_CHANNEL_LABEL,
    CaptureDevice,
    DataChannel,
    MediaTrack,
    PeerTransport,
    TransportFactory,
    media_direction,
)

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SessionStatus(str, Enum):
    """Connection lifecycle states."""
    IDLE = "idle"
    REQUESTING_CREDENTIAL = "requesting-credential"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


ACTIVE_STATUSES = {
    SessionStatus.REQUESTING_CREDENTIAL,
    SessionStatus.CONNECTING,
    SessionStatus.CONNECTED,
}


class RealtimeSessionState(BaseModel):
    """Snapshot exposed to the rest of the application."""
    status: SessionStatus = SessionStatus.IDLE
    error: Optional[str] = None
    transcripts: list[TranscriptItem] = Field(default_factory=list)
    last_latency_ms: Optional[float] = None


class RealtimeSessionManager:
    """
    Single-session realtime connection manager.

    One instance per conversation session. All mutation happens on the
    event loop that calls ``connect``; transport callbacks are expected on
    that same loop.
    """

    def __init__(
        self,
        credential_issuer: CredentialIssuer,
        negotiator: SdpNegotiator,
        transport_factory: TransportFactory,
        capture_device: Optional[CaptureDevice] = None,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], float] = monotonic_ms,
        on_remote_track: Optional[Callable[[MediaTrack], None]] = None
    ):
        """
        Initialize session manager.

        Args:
            credential_issuer: Issues the short-lived access credential
            negotiator: Exchanges the SDP offer for an answer
            transport_factory: Builds a fresh peer transport per connection
            capture_device: Local microphone, required when capture is enabled
            config: Base session config; ``connect`` overrides are merged on top
            clock: Millisecond clock used for latency samples
            on_remote_track: Receives remote audio when playback is enabled
        """
        self.credential_issuer = credential_issuer
        self.negotiator = negotiator
        self.transport_factory = transport_factory
        self.capture_device = capture_device
        self.config = config or SessionConfig()
        self.clock = clock
        self.on_remote_track = on_remote_track

        self.status = SessionStatus.IDLE
        self.error: Optional[str] = None
        self.last_latency_ms: Optional[float] = None
        self.transcript = TranscriptStore()

        # Callbacks
        self.on_transcript: Optional[Callable[[TranscriptItem], Any]] = None
        self.on_response_completed: Optional[Callable[[], Any]] = None
        self.on_status_change: Optional[Callable[[SessionStatus], Any]] = None

        self._peer: Optional[PeerTransport] = None
        self._channel: Optional[DataChannel] = None
        self._tracks: list[MediaTrack] = []
        self._outbound: deque[str] = deque()
        self._pending_acks: dict[str, asyncio.Future] = {}
        self._response_started_at: dict[str, float] = {}
        self._attempt = 0

        self._handlers = {
            "transcript_delta": self._apply_delta,
            "transcript_final": self._apply_final,
            "acknowledgment": self._apply_acknowledgment,
            "response_started": self._apply_response_started,
            "response_completed": self._apply_response_completed,
            "remote_error": self._apply_remote_error,
        }

    @property
    def state(self) -> RealtimeSessionState:
        return RealtimeSessionState(
            status=self.status,
            error=self.error,
            transcripts=self.transcript.items,
            last_latency_ms=self.last_latency_ms,
        )

    @property
    def is_channel_open(self) -> bool:
        return self._channel is not None and self._channel.ready_state == "open"

    @property
    def pending_acknowledgments(self) -> int:
        return len(self._pending_acks)

    @property
    def queued_events(self) -> int:
        return len(self._outbound)

    def _set_status(self, status: SessionStatus):
        if status == self.status:
            return
        logger.info(f"Realtime session {self.status.value} -> {status.value}")
        self.status = status
        self._notify(self.on_status_change, status)

    def _notify(self, callback: Optional[Callable], *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Realtime session callback failed: {e}")

    def _fail(self, message: str):
        self.error = message
        self._set_status(SessionStatus.ERROR)

    # -- lifecycle -----------------------------------------------------------

    async def connect(self, config: Optional[SessionConfig] = None):
        """
        Open the realtime connection.

        No-op while a connection is already being set up or is live.
        Failures never raise: they leave ``status`` at error with a message
        and release everything acquired so far.

        Args:
            config: Overrides merged onto the manager's base config
        """
        if self.status in ACTIVE_STATUSES:
            logger.debug(f"connect() ignored while {self.status.value}")
            return

        effective = self.config
        if config is not None:
            effective = self.config.model_copy(update=config.model_dump(exclude_unset=True))

        if not effective.session_id:
            self._fail("Session ID is required for realtime connection")
            return

        # A transport failure leaves the old connection held until here
        await self._release_transport()

        self.error = None
        self._attempt += 1
        attempt = self._attempt
        self._set_status(SessionStatus.REQUESTING_CREDENTIAL)

        try:
            credential = await self.credential_issuer.request_credential(effective)
            if attempt != self._attempt:
                return

            self._set_status(SessionStatus.CONNECTING)

            peer = self.transport_factory()
            self._peer = peer
            peer.add_transceiver(
                "audio",
                media_direction(effective.capture_enabled, effective.playback_enabled)
            )
            if effective.playback_enabled and self.on_remote_track:
                peer.on_track(self.on_remote_track)

            channel = peer.create_data_channel(DATA_CHANNEL_LABEL)
            self._channel = channel
            channel.on("message", self.handle_message)
            channel.on("open", self._flush_outbound)
            peer.on_connection_state_change(
                lambda state: self._handle_connection_state(peer, state)
            )

            if effective.capture_enabled:
                await self._open_capture(peer, attempt)
                if attempt != self._attempt:
                    return

            offer = await peer.create_offer()
            await peer.set_local_description(offer)
            answer = await self.negotiator.negotiate(offer, credential)
            if attempt != self._attempt:
                return
            await peer.set_remote_description(answer)

            if peer.connection_state == "connected":
                self._handle_connection_state(peer, "connected")
            self._flush_outbound()

        except (CapturePermissionError, PermissionError) as e:
            await self._abort_connect(attempt, CapturePermissionError.MESSAGE, e)
        except Exception as e:
            await self._abort_connect(attempt, str(e) or e.__class__.__name__, e)

    async def _open_capture(self, peer: PeerTransport, attempt: int):
        if self.capture_device is None:
            raise RealtimeError("Capture is enabled but no capture device is available")

        tracks = await self.capture_device.open()
        if attempt != self._attempt:
            # Disconnected while the device was opening
            for track in tracks:
                track.stop()
            return

        self._tracks = list(tracks)
        for track in self._tracks:
            peer.add_track(track)

    async def _abort_connect(self, attempt: int, message: str, cause: Exception):
        if attempt != self._attempt:
            logger.debug(f"Ignoring failure from superseded connect attempt: {cause}")
            return
        logger.error(f"Realtime connection error: {message}")
        await self._teardown()
        self._fail(message)

    def _handle_connection_state(self, peer: PeerTransport, state: str):
        if peer is not self._peer:
            return

        if state == "connected":
            if self.status in (SessionStatus.CONNECTING, SessionStatus.CONNECTED):
                self._set_status(SessionStatus.CONNECTED)
        elif state in ("failed", "disconnected"):
            if self.status in (SessionStatus.CONNECTING, SessionStatus.CONNECTED):
                logger.error(f"Realtime transport reported {state}")
                self._fail(f"Connection {state}")

    async def disconnect(self):
        """Tear everything down and return to idle. Safe to call repeatedly."""
        self._attempt += 1
        await self._teardown()
        self._set_status(SessionStatus.IDLE)

    async def _teardown(self):
        await self._release_transport()

        pending, self._pending_acks = self._pending_acks, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(AcknowledgmentError())
        if pending:
            logger.warning(f"Rejected {len(pending)} unacknowledged conversation item(s)")

        self._outbound.clear()
        self._response_started_at.clear()

    async def _release_transport(self):
        """Close the channel and peer and stop capture tracks, if any are held."""
        channel, self._channel = self._channel, None
        peer, self._peer = self._peer, None
        tracks, self._tracks = self._tracks, []

        if channel is not None:
            try:
                channel.close()
            except Exception as e:
                logger.warning(f"Error closing data channel: {e}")

        if peer is not None:
            try:
                await peer.close()
            except Exception as e:
                logger.warning(f"Error closing peer transport: {e}")

        for track in tracks:
            try:
                track.stop()
            except Exception as e:
                logger.warning(f"Error stopping capture track: {e}")

    # -- outbound ------------------------------------------------------------

    def send_event(self, event: dict):
        """Send now if the channel is open, otherwise queue in FIFO order."""
        payload = json.dumps(event)
        if self.is_channel_open:
            self._channel.send(payload)
        else:
            self._outbound.append(payload)

    def _flush_outbound(self, *args):
        if not self.is_channel_open:
            return
        while self._outbound:
            self._channel.send(self._outbound.popleft())

    def wait_for_acknowledgment(self, item_id: str) -> asyncio.Future:
        """
        Future resolved when the remote side acknowledges ``item_id``.

        A second call for the same id replaces the first, which then never
        settles. Teardown rejects every pending future with
        AcknowledgmentError. No timeout is applied here; a caller that
        cancels the future (e.g. via ``asyncio.wait_for``) drops the waiter.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        if not item_id:
            future.set_result(None)
            return future

        if item_id in self._pending_acks:
            logger.debug(f"Replacing acknowledgment waiter for {item_id}")
        self._pending_acks[item_id] = future
        future.add_done_callback(lambda done: self._discard_waiter(item_id, done))
        return future

    def _discard_waiter(self, item_id: str, future: asyncio.Future):
        if self._pending_acks.get(item_id) is future:
            del self._pending_acks[item_id]

    # -- capture -------------------------------------------------------------

    def pause_microphone(self):
        for track in self._tracks:
            track.enabled = False

    def resume_microphone(self):
        for track in self._tracks:
            track.enabled = True

    # -- inbound -------------------------------------------------------------

    def handle_message(self, payload):
        """Decode and apply one data-channel payload; bad payloads are logged."""
        try:
            event = decode_message(payload)
        except EventDecodeError as e:
            logger.error(f"Failed to parse realtime event: {e}")
            return

        if event is not None:
            self.apply(event)

    def apply(self, event: DecodedEvent):
        """Apply a decoded instruction to session state."""
        self._handlers[event.kind](event)

    def _apply_delta(self, event: TranscriptDelta):
        item = self.transcript.apply_delta(event.id, event.role, event.text)
        if item is not None:
            self._notify(self.on_transcript, item)

    def _apply_final(self, event: TranscriptFinal):
        item = self.transcript.apply_final(event.id, event.role, event.text)
        if item is not None:
            self._notify(self.on_transcript, item)

    def _apply_acknowledgment(self, event: Acknowledgment):
        for item_id in event.ids:
            future = self._pending_acks.pop(item_id, None)
            if future is not None:
                if not future.done():
                    future.set_result(None)
                return

    def _apply_response_started(self, event: ResponseStarted):
        self._response_started_at[event.response_id] = self.clock()

    def _apply_response_completed(self, event: ResponseCompleted):
        started = self._response_started_at.pop(event.response_id, None) if event.response_id else None
        if started is not None:
            self.last_latency_ms = self.clock() - started
            logger.info(f"Response {event.response_id} completed in {self.last_latency_ms:.0f}ms")

        self._notify(self.on_response_completed)

    def _apply_remote_error(self, event: RemoteError):
        logger.error(f"Realtime service error: {event.message}")
        self.error = event.message
