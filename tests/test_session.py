"""Tests for RealtimeSessionManager using in-memory transport fakes."""

import asyncio
import json
import pytest

from realtime.credentials import Credential, CredentialIssuer, SdpNegotiator, SessionConfig
from realtime.errors import AcknowledgmentError, CapturePermissionError, CredentialError
from realtime.session import RealtimeSessionManager, SessionStatus
from realtime.transport import (
    CaptureDevice,
    DataChannel,
    MediaTrack,
    PeerTransport,
    SessionDescription,
)
from schemas.transcript import Role


pytestmark = pytest.mark.asyncio


class FakeTrack(MediaTrack):
    def __init__(self):
        self.enabled = True
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeCaptureDevice(CaptureDevice):
    def __init__(self, deny: bool = False):
        self.deny = deny
        self.tracks = []

    async def open(self):
        if self.deny:
            raise CapturePermissionError()
        self.tracks = [FakeTrack()]
        return self.tracks


class FakeDataChannel(DataChannel):
    def __init__(self, label: str):
        self.label = label
        self.state = "connecting"
        self.sent = []
        self.handlers = {}
        self.closed = False

    @property
    def ready_state(self) -> str:
        return self.state

    def send(self, data: str):
        self.sent.append(data)

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def close(self):
        self.closed = True
        self.state = "closed"

    def open(self):
        self.state = "open"
        for handler in self.handlers.get("open", []):
            handler()

    def receive(self, event: dict):
        for handler in self.handlers.get("message", []):
            handler(json.dumps(event))


class FakePeer(PeerTransport):
    def __init__(self, auto_connect: bool = True):
        self.auto_connect = auto_connect
        self.state = "new"
        self.transceivers = []
        self.tracks = []
        self.channel = None
        self.state_handlers = []
        self.track_handlers = []
        self.closed = False
        self.remote = None

    @property
    def connection_state(self) -> str:
        return self.state

    def add_transceiver(self, kind, direction):
        self.transceivers.append((kind, direction))

    def add_track(self, track):
        self.tracks.append(track)

    def create_data_channel(self, label):
        self.channel = FakeDataChannel(label)
        return self.channel

    def on_connection_state_change(self, handler):
        self.state_handlers.append(handler)

    def on_track(self, handler):
        self.track_handlers.append(handler)

    async def create_offer(self):
        return SessionDescription(type="offer", sdp="v=0 offer")

    async def set_local_description(self, description):
        self.local = description

    async def set_remote_description(self, description):
        self.remote = description
        if self.auto_connect:
            self.state = "connected"

    async def close(self):
        self.closed = True
        self.state = "closed"

    def report(self, state: str):
        self.state = state
        for handler in self.state_handlers:
            handler(state)


class FakeIssuer(CredentialIssuer):
    def __init__(self, fail: bool = False, gate: asyncio.Event = None):
        self.fail = fail
        self.gate = gate
        self.calls = []

    async def request_credential(self, config):
        self.calls.append(config)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise CredentialError("Token request failed with 500")
        return Credential(value="ek_test", expires_at=123)


class FakeNegotiator(SdpNegotiator):
    async def negotiate(self, offer, credential):
        return SessionDescription(type="answer", sdp="v=0 answer")


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_manager(peer=None, issuer=None, capture=None, clock=None, **config):
    peers = []

    def factory():
        created = peer or FakePeer()
        peers.append(created)
        return created

    manager = RealtimeSessionManager(
        credential_issuer=issuer or FakeIssuer(),
        negotiator=FakeNegotiator(),
        transport_factory=factory,
        capture_device=capture or FakeCaptureDevice(),
        config=SessionConfig(session_id="session-1", **config),
        clock=clock or FakeClock(),
    )
    return manager, peers


class TestConnectLifecycle:
    """Test connection state transitions."""

    async def test_connect_success(self):
        """Test connect reaches connected with a bidirectional transceiver."""
        manager, peers = make_manager()
        statuses = []
        manager.on_status_change = statuses.append

        await manager.connect()

        assert manager.status == SessionStatus.CONNECTED
        assert manager.error is None
        assert statuses == [
            SessionStatus.REQUESTING_CREDENTIAL,
            SessionStatus.CONNECTING,
            SessionStatus.CONNECTED,
        ]
        peer = peers[0]
        assert peer.transceivers == [("audio", "sendrecv")]
        assert peer.channel.label == "oai-events"
        assert peer.remote.sdp == "v=0 answer"
        assert len(peer.tracks) == 1

    @pytest.mark.parametrize("capture,playback,direction", [
        (True, True, "sendrecv"),
        (True, False, "sendonly"),
        (False, True, "recvonly"),
        (False, False, "recvonly"),
    ])
    async def test_media_direction(self, capture, playback, direction):
        """Test transceiver direction from capture/playback flags."""
        manager, peers = make_manager(capture_enabled=capture, playback_enabled=playback)
        await manager.connect()
        assert peers[0].transceivers == [("audio", direction)]

    async def test_connect_is_idempotent(self):
        """Test that connect while connected is a no-op."""
        issuer = FakeIssuer()
        manager, peers = make_manager(issuer=issuer)

        await manager.connect()
        await manager.connect()

        assert len(issuer.calls) == 1
        assert len(peers) == 1

    async def test_bare_connect_after_override_is_noop(self):
        """Test connect without a config while connected keeps the live session."""
        issuer = FakeIssuer()
        peers = []

        def factory():
            peers.append(FakePeer())
            return peers[-1]

        manager = RealtimeSessionManager(
            credential_issuer=issuer,
            negotiator=FakeNegotiator(),
            transport_factory=factory,
            capture_device=FakeCaptureDevice(),
        )

        await manager.connect(SessionConfig(session_id="s1"))
        await manager.connect()

        assert manager.status == SessionStatus.CONNECTED
        assert manager.error is None
        assert len(issuer.calls) == 1
        assert peers[0].closed is False

    async def test_missing_session_id(self):
        """Test that a session id is required."""
        manager, _ = make_manager()
        await manager.connect(SessionConfig(session_id=""))

        assert manager.status == SessionStatus.ERROR
        assert manager.error == "Session ID is required for realtime connection"

    async def test_override_config_is_merged(self):
        """Test connect overrides merge over the base config."""
        issuer = FakeIssuer()
        manager, peers = make_manager(issuer=issuer)
        await manager.connect(SessionConfig(instructions="Be brief", capture_enabled=False))

        assert issuer.calls[0].session_id == "session-1"
        assert issuer.calls[0].instructions == "Be brief"
        assert peers[0].transceivers == [("audio", "recvonly")]

    async def test_credential_failure(self):
        """Test credential failure surfaces an error and releases resources."""
        manager, peers = make_manager(issuer=FakeIssuer(fail=True))
        await manager.connect()

        assert manager.status == SessionStatus.ERROR
        assert "Token request failed" in manager.error
        assert peers == []

    async def test_permission_denied(self):
        """Test capture denial gives the user-actionable message."""
        manager, peers = make_manager(capture=FakeCaptureDevice(deny=True))
        await manager.connect()

        assert manager.status == SessionStatus.ERROR
        assert manager.error == (
            "Microphone permission denied. Please enable access or continue in text mode."
        )
        assert peers[0].closed is True
        assert peers[0].channel.closed is True

    async def test_waits_for_transport_connected(self):
        """Test connecting holds until the transport reports connected."""
        peer = FakePeer(auto_connect=False)
        manager, _ = make_manager(peer=peer)

        await manager.connect()
        assert manager.status == SessionStatus.CONNECTING

        peer.report("connected")
        assert manager.status == SessionStatus.CONNECTED

    async def test_transport_failure(self):
        """Test failed transport moves to error with the reported state."""
        peer = FakePeer()
        manager, _ = make_manager(peer=peer)
        await manager.connect()

        peer.report("failed")

        assert manager.status == SessionStatus.ERROR
        assert manager.error == "Connection failed"

    async def test_reconnect_after_transport_failure_releases_old_connection(self):
        """Test reconnecting from error closes the failed peer and stops its capture."""
        capture = FakeCaptureDevice()
        manager, peers = make_manager(capture=capture)
        await manager.connect()
        old_track = capture.tracks[0]

        peers[0].report("failed")
        assert manager.status == SessionStatus.ERROR

        await manager.connect()

        assert manager.status == SessionStatus.CONNECTED
        assert len(peers) == 2
        assert peers[0].closed is True
        assert peers[0].channel.closed is True
        assert old_track.stopped is True
        assert peers[1].closed is False
        assert peers[1].tracks == capture.tracks
        assert capture.tracks[0].stopped is False

    async def test_late_report_from_released_peer_ignored(self):
        """Test state changes from a replaced peer do not touch the new connection."""
        manager, peers = make_manager()
        await manager.connect()
        peers[0].report("failed")
        await manager.connect()

        peers[0].report("disconnected")

        assert manager.status == SessionStatus.CONNECTED
        assert manager.error is None

    async def test_disconnect_during_credential_request(self):
        """Test a disconnect mid-connect prevents the stale attempt from finishing."""
        gate = asyncio.Event()
        manager, peers = make_manager(issuer=FakeIssuer(gate=gate))

        task = asyncio.create_task(manager.connect())
        await asyncio.sleep(0)
        assert manager.status == SessionStatus.REQUESTING_CREDENTIAL

        await manager.disconnect()
        gate.set()
        await task

        assert manager.status == SessionStatus.IDLE
        assert peers == []

    async def test_disconnect_twice(self):
        """Test disconnect is safe to call repeatedly."""
        manager, peers = make_manager()
        await manager.connect()

        await manager.disconnect()
        first_state = manager.state
        await manager.disconnect()

        assert manager.status == SessionStatus.IDLE
        assert manager.state == first_state
        assert peers[0].closed is True
        assert all(track.stopped for track in peers[0].tracks)

    async def test_disconnect_when_idle(self):
        """Test disconnect without a connection does not raise."""
        manager, _ = make_manager()
        await manager.disconnect()
        assert manager.status == SessionStatus.IDLE


class TestOutboundQueue:
    """Test outbound event queueing."""

    async def test_events_flushed_in_order_on_open(self):
        """Test queued events are sent once each, in order, when the channel opens."""
        manager, peers = make_manager()
        await manager.connect()
        channel = peers[0].channel

        manager.send_event({"type": "A"})
        manager.send_event({"type": "B"})
        assert channel.sent == []
        assert manager.queued_events == 2

        channel.open()
        manager.send_event({"type": "C"})

        assert [json.loads(data)["type"] for data in channel.sent] == ["A", "B", "C"]
        assert manager.queued_events == 0

    async def test_events_queued_before_connect(self):
        """Test events sent before connect are delivered after open."""
        manager, peers = make_manager()
        manager.send_event({"type": "early"})

        await manager.connect()
        peers[0].channel.open()

        assert [json.loads(data)["type"] for data in peers[0].channel.sent] == ["early"]

    async def test_disconnect_clears_queue(self):
        """Test teardown clears the outbound queue."""
        manager, _ = make_manager()
        await manager.connect()
        manager.send_event({"type": "A"})

        await manager.disconnect()
        assert manager.queued_events == 0


class TestAcknowledgments:
    """Test acknowledgment correlation."""

    async def test_acknowledgment_resolves(self):
        """Test matching item.added event resolves the waiter."""
        manager, peers = make_manager()
        await manager.connect()

        future = manager.wait_for_acknowledgment("item-1")
        peers[0].channel.receive({"type": "conversation.item.added", "item": {"id": "item-1"}})

        await asyncio.wait_for(future, timeout=1)
        assert manager.pending_acknowledgments == 0

    async def test_acknowledgment_via_metadata(self):
        """Test matching through a metadata correlation id."""
        manager, peers = make_manager()
        await manager.connect()

        future = manager.wait_for_acknowledgment("client-7")
        peers[0].channel.receive({
            "type": "conversation.item.added",
            "item": {"id": "srv-1", "metadata": {"correlation_id": "client-7"}},
        })

        await asyncio.wait_for(future, timeout=1)

    async def test_last_waiter_wins(self):
        """Test a second waiter for the same id replaces the first."""
        manager, peers = make_manager()
        await manager.connect()

        first = manager.wait_for_acknowledgment("x")
        second = manager.wait_for_acknowledgment("x")
        peers[0].channel.receive({"type": "conversation.item.added", "item": {"id": "x"}})

        await asyncio.wait_for(second, timeout=1)
        assert first.done() is False

    async def test_timed_out_waiter_is_dropped(self):
        """Test a waiter cancelled by a caller timeout leaves no pending entry."""
        manager, _ = make_manager()
        await manager.connect()

        future = manager.wait_for_acknowledgment("slow")
        assert manager.pending_acknowledgments == 1

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(future, timeout=0.01)
        await asyncio.sleep(0)

        assert manager.pending_acknowledgments == 0

    async def test_cancelled_replaced_waiter_keeps_newer(self):
        """Test cancelling a replaced waiter does not drop its replacement."""
        manager, peers = make_manager()
        await manager.connect()

        first = manager.wait_for_acknowledgment("x")
        second = manager.wait_for_acknowledgment("x")
        first.cancel()
        await asyncio.sleep(0)

        assert manager.pending_acknowledgments == 1
        peers[0].channel.receive({"type": "conversation.item.added", "item": {"id": "x"}})
        await asyncio.wait_for(second, timeout=1)

    async def test_disconnect_rejects_pending(self):
        """Test teardown rejects outstanding waiters."""
        manager, _ = make_manager()
        await manager.connect()

        future = manager.wait_for_acknowledgment("x")
        await manager.disconnect()

        with pytest.raises(AcknowledgmentError, match="Conversation item was not acknowledged"):
            await future
        assert manager.pending_acknowledgments == 0

    async def test_empty_id_resolves_immediately(self):
        """Test an empty id needs no acknowledgment."""
        manager, _ = make_manager()
        future = manager.wait_for_acknowledgment("")
        assert future.done()
        assert manager.pending_acknowledgments == 0


class TestInboundEvents:
    """Test inbound message handling."""

    async def test_transcripts_applied(self):
        """Test transcript events flow into the store and the callback."""
        manager, peers = make_manager()
        seen = []
        manager.on_transcript = seen.append
        await manager.connect()
        channel = peers[0].channel

        channel.receive({"type": "response.output_text.delta", "response_id": "r1", "delta": "Hi"})
        channel.receive({"type": "response.output_text.delta", "response_id": "r1", "delta": " there"})
        channel.receive({"type": "response.output_text.done", "response_id": "r1", "text": "Hi there!"})

        item = manager.transcript.get("r1")
        assert item.text == "Hi there!"
        assert item.is_final is True
        assert item.role == Role.ASSISTANT
        assert [entry.text for entry in seen] == ["Hi", "Hi there", "Hi there!"]

    async def test_malformed_message_ignored(self):
        """Test bad payloads are dropped without touching the transcript."""
        manager, peers = make_manager()
        await manager.connect()

        manager.handle_message("{not json")
        manager.handle_message("[]")

        assert len(manager.transcript) == 0
        assert manager.status == SessionStatus.CONNECTED

    async def test_latency_is_one_shot(self):
        """Test latency measured from response created to completed."""
        clock = FakeClock()
        manager, peers = make_manager(clock=clock)
        completed = []
        manager.on_response_completed = lambda: completed.append(True)
        await manager.connect()
        channel = peers[0].channel

        channel.receive({"type": "response.created", "response": {"id": "resp_1"}})
        clock.now += 420
        channel.receive({"type": "response.completed", "response": {"id": "resp_1"}})
        assert manager.last_latency_ms == 420

        clock.now += 1000
        channel.receive({"type": "response.completed", "response": {"id": "resp_1"}})
        assert manager.last_latency_ms == 420
        assert len(completed) == 2

    async def test_remote_error_recorded(self):
        """Test remote error events set the message without changing status."""
        manager, peers = make_manager()
        await manager.connect()

        peers[0].channel.receive({"type": "error", "error": {"message": "Invalid item"}})

        assert manager.error == "Invalid item"
        assert manager.status == SessionStatus.CONNECTED


class TestMicrophone:
    """Test capture track toggling."""

    async def test_pause_and_resume(self):
        """Test pause/resume toggles track enablement."""
        capture = FakeCaptureDevice()
        manager, _ = make_manager(capture=capture)
        await manager.connect()

        manager.pause_microphone()
        assert capture.tracks[0].enabled is False

        manager.resume_microphone()
        assert capture.tracks[0].enabled is True

    async def test_pause_without_tracks(self):
        """Test pause is a no-op without capture."""
        manager, _ = make_manager(capture_enabled=False)
        await manager.connect()
        manager.pause_microphone()
        manager.resume_microphone()
