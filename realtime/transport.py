"""
Peer transport collaborator interfaces.

The session manager drives a WebRTC-style peer connection through these
abstractions; concrete adapters live outside this package.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable
from pydantic import BaseModel


DATA_CHANNEL_LABEL = "oai-events"


class MediaDirection:
    """Transceiver direction values."""
    SENDRECV = "sendrecv"
    SENDONLY = "sendonly"
    RECVONLY = "recvonly"


def media_direction(capture_enabled: bool, playback_enabled: bool) -> str:
    """Capture and playback give sendrecv, capture alone sendonly, otherwise recvonly."""
    if capture_enabled:
        return MediaDirection.SENDRECV if playback_enabled else MediaDirection.SENDONLY
    return MediaDirection.RECVONLY


class SessionDescription(BaseModel):
    """SDP offer or answer."""
    type: str  # "offer" or "answer"
    sdp: str


class MediaTrack(ABC):
    """A local or remote media track."""

    enabled: bool = True

    @abstractmethod
    def stop(self):
        """Release the underlying device."""
        pass


class CaptureDevice(ABC):
    """Local audio capture source."""

    @abstractmethod
    async def open(self) -> list[MediaTrack]:
        """
        Start capturing.

        Raises:
            CapturePermissionError: If the user denied device access
        """
        pass


class DataChannel(ABC):
    """Bidirectional string message channel."""

    @property
    @abstractmethod
    def ready_state(self) -> str:
        """One of connecting, open, closing or closed."""
        pass

    @abstractmethod
    def send(self, data: str):
        pass

    @abstractmethod
    def on(self, event: str, handler: Callable[..., Any]):
        """Register a handler for "open", "message" or "close"."""
        pass

    @abstractmethod
    def close(self):
        pass


class PeerTransport(ABC):
    """Peer connection with offer/answer negotiation."""

    @property
    @abstractmethod
    def connection_state(self) -> str:
        """One of new, connecting, connected, disconnected, failed or closed."""
        pass

    @abstractmethod
    def add_transceiver(self, kind: str, direction: str):
        pass

    @abstractmethod
    def add_track(self, track: MediaTrack):
        pass

    @abstractmethod
    def create_data_channel(self, label: str) -> DataChannel:
        pass

    @abstractmethod
    def on_connection_state_change(self, handler: Callable[[str], None]):
        """Register a callback receiving the new connection state."""
        pass

    @abstractmethod
    def on_track(self, handler: Callable[[MediaTrack], None]):
        """Register a callback for remote media tracks."""
        pass

    @abstractmethod
    async def create_offer(self) -> SessionDescription:
        pass

    @abstractmethod
    async def set_local_description(self, description: SessionDescription):
        pass

    @abstractmethod
    async def set_remote_description(self, description: SessionDescription):
        pass

    @abstractmethod
    async def close(self):
        pass


TransportFactory = Callable[[], PeerTransport]
