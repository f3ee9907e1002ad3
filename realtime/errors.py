"""Errors raised by the realtime session layer."""


class RealtimeError(RuntimeError):
    """Base class for transport-level failures."""


class CredentialError(RealtimeError):
    """The token issuer did not return a usable short-lived credential."""


class NegotiationError(RealtimeError):
    """Offer/answer exchange with the remote service failed."""


class CapturePermissionError(RealtimeError):
    """The local capture device refused access."""

    MESSAGE = "Microphone permission denied. Please enable access or continue in text mode."

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class AcknowledgmentError(RealtimeError):
    """A pending conversation item was torn down before acknowledgment."""

    MESSAGE = "Conversation item was not acknowledged"

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class EventDecodeError(ValueError):
    """An inbound payload could not be decoded into an event object."""
