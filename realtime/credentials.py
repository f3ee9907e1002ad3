"""Credential issuance and SDP negotiation against the realtime API."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from pydantic import BaseModel

from schemas.rubric import ConversationPhase
from .errors import CredentialError, NegotiationError
from .transport import SessionDescription

logger = logging.getLogger(__name__)


class SessionConfig(BaseModel):
    """Per-connection options sent to the credential issuer."""
    session_id: Optional[str] = None
    instructions: Optional[str] = None
    voice: Optional[str] = None
    model: Optional[str] = None
    phase: Optional[ConversationPhase] = None
    capture_enabled: bool = True
    playback_enabled: bool = True


class Credential(BaseModel):
    """Short-lived, single-session access credential."""
    value: str
    expires_at: Optional[int] = None


class CredentialIssuer(ABC):
    """Issues short-lived credentials for one realtime session."""

    @abstractmethod
    async def request_credential(self, config: SessionConfig) -> Credential:
        """
        Raises:
            CredentialError: If no usable credential could be obtained
        """
        pass


class SdpNegotiator(ABC):
    """Exchanges a local offer for the remote answer."""

    @abstractmethod
    async def negotiate(
        self,
        offer: SessionDescription,
        credential: Credential
    ) -> SessionDescription:
        """
        Raises:
            NegotiationError: If the exchange failed
        """
        pass


class OpenAIRealtimeCredentialIssuer(CredentialIssuer):
    """Mints ephemeral client secrets from a long-lived API key."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-realtime",
        voice: str = "alloy",
        transcription_model: str = "whisper-1",
        base_url: str = "https://api.openai.com/v1/realtime",
        timeout: int = 15
    ):
        self.api_key = api_key
        self.model = model
        self.voice = voice
        self.transcription_model = transcription_model
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def build_session_payload(self, config: SessionConfig) -> dict:
        """Request body for the client secret endpoint."""
        session = {
            "type": "realtime",
            "model": config.model or self.model,
            "audio": {
                "output": {"voice": config.voice or self.voice},
                "input": {"transcription": {"model": self.transcription_model}},
            },
        }
        if config.instructions:
            session["instructions"] = config.instructions
        return {"session": session}

    def _request(self, config: SessionConfig) -> Credential:
        if not self.api_key:
            raise CredentialError("OPENAI_API_KEY is not configured")

        try:
            response = requests.post(
                f"{self.base_url}/client_secrets",
                json=self.build_session_payload(config),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise CredentialError(f"Token request failed: {e}") from e

        if response.status_code >= 300:
            raise CredentialError(
                response.text or f"Token request failed with {response.status_code}"
            )

        data = response.json()
        secret = data.get("client_secret") if isinstance(data.get("client_secret"), dict) else data
        value = secret.get("value")
        if not isinstance(value, str) or not value:
            raise CredentialError("Missing client secret in response")

        return Credential(value=value, expires_at=secret.get("expires_at"))

    async def request_credential(self, config: SessionConfig) -> Credential:
        credential = await asyncio.to_thread(self._request, config)
        logger.info(f"Issued realtime credential for session {config.session_id}")
        return credential


class OpenAIRealtimeNegotiator(SdpNegotiator):
    """Posts the SDP offer to the calls endpoint and returns the answer."""

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1/realtime",
        timeout: int = 15
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _exchange(self, offer: SessionDescription, credential: Credential) -> SessionDescription:
        try:
            response = requests.post(
                f"{self.base_url}/calls",
                data=offer.sdp.encode("utf-8"),
                headers={
                    "Authorization": f"Bearer {credential.value}",
                    "Content-Type": "application/sdp",
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise NegotiationError(f"SDP exchange failed: {e}") from e

        if response.status_code >= 300:
            raise NegotiationError(
                response.text or f"SDP exchange failed with {response.status_code}"
            )

        return SessionDescription(type="answer", sdp=response.text)

    async def negotiate(
        self,
        offer: SessionDescription,
        credential: Credential
    ) -> SessionDescription:
        return await asyncio.to_thread(self._exchange, offer, credential)
