# backend/services/realtime_transport.py
"""
Realtime model transport.

Abstract connection interface used by the voice session controller, and its
OpenAI Realtime implementation.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from openai import AsyncOpenAI

import config
from services.audio_codec import (
    OUTPUT_SAMPLE_RATE,
    PcmBlob,
    decode_base64_to_bytes,
    encode_bytes_to_base64,
    resample_pcm16,
)

logger = logging.getLogger(__name__)


AUDIO_DELTA_EVENTS = ("response.output_audio.delta", "response.audio.delta")
INTERRUPT_EVENTS = ("input_audio_buffer.speech_started",)


@dataclass(frozen=True)
class RealtimeEvent:
    """
    One inbound message from the model.

    Attributes:
        audio: Base64 PCM16 fragment at 24 kHz, if the message carries audio
        interrupted: True when the user started talking over the model
    """
    audio: Optional[str] = None
    interrupted: bool = False


class RealtimeConnection(ABC):
    """An open realtime session."""

    @abstractmethod
    async def send_audio(self, blob: PcmBlob) -> None:
        """Send one captured PCM frame."""

    @abstractmethod
    def events(self) -> AsyncIterator[RealtimeEvent]:
        """Inbound events in arrival order; ends when the session closes."""

    @abstractmethod
    async def close(self) -> None:
        """Close the session. Safe to call more than once."""


class RealtimeTransport(ABC):
    """Opens realtime sessions with a model provider."""

    @abstractmethod
    async def connect(self, instructions: str, voice: str) -> RealtimeConnection:
        """Open a session with the given system instruction and output voice."""


def _rate_from_mime_type(mime_type: str, default: int) -> int:
    # "audio/pcm;rate=16000" -> 16000
    for part in mime_type.split(";"):
        key, _, value = part.strip().partition("=")
        if key == "rate" and value.isdigit():
            return int(value)
    return default


class OpenAIRealtimeConnection(RealtimeConnection):
    """Wraps an OpenAI realtime websocket connection."""

    # The OpenAI realtime API only accepts 24 kHz PCM input
    PROVIDER_INPUT_RATE = OUTPUT_SAMPLE_RATE

    def __init__(self, connection):
        self._connection = connection
        self._closed = False

    async def send_audio(self, blob: PcmBlob) -> None:
        rate = _rate_from_mime_type(blob.mime_type, self.PROVIDER_INPUT_RATE)
        audio = blob.data
        if rate != self.PROVIDER_INPUT_RATE:
            pcm = resample_pcm16(decode_base64_to_bytes(blob.data), rate, self.PROVIDER_INPUT_RATE)
            audio = encode_bytes_to_base64(pcm)
        await self._connection.input_audio_buffer.append(audio=audio)

    async def events(self) -> AsyncIterator[RealtimeEvent]:
        async for event in self._connection:
            if event.type in AUDIO_DELTA_EVENTS:
                yield RealtimeEvent(audio=event.delta)
            elif event.type in INTERRUPT_EVENTS:
                yield RealtimeEvent(interrupted=True)
            elif event.type == "error":
                logger.error(f"Realtime error event: {getattr(event, 'error', event)}")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._connection.close()


class OpenAIRealtimeTransport(RealtimeTransport):
    """Realtime sessions on the OpenAI Realtime API."""

    PROVIDER_RATE = OUTPUT_SAMPLE_RATE

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.client = client or AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        self.model = model or config.REALTIME_MODEL

    async def connect(self, instructions: str, voice: str) -> RealtimeConnection:
        manager = self.client.realtime.connect(model=self.model)
        connection = await manager.enter()
        try:
            await connection.session.update(
                session={
                    "type": "realtime",
                    "instructions": instructions,
                    "output_modalities": ["audio"],
                    "audio": {
                        "input": {
                            "format": {"type": "audio/pcm", "rate": self.PROVIDER_RATE},
                            "turn_detection": {"type": "server_vad"},
                        },
                        "output": {
                            "format": {"type": "audio/pcm", "rate": self.PROVIDER_RATE},
                            "voice": voice,
                        },
                    },
                }
            )
        except BaseException:
            await connection.close()
            raise

        logger.info(f"Realtime session opened on {self.model} with voice {voice}")
        return OpenAIRealtimeConnection(connection)
