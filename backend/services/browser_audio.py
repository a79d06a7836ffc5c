# backend/services/browser_audio.py
"""
Browser audio device for realtime voice sessions.

The browser captures its microphone and plays model audio; this device is
the server-side end of that WebSocket.

Browser -> server:
    binary messages   float32 little-endian mono samples at 16 kHz
    {"type": "stop"}  end the session

Server -> browser:
    {"type": "ready", ...}   capture/playback formats, playback clock starts
    {"type": "audio", ...}   fragment to play at startAt (seconds on the clock)
    {"type": "stop", "id"}   cancel a scheduled fragment
    {"type": "state", ...}   session state changes
    {"type": "closed"}       session over
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional
from uuid import uuid4

import numpy as np
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from errors import MalformedAudioError, SessionError
from services.audio_codec import (
    INPUT_SAMPLE_RATE,
    OUTPUT_SAMPLE_RATE,
    AudioBuffer,
    encode_bytes_to_base64,
)
from services.voice_session import CAPTURE_FRAME_SIZE, AudioDevice, PlaybackSource

logger = logging.getLogger(__name__)


class BrowserPlaybackSource(PlaybackSource):
    """A fragment queued on the browser's playback clock."""

    def __init__(self, device: "BrowserAudioDevice", source_id: str, start_at: float, duration: float):
        super().__init__(start_at, duration)
        self.id = source_id
        self._device = device
        self.stopped = False

    async def stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        await self._device.send_event({"type": "stop", "id": self.id})


class BrowserAudioDevice(AudioDevice):
    """AudioDevice backed by a browser WebSocket connection."""

    def __init__(self, websocket: WebSocket, frame_size: int = CAPTURE_FRAME_SIZE):
        self.websocket = websocket
        self.frame_size = frame_size

        self._frames: "asyncio.Queue[Optional[np.ndarray]]" = asyncio.Queue()
        self._pending = np.zeros(0, dtype=np.float32)
        self._clock_origin: Optional[float] = None
        self._closed = False
        self._shut_down = False

    async def open(self) -> None:
        if self._closed:
            raise SessionError("The browser connection is already closed.")
        self._clock_origin = asyncio.get_running_loop().time()
        await self.send_event({
            "type": "ready",
            "inputSampleRate": INPUT_SAMPLE_RATE,
            "outputSampleRate": OUTPUT_SAMPLE_RATE,
            "frameSize": self.frame_size,
        })

    async def capture_frame(self) -> Optional[np.ndarray]:
        return await self._frames.get()

    def current_time(self) -> float:
        if self._clock_origin is None:
            return 0.0
        return asyncio.get_running_loop().time() - self._clock_origin

    async def schedule_fragment(self, buffer: AudioBuffer, start_at: float) -> PlaybackSource:
        source = BrowserPlaybackSource(self, uuid4().hex, start_at, buffer.duration)
        interleaved = np.ascontiguousarray(buffer.samples.T).astype("<f4").tobytes()
        await self.send_event({
            "type": "audio",
            "id": source.id,
            "startAt": start_at,
            "duration": buffer.duration,
            "sampleRate": buffer.sample_rate,
            "channels": buffer.channel_count,
            "data": encode_bytes_to_base64(interleaved),
        })
        return source

    def feed(self, payload: bytes) -> int:
        """
        Queue captured samples, re-chunked into fixed-size frames.

        Returns:
            Number of complete frames queued
        """
        if len(payload) % 4:
            raise MalformedAudioError(
                f"Capture payload of {len(payload)} bytes is not float32-aligned"
            )
        samples = np.frombuffer(payload, dtype="<f4")
        self._pending = np.concatenate([self._pending, samples])

        queued = 0
        while len(self._pending) >= self.frame_size:
            frame = self._pending[:self.frame_size]
            self._pending = self._pending[self.frame_size:]
            self._frames.put_nowait(frame)
            queued += 1
        return queued

    async def listen(self) -> None:
        """Read browser messages until it disconnects or asks to stop."""
        while not self._closed:
            try:
                message = await self.websocket.receive()
            except (WebSocketDisconnect, RuntimeError):
                break

            if message["type"] == "websocket.disconnect":
                self._closed = True
                break

            data = message.get("bytes")
            if data is not None:
                try:
                    self.feed(data)
                except MalformedAudioError as e:
                    logger.warning(f"Ignoring capture payload: {e.message}")
                continue

            text = message.get("text")
            if not text:
                continue
            try:
                payload = json.loads(text)
            except json.JSONDecodeError:
                logger.warning("Ignoring non-JSON text message from browser")
                continue
            if isinstance(payload, dict) and payload.get("type") == "stop":
                logger.info("Browser requested session stop")
                break

        self._frames.put_nowait(None)

    async def send_event(self, payload: Dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            await self.websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.info(f"Browser connection gone while sending '{payload.get('type')}': {e}")
            self._closed = True

    async def close(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True

        await self.send_event({"type": "closed"})
        self._closed = True
        self._frames.put_nowait(None)

        if (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        ):
            try:
                await self.websocket.close()
            except RuntimeError as e:
                logger.debug(f"WebSocket already closed: {e}")
