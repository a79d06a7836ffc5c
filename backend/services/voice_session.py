# backend/services/voice_session.py
"""
Realtime Voice Session

Live vetting conversation with the realtime model about the current role.

The session is an explicit state machine owned by VoiceSessionController:

    IDLE -> CONNECTING -> ACTIVE -> IDLE
               |             |
               +--> ERROR <--+   (always cleaned up, then IDLE)

Audio hardware (or the browser standing in for it) sits behind the
AudioDevice interface, so framing, transmission and playback scheduling can
run against any device, including test fakes.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Optional, Set

import numpy as np

import config
from errors import FormatError, MalformedAudioError, SessionError
from models import AnalysisResult
from prompts.analysis_prompts import AnalysisPrompts
from services.audio_codec import (
    OUTPUT_SAMPLE_RATE,
    AudioBuffer,
    decode_base64_to_bytes,
    float_samples_to_pcm_blob,
    pcm16_to_audio_buffer,
)
from services.realtime_transport import (
    OpenAIRealtimeTransport,
    RealtimeConnection,
    RealtimeEvent,
    RealtimeTransport,
)

logger = logging.getLogger(__name__)


# Samples per captured frame: 256 ms at 16 kHz
CAPTURE_FRAME_SIZE = 4096


class VoiceState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ERROR = "error"


StateListener = Callable[[VoiceState, Optional[str]], Awaitable[None]]


class PlaybackSource(ABC):
    """A fragment of model audio scheduled on a device."""

    def __init__(self, start_at: float, duration: float):
        self.start_at = start_at
        self.duration = duration

    @property
    def end_time(self) -> float:
        return self.start_at + self.duration

    @abstractmethod
    async def stop(self) -> None:
        """Stop playback. Must be a no-op on an already stopped source."""


class AudioDevice(ABC):
    """
    Microphone input plus scheduled speaker output.

    Capture runs at 16 kHz in frames of CAPTURE_FRAME_SIZE samples; playback
    runs at 24 kHz on the device's own clock.
    """

    @abstractmethod
    async def open(self) -> None:
        """Acquire the microphone and both audio contexts."""

    @abstractmethod
    async def capture_frame(self) -> Optional[np.ndarray]:
        """Next captured frame of float samples, or None once input has ended."""

    @abstractmethod
    def current_time(self) -> float:
        """Playback clock in seconds."""

    @abstractmethod
    async def schedule_fragment(self, buffer: AudioBuffer, start_at: float) -> PlaybackSource:
        """Schedule a buffer to start playing at start_at on the playback clock."""

    @abstractmethod
    async def close(self) -> None:
        """Release the microphone and audio contexts. Safe to call more than once."""


class PlaybackScheduler:
    """
    Gapless sequential playback of model audio fragments.

    Each fragment starts at max(next_start_time, device clock), and
    next_start_time then moves past it. Every scheduled source is tracked
    so an interrupt can silence all of them at once.
    """

    def __init__(self, device: AudioDevice):
        self.device = device
        self.next_start_time = 0.0
        self.sources: Set[PlaybackSource] = set()

    @property
    def active_count(self) -> int:
        return len(self.sources)

    async def schedule(self, buffer: AudioBuffer) -> PlaybackSource:
        now = self.device.current_time()
        self._prune(now)

        start_at = max(self.next_start_time, now)
        source = await self.device.schedule_fragment(buffer, start_at)
        self.next_start_time = start_at + buffer.duration
        self.sources.add(source)
        return source

    async def interrupt(self) -> None:
        """Stop everything scheduled or playing and reset the playback clock offset."""
        for source in list(self.sources):
            try:
                await source.stop()
            except Exception as e:
                logger.warning(f"Failed to stop playback source: {e}")
        self.sources.clear()
        self.next_start_time = 0.0

    def _prune(self, now: float):
        finished = [s for s in self.sources if s.end_time <= now]
        for source in finished:
            self.sources.discard(source)


class VoiceSessionController:
    """
    Owns the single realtime voice session of the process.

    Starting a session while another is live tears the old one down first.
    stop() is idempotent and safe from every state.
    """

    def __init__(
        self,
        transport: Optional[RealtimeTransport] = None,
        voice: Optional[str] = None,
        open_timeout: Optional[float] = None
    ):
        self._transport = transport
        self.voice = voice or config.REALTIME_VOICE
        self.open_timeout = open_timeout if open_timeout is not None else config.SESSION_OPEN_TIMEOUT_SECONDS

        self._state = VoiceState.IDLE
        self.last_error: Optional[str] = None

        self._device: Optional[AudioDevice] = None
        self._connection: Optional[RealtimeConnection] = None
        self._scheduler: Optional[PlaybackScheduler] = None
        self._on_state: Optional[StateListener] = None

        self._connect_task: Optional[asyncio.Task] = None
        self._capture_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None

        # Bumped on every teardown so stale tasks and callbacks can tell
        # that their session is gone
        self._generation = 0

    @property
    def transport(self) -> RealtimeTransport:
        if self._transport is None:
            self._transport = OpenAIRealtimeTransport()
        return self._transport

    @property
    def state(self) -> VoiceState:
        return self._state

    @property
    def scheduler(self) -> Optional[PlaybackScheduler]:
        return self._scheduler

    def owns(self, device: AudioDevice) -> bool:
        """True while the given device belongs to the live session."""
        return self._device is device

    async def start(
        self,
        analysis: Optional[AnalysisResult],
        device: AudioDevice,
        on_state: Optional[StateListener] = None
    ) -> None:
        """
        Open a vetting session for an analysed role.

        Args:
            analysis: The analysis whose title frames the conversation
            device: Audio I/O for this session
            on_state: Optional async callback for state changes

        Raises:
            SessionError: No analysis, or the device/connection could not be
                opened in time. The controller is back in IDLE when raised.
        """
        if analysis is None:
            raise SessionError("Run an analysis before starting a vetting session.")

        await self.stop()

        generation = self._generation
        self.last_error = None
        self._device = device
        self._on_state = on_state
        self._scheduler = PlaybackScheduler(device)
        await self._set_state(VoiceState.CONNECTING)
        if generation != self._generation:
            logger.info("Voice session stopped before it could connect")
            return

        instructions = AnalysisPrompts.vetting_session_instruction(analysis.title)
        connect_task = asyncio.create_task(
            asyncio.wait_for(self._open(device, instructions), timeout=self.open_timeout)
        )
        self._connect_task = connect_task

        try:
            connection = await connect_task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.info("Voice session start abandoned by stop()")
                return
            await self._fail("Voice session start was cancelled.")
            raise
        except asyncio.TimeoutError as e:
            await self._fail("Timed out while starting the vetting session.")
            raise SessionError(self.last_error, cause=e) from e
        except Exception as e:
            logger.exception("Voice session failed to open")
            await self._fail("Failed to start vetting session.")
            raise SessionError(self.last_error, cause=e) from e
        finally:
            if self._connect_task is connect_task:
                self._connect_task = None

        if generation != self._generation:
            # stop() won the race after the connection was already made
            await connection.close()
            try:
                await device.close()
            except Exception as e:
                logger.warning(f"Error closing audio device: {e}")
            return

        self._connection = connection
        await self._set_state(VoiceState.ACTIVE)

        self._capture_task = asyncio.create_task(self._pump_capture(generation, device, connection))
        self._receive_task = asyncio.create_task(self._pump_events(generation, connection))
        logger.info(f"Vetting session active for '{analysis.title}'")

    async def stop(self) -> None:
        """Close the session and release all audio resources."""
        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done():
            task.cancel()

        await self._teardown()

        if self._state != VoiceState.IDLE:
            await self._set_state(VoiceState.IDLE)
        self._on_state = None

    async def handle_event(self, event: RealtimeEvent) -> None:
        """Schedule inbound audio or apply an interrupt, in arrival order."""
        scheduler = self._scheduler
        if scheduler is None:
            return

        if event.audio:
            try:
                buffer = pcm16_to_audio_buffer(
                    decode_base64_to_bytes(event.audio), OUTPUT_SAMPLE_RATE, 1
                )
            except (FormatError, MalformedAudioError) as e:
                logger.warning(f"Dropping unreadable audio fragment: {e.message}")
            else:
                await scheduler.schedule(buffer)

        if event.interrupted:
            logger.info("Interrupt received, silencing playback")
            await scheduler.interrupt()

    async def _open(self, device: AudioDevice, instructions: str) -> RealtimeConnection:
        await device.open()
        return await self.transport.connect(instructions, self.voice)

    async def _pump_capture(self, generation: int, device: AudioDevice, connection: RealtimeConnection):
        """Send captured frames in capture order, one at a time."""
        try:
            while True:
                frame = await device.capture_frame()
                if frame is None:
                    break
                await connection.send_audio(float_samples_to_pcm_blob(frame))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Microphone streaming failed")
            await self._end_session(generation, f"Voice session interrupted: {e}")
            return

        logger.info("Microphone input ended")
        await self._end_session(generation)

    async def _pump_events(self, generation: int, connection: RealtimeConnection):
        try:
            async for event in connection.events():
                await self.handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Realtime connection failed")
            await self._end_session(generation, f"Voice session interrupted: {e}")
            return

        logger.info("Realtime session closed by the server")
        await self._end_session(generation)

    async def _end_session(self, generation: int, error: Optional[str] = None):
        if generation != self._generation:
            return
        if error:
            await self._fail(error)
        else:
            await self.stop()

    async def _fail(self, message: str):
        self.last_error = message
        logger.error(f"Voice session error: {message}")
        await self._set_state(VoiceState.ERROR, message)
        await self._teardown()
        await self._set_state(VoiceState.IDLE)
        self._on_state = None

    async def _teardown(self):
        self._generation += 1

        current = asyncio.current_task()
        tasks = [
            t for t in (self._capture_task, self._receive_task)
            if t is not None and t is not current
        ]
        self._capture_task = None
        self._receive_task = None

        connection, self._connection = self._connection, None
        scheduler, self._scheduler = self._scheduler, None
        device, self._device = self._device, None

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"Error closing realtime connection: {e}")

        if scheduler is not None:
            await scheduler.interrupt()

        if device is not None:
            try:
                await device.close()
            except Exception as e:
                logger.warning(f"Error closing audio device: {e}")

    async def _set_state(self, state: VoiceState, message: Optional[str] = None):
        self._state = state
        listener = self._on_state
        if listener is None:
            return
        try:
            await listener(state, message)
        except Exception as e:
            logger.warning(f"Voice state listener failed: {e}")


# Singleton instance
_voice_controller_instance: Optional[VoiceSessionController] = None


def get_voice_controller() -> VoiceSessionController:
    """
    Get or create the process-wide voice session controller.

    Returns:
        Shared VoiceSessionController instance
    """
    global _voice_controller_instance

    if _voice_controller_instance is None:
        _voice_controller_instance = VoiceSessionController()

    return _voice_controller_instance


def reset_voice_controller():
    """Reset the singleton instance (useful for testing)."""
    global _voice_controller_instance
    _voice_controller_instance = None
