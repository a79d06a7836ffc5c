# backend/services/narration_service.py
"""
Narration Service

Turns a report's audio script into a downloadable MP3 briefing.

Flow:
- clean the script for speech (markdown symbols, repeated punctuation)
- split it into chunks the TTS endpoint accepts
- synthesise each chunk as raw 24 kHz mono PCM with OpenAI TTS
- encode the concatenated PCM to MP3 with the audio codec bridge
"""

import asyncio
import hashlib
import logging
import re
from collections import OrderedDict
from typing import Dict, List, Optional

from openai import APIError, AsyncOpenAI

import config
from errors import UpstreamServiceError, ValidationError
from models import HistoryEntry
from services.audio_codec import OUTPUT_SAMPLE_RATE, encode_mp3

logger = logging.getLogger(__name__)


NARRATION_FILENAME = "intelligence_brief.mp3"

SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")


class NarrationService:
    """
    Text-to-speech narration of analysis briefings.

    OpenAI TTS is asked for raw PCM (24 kHz, 16-bit, mono) so the MP3 is
    produced locally at a fixed bitrate.
    """

    # Max input length for the TTS endpoint
    MAX_TEXT_LENGTH = 4096

    CHANNELS = 1

    # Least recently used narrations are evicted past this many entries
    MAX_CACHE_ENTRIES = 32

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        voice: Optional[str] = None,
        bitrate_kbps: Optional[int] = None
    ):
        """
        Initialize the Narration Service.

        Args:
            client: AsyncOpenAI client (created from OPENAI_API_KEY if omitted)
            model: TTS model name
            voice: TTS voice name
            bitrate_kbps: MP3 bitrate
        """
        self.client = client or AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        self.model = model or config.NARRATION_MODEL
        self.voice = voice or config.NARRATION_VOICE
        self.bitrate_kbps = bitrate_kbps or config.MP3_BITRATE_KBPS

        # In-memory LRU cache: entry cache key -> MP3 bytes
        self._cache: "OrderedDict[str, bytes]" = OrderedDict()
        # Narrations being generated right now, shared by concurrent requests
        self._pending: Dict[str, asyncio.Task] = {}

        logger.info(f"NarrationService initialized: model={self.model}, voice={self.voice}")

    async def synthesize_pcm(self, text: str) -> bytes:
        """
        Synthesise text as 24 kHz mono PCM16.

        Args:
            text: Text to speak

        Returns:
            Concatenated PCM bytes for all chunks

        Raises:
            ValidationError: If nothing speakable remains after cleaning
            UpstreamServiceError: If the TTS call fails
        """
        chunks = self._split_for_speech(self._prepare_text_for_speech(text))
        if not chunks:
            raise ValidationError("There is no briefing script to narrate.", field="audioScript")

        pcm_parts: List[bytes] = []
        for index, chunk in enumerate(chunks, start=1):
            logger.info(f"Generating narration chunk {index}/{len(chunks)} ({len(chunk)} chars)")
            try:
                response = await self.client.audio.speech.create(
                    model=self.model,
                    voice=self.voice,
                    input=chunk,
                    response_format="pcm",
                )
            except APIError as e:
                logger.error(f"TTS generation failed: {str(e)}")
                raise UpstreamServiceError("Failed to generate audio content.", cause=e) from e

            pcm = response.content
            # Keep sample alignment across chunk boundaries
            if len(pcm) % 2:
                pcm = pcm[:-1]
            pcm_parts.append(pcm)

        return b"".join(pcm_parts)

    async def generate_narration(self, text: str) -> bytes:
        """
        Produce an MP3 narration of the given text.

        Returns:
            MP3 bytes
        """
        pcm = await self.synthesize_pcm(text)
        return encode_mp3(pcm, self.CHANNELS, OUTPUT_SAMPLE_RATE, self.bitrate_kbps)

    async def narration_for_entry(self, entry: HistoryEntry) -> bytes:
        """
        MP3 narration of a history entry's audio script, cached per entry.

        Concurrent requests for the same entry share one TTS generation.
        """
        cache_key = self._cache_key(entry)
        if cache_key in self._cache:
            logger.info(f"Narration cache hit for {entry.id}")
            self._cache.move_to_end(cache_key)
            return self._cache[cache_key]

        task = self._pending.get(cache_key)
        if task is None:
            task = asyncio.create_task(self.generate_narration(entry.analysis.audioScript))
            self._pending[cache_key] = task
            task.add_done_callback(lambda done, key=cache_key: self._forget_pending(key, done))
        else:
            logger.info(f"Joining in-flight narration for {entry.id}")

        # A cancelled caller must not cancel the generation other callers wait on
        mp3 = await asyncio.shield(task)
        self._store(cache_key, mp3)
        return mp3

    def _forget_pending(self, cache_key: str, task: asyncio.Task):
        if self._pending.get(cache_key) is task:
            del self._pending[cache_key]

    def _store(self, cache_key: str, mp3: bytes):
        self._cache[cache_key] = mp3
        self._cache.move_to_end(cache_key)
        while len(self._cache) > self.MAX_CACHE_ENTRIES:
            evicted, _ = self._cache.popitem(last=False)
            logger.info(f"Evicted narration {evicted} from cache")

    def _cache_key(self, entry: HistoryEntry) -> str:
        digest = hashlib.md5(
            f"{self.voice}:{entry.analysis.audioScript}".encode()
        ).hexdigest()[:16]
        return f"{entry.id}_{digest}"

    def _prepare_text_for_speech(self, text: str) -> str:
        """
        Adjust text for better TTS output.

        Markdown symbols are removed, runs of punctuation are collapsed and
        whitespace is normalised.
        """
        if not text:
            return ""

        adjusted = text
        for char in ["*", "_", "`", "#", "~"]:
            adjusted = adjusted.replace(char, "")

        adjusted = re.sub(r'\.{2,}', '...', adjusted)
        adjusted = re.sub(r',{2,}', ',', adjusted)
        adjusted = re.sub(r'\s+', ' ', adjusted)

        return adjusted.strip()

    def _split_for_speech(self, text: str) -> List[str]:
        """Split text at sentence boundaries into chunks of at most MAX_TEXT_LENGTH."""
        if not text:
            return []

        chunks: List[str] = []
        current = ""
        for sentence in SENTENCE_END_RE.split(text):
            # A single sentence longer than the limit is hard-split
            while len(sentence) > self.MAX_TEXT_LENGTH:
                if current:
                    chunks.append(current)
                    current = ""
                chunks.append(sentence[:self.MAX_TEXT_LENGTH])
                sentence = sentence[self.MAX_TEXT_LENGTH:]

            candidate = f"{current} {sentence}" if current else sentence
            if len(candidate) > self.MAX_TEXT_LENGTH:
                chunks.append(current)
                current = sentence
            else:
                current = candidate

        if current:
            chunks.append(current)

        return [c for c in chunks if c.strip()]

    def clear_cache(self):
        self._cache.clear()
        self._pending.clear()


# Singleton instance
_narration_service_instance: Optional[NarrationService] = None


def get_narration_service() -> NarrationService:
    """
    Get or create singleton NarrationService instance.

    Returns:
        Shared NarrationService instance
    """
    global _narration_service_instance

    if _narration_service_instance is None:
        _narration_service_instance = NarrationService()

    return _narration_service_instance


def reset_narration_service():
    """Reset the singleton instance (useful for testing)."""
    global _narration_service_instance
    _narration_service_instance = None
    logger.info("NarrationService singleton reset")
