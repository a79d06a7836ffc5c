# backend/services/audio_codec.py
"""
Audio Codec Bridge

Conversions between the audio representations used by the narration and
realtime voice features:

- base64 text <-> raw bytes (the wire format of the model's audio payloads)
- little-endian 16-bit PCM bytes -> normalised float sample buffers
- float capture samples -> 16 kHz PCM blobs for the realtime input channel
- PCM -> MP3 for the downloadable narration

Sample arithmetic uses numpy; MP3 encoding uses lameenc.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

try:
    import lameenc
except ImportError:  # pragma: no cover - exercised by patching in tests
    lameenc = None

from errors import EncoderUnavailableError, FormatError, MalformedAudioError

logger = logging.getLogger(__name__)


# Realtime input channel (microphone -> model)
INPUT_SAMPLE_RATE = 16000
# Model audio output (narration and realtime playback)
OUTPUT_SAMPLE_RATE = 24000

PCM_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"

# Samples per MP3 frame (MPEG-1 Layer III)
MP3_FRAME_SAMPLES = 1152

# int16 full scale
PCM_SCALE = 32768.0


@dataclass(frozen=True)
class PcmBlob:
    """Base64-encoded PCM chunk ready for the realtime input channel."""
    data: str
    mime_type: str = PCM_MIME_TYPE


@dataclass(frozen=True)
class AudioBuffer:
    """
    Deinterleaved float audio.

    Attributes:
        samples: float32 array shaped (channels, frames), values in [-1.0, 1.0)
        sample_rate: Frames per second
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        """Playback length in seconds."""
        return self.frame_count / float(self.sample_rate)

    def channel(self, index: int) -> np.ndarray:
        return self.samples[index]


def decode_base64_to_bytes(text: Union[str, bytes]) -> bytes:
    """
    Decode standard base64 text.

    Raises:
        FormatError: If the text contains characters outside the base64
            alphabet or has incorrect padding
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FormatError("Invalid base64 audio payload", cause=e) from e


def encode_bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def _check_pcm_alignment(data: bytes, channel_count: int) -> None:
    if channel_count < 1:
        raise MalformedAudioError(
            f"Channel count must be at least 1, got {channel_count}",
            details={"channel_count": channel_count}
        )
    frame_bytes = 2 * channel_count
    if len(data) % frame_bytes != 0:
        raise MalformedAudioError(
            f"PCM length {len(data)} is not a multiple of {frame_bytes} bytes",
            details={"byte_length": len(data), "channel_count": channel_count}
        )


def pcm16_to_audio_buffer(data: bytes, sample_rate: int, channel_count: int) -> AudioBuffer:
    """
    Interpret little-endian signed 16-bit PCM as a float sample buffer.

    Interleaved samples are split per channel and divided by 32768, so the
    result lies in [-1.0, 1.0).

    Args:
        data: Raw interleaved PCM bytes
        sample_rate: Sample rate of the PCM stream
        channel_count: Number of interleaved channels

    Returns:
        AudioBuffer with one row per channel

    Raises:
        MalformedAudioError: If the byte length is not a multiple of
            2 * channel_count
    """
    _check_pcm_alignment(data, channel_count)

    ints = np.frombuffer(data, dtype="<i2")
    frames = ints.reshape(-1, channel_count).T
    samples = (frames.astype(np.float32) / np.float32(PCM_SCALE))

    return AudioBuffer(samples=np.ascontiguousarray(samples), sample_rate=sample_rate)


def float_samples_to_pcm_blob(samples: Union[Sequence[float], np.ndarray]) -> PcmBlob:
    """
    Convert captured float samples into a 16 kHz PCM blob.

    Samples are scaled by 32768 and clamped to the int16 range before being
    truncated, so out-of-range input saturates instead of wrapping.
    """
    values = np.nan_to_num(np.asarray(samples, dtype=np.float64))
    scaled = np.clip(values * PCM_SCALE, -PCM_SCALE, PCM_SCALE - 1)
    pcm = scaled.astype("<i2")

    return PcmBlob(data=encode_bytes_to_base64(pcm.tobytes()))


def resample_pcm16(data: bytes, from_rate: int, to_rate: int) -> bytes:
    """Resample mono PCM16 with linear interpolation."""
    if from_rate == to_rate or not data:
        return bytes(data)
    _check_pcm_alignment(data, 1)

    source = np.frombuffer(data, dtype="<i2").astype(np.float64)
    target_length = int(round(len(source) * to_rate / float(from_rate)))
    if target_length == 0:
        return b""

    source_positions = np.arange(len(source)) / float(from_rate)
    target_positions = np.arange(target_length) / float(to_rate)
    resampled = np.interp(target_positions, source_positions, source)

    return np.clip(np.round(resampled), -PCM_SCALE, PCM_SCALE - 1).astype("<i2").tobytes()


def encode_mp3(
    pcm_data: bytes,
    channel_count: int,
    sample_rate: int,
    bitrate_kbps: int
) -> bytes:
    """
    Encode interleaved PCM16 into MP3.

    The PCM is streamed through the encoder in blocks of 1152 sample frames
    and the encoder is flushed at the end.

    Args:
        pcm_data: Little-endian interleaved int16 samples
        channel_count: 1 (mono) or 2 (stereo)
        sample_rate: Input sample rate
        bitrate_kbps: Target constant bitrate

    Returns:
        MP3 bytes

    Raises:
        EncoderUnavailableError: If lameenc is not installed
        MalformedAudioError: If the PCM is not channel-aligned
    """
    if lameenc is None:
        raise EncoderUnavailableError(
            "MP3 encoder (lameenc) is not installed; narration audio cannot be produced."
        )
    _check_pcm_alignment(pcm_data, channel_count)

    encoder = lameenc.Encoder()
    encoder.set_bit_rate(bitrate_kbps)
    encoder.set_in_sample_rate(sample_rate)
    encoder.set_channels(channel_count)
    encoder.set_quality(2)

    block_bytes = MP3_FRAME_SAMPLES * 2 * channel_count
    view = memoryview(pcm_data)
    mp3_chunks = []

    for offset in range(0, len(pcm_data), block_bytes):
        encoded = encoder.encode(bytes(view[offset:offset + block_bytes]))
        if encoded:
            mp3_chunks.append(bytes(encoded))

    tail = encoder.flush()
    if tail:
        mp3_chunks.append(bytes(tail))

    mp3 = b"".join(mp3_chunks)
    logger.info(f"Encoded {len(pcm_data):,} PCM bytes into {len(mp3):,} MP3 bytes")
    return mp3
