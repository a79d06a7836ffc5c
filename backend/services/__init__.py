# backend/services/__init__.py
"""
Services Package for the Recruitment Intelligence backend

Documents & analysis:
    - document_extractor: Plain text from .pdf/.docx uploads
    - analysis_service: Structured JSON analysis requests to the model
    - history_store: In-memory history of finished analyses

Audio:
    - audio_codec: Base64/PCM/float conversions, resampling and MP3 encoding
    - narration_service: MP3 narration of an analysis audio script

Realtime vetting:
    - realtime_transport: Realtime model connection (OpenAI Realtime API)
    - voice_session: Session state machine and gapless playback scheduling
    - browser_audio: Browser WebSocket standing in for mic and speakers

Benchmark resume:
    - resume_renderer: Restricted markdown to typed blocks
    - resume_pdf: Print-ready PDF of the rendered blocks
"""

from .audio_codec import (
    AudioBuffer,
    PcmBlob,
    decode_base64_to_bytes,
    encode_bytes_to_base64,
    pcm16_to_audio_buffer,
    float_samples_to_pcm_blob,
    resample_pcm16,
    encode_mp3
)
from .document_extractor import extract_text, extract_text_from_upload
from .analysis_service import (
    AnalysisService,
    get_analysis_service,
    reset_analysis_service
)
from .history_store import AnalysisHistory, get_history, reset_history
from .narration_service import (
    NarrationService,
    get_narration_service,
    reset_narration_service
)
from .realtime_transport import (
    RealtimeEvent,
    RealtimeConnection,
    RealtimeTransport,
    OpenAIRealtimeTransport
)
from .voice_session import (
    VoiceState,
    AudioDevice,
    PlaybackSource,
    PlaybackScheduler,
    VoiceSessionController,
    get_voice_controller,
    reset_voice_controller
)
from .browser_audio import BrowserAudioDevice
from .resume_renderer import Block, TextSpan, parse_bold, render_markdown
from .resume_pdf import render_resume_pdf

__all__ = [
    # Audio codec
    "AudioBuffer",
    "PcmBlob",
    "decode_base64_to_bytes",
    "encode_bytes_to_base64",
    "pcm16_to_audio_buffer",
    "float_samples_to_pcm_blob",
    "resample_pcm16",
    "encode_mp3",
    # Documents & analysis
    "extract_text",
    "extract_text_from_upload",
    "AnalysisService",
    "get_analysis_service",
    "reset_analysis_service",
    "AnalysisHistory",
    "get_history",
    "reset_history",
    # Narration
    "NarrationService",
    "get_narration_service",
    "reset_narration_service",
    # Realtime vetting
    "RealtimeEvent",
    "RealtimeConnection",
    "RealtimeTransport",
    "OpenAIRealtimeTransport",
    "VoiceState",
    "AudioDevice",
    "PlaybackSource",
    "PlaybackScheduler",
    "VoiceSessionController",
    "get_voice_controller",
    "reset_voice_controller",
    "BrowserAudioDevice",
    # Benchmark resume
    "Block",
    "TextSpan",
    "parse_bold",
    "render_markdown",
    "render_resume_pdf",
]
