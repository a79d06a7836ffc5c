# backend/errors.py
"""
Exception classes for the recruitment intelligence backend.

Every error a user action can trigger derives from RecruitIntelError so the
API layer can turn it into a single readable message with the right status.
"""

from typing import Any, Dict, Optional


class RecruitIntelError(Exception):
    """Base exception for all recoverable, user-facing failures."""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code()
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    @classmethod
    def default_code(cls) -> str:
        # ValidationError -> VALIDATION_ERROR
        name = cls.__name__
        chars = []
        for i, ch in enumerate(name):
            if ch.isupper() and i and not name[i - 1].isupper():
                chars.append("_")
            chars.append(ch.upper())
        return "".join(chars)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(RecruitIntelError):
    """Raised when user input is missing or invalid (e.g. empty job description)"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)


class NotFoundError(RecruitIntelError):
    """Raised when a history entry does not exist"""

    status_code = 404


# ---------- Audio codec ----------

class FormatError(RecruitIntelError):
    """Raised when base64 text has an invalid alphabet or padding"""

    status_code = 400


class MalformedAudioError(RecruitIntelError):
    """Raised when PCM input violates the sample/channel alignment"""

    status_code = 400


class EncoderUnavailableError(RecruitIntelError):
    """Raised when the MP3 encoder library is not installed"""

    status_code = 503


# ---------- Document extraction ----------

class ExtractionError(RecruitIntelError):
    """Base class for document text extraction failures"""

    status_code = 422


class UnsupportedFormatError(ExtractionError):
    """Raised for file extensions other than .pdf and .docx"""

    status_code = 415

    def __init__(self, message: str, extension: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if extension is not None:
            details["extension"] = extension
        super().__init__(message, details=details, **kwargs)


class EmptyDocumentError(ExtractionError):
    """Raised when a document yields no text (image-only scans)"""


class DocumentReadError(ExtractionError):
    """Raised when the container itself cannot be opened"""


# ---------- Model calls ----------

class ResponseFormatError(RecruitIntelError):
    """Raised when model output cannot be parsed into an AnalysisResult"""

    status_code = 502


class UpstreamServiceError(RecruitIntelError):
    """Raised when the model provider rejects or fails a request"""

    status_code = 502


class RequestTimeoutError(RecruitIntelError):
    """Raised when a model call or session open exceeds its time budget"""

    status_code = 504


# ---------- Realtime voice ----------

class SessionError(RecruitIntelError):
    """Raised for microphone, permission or connection failures in voice sessions"""

    status_code = 503
