# backend/services/document_extractor.py
"""
Document Text Extractor

Turns an uploaded resume (PDF or DOCX) into newline-joined plain text.
PDF text comes from PyMuPDF, DOCX text from python-docx.
"""

import io
import logging
import zipfile
from typing import List

import docx
import fitz
from docx.opc.exceptions import PackageNotFoundError

from errors import DocumentReadError, EmptyDocumentError, UnsupportedFormatError

logger = logging.getLogger(__name__)


SUPPORTED_EXTENSIONS = ("pdf", "docx")

UNSUPPORTED_MESSAGE = "Only .pdf and .docx files are currently supported for forensic analysis."
LEGACY_DOC_MESSAGE = (
    "Legacy .doc files cannot be read. Open the file in your word processor, "
    "save it as .docx or PDF, and upload it again."
)
EMPTY_MESSAGE = (
    "Document extraction returned empty text. "
    "Ensure the file is not just a scanned image."
)


def file_extension_of(filename: str) -> str:
    """Lower-cased extension without the dot ('' when there is none)."""
    name = (filename or "").strip()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def extract_pdf_text(data: bytes) -> str:
    """Extract text page by page, each page followed by a page break."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise DocumentReadError("The PDF could not be opened. It may be corrupt or encrypted.", cause=e) from e

    pages: List[str] = []
    with doc:
        for page in doc:
            pages.append(page.get_text() + "\n")

    logger.info(f"Extracted {len(pages)} PDF pages")
    return "".join(pages)


def extract_docx_text(data: bytes) -> str:
    """Extract paragraph text followed by table cell text."""
    try:
        document = docx.Document(io.BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise DocumentReadError("The DOCX file could not be opened. It may be corrupt.", cause=e) from e

    lines = [p.text for p in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            for cell in row.cells:
                lines.append(cell.text)

    return "\n".join(lines)


def extract_text(file_bytes: bytes, file_extension: str) -> str:
    """
    Extract plain text from a PDF or DOCX document.

    The extension is checked before any parsing is attempted.

    Args:
        file_bytes: Raw file contents
        file_extension: Extension with or without the leading dot

    Returns:
        The document's text

    Raises:
        UnsupportedFormatError: For anything other than pdf/docx
        EmptyDocumentError: When no text could be extracted
        DocumentReadError: When the container is unreadable
    """
    extension = (file_extension or "").lower().lstrip(".")

    if extension == "doc":
        raise UnsupportedFormatError(LEGACY_DOC_MESSAGE, extension=extension)
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(UNSUPPORTED_MESSAGE, extension=extension)

    if extension == "pdf":
        text = extract_pdf_text(file_bytes)
    else:
        text = extract_docx_text(file_bytes)

    text = text.replace("\x00", " ")
    if not text.strip():
        raise EmptyDocumentError(EMPTY_MESSAGE, details={"extension": extension})

    return text


def extract_text_from_upload(filename: str, data: bytes) -> str:
    """Extract text from an uploaded file, dispatching on its filename."""
    extension = file_extension_of(filename)
    logger.info(f"Extracting text from '{filename}' ({len(data):,} bytes)")
    return extract_text(data, extension)
