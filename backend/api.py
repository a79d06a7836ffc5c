# backend/api.py
"""
HTTP and WebSocket surface for the recruitment intelligence front-end.
"""

import io
import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, UploadFile, WebSocket
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

import config
from errors import RecruitIntelError, SessionError, ValidationError
from models import (
    AnalyzeRequest,
    ExtractedDocument,
    HistoryEntry,
    HistoryListing,
)
from services.analysis_service import AnalysisService, get_analysis_service
from services.browser_audio import BrowserAudioDevice
from services.document_extractor import extract_text_from_upload
from services.history_store import AnalysisHistory, get_history
from services.narration_service import (
    NARRATION_FILENAME,
    NarrationService,
    get_narration_service,
)
from services.resume_pdf import render_resume_pdf
from services.resume_renderer import blocks_to_dict, render_markdown
from services.voice_session import (
    VoiceSessionController,
    VoiceState,
    get_voice_controller,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ---------- FastAPI & CORS ----------
app = FastAPI(title="Recruitment Intelligence API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RecruitIntelError)
async def recruit_intel_error_handler(request, exc: RecruitIntelError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"{request.method} {request.url.path} failed: {exc.to_dict()}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.error_code},
    )


@app.get("/api/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# ---------- Document upload ----------
@app.post("/api/extract-text", response_model=ExtractedDocument)
async def extract_text(file: UploadFile = File(...)) -> ExtractedDocument:
    data = await file.read()
    filename = file.filename or ""

    text = await run_in_threadpool(extract_text_from_upload, filename, data)
    logger.info(f"Extracted {len(text)} chars from '{filename}'")

    return ExtractedDocument(filename=filename, characters=len(text), text=text)


# ---------- Analysis ----------
@app.post("/api/analyze", response_model=HistoryEntry)
async def analyze(
    req: AnalyzeRequest,
    service: AnalysisService = Depends(get_analysis_service),
    history: AnalysisHistory = Depends(get_history),
    controller: VoiceSessionController = Depends(get_voice_controller),
) -> HistoryEntry:
    if not req.jobDescription or not req.jobDescription.strip():
        raise ValidationError("A Job Description is required.", field="jobDescription")

    # A live vetting call would otherwise keep discussing the previous role
    await controller.stop()

    ticket = history.begin_analysis()
    result = await service.analyze(req.jobDescription, req.resumeText or None)
    return history.record(ticket, result)


# ---------- History ----------
@app.get("/api/history", response_model=HistoryListing)
def list_history(history: AnalysisHistory = Depends(get_history)) -> HistoryListing:
    return history.listing()


@app.delete("/api/history/current", status_code=204)
def clear_current(history: AnalysisHistory = Depends(get_history)) -> Response:
    history.clear_selection()
    return Response(status_code=204)


@app.get("/api/history/{entry_id}", response_model=HistoryEntry)
def get_history_entry(entry_id: str, history: AnalysisHistory = Depends(get_history)) -> HistoryEntry:
    return history.require(entry_id)


@app.post("/api/history/{entry_id}/select", response_model=HistoryEntry)
def select_history_entry(entry_id: str, history: AnalysisHistory = Depends(get_history)) -> HistoryEntry:
    return history.select(entry_id)


@app.get("/api/history/{entry_id}/resume")
def get_benchmark_resume(
    entry_id: str,
    history: AnalysisHistory = Depends(get_history),
) -> Dict[str, Any]:
    entry = history.require(entry_id)
    blocks: List[Dict[str, Any]] = blocks_to_dict(render_markdown(entry.analysis.sampleResume))
    return {"id": entry.id, "title": entry.title, "blocks": blocks}


@app.get("/api/history/{entry_id}/resume.pdf")
async def get_benchmark_resume_pdf(
    entry_id: str,
    history: AnalysisHistory = Depends(get_history),
) -> StreamingResponse:
    entry = history.require(entry_id)
    pdf_bytes = await run_in_threadpool(
        render_resume_pdf, entry.analysis.sampleResume, f"{entry.title} - Benchmark Resume"
    )
    headers = {"Content-Disposition": 'attachment; filename="benchmark_resume.pdf"'}
    return StreamingResponse(io.BytesIO(pdf_bytes), media_type="application/pdf", headers=headers)


# ---------- Narration ----------
@app.get("/api/history/{entry_id}/narration.mp3")
async def get_narration(
    entry_id: str,
    history: AnalysisHistory = Depends(get_history),
    narrator: NarrationService = Depends(get_narration_service),
) -> Response:
    entry = history.require(entry_id)
    mp3 = await narrator.narration_for_entry(entry)
    headers = {"Content-Disposition": f'attachment; filename="{NARRATION_FILENAME}"'}
    return Response(content=mp3, media_type="audio/mpeg", headers=headers)


# ---------- Realtime vetting session ----------
@app.websocket("/api/voice/{entry_id}")
async def voice_session(
    websocket: WebSocket,
    entry_id: str,
    history: AnalysisHistory = Depends(get_history),
    controller: VoiceSessionController = Depends(get_voice_controller),
):
    await websocket.accept()
    device = BrowserAudioDevice(websocket)

    entry: Optional[HistoryEntry] = history.get(entry_id)
    if entry is None:
        await device.send_event({"type": "error", "message": "Analysis not found."})
        await device.close()
        return

    async def report_state(state: VoiceState, message: Optional[str]):
        payload: Dict[str, Any] = {"type": "state", "state": state.value}
        if message:
            payload["message"] = message
        await device.send_event(payload)

    try:
        await controller.start(entry.analysis, device, on_state=report_state)
    except SessionError as e:
        await device.send_event({"type": "error", "message": e.message})
        await device.close()
        return

    try:
        await device.listen()
    finally:
        if controller.owns(device):
            await controller.stop()
