from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..deps import get_controller, get_orchestrator
from ..practice import PracticeOrchestrator, RecordingResult, SelfTestResult
from ..progression import PartProgressionController, PartStatus, SessionReview
from ..schemas import FeedbackResult, Language

router = APIRouter(prefix="/practice", tags=["practice"])


@router.post("/self-test", response_model=SelfTestResult)
async def self_test(
	audio: Optional[UploadFile] = File(default=None),
	language: Language = Form(default="English"),
	topic: str = Form(default="Daily life", min_length=3, max_length=50),
	orchestrator: PracticeOrchestrator = Depends(get_orchestrator),
):
	data = await audio.read() if audio is not None else None
	return await orchestrator.self_test(data, audio.content_type if audio else None, language, topic)


@router.post("/{session_id}/recording", response_model=RecordingResult)
async def submit_recording(
	session_id: str,
	audio: Optional[UploadFile] = File(default=None),
	orchestrator: PracticeOrchestrator = Depends(get_orchestrator),
):
	data = await audio.read() if audio is not None else None
	return await orchestrator.process_recording(session_id, data, audio.content_type if audio else None)


@router.get("/{session_id}/status", response_model=PartStatus)
def status(session_id: str, controller: PartProgressionController = Depends(get_controller)):
	return controller.status(session_id)


@router.post("/{session_id}/advance", response_model=PartStatus)
async def advance(session_id: str, controller: PartProgressionController = Depends(get_controller)):
	await controller.advance(session_id)
	return controller.status(session_id)


@router.post("/{session_id}/end", response_model=FeedbackResult)
async def end_session(session_id: str, controller: PartProgressionController = Depends(get_controller)):
	return await controller.end_session(session_id)


@router.get("/{session_id}/review", response_model=SessionReview)
def review(session_id: str, controller: PartProgressionController = Depends(get_controller)):
	return controller.review(session_id)
