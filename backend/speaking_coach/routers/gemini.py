from __future__ import annotations

import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import ValidationError

from ..credentials import MODEL_CHOICES
from ..deps import get_gateway
from ..errors import MissingInput
from ..gateway import AIGateway
from ..schemas import CamelModel, FeedbackResult, GeminiModelName, Part, SessionInfo, TranscriptEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gemini", tags=["gemini"])


class RespondRequest(CamelModel):
	api_key: Optional[str] = None
	transcript: Optional[List[TranscriptEntry]] = None
	session_info: Optional[SessionInfo] = None
	part: Part = "part1"
	part2_topic: Optional[str] = None
	model: Optional[GeminiModelName] = None


class FeedbackRequest(CamelModel):
	api_key: Optional[str] = None
	transcript: Optional[List[TranscriptEntry]] = None
	session_info: Optional[SessionInfo] = None
	model: Optional[GeminiModelName] = None


class TopicRequest(CamelModel):
	api_key: Optional[str] = None
	session_info: Optional[SessionInfo] = None
	model: Optional[GeminiModelName] = None


async def _read_upload(audio: Optional[UploadFile]) -> tuple[Optional[bytes], Optional[str]]:
	if audio is None:
		return None, None
	return await audio.read(), audio.content_type


@router.post("/transcribe")
async def transcribe(
	audio: Optional[UploadFile] = File(default=None),
	api_key: Optional[str] = Form(default=None, alias="apiKey"),
	prompt_context: Optional[str] = Form(default=None, alias="promptContext"),
	model: Optional[GeminiModelName] = Form(default=None),
	gateway: AIGateway = Depends(get_gateway),
):
	data, mime_type = await _read_upload(audio)
	text = await gateway.transcribe(data, mime_type, prompt_context, api_key=api_key, model=model)
	return {"text": text}


@router.post("/respond")
async def respond(request: Request, gateway: AIGateway = Depends(get_gateway)):
	"""Generate the examiner's next utterance.

	JSON body: ``{apiKey, transcript, sessionInfo, part, model}`` -> ``{text}``.
	Multipart body: ``{audio, apiKey, sessionInfo (JSON), part, model}`` -> the
	recording is transcribed first and ``{transcript, response, part}`` is returned.
	"""
	content_type = request.headers.get("content-type", "")
	if content_type.startswith("multipart/form-data"):
		return await _respond_to_audio(request, gateway)
	try:
		body = RespondRequest.model_validate(await request.json())
	except (ValueError, ValidationError) as e:
		raise HTTPException(status_code=400, detail=f"Invalid request body: {e}")
	text = await gateway.generate_reply(
		body.transcript,
		body.session_info,
		body.part,
		part2_topic=body.part2_topic,
		api_key=body.api_key,
		model=body.model,
	)
	return {"text": text}


async def _respond_to_audio(request: Request, gateway: AIGateway):
	form = await request.form()
	audio = form.get("audio")
	raw_info = form.get("sessionInfo")
	if not raw_info:
		raise MissingInput("Session info is required")
	try:
		info = SessionInfo.model_validate(json.loads(str(raw_info)))
	except (ValueError, ValidationError) as e:
		raise HTTPException(status_code=400, detail=f"Invalid sessionInfo: {e}")
	part = str(form.get("part") or "part1")
	if part not in ("part1", "part2", "part3"):
		raise HTTPException(status_code=400, detail="part must be one of part1, part2, part3")
	api_key = form.get("apiKey")
	model = form.get("model") or None
	if model is not None and model not in MODEL_CHOICES:
		raise HTTPException(status_code=400, detail=f"model must be one of {', '.join(MODEL_CHOICES)}")
	data: Optional[bytes] = None
	mime_type: Optional[str] = None
	if audio is not None and hasattr(audio, "read"):
		data = await audio.read()
		mime_type = audio.content_type
	user_text = await gateway.transcribe(
		data,
		mime_type,
		f'The user is practicing {info.language} at {info.cefr_level} on "{info.topic}".',
		api_key=api_key,
		model=model,
	)
	response = await gateway.generate_reply(
		[TranscriptEntry(speaker="user", text=user_text, part=part)],
		info,
		part,
		api_key=api_key,
		model=model,
	)
	return {"transcript": user_text, "response": response, "part": part}


@router.post("/feedback", response_model=FeedbackResult)
async def feedback(req: FeedbackRequest, gateway: AIGateway = Depends(get_gateway)):
	return await gateway.generate_feedback(
		req.transcript,
		req.session_info,
		api_key=req.api_key,
		model=req.model,
	)


@router.post("/generate-topic")
async def generate_topic(req: TopicRequest, gateway: AIGateway = Depends(get_gateway)):
	topic = await gateway.generate_topic(req.session_info, api_key=req.api_key, model=req.model)
	return {"topic": topic}
