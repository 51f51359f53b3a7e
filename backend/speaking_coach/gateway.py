"""
AI Gateway
==========

Stateless request/response calls to the AI providers used by the practice flow:

- Gemini: transcription, examiner replies, topic generation and feedback
- ElevenLabs: text-to-speech for the examiner's replies

Every call is a single attempt. Provider failures surface as ``ProviderError``,
unparseable structured output as ``MalformedProviderResponse``.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from .credentials import CredentialStore
from .elevenlabs_client import ElevenLabsClient
from .errors import MalformedProviderResponse, MissingCredential, MissingInput
from .gemini_client import GeminiClient
from .schemas import FeedbackResult, SessionInfo, TranscriptEntry

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_MIME_TYPE = "audio/webm"

PART_BRIEFS: Dict[str, str] = {
	"part1": (
		"This is IELTS Speaking Part 1 (interview). Ask short questions about familiar, "
		"everyday subjects connected to the topic. Ask one question at a time."
	),
	"part2": (
		"This is IELTS Speaking Part 2 (long turn). The student speaks for 1-2 minutes on the "
		"cue card topic. Respond briefly, then ask one short rounding-off question."
	),
	"part3": (
		"This is IELTS Speaking Part 3 (discussion). Ask deeper, more abstract follow-up "
		"questions that build on the Part 2 topic and invite the student to justify opinions."
	),
}


# ============================================================================
# PROMPT HELPERS
# ============================================================================

def format_transcript(transcript: Sequence[TranscriptEntry]) -> str:
	return "\n".join(f"{e.speaker}: {e.text}" for e in transcript)


def _extract_json_block(text: str) -> Dict[str, Any]:
	"""Extract a JSON object from LLM response text.

	Markdown code fences are removed first; if the remainder does not parse, the
	first ``{...}`` span is tried.

	Raises:
		ValueError: If no JSON object can be extracted
	"""
	cleaned = re.sub(r"```(?:json)?", "", text or "").strip()
	try:
		data = json.loads(cleaned)
	except ValueError:
		match = re.search(r"\{[\s\S]*\}", cleaned)
		if not match:
			raise ValueError("No JSON object found in Gemini output")
		data = json.loads(match.group(0))
	if not isinstance(data, dict):
		raise ValueError("Gemini output is not a JSON object")
	return data


def build_transcription_prompt(prompt_context: Optional[str]) -> str:
	return f"""
{prompt_context or "Transcribe the following audio accurately."}

The user's speech is in the audio file. Provide only the transcript of what was said, without any additional commentary or formatting.
""".strip()


def build_reply_prompt(
	transcript: Sequence[TranscriptEntry],
	session_info: SessionInfo,
	part: str,
	part2_topic: Optional[str] = None,
) -> str:
	brief = PART_BRIEFS.get(part, PART_BRIEFS["part1"])
	cue_card = f'\nThe Part 2 cue card topic is "{part2_topic}".' if part2_topic else ""
	return f"""
You are an AI language tutor acting as an IELTS Speaking examiner. A student is practicing {session_info.language} at a {session_info.cefr_level} level.
The topic of conversation is "{session_info.topic}".
{brief}{cue_card}

Here is the conversation so far:
{format_transcript(transcript)}

Your task is to provide a natural, engaging, and contextually relevant response to the user's last message.
Keep your response concise and appropriate for their CEFR level.
Return ONLY your response text, with no additional text, markdown, or explanations.
""".strip()


def build_feedback_prompt(transcript: Sequence[TranscriptEntry], session_info: SessionInfo) -> str:
	return f"""
You are an expert CEFR and IELTS speaking examiner. A student has just completed a practice session.
- Language: {session_info.language}
- Stated CEFR Level: {session_info.cefr_level}
- Topic: {session_info.topic}

Here is the full transcript of their conversation:
{format_transcript(transcript)}

Your tasks are:
1. Provide constructive feedback on the user's performance, focusing on grammar, vocabulary, pronunciation (based on the text), and fluency. Keep it encouraging.
2. Confirm if their performance aligns with the stated {session_info.cefr_level} level. You can suggest a higher or lower level if appropriate.
3. Estimate the IELTS Speaking band (e.g. "Band 6.5").

Return STRICT JSON only, no markdown, following exactly this schema:
{{
  "feedback": string,
  "cefrConfirmation": string,
  "ieltsBand": string
}}
""".strip()


def build_topic_prompt(session_info: SessionInfo) -> str:
	return f"""
You are an IELTS Speaking examiner generating a Part 2 topic for a student.

Student Information:
- Language: {session_info.language}
- CEFR Level: {session_info.cefr_level}
- General Topic: {session_info.topic}

Generate a Part 2 topic that is:
1. Appropriate for the student's level ({session_info.cefr_level})
2. Related to the general topic area: {session_info.topic}
3. Suitable for a 1-2 minute speaking task
4. Engaging and personal (e.g., "Describe a place you visited", "Talk about a person who influenced you")

Return ONLY the topic in a simple, clear format. Keep it concise and appropriate for IELTS Part 2 format.
""".strip()


# ============================================================================
# PROVIDER CALLS
# ============================================================================

async def transcribe(
	audio: Optional[bytes],
	*,
	api_key: Optional[str],
	mime_type: Optional[str] = None,
	prompt_context: Optional[str] = None,
	model: Optional[str] = None,
	transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
	if not api_key:
		raise MissingCredential("Gemini API key not provided")
	if not audio:
		raise MissingInput("No audio provided")
	parts = [
		{"text": build_transcription_prompt(prompt_context)},
		{
			"inline_data": {
				"mime_type": mime_type or DEFAULT_AUDIO_MIME_TYPE,
				"data": base64.b64encode(audio).decode("ascii"),
			}
		},
	]
	async with GeminiClient(api_key, model=model, transport=transport) as client:
		text = await client.generate_multimodal(parts)
	return text.strip()


async def generate_reply(
	transcript: Optional[Sequence[TranscriptEntry]],
	session_info: Optional[SessionInfo],
	part: str = "part1",
	*,
	api_key: Optional[str],
	part2_topic: Optional[str] = None,
	model: Optional[str] = None,
	transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
	if not api_key:
		raise MissingCredential("Gemini API key not provided")
	if not transcript or session_info is None:
		raise MissingInput("Transcript and session info are required")
	prompt = build_reply_prompt(transcript, session_info, part, part2_topic)
	async with GeminiClient(api_key, model=model, transport=transport) as client:
		text = await client.generate(prompt)
	return text.strip()


async def generate_feedback(
	transcript: Optional[Sequence[TranscriptEntry]],
	session_info: Optional[SessionInfo],
	*,
	api_key: Optional[str],
	model: Optional[str] = None,
	transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FeedbackResult:
	if not api_key:
		raise MissingCredential("Gemini API key not provided")
	if transcript is None or session_info is None:
		raise MissingInput("Transcript and session info are required")
	prompt = build_feedback_prompt(transcript, session_info)
	async with GeminiClient(api_key, model=model, transport=transport) as client:
		raw = await client.generate(prompt)
	try:
		return FeedbackResult.model_validate(_extract_json_block(raw))
	except (ValueError, ValidationError) as e:
		logger.warning("Unparseable feedback from Gemini: %s", raw[:500])
		raise MalformedProviderResponse(f"Failed to parse feedback: {e}") from e


async def generate_topic(
	session_info: Optional[SessionInfo],
	*,
	api_key: Optional[str],
	model: Optional[str] = None,
	transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
	if not api_key:
		raise MissingCredential("Gemini API key not provided")
	if session_info is None:
		raise MissingInput("Session info is required")
	async with GeminiClient(api_key, model=model, transport=transport) as client:
		raw = await client.generate(build_topic_prompt(session_info))
	return raw.strip().strip('"').strip()


async def synthesize_speech(
	text: Optional[str],
	*,
	api_key: Optional[str],
	transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bytes:
	async with ElevenLabsClient(api_key, transport=transport) as client:
		return await client.synthesize(text or "")


# ============================================================================
# CREDENTIAL-AWARE FACADE
# ============================================================================

class AIGateway:
	"""Provider calls with keys and model preference resolved from the credential store.

	Explicit ``api_key``/``model`` arguments take precedence over stored values.
	"""

	def __init__(self, credentials: CredentialStore, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		self.credentials = credentials
		self._transport = transport

	def _model(self, model: Optional[str]) -> str:
		return model or self.credentials.get_model()

	async def transcribe(
		self,
		audio: Optional[bytes],
		mime_type: Optional[str] = None,
		prompt_context: Optional[str] = None,
		*,
		api_key: Optional[str] = None,
		model: Optional[str] = None,
	) -> str:
		return await transcribe(
			audio,
			api_key=self.credentials.gemini_key(api_key),
			mime_type=mime_type,
			prompt_context=prompt_context,
			model=self._model(model),
			transport=self._transport,
		)

	async def generate_reply(
		self,
		transcript: Optional[List[TranscriptEntry]],
		session_info: Optional[SessionInfo],
		part: str = "part1",
		*,
		part2_topic: Optional[str] = None,
		api_key: Optional[str] = None,
		model: Optional[str] = None,
	) -> str:
		return await generate_reply(
			transcript,
			session_info,
			part,
			api_key=self.credentials.gemini_key(api_key),
			part2_topic=part2_topic,
			model=self._model(model),
			transport=self._transport,
		)

	async def generate_feedback(
		self,
		transcript: Optional[List[TranscriptEntry]],
		session_info: Optional[SessionInfo],
		*,
		api_key: Optional[str] = None,
		model: Optional[str] = None,
	) -> FeedbackResult:
		return await generate_feedback(
			transcript,
			session_info,
			api_key=self.credentials.gemini_key(api_key),
			model=self._model(model),
			transport=self._transport,
		)

	async def generate_topic(
		self,
		session_info: Optional[SessionInfo],
		*,
		api_key: Optional[str] = None,
		model: Optional[str] = None,
	) -> str:
		return await generate_topic(
			session_info,
			api_key=self.credentials.gemini_key(api_key),
			model=self._model(model),
			transport=self._transport,
		)

	async def synthesize_speech(self, text: Optional[str], *, api_key: Optional[str] = None) -> bytes:
		return await synthesize_speech(
			text,
			api_key=self.credentials.elevenlabs_key(api_key),
			transport=self._transport,
		)
