from __future__ import annotations

import base64
import logging
import uuid
from typing import Optional

from .credentials import CredentialStore
from .elevenlabs_client import AUDIO_MIME_TYPE
from .errors import MissingCredential, MissingInput
from .gateway import AIGateway
from .progression import PartProgressionController, utcnow
from .schemas import CamelModel, FeedbackResult, Language, Session, SessionInfo, SessionSetup, TranscriptEntry
from .session_store import SessionStore

logger = logging.getLogger(__name__)

# Beginners hear the examiner at reduced speed
SLOW_PLAYBACK_LEVELS = ("A1", "A2")


def playback_rate_for(cefr_level: str) -> float:
	return 0.75 if cefr_level in SLOW_PLAYBACK_LEVELS else 1.0


class RecordingResult(CamelModel):
	session_id: str
	part: str
	user_text: str
	ai_text: str
	audio_base64: str
	audio_mime_type: str = AUDIO_MIME_TYPE
	playback_rate: float = 1.0


class SelfTestResult(FeedbackResult):
	transcript: str


class PracticeOrchestrator:
	"""Coordinates one practice turn: recording -> transcript -> reply -> speech."""

	def __init__(
		self,
		store: SessionStore,
		controller: PartProgressionController,
		gateway: AIGateway,
		credentials: CredentialStore,
	) -> None:
		self.store = store
		self.controller = controller
		self.gateway = gateway
		self.credentials = credentials

	def create_session(self, setup: SessionSetup) -> Session:
		session = Session(
			id=uuid.uuid4().hex,
			language=setup.language,
			cefr_level=setup.cefr_level,
			name=setup.name.strip(),
			topic=setup.topic.strip(),
			transcript=[],
			current_part="part1",
			created_at=utcnow(),
		)
		self.store.add_session(session)
		logger.info("Created session %s (%s %s, %r)", session.id, session.language, session.cefr_level, session.topic)
		return session

	def _require_keys(self) -> None:
		if not self.credentials.gemini_key() or not self.credentials.elevenlabs_key():
			raise MissingCredential("API keys are not set. Please configure them in Settings.")

	async def process_recording(self, session_id: str, audio: Optional[bytes], mime_type: Optional[str] = None) -> RecordingResult:
		"""Run one turn of the conversation for a finished recording.

		The user's entry is appended as soon as the transcript is known and is kept
		even if the reply or speech synthesis fails afterwards.
		"""
		session = self.controller.require(session_id)
		self.controller.require_recording_allowed(session)
		self._require_keys()
		if not audio:
			raise MissingInput("No audio provided")
		self.store.ensure_transcript(session_id)
		part = session.current_part

		prompt_context = (
			f'The user is practicing {session.language} at {session.cefr_level} on "{session.topic}".'
		)
		user_text = await self.gateway.transcribe(audio, mime_type, prompt_context)
		self.store.add_transcript_entry(session_id, TranscriptEntry(speaker="user", text=user_text, part=part))

		session = self.controller.require(session_id)
		ai_text = await self.gateway.generate_reply(
			session.transcript or [],
			session.info(),
			part,
			part2_topic=session.part2_topic,
		)
		self.store.add_transcript_entry(session_id, TranscriptEntry(speaker="ai", text=ai_text, part=part))

		speech = await self.gateway.synthesize_speech(ai_text)
		return RecordingResult(
			session_id=session_id,
			part=part,
			user_text=user_text,
			ai_text=ai_text,
			audio_base64=base64.b64encode(speech).decode("ascii"),
			playback_rate=playback_rate_for(session.cefr_level),
		)

	async def self_test(
		self,
		audio: Optional[bytes],
		mime_type: Optional[str],
		language: Language,
		topic: str,
	) -> SelfTestResult:
		"""Transcribe a single answer and assess it without creating a session."""
		if not self.credentials.gemini_key():
			raise MissingCredential("Please configure your Gemini API key in Settings.")
		text = await self.gateway.transcribe(
			audio,
			mime_type,
			f"Transcribe the user's answer. Language: {language}, Topic: {topic}",
		)
		info = SessionInfo(language=language, cefr_level="A1", topic=topic)
		result = await self.gateway.generate_feedback([TranscriptEntry(speaker="user", text=text)], info)
		return SelfTestResult(transcript=text, **result.model_dump())
