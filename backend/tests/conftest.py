from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from speaking_coach.credentials import CredentialStore
from speaking_coach.db import build_engine, build_session_factory, ensure_schema
from speaking_coach.errors import MissingCredential, MissingInput
from speaking_coach.kv_store import KeyValueStore
from speaking_coach.schemas import ApiKeys, FeedbackResult, Session
from speaking_coach.session_store import SessionStore


class FakeClock:
	def __init__(self, start: Optional[datetime] = None) -> None:
		self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

	def __call__(self) -> datetime:
		return self.now

	def advance(self, seconds: float) -> None:
		self.now = self.now + timedelta(seconds=seconds)


class FakeGateway:
	"""Stands in for AIGateway; records calls and fails on demand."""

	def __init__(self, credentials: Optional[CredentialStore] = None) -> None:
		self.credentials = credentials
		self.calls: List[tuple] = []
		self.failures: Dict[str, Exception] = {}
		self.transcript_text = "Hello"
		self.reply_text = "Nice to meet you. Where are you from?"
		self.topic = "Describe a memorable journey you took"
		self.feedback = FeedbackResult(
			feedback="Good range of vocabulary.",
			cefr_confirmation="B1 confirmed",
			ielts_band="Band 6",
		)
		self.audio = b"ID3-fake-mp3"

	def _record(self, name: str, *args: Any) -> None:
		self.calls.append((name, *args))
		if name in self.failures:
			raise self.failures[name]

	def called(self, name: str) -> int:
		return sum(1 for c in self.calls if c[0] == name)

	async def transcribe(self, audio, mime_type=None, prompt_context=None, *, api_key=None, model=None):
		self._record("transcribe", audio, mime_type, prompt_context)
		if not audio:
			raise MissingInput("No audio provided")
		return self.transcript_text

	async def generate_reply(self, transcript, session_info, part="part1", *, part2_topic=None, api_key=None, model=None):
		self._record("generate_reply", list(transcript or []), session_info, part, part2_topic)
		return self.reply_text

	async def generate_feedback(self, transcript, session_info, *, api_key=None, model=None):
		self._record("generate_feedback", list(transcript or []), session_info)
		return self.feedback

	async def generate_topic(self, session_info, *, api_key=None, model=None):
		self._record("generate_topic", session_info)
		return self.topic

	async def synthesize_speech(self, text, *, api_key=None):
		self._record("synthesize_speech", text)
		if self.credentials is not None and not self.credentials.elevenlabs_key(api_key):
			raise MissingCredential("ElevenLabs API key is missing")
		return self.audio


@pytest.fixture
def kv(tmp_path) -> KeyValueStore:
	engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
	ensure_schema(engine)
	yield KeyValueStore(build_session_factory(engine))
	engine.dispose()


@pytest.fixture
def store(kv) -> SessionStore:
	s = SessionStore(kv)
	s.hydrate()
	return s


@pytest.fixture
def credentials(kv) -> CredentialStore:
	creds = CredentialStore(kv)
	creds.save_api_keys(ApiKeys(gemini="gemini-test-key", elevenlabs="eleven-test-key"))
	return creds


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()


@pytest.fixture
def gateway(credentials) -> FakeGateway:
	return FakeGateway(credentials)


def make_session(session_id: str = "s1", **overrides: Any) -> Session:
	data: Dict[str, Any] = {
		"id": session_id,
		"language": "English",
		"cefrLevel": "B1",
		"topic": "Travel",
		"name": "Test",
		"transcript": [],
		"currentPart": "part1",
		"createdAt": "2024-05-01T10:00:00+00:00",
	}
	data.update(overrides)
	return Session.model_validate(data)
