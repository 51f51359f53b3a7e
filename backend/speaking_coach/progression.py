"""
Part-Progression Controller
===========================

Drives a session through the three speaking-exam parts::

	part1 (interview) -> part2 (long turn) -> part3 (discussion) -> end of session

Entering part2 stamps ``part2StartedAt`` and, if the session has no cue card yet,
asks the gateway for one. Recording stays disabled until the preparation window
has elapsed, and part3 can only be reached after that. Ending the session from
part3 writes the feedback fields exactly once; a failed feedback request leaves
the session in part3 so the user can retry.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .errors import GatewayError, InvalidTransition, PreparationInProgress, SessionEnded, SessionNotFound
from .gateway import AIGateway
from .schemas import PARTS, FeedbackResult, Session, SessionUpdate, TranscriptEntry, CamelModel
from .session_store import SessionStore
from .settings import settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


class PartStatus(CamelModel):
	session_id: str
	current_part: str
	part2_topic: Optional[str] = None
	recording_enabled: bool
	preparation_seconds_remaining: int = 0
	ended: bool = False


class SessionReview(CamelModel):
	session_id: str
	name: str
	language: str
	cefr_level: str
	topic: str
	part2_topic: Optional[str] = None
	feedback: Optional[str] = None
	cefr_confirmation: Optional[str] = None
	ielts_band: Optional[str] = None
	transcript_by_part: Dict[str, List[TranscriptEntry]]


class PartProgressionController:
	def __init__(
		self,
		store: SessionStore,
		gateway: AIGateway,
		*,
		preparation_seconds: Optional[int] = None,
		clock: Optional[Clock] = None,
	) -> None:
		self.store = store
		self.gateway = gateway
		self.preparation_seconds = (
			settings.part2_preparation_seconds if preparation_seconds is None else preparation_seconds
		)
		self._clock = clock or utcnow

	def require(self, session_id: str) -> Session:
		session = self.store.get_session(session_id)
		if session is None:
			raise SessionNotFound(f"Session {session_id} not found")
		return session

	# ---- preparation window ----

	def preparation_remaining(self, session: Session) -> float:
		if session.current_part != "part2" or session.part2_started_at is None:
			return 0.0
		elapsed = (self._clock() - session.part2_started_at).total_seconds()
		return max(0.0, self.preparation_seconds - elapsed)

	def recording_enabled(self, session: Session) -> bool:
		return session.ended_at is None and self.preparation_remaining(session) <= 0

	def require_recording_allowed(self, session: Session) -> None:
		if session.ended_at is not None:
			raise SessionEnded("Session has already ended")
		remaining = self.preparation_remaining(session)
		if remaining > 0:
			raise PreparationInProgress(f"Preparation time remaining: {math.ceil(remaining)} seconds")

	def status(self, session_id: str) -> PartStatus:
		session = self.require(session_id)
		remaining = self.preparation_remaining(session)
		return PartStatus(
			session_id=session.id,
			current_part=session.current_part,
			part2_topic=session.part2_topic,
			recording_enabled=self.recording_enabled(session),
			preparation_seconds_remaining=math.ceil(remaining),
			ended=session.ended_at is not None,
		)

	# ---- transitions ----

	async def advance(self, session_id: str) -> Session:
		"""Move the session to the next part.

		Raises:
			SessionNotFound: Unknown session id
			SessionEnded: The session already has feedback
			PreparationInProgress: part2 -> part3 before the preparation window elapsed
			InvalidTransition: The session is already in part3
		"""
		session = self.require(session_id)
		if session.ended_at is not None:
			raise SessionEnded("Session has already ended")
		if session.current_part == "part1":
			self.store.update_session(
				session_id,
				SessionUpdate(current_part="part2", part2_started_at=self._clock()),
			)
			await self._ensure_part2_topic(session_id)
		elif session.current_part == "part2":
			self.require_recording_allowed(session)
			self.store.update_session(session_id, SessionUpdate(current_part="part3"))
		else:
			raise InvalidTransition("Part 3 is the final part; end the session instead")
		logger.info("Session %s advanced from %s", session_id, session.current_part)
		return self.require(session_id)

	async def _ensure_part2_topic(self, session_id: str) -> None:
		session = self.require(session_id)
		if session.part2_topic:
			return
		try:
			topic = await self.gateway.generate_topic(session.info())
		except GatewayError as e:
			logger.warning("Part 2 topic generation failed for %s: %s", session_id, e)
			return
		if topic:
			self.store.update_session(session_id, SessionUpdate(part2_topic=topic))

	async def end_session(self, session_id: str) -> FeedbackResult:
		"""Request feedback for the whole transcript and record it on the session.

		Gateway errors propagate unchanged and nothing is written.
		"""
		session = self.require(session_id)
		if session.ended_at is not None and session.feedback is not None:
			return self._stored_result(session)
		if session.current_part != PARTS[-1]:
			raise InvalidTransition("The session can only be ended from part 3")
		result = await self.gateway.generate_feedback(session.transcript or [], session.info())
		self.store.update_session(
			session_id,
			SessionUpdate(
				feedback=result.feedback,
				cefr_confirmation=result.cefr_confirmation,
				ielts_band=result.ielts_band,
				ended_at=self._clock(),
			),
		)
		logger.info("Session %s ended", session_id)
		# Fields set earlier keep their stored value
		return self._stored_result(self.require(session_id))

	@staticmethod
	def _stored_result(session: Session) -> FeedbackResult:
		return FeedbackResult(
			feedback=session.feedback or "",
			cefr_confirmation=session.cefr_confirmation or "",
			ielts_band=session.ielts_band or "",
		)

	# ---- review ----

	def review(self, session_id: str) -> SessionReview:
		self.require(session_id)
		self.store.ensure_transcript(session_id)
		session = self.require(session_id)
		by_part: Dict[str, List[TranscriptEntry]] = {part: [] for part in PARTS}
		by_part["untagged"] = []
		for entry in session.transcript or []:
			by_part[entry.part or "untagged"].append(entry)
		return SessionReview(
			session_id=session.id,
			name=session.name,
			language=session.language,
			cefr_level=session.cefr_level,
			topic=session.topic,
			part2_topic=session.part2_topic,
			feedback=session.feedback,
			cefr_confirmation=session.cefr_confirmation,
			ielts_band=session.ielts_band,
			transcript_by_part=by_part,
		)
