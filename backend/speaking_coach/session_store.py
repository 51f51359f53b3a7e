"""
Session Store
=============

Authoritative record of every practice session. The whole collection is kept in
memory and the full snapshot is rewritten to the key-value store after every
mutation, under the ``vocab-session-storage`` key::

	{"sessions": {"<id>": {...session record...}}}

Snapshots written by the browser persist middleware carry an envelope
(``{"state": {"sessions": ...}, "version": 0}``); those are accepted on load.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import DuplicateSession
from .kv_store import KeyValueStore
from .schemas import WRITE_ONCE_FIELDS, PARTS, Session, SessionUpdate, TranscriptEntry

logger = logging.getLogger(__name__)

STORAGE_KEY = "vocab-session-storage"


def migrate_snapshot(snapshot: Dict[str, Any]) -> Dict[str, Any]:
	"""Bring a persisted snapshot up to the current shape.

	Unwraps the persist envelope when present and backfills ``transcript: []`` on
	any session record missing it. All other fields are left untouched.

	Args:
		snapshot: Parsed JSON payload as stored under ``STORAGE_KEY``

	Returns:
		A new ``{"sessions": {...}}`` mapping; the input is not modified
	"""
	state = snapshot.get("state") if isinstance(snapshot.get("state"), dict) else snapshot
	raw_sessions = state.get("sessions") or {}
	if not isinstance(raw_sessions, dict):
		raise ValueError("sessions must be a mapping of id to session")
	sessions: Dict[str, Any] = {}
	for session_id, record in raw_sessions.items():
		record = copy.deepcopy(record)
		if isinstance(record, dict) and "transcript" not in record:
			record["transcript"] = []
		sessions[session_id] = record
	return {"sessions": sessions}


class SessionStore:
	def __init__(self, kv: KeyValueStore) -> None:
		self._kv = kv
		self._sessions: Dict[str, Session] = {}

	# ---- lifecycle ----

	def hydrate(self) -> None:
		"""Load persisted sessions; unreadable state is logged and treated as empty."""
		self._sessions = {}
		try:
			raw = self._kv.load(STORAGE_KEY)
		except Exception:
			logger.exception("Could not read %s; starting with no sessions", STORAGE_KEY)
			return
		if not raw:
			return
		try:
			snapshot = migrate_snapshot(json.loads(raw))
		except (ValueError, TypeError, AttributeError) as e:
			logger.error("Discarding unreadable %s snapshot: %s", STORAGE_KEY, e)
			return
		for session_id, record in snapshot["sessions"].items():
			try:
				self._sessions[session_id] = Session.model_validate(record)
			except ValidationError as e:
				logger.warning("Skipping invalid session record %s: %s", session_id, e)
		logger.info("Loaded %d session(s)", len(self._sessions))

	def _persist(self) -> None:
		payload = {"sessions": {sid: s.to_record() for sid, s in self._sessions.items()}}
		self._kv.save(STORAGE_KEY, json.dumps(payload))

	# ---- reads ----

	def get_session(self, session_id: str) -> Optional[Session]:
		session = self._sessions.get(session_id)
		return session.model_copy(deep=True) if session is not None else None

	def list_sessions(self) -> List[Session]:
		ordered = sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)
		return [s.model_copy(deep=True) for s in ordered]

	def __contains__(self, session_id: object) -> bool:
		return session_id in self._sessions

	# ---- mutations ----

	def add_session(self, session: Session) -> None:
		if session.id in self._sessions:
			raise DuplicateSession(f"Session {session.id} already exists")
		self._sessions[session.id] = session.model_copy(deep=True)
		self._persist()

	def update_session(self, session_id: str, updates: SessionUpdate) -> None:
		current = self._sessions.get(session_id)
		if current is None:
			return
		# An explicit null never clears a stored field
		changes = {k: v for k, v in updates.model_dump(exclude_unset=True).items() if v is not None}
		for field in WRITE_ONCE_FIELDS:
			if field in changes and getattr(current, field) is not None:
				logger.warning("Ignoring overwrite of %s on session %s", field, session_id)
				changes.pop(field)
		new_part = changes.get("current_part")
		step = PARTS.index(new_part) - PARTS.index(current.current_part) if new_part is not None else 0
		if step not in (0, 1):
			# Parts only move forward one at a time
			logger.warning(
				"Ignoring part change of session %s from %s to %s",
				session_id, current.current_part, new_part,
			)
			changes.pop("current_part")
		if "transcript" in changes:
			entries = [TranscriptEntry.model_validate(e) for e in changes["transcript"]]
			existing = current.transcript or []
			if entries[: len(existing)] != existing:
				# The transcript only grows; stored entries are never edited or dropped
				logger.warning("Ignoring transcript rewrite on session %s", session_id)
				changes.pop("transcript")
			else:
				changes["transcript"] = entries
		if not changes:
			return
		self._sessions[session_id] = current.model_copy(update=changes)
		self._persist()

	def add_transcript_entry(self, session_id: str, entry: TranscriptEntry) -> None:
		current = self._sessions.get(session_id)
		if current is None:
			return
		transcript = list(current.transcript or [])
		transcript.append(entry.model_copy())
		self._sessions[session_id] = current.model_copy(update={"transcript": transcript})
		self._persist()

	def ensure_transcript(self, session_id: str) -> None:
		current = self._sessions.get(session_id)
		if current is None or current.transcript is not None:
			return
		self._sessions[session_id] = current.model_copy(update={"transcript": []})
		self._persist()

	def delete_session(self, session_id: str) -> None:
		if self._sessions.pop(session_id, None) is not None:
			self._persist()
