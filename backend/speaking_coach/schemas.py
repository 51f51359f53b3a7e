from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


Language = Literal["English", "German"]
CefrLevel = Literal["A1", "A2", "B1", "B2", "C1", "C2"]
Part = Literal["part1", "part2", "part3"]
Speaker = Literal["user", "ai"]
GeminiModelName = Literal["flash", "pro"]

LEVELS: List[str] = ["A1", "A2", "B1", "B2", "C1", "C2"]
PARTS: List[str] = ["part1", "part2", "part3"]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
	# Offset-less timestamps from older records are read as UTC
	if value is not None and value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


class CamelModel(BaseModel):
	# Persisted records and wire payloads use camelCase keys
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TranscriptEntry(CamelModel):
	speaker: Speaker
	text: str
	part: Optional[Part] = None


class SessionInfo(CamelModel):
	"""The configuration a provider prompt needs; clients may send a whole session."""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

	language: Language
	cefr_level: CefrLevel
	topic: str


class SessionSetup(CamelModel):
	language: Language = "English"
	cefr_level: CefrLevel = "B1"
	name: str = Field(min_length=2, max_length=30)
	topic: str = Field(default="Daily routines", min_length=3, max_length=50)


class Session(CamelModel):
	# Unknown keys from older persisted shapes survive a load/save round trip
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

	id: str
	language: Language
	cefr_level: CefrLevel
	topic: str
	name: str
	transcript: Optional[List[TranscriptEntry]] = None
	current_part: Part = "part1"
	part2_topic: Optional[str] = None
	part2_started_at: Optional[datetime] = None
	feedback: Optional[str] = None
	cefr_confirmation: Optional[str] = None
	ielts_band: Optional[str] = None
	ended_at: Optional[datetime] = None
	created_at: datetime

	@field_validator("created_at", "part2_started_at", "ended_at")
	@classmethod
	def _utc_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
		return as_utc(value)

	def info(self) -> SessionInfo:
		return SessionInfo(language=self.language, cefr_level=self.cefr_level, topic=self.topic)

	def to_record(self) -> Dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Fields that may be set once and are never overwritten afterwards
WRITE_ONCE_FIELDS = ("part2_topic", "part2_started_at", "feedback", "cefr_confirmation", "ielts_band", "ended_at")


class SessionUpdate(CamelModel):
	"""Partial update for a session. Only explicitly set fields are merged;
	id, configuration and createdAt cannot be changed."""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

	transcript: Optional[List[TranscriptEntry]] = None
	current_part: Optional[Part] = None
	part2_topic: Optional[str] = None
	part2_started_at: Optional[datetime] = None
	feedback: Optional[str] = None
	cefr_confirmation: Optional[str] = None
	ielts_band: Optional[str] = None
	ended_at: Optional[datetime] = None

	@field_validator("part2_started_at", "ended_at")
	@classmethod
	def _utc_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
		return as_utc(value)


class SessionPatch(CamelModel):
	"""Fields a client may set directly. Part changes, timestamps and results
	go through the practice endpoints."""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

	part2_topic: Optional[str] = None


class FeedbackResult(CamelModel):
	feedback: str
	cefr_confirmation: str
	ielts_band: str

	@field_validator("ielts_band", mode="before")
	@classmethod
	def _band_as_text(cls, value: Any) -> Any:
		# Providers sometimes answer with a bare number (6.5)
		if isinstance(value, (int, float)) and not isinstance(value, bool):
			return f"Band {value:g}"
		return value


class ApiKeys(BaseModel):
	gemini: str = ""
	elevenlabs: str = ""
