from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import ValidationError

from .kv_store import KeyValueStore
from .schemas import ApiKeys
from .settings import settings

logger = logging.getLogger(__name__)

API_KEYS_KEY = "apiKeys"
MODEL_KEY = "geminiModel"
MODEL_CHOICES = ("flash", "pro")


class CredentialStore:
	"""User-supplied provider keys and the Gemini model preference."""

	def __init__(self, kv: KeyValueStore) -> None:
		self._kv = kv

	def get_api_keys(self) -> ApiKeys:
		raw = self._kv.load(API_KEYS_KEY)
		if not raw:
			return ApiKeys()
		try:
			return ApiKeys.model_validate(json.loads(raw))
		except (ValueError, ValidationError) as e:
			logger.error("Failed to parse stored API keys: %s", e)
			return ApiKeys()

	def save_api_keys(self, keys: ApiKeys) -> None:
		self._kv.save(API_KEYS_KEY, keys.model_dump_json())

	def clear_api_keys(self) -> None:
		self._kv.remove(API_KEYS_KEY)

	def get_model(self) -> str:
		# Stored as a bare string, not JSON
		value = (self._kv.load(MODEL_KEY) or "").strip().strip('"')
		if value in MODEL_CHOICES:
			return value
		return settings.gemini_model if settings.gemini_model in MODEL_CHOICES else "flash"

	def set_model(self, model: str) -> None:
		if model not in MODEL_CHOICES:
			raise ValueError(f"model must be one of {', '.join(MODEL_CHOICES)}")
		self._kv.save(MODEL_KEY, model)

	def gemini_key(self, explicit: Optional[str] = None) -> Optional[str]:
		return (explicit or "").strip() or self.get_api_keys().gemini or settings.gemini_api_key

	def elevenlabs_key(self, explicit: Optional[str] = None) -> Optional[str]:
		return (explicit or "").strip() or self.get_api_keys().elevenlabs or settings.elevenlabs_api_key
