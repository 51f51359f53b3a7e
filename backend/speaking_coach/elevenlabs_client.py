from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional
from .errors import MissingCredential, MissingInput, ProviderError
from .settings import settings

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPE = "audio/mpeg"


class ElevenLabsClient:
	def __init__(
		self,
		api_key: Optional[str],
		*,
		voice_id: Optional[str] = None,
		model_id: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		if not api_key:
			raise MissingCredential("ElevenLabs API key is missing")
		self.api_key = api_key
		self.voice_id = voice_id or settings.elevenlabs_voice_id
		self.model_id = model_id or settings.elevenlabs_model_id
		self.url = f"{settings.elevenlabs_base_url}/text-to-speech/{self.voice_id}"
		self._client = httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport)

	async def __aenter__(self) -> "ElevenLabsClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def synthesize(self, text: str) -> bytes:
		if not (text or "").strip():
			raise MissingInput("Text is required")
		payload: Dict[str, Any] = {
			"text": text,
			"model_id": self.model_id,
			"voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
		}
		headers = {"xi-api-key": self.api_key, "Accept": AUDIO_MIME_TYPE}
		try:
			r = await self._client.post(self.url, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			message = _error_message(http_err.response)
			logger.warning("ElevenLabs returned %s: %s", http_err.response.status_code, message)
			raise ProviderError(message) from http_err
		except httpx.RequestError as net_err:
			logger.warning("ElevenLabs request failed: %s", net_err)
			raise ProviderError(f"ElevenLabs request failed: {net_err}") from net_err
		if not r.content:
			raise ProviderError("ElevenLabs returned no audio")
		return r.content

	async def aclose(self) -> None:
		await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
	try:
		detail = response.json().get("detail")
		if isinstance(detail, dict):
			return str(detail.get("message") or detail)
		if detail:
			return str(detail)
	except (ValueError, AttributeError):
		pass
	return response.text or f"ElevenLabs returned HTTP {response.status_code}"
