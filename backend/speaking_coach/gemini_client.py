from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .errors import MissingCredential, ProviderError
from .settings import settings

logger = logging.getLogger(__name__)

# User-facing model preference -> Gemini model id
MODEL_IDS: Dict[str, str] = {
	"flash": "gemini-2.5-flash",
	"pro": "gemini-2.5-pro",
}

SAFETY_SETTINGS: List[Dict[str, str]] = [
	{"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_ONLY_HIGH"},
	{"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
]


def resolve_model(model: Optional[str]) -> str:
	name = (model or settings.gemini_model or "flash").strip()
	return MODEL_IDS.get(name, name)


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str],
		*,
		model: Optional[str] = None,
		base_url: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key
		if not self.api_key:
			raise MissingCredential("Gemini API key not provided")
		self.model = resolve_model(model)
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport)

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def generate(self, prompt: str) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		return await self._post_payload(payload)

	async def generate_multimodal(self, parts: List[Dict[str, Any]], *, role: str = "user") -> str:
		payload: Dict[str, Any] = {"contents": [{"role": role, "parts": parts}]}
		return await self._post_payload(payload)

	async def _post_payload(self, payload: Dict[str, Any]) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		payload = {**payload, "safetySettings": SAFETY_SETTINGS}
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			message = _error_message(http_err.response)
			logger.warning("Gemini %s returned %s: %s", self.model, http_err.response.status_code, message)
			raise ProviderError(message) from http_err
		except httpx.RequestError as net_err:
			logger.warning("Gemini request failed: %s", net_err)
			raise ProviderError(f"Gemini request failed: {net_err}") from net_err
		try:
			data = r.json()
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except (ValueError, KeyError, IndexError, TypeError) as e:
			raise ProviderError(f"Unexpected Gemini response: {r.text[:500]}") from e

	async def aclose(self) -> None:
		await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
	try:
		return str(response.json()["error"]["message"])
	except Exception:
		return response.text or f"Gemini returned HTTP {response.status_code}"
