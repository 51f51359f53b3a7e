from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..credentials import CredentialStore
from ..deps import get_credentials
from ..schemas import ApiKeys, GeminiModelName

router = APIRouter(prefix="/settings", tags=["settings"])


class ApiKeysForm(BaseModel):
	gemini: str = Field(min_length=1, description="Gemini API key is required.")
	elevenlabs: str = Field(min_length=1, description="ElevenLabs API key is required.")


class ModelPreference(BaseModel):
	model: GeminiModelName


def mask_key(key: str) -> str:
	if not key:
		return ""
	return "*" * max(0, len(key) - 4) + key[-4:]


@router.get("/api-keys")
def get_api_keys(credentials: CredentialStore = Depends(get_credentials)):
	keys = credentials.get_api_keys()
	return {
		"gemini": mask_key(keys.gemini),
		"elevenlabs": mask_key(keys.elevenlabs),
		"configured": bool(keys.gemini and keys.elevenlabs),
	}


@router.put("/api-keys")
def save_api_keys(form: ApiKeysForm, credentials: CredentialStore = Depends(get_credentials)):
	credentials.save_api_keys(ApiKeys(gemini=form.gemini.strip(), elevenlabs=form.elevenlabs.strip()))
	return {"ok": True}


@router.delete("/api-keys")
def clear_api_keys(credentials: CredentialStore = Depends(get_credentials)):
	credentials.clear_api_keys()
	return {"ok": True}


@router.get("/model", response_model=ModelPreference)
def get_model(credentials: CredentialStore = Depends(get_credentials)):
	return ModelPreference(model=credentials.get_model())


@router.put("/model", response_model=ModelPreference)
def set_model(pref: ModelPreference, credentials: CredentialStore = Depends(get_credentials)):
	credentials.set_model(pref.model)
	return pref
