from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..deps import get_gateway
from ..elevenlabs_client import AUDIO_MIME_TYPE
from ..gateway import AIGateway
from ..schemas import CamelModel

router = APIRouter(tags=["speech"])


class SpeechRequest(CamelModel):
	text: Optional[str] = None
	api_key: Optional[str] = None


@router.post("/speech-synthesis")
async def speech_synthesis(req: SpeechRequest, gateway: AIGateway = Depends(get_gateway)):
	audio = await gateway.synthesize_speech(req.text, api_key=req.api_key)
	return Response(content=audio, media_type=AUDIO_MIME_TYPE, headers={"Cache-Control": "no-cache"})
