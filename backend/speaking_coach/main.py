from __future__ import annotations
import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .credentials import CredentialStore
from .db import build_engine, build_session_factory, ensure_schema
from .errors import GatewayError, ProgressionError, StoreError
from .gateway import AIGateway
from .kv_store import KeyValueStore
from .practice import PracticeOrchestrator
from .progression import Clock, PartProgressionController
from .session_store import SessionStore
from .settings import settings
from .routers import health, gemini, speech, sessions, api_keys, practice

logger = logging.getLogger("speaking_coach")


# --- Logging Setup ---
def setup_logging() -> None:
	level = getattr(logging, settings.log_level.upper(), logging.INFO)
	logger.setLevel(level)
	if any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
		return
	os.makedirs(settings.log_dir, exist_ok=True)
	log_path = os.path.join(settings.log_dir, settings.log_file)
	file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
	file_handler.setFormatter(
		logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
	)
	logger.addHandler(file_handler)
	# Also configure root logger to see logs from other libraries
	logging.basicConfig(level=level)
	logging.getLogger("httpx").setLevel(logging.WARNING)


def _error_response(status_code: int, message: str) -> JSONResponse:
	return JSONResponse(status_code=status_code, content={"error": message})


def _register_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(GatewayError)
	async def gateway_error_handler(request: Request, exc: GatewayError):
		if exc.status_code >= 500:
			logger.error("%s %s failed: %s", request.method, request.url.path, exc)
		return _error_response(exc.status_code, str(exc))

	@app.exception_handler(ProgressionError)
	async def progression_error_handler(request: Request, exc: ProgressionError):
		return _error_response(exc.status_code, str(exc))

	@app.exception_handler(StoreError)
	async def store_error_handler(request: Request, exc: StoreError):
		return _error_response(exc.status_code, str(exc))

	@app.exception_handler(StarletteHTTPException)
	async def http_error_handler(request: Request, exc: StarletteHTTPException):
		return _error_response(exc.status_code, str(exc.detail))

	@app.exception_handler(RequestValidationError)
	async def validation_error_handler(request: Request, exc: RequestValidationError):
		return JSONResponse(
			status_code=422,
			content={"error": "Invalid request", "details": _jsonable_errors(exc)},
		)


def _jsonable_errors(exc: RequestValidationError) -> list:
	return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


# --- App Factory ---
def create_app(
	database_url: Optional[str] = None,
	*,
	gateway: Optional[AIGateway] = None,
	transport: Optional[httpx.AsyncBaseTransport] = None,
	clock: Optional[Clock] = None,
	preparation_seconds: Optional[int] = None,
	configure_logging: bool = True,
) -> FastAPI:
	engine = build_engine(database_url)
	kv = KeyValueStore(build_session_factory(engine))
	credentials = CredentialStore(kv)
	session_store = SessionStore(kv)
	gateway = gateway or AIGateway(credentials, transport=transport)
	controller = PartProgressionController(
		session_store, gateway, preparation_seconds=preparation_seconds, clock=clock
	)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		if configure_logging:
			setup_logging()
		ensure_schema(engine)
		session_store.hydrate()
		yield
		engine.dispose()

	app = FastAPI(title="Speaking Coach API", lifespan=lifespan)
	app.state.credentials = credentials
	app.state.session_store = session_store
	app.state.gateway = gateway
	app.state.controller = controller
	app.state.orchestrator = PracticeOrchestrator(session_store, controller, gateway, credentials)

	app.include_router(health.router)
	app.include_router(api_keys.router)
	app.include_router(sessions.router)
	app.include_router(gemini.router)
	app.include_router(speech.router)
	app.include_router(practice.router)
	_register_error_handlers(app)

	@app.get("/info")
	def info():
		return {
			"status": "ok",
			"gemini_configured": bool(credentials.gemini_key()),
			"elevenlabs_configured": bool(credentials.elevenlabs_key()),
		}

	return app


app = create_app()


def run() -> None:
	import uvicorn

	uvicorn.run("speaking_coach.main:app", host=settings.host, port=settings.port)
