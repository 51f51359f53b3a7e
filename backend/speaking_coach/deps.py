from __future__ import annotations
from fastapi import Request

from .credentials import CredentialStore
from .gateway import AIGateway
from .practice import PracticeOrchestrator
from .progression import PartProgressionController
from .session_store import SessionStore


def get_session_store(request: Request) -> SessionStore:
	return request.app.state.session_store


def get_credentials(request: Request) -> CredentialStore:
	return request.app.state.credentials


def get_gateway(request: Request) -> AIGateway:
	return request.app.state.gateway


def get_controller(request: Request) -> PartProgressionController:
	return request.app.state.controller


def get_orchestrator(request: Request) -> PracticeOrchestrator:
	return request.app.state.orchestrator
