from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from ..deps import get_orchestrator, get_session_store
from ..practice import PracticeOrchestrator
from ..schemas import Session, SessionPatch, SessionSetup, SessionUpdate, TranscriptEntry
from ..session_store import SessionStore

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _found(store: SessionStore, session_id: str) -> Session:
	session = store.get_session(session_id)
	if session is None:
		raise HTTPException(status_code=404, detail="Session not found")
	return session


@router.get("", response_model=List[Session], response_model_exclude_none=True)
def list_sessions(store: SessionStore = Depends(get_session_store)):
	return store.list_sessions()


@router.post("", response_model=Session, response_model_exclude_none=True, status_code=201)
def create_session(setup: SessionSetup, orchestrator: PracticeOrchestrator = Depends(get_orchestrator)):
	return orchestrator.create_session(setup)


@router.get("/{session_id}", response_model=Session, response_model_exclude_none=True)
def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
	return _found(store, session_id)


@router.patch("/{session_id}", response_model=Session, response_model_exclude_none=True)
def update_session(session_id: str, patch: SessionPatch, store: SessionStore = Depends(get_session_store)):
	store.update_session(session_id, SessionUpdate(**patch.model_dump(exclude_unset=True)))
	return _found(store, session_id)


@router.post("/{session_id}/transcript", response_model=Session, response_model_exclude_none=True)
def add_transcript_entry(session_id: str, entry: TranscriptEntry, store: SessionStore = Depends(get_session_store)):
	store.add_transcript_entry(session_id, entry)
	return _found(store, session_id)


@router.post("/{session_id}/ensure-transcript", response_model=Session, response_model_exclude_none=True)
def ensure_transcript(session_id: str, store: SessionStore = Depends(get_session_store)):
	store.ensure_transcript(session_id)
	return _found(store, session_id)


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
	store.delete_session(session_id)
	return Response(status_code=204)
