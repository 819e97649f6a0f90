"""FastAPI routes for one-shot translation, vocabulary and session history."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from controllers.translate_controller import (
	get_session,
	list_vocabulary,
	start_session,
	translate_frame,
	translate_frames,
)
from models.session_models import ConversationEntry

router = APIRouter(prefix="/api/translate")


class ContextSign(BaseModel):
	sign: str
	confidence: float = 0.0


class FramePayload(BaseModel):
	imageFrame: Optional[str] = None
	previousFrames: List[str] = Field(default_factory=list)
	sessionId: Optional[str] = None
	conversationContext: List[ContextSign] = Field(default_factory=list)


class FramesPayload(BaseModel):
	frames: List[str]


@router.post("/")
async def translate_frame_route(request: Request, payload: FramePayload):
	"""Classify a single frame, optionally within a stored session."""
	try:
		return await translate_frame(
			request,
			payload.imageFrame,
			payload.previousFrames,
			payload.sessionId,
			[ConversationEntry(sign=item.sign, confidence=item.confidence) for item in payload.conversationContext],
		)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/frames")
async def translate_frames_route(request: Request, payload: FramesPayload):
	try:
		return await translate_frames(request, payload.frames)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/vocabulary")
async def vocabulary_route(request: Request):
	try:
		return await list_vocabulary(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/session/start")
async def start_session_route(request: Request):
	try:
		return await start_session(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/session/{session_id}")
async def get_session_route(request: Request, session_id: str):
	"""Return the stored translations for a session."""
	try:
		return await get_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
