"""One-shot translation, vocabulary and session history helpers."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from fastapi import HTTPException, Request

from models.session_models import ConversationEntry, StreamSession
from services.realtime.admission import Decision
from services.realtime.errors import InferenceError, QuotaExhaustedError, ThrottledError
from services.realtime.runtime import RealtimeRuntime
from utils.media_validation import normalize_frame

LOGGER = logging.getLogger(__name__)


def _runtime(request: Request) -> RealtimeRuntime:
	return request.app.state.runtime


def _timestamp() -> str:
	return datetime.now(timezone.utc).isoformat()


async def translate_frame(
	request: Request,
	image_frame: Optional[str],
	previous_frames: Sequence[str],
	session_id: Optional[str],
	conversation: Sequence[ConversationEntry],
) -> Dict[str, Any]:
	"""Classify one frame for a REST client and store the result in its session.

	Requests carrying a ``sessionId`` share that session's admission state, so
	a repeated frame or a call inside the cooldown window is answered from the
	last result without reaching the model. Without a ``sessionId`` the call
	is gated on a throwaway session and nothing is stored.
	"""
	try:
		current = normalize_frame(image_frame)
		previous = [normalize_frame(frame) for frame in previous_frames]
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc

	runtime = _runtime(request)
	if session_id:
		session = runtime.sessions.get_or_create(session_id)
	else:
		session = StreamSession.create(
			f"rest-{uuid4().hex}", runtime.sessions.frame_limit, runtime.sessions.conversation_limit
		)

	outcome = runtime.controller.decide(session, current, time.monotonic())
	if outcome.decision is Decision.SERVE_CACHED:
		last = session.last_good_result
		return {
			"success": True,
			"translation": last.to_dict() if last else None,
			"skipped": True,
			"reason": outcome.reason.value,
			"timestamp": _timestamp(),
		}
	if outcome.decision is Decision.DROP:
		if session.halted:
			raise HTTPException(status_code=503, detail="Daily inference quota exhausted.")
		raise HTTPException(status_code=429, detail="A translation for this session is already running")

	limit = runtime.settings.previous_frames
	if not previous:
		previous = session.previous_frames(limit)
	previous = previous[-limit:] if limit else []
	context = list(conversation) or list(session.conversation)
	cache_key = session_id or session.session_id
	LOGGER.info("Translation request for session %s (%d frames)", cache_key, len(previous) + 1)
	try:
		vocabulary = await runtime.vocabulary.get()
		analysis = await runtime.classifier.classify(
			session_key=cache_key,
			current_frame=current,
			previous_frames=previous,
			conversation=context,
			vocabulary=vocabulary,
		)
	except QuotaExhaustedError as exc:
		session.halted = True
		raise HTTPException(status_code=503, detail="Daily inference quota exhausted.") from exc
	except ThrottledError as exc:
		runtime.controller.enter_cooldown(session, time.monotonic())
		raise HTTPException(status_code=429, detail=str(exc)) from exc
	except InferenceError as exc:
		raise HTTPException(status_code=502, detail=str(exc)) from exc
	finally:
		runtime.controller.release(session)
		if not session_id:
			runtime.feature_cache.discard(cache_key)

	session.remember_frame(current)
	session.last_good_result = analysis
	if analysis.detected_sign:
		session.remember_sign(analysis.detected_sign, analysis.confidence)
	if session_id:
		await runtime.translations.append(session_id, analysis, frame_count=len(previous) + 1)
		LOGGER.info("Saved translation to session %s", session_id)
	return {"success": True, "translation": analysis.to_dict(), "timestamp": _timestamp()}


async def translate_frames(request: Request, frames: List[str]) -> Dict[str, Any]:
	"""Classify the last frame of an uploaded sequence, using earlier ones as motion context."""
	if not frames:
		raise HTTPException(status_code=400, detail="frames[] required")
	try:
		normalized = [normalize_frame(frame) for frame in frames]
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc

	runtime = _runtime(request)
	previous = normalized[:-1][-runtime.settings.previous_frames:] if runtime.settings.previous_frames else []
	session_id = f"upload-{uuid4().hex}"
	vocabulary = await runtime.vocabulary.get()
	try:
		analysis = await runtime.classifier.classify(
			session_key=session_id,
			current_frame=normalized[-1],
			previous_frames=previous,
			conversation=[],
			vocabulary=vocabulary,
		)
	except QuotaExhaustedError as exc:
		raise HTTPException(status_code=503, detail="Daily inference quota exhausted.") from exc
	except ThrottledError as exc:
		raise HTTPException(status_code=429, detail=str(exc)) from exc
	except InferenceError as exc:
		raise HTTPException(status_code=502, detail=str(exc)) from exc
	finally:
		runtime.feature_cache.discard(session_id)

	label = analysis.detected_sign or "Unknown"
	return {
		"text": f"{label} ({round(analysis.confidence * 100)}%)\n\n{analysis.reasoning}",
		"confidence": analysis.confidence,
		"analysis": analysis.to_dict(),
	}


async def list_vocabulary(request: Request) -> Dict[str, Any]:
	"""Return every sign the classifier can answer with."""
	signs = await _runtime(request).vocabulary.get()
	return {"success": True, "signs": [sign.to_dict() for sign in signs], "count": len(signs)}


async def start_session(request: Request) -> Dict[str, Any]:
	"""Create a persisted translation session and return its id."""
	session_id = uuid4().hex
	await _runtime(request).translations.create_session(session_id)
	LOGGER.info("Created new session: %s", session_id)
	return {"success": True, "sessionId": session_id}


async def get_session(request: Request, session_id: str) -> Dict[str, Any]:
	"""Return the stored history of a translation session."""
	session = await _runtime(request).translations.get_session(session_id)
	if session is None:
		raise HTTPException(status_code=404, detail="Session not found")
	return {"success": True, "session": session}
