"""WebSocket endpoint for live sign classification."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketException, status
from starlette.websockets import WebSocketDisconnect

from services.realtime.runtime import RealtimeRuntime
from services.realtime.ws_session import RealtimeSessionHandler

router = APIRouter()
LOGGER = logging.getLogger(__name__)


def _require_runtime(websocket: WebSocket) -> RealtimeRuntime:
	runtime = getattr(websocket.app.state, "runtime", None)
	if runtime is None:
		raise WebSocketException(code=status.WS_1011_INTERNAL_ERROR, reason="Realtime runtime unavailable")
	return runtime


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, runtime: RealtimeRuntime = Depends(_require_runtime)):
	"""Stream frames in and classification results out over one websocket."""
	await websocket.accept()
	session = runtime.sessions.create()
	handler = RealtimeSessionHandler(websocket, session, runtime)
	try:
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			try:
				payload = json.loads(raw)
			except json.JSONDecodeError:
				await websocket.send_text(json.dumps({"type": "error", "message": "Payload must be JSON"}))
				continue
			await handler.handle(payload)
	finally:
		handler.close()
		runtime.sessions.remove(session.session_id)
		runtime.feature_cache.discard(session.session_id)
	try:
		await websocket.close()
	except Exception:
		pass
