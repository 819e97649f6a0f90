"""Dispatch realtime websocket events to the frame handler."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import WebSocket

from models.session_models import StreamSession
from services.realtime.runtime import RealtimeRuntime
from services.realtime.ws_frame import FrameMessageHandler, error_message
from utils.media_validation import frame_from_payload

LOGGER = logging.getLogger(__name__)


class RealtimeSessionHandler:
	"""Route websocket messages for a single live translation session."""

	def __init__(self, websocket: WebSocket, session: StreamSession, runtime: RealtimeRuntime) -> None:
		self.websocket = websocket
		self.session = session
		self.frame_handler = FrameMessageHandler(
			session,
			controller=runtime.controller,
			classifier=runtime.classifier,
			vocabulary=runtime.vocabulary,
			send=self._send,
			recorder=runtime.translations.append,
			previous_frames=runtime.settings.previous_frames,
		)

	async def handle(self, payload: Any) -> None:
		"""Process a single inbound websocket payload."""
		if not isinstance(payload, dict):
			await self._send(error_message("Payload must be a JSON object."))
			return
		message_type = payload.get("type") or payload.get("kind")
		if message_type != "frame":
			await self._send(error_message("Unsupported message type."))
			return
		try:
			frame = frame_from_payload(payload)
		except ValueError as exc:
			await self._send(error_message(str(exc)))
			return
		await self.frame_handler.submit(frame)

	def close(self) -> None:
		self.frame_handler.close()

	async def _send(self, payload: Dict[str, Any]) -> None:
		await self.websocket.send_text(json.dumps(payload))
