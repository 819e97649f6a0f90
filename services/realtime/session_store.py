"""In-memory registry of live streaming sessions."""

from __future__ import annotations

import logging
from typing import Dict, Optional
from uuid import uuid4

from models.session_models import DEFAULT_CONVERSATION_HISTORY, DEFAULT_FRAME_HISTORY, StreamSession

LOGGER = logging.getLogger(__name__)


class SessionStore:
	"""Own one StreamSession per open connection.

	Sessions are created on connect and removed on disconnect; nothing here
	is persisted.
	"""

	def __init__(
		self,
		frame_limit: int = DEFAULT_FRAME_HISTORY,
		conversation_limit: int = DEFAULT_CONVERSATION_HISTORY,
	) -> None:
		self.frame_limit = frame_limit
		self.conversation_limit = conversation_limit
		self._sessions: Dict[str, StreamSession] = {}

	def __len__(self) -> int:
		return len(self._sessions)

	def __contains__(self, session_id: object) -> bool:
		return session_id in self._sessions

	def create(self, session_id: Optional[str] = None) -> StreamSession:
		"""Create and register a new session."""
		session_id = session_id or f"ws-{uuid4().hex}"
		if session_id in self._sessions:
			raise ValueError(f"Session {session_id} already exists")
		state = StreamSession.create(session_id, self.frame_limit, self.conversation_limit)
		self._sessions[session_id] = state
		LOGGER.info("Session %s opened (%d active)", session_id, len(self._sessions))
		return state

	def get(self, session_id: str) -> StreamSession:
		"""Return a session or raise KeyError if missing."""
		state = self._sessions.get(session_id)
		if state is None:
			raise KeyError(f"Session {session_id} not found")
		return state

	def get_or_create(self, session_id: str) -> StreamSession:
		"""Return the named session, registering it on first use."""
		state = self._sessions.get(session_id)
		if state is None:
			state = self.create(session_id)
		return state

	def remove(self, session_id: str) -> Optional[StreamSession]:
		"""Close and forget a session; late results for it are discarded."""
		state = self._sessions.pop(session_id, None)
		if state is not None:
			state.closed = True
			LOGGER.info("Session %s closed (%d active)", session_id, len(self._sessions))
		return state
