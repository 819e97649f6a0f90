"""Session domain models for realtime workflows."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional

from models.sign_models import ClassificationResult

DEFAULT_FRAME_HISTORY = 6
DEFAULT_CONVERSATION_HISTORY = 12


@dataclass
class ConversationEntry:
	"""A sign detected earlier in the stream, used as context."""

	sign: str
	confidence: float


@dataclass
class StreamSession:
	"""Per-connection state for one live classification stream.

	Frame and conversation histories are bounded deques, so the oldest entry
	is evicted once the limit is reached. Timestamps come from a monotonic
	clock and stay None until the event first happens.
	"""

	session_id: str
	frame_history: Deque[str] = field(default_factory=lambda: deque(maxlen=DEFAULT_FRAME_HISTORY))
	conversation: Deque[ConversationEntry] = field(
		default_factory=lambda: deque(maxlen=DEFAULT_CONVERSATION_HISTORY)
	)
	last_good_result: Optional[ClassificationResult] = None
	last_frame_hash: Optional[str] = None
	last_frame_hash_at: Optional[float] = None
	last_inference_at: Optional[float] = None
	cooldown_until: float = 0.0
	in_flight: bool = False
	halted: bool = False
	closed: bool = False

	@classmethod
	def create(cls, session_id: str, frame_limit: int, conversation_limit: int) -> "StreamSession":
		return cls(
			session_id=session_id,
			frame_history=deque(maxlen=frame_limit),
			conversation=deque(maxlen=conversation_limit),
		)

	def remember_frame(self, frame: str) -> None:
		self.frame_history.append(frame)

	def remember_sign(self, sign: str, confidence: float) -> None:
		self.conversation.append(ConversationEntry(sign=sign, confidence=confidence))

	def previous_frames(self, limit: int) -> list:
		"""Return up to ``limit`` most recent frames, oldest first."""
		if limit <= 0:
			return []
		return list(self.frame_history)[-limit:]
