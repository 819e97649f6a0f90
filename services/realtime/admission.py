"""Per-frame gatekeeper deciding whether a frame may reach the model."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from models.session_models import StreamSession
from utils.media_validation import frame_fingerprint

LOGGER = logging.getLogger(__name__)


class Decision(enum.Enum):
	SERVE_CACHED = "serve_cached"
	DROP = "drop"
	ADMIT = "admit"


class CacheReason(str, enum.Enum):
	THROTTLED = "throttled"
	DUPLICATE = "duplicate"
	RATE_LIMITED = "rate-limited"


@dataclass(frozen=True)
class AdmissionResult:
	decision: Decision
	reason: Optional[CacheReason] = None
	fingerprint: Optional[str] = None


class AdmissionController:
	"""Apply cooldown, duplicate, rate-limit and single-flight checks in order.

	A halted session (daily quota exhausted) drops every frame before any
	other check. Admitting a frame marks the session in flight; the caller
	must call ``release`` once the model call resolves.
	"""

	def __init__(self, *, min_call_interval: float = 2.5, duplicate_ttl: float = 2.5, cooldown: float = 20.0) -> None:
		self.min_call_interval = min_call_interval
		self.duplicate_ttl = duplicate_ttl
		self.cooldown = cooldown

	def decide(self, session: StreamSession, frame_b64: str, now: float) -> AdmissionResult:
		"""Return the admission outcome for one normalized frame arriving at ``now``."""
		if session.halted or session.closed:
			return AdmissionResult(Decision.DROP)

		if now < session.cooldown_until:
			return AdmissionResult(Decision.SERVE_CACHED, CacheReason.THROTTLED)

		fingerprint = frame_fingerprint(frame_b64)
		if (
			session.last_frame_hash == fingerprint
			and session.last_frame_hash_at is not None
			and (now - session.last_frame_hash_at) < self.duplicate_ttl
		):
			return AdmissionResult(Decision.SERVE_CACHED, CacheReason.DUPLICATE, fingerprint)

		if session.last_inference_at is not None and (now - session.last_inference_at) < self.min_call_interval:
			return AdmissionResult(Decision.SERVE_CACHED, CacheReason.RATE_LIMITED, fingerprint)

		if session.in_flight:
			return AdmissionResult(Decision.DROP, fingerprint=fingerprint)

		session.in_flight = True
		session.last_inference_at = now
		session.last_frame_hash = fingerprint
		session.last_frame_hash_at = now
		LOGGER.debug("Admitted frame %s for session %s", fingerprint[:8], session.session_id)
		return AdmissionResult(Decision.ADMIT, fingerprint=fingerprint)

	@staticmethod
	def release(session: StreamSession) -> None:
		session.in_flight = False

	def enter_cooldown(self, session: StreamSession, now: float) -> float:
		"""Start or extend the cooldown window; it never moves backwards."""
		session.cooldown_until = max(session.cooldown_until, now + self.cooldown)
		return session.cooldown_until
