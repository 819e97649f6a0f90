"""Classify frames streamed over the realtime websocket."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from models.session_models import StreamSession
from models.sign_models import ClassificationResult
from services.realtime.admission import AdmissionController, CacheReason, Decision
from services.realtime.errors import QuotaExhaustedError, ResponseParseError, ThrottledError
from services.realtime.sign_classifier import SignClassifier
from services.realtime.vocabulary_cache import VocabularyCache

LOGGER = logging.getLogger(__name__)

Sender = Callable[[Dict[str, Any]], Awaitable[None]]
Recorder = Callable[[str, ClassificationResult, int], Awaitable[Any]]

QUOTA_MESSAGE = "Daily inference quota exhausted. Live translation paused."


def result_message(result: ClassificationResult) -> Dict[str, Any]:
	return {
		"type": "result",
		"text": result.text,
		"confidence": result.confidence,
		"analysis": result.to_dict(),
	}


def partial_message(last_good: Optional[ClassificationResult], reason: CacheReason) -> Dict[str, Any]:
	"""Cached answer for a frame that did not reach the model."""
	message: Dict[str, Any] = {
		"type": "partial",
		"text": last_good.text if last_good else "",
		"confidence": last_good.confidence if last_good else 0.0,
		"skipped": True,
		"reason": reason.value,
	}
	if reason is CacheReason.THROTTLED:
		message["throttled"] = True
		message["status"] = "throttling"
	return message


def error_message(detail: str, fatal: bool = False) -> Dict[str, Any]:
	message: Dict[str, Any] = {"type": "error", "message": detail}
	if fatal:
		message["fatal"] = True
	return message


class FrameMessageHandler:
	"""Run admission and classification for one session's frame stream.

	At most one model call is in flight. Frames arriving meanwhile that pass
	the cooldown, duplicate and rate checks replace a single pending slot;
	only the newest one is re-evaluated once the current call resolves.
	"""

	def __init__(
		self,
		session: StreamSession,
		*,
		controller: AdmissionController,
		classifier: SignClassifier,
		vocabulary: VocabularyCache,
		send: Sender,
		recorder: Optional[Recorder] = None,
		previous_frames: int = 2,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.session = session
		self.controller = controller
		self.classifier = classifier
		self.vocabulary = vocabulary
		self.recorder = recorder
		self.previous_frames = previous_frames
		self._send_payload = send
		self._clock = clock
		self._pending: Optional[str] = None
		self._task: Optional[asyncio.Task] = None
		self._background: Set[asyncio.Task] = set()

	@property
	def pending_frame(self) -> Optional[str]:
		return self._pending

	async def submit(self, frame_b64: str) -> Decision:
		"""Admit, serve from cache, or drop a normalized frame."""
		session = self.session
		outcome = self.controller.decide(session, frame_b64, self._clock())
		if outcome.decision is Decision.SERVE_CACHED:
			LOGGER.debug("Serving cached result for %s (%s)", session.session_id, outcome.reason.value)
			await self._send(partial_message(session.last_good_result, outcome.reason))
		elif outcome.decision is Decision.DROP:
			if session.in_flight and not (session.halted or session.closed):
				self._pending = frame_b64
		else:
			self._pending = None
			self._task = asyncio.create_task(self._run(frame_b64))
		return outcome.decision

	async def wait_idle(self) -> None:
		"""Wait until no model call is running for this session."""
		while self._task is not None and not self._task.done():
			await self._task

	def close(self) -> None:
		"""Stop admitting frames; a running call finishes but its result is dropped."""
		self.session.closed = True
		self._pending = None

	async def _run(self, frame_b64: str) -> None:
		try:
			await self._infer(frame_b64)
		finally:
			self.controller.release(self.session)
			pending, self._pending = self._pending, None
			if pending is not None and not self.session.closed:
				await self.submit(pending)

	async def _infer(self, frame_b64: str) -> None:
		session = self.session
		previous = session.previous_frames(self.previous_frames)
		try:
			vocabulary = await self.vocabulary.get()
			result = await self.classifier.classify(
				session_key=session.session_id,
				current_frame=frame_b64,
				previous_frames=previous,
				conversation=list(session.conversation),
				vocabulary=vocabulary,
			)
		except QuotaExhaustedError as exc:
			LOGGER.error("Session %s halted: %s", session.session_id, exc)
			session.halted = True
			await self._send(error_message(QUOTA_MESSAGE, fatal=True))
			return
		except ThrottledError as exc:
			until = self.controller.enter_cooldown(session, self._clock())
			LOGGER.warning("Session %s cooling down until %.1f: %s", session.session_id, until, exc)
			await self._send(partial_message(session.last_good_result, CacheReason.THROTTLED))
			return
		except ResponseParseError as exc:
			LOGGER.error("Unusable model output for %s: %s | raw=%r", session.session_id, exc, exc.raw_text)
			await self._send(error_message(str(exc)))
			return
		except Exception as exc:
			LOGGER.error("Classification failed for %s: %s", session.session_id, exc)
			await self._send(error_message(str(exc)))
			return

		if session.closed:
			LOGGER.info("Discarding result for closed session %s", session.session_id)
			return

		session.remember_frame(frame_b64)
		if result.detected_sign:
			session.remember_sign(result.detected_sign, result.confidence)
		session.last_good_result = result
		self._record(result, len(previous) + 1)
		await self._send(result_message(result))

	def _record(self, result: ClassificationResult, frame_count: int) -> None:
		"""Persist the result in the background without blocking the stream."""
		if self.recorder is None:
			return
		task = asyncio.create_task(self._persist(result, frame_count))
		self._background.add(task)
		task.add_done_callback(self._background.discard)

	async def _persist(self, result: ClassificationResult, frame_count: int) -> None:
		try:
			await self.recorder(self.session.session_id, result, frame_count)
		except Exception as exc:
			LOGGER.warning("Saving translation for %s failed: %s", self.session.session_id, exc)

	async def _send(self, payload: Dict[str, Any]) -> None:
		if self.session.closed:
			return
		try:
			await self._send_payload(payload)
		except Exception as exc:
			LOGGER.debug("Dropping outbound message for %s: %s", self.session.session_id, exc)
