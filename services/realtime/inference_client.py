"""Multimodal oracle calls with failure classification and credential rotation."""
from __future__ import annotations

import enum
import logging
import time
from typing import Any, Dict, List, Sequence

from services.realtime.credential_pool import CredentialPool
from services.realtime.errors import InferenceError, QuotaExhaustedError, ThrottledError
from services.realtime.response_parser import extract_text, extract_usage
from utils.media_validation import to_image_data_url

LOGGER = logging.getLogger(__name__)

_SOFT_MARKERS = (
	"error code: 429",
	"too many requests",
	"rate limit",
	"rate_limit",
	"quota",
	"resource has been exhausted",
	"resource_exhausted",
)


class FailureKind(enum.Enum):
	FATAL_QUOTA = "fatal_quota"
	SOFT_LIMIT = "soft_limit"
	OTHER = "other"


def classify_failure(exc: BaseException, daily_quota_marker: str) -> FailureKind:
	"""Sort an SDK exception into fatal quota, soft limit or anything else.

	Works on the ``status_code``/``code`` attributes of ``openai.APIStatusError``
	and falls back to the message text for other exception types.
	"""
	code = str(getattr(exc, "code", "") or "").lower()
	message = str(exc).lower()
	marker = (daily_quota_marker or "").lower()
	if marker and (marker in code or marker in message):
		return FailureKind.FATAL_QUOTA
	if getattr(exc, "status_code", None) == 429:
		return FailureKind.SOFT_LIMIT
	if any(token in message or token in code for token in _SOFT_MARKERS):
		return FailureKind.SOFT_LIMIT
	return FailureKind.OTHER


def build_inputs(prompt: str, images: Sequence[str]) -> List[Dict[str, Any]]:
	"""Build the Responses API input: prompt first, images oldest to newest."""
	content: List[Dict[str, Any]] = [{"type": "input_text", "text": prompt}]
	for image in images:
		content.append({"type": "input_image", "image_url": to_image_data_url(image)})
	return [{"type": "message", "role": "user", "content": content}]


class InferenceClient:
	"""Send prompt plus frames to the model using the pool's current credential."""

	def __init__(self, pool: CredentialPool, *, model: str, daily_quota_marker: str = "daily_quota_exhausted") -> None:
		if pool is None:
			raise ValueError("CredentialPool is required.")
		self.pool = pool
		self.model = model
		self.daily_quota_marker = daily_quota_marker

	async def generate(self, prompt: str, images: Sequence[str]) -> str:
		"""Return the raw model text for ``prompt`` and ``images``.

		Soft rate-limit failures rotate to the next credential and retry, at
		most once per credential in the pool. Raises QuotaExhaustedError for
		the daily quota signal, ThrottledError once every credential was
		tried, and InferenceError for anything else.
		"""
		inputs = build_inputs(prompt, images)
		attempts = len(self.pool)
		last_exc: BaseException | None = None
		for attempt in range(1, attempts + 1):
			api_key = self.pool.current()
			client = self.pool.client_for(api_key)
			start = time.time()
			try:
				response = await client.responses.create(model=self.model, input=inputs)
			except Exception as exc:
				kind = classify_failure(exc, self.daily_quota_marker)
				if kind is FailureKind.FATAL_QUOTA:
					LOGGER.error("Daily quota exhausted: %s", exc)
					raise QuotaExhaustedError(str(exc)) from exc
				if kind is FailureKind.OTHER:
					LOGGER.error("Error during OpenAI Responses API call: %s", exc)
					raise InferenceError(str(exc)) from exc
				LOGGER.warning("Rate limited on attempt %d/%d: %s", attempt, attempts, exc)
				last_exc = exc
				self.pool.rotate()
				continue

			usage = extract_usage(response)
			LOGGER.info(
				"Model call finished in %.2fs (input_tokens=%s, output_tokens=%s)",
				time.time() - start,
				usage["input_tokens"],
				usage["output_tokens"],
			)
			return extract_text(response)

		raise ThrottledError(f"All {attempts} credential(s) are rate limited: {last_exc}") from last_exc
