"""Failure types raised by the inference path."""

from __future__ import annotations


class InferenceError(RuntimeError):
	"""Oracle call failed for a reason rotation cannot fix; not retried."""


class ThrottledError(InferenceError):
	"""Every credential was rate limited; the caller should cool down."""


class QuotaExhaustedError(InferenceError):
	"""The deployment-wide daily quota is spent. Terminal for the session."""


class ResponseParseError(InferenceError):
	"""Model output could not be turned into the expected JSON object."""

	def __init__(self, message: str, raw_text: str = "") -> None:
		super().__init__(message)
		self.raw_text = raw_text
