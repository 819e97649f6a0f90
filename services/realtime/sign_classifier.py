"""Sign classification: Stage A features, Stage B shortlist, Stage C final call."""
from __future__ import annotations

import logging
import time
from typing import Sequence

from models.session_models import ConversationEntry
from models.sign_models import ClassificationResult, VocabularyEntry
from services.realtime.inference_client import InferenceClient
from services.realtime.prompts import classification_prompt, context_signs, context_text, vocabulary_block
from services.realtime.response_parser import parse_classification
from services.realtime.shortlist import DEFAULT_SHORTLIST_SIZE, FeatureExtractor, shortlist_vocabulary

LOGGER = logging.getLogger(__name__)


def empty_vocabulary_result() -> ClassificationResult:
	return ClassificationResult(
		detected_sign=None,
		confidence=0.0,
		reasoning="No candidate signs available (shortlist empty).",
		hand_shape="unknown",
		hand_location="unknown",
		hand_orientation="unknown",
		motion="unknown",
		spatial_analysis="Shortlist empty",
		temporal_analysis="Shortlist empty",
		context_relevance="Shortlist empty",
		differentiation_notes="No candidates to compare",
	)


class SignClassifier:
	"""Classify the current frame against a shortlist of the vocabulary."""

	def __init__(
		self,
		client: InferenceClient,
		extractor: FeatureExtractor,
		*,
		shortlist_size: int = DEFAULT_SHORTLIST_SIZE,
		context_window: int = 5,
	) -> None:
		if client is None:
			raise ValueError("InferenceClient is required.")
		self.client = client
		self.extractor = extractor
		self.shortlist_size = shortlist_size
		self.context_window = context_window

	async def classify(
		self,
		*,
		session_key: str,
		current_frame: str,
		previous_frames: Sequence[str],
		conversation: Sequence[ConversationEntry],
		vocabulary: Sequence[VocabularyEntry],
	) -> ClassificationResult:
		"""Return the classification for ``current_frame``.

		Args:
			session_key: Key for the Stage A feature cache.
			current_frame: Normalized base64 frame being classified.
			previous_frames: Earlier frames, oldest first.
			conversation: Signs detected so far in this stream.
			vocabulary: Full vocabulary to shortlist from.
		"""
		if not vocabulary:
			return empty_vocabulary_result()

		frames = [*previous_frames, current_frame]
		start = time.time()
		features = await self.extractor.extract(session_key, frames, context_signs(conversation))
		candidates = shortlist_vocabulary(vocabulary, features, self.shortlist_size)
		names = [entry.sign_name for entry in candidates]
		LOGGER.info("Candidate signs: %s", names)

		prompt = classification_prompt(
			vocabulary_block(candidates),
			context_text(conversation, self.context_window),
		)
		LOGGER.info("Analyzing %d frame(s)", len(frames))
		raw = await self.client.generate(prompt, frames)
		result = parse_classification(raw, names)
		result.stage_a = features
		LOGGER.info(
			"Detected %s (%d%%) in %.2fs",
			result.detected_sign,
			round(result.confidence * 100),
			time.time() - start,
		)
		return result
