"""Two-stage candidate narrowing: Stage A feature extraction, Stage B scoring."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from models.sign_models import ShortlistFeatures, VocabularyEntry
from services.realtime.inference_client import InferenceClient
from services.realtime.prompts import feature_prompt
from services.realtime.response_parser import parse_features

LOGGER = logging.getLogger(__name__)

DEFAULT_SHORTLIST_SIZE = 7

EXACT_LABEL_SCORE = 6
PARTIAL_LABEL_SCORE = 2
HAND_SHAPE_SCORE = 3
LOCATION_SCORE = 2
MOTION_SCORE = 2


def _norm(value: object) -> str:
	return str(value or "").strip().lower()


def haystack(entry: VocabularyEntry) -> str:
	"""Lowercased searchable text built from every descriptive field."""
	parts = [
		entry.sign_name,
		entry.description,
		entry.hand_shape,
		entry.location,
		entry.motion,
		entry.orientation,
		" ".join(entry.similar_signs),
		entry.difference_from_similar,
		" ".join(entry.common_mistakes),
	]
	return " ".join(_norm(part) for part in parts if part)


def score_entry(entry: VocabularyEntry, features: ShortlistFeatures) -> int:
	"""Score how well ``entry`` matches the extracted features."""
	hay = haystack(entry)
	name = _norm(entry.sign_name)
	score = 0
	for label in features.candidate_labels:
		needle = _norm(label)
		if not needle:
			continue
		if needle == name:
			score += EXACT_LABEL_SCORE
		elif needle in hay:
			score += PARTIAL_LABEL_SCORE
	for keywords, weight in (
		(features.hand_shape_keywords, HAND_SHAPE_SCORE),
		(features.location_keywords, LOCATION_SCORE),
		(features.motion_keywords, MOTION_SCORE),
	):
		for keyword in keywords:
			needle = _norm(keyword)
			if needle and needle in hay:
				score += weight
	return score


def shortlist_vocabulary(
	vocabulary: Sequence[VocabularyEntry],
	features: ShortlistFeatures,
	limit: int = DEFAULT_SHORTLIST_SIZE,
) -> List[VocabularyEntry]:
	"""Return up to ``limit`` best scoring entries.

	When nothing scores above zero (blurry frame, empty features) the first
	``limit`` entries are returned in vocabulary order, so the result is
	never empty for a non-empty vocabulary.
	"""
	limit = max(1, limit)
	ranked = sorted(
		((entry, score_entry(entry, features)) for entry in vocabulary),
		key=lambda pair: pair[1],
		reverse=True,
	)
	positive = [entry for entry, score in ranked if score > 0][:limit]
	if positive:
		return positive
	return list(vocabulary[:limit])


@dataclass
class _CachedFeatures:
	at: float
	features: ShortlistFeatures


class FeatureCache:
	"""Stage A results keyed by session, valid for ``ttl`` seconds.

	Entries are not tied to a live connection, so stale ones are purged
	opportunistically when the cache grows past ``sweep_size`` and by
	``run_periodic_sweep``.
	"""

	def __init__(
		self,
		ttl: float = 12.0,
		sweep_age: float = 10.0,
		sweep_size: int = 500,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.ttl = ttl
		self.sweep_age = sweep_age
		self.sweep_size = sweep_size
		self._clock = clock
		self._entries: Dict[str, _CachedFeatures] = {}

	def __len__(self) -> int:
		return len(self._entries)

	def get(self, key: str) -> Optional[ShortlistFeatures]:
		cached = self._entries.get(key)
		if cached is None or (self._clock() - cached.at) >= self.ttl:
			return None
		return cached.features

	def put(self, key: str, features: ShortlistFeatures) -> None:
		now = self._clock()
		self._entries[key] = _CachedFeatures(at=now, features=features)
		if len(self._entries) > self.sweep_size:
			self.sweep(now)

	def discard(self, key: str) -> None:
		self._entries.pop(key, None)

	def sweep(self, now: Optional[float] = None) -> int:
		"""Drop entries older than ``sweep_age`` and return how many went."""
		now = self._clock() if now is None else now
		stale = [key for key, cached in self._entries.items() if (now - cached.at) > self.sweep_age]
		for key in stale:
			del self._entries[key]
		return len(stale)

	async def run_periodic_sweep(self, interval_seconds: float = 30.0) -> None:
		"""Repeatedly sweep stale entries at the given interval until cancelled."""
		while True:
			try:
				await asyncio.sleep(interval_seconds)
				removed = self.sweep()
				if removed:
					LOGGER.debug("Swept %d stale Stage A cache entries", removed)
			except asyncio.CancelledError:
				break
			except Exception as exc:
				LOGGER.warning("Stage A cache sweep failed: %s", exc)


class FeatureExtractor:
	"""Run Stage A through the oracle, reusing cached features per session."""

	def __init__(self, client: InferenceClient, cache: FeatureCache) -> None:
		self.client = client
		self.cache = cache

	async def extract(self, session_key: str, frames: Sequence[str], previous_signs: str) -> ShortlistFeatures:
		"""Return features for ``frames`` (oldest first, current frame last)."""
		cached = self.cache.get(session_key)
		if cached is not None:
			return cached
		raw = await self.client.generate(feature_prompt(previous_signs), frames)
		features = parse_features(raw)
		self.cache.put(session_key, features)
		LOGGER.debug("Stage A features for %s: %s", session_key, features)
		return features
