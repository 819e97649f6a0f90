"""Time-bounded cache over the vocabulary store."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from models.sign_models import VocabularyEntry

LOGGER = logging.getLogger(__name__)

VocabularyFetcher = Callable[[], Awaitable[List[VocabularyEntry]]]


class VocabularyCache:
	"""Serve the full vocabulary, refetching at most once per ``ttl`` seconds."""

	def __init__(self, fetch_all: VocabularyFetcher, ttl: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
		self._fetch_all = fetch_all
		self.ttl = ttl
		self._clock = clock
		self._data: Optional[List[VocabularyEntry]] = None
		self._fetched_at = 0.0
		self._lock = asyncio.Lock()

	def _fresh(self) -> bool:
		return self._data is not None and (self._clock() - self._fetched_at) < self.ttl

	async def get(self, force_refresh: bool = False) -> List[VocabularyEntry]:
		"""Return the cached vocabulary, fetching it when stale or forced."""
		if not force_refresh and self._fresh():
			return self._data
		async with self._lock:
			# Another caller may have refreshed while we waited.
			if not force_refresh and self._fresh():
				return self._data
			data = list(await self._fetch_all())
			self._data = data
			self._fetched_at = self._clock()
			LOGGER.info("Loaded %d signs from vocabulary", len(data))
			return data

	def invalidate(self) -> None:
		self._data = None
