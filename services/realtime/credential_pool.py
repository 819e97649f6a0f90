"""Process-wide pool of OpenAI credentials with round-robin rotation."""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Any, Callable, Dict, Optional, Sequence

from openai import AsyncOpenAI

LOGGER = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]


def _default_factory(api_key: str) -> AsyncOpenAI:
	return AsyncOpenAI(api_key=api_key)


class CredentialPool:
	"""Ordered API keys, a shared rotation cursor and one cached client per key.

	``current()`` and ``rotate()`` are the only ways to read or move the
	cursor; both hold the lock so concurrent sessions never corrupt it.
	"""

	def __init__(self, api_keys: Sequence[str], client_factory: Optional[ClientFactory] = None) -> None:
		keys = [key for key in api_keys if key]
		if not keys:
			raise ValueError("At least one OpenAI API key is required.")
		self._keys = list(keys)
		self._factory = client_factory or _default_factory
		self._clients: Dict[str, Any] = {}
		self._cursor = 0
		self._lock = threading.Lock()
		LOGGER.info("Loaded %d OpenAI API key(s) for rotation", len(self._keys))

	def __len__(self) -> int:
		return len(self._keys)

	@property
	def cursor(self) -> int:
		with self._lock:
			return self._cursor

	def current(self) -> str:
		"""Return the credential the cursor points at."""
		with self._lock:
			return self._keys[self._cursor]

	def rotate(self) -> str:
		"""Advance the cursor by one (wrapping) and return the new credential."""
		with self._lock:
			previous = self._cursor
			self._cursor = (self._cursor + 1) % len(self._keys)
			LOGGER.warning("Rotating from key #%d to key #%d", previous + 1, self._cursor + 1)
			return self._keys[self._cursor]

	def client_for(self, api_key: str) -> Any:
		"""Return the cached client for ``api_key``, creating it on first use."""
		with self._lock:
			client = self._clients.get(api_key)
			if client is None:
				client = self._factory(api_key)
				self._clients[api_key] = client
			return client

	async def aclose(self) -> None:
		"""Close every cached client that exposes a close/aclose method."""
		with self._lock:
			clients = list(self._clients.values())
			self._clients.clear()
		for client in clients:
			closer = getattr(client, "aclose", None) or getattr(client, "close", None)
			if closer is None:
				continue
			try:
				result = closer()
				if inspect.isawaitable(result):
					await result
			except Exception as exc:
				LOGGER.warning("Failed to close OpenAI client: %s", exc)
