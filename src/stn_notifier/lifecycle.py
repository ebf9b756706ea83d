# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""One-time initialisation guard for process-wide clients.

The HTTP client and the SMTP session are created once per process and
closed explicitly on shutdown. :class:`SharedResource` holds such an
instance: setting it twice fails loudly, reading it before it is set fails
loudly, and closing it runs the supplied closer exactly once.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Awaitable, Callable, Generic, TypeVar

from .errors import ResourceAlreadyInitializedError, ResourceNotInitializedError

T = TypeVar("T")


class SharedResource(Generic[T]):
    """Holder for a single lazily or eagerly created instance.

    Attributes:
        name: Human readable name used in error messages.
    """

    def __init__(self, name: str, closer: Callable[[T], Awaitable[None]] | None = None):
        self.name = name
        self._closer = closer
        self._value: T | None = None
        self._initialized = False
        self._closed = False
        self._lock = threading.Lock()
        self._create_lock = asyncio.Lock()

    def set(self, value: T) -> T:
        """Store the instance. Raises if one was already stored."""
        with self._lock:
            if self._initialized:
                raise ResourceAlreadyInitializedError(f"{self.name} is already initialized")
            self._value = value
            self._initialized = True
        return value

    def get(self) -> T:
        """Return the stored instance. Raises if it was never stored."""
        if not self._initialized or self._closed:
            raise ResourceNotInitializedError(f"{self.name} is not initialized")
        return self._value  # type: ignore[return-value]

    @property
    def initialized(self) -> bool:
        return self._initialized and not self._closed

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has run on a stored instance."""
        return self._closed

    async def get_or_create(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the instance, creating it with ``factory`` on first use."""
        async with self._create_lock:
            if self.initialized:
                return self.get()
            return self.set(await factory())

    async def close(self) -> None:
        """Close the held instance once; later calls do nothing."""
        with self._lock:
            if not self._initialized or self._closed:
                return
            self._closed = True
            value = self._value
        if self._closer is not None and value is not None:
            await asyncio.shield(self._closer(value))
