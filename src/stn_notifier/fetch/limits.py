# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Size-bounded consumption of chunked byte streams.

The peer's declared size is checked first as a cheap rejection; the
observed size is then enforced chunk by chunk, because a declared size is
only a claim. On any violation the accumulated buffer is dropped and
nothing partial reaches the caller.

Example:
    Reading an aiohttp body with a 1 MiB ceiling::

        body = await read_limited(
            response.content.iter_chunked(64 * 1024),
            limit=1024 * 1024,
            declared_size=response.content_length,
        )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterable

from ..errors import ActualSizeExceededError, DeclaredSizeExceededError
from ..logger import get_logger

logger = get_logger("fetch.limits")


@dataclass
class SizeBudget:
    """Per-request byte budget.

    Attributes:
        limit: Hard ceiling on cumulative bytes.
        declared: Size announced by the peer, 0 when unknown.
        consumed: Bytes accepted so far; never exceeds ``limit``.
        aborted: Set once the budget has been violated.
    """

    limit: int
    declared: int = 0
    consumed: int = 0
    aborted: bool = False

    def check_declared(self) -> None:
        """Reject up front when the announced size is already too large."""
        if self.declared and self.declared > self.limit:
            self.aborted = True
            raise DeclaredSizeExceededError(self.declared, self.limit)

    def accept(self, length: int) -> None:
        """Account for ``length`` more bytes, aborting on overflow."""
        if self.aborted:
            raise ActualSizeExceededError(self.consumed, self.limit)
        total = self.consumed + length
        if total > self.limit:
            self.aborted = True
            raise ActualSizeExceededError(total, self.limit)
        self.consumed = total


async def read_limited(
    chunks: AsyncIterable[bytes],
    limit: int,
    declared_size: int | None = None,
) -> bytes:
    """Consume ``chunks`` into memory while enforcing ``limit``.

    Args:
        chunks: Async iterable of byte chunks. It is iterated at most once
            and never restarted.
        limit: Maximum number of bytes accepted.
        declared_size: Size announced by the peer (e.g. ``Content-Length``);
            ``None`` or 0 when unknown.

    Returns:
        The complete payload, at most ``limit`` bytes long.

    Raises:
        DeclaredSizeExceededError: ``declared_size`` exceeds ``limit``; no
            chunk has been read.
        ActualSizeExceededError: The stream delivered more than ``limit``
            bytes; the partial buffer is discarded.
    """
    budget = SizeBudget(limit=limit, declared=declared_size or 0)
    logger.debug("Declared body size: %d bytes", budget.declared)
    budget.check_declared()

    # Pre-sized to the hint; slice assignment past the end grows it
    buffer = bytearray(budget.declared)
    try:
        async for chunk in chunks:
            logger.debug("Chunk size: %d bytes", len(chunk))
            start = budget.consumed
            budget.accept(len(chunk))
            buffer[start:budget.consumed] = chunk
    except ActualSizeExceededError:
        buffer.clear()
        raise

    del buffer[budget.consumed:]
    logger.debug("Actual body size: %d bytes", budget.consumed)
    return bytes(buffer)
