# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Bounded extraction of single-entry ZIP archives.

The upstream data producer publishes archives holding exactly one text
file. Only the first entry is read; any further entries are ignored. This
is a trust assumption about the producer, not a general extractor.

The uncompressed ceiling is enforced twice: against the size the entry
declares in the central directory (before any decompression) and against
the bytes actually produced while decompressing.
"""

from __future__ import annotations

import asyncio
import io
import zipfile
import zlib

from ..errors import EmptyArchiveError, InvalidArchiveError, UncompressedSizeExceededError
from ..logger import get_logger

logger = get_logger("fetch.archive")

READ_CHUNK_SIZE = 64 * 1024


def _decompress(archive: zipfile.ZipFile, entry: zipfile.ZipInfo, limit: int) -> bytes:
    """Inflate ``entry`` into a buffer sized to its declared length, bounded by ``limit``."""
    buffer = bytearray(entry.file_size)
    written = 0
    with archive.open(entry) as stream:
        while True:
            chunk = stream.read(min(READ_CHUNK_SIZE, limit - written + 1))
            if not chunk:
                break
            end = written + len(chunk)
            if end > limit:
                raise UncompressedSizeExceededError(entry.filename, end, limit, declared=False)
            buffer[written:end] = chunk
            written = end
    del buffer[written:]
    return bytes(buffer)


def extract_single_entry(data: bytes, max_uncompressed: int) -> str:
    """Return the UTF-8 text of the first entry in a ZIP archive.

    Args:
        data: Archive bytes, already bounded by the fetch layer.
        max_uncompressed: Ceiling for the entry's uncompressed size.

    Returns:
        The decoded text of entry 0.

    Raises:
        InvalidArchiveError: ``data`` is not a readable ZIP archive or the
            entry is not valid UTF-8.
        EmptyArchiveError: The archive has no entries.
        UncompressedSizeExceededError: The entry declares, or actually
            expands to, more than ``max_uncompressed`` bytes.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise InvalidArchiveError(f"Invalid ZIP archive: {e}") from e

    with archive:
        entries = archive.infolist()
        if not entries:
            raise EmptyArchiveError()
        if len(entries) > 1:
            logger.debug("Archive holds %d entries; only '%s' is read", len(entries), entries[0].filename)

        entry = entries[0]
        logger.debug(
            "Archive entry '%s': %d bytes compressed, %d bytes declared uncompressed",
            entry.filename,
            entry.compress_size,
            entry.file_size,
        )
        if entry.file_size > max_uncompressed:
            raise UncompressedSizeExceededError(entry.filename, entry.file_size, max_uncompressed)

        try:
            content = _decompress(archive, entry, max_uncompressed)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
            # RuntimeError covers encrypted entries
            raise InvalidArchiveError(f"Cannot decompress '{entry.filename}': {e}") from e

    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidArchiveError(f"Archive entry '{entry.filename}' is not valid UTF-8: {e}") from e


async def extract_text(data: bytes, max_uncompressed: int) -> str:
    """Run :func:`extract_single_entry` in a worker thread."""
    return await asyncio.to_thread(extract_single_entry, data, max_uncompressed)
