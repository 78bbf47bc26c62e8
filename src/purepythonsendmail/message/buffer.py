# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import io
from typing import TYPE_CHECKING, BinaryIO

import attrs

from ..api import logger
from .crlf import CrlfNormalizer
from .definitions import BLOCK_SIZE, NEWLINE
from .exceptions import AllocationFailure, InternalContractViolation, SourceReadFailure

if TYPE_CHECKING:
    import logging


@attrs.define(auto_attribs=False, kw_only=True)
class StreamingBuffer:
    """
    Linear, growable byte store between a byte source (file or stdin) and its
    consumers. Bytes in `[drain_cursor, fill_cursor)` have been read from the source
    but not yet delivered; `capacity` bytes of storage are allocated.

        0 <= drain_cursor <= fill_cursor <= capacity

    Data is delivered CRLF-normalized by `drain()`/`read()`. The raw line reader
    `readline()` and `remove_range()` exist for the header pass, which runs before
    anything is drained.

    For a seekable source `rewind()` seeks back and starts over. A source which
    cannot seek (a pipe) is retained in memory in full instead and replayed from
    there.
    """

    logger: logging.LoggerAdapter[logging.Logger] = attrs.field(init=False)
    _source: BinaryIO = attrs.field()
    block_size: int = attrs.field(default=BLOCK_SIZE)
    _storage: bytearray | None = attrs.field(init=False, default=None)
    fill_cursor: int = attrs.field(init=False, default=0)
    drain_cursor: int = attrs.field(init=False, default=0)
    _normalizer: CrlfNormalizer = attrs.field(init=False, factory=CrlfNormalizer)
    _exhausted: bool = attrs.field(init=False, default=False)
    _retain: bool = attrs.field(init=False)
    # Rewritten header block to replay on rewind and where the source continues.
    _prefix: bytes = attrs.field(init=False, default=b"")
    _prefix_source_offset: int = attrs.field(init=False, default=0)
    _removed: int = attrs.field(init=False, default=0)
    _origin: int = attrs.field(init=False, default=0)

    @block_size.validator
    def _check_block_size(self, attribute: attrs.Attribute[int], value: int) -> None:
        if value < 1:
            raise ValueError(f"{attribute.name} must be positive, got {value}")

    def __attrs_post_init__(self) -> None:
        self.logger = logger.MessageContextLogger().get(__name__)
        try:
            self._retain = not self._source.seekable()
        except (OSError, ValueError):
            self._retain = True
        if self._retain:
            self.logger.debug("Source is not seekable; retaining all data for replay")
        else:
            self._origin = self._source.tell()

    @property
    def capacity(self) -> int:
        return 0 if self._storage is None else len(self._storage)

    @property
    def pending_cr(self) -> bool:
        return self._normalizer.pending_cr

    @property
    def pristine(self) -> bool:
        # Nothing was ever read from the source, nor delivered.
        return self._storage is None

    def _check_invariants(self) -> None:
        assert 0 <= self.drain_cursor <= self.fill_cursor <= self.capacity, (
            f"cursor invariant broken: drain={self.drain_cursor} "
            f"fill={self.fill_cursor} capacity={self.capacity}"
        )

    def _grow(self) -> None:
        new_capacity = self.block_size if not self.capacity else self.capacity << 1
        try:
            if self._storage is None:
                self._storage = bytearray(new_capacity)
            else:
                self._storage.extend(bytes(new_capacity - len(self._storage)))
        except MemoryError as e:
            raise AllocationFailure(
                f"Could not grow message buffer to {new_capacity} bytes"
            ) from e
        self.logger.debug(f"Grown buffer capacity to {new_capacity} bytes")
        self._check_invariants()

    def _compact(self) -> None:
        assert self._storage is not None
        remaining = self.fill_cursor - self.drain_cursor
        self._storage[:remaining] = self._storage[self.drain_cursor : self.fill_cursor]
        self.drain_cursor, self.fill_cursor = 0, remaining
        self._check_invariants()

    def fill(self) -> int:
        """
        Read whatever the source offers into the free space of the buffer, growing it
        when full. Returns the number of bytes read; zero means end of source.
        """
        if self._exhausted:
            return 0
        if self.fill_cursor == self.capacity:
            if self.drain_cursor and not self._retain:
                self._compact()
            else:
                self._grow()
        assert self._storage is not None
        try:
            with memoryview(self._storage)[self.fill_cursor :] as view:
                n = self._source.readinto(view) or 0
        except (OSError, ValueError) as e:
            raise SourceReadFailure(f"Reading message source failed: {e}") from e
        if n == 0:
            self._exhausted = True
        self.fill_cursor += n
        self._check_invariants()
        return n

    def drain(self, size: int) -> bytes:
        """
        Deliver up to `size` bytes of buffered data, CRLF-normalized.
        """
        if self._storage is None:
            return b""
        data, consumed = self._normalizer.transform(
            self._storage, start=self.drain_cursor, stop=self.fill_cursor, limit=size
        )
        self.drain_cursor += consumed
        if self.drain_cursor == self.fill_cursor and not self._retain:
            self.drain_cursor = self.fill_cursor = 0
        self._check_invariants()
        return data

    def read(self, size: int) -> bytes:
        """
        Returns exactly `size` bytes, unless the message ends before that. A short
        read (possibly empty) is the end-of-message signal.
        """
        out = bytearray(self.drain(size))
        while len(out) < size and self.fill():
            out += self.drain(size - len(out))
        return bytes(out)

    def eof(self) -> bool:
        return self.drain_cursor == self.fill_cursor and self._exhausted

    def readline(self, start: int) -> int | None:
        """
        Returns the position just beyond the first newline at or after `start`,
        reading more from the source as needed. Returns None when the source ends
        before a newline. Lines are raw; no CRLF normalization applies.
        """
        if self._storage is None:
            self._grow()
        assert self._storage is not None
        scan = start
        while (newline := self._storage.find(NEWLINE, scan, self.fill_cursor)) == -1:
            scan = self.fill_cursor
            if not self.fill():
                return None
        return newline + 1

    def peek(self, start: int, stop: int) -> bytes:
        if not 0 <= start <= stop <= self.fill_cursor:
            raise IndexError(f"[{start}:{stop}] is outside of buffered data")
        assert self._storage is not None
        return bytes(self._storage[start:stop])

    def remove_range(self, start: int, stop: int) -> None:
        """
        Cut `[start, stop)` out of the buffered data; the bytes after it shift left.
        """
        if not self.drain_cursor <= start <= stop <= self.fill_cursor:
            raise InternalContractViolation(
                f"Cannot remove [{start}:{stop}] from buffered data "
                f"[{self.drain_cursor}:{self.fill_cursor}]"
            )
        assert self._storage is not None
        n = stop - start
        self._storage[start : self.fill_cursor - n] = self._storage[
            stop : self.fill_cursor
        ]
        self.fill_cursor -= n
        self._removed += n
        self._check_invariants()

    def seal_prefix(self, stop: int) -> None:
        """
        Make `rewind()` replay buffered data `[0, stop)` as it is now, instead of
        re-reading it from the source. Used to keep header rewrites across rewinds.
        """
        if self.drain_cursor or stop > self.fill_cursor:
            raise InternalContractViolation("Prefix can only be sealed before draining")
        assert self._storage is not None
        self._prefix = bytes(self._storage[:stop])
        self._prefix_source_offset = stop + self._removed

    def rewind(self) -> None:
        self._normalizer.reset()
        self.drain_cursor = 0
        if self._retain:
            self.logger.debug("Rewinding retained data")
            self._check_invariants()
            return
        try:
            self._source.seek(
                self._origin + self._prefix_source_offset, io.SEEK_SET
            )
        except (OSError, ValueError) as e:
            raise SourceReadFailure(f"Rewinding message source failed: {e}") from e
        self._exhausted = False
        self.fill_cursor = 0
        if self._prefix:
            while self.capacity < len(self._prefix):
                self._grow()
            assert self._storage is not None
            self._storage[: len(self._prefix)] = self._prefix
            self.fill_cursor = len(self._prefix)
        self.logger.debug(
            f"Rewound to source offset {self._prefix_source_offset} with "
            f"{len(self._prefix)} bytes preloaded"
        )
        self._check_invariants()

    def close(self) -> None:
        self._source.close()
