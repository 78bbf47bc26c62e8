# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

# pyright: reportPrivateUsage=false
from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest

from purepythonsendmail.message.message import Message

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class ChunkedSource(io.RawIOBase):
    """
    In-memory byte source which hands out its data in reads of the given sizes
    (cycled), to exercise every possible split of the input over source reads.
    """

    def __init__(
        self,
        data: bytes,
        chunk_sizes: Sequence[int] = (),
        *,
        seekable: bool = True,
    ) -> None:
        super().__init__()
        self._data = data
        self._chunk_sizes = list(chunk_sizes) or [max(len(data), 1)]
        self._seekable = seekable
        self._position = 0
        self.reads = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return self._seekable

    def readinto(self, buffer: bytearray | memoryview) -> int:  # type: ignore[override]
        size = self._chunk_sizes[self.reads % len(self._chunk_sizes)]
        self.reads += 1
        chunk = self._data[self._position : self._position + min(size, len(buffer))]
        buffer[: len(chunk)] = chunk
        self._position += len(chunk)
        return len(chunk)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if not self._seekable:
            raise io.UnsupportedOperation("seek")
        match whence:
            case io.SEEK_SET:
                self._position = offset
            case io.SEEK_CUR:
                self._position += offset
            case io.SEEK_END:
                self._position = len(self._data) + offset
            case _:
                raise ValueError(f"invalid whence {whence}")
        return self._position


class FailingSource(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return 0

    def readinto(self, buffer: bytearray | memoryview) -> int:  # type: ignore[override]
        raise OSError(5, "Input/output error")


@pytest.fixture()
def sample_message_bytes() -> bytes:
    return b"From: a@x\nTo: b@y, c\nBcc: d@z\n\nhello\n"


@pytest.fixture()
def make_source() -> Callable[..., ChunkedSource]:
    return ChunkedSource


@pytest.fixture()
def make_message() -> Callable[..., Message]:
    def factory(
        data: bytes,
        chunk_sizes: Sequence[int] = (),
        *,
        seekable: bool = True,
        block_size: int = 8192,
        **kwargs: object,
    ) -> Message:
        return Message.from_source(
            ChunkedSource(data, chunk_sizes, seekable=seekable),  # type: ignore
            block_size=block_size,
            **kwargs,
        )

    return factory


@pytest.fixture()
def failing_source() -> FailingSource:
    return FailingSource()
