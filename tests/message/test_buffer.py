# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

# pyright: reportPrivateUsage=false
from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import pytest

from purepythonsendmail.message.buffer import StreamingBuffer
from purepythonsendmail.message.exceptions import (
    InternalContractViolation,
    SourceReadFailure,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from conftest import ChunkedSource, FailingSource


def _read_all(buffer: StreamingBuffer, size: int) -> bytes:
    out = b""
    while chunk := buffer.read(size):
        out += chunk
        if len(chunk) < size:
            break
    return out


def test_pristine_until_first_read() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"abc\n"))
    assert buffer.pristine
    assert buffer.capacity == 0
    assert buffer.read(2) == b"ab"
    assert not buffer.pristine


def test_block_size_must_be_positive() -> None:
    with pytest.raises(ValueError, match="block_size"):
        StreamingBuffer(source=io.BytesIO(b""), block_size=0)


def test_read_exact_then_short() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"abcdef"), block_size=4)
    assert buffer.read(4) == b"abcd"
    assert not buffer.eof()
    assert buffer.read(4) == b"ef"
    assert buffer.eof()
    assert buffer.read(4) == b""


def test_read_normalizes_line_endings(
    make_source: Callable[..., ChunkedSource],
) -> None:
    source = make_source(b"a\nb\r\nc\n", [1])
    buffer = StreamingBuffer(source=source, block_size=2)
    assert _read_all(buffer, 3) == b"a\r\nb\r\nc\r\n"


def test_crlf_split_over_source_reads(
    make_source: Callable[..., ChunkedSource],
) -> None:
    # Source read boundary right between CR and LF.
    source = make_source(b"ab\r\ncd", [3, 3])
    buffer = StreamingBuffer(source=source)
    assert _read_all(buffer, 1024) == b"ab\r\ncd"


def test_grows_by_doubling(caplog: pytest.LogCaptureFixture) -> None:
    data = b"x" * 20
    buffer = StreamingBuffer(source=io.BytesIO(data), block_size=4)
    with caplog.at_level(logging.DEBUG):
        assert buffer.readline(0) is None
    assert buffer.capacity == 32
    assert buffer.fill_cursor == 20
    assert "Grown buffer capacity to 32 bytes" in caplog.text


def test_compacts_instead_of_growing_when_partly_drained(
    make_source: Callable[..., ChunkedSource],
) -> None:
    source = make_source(b"0123456789", [4])
    buffer = StreamingBuffer(source=source, block_size=4)
    assert buffer.fill() == 4
    assert buffer.drain(2) == b"01"
    # Buffer full, two bytes drained: make room by shifting.
    assert buffer.fill() == 2
    assert buffer.capacity == 4
    assert (buffer.drain_cursor, buffer.fill_cursor) == (0, 4)
    assert _read_all(buffer, 100) == b"23456789"


def test_drained_empty_resets_cursors() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"abcd"), block_size=8)
    buffer.fill()
    buffer.drain(4)
    assert (buffer.drain_cursor, buffer.fill_cursor) == (0, 0)


def test_readline() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"one\ntwo\nthree"), block_size=2)
    first = buffer.readline(0)
    assert first == 4
    second = buffer.readline(first)
    assert second == 8
    assert buffer.peek(first, second) == b"two\n"
    assert buffer.readline(second) is None


def test_peek_out_of_range() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"abc\n"))
    buffer.readline(0)
    with pytest.raises(IndexError):
        buffer.peek(2, 10)


def test_remove_range() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"keep\ncut\nkeep\n"))
    buffer.readline(0)
    buffer.remove_range(5, 9)
    assert buffer.fill_cursor == 10
    assert _read_all(buffer, 100) == b"keep\r\nkeep\r\n"


@pytest.mark.parametrize(
    ("start", "stop"),
    [
        pytest.param(3, 2, id="reversed"),
        pytest.param(0, 100, id="beyond-fill"),
        pytest.param(-1, 2, id="negative"),
    ],
)
def test_remove_range_out_of_bounds(start: int, stop: int) -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"abcdef\n"))
    buffer.readline(0)
    with pytest.raises(InternalContractViolation):
        buffer.remove_range(start, stop)


def test_rewind_seekable_replays(make_source: Callable[..., ChunkedSource]) -> None:
    data = b"line one\nline two\r\nline three\n"
    buffer = StreamingBuffer(source=make_source(data, [5]), block_size=4)
    first = _read_all(buffer, 7)
    buffer.rewind()
    assert buffer.drain_cursor == 0
    assert not buffer.pending_cr
    second = _read_all(buffer, 3)
    assert first == second == b"line one\r\nline two\r\nline three\r\n"


def test_rewind_starts_from_source_position_at_creation() -> None:
    source = io.BytesIO(b"skipped\nmessage\n")
    source.seek(8)
    buffer = StreamingBuffer(source=source)
    assert _read_all(buffer, 100) == b"message\r\n"
    buffer.rewind()
    assert _read_all(buffer, 100) == b"message\r\n"


def test_rewind_non_seekable_retains(
    make_source: Callable[..., ChunkedSource],
    caplog: pytest.LogCaptureFixture,
) -> None:
    data = b"a\nbb\nccc\n" * 10
    source = make_source(data, [7], seekable=False)
    with caplog.at_level(logging.DEBUG):
        buffer = StreamingBuffer(source=source, block_size=4)
    first = _read_all(buffer, 9)
    reads = source.reads
    buffer.rewind()
    second = _read_all(buffer, 4)
    assert first == second
    # Replayed from memory only.
    assert source.reads == reads
    assert "retaining all data" in caplog.text


def test_rewind_twice_same_as_once(make_source: Callable[..., ChunkedSource]) -> None:
    data = b"x\ny\n"
    buffer = StreamingBuffer(source=make_source(data, [1]))
    _read_all(buffer, 3)
    buffer.rewind()
    buffer.rewind()
    assert _read_all(buffer, 3) == b"x\r\ny\r\n"


def test_rewind_mid_crlf_resets_pending_cr() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"a\r\nb"))
    assert buffer.read(2) == b"a\r"
    assert buffer.pending_cr
    buffer.rewind()
    assert not buffer.pending_cr
    assert _read_all(buffer, 100) == b"a\r\nb"


def test_source_read_failure(failing_source: FailingSource) -> None:
    buffer = StreamingBuffer(source=failing_source)  # type: ignore[arg-type]
    with pytest.raises(SourceReadFailure, match="Input/output error"):
        buffer.read(10)


def test_rewind_failure_closed_source() -> None:
    source = io.BytesIO(b"abc")
    buffer = StreamingBuffer(source=source)
    buffer.read(10)
    source.close()
    with pytest.raises(SourceReadFailure):
        buffer.rewind()


def test_invariant_checked_on_mutation() -> None:
    buffer = StreamingBuffer(source=io.BytesIO(b"abc"))
    buffer.fill()
    buffer.drain_cursor = buffer.fill_cursor + 1
    with pytest.raises(AssertionError, match="cursor invariant"):
        buffer._check_invariants()


def test_close_closes_source() -> None:
    source = io.BytesIO(b"abc")
    StreamingBuffer(source=source).close()
    assert source.closed


def test_debug_logging_has_no_message_id_outside_context(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.DEBUG):
        StreamingBuffer(source=io.BytesIO(b"x" * 10), block_size=2).readline(0)
    assert all(
        rec.message.startswith("NONE: ")
        for rec in caplog.records
        if rec.name == "purepythonsendmail.message.buffer"
    )
