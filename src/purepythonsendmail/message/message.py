# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO

import attrs

from ..api import logger, models
from .addresses import AddressList, Recipient
from .buffer import StreamingBuffer
from .definitions import BLOCK_SIZE
from .exceptions import InternalContractViolation
from .headers import HeaderExtractor

if TYPE_CHECKING:
    import logging
    import types
    from collections.abc import Iterator


@attrs.define(auto_attribs=False, kw_only=True)
class Message:
    """
    A single message to deliver: envelope (reverse path, recipients, DSN intent) and
    the streaming buffer over its data. Owns the source it reads from.
    """

    logger: logging.LoggerAdapter[logging.Logger] = attrs.field(init=False)
    id_: models.MessageID = attrs.field(factory=models.MessageID.generate)
    buffer: StreamingBuffer = attrs.field()
    reverse_path: str | None = attrs.field(default=None)
    recipients: AddressList = attrs.field(factory=AddressList)
    notify: models.NotifyFlags | None = attrs.field(default=None)
    _headers_parsed: bool = attrs.field(init=False, default=False)

    def __attrs_post_init__(self) -> None:
        self.logger = logger.MessageContextLogger().get(__name__)

    @classmethod
    def from_source(
        cls, source: BinaryIO, *, block_size: int = BLOCK_SIZE, **kwargs: object
    ) -> Message:
        return cls(
            buffer=StreamingBuffer(source=source, block_size=block_size),
            **kwargs,  # type: ignore[arg-type]
        )

    def set_reverse_path(self, address: str) -> None:
        self.reverse_path = address

    def add_recipient(self, address: str) -> Recipient:
        recipient = self.recipients.append(address)
        self.logger.debug(
            f"Added recipient {address!r} ({recipient.delivery_class.value})"
        )
        return recipient

    def parse_headers(self) -> None:
        """
        Take the envelope from the header block: a From header sets the reverse path
        (the last one wins), To, Cc and Bcc headers add recipients. Bcc headers are
        removed from the message data.
        Nothing is applied to this message when the header block is malformed.
        """
        if self._headers_parsed:
            raise InternalContractViolation("Headers of a message can be parsed once.")
        self._headers_parsed = True
        extraction = HeaderExtractor(self.buffer).extract()
        if extraction.reverse_path is not None:
            self.set_reverse_path(extraction.reverse_path)
        self.recipients.extend(extraction.recipients)
        self.logger.debug(
            f"Parsed headers: reverse_path={self.reverse_path!r} "
            f"recipients={len(self.recipients)} "
            f"bcc_bytes_removed={extraction.bcc_bytes_removed}"
        )

    def read(self, size: int) -> bytes:
        return self.buffer.read(size)

    def iter_chunks(self, size: int = BLOCK_SIZE) -> Iterator[bytes]:
        """Yields the (remaining) data in chunks of `size` bytes until a short read."""
        if size < 1:
            raise ValueError(f"Chunk size must be positive, got {size}")
        while True:
            chunk = self.read(size)
            if chunk:
                yield chunk
            if len(chunk) < size:
                return

    def rewind(self) -> None:
        self.buffer.rewind()

    def eof(self) -> bool:
        return self.buffer.eof()

    def close(self) -> None:
        self.buffer.close()

    def __enter__(self) -> Message:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: types.TracebackType | None,
    ) -> None:
        self.close()
