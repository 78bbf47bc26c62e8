# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import TYPE_CHECKING

import attrs

from ..api import logger
from . import addresses, definitions
from .exceptions import AllocationFailure, InternalContractViolation, MalformedHeaders

if TYPE_CHECKING:
    import logging

    from .buffer import StreamingBuffer


def _decode_value(header: bytes, name: bytes) -> str:
    # Unfold continuation lines; the leading whitespace of those is kept.
    value = header[len(name) :].replace(b"\r", b"").replace(b"\n", b"")
    return value.decode("utf-8", "backslashreplace")


@attrs.define(kw_only=True)
class HeaderExtraction:
    """Envelope information found in the header block."""

    reverse_path: str | None = None
    recipients: addresses.AddressList = attrs.field(factory=addresses.AddressList)
    header_block_length: int = 0
    bcc_bytes_removed: int = 0


@attrs.define(auto_attribs=False)
class HeaderExtractor:
    """
    Single pass over the header block of a message in a StreamingBuffer, e.g.

        From: a@example.com
        To: b@example.com, c
        Bcc: d@example.com
        <blank line>

    gives reverse path 'a@example.com' and recipients 'b@example.com', 'c' and
    'd@example.com'. The Bcc header (including any folded continuation lines) is cut
    out of the buffer, so nobody receives it.

    Must run before anything is read from the buffer.
    """

    logger: logging.LoggerAdapter[logging.Logger] = attrs.field(init=False)
    _buffer: StreamingBuffer = attrs.field()

    def __attrs_post_init__(self) -> None:
        self.logger = logger.MessageContextLogger().get(__name__)

    def extract(self) -> HeaderExtraction:
        buffer = self._buffer
        if not buffer.pristine:
            raise InternalContractViolation(
                "Headers must be parsed before anything is read from the message."
            )
        result = HeaderExtraction()
        header_start = line_start = 0
        while (line_stop := buffer.readline(line_start)) is not None:
            first_char = buffer.peek(line_start, line_start + 1)[0]
            if first_char in definitions.CONTINUATION_CHARS:
                # Folded; belongs to the header started before.
                line_start = line_stop
                continue
            if line_start > header_start:
                removed = self._process_header(header_start, line_start, result)
                line_start -= removed
                line_stop -= removed
            header_start = line_start
            if buffer.peek(line_start, line_stop) in (
                definitions.NEWLINE,
                definitions.CRLF,
            ):
                result.header_block_length = line_stop
                buffer.seal_prefix(line_stop)
                self.logger.debug(
                    f"End of headers at {line_stop=}, "
                    f"{len(result.recipients)} recipient(s) found"
                )
                return result
            line_start = line_stop
        raise MalformedHeaders(
            "Message ended before the end of the header block (blank line)."
        )

    def _process_header(self, start: int, stop: int, result: HeaderExtraction) -> int:
        """
        Returns the number of bytes removed from the buffer.
        """
        header = self._buffer.peek(start, stop)
        name = header[: len(definitions.HEADER_FROM)].lower()
        try:
            if name.startswith(definitions.HEADER_FROM):
                value = _decode_value(header, definitions.HEADER_FROM)
                if (address := addresses.first_address(value)) is not None:
                    self.logger.debug(f"From header sets reverse path {address!r}")
                    result.reverse_path = address
            else:
                for header_name in definitions.RECIPIENT_HEADERS:
                    if name.startswith(header_name):
                        value = _decode_value(header, header_name)
                        for address in addresses.iter_addresses(value):
                            result.recipients.append(address)
                        break
        except MemoryError as e:
            raise AllocationFailure("Out of memory parsing header addresses") from e

        if name.startswith(definitions.HEADER_BCC):
            self._buffer.remove_range(start, stop)
            result.bcc_bytes_removed += stop - start
            self.logger.debug(f"Removed Bcc header of {stop - start} bytes")
            return stop - start
        return 0
