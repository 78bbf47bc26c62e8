# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import attrs

from .definitions import CR, NEWLINE


@attrs.define(auto_attribs=False, kw_only=True)
class CrlfNormalizer:
    """
    Canonicalizes line endings to CRLF while data is copied out, e.g.
        b'a\\nb\\r\\nc\\n'
    becomes
        b'a\\r\\nb\\r\\nc\\r\\n'

    Whether the last emitted byte was a CR is remembered across calls, so an input
    CRLF pair split over two calls (or over two reads from the source) is never
    doubled into CR CR LF. Output is therefore independent of how the input is
    partitioned and of the sizes requested.
    """

    pending_cr: bool = attrs.field(default=False)

    def reset(self) -> None:
        self.pending_cr = False

    def transform(
        self, data: bytes | bytearray, *, start: int, stop: int, limit: int
    ) -> tuple[bytes, int]:
        """
        Normalize `data[start:stop]`, producing at most `limit` bytes.
        Returns the output and the number of input bytes consumed.
        """
        out = bytearray()
        pos = start
        while len(out) < limit and pos < stop:
            newline = data.find(NEWLINE, pos, stop)
            end = stop if newline == -1 else newline
            if n := min(end - pos, limit - len(out)):
                out += data[pos : pos + n]
                pos += n
                self.pending_cr = data[pos - 1] == CR
            if len(out) == limit or pos != newline:
                continue
            if not self.pending_cr:
                out.append(CR)
                if len(out) == limit:
                    # The LF is left for the next call, which then must not insert
                    # another CR.
                    self.pending_cr = True
                    break
            self.pending_cr = False
            out += NEWLINE
            pos += 1
        return bytes(out), pos - start
