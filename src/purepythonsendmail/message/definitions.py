# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Final

"""
Constants for message buffering and header recognition.
"""

# Initial buffer capacity and the default chunk size consumers request. Tuning
# parameter only; nothing depends on the exact value.
BLOCK_SIZE: Final[int] = 8192  # BUFSIZ

CR: Final[int] = 0x0D
NEWLINE: Final[bytes] = b"\n"
CRLF: Final[bytes] = b"\r\n"
CONTINUATION_CHARS: Final[bytes] = b" \t"

# Header names are matched case-insensitively by prefix, including the space.
HEADER_FROM: Final[bytes] = b"from: "
HEADER_TO: Final[bytes] = b"to: "
HEADER_CC: Final[bytes] = b"cc: "
HEADER_BCC: Final[bytes] = b"bcc: "
RECIPIENT_HEADERS: Final[tuple[bytes, ...]] = (HEADER_TO, HEADER_CC, HEADER_BCC)

# sysexits.h
EX_OK: Final[int] = 0
EX_USAGE: Final[int] = 64
EX_DATAERR: Final[int] = 65
EX_UNAVAILABLE: Final[int] = 69
EX_SOFTWARE: Final[int] = 70
EX_OSERR: Final[int] = 71
EX_IOERR: Final[int] = 74
