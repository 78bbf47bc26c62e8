# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations


class MessageError(BaseException):
    ...


class AllocationFailure(MessageError):
    ...


class MalformedHeaders(MessageError):
    ...


class SourceReadFailure(MessageError):
    ...


class InternalContractViolation(MessageError):
    """Raised on misuse of the message API; never expected in normal operation."""
