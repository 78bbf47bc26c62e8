# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import enum
import functools
import operator
import uuid
from contextvars import ContextVar

import attrs


class MessageID(uuid.UUID):
    @property
    def short(self) -> str:
        return self.shorten()

    def shorten(self, length: int = 8) -> str:
        return str(self)[:length]

    @classmethod
    def generate(cls) -> MessageID:
        return MessageID(bytes=uuid.uuid4().bytes)


message_id_context: ContextVar[MessageID] = ContextVar("message_id")


class NotifyFlags(enum.Flag):
    """
    Delivery Status Notification intent (RFC 3461 NOTIFY parameter).
    NEVER is mutually exclusive with the others by protocol; combining it is not
    prevented here, but `from_option()` never produces such a combination.
    """

    NEVER = enum.auto()
    SUCCESS = enum.auto()
    FAILURE = enum.auto()
    DELAY = enum.auto()

    @classmethod
    def from_option(cls, value: str) -> NotifyFlags | None:
        """
        Parse a sendmail `-N` argument, e.g. 'never' or 'failure,delay'.
        Unknown keywords are ignored; returns None if nothing was recognized.
        """
        value = value.lower()
        if value == "never":
            return cls.NEVER
        found = [
            flag
            for keyword, flag in (
                ("failure", cls.FAILURE),
                ("delay", cls.DELAY),
                ("success", cls.SUCCESS),
            )
            if keyword in value
        ]
        if not found:
            return None
        return functools.reduce(operator.or_, found)

    def esmtp_value(self) -> str:
        # Fixed order for a stable NOTIFY= parameter.
        return ",".join(
            keyword
            for keyword, flag in (
                ("NEVER", NotifyFlags.NEVER),
                ("SUCCESS", NotifyFlags.SUCCESS),
                ("FAILURE", NotifyFlags.FAILURE),
                ("DELAY", NotifyFlags.DELAY),
            )
            if flag in self
        )


@enum.unique
class StarttlsMode(enum.Enum):
    DISABLED = "disabled"
    ENABLED = "enabled"
    REQUIRED = "required"


@attrs.define(kw_only=True, slots=True, frozen=True)
class SmtpIdentity:
    """
    Where and how to submit mail for remote recipients.
    """

    host: str = "localhost"
    port: int = 25
    starttls: StarttlsMode = StarttlsMode.DISABLED
    username: str | None = None
    password: str | None = attrs.field(default=None, repr=False)

    @property
    def has_credentials(self) -> bool:
        return self.username is not None and self.password is not None
