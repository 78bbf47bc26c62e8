# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar, TypeAlias

import attrs

from ..api import logger

if TYPE_CHECKING:
    from collections.abc import Callable


class DeliveryEvent:
    ...


@attrs.define(kw_only=True, slots=True, frozen=True)
class Connected(DeliveryEvent):
    host: str
    port: int


@attrs.define(kw_only=True, slots=True, frozen=True)
class MailStatus(DeliveryEvent):
    mailbox: str
    code: int
    text: str


@attrs.define(kw_only=True, slots=True, frozen=True)
class RecipientStatus(DeliveryEvent):
    mailbox: str
    code: int
    text: str


@attrs.define(kw_only=True, slots=True, frozen=True)
class MessageData(DeliveryEvent):
    octets: int


@attrs.define(kw_only=True, slots=True, frozen=True)
class MessageSent(DeliveryEvent):
    code: int
    text: str


@attrs.define(kw_only=True, slots=True, frozen=True)
class Disconnected(DeliveryEvent):
    ...


EventCallback: TypeAlias = "Callable[[DeliveryEvent], None]"


@attrs.define(auto_attribs=False)
class LoggingEventMonitor:
    """
    Event callback which reports the progress of a delivery to the log. Data
    progress is accumulated and reported per `size_tick` bytes.
    """

    size_tick: ClassVar[int] = 1024
    logger: logging.LoggerAdapter[logging.Logger] = attrs.field(init=False)
    level: int = attrs.field(default=logging.INFO)
    _octets: int = attrs.field(init=False, default=0)
    _ticks_reported: int = attrs.field(init=False, default=0)

    def __attrs_post_init__(self) -> None:
        self.logger = logger.MessageContextLogger().get(__name__)

    def __call__(self, event: DeliveryEvent) -> None:
        if not isinstance(event, MessageData) and self._octets:
            self.logger.log(self.level, f"Message data: {self._octets} bytes")
            self._octets = self._ticks_reported = 0
        match event:
            case Connected(host=host, port=port):
                self.logger.log(self.level, f"Connected to MTA {host}:{port}")
            case MailStatus(mailbox=mailbox, code=code, text=text):
                self.logger.log(self.level, f"From {mailbox}: {code} {text}")
            case RecipientStatus(mailbox=mailbox, code=code, text=text):
                self.logger.log(self.level, f"To {mailbox}: {code} {text}")
            case MessageData(octets=octets):
                self._octets += octets
                if (ticks := self._octets // self.size_tick) > self._ticks_reported:
                    self._ticks_reported = ticks
                    self.logger.debug(f"Message data: {self._octets} bytes so far")
            case MessageSent(code=code, text=text):
                self.logger.log(self.level, f"Message sent: {code} {text}")
            case Disconnected():
                self.logger.log(self.level, "Disconnected from MTA")
            case _:
                self.logger.warning(f"Unknown delivery event {event!r}")
