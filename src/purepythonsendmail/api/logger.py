# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator, Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Final, TypeAlias

from . import models

LoggingKwargs: TypeAlias = MutableMapping[str, Any]

NO_MESSAGE: Final[str] = "NONE"
_MESSAGE_ID_KEY: Final[str] = "message_id"

# https://github.com/python/typeshed/issues/7855
if TYPE_CHECKING:
    _AdapterBase = logging.LoggerAdapter[logging.Logger]  # pragma: nocover
else:
    _AdapterBase = logging.LoggerAdapter


def current_message_id() -> models.MessageID | None:
    return models.message_id_context.get(None)


def _format_trailer(contexts: Mapping[str, Any]) -> str:
    pairs = [f"{k}={v}" for k, v in contexts.items() if k != _MESSAGE_ID_KEY]
    return f" [{', '.join(pairs)}]" if pairs else ""


class _MessageLoggerAdapter(_AdapterBase):
    """
    Prefixes records with the short ID of the message being handled, e.g.
        'd3adb33f: Removed Bcc header of 25 bytes [server=mx:25]'
    """

    def _message_prefix(self) -> str:
        assert self.extra is not None
        # Bound at creation time when created within a message context; otherwise
        # whatever message is current at the time of logging.
        match self.extra.get(_MESSAGE_ID_KEY) or current_message_id():
            case models.MessageID() as message_id:
                return message_id.short
            case _:
                return NO_MESSAGE

    def process(self, msg: Any, kwargs: LoggingKwargs) -> tuple[Any, LoggingKwargs]:
        assert self.extra is not None
        return f"{self._message_prefix()}: {msg}{_format_trailer(self.extra)}", kwargs


class MessageContextLogger:
    def get(
        self,
        name: str,
        *,
        extra_contexts: dict[str, Any] | None = None,
    ) -> logging.LoggerAdapter[logging.Logger]:
        extra: dict[str, Any] = dict(extra_contexts or {})
        extra[_MESSAGE_ID_KEY] = current_message_id()
        return _MessageLoggerAdapter(logging.getLogger(name), extra)


@contextlib.contextmanager
def message_context(message_id: models.MessageID) -> Iterator[None]:
    """
    Tag everything logged within the block with the given message ID.
    """
    token = models.message_id_context.set(message_id)
    try:
        yield
    finally:
        models.message_id_context.reset(token)
