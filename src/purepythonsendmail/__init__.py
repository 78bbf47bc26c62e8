# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0
#

from __future__ import annotations

from ._version import __version__
from .api.models import MessageID, NotifyFlags, SmtpIdentity, StarttlsMode
from .delivery.events import (
    Connected,
    DeliveryEvent,
    Disconnected,
    LoggingEventMonitor,
    MailStatus,
    MessageData,
    MessageSent,
    RecipientStatus,
)
from .delivery.local import DEFAULT_MDA, LocalDelivery
from .delivery.remote import RemoteDelivery
from .delivery.templater import ExpandedCommand, expand_command
from .message.addresses import AddressList, DeliveryClass, Recipient
from .message.buffer import StreamingBuffer
from .message.message import Message

__all__ = [
    "__version__",
    "AddressList",
    "Connected",
    "DEFAULT_MDA",
    "DeliveryClass",
    "DeliveryEvent",
    "Disconnected",
    "ExpandedCommand",
    "LocalDelivery",
    "LoggingEventMonitor",
    "MailStatus",
    "Message",
    "MessageData",
    "MessageID",
    "MessageSent",
    "NotifyFlags",
    "Recipient",
    "RecipientStatus",
    "RemoteDelivery",
    "SmtpIdentity",
    "StarttlsMode",
    "StreamingBuffer",
    "expand_command",
]
