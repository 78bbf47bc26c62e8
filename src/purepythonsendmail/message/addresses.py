# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import email.utils
import enum
from typing import TYPE_CHECKING

import attrs

if TYPE_CHECKING:
    from collections.abc import Iterator


@enum.unique
class DeliveryClass(enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"

    @classmethod
    def of(cls, address: str) -> DeliveryClass:
        # Anything without a domain part goes to the local delivery agent.
        return cls.REMOTE if "@" in address else cls.LOCAL


def iter_addresses(value: str) -> Iterator[str]:
    """
    Split a header value into its mailbox addresses, e.g.
        'Foo <foo@example.com>, bar'
    yields 'foo@example.com' and 'bar'. Display names and groups are dropped;
    entries which do not contain an address are skipped.
    """
    for _, address in email.utils.getaddresses([value]):
        if address:
            yield address


def first_address(value: str) -> str | None:
    return next(iter_addresses(value), None)


@attrs.define(kw_only=True, slots=True, frozen=True)
class Recipient:
    address: str
    delivery_class: DeliveryClass

    @classmethod
    def from_address(cls, address: str) -> Recipient:
        return cls(address=address, delivery_class=DeliveryClass.of(address))


@attrs.define(auto_attribs=False)
class AddressList:
    """
    Recipients in insertion order, duplicates allowed.
    """

    _entries: list[Recipient] = attrs.field(factory=list)

    def append(self, address: str) -> Recipient:
        self._entries.append(recipient := Recipient.from_address(address))
        return recipient

    def extend(self, addresses: AddressList) -> None:
        self._entries.extend(addresses._entries)

    def of_class(self, delivery_class: DeliveryClass) -> list[str]:
        return [r.address for r in self._entries if r.delivery_class is delivery_class]

    @property
    def local(self) -> list[str]:
        return self.of_class(DeliveryClass.LOCAL)

    @property
    def remote(self) -> list[str]:
        return self.of_class(DeliveryClass.REMOTE)

    def __iter__(self) -> Iterator[Recipient]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
