# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations


class DeliveryError(BaseException):
    ...


class RemoteDeliveryFailed(DeliveryError):
    def __init__(
        self,
        reason: str,
        *,
        code: int | None = None,
        text: str | None = None,
        refused: dict[str, tuple[int, str]] | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(reason)
        self.code = code
        self.text = text
        self.refused = {} if refused is None else refused
        self.transient = transient


class RemoteDeliveryUnavailable(RemoteDeliveryFailed):
    """No usable SMTP conversation could be had with the server."""


class LocalDeliveryFailed(DeliveryError):
    def __init__(self, reason: str, *, returncode: int | None = None) -> None:
        super().__init__(reason)
        self.returncode = returncode
