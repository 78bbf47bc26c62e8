# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import contextlib
import subprocess
from typing import TYPE_CHECKING, Final

import attrs

from ..api import logger
from ..message.definitions import BLOCK_SIZE
from .exceptions import LocalDeliveryFailed
from .templater import ExpandedCommand, expand_command

if TYPE_CHECKING:
    import logging

    from ..message.message import Message

DEFAULT_MDA: Final[str] = "/usr/bin/procmail -d %T"


@attrs.define(auto_attribs=False, kw_only=True)
class LocalDelivery:
    """
    Delivers to local recipients (no domain part) by piping the message into a mail
    delivery agent command, templated with `%T` (recipients) and `%F` (sender).
    """

    logger: logging.LoggerAdapter[logging.Logger] = attrs.field(init=False)
    template: str = attrs.field(default=DEFAULT_MDA)
    chunk_size: int = attrs.field(default=BLOCK_SIZE)

    @chunk_size.validator
    def _check_chunk_size(self, attribute: attrs.Attribute[int], value: int) -> None:
        if value < 1:
            raise ValueError(f"{attribute.name} must be positive, got {value}")

    def __attrs_post_init__(self) -> None:
        self.logger = logger.MessageContextLogger().get(__name__)

    def build_command(self, message: Message) -> ExpandedCommand:
        return expand_command(
            self.template,
            local_recipients=message.recipients.local,
            reverse_path=message.reverse_path,
        )

    def deliver(self, message: Message) -> None:
        if not message.recipients.local:
            self.logger.debug("No local recipients; nothing to deliver locally")
            return
        expanded = self.build_command(message)
        self.logger.debug(f"Starting MDA {expanded.command!r}")
        try:
            process = subprocess.Popen(  # noqa: S602
                expanded.command, shell=True, stdin=subprocess.PIPE
            )
        except OSError as e:
            raise LocalDeliveryFailed(f"MDA open failed: {e}") from e
        assert process.stdin is not None
        self.logger.info(f"Connected to MDA: {expanded.command}")

        written = 0
        broken_pipe: BrokenPipeError | None = None
        try:
            for chunk in message.iter_chunks(self.chunk_size):
                process.stdin.write(chunk)
                written += len(chunk)
            process.stdin.close()
        except BrokenPipeError as e:
            broken_pipe = e
        finally:
            # The MDA sees end of input and is reaped on any failure reading the
            # message too. Like subprocess.Popen.communicate(), closing a broken
            # pipe may fail once more.
            with contextlib.suppress(BrokenPipeError):
                process.stdin.close()
            returncode = process.wait()
        if broken_pipe is not None:
            raise LocalDeliveryFailed(
                f"MDA closed its input after {written} bytes", returncode=returncode
            ) from broken_pipe
        self.logger.info(f"Disconnected from MDA [{written=}, {returncode=}]")
        if returncode != 0:
            raise LocalDeliveryFailed(
                f"MDA exited with status {returncode}", returncode=returncode
            )
