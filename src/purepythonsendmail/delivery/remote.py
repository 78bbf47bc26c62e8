# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import smtplib
import ssl
from typing import TYPE_CHECKING, Final

import attrs

from ..api import logger, models
from ..message.definitions import BLOCK_SIZE
from . import events
from .exceptions import RemoteDeliveryFailed, RemoteDeliveryUnavailable

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from ..message.message import Message

DEFAULT_TIMEOUT_SECONDS = 60.0
CRLF: Final[bytes] = b"\r\n"
DATA_TERMINATOR: Final[bytes] = b".\r\n"


def _is_transient(code: int) -> bool:
    return 400 <= code < 500


def _text(response: bytes | str) -> str:
    if isinstance(response, bytes):
        return response.decode("utf-8", "replace")
    return response


def _stuff_dots(chunk: bytes, *, at_line_start: bool) -> bytes:
    stuffed = chunk.replace(b"\n.", b"\n..")
    if at_line_start and stuffed.startswith(b"."):
        return b"." + stuffed
    return stuffed


@attrs.define(auto_attribs=False, kw_only=True)
class RemoteDelivery:
    """
    Submits a message to the SMTP server of the identity for all of its remote
    recipients. All recipients must be accepted or nothing is sent. The message data
    is pulled from the message in chunks; on a transient failure (lost connection,
    4xx reply) the message is rewound and the whole transaction is tried again, up
    to `max_attempts` in total.
    """

    logger: logging.LoggerAdapter[logging.Logger] = attrs.field(init=False)
    identity: models.SmtpIdentity = attrs.field(factory=models.SmtpIdentity)
    on_event: events.EventCallback | None = attrs.field(default=None)
    max_attempts: int = attrs.field(default=2)
    chunk_size: int = attrs.field(default=BLOCK_SIZE)
    timeout: float = attrs.field(default=DEFAULT_TIMEOUT_SECONDS)
    smtp_factory: Callable[..., smtplib.SMTP] = attrs.field(default=smtplib.SMTP)

    @max_attempts.validator
    def _check_max_attempts(self, attribute: attrs.Attribute[int], value: int) -> None:
        if value < 1:
            raise ValueError(f"{attribute.name} must be at least 1, got {value}")

    @chunk_size.validator
    def _check_chunk_size(self, attribute: attrs.Attribute[int], value: int) -> None:
        if value < 1:
            raise ValueError(f"{attribute.name} must be positive, got {value}")

    def __attrs_post_init__(self) -> None:
        self.logger = logger.MessageContextLogger().get(
            __name__,
            extra_contexts={"server": f"{self.identity.host}:{self.identity.port}"},
        )

    def _emit(self, event: events.DeliveryEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)

    def deliver(self, message: Message) -> None:
        recipients = message.recipients.remote
        if not recipients:
            self.logger.debug("No remote recipients; nothing to deliver remotely")
            return
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                message.rewind()
            try:
                self._attempt(message, recipients)
            except RemoteDeliveryFailed as e:
                if not e.transient or attempt >= self.max_attempts:
                    raise
                self.logger.warning(
                    f"Transient failure, trying again: {e} [{attempt=}]"
                )
            else:
                return

    def _attempt(self, message: Message, recipients: list[str]) -> None:
        try:
            smtp = self.smtp_factory(
                self.identity.host, self.identity.port, timeout=self.timeout
            )
        except smtplib.SMTPConnectError as e:
            raise RemoteDeliveryUnavailable(
                f"SMTP server problem: {e}",
                code=e.smtp_code,
                text=_text(e.smtp_error),
                transient=_is_transient(e.smtp_code),
            ) from e
        except OSError as e:
            raise RemoteDeliveryUnavailable(
                f"SMTP server problem: {e}", transient=True
            ) from e
        self._emit(events.Connected(host=self.identity.host, port=self.identity.port))
        try:
            self._converse(smtp, message, recipients)
        except smtplib.SMTPServerDisconnected as e:
            raise RemoteDeliveryUnavailable(
                f"SMTP server disconnected: {e}", transient=True
            ) from e
        except smtplib.SMTPResponseException as e:
            raise RemoteDeliveryFailed(
                f"SMTP server replied {e.smtp_code} {_text(e.smtp_error)}",
                code=e.smtp_code,
                text=_text(e.smtp_error),
                transient=_is_transient(e.smtp_code),
            ) from e
        except smtplib.SMTPException as e:
            raise RemoteDeliveryUnavailable(f"SMTP server problem: {e}") from e
        except OSError as e:
            raise RemoteDeliveryUnavailable(
                f"SMTP connection problem: {e}", transient=True
            ) from e
        finally:
            self._disconnect(smtp)

    def _disconnect(self, smtp: smtplib.SMTP) -> None:
        try:
            smtp.quit()
        except (smtplib.SMTPException, OSError) as e:
            self.logger.debug(f"Error on QUIT, closing anyway: {e!r}")
            smtp.close()
        self._emit(events.Disconnected())

    def _start_tls(self, smtp: smtplib.SMTP) -> None:
        mode = self.identity.starttls
        if mode is models.StarttlsMode.DISABLED:
            return
        if not smtp.has_extn("starttls"):
            if mode is models.StarttlsMode.REQUIRED:
                raise RemoteDeliveryFailed("STARTTLS required but not offered")
            self.logger.debug("STARTTLS not offered by server; continuing without")
            return
        smtp.starttls(context=ssl.create_default_context())
        smtp.ehlo()

    def _converse(
        self, smtp: smtplib.SMTP, message: Message, recipients: list[str]
    ) -> None:
        smtp.ehlo_or_helo_if_needed()
        self._start_tls(smtp)
        if self.identity.has_credentials:
            assert self.identity.username is not None
            assert self.identity.password is not None
            smtp.login(self.identity.username, self.identity.password)

        reverse_path = message.reverse_path or ""
        code, response = smtp.mail(reverse_path)
        self._emit(
            events.MailStatus(mailbox=reverse_path, code=code, text=_text(response))
        )
        if code != 250:
            raise RemoteDeliveryFailed(
                f"Reverse path {reverse_path!r} refused: {code} {_text(response)}",
                code=code,
                text=_text(response),
                transient=_is_transient(code),
            )

        rcpt_options: list[str] = []
        if message.notify is not None:
            if smtp.has_extn("dsn"):
                rcpt_options.append(f"NOTIFY={message.notify.esmtp_value()}")
            else:
                self.logger.warning("Server does not support DSN; NOTIFY not sent")
        refused: dict[str, tuple[int, str]] = {}
        for recipient in recipients:
            code, response = smtp.rcpt(recipient, rcpt_options)
            self._emit(
                events.RecipientStatus(
                    mailbox=recipient, code=code, text=_text(response)
                )
            )
            if code not in (250, 251):
                refused[recipient] = (code, _text(response))
        if refused:
            raise RemoteDeliveryFailed(
                f"{len(refused)} of {len(recipients)} recipient(s) refused",
                refused=refused,
                transient=all(_is_transient(code) for code, _ in refused.values()),
            )

        code, response = self._send_data(smtp, message)
        self._emit(events.MessageSent(code=code, text=_text(response)))
        if code != 250:
            raise RemoteDeliveryFailed(
                f"Message refused: {code} {_text(response)}",
                code=code,
                text=_text(response),
                transient=_is_transient(code),
            )
        self.logger.info(f"Delivered to {len(recipients)} remote recipient(s)")

    def _send_data(self, smtp: smtplib.SMTP, message: Message) -> tuple[int, bytes]:
        """
        Streams the message to the server in chunks as DATA, dot-stuffing every line
        that starts with a period, also when it starts at a chunk boundary.
        """
        smtp.putcmd("data")
        code, response = smtp.getreply()
        if code != 354:
            raise smtplib.SMTPDataError(code, response)
        at_line_start = True
        for chunk in message.iter_chunks(self.chunk_size):
            smtp.send(_stuff_dots(chunk, at_line_start=at_line_start))
            self._emit(events.MessageData(octets=len(chunk)))
            at_line_start = chunk.endswith(b"\n")
        smtp.send(DATA_TERMINATOR if at_line_start else CRLF + DATA_TERMINATOR)
        return smtp.getreply()

    @staticmethod
    def describe(e: RemoteDeliveryFailed) -> list[str]:
        lines = [str(e)]
        lines.extend(
            f"{mailbox}: {code} {text}" for mailbox, (code, text) in e.refused.items()
        )
        return lines
