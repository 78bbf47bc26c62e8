# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import sys
from typing import BinaryIO, NoReturn

import click

import purepythonsendmail
from purepythonsendmail import (
    LocalDelivery,
    LoggingEventMonitor,
    Message,
    NotifyFlags,
    RemoteDelivery,
    SmtpIdentity,
    StarttlsMode,
)
from purepythonsendmail.api.logger import MessageContextLogger, message_context
from purepythonsendmail.delivery.exceptions import (
    LocalDeliveryFailed,
    RemoteDeliveryFailed,
    RemoteDeliveryUnavailable,
)
from purepythonsendmail.message import definitions
from purepythonsendmail.message.exceptions import (
    AllocationFailure,
    InternalContractViolation,
    MalformedHeaders,
    SourceReadFailure,
)

logger = MessageContextLogger().get("purepythonsendmail")


def _fail(reason: str, exit_code: int) -> NoReturn:
    logger.error(reason)
    click.echo(reason, err=True)
    sys.exit(exit_code)


def send(
    message: Message,
    *,
    remote_delivery: RemoteDelivery,
    local_delivery: LocalDelivery | None,
) -> int:
    """
    Parse the headers of the message and hand it to remote and local delivery.
    Returns the exit status.
    """
    try:
        message.parse_headers()
    except MalformedHeaders as e:
        _fail(f"Malformed message: {e}", definitions.EX_DATAERR)

    if not message.recipients:
        _fail(
            "No recipients given, nor found in the message headers.",
            definitions.EX_USAGE,
        )

    try:
        if message.recipients.remote:
            remote_delivery.deliver(message)
        if message.recipients.local:
            if local_delivery is None:
                logger.warning(
                    f"No MDA configured; not delivering to local recipients "
                    f"{message.recipients.local}"
                )
            else:
                message.rewind()
                local_delivery.deliver(message)
    except RemoteDeliveryUnavailable as e:
        _fail(str(e), definitions.EX_UNAVAILABLE)
    except RemoteDeliveryFailed as e:
        _fail("\n".join(RemoteDelivery.describe(e)), definitions.EX_SOFTWARE)
    except LocalDeliveryFailed as e:
        _fail(str(e), definitions.EX_SOFTWARE)
    return definitions.EX_OK


@click.command(
    context_settings={
        "show_default": True,
        "max_content_width": 200,
        "auto_envvar_prefix": "PUREPYTHONSENDMAIL",
    }
)
@click.option(
    "-f",
    "-r",
    "from_",
    metavar="ADDRESS",
    default=None,
    help="Envelope sender (reverse path).",
)
@click.option(
    "-N",
    "notify",
    metavar="never|failure,delay,success",
    default=None,
    help="Delivery status notification conditions.",
)
@click.option("-v", "--verbose", is_flag=True, help="Report delivery progress.")
@click.option("-i", "ignore_dots", is_flag=True, hidden=True)
@click.option("-t", "recipients_from_headers", is_flag=True, hidden=True)
@click.option("-o", "sendmail_options", multiple=True, hidden=True)
@click.option(
    "--input",
    "input_file",
    type=click.File("rb"),
    default="-",
    help="Message file to send instead of standard input.",
)
@click.option("--host", default=SmtpIdentity().host, show_envvar=True)
@click.option("--port", default=SmtpIdentity().port, show_envvar=True)
@click.option(
    "--starttls",
    type=click.Choice([mode.value for mode in StarttlsMode], case_sensitive=False),
    default=StarttlsMode.DISABLED.value,
    show_envvar=True,
)
@click.option("--user", default=None, show_envvar=True)
@click.option("--password", default=None, show_envvar=True)
@click.option(
    "--mda",
    default=purepythonsendmail.DEFAULT_MDA,
    show_envvar=True,
    help="Command for local delivery; %T and %F expand to recipients and sender. "
    "Empty disables local delivery.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_envvar=True,
)
@click.version_option(package_name="purepythonsendmail", message="%(version)s")
@click.argument("recipients", nargs=-1)
def main(
    *,
    from_: str | None,
    notify: str | None,
    verbose: bool,
    ignore_dots: bool,
    recipients_from_headers: bool,
    sendmail_options: tuple[str, ...],
    input_file: BinaryIO,
    host: str,
    port: int,
    starttls: str,
    user: str | None,
    password: str | None,
    mda: str,
    log_level: str,
    recipients: tuple[str, ...],
) -> None:
    """
    Sendmail-compatible command: reads a message from standard input and delivers it
    to the recipients given and those found in its To, Cc and Bcc headers. Addresses
    without a domain are delivered locally through the MDA, others via SMTP.
    """
    level = getattr(logging, log_level.upper())
    if verbose:
        level = min(level, logging.INFO)
    logging.basicConfig(level=level)
    logger.debug(
        f"Ignored for compatibility: {ignore_dots=} {recipients_from_headers=} "
        f"{sendmail_options=}"
    )

    notify_flags = None
    if notify is not None:
        if (notify_flags := NotifyFlags.from_option(notify)) is None:
            _fail(f"Unknown notification condition {notify!r}", definitions.EX_USAGE)

    identity = SmtpIdentity(
        host=host,
        port=port,
        starttls=StarttlsMode(starttls.lower()),
        username=user,
        password=password,
    )
    remote_delivery = RemoteDelivery(
        identity=identity, on_event=LoggingEventMonitor() if verbose else None
    )
    local_delivery = LocalDelivery(template=mda) if mda else None

    message = Message.from_source(input_file, notify=notify_flags)
    with message_context(message.id_), message:
        if from_ is not None:
            message.set_reverse_path(from_)
        for recipient in recipients:
            message.add_recipient(recipient)
        try:
            exit_code = send(
                message, remote_delivery=remote_delivery, local_delivery=local_delivery
            )
        except AllocationFailure as e:
            _fail(f"Out of memory: {e}", definitions.EX_OSERR)
        except SourceReadFailure as e:
            _fail(str(e), definitions.EX_IOERR)
        except InternalContractViolation as e:
            _fail(f"Internal error: {e}", definitions.EX_SOFTWARE)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
