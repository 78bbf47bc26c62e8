# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

import attrs

from ..message.exceptions import InternalContractViolation

if TYPE_CHECKING:
    from collections.abc import Sequence

PLACEHOLDER_RECIPIENTS: Final[str] = "T"
PLACEHOLDER_FROM: Final[str] = "F"
_placeholder_re: Final[re.Pattern[str]] = re.compile(
    f"%([{PLACEHOLDER_RECIPIENTS}{PLACEHOLDER_FROM}])"
)


def sanitize(value: str) -> str:
    # The values end up single-quoted in a shell command line.
    return value.replace("'", "_")


def quote(value: str) -> str:
    return f"'{value}'"


@attrs.define(kw_only=True, slots=True, frozen=True)
class ExpandedCommand:
    command: str
    length: int


def expand_command(
    template: str, *, local_recipients: Sequence[str], reverse_path: str | None
) -> ExpandedCommand:
    """
    Substitute `%T` with the local recipients (space separated) and `%F` with the
    reverse path, each sanitized and single-quoted, e.g.
        '/bin/mda -f %F -- %T'
    with sender "o'brien@x" and recipients 'a' and 'b' becomes
        "/bin/mda -f 'o_brien@x' -- 'a b'"
    Any other `%` sequence is copied as-is.
    """
    placeholders = [m.group(1) for m in _placeholder_re.finditer(template)]
    n_recipients = placeholders.count(PLACEHOLDER_RECIPIENTS)
    n_from = placeholders.count(PLACEHOLDER_FROM)
    if not placeholders:
        return ExpandedCommand(command=template, length=len(template))

    names = sanitize(" ".join(local_recipients)) if n_recipients else ""
    from_ = sanitize(reverse_path or "") if n_from else ""
    values = {PLACEHOLDER_RECIPIENTS: names, PLACEHOLDER_FROM: from_}

    length = (
        len(template)
        - 2 * len(placeholders)
        + n_recipients * (len(names) + 2)
        + n_from * (len(from_) + 2)
    )
    command = _placeholder_re.sub(lambda m: quote(values[m.group(1)]), template)
    if len(command) != length:
        raise InternalContractViolation(
            f"Expanded command has length {len(command)}, expected {length}"
        )
    return ExpandedCommand(command=command, length=length)
