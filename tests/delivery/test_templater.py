# SPDX-FileCopyrightText: 2023 Gert van Dijk <github@gertvandijk.nl>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest

from purepythonsendmail.delivery.templater import expand_command


def test_expand_sender_and_recipients() -> None:
    expanded = expand_command(
        "/bin/mda -f %F -- %T", local_recipients=["a", "b"], reverse_path="o'brien@x"
    )
    assert expanded.command == "/bin/mda -f 'o_brien@x' -- 'a b'"
    assert expanded.length == len(expanded.command)


@pytest.mark.parametrize(
    ("template", "recipients", "reverse_path", "expected"),
    [
        pytest.param(
            "/usr/bin/procmail -d %T",
            ["alice"],
            None,
            "/usr/bin/procmail -d 'alice'",
            id="default-mda",
        ),
        pytest.param("mda %T", [], None, "mda ''", id="no-recipients"),
        pytest.param("mda -f %F", ["a"], None, "mda -f ''", id="no-reverse-path"),
        pytest.param(
            "mda %T %T", ["a", "b"], None, "mda 'a b' 'a b'", id="repeated"
        ),
        pytest.param("mda %F%T", ["a"], "s@x", "mda 's@x''a'", id="adjacent"),
        pytest.param(
            "mda %T", ["it's", "o'k"], None, "mda 'it_s o_k'", id="quotes-sanitized"
        ),
        pytest.param(
            "printf '%s %%' %T", ["a"], None, "printf '%s %%' 'a'", id="others-verbatim"
        ),
        pytest.param("mda", ["a"], "s@x", "mda", id="no-placeholders"),
        pytest.param("", ["a"], None, "", id="empty-template"),
        pytest.param("mda %", ["a"], None, "mda %", id="trailing-percent"),
    ],
)
def test_expand(
    template: str, recipients: list[str], reverse_path: str | None, expected: str
) -> None:
    expanded = expand_command(
        template, local_recipients=recipients, reverse_path=reverse_path
    )
    assert expanded.command == expected
    assert expanded.length == len(expected)
