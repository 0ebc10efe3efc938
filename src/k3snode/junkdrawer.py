from __future__ import annotations

import hashlib
import typing

import click


def print_steps(steps: list[tuple[str, typing.Any]]):
    click.secho(
        "∙ " + ("\n∙ ".join([name for name, _ in steps])) + "\n",
        fg="white",
        bold=True,
    )


def filter_steps_after_start(start_at_step: str, steps: list[tuple[str, typing.Any]]) -> list[tuple[str, typing.Any]]:
    if len(steps) == 0:
        return steps

    return steps[[name for (name, step) in steps].index(start_at_step) :]


def text_signature(s: str) -> str:
    return hashlib.sha256(s.encode(), usedforsecurity=False).hexdigest()
