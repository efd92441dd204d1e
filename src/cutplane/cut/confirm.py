"""Human confirmation before an irreversible cut."""

from __future__ import annotations

from collections.abc import Callable

import questionary

from cutplane.diff.models import DiffReport

Confirmation = Callable[[DiffReport], bool]

PROMPT = "Proceed with diamond upgrade?"


def always_confirm(_report: DiffReport) -> bool:
    return True


def never_confirm(_report: DiffReport) -> bool:
    return False


def prompt_confirm(report: DiffReport) -> bool:
    """Ask interactively; defaults to No and treats Ctrl-C as No."""
    extra = " Drift was detected." if report.drift_detected else ""
    answer = questionary.select(
        f"{PROMPT}{extra}",
        choices=[
            questionary.Choice("No, abort", value=False),
            questionary.Choice("Yes, submit the cut", value=True),
        ],
        style=questionary.Style(
            [
                ("question", "bold"),
                ("highlighted", "fg:red bold"),
                ("selected", "fg:red"),
            ]
        ),
    ).ask()
    return bool(answer)
