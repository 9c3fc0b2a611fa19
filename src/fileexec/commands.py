"""Expansion of command templates into concrete command lines."""

from __future__ import annotations

import glob
from collections.abc import Callable, Iterable

from fileexec.errors import CommandParseError
from fileexec.logging import get_logger

log = get_logger("commands")

PLACEHOLDER = "{filepath}"


def split_template(template: str) -> tuple[str, str | None]:
    """Split a template into its executable token and the remaining arguments."""
    head, sep, rest = template.partition(" ")
    return head, (rest if sep else None)


def expand_template(template: str, changed_path: str) -> list[str]:
    """Expand one template for a changed file.

    The leading token is treated as a glob. With no match the template is kept
    as-is (the executable is resolved from PATH at run time); otherwise one
    command line is produced per match, in sorted order. The placeholder is
    then replaced with ``changed_path`` everywhere it occurs.

    Raises:
        CommandParseError: If the template has no executable token.
    """
    head, rest = split_template(template)
    if not head:
        raise CommandParseError(template, "missing executable")

    matches = sorted(glob.glob(head))
    if not matches:
        lines = [template]
    elif rest is None:
        lines = matches
    else:
        lines = [f"{match} {rest}" for match in matches]

    return [line.replace(PLACEHOLDER, changed_path) for line in lines]


def expand_commands(
    templates: Iterable[str],
    changed_path: str,
    report: Callable[[Exception], None] | None = None,
) -> list[str]:
    """Expand all templates, in configuration order.

    Templates that fail to expand are reported and skipped.
    """
    commands: list[str] = []
    for template in templates:
        try:
            commands.extend(expand_template(template, changed_path))
        except CommandParseError as e:
            log.error("%s", e)
            if report:
                report(e)
    return commands


class CommandExpander:
    """Holds the configured templates and expands them per changed file."""

    def __init__(self, templates: Iterable[str]) -> None:
        self.templates = list(templates)

    def expand(
        self,
        changed_path: str,
        report: Callable[[Exception], None] | None = None,
    ) -> list[str]:
        commands = expand_commands(self.templates, changed_path, report)
        log.debug("expanded %d template(s) into %d command(s) for %s",
                  len(self.templates), len(commands), changed_path)
        return commands
