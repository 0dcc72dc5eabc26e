# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
Aggregation of system requirements into the package manager commands of a Dockerfile.

Every package of a lockfile comes with a (possibly empty) requirement set: the shell commands,
typically `apt-get install -y <pkg>` lines, installing the system libraries the package needs.
This module turns the requirement sets of all packages into a command plan, in one of two modes:

- compact: a single build step `update && install <all targets> && clean`, where the install
  targets of every package are merged into one install command, without duplicates;
- expand: one build step per distinct requirement set, between an update step and a clean step,
  so that adding a package only invalidates the cache of the layers that follow it.

In both modes the order of the commands only depends on the order of the requirement sets, which
is the lockfile order of the packages.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Iterable, List, Sequence, Tuple, TypeVar

from lockdock.distros import DistroConfig

RequirementSet = Tuple[str, ...]

T = TypeVar("T", bound=Hashable)

# A command containing any of these is not a plain list of install targets.
_SHELL_SYNTAX = re.compile(r"[;&|<>`$()\\]")


class AggregationMode(str, Enum):
    """
    How requirement sets are laid out in the Dockerfile.
    """

    COMPACT = "compact"
    EXPAND = "expand"


@dataclass(frozen=True)
class CommandPlan:
    """
    The system requirement commands of a Dockerfile.

    The first command always refreshes the package index and the last one always cleans the
    package manager caches. The commands in between install the requirements.

    Attributes:
        mode (AggregationMode): The aggregation mode the plan was built with.
        commands (Tuple[str, ...]): The shell commands, in execution order.
    """

    mode: AggregationMode
    commands: Tuple[str, ...]

    @property
    def install_commands(self) -> Tuple[str, ...]:
        """
        The commands between the update and the clean commands.
        """
        return self.commands[1:-1]

    def steps(self) -> List[List[str]]:
        """
        Groups the commands into Dockerfile build steps.

        Returns:
            List[List[str]]: One list of chained commands per RUN instruction: a single step in
                             compact mode, one step per command in expand mode.
        """
        if self.mode == AggregationMode.COMPACT:
            return [list(self.commands)]
        return [[command] for command in self.commands]


def unique(items: Iterable[T]) -> List[T]:
    """
    Removes duplicates, keeping the first occurrence of every item.

    Parameters:
        items (Iterable[T]): The items to deduplicate.

    Returns:
        List[T]: The distinct items, in order of first occurrence.
    """
    return list(dict.fromkeys(items))


def flatten_unique(requirement_sets: Iterable[Sequence[str]]) -> List[str]:
    """
    Flattens requirement sets in order and removes duplicate commands.

    Parameters:
        requirement_sets (Iterable[Sequence[str]]): The requirement sets, in package order.

    Returns:
        List[str]: The distinct commands, in order of first occurrence.
    """
    return unique(command for commands in requirement_sets for command in commands)


def extra_install_commands(extra_targets: Iterable[str], install_cmd: str) -> List[str]:
    """
    Builds one install command per extra system package.

    Parameters:
        extra_targets (Iterable[str]): Names of system packages to install (e.g., 'git').
        install_cmd (str): The install verb of the distribution (e.g., 'apt-get install -y').

    Returns:
        List[str]: The install commands, without duplicates.
    """
    targets = (t.strip() for t in extra_targets)
    return unique(f"{install_cmd} {t}" for t in targets if t)


class ShellCommand(str):
    """
    A requirement command that must run as written, never merged into an install command.

    Requirement lookups wrap the repository setup and post-install commands they return (such
    as `add-apt-repository ...` or `ldconfig`) in this type.
    """


def _install_targets(command: str, install_cmd: str) -> List[str] | None:
    """
    Returns the targets installed by a command, or None if the command is not a plain install.

    A plain install is the install verb followed by package names, or a bare package name.
    """
    if isinstance(command, ShellCommand) or _SHELL_SYNTAX.search(command):
        return None
    command = command.strip()
    if command == install_cmd or command.startswith(f"{install_cmd} "):
        return command[len(install_cmd) :].split()
    words = command.split()
    if len(words) == 1:
        return words
    return None


def _is_bracket_command(command: str, config: DistroConfig) -> bool:
    # The plan always opens with the update and closes with the clean command.
    return command.strip() in (config.update_cmd, config.clean_cmd)


def merge_install_commands(commands: Sequence[str], install_cmd: str) -> str | None:
    """
    Merges commands into a single install command line.

    Consecutive plain install commands are merged into one install command. Other commands are
    kept verbatim, at their position, so that an install always runs after the repository setup
    preceding it. A target is only installed once, at its first occurrence.

    Parameters:
        commands (Sequence[str]): The distinct requirement commands, in order.
        install_cmd (str): The install verb of the distribution.

    Returns:
        str | None: The merged line, or None if there is nothing to install.
    """
    parts: List[str] = []
    pending: List[str] = []
    installed: set = set()

    def flush() -> None:
        if pending:
            parts.append(f"{install_cmd} {' '.join(pending)}")
            pending.clear()

    for command in commands:
        if not command.strip():
            continue
        command_targets = _install_targets(command=command, install_cmd=install_cmd)
        if command_targets is None:
            flush()
            parts.append(command.strip())
            continue
        for target in command_targets:
            if target not in installed:
                installed.add(target)
                pending.append(target)
    flush()

    if not parts:
        return None
    return " && ".join(unique(parts))


def compact_sysreqs(
    requirement_sets: Sequence[Sequence[str]],
    extra_targets: Sequence[str],
    config: DistroConfig,
) -> CommandPlan:
    """
    Builds a compact plan: update, one merged install line, clean.

    The install line is omitted when nothing has to be installed.

    Parameters:
        requirement_sets (Sequence[Sequence[str]]): The requirement sets, in package order.
        extra_targets (Sequence[str]): Additional system packages to install.
        config (DistroConfig): The target distribution.

    Returns:
        CommandPlan: A plan of two or three commands.
    """
    commands = flatten_unique(requirement_sets)
    if extra_targets:
        commands = unique(commands + extra_install_commands(extra_targets, config.install_cmd))

    install_line = merge_install_commands(
        commands=[c for c in commands if not _is_bracket_command(c, config)],
        install_cmd=config.install_cmd,
    )
    install_lines = [install_line] if install_line else []

    return CommandPlan(
        mode=AggregationMode.COMPACT,
        commands=tuple([config.update_cmd] + install_lines + [config.clean_cmd]),
    )


def expand_sysreqs(
    requirement_sets: Sequence[Sequence[str]],
    extra_targets: Sequence[str],
    config: DistroConfig,
) -> CommandPlan:
    """
    Builds an expanded plan: update, one line per distinct requirement set, clean.

    Requirement sets are only merged when they are identical; sets sharing some of their
    commands each keep their own line. Every extra target becomes a requirement set of its own,
    after the resolved ones.

    Parameters:
        requirement_sets (Sequence[Sequence[str]]): The requirement sets, in package order.
        extra_targets (Sequence[str]): Additional system packages to install.
        config (DistroConfig): The target distribution.

    Returns:
        CommandPlan: A plan of two commands plus one per distinct requirement set.
    """
    sets: List[RequirementSet] = [tuple(s) for s in requirement_sets if s]
    sets += [(c,) for c in extra_install_commands(extra_targets, config.install_cmd)]

    install_lines = [
        line
        for line in unique(" && ".join(s) for s in unique(sets))
        if not _is_bracket_command(line, config)
    ]

    return CommandPlan(
        mode=AggregationMode.EXPAND,
        commands=tuple([config.update_cmd] + install_lines + [config.clean_cmd]),
    )


def aggregate(
    requirement_sets: Sequence[Sequence[str]],
    config: DistroConfig,
    extra_targets: Sequence[str] = (),
    mode: AggregationMode | str = AggregationMode.COMPACT,
) -> CommandPlan:
    """
    Builds the command plan of a set of requirement sets.

    Parameters:
        requirement_sets (Sequence[Sequence[str]]): The requirement sets, in package order.
        config (DistroConfig): The target distribution.
        extra_targets (Sequence[str]): Additional system packages to install.
        mode (AggregationMode | str): 'compact' or 'expand'.

    Returns:
        CommandPlan: The command plan.

    Raises:
        ValueError: If the mode is unknown.
    """
    match AggregationMode(mode):
        case AggregationMode.COMPACT:
            return compact_sysreqs(requirement_sets, list(extra_targets), config)
        case AggregationMode.EXPAND:
            return expand_sysreqs(requirement_sets, list(extra_targets), config)
