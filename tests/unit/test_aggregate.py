# Copyright (C) 2025 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT
"""Unit tests for the aggregation of system requirements into command plans.

These tests verify that:
- Compact plans merge consecutive install targets into one install command, without duplicates
  and in first-occurrence order, keep other commands where they are, and never emit an install
  verb without targets.
- Expand plans keep one line per distinct requirement set, merging identical sets only.
- Extra system packages are merged (compact) or appended as their own steps (expand).
"""

import pytest

from lockdock.distros import Distro, get_distro_config
from lockdock.sysreqs.aggregate import (
    AggregationMode,
    CommandPlan,
    ShellCommand,
    aggregate,
    compact_sysreqs,
    expand_sysreqs,
    extra_install_commands,
    flatten_unique,
    merge_install_commands,
    unique,
)

FOCAL = get_distro_config(Distro.FOCAL)
CENTOS8 = get_distro_config(Distro.CENTOS8)
UPDATE = "apt-get update -y"
CLEAN = "rm -rf /var/lib/apt/lists/*"


def test_unique_keeps_first_occurrence() -> None:
    """Duplicates are dropped without reordering the remaining items."""
    assert unique(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


def test_flatten_unique_preserves_package_order() -> None:
    """[[a, b], [b, c]] flattens to [a, b, c]: first occurrence wins."""
    assert flatten_unique([["a", "b"], ["b", "c"]]) == ["a", "b", "c"]


def test_extra_install_commands_use_install_verb() -> None:
    """Each extra package becomes one install command; blanks and duplicates are dropped."""
    assert extra_install_commands(["git", " ", "git", "make"], "apt-get install -y") == [
        "apt-get install -y git",
        "apt-get install -y make",
    ]


def test_merge_install_commands_keeps_other_commands_in_place() -> None:
    """Non-install commands stay between the installs that precede and follow them."""
    merged = merge_install_commands(
        commands=[
            "apt-get install -y software-properties-common",
            "add-apt-repository -y ppa:cran/libgit2",
            "apt-get update",
            "apt-get install -y libgit2-dev",
        ],
        install_cmd="apt-get install -y",
    )
    assert merged == (
        "apt-get install -y software-properties-common"
        " && add-apt-repository -y ppa:cran/libgit2"
        " && apt-get update"
        " && apt-get install -y libgit2-dev"
    )


def test_merge_install_commands_installs_each_target_once() -> None:
    """A target already installed before a shell command is not installed again after it."""
    merged = merge_install_commands(
        commands=[
            "apt-get install -y libgit2-dev",
            "add-apt-repository -y ppa:cran/libgit2",
            "apt-get install -y libssh-dev libgit2-dev",
        ],
        install_cmd="apt-get install -y",
    )
    assert merged == (
        "apt-get install -y libgit2-dev"
        " && add-apt-repository -y ppa:cran/libgit2"
        " && apt-get install -y libssh-dev"
    )


def test_merge_install_commands_keeps_shell_commands_verbatim() -> None:
    """A ShellCommand is never taken for a bare package name."""
    merged = merge_install_commands(
        commands=["apt-get install -y libgit2-dev", ShellCommand("ldconfig")],
        install_cmd="apt-get install -y",
    )
    assert merged == "apt-get install -y libgit2-dev && ldconfig"


def test_merge_install_commands_without_targets() -> None:
    """An install verb alone contributes nothing; nothing to install gives no line at all."""
    assert merge_install_commands(["apt-get install -y", "  "], "apt-get install -y") is None
    assert merge_install_commands([], "apt-get install -y") is None


def test_compact_plan_merges_targets() -> None:
    """Overlapping requirement sets collapse into one deduplicated install line."""
    plan = compact_sysreqs(
        requirement_sets=[
            ["apt-get install -y libcurl4-openssl-dev", "apt-get install -y libssl-dev"],
            [],
            ["apt-get install -y libxml2-dev", "apt-get install -y libssl-dev"],
        ],
        extra_targets=[],
        config=FOCAL,
    )
    assert plan.mode == AggregationMode.COMPACT
    assert plan.commands == (
        UPDATE,
        "apt-get install -y libcurl4-openssl-dev libssl-dev libxml2-dev",
        CLEAN,
    )


def test_compact_plan_order_preservation() -> None:
    """Bare targets [[a, b], [b, c]] are installed as a b c."""
    plan = compact_sysreqs([["a", "b"], ["b", "c"]], extra_targets=[], config=FOCAL)
    assert plan.install_commands == ("apt-get install -y a b c",)


def test_compact_plan_is_idempotent() -> None:
    """Aggregating the same input twice yields the same plan."""
    sets = [["apt-get install -y libpng-dev"], ["apt-get install -y libjpeg-dev"]]
    first = compact_sysreqs(sets, extra_targets=["git"], config=FOCAL)
    second = compact_sysreqs(sets, extra_targets=["git"], config=FOCAL)
    assert first == second


def test_compact_plan_without_requirements() -> None:
    """All-empty requirement sets give exactly [update, clean]."""
    plan = compact_sysreqs([[], [], []], extra_targets=[], config=FOCAL)
    assert plan.commands == (UPDATE, CLEAN)
    assert plan.install_commands == ()


def test_compact_plan_merges_extra_targets() -> None:
    """Requirement [a] plus extra target b installs exactly a and b."""
    plan = compact_sysreqs([["a"]], extra_targets=["b"], config=FOCAL)
    assert plan.commands == (UPDATE, "apt-get install -y a b", CLEAN)
    targets = plan.install_commands[0].split()[3:]
    assert sorted(targets) == ["a", "b"]


def test_compact_plan_extra_target_already_required() -> None:
    """An extra target that a package already requires is installed once."""
    plan = compact_sysreqs(
        [["apt-get install -y git"]],
        extra_targets=["git", "make"],
        config=FOCAL,
    )
    assert plan.install_commands == ("apt-get install -y git make",)


def test_compact_plan_centos() -> None:
    """The RPM family uses yum commands."""
    plan = compact_sysreqs([["yum install -y libxml2-devel"]], extra_targets=[], config=CENTOS8)
    assert plan.commands == (
        "yum update -y",
        "yum install -y libxml2-devel",
        "yum clean all && rm -rf /var/cache/yum",
    )


def test_compact_plan_is_one_step() -> None:
    """A compact plan is issued as one build step."""
    plan = compact_sysreqs([["a"]], extra_targets=[], config=FOCAL)
    assert plan.steps() == [[UPDATE, "apt-get install -y a", CLEAN]]


def test_expand_plan_merges_identical_sets_only() -> None:
    """[x] and [x] collapse; [x] and [x, y] stay separate."""
    identical = expand_sysreqs([["x"], ["x"]], extra_targets=[], config=FOCAL)
    assert identical.commands == (UPDATE, "x", CLEAN)

    overlapping = expand_sysreqs([["x"], ["x", "y"]], extra_targets=[], config=FOCAL)
    assert overlapping.commands == (UPDATE, "x", "x && y", CLEAN)


def test_expand_plan_skips_empty_sets() -> None:
    """Packages without requirements do not produce steps; length is 2 + distinct sets."""
    sets = [[], ["apt-get install -y libxml2-dev"], [], ["apt-get install -y libxml2-dev"]]
    plan = expand_sysreqs(sets, extra_targets=[], config=FOCAL)
    assert len(plan.commands) == 3
    assert plan.install_commands == ("apt-get install -y libxml2-dev",)

    empty = expand_sysreqs([[], []], extra_targets=[], config=FOCAL)
    assert empty.commands == (UPDATE, CLEAN)


def test_expand_plan_appends_extra_targets() -> None:
    """Extra packages become their own steps after the resolved ones, without duplicates."""
    plan = expand_sysreqs(
        [["apt-get install -y git"], ["apt-get install -y libxml2-dev"]],
        extra_targets=["git", "make"],
        config=FOCAL,
    )
    assert plan.install_commands == (
        "apt-get install -y git",
        "apt-get install -y libxml2-dev",
        "apt-get install -y make",
    )


def test_compact_plan_keeps_post_install_commands() -> None:
    """Post-install commands such as ldconfig run after the install, as written."""
    plan = compact_sysreqs(
        [["apt-get install -y libgit2-dev", ShellCommand("ldconfig")]],
        extra_targets=[],
        config=FOCAL,
    )
    assert plan.install_commands == ("apt-get install -y libgit2-dev && ldconfig",)


def test_compact_plan_drops_update_and_clean_requirements() -> None:
    """A requirement equal to the update or clean command is not repeated."""
    plan = compact_sysreqs(
        [[UPDATE], ["apt-get install -y libxml2-dev", CLEAN]],
        extra_targets=[],
        config=FOCAL,
    )
    assert plan.commands == (UPDATE, "apt-get install -y libxml2-dev", CLEAN)

    only_update = compact_sysreqs([[UPDATE]], extra_targets=[], config=FOCAL)
    assert only_update.commands == (UPDATE, CLEAN)


def test_expand_plan_drops_update_and_clean_requirements() -> None:
    """A requirement set equal to the update or clean command gets no step of its own."""
    plan = expand_sysreqs(
        [[UPDATE], ["apt-get install -y libxml2-dev"], [CLEAN]],
        extra_targets=[],
        config=FOCAL,
    )
    assert plan.commands == (UPDATE, "apt-get install -y libxml2-dev", CLEAN)


def test_expand_plan_one_step_per_command() -> None:
    """Each command of an expanded plan is its own build step."""
    plan = expand_sysreqs([["x"], ["y"]], extra_targets=[], config=FOCAL)
    assert plan.steps() == [[UPDATE], ["x"], ["y"], [CLEAN]]


@pytest.mark.parametrize(
    "sets",
    [
        [],
        [[]],
        [["a"]],
        [["a", "b"], ["b", "c"], ["c"]],
        [["apt-get install -y a"], ["curl -fsSL https://example.org/key | apt-key add -"]],
        [["apt-get update -y"], ["apt-get install -y libxml2-dev"]],
    ],
)
def test_plan_bounds_and_no_duplicates(sets: list) -> None:
    """Compact plans have 2 or 3 commands; no plan repeats a command."""
    compact = aggregate(sets, config=FOCAL, mode="compact")
    expand = aggregate(sets, config=FOCAL, mode="expand")

    assert len(compact.commands) in (2, 3)
    distinct_sets = {tuple(s) for s in sets if s and tuple(s) not in ((UPDATE,), (CLEAN,))}
    assert len(expand.commands) == 2 + len(distinct_sets)
    for plan in (compact, expand):
        assert len(set(plan.commands)) == len(plan.commands)
        assert plan.commands[0] == UPDATE
        assert plan.commands[-1] == CLEAN
        assert "apt-get install -y" not in [c.strip() for c in plan.commands]


def test_aggregate_dispatch_and_unknown_mode() -> None:
    """aggregate() dispatches on the mode and rejects unknown modes."""
    assert isinstance(aggregate([["a"]], config=FOCAL), CommandPlan)
    assert aggregate([["a"]], config=FOCAL, mode=AggregationMode.EXPAND).mode == "expand"
    with pytest.raises(ValueError):
        aggregate([["a"]], config=FOCAL, mode="sparse")
