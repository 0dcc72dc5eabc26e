# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
System requirements of R packages: lookup (`resolver`) and Dockerfile command plans
(`aggregate`).
"""

from lockdock.sysreqs.aggregate import (
    AggregationMode,
    CommandPlan,
    ShellCommand,
    aggregate,
    compact_sysreqs,
    expand_sysreqs,
)
from lockdock.sysreqs.resolver import (
    Resolution,
    SysreqsResolver,
    requirement_sets,
    resolve_requirements,
)

__all__ = [
    "AggregationMode",
    "CommandPlan",
    "Resolution",
    "ShellCommand",
    "SysreqsResolver",
    "aggregate",
    "compact_sysreqs",
    "expand_sysreqs",
    "requirement_sets",
    "resolve_requirements",
]
