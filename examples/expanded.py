#!/usr/bin/env python3
# Copyright (C) 2025 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

# pylint: disable=missing-module-docstring, invalid-name

from pathlib import Path

from lockdock.dock import dock_from_lockfile

# One RUN instruction per requirement set: adding a package to the lockfile only rebuilds the
# layers after its requirements.
here = Path(__file__).parent
dock = dock_from_lockfile(
    lockfile=here / "renv.lock",
    distro="centos8",
    from_image="rstudio/r-base",
    alias="deps",
    expand=True,
    repos={"CRAN": "https://packagemanager.posit.co/cran/__linux__/centos8/latest"},
    max_workers=8,
)
dock.desc("application")
dock.copy(source="app.R", destination="/srv/app.R")
print(dock.render(), end="")
