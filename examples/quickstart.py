#!/usr/bin/env python3
# Copyright (C) 2025 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

# pylint: disable=missing-module-docstring, invalid-name

from pathlib import Path

from lockdock.dock import dock_from_lockfile

here = Path(__file__).parent
dock = dock_from_lockfile(
    lockfile=here / "renv.lock",
    distro="focal",
    from_image="rstudio/r-base",
    extra_sysreqs=["git"],
)
dock.write(here / "Dockerfile")
print(dock.render(), end="")
