# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
Generation of a Dockerfile restoring the R environment pinned by an renv lockfile.

The generated Dockerfile:
1) starts from an R base image matching the R version of the lockfile,
2) installs the system requirements of the locked packages,
3) configures the package repositories in Rprofile.site,
4) installs renv and restores the exact package versions of the lockfile.
"""

import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import click

from lockdock.builders import DockerBuilder, PathType
from lockdock.distros import Distro, DistroConfig, gen_base_image, get_distro_config
from lockdock.lockfile import read_lockfile
from lockdock.sysreqs.aggregate import AggregationMode, aggregate
from lockdock.sysreqs.resolver import (
    DEFAULT_MAX_WORKERS,
    ResolverFunc,
    requirement_sets,
    resolve_requirements,
)

DEFAULT_FROM = "rocker/r-base"
DEFAULT_REPOS: Dict[str, str] = {"CRAN": "https://cran.rstudio.com/"}
RPROFILE_PATHS = ["/usr/local/lib/R/etc/Rprofile.site", "/usr/lib/R/etc/Rprofile.site"]

_R_NAME = re.compile(r"^[A-Za-z.][A-Za-z0-9._]*$")


def repos_as_character(repos: Mapping[str, str]) -> str:
    """
    Renders repositories as an R named character vector.

    Parameters:
        repos (Mapping[str, str]): Repository names mapped to their URL.

    Returns:
        str: The R expression, e.g. "c(CRAN = 'https://cran.rstudio.com/')".
    """
    entries = []
    for name, url in repos.items():
        r_name = name if _R_NAME.match(name) else f"`{name}`"
        entries.append(f"{r_name} = '{url}'")
    return f"c({', '.join(entries)})"


def _fetch_requirement_sets(
    packages: List[str],
    config: DistroConfig,
    resolver: Optional[ResolverFunc],
    max_workers: int,
    lookup_timeout: Optional[float],
) -> List[Tuple[str, ...]]:
    click.secho("Please wait while we compute system requirements...", fg="green", err=True)
    click.echo(f"Fetching system dependencies for {len(packages)} package(s) records.", err=True)

    resolutions = resolve_requirements(
        packages=packages,
        distro=config.distro,
        resolver=resolver,
        max_workers=max_workers,
        timeout=lookup_timeout,
    )

    failed = [r.package for r in resolutions if not r.ok]
    if failed:
        click.secho(
            f"Could not fetch system requirements of {len(failed)} package(s): "
            f"{', '.join(failed)}",
            fg="yellow",
            err=True,
        )

    sets = requirement_sets(resolutions)
    if not any(sets):
        click.secho("No sysreqs required", fg="green", err=True)
    click.secho("Done", fg="green", err=True)
    return sets


def dock_from_lockfile(
    lockfile: PathType = "renv.lock",
    distro: "Distro | str" = Distro.FOCAL,
    from_image: str = DEFAULT_FROM,
    alias: Optional[str] = None,
    sysreqs: bool = True,
    repos: Optional[Mapping[str, str]] = None,
    expand: bool = False,
    extra_sysreqs: Sequence[str] = (),
    resolver: Optional[ResolverFunc] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    lookup_timeout: Optional[float] = None,
) -> DockerBuilder:
    """
    Creates a Dockerfile from an renv lockfile.

    System requirements of the locked packages are looked up per package (see
    `lockdock.sysreqs.resolver`) and installed before the packages are restored with
    `renv::restore()`, which installs the exact version and source of every package.

    Parameters:
        lockfile (PathType): Path to the renv.lock file. The Dockerfile copies it from the root of
                             the build context.
        distro (Distro | str): The target distribution: 'xenial', 'bionic', 'focal', 'centos7'
                               or 'centos8'.
        from_image (str): The base image repository. The R version of the lockfile is used as tag
                          (suffixed with the distribution for 'rstudio/r-base').
        alias (str, optional): The build stage name (FROM ... AS alias).
        sysreqs (bool): Whether to install the system requirements of the packages.
        repos (Mapping[str, str], optional): Package repositories set in Rprofile.site.
                                             Defaults to CRAN.
        expand (bool): If True, each distinct requirement set gets its own RUN instruction.
                       Otherwise all requirements are installed by a single RUN instruction.
        extra_sysreqs (Sequence[str]): Additional system packages to install.
        resolver (ResolverFunc, optional): The requirement lookup function. Defaults to the
                                           public Package Manager API.
        max_workers (int): Maximum number of concurrent requirement lookups.
        lookup_timeout (float, optional): How long to wait for one requirement lookup, in
                                          seconds. A lookup taking longer counts as failed.

    Returns:
        DockerBuilder: The Dockerfile, ready to be rendered or written.

    Raises:
        UnsupportedDistroError: If the distribution is not supported.
        LockfileError: If the lockfile is missing or malformed.
    """
    config = get_distro_config(distro)
    lock = read_lockfile(lockfile)
    repos = DEFAULT_REPOS if repos is None else repos

    dock = DockerBuilder(
        from_image=gen_base_image(
            distro=config.distro,
            r_version=lock.r_version,
            from_image=from_image,
        ),
        alias=alias,
    )

    if sysreqs:
        sets = _fetch_requirement_sets(
            packages=lock.package_names,
            config=config,
            resolver=resolver,
            max_workers=max_workers,
            lookup_timeout=lookup_timeout,
        )
    else:
        sets = []

    if sysreqs or extra_sysreqs or expand:
        plan = aggregate(
            requirement_sets=sets,
            config=config,
            extra_targets=extra_sysreqs,
            mode=AggregationMode.EXPAND if expand else AggregationMode.COMPACT,
        )
        for step in plan.steps():
            dock.run_multiple(commands=step)

    dock.run(command="mkdir -p /usr/local/lib/R/etc/ /usr/lib/R/etc/")
    tee = " | ".join(f"tee {p}" for p in RPROFILE_PATHS)
    dock.run(
        command=(
            f'echo "options(renv.config.pak.enabled = TRUE, repos = {repos_as_character(repos)}, '
            f"download.file.method = 'libcurl', Ncpus = 4)\" | {tee}"
        )
    )
    dock.run(command="R -e 'install.packages(c(\"renv\",\"remotes\"))'")
    dock.copy(source=Path(lockfile).name, destination="renv.lock")
    dock.run(command="R -e 'renv::restore()'")

    return dock
