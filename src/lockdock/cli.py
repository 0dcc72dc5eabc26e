# Copyright (C) 2025 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT
"""
CLI interface for lockdock.

This module provides a command-line interface generating Dockerfiles from renv lockfiles.
It exposes two subcommands:

- `generate`: reads a lockfile, looks up the system requirements of its packages and writes
  the Dockerfile restoring the locked environment.
- `distros`: lists the supported target distributions.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import click

from lockdock.distros import DISTRO_CONFIGS, available_distros, gen_base_image
from lockdock.dock import DEFAULT_FROM, DEFAULT_REPOS, dock_from_lockfile
from lockdock.lockfile import LockfileError
from lockdock.sysreqs.resolver import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_SYSREQS_URL,
    DEFAULT_TIMEOUT,
    SysreqsResolver,
)

# Make "-h" behave like "--help"
CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def parse_repos(repos: Tuple[str, ...]) -> Dict[str, str]:
    """
    Parse `NAME=URL` repository specifications.

    Returns:
        The repositories in the given order, or the default repositories if none is given.
    """
    if not repos:
        return dict(DEFAULT_REPOS)
    parsed: Dict[str, str] = {}
    for spec in repos:
        name, sep, url = spec.partition("=")
        if not sep or not name.strip() or not url.strip():
            raise click.BadParameter(f"expected NAME=URL, got '{spec}'", param_hint="--repos")
        parsed[name.strip()] = url.strip()
    return parsed


def split_extra_sysreqs(extra_sysreqs: Tuple[str, ...]) -> list[str]:
    """
    Flatten repeated and comma-separated `--extra-sysreqs` values.
    """
    return [s.strip() for value in extra_sysreqs for s in value.split(",") if s.strip()]


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(
    package_name="lockdock",
    prog_name="lockdock",
    message="%(prog)s %(version)s",
)
@click.option("-v", "--verbose", is_flag=True, help="Log requirement lookups")
def cli(verbose: bool) -> None:
    """lockdock: generate reproducible R Dockerfiles from renv lockfiles."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option(
    "--lockfile",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("renv.lock"),
    show_default=True,
    help="Path to the renv lockfile",
)
@click.option(
    "--distro",
    type=click.Choice(available_distros()),
    default="focal",
    show_default=True,
    help="Target distribution",
)
@click.option("--from", "from_image", default=DEFAULT_FROM, show_default=True, help="Base image")
@click.option("--as", "alias", default=None, help="Build stage name")
@click.option(
    "--sysreqs/--no-sysreqs",
    default=True,
    show_default=True,
    help="Install the system requirements of the packages",
)
@click.option("--expand", is_flag=True, help="One RUN instruction per system requirement")
@click.option("--repos", multiple=True, help="Package repository as NAME=URL (repeatable)")
@click.option(
    "--extra-sysreqs",
    multiple=True,
    help="Additional system packages, comma-separated or repeated",
)
@click.option(
    "--sysreqs-url",
    envvar="LOCKDOCK_SYSREQS_URL",
    default=DEFAULT_SYSREQS_URL,
    show_default=True,
    help="Package Manager serving system requirements",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Concurrent requirement lookups",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Timeout of one requirement lookup, in seconds; a slower lookup counts as failed",
)
@click.option(
    "--output",
    type=click.Path(),
    help="Write the Dockerfile to file (stdout if omitted)",
)
def generate(
    lockfile: Path,
    distro: str,
    from_image: str,
    alias: Optional[str],
    sysreqs: bool,
    expand: bool,
    repos: Tuple[str, ...],
    extra_sysreqs: Tuple[str, ...],
    sysreqs_url: str,
    workers: int,
    timeout: float,
    output: Optional[str],
) -> None:
    """
    Generate a Dockerfile from an renv lockfile.

    The Dockerfile installs the system requirements of the locked packages, then restores the
    exact package versions with renv::restore().
    """
    try:
        dock = dock_from_lockfile(
            lockfile=lockfile,
            distro=distro,
            from_image=from_image,
            alias=alias,
            sysreqs=sysreqs,
            repos=parse_repos(repos),
            expand=expand,
            extra_sysreqs=split_extra_sysreqs(extra_sysreqs),
            resolver=SysreqsResolver(base_url=sysreqs_url, timeout=timeout),
            max_workers=workers,
            lookup_timeout=timeout,
        )
    except LockfileError as exc:
        raise click.ClickException(str(exc)) from exc

    if output:
        dock.write(output)
        click.echo(f"Dockerfile written to {output}")
    else:
        click.echo(dock.render(), nl=False)


@cli.command()
def distros() -> None:
    """List the supported target distributions."""
    for config in DISTRO_CONFIGS.values():
        image = gen_base_image(
            distro=config.distro,
            r_version="<R version>",
            from_image="rstudio/r-base",
        )
        click.echo(f"{config.distro.value}\t{config.os} {config.os_release}\t{image}")


def main() -> None:
    """Entry point for the lockdock CLI when installed as a script."""
    cli()


if __name__ == "__main__":
    main()
