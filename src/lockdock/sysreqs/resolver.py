# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
Resolution of the system requirements of R packages.

The requirements of a package are looked up, for a given operating system and release, from the
system requirements API of a Posit (RStudio) Package Manager instance. A lookup returns the
shell commands installing the system libraries the package and its dependencies need.

Lookups are independent from each other and are issued concurrently, with a bounded number of
workers. A failed lookup never aborts the generation: it is recorded as a failed `Resolution`,
logged, and contributes an empty requirement set.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from lockdock.distros import Distro, DistroConfig, get_distro_config
from lockdock.sysreqs.aggregate import ShellCommand

logger = logging.getLogger(__name__)

DEFAULT_SYSREQS_URL = "https://packagemanager.posit.co"
DEFAULT_REPO = "1"
DEFAULT_TIMEOUT = 30
DEFAULT_MAX_WORKERS = 4

# (package, os, os_release) -> install commands
ResolverFunc = Callable[[str, str, str], Sequence[str]]


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of the requirement lookup of one package.

    Attributes:
        package (str): The package name.
        commands (Tuple[str, ...]): The install commands, if the lookup succeeded.
        error (str | None): Why the lookup failed, None if it succeeded.
    """

    package: str
    commands: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def requirement_set(self) -> Tuple[str, ...]:
        """
        The commands of a successful lookup; nothing for a failed one.
        """
        return self.commands if self.ok else ()


class SysreqsResolver:
    """
    Looks up system requirements from a Package Manager system requirements API.

    Instances are callable with the `ResolverFunc` signature and can be shared between threads.
    Without an injected session, every thread issues its lookups through its own
    `requests.Session`. An injected session is used by all threads, so it must be safe to share.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SYSREQS_URL,
        repo: str = DEFAULT_REPO,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Parameters:
            base_url (str): The Package Manager URL.
            repo (str): The Package Manager repository id.
            timeout (float): Timeout of one lookup, in seconds.
            session (requests.Session, optional): The HTTP session all lookups are issued with.
                                                  Defaults to one session per thread.
        """
        self._base_url = base_url.rstrip("/")
        self._repo = repo
        self._timeout = timeout
        self._session = session
        self._local = threading.local()

    def _client(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    @property
    def url(self) -> str:
        return f"{self._base_url}/__api__/repos/{self._repo}/sysreqs"

    def __call__(self, package: str, os: str, os_release: str) -> Tuple[str, ...]:
        """
        Looks up the install commands of a package.

        Parameters:
            package (str): The R package name.
            os (str): The operating system (e.g., 'ubuntu').
            os_release (str): The operating system release (e.g., '20.04').

        Returns:
            Tuple[str, ...]: The install commands, possibly none.

        Raises:
            requests.RequestException: If the request fails or times out.
            ValueError: If the reply is not a requirements document.
        """
        response = self._client().get(
            self.url,
            params={
                "all": "false",
                "pkgname": package,
                "distribution": os,
                "release": os_release,
            },
            timeout=self._timeout,
        )
        response.raise_for_status()
        return parse_sysreqs_reply(response.json())


def parse_sysreqs_reply(payload: Any) -> Tuple[str, ...]:
    """
    Extracts the install commands from a system requirements API reply.

    For every requirement, pre-install commands come first, then install scripts, then
    post-install commands. Pre- and post-install commands are returned as `ShellCommand`s: they
    run as written and are never merged into an install command.

    Parameters:
        payload (Any): The decoded JSON reply.

    Returns:
        Tuple[str, ...]: The distinct commands, in order.

    Raises:
        ValueError: If the payload does not have the expected shape.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("requirements", []), list):
        raise ValueError(f"Unexpected system requirements reply: {payload!r}")

    commands: Dict[str, None] = {}
    for entry in payload.get("requirements", []):
        details = entry.get("requirements", {}) if isinstance(entry, dict) else None
        if not isinstance(details, dict):
            raise ValueError(f"Unexpected system requirement entry: {entry!r}")
        for pre in details.get("pre_install", []):
            commands.setdefault(ShellCommand(pre["command"]), None)
        for script in details.get("install_scripts", []):
            commands.setdefault(script, None)
        for post in details.get("post_install", []):
            commands.setdefault(ShellCommand(post["command"]), None)
    return tuple(commands)


def resolve_one(resolver: ResolverFunc, package: str, config: DistroConfig) -> Resolution:
    """
    Looks up the requirements of one package, turning any failure into a failed resolution.

    Parameters:
        resolver (ResolverFunc): The lookup function.
        package (str): The package name.
        config (DistroConfig): The target distribution.

    Returns:
        Resolution: The outcome of the lookup.
    """
    try:
        commands = tuple(resolver(package, config.os, config.os_release))
    except Exception as exc:  # pylint: disable=broad-exception-caught
        reason = f"{type(exc).__name__}: {exc}"
        logger.warning("Could not resolve system requirements of '%s': %s", package, reason)
        return Resolution(package=package, error=reason)
    logger.debug("System requirements of '%s': %s", package, commands)
    return Resolution(package=package, commands=commands)


def resolve_requirements(
    packages: Iterable[str],
    distro: "Distro | str",
    resolver: Optional[ResolverFunc] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: Optional[float] = None,
) -> List[Resolution]:
    """
    Looks up the requirements of several packages concurrently.

    The distribution is validated before any lookup is issued. Results are returned in the
    order of the given packages, whatever the order in which lookups complete.

    With a timeout, a lookup that has not completed once its result is awaited for that long is
    recorded as a failed resolution, and the call returns without waiting for it. This bounds
    lookups through resolvers that do not enforce a timeout of their own.

    Parameters:
        packages (Iterable[str]): The package names.
        distro (Distro | str): The target distribution.
        resolver (ResolverFunc, optional): The lookup function. Defaults to a SysreqsResolver
                                           on the public Package Manager.
        max_workers (int): The maximum number of concurrent lookups.
        timeout (float, optional): How long to wait for each lookup, in seconds. None waits
                                   indefinitely.

    Returns:
        List[Resolution]: One resolution per package, in input order.

    Raises:
        UnsupportedDistroError: If the distribution is not supported.
        ValueError: If max_workers or timeout is not positive.
    """
    config = get_distro_config(distro)
    if max_workers < 1:
        raise ValueError(f"max_workers must be positive, got {max_workers}")
    if timeout is not None and timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")
    package_list = list(packages)
    if not package_list:
        return []
    resolver = resolver or SysreqsResolver()

    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = [
            executor.submit(resolve_one, resolver=resolver, package=package, config=config)
            for package in package_list
        ]
        resolutions = []
        # futures are awaited in submission order
        for package, future in zip(package_list, futures):
            try:
                resolutions.append(future.result(timeout=timeout))
            except FutureTimeoutError:
                reason = f"TimeoutError: lookup timed out after {timeout}s"
                logger.warning(
                    "Could not resolve system requirements of '%s': %s", package, reason
                )
                resolutions.append(Resolution(package=package, error=reason))
        return resolutions
    finally:
        # a hung lookup must not block the caller
        executor.shutdown(wait=False, cancel_futures=True)


def requirement_sets(resolutions: Iterable[Resolution]) -> List[Tuple[str, ...]]:
    """
    Collapses resolutions into requirement sets, failed resolutions giving empty sets.

    Parameters:
        resolutions (Iterable[Resolution]): The resolutions, in package order.

    Returns:
        List[Tuple[str, ...]]: One requirement set per resolution.
    """
    return [r.requirement_set for r in resolutions]
