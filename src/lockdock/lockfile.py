# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
Reader for renv lockfiles (`renv.lock`).

A lockfile is a JSON document pinning the R version, the package repositories and, for every
package, its exact version and source:

    {
      "R": {"Version": "4.1.2", "Repositories": [{"Name": "CRAN", "URL": "..."}]},
      "Packages": {"glue": {"Package": "glue", "Version": "1.6.2", "Source": "Repository", ...}}
    }

Only what the Dockerfile generation needs is modelled; the remaining fields of each package
record are kept verbatim.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping


class LockfileError(ValueError):
    """
    Raised when a lockfile is missing or malformed.
    """


@dataclass(frozen=True)
class PackageRecord:
    """
    A package pinned by the lockfile.

    Attributes:
        name (str): The package name.
        version (str): The pinned version.
        source (str | None): Where the package comes from (e.g., 'Repository', 'GitHub').
        repository (str | None): The repository name for repository sources (e.g., 'CRAN').
        metadata (Mapping[str, Any]): The full lockfile record, verbatim.
    """

    name: str
    version: str
    source: str | None = None
    repository: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class RenvLockfile:
    """
    Content of a lockfile.

    Attributes:
        r_version (str): The R version the packages were locked with.
        repositories (Dict[str, str]): Repository names mapped to their URL, in lockfile order.
        packages (Dict[str, PackageRecord]): Package records by name, in lockfile order.
    """

    r_version: str
    repositories: Dict[str, str]
    packages: Dict[str, PackageRecord]

    @property
    def package_names(self) -> List[str]:
        """
        The names of the locked packages, in lockfile order.
        """
        return list(self.packages)


def parse_lockfile(raw: str) -> RenvLockfile:
    """
    Parses the JSON content of a lockfile.

    Parameters:
        raw (str): The lockfile content.

    Returns:
        RenvLockfile: The parsed lockfile.

    Raises:
        LockfileError: If the content is not a valid lockfile.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Invalid lockfile JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise LockfileError("Invalid lockfile: expected a JSON object.")

    r_section = payload.get("R")
    if not isinstance(r_section, dict):
        raise LockfileError("Invalid lockfile: missing 'R' section.")
    r_version = r_section.get("Version")
    if not isinstance(r_version, str) or not r_version:
        raise LockfileError("Invalid lockfile: missing 'R.Version'.")

    repositories = _parse_repositories(r_section.get("Repositories", []))

    packages_section = payload.get("Packages", {})
    if not isinstance(packages_section, dict):
        raise LockfileError("Invalid lockfile: 'Packages' must be an object.")
    packages = {
        name: _parse_package(name=name, record=record)
        for name, record in packages_section.items()
    }

    return RenvLockfile(r_version=r_version, repositories=repositories, packages=packages)


def read_lockfile(path: str | Path) -> RenvLockfile:
    """
    Reads and parses a lockfile from disk.

    Parameters:
        path (str | Path): The lockfile path.

    Returns:
        RenvLockfile: The parsed lockfile.

    Raises:
        LockfileError: If the file does not exist or is not a valid lockfile.
    """
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(f'Lockfile does not exist: "{lock_path}"') from exc
    return parse_lockfile(raw)


def _parse_repositories(section: Any) -> Dict[str, str]:
    if not isinstance(section, list):
        raise LockfileError("Invalid lockfile: 'R.Repositories' must be a list.")
    repositories = {}
    for entry in section:
        if not isinstance(entry, dict) or "Name" not in entry or "URL" not in entry:
            raise LockfileError(f"Invalid repository entry in lockfile: {entry!r}")
        repositories[str(entry["Name"])] = str(entry["URL"])
    return repositories


def _parse_package(name: str, record: Any) -> PackageRecord:
    if not isinstance(record, dict):
        raise LockfileError(f"Invalid record for package '{name}' in lockfile.")
    version = record.get("Version")
    if not isinstance(version, str):
        raise LockfileError(f"Missing version for package '{name}' in lockfile.")
    return PackageRecord(
        name=name,
        version=version,
        source=record.get("Source"),
        repository=record.get("Repository"),
        metadata=dict(record),
    )
