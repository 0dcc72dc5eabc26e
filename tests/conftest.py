# Copyright (C) 2025 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT
"""
Pytest configuration for lockdock tests.

Registers custom markers:
- network: queries a real Package Manager instance

Provides fixtures for a sample renv lockfile and for fake requirement resolvers, so that no test
depends on the network.
"""

import json
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

import pytest

R_VERSION = "4.1.2"

# Requirements as served for Ubuntu by the Package Manager, in lockfile order.
SAMPLE_SYSREQS: Dict[str, Tuple[str, ...]] = {
    "curl": ("apt-get install -y libcurl4-openssl-dev", "apt-get install -y libssl-dev"),
    "glue": (),
    "xml2": ("apt-get install -y libxml2-dev",),
    "httr": ("apt-get install -y libcurl4-openssl-dev", "apt-get install -y libssl-dev"),
}


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers so --strict-markers doesn’t error."""
    config.addinivalue_line("markers", "network: queries a real Package Manager instance")


class FakeResolver:
    """
    Requirement resolver answering from a dictionary and recording its calls.

    Packages listed in `failing` raise, as a lookup hitting an HTTP error would.
    """

    def __init__(
        self,
        requirements: Dict[str, Sequence[str]],
        failing: Iterable[str] = (),
    ) -> None:
        self.requirements = requirements
        self.failing = set(failing)
        self.calls: List[Tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, package: str, os: str, os_release: str) -> Tuple[str, ...]:
        with self._lock:
            self.calls.append((package, os, os_release))
        if package in self.failing:
            raise RuntimeError(f"lookup failed for {package}")
        return tuple(self.requirements.get(package, ()))


def write_lockfile(path: Path, packages: Iterable[str], r_version: str = R_VERSION) -> Path:
    """Write a minimal renv lockfile pinning the given packages from CRAN."""
    payload = {
        "R": {
            "Version": r_version,
            "Repositories": [{"Name": "CRAN", "URL": "https://cloud.r-project.org"}],
        },
        "Packages": {
            name: {
                "Package": name,
                "Version": "1.0.0",
                "Source": "Repository",
                "Repository": "CRAN",
                "Hash": f"hash-of-{name}",
            }
            for name in packages
        },
    }
    path.write_text(json.dumps(payload, indent=2))
    return path


@pytest.fixture
def lockfile_path(tmp_path: Path) -> Path:
    """An renv.lock file pinning the packages of SAMPLE_SYSREQS, in that order."""
    return write_lockfile(tmp_path / "renv.lock", packages=SAMPLE_SYSREQS)


@pytest.fixture
def make_resolver() -> Callable[..., FakeResolver]:
    """Factory of fake resolvers; defaults to SAMPLE_SYSREQS."""

    def _make(
        requirements: Dict[str, Sequence[str]] | None = None,
        failing: Iterable[str] = (),
    ) -> FakeResolver:
        return FakeResolver(
            requirements=SAMPLE_SYSREQS if requirements is None else requirements,
            failing=failing,
        )

    return _make


@pytest.fixture
def golden_dir() -> Path:
    """Directory holding the reference Dockerfiles."""
    return Path(__file__).parent / "golden"


@pytest.fixture
def make_lockfile(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing lockfiles under tmp_path."""

    def _make(name: str, packages: Iterable[str], r_version: str = R_VERSION) -> Path:
        return write_lockfile(tmp_path / name, packages=packages, r_version=r_version)

    return _make
