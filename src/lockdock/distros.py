# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
This module describes the distributions lockdock can target.
Each distribution maps to an operating system family and release (the coordinates used to look up
system requirements) and to the package manager commands used to refresh the package index,
install packages and clean the package caches in the generated Dockerfile.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class UnsupportedDistroError(ValueError):
    """
    Raised when a distribution outside of the supported set is requested.
    """


class Distro(str, Enum):
    """
    The supported target distributions.
    """

    XENIAL = "xenial"
    BIONIC = "bionic"
    FOCAL = "focal"
    CENTOS7 = "centos7"
    CENTOS8 = "centos8"


@dataclass(frozen=True)
class DistroConfig:
    """
    Lookup record of a target distribution.

    Attributes:
        distro (Distro): The distribution the record describes.
        os (str): The operating system family name, as known by the requirements service
                  (e.g., 'ubuntu', 'centos').
        os_release (str): The operating system release (e.g., '20.04', '8').
        update_cmd (str): The command refreshing the package index.
        install_cmd (str): The package installation verb, followed by the packages to install.
        clean_cmd (str): The command removing package manager caches.
    """

    distro: Distro
    os: str
    os_release: str
    update_cmd: str
    install_cmd: str
    clean_cmd: str


_APT = {
    "update_cmd": "apt-get update -y",
    "install_cmd": "apt-get install -y",
    "clean_cmd": "rm -rf /var/lib/apt/lists/*",
}

_YUM = {
    "update_cmd": "yum update -y",
    "install_cmd": "yum install -y",
    "clean_cmd": "yum clean all && rm -rf /var/cache/yum",
}

DISTRO_CONFIGS: Dict[Distro, DistroConfig] = {
    Distro.XENIAL: DistroConfig(distro=Distro.XENIAL, os="ubuntu", os_release="16.04", **_APT),
    Distro.BIONIC: DistroConfig(distro=Distro.BIONIC, os="ubuntu", os_release="18.04", **_APT),
    Distro.FOCAL: DistroConfig(distro=Distro.FOCAL, os="ubuntu", os_release="20.04", **_APT),
    Distro.CENTOS7: DistroConfig(distro=Distro.CENTOS7, os="centos", os_release="7", **_YUM),
    Distro.CENTOS8: DistroConfig(distro=Distro.CENTOS8, os="centos", os_release="8", **_YUM),
}

RSTUDIO_R_BASE = "rstudio/r-base"


def available_distros() -> List[str]:
    """
    Returns the names of the supported distributions, in declaration order.
    """
    return [d.value for d in Distro]


def get_distro_config(distro: "Distro | str") -> DistroConfig:
    """
    Validates a distribution and returns its lookup record.

    Parameters:
        distro (Distro | str): The distribution, as enum member or name (e.g., 'focal').

    Returns:
        DistroConfig: The record of the distribution.

    Raises:
        UnsupportedDistroError: If the distribution is not supported.
    """
    try:
        key = Distro(distro)
    except ValueError as exc:
        raise UnsupportedDistroError(
            f"Unsupported distro '{distro}'. Available: {', '.join(available_distros())}"
        ) from exc
    return DISTRO_CONFIGS[key]


def gen_base_image(
    distro: "Distro | str" = Distro.BIONIC,
    r_version: str = "4.0",
    from_image: str = RSTUDIO_R_BASE,
) -> str:
    """
    Generates the base image reference from a distribution and the R version of a lockfile.

    The rstudio/r-base images are tagged per distribution, other images only per R version.

    Parameters:
        distro (Distro | str): The target distribution.
        r_version (str): The R version (e.g., '4.1.2').
        from_image (str): The base image repository.

    Returns:
        str: The base image reference (e.g., 'rstudio/r-base:4.1.2-focal').

    Raises:
        UnsupportedDistroError: If the distribution is not supported.
    """
    config = get_distro_config(distro)
    if from_image == RSTUDIO_R_BASE:
        return f"{from_image}:{r_version}-{config.distro.value}"
    return f"{from_image}:{r_version}"
