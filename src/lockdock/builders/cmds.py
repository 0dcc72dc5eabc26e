# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
This module defines classes that represent individual Dockerfile instructions.
Each instruction knows its directive kind (FROM, RUN, COPY) and how to render itself as one
Dockerfile entry. Plain text entries such as comments and blank lines carry no directive kind.
"""

from pathlib import Path
from typing import List


class DockerBuildCommand:
    """
    Abstract base class for Dockerfile instructions.
    Each command type inheriting from this should implement a method to generate a string
    appropriate for including in a Dockerfile.

    Attributes:
        kind (str | None): The Dockerfile directive emitted by the command, or None for free
                           text (comments, blank lines).
    """

    kind: str | None = None

    def get_str_for_dockerfile(self) -> str:
        """
        Abstract method to return a string for a Dockerfile based on the command's internal
        configuration.

        Raises:
            NotImplementedError: If the method is not implemented by the subclass.
        """
        raise NotImplementedError


class StrDockerBuildCommand(DockerBuildCommand):
    """
    Represents a free text entry in a Dockerfile, such as a comment or an empty line.
    """

    def __init__(self, s: str) -> None:
        """
        Initializes the StrDockerBuildCommand with a string.

        Parameters:
            s (str): The text written verbatim to the Dockerfile.
        """
        super().__init__()
        self._str = s

    def get_str_for_dockerfile(self) -> str:
        return str(self._str)


class FromDockerBuildCommand(DockerBuildCommand):
    """
    Represents a Dockerfile FROM instruction, optionally naming the build stage.
    """

    kind = "FROM"

    def __init__(self, image: str, alias: str | None = None) -> None:
        """
        Parameters:
            image (str): The base image reference (e.g., 'rocker/r-base:4.1.2').
            alias (str, optional): The build stage name written after AS.

        Raises:
            ValueError: If the image reference is empty.
        """
        super().__init__()
        if not image:
            raise ValueError("FROM requires a base image")
        self.image = image
        self.alias = alias

    def get_str_for_dockerfile(self) -> str:
        if self.alias:
            return f"FROM {self.image} AS {self.alias}"
        return f"FROM {self.image}"


class RunDockerBuildCommand(DockerBuildCommand):
    """
    Represents a Dockerfile RUN instruction issuing one or more shell commands as a single
    build step (and thus a single image layer).
    """

    kind = "RUN"

    def __init__(self, commands: List[str]) -> None:
        """
        Parameters:
            commands (List[str]): The shell commands, chained with '&&' when more than one.

        Raises:
            ValueError: If no command is given.
        """
        super().__init__()
        if not commands:
            raise ValueError("RUN requires at least one command")
        self.commands: tuple[str, ...] = tuple(commands)

    def get_str_for_dockerfile(self) -> str:
        command = " && \\\n    ".join(self.commands)
        return f"RUN {command}"


class CopyDockerBuildCommand(DockerBuildCommand):
    """
    Represents a Dockerfile COPY instruction.

    Notes:
        - Sources are paths *inside the build context* (relative).
        - Destination is a path *inside the image* (absolute or relative).
        - If multiple sources are provided, destination must be treated as a directory.
    """

    kind = "COPY"

    def __init__(
        self,
        sources: list[Path],
        destination: Path,
        chown: str | None = None,
        chmod: str | None = None,
    ) -> None:
        """
        Initializes the COPY command.

        Parameters:
            sources: One or more source paths, relative to the build context.
            destination: Destination path in the image (container filesystem).
            chown: Optional ownership for copied files (Dockerfile: COPY --chown=...).
            chmod: Optional mode for copied files (Dockerfile: COPY --chmod=...).

        Raises:
            ValueError: If sources is empty.
        """
        super().__init__()

        srcs = tuple(Path(s) for s in sources)
        if not srcs:
            raise ValueError("COPY requires at least one source path")

        self.sources: tuple[Path, ...] = srcs
        self.destination: Path = Path(destination)

        self._chown = chown
        self._chmod = chmod

    def get_str_for_dockerfile(self) -> str:
        """
        Generate the Dockerfile `COPY` instruction string.

        Returns:
            str: A Dockerfile `COPY` command line.
        """
        flags: list[str] = []
        if self._chown is not None:
            flags.append(f"--chown={self._chown}")
        if self._chmod is not None:
            flags.append(f"--chmod={self._chmod}")

        flags_str = (" " + " ".join(flags)) if flags else ""
        sources_str = " ".join(str(s) for s in self.sources)

        return f"COPY{flags_str} {sources_str} {self.destination}"
