# Copyright (C) 2024 Antonio Paolillo. All rights reserved.
# SPDX-License-Identifier: MIT

"""
This module provides classes for assembling Dockerfiles programmatically.
A builder is an append-only sequence of Dockerfile instructions (FROM, RUN, COPY, plus comments
and blank lines) that is rendered to text once complete.
"""
from pathlib import Path
from typing import Iterable, List

from lockdock.builders.cmds import (
    CopyDockerBuildCommand,
    DockerBuildCommand,
    FromDockerBuildCommand,
    RunDockerBuildCommand,
    StrDockerBuildCommand,
)

PathType = str | Path


def render_dockerfile_content(commands: Iterable[DockerBuildCommand]) -> str:
    """
    Generates the content of a Dockerfile from a list of Docker build commands.

    Parameters:
        commands (Iterable[DockerBuildCommand]): The Docker build commands to be included in the
                                                 Dockerfile, in order.

    Returns:
        str: The generated Dockerfile content, ending with exactly one newline.
    """
    joined_lines = "\n".join(c.get_str_for_dockerfile() for c in commands)
    file_content = joined_lines.strip() + "\n"
    return file_content


class PartialDockerBuilder:
    """
    Collect a reusable fragment of Dockerfile instructions.

    A PartialDockerBuilder records build commands (RUN, COPY, etc.) that can be
    merged into a full builder later.
    """

    def __init__(self) -> None:
        self._build_commands: List[DockerBuildCommand] = []

    def __or__(self, other: "PartialDockerBuilder") -> "PartialDockerBuilder":
        """
        Merges the current builder with another PartialDockerBuilder, combining their build
        commands.

        Parameters:
            other (PartialDockerBuilder): The other builder to merge with.

        Returns:
            PartialDockerBuilder: A new builder instance with combined commands.
        """
        result_builder = PartialDockerBuilder()
        result_builder._extend(other=self)
        result_builder._extend(other=other)
        return result_builder

    def __ior__(self, other: "PartialDockerBuilder") -> "PartialDockerBuilder":
        """
        In-place merge of another PartialDockerBuilder into this one.

        Parameters:
            other (PartialDockerBuilder): The other builder to merge into this one.

        Returns:
            PartialDockerBuilder: The current builder with commands from the other merged in.
        """
        self._extend(other=other)
        return self

    def _extend(self, other: "PartialDockerBuilder") -> None:
        # pylint: disable=protected-access
        self._build_commands.extend(other._build_commands)

    @property
    def commands(self) -> tuple[DockerBuildCommand, ...]:
        """
        The recorded instructions, in insertion order.
        """
        return tuple(self._build_commands)

    def space(self) -> None:
        """
        Adds a space (newline) to the Dockerfile commands.
        """
        self._build_commands.append(StrDockerBuildCommand(""))

    def desc(self, text: str) -> None:
        """
        Adds a comment description to the Dockerfile.

        Parameters:
            text (str): The comment text to add.
        """
        self._build_commands.append(StrDockerBuildCommand(f"# {text}"))

    def from_image(self, tag: str, alias: str | None = None) -> None:
        """
        Sets the base image for the Dockerfile.

        Parameters:
            tag (str): The Docker image tag to use as the base.
            alias (str, optional): The build stage name (FROM ... AS alias).
        """
        self._build_commands.append(FromDockerBuildCommand(image=tag, alias=alias))

    def run(self, command: str) -> None:
        """
        Adds a RUN instruction to the Dockerfile.

        Parameters:
            command (str): The shell command to run in the build stage.
        """
        self._build_commands.append(RunDockerBuildCommand(commands=[command]))

    def run_multiple(self, commands: List[str]) -> None:
        """
        Adds multiple commands to be run in a single RUN instruction in the Dockerfile.

        Parameters:
            commands (List[str]): The commands to run, chained with '&&'.
        """
        self._build_commands.append(RunDockerBuildCommand(commands=commands))

    def copy(
        self,
        source: PathType | list[PathType],
        destination: PathType,
        chown: str | None = None,
        chmod: str | None = None,
    ) -> None:
        """Add a Dockerfile COPY instruction.

        Args:
            source: A single path or a list of paths, relative to the build context.
            destination: Container destination path.
            chown: Optional ownership, forwarded to Dockerfile `COPY --chown=...`.
            chmod: Optional permissions, forwarded to Dockerfile `COPY --chmod=...`.

        Raises:
            ValueError: If source list is empty.
        """
        sources = [source] if isinstance(source, (str, Path)) else list(source)
        if not sources:
            raise ValueError("copy(): at least one source path is required")

        self._build_commands.append(
            CopyDockerBuildCommand(
                sources=[Path(s) for s in sources],
                destination=Path(destination),
                chown=chown,
                chmod=chmod,
            )
        )


class DockerBuilder(PartialDockerBuilder):
    """
    A complete Dockerfile: starts from a base image and can be rendered and written out.
    """

    def __init__(self, from_image: str, alias: str | None = None) -> None:
        """
        Initializes the DockerBuilder with its base image.

        Parameters:
            from_image (str): The base image of the Dockerfile.
            alias (str, optional): The build stage name of the Dockerfile.
        """
        super().__init__()
        self._from_image = from_image
        self._alias = alias
        self.from_image(tag=from_image, alias=alias)

    @property
    def alias(self) -> str | None:
        """
        The build stage name, if any.
        """
        return self._alias

    def render(self) -> str:
        """
        Renders the Dockerfile content.

        Returns:
            str: The Dockerfile text.
        """
        return render_dockerfile_content(commands=self._build_commands)

    def write(self, dockerfile_path: PathType = "Dockerfile") -> Path:
        """
        Writes the Dockerfile, creating missing parent directories.

        Parameters:
            dockerfile_path (PathType): Where the Dockerfile should be saved.

        Returns:
            Path: The path of the written Dockerfile.
        """
        path = Path(dockerfile_path)
        if path.parent.is_file():
            raise ValueError(f'Error, parent path is not a directory: "{path.parent}"')
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render())
        return path

    def __or__(
        self,
        other: "PartialDockerBuilder",
    ) -> "DockerBuilder":
        """
        Merges the current DockerBuilder with another PartialDockerBuilder.

        Parameters:
            other (PartialDockerBuilder): Another builder to merge with.

        Returns:
            DockerBuilder: A new DockerBuilder with the same base image and combined commands.
        """
        result_builder = DockerBuilder(from_image=self._from_image, alias=self._alias)
        # the FROM instruction is already part of self's commands
        result_builder._build_commands.clear()
        result_builder._extend(other=self)
        result_builder._extend(other=other)
        return result_builder
