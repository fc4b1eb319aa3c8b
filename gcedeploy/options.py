"""Run-wide options and build/stage options for the GCE deployer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

Builder = Callable[["BuildOptions"], str]
Stager = Callable[["BuildOptions", str], None]


@dataclass
class RunOptions:
    """Options shared by every phase of a single deployer run."""

    run_id: str = ""
    run_dir: str = ""
    build: bool = False
    up: bool = False
    down: bool = False


@dataclass
class BuildOptions:
    """How to build and optionally stage a Kubernetes release."""

    repo_root: str = ""
    stage_location: str = ""
    strategy: str = "make"
    target_build_arch: str = "linux/amd64"
    builder: Optional[Builder] = field(default=None, repr=False)
    stager: Optional[Stager] = field(default=None, repr=False)

    def validate(self) -> None:
        """Raise ValueError if the options cannot be used for a build."""
        if not self.repo_root:
            raise ValueError("repo root must be set for a build")
        if not self.strategy:
            raise ValueError("build strategy must be set")

    def build(self) -> str:
        """Run the configured builder and return the built version.

        Without a builder nothing is built and the version is empty.
        """
        if self.builder is None:
            return ""
        return self.builder(self)

    def stage(self, version: str) -> None:
        """Stage the build of the given version with the configured stager.

        Without a stager nothing is staged.
        """
        if self.stager is not None:
            self.stager(self, version)