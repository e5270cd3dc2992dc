"""Data models for lockfile specs, their sources and manifest dependencies."""

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import FrozenSet, List, Optional, Tuple, Union

from bundler.platform import GemPlatform
from constants import Constants


@dataclass(frozen=True)
class GemSource:
    """Rubygems-style registry source."""
    remotes: Tuple[str, ...]
    # local directories holding previously fetched .gem files
    caches: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GitSource:
    """Version-control source pinned to a revision."""
    uri: str
    revision: str
    submodules: bool = False


@dataclass(frozen=True)
class PathSource:
    """Gem living in a local directory."""
    path: PurePath


Source = Union[GemSource, GitSource, PathSource]


@dataclass(frozen=True)
class DependencyRef:
    """A ``name (constraint)`` edge as written in the lockfile."""
    name: str
    requirement: Optional[str] = None


@dataclass(frozen=True)
class PackageSpec:
    """One resolved gem variant from the lockfile."""
    name: str
    version: str
    platform: GemPlatform
    source: Source
    dependencies: Tuple[DependencyRef, ...] = ()

    @property
    def full_name(self) -> str:
        if self.platform.is_generic:
            return f"{self.name}-{self.version}"
        return f"{self.name}-{self.version}-{self.platform}"


@dataclass(frozen=True)
class Dependency:
    """Groups and platforms attached to a gem name.

    Explicit manifest dependencies carry what the Gemfile declares; implicit
    ones start empty and only grow through propagation.
    """
    name: str
    requirement: Optional[str] = None
    groups: FrozenSet[str] = frozenset()
    platforms: FrozenSet[str] = frozenset()

    @property
    def effective_groups(self) -> FrozenSet[str]:
        """Declared groups, with an empty set meaning the default group."""
        return self.groups or frozenset({Constants.DEFAULT_GROUP})


@dataclass
class Lockfile:
    """Parsed ``Gemfile.lock``."""
    specs: List[PackageSpec] = field(default_factory=list)
    platforms: List[GemPlatform] = field(default_factory=list)
