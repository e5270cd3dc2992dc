"""Conversion of a spec's source into the ``version`` + ``source`` block."""
from __future__ import annotations

import logging
from typing import Any, Dict

from bundler.models import GemSource, GitSource, PackageSpec, PathSource
from common.errors import ResolutionError
from constants import Constants, SourceTypes
from gemset.fetcher import ArtifactFetcher

logger = logging.getLogger(__name__)


class SourceConverter:
    """Resolves one spec's source through an ArtifactFetcher."""

    def __init__(self, spec: PackageSpec, fetcher: ArtifactFetcher) -> None:
        self.spec = spec
        self.fetcher = fetcher

    def convert(self) -> Dict[str, Any]:
        source = self.spec.source
        if isinstance(source, GemSource):
            return self.convert_rubygems(source)
        if isinstance(source, GitSource):
            return self.convert_git(source)
        if isinstance(source, PathSource):
            return self.convert_path(source)
        raise ResolutionError(f"unknown bundler source for {self.spec.full_name}: {type(source).__name__}")

    def convert_path(self, source: PathSource) -> Dict[str, Any]:
        return {
            "version": self.spec.version,
            "source": {
                "type": SourceTypes.PATH.value,
                "path": source.path,
            },
        }

    def convert_rubygems(self, source: GemSource) -> Dict[str, Any]:
        remotes = [remote.rstrip("/") for remote in source.remotes]
        remote = None
        result = self.fetcher.fetch_local_hash(self.spec)
        if result:
            digest, platform = result
        else:
            remote_result = self.fetcher.fetch_remotes_hash(self.spec, remotes)
            if not remote_result:
                raise ResolutionError(f"couldn't fetch hash for {self.spec.full_name}")
            remote, digest, platform = remote_result

        version = self.spec.version
        if platform and platform != Constants.DEFAULT_PLATFORM:
            version = f"{version}-{platform}"
        logger.info("%s => %s-%s.gem", digest, self.spec.name, version)

        return {
            "version": version,
            "source": {
                "type": SourceTypes.GEM.value,
                "remotes": [remote] if remote else remotes,
                "sha256": digest,
            },
        }

    def convert_git(self, source: GitSource) -> Dict[str, Any]:
        digest = self.fetcher.fetch_git_hash(source.uri, source.revision, submodules=source.submodules)
        logger.info("%s => %s", digest, source.uri)
        return {
            "version": self.spec.version,
            "source": {
                "type": SourceTypes.GIT.value,
                "url": source.uri,
                "rev": source.revision,
                "sha256": digest,
                "fetchSubmodules": source.submodules,
            },
        }
