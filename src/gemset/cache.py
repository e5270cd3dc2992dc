"""Reuse of entries from a previously generated gemset."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from bundler.models import GemSource, GitSource, PackageSpec
from constants import SourceTypes


class ResultCache:
    """Decides whether a prior gemset entry can stand in for a fresh fetch.

    Only the resolved ``version`` and ``source`` block are reused; groups,
    platforms and dependencies are always recomputed by the caller.
    """

    def __init__(self, prior: Optional[Mapping[str, Any]], target_platform: str) -> None:
        self.prior = dict(prior or {})
        self.target_platform = target_platform

    def find(self, spec: PackageSpec) -> Optional[Dict[str, Any]]:
        """Return ``{"version", "source"}`` from the prior entry, or None."""
        cached = self.prior.get(spec.name)
        if not isinstance(cached, Mapping):
            return None
        cached_source = cached.get("source")
        if not isinstance(cached_source, Mapping):
            return None
        if cached.get("target_platform") != self.target_platform:
            return None

        source = spec.source
        if isinstance(source, GitSource):
            if cached_source.get("type") != SourceTypes.GIT.value:
                return None
            cached_rev = cached_source.get("rev")
            if not cached_rev or not source.revision or cached_rev != source.revision:
                return None
        elif isinstance(source, GemSource):
            if cached_source.get("type") != SourceTypes.GEM.value:
                return None
            if cached.get("version") != spec.version:
                return None
        else:
            # path sources cost nothing to resolve
            return None

        return {"version": cached.get("version", spec.version), "source": dict(cached_source)}
