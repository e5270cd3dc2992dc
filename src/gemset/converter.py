"""Conversion pipeline: lockfile + Gemfile -> gemset mapping.

For every gem name one platform variant is selected, its source is resolved
(or reused from a prior gemset), and the propagated groups/platforms and the
dependency names are attached.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from bundler.models import Dependency, Lockfile, PackageSpec
from bundler.platform import GemPlatform, compatible, parse_platform
from common.errors import LockfileError
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from gemset.attributes import build_attributes, groups_for, platforms_for
from gemset.cache import ResultCache
from gemset.fetcher import ArtifactFetcher
from gemset.source import SourceConverter

logger = logging.getLogger(__name__)

Compatible = Callable[[GemPlatform, GemPlatform], bool]


def group_by_name(specs: Iterable[PackageSpec]) -> Dict[str, List[PackageSpec]]:
    grouped: Dict[str, List[PackageSpec]] = {}
    for spec in specs:
        grouped.setdefault(spec.name, []).append(spec)
    return grouped


def select_variant(candidates: List[PackageSpec], target: GemPlatform,
                   is_compatible: Compatible = compatible) -> Optional[PackageSpec]:
    """Pick the variant to build for ``target``.

    Candidates are scanned last-to-first so git, path and plain ruby sources
    (listed after the platform-specific ones) act as the fallback.
    """
    for spec in reversed(candidates):
        if spec.platform.is_generic or is_compatible(spec.platform, target):
            return spec
    return None


class ConversionPipeline:
    """Orchestrates attribute propagation, reuse and hash resolution."""

    def __init__(
        self,
        lock: Lockfile,
        declared: Iterable[Dependency],
        target_platform: str = Constants.DEFAULT_PLATFORM,
        fetcher: Optional[ArtifactFetcher] = None,
        prior: Optional[Mapping[str, Any]] = None,
        is_compatible: Compatible = compatible,
        lockfile_path: Optional[str] = None,
    ) -> None:
        self.lock = lock
        self.declared = list(declared)
        self.target = parse_platform(target_platform)
        self.fetcher = fetcher or ArtifactFetcher()
        self.cache = ResultCache(prior, str(self.target))
        self.is_compatible = is_compatible
        self.lockfile_path = lockfile_path or Constants.LOCKFILE

    def check_platform(self) -> None:
        """Ensure the lockfile was resolved for the target platform.

        Raises:
            LockfileError: When PLATFORMS does not list the target.
        """
        if self.target.is_generic or self.target in self.lock.platforms:
            return
        raise LockfileError(
            f"{self.target} not listed in {self.lockfile_path}.",
            hint=f"Try `bundle lock --add-platform {self.target}`",
        )

    def convert(self) -> Dict[str, Dict[str, Any]]:
        """Build the gemset mapping.

        Raises:
            LockfileError: When the target platform is not locked.
            GraphIntegrityError: When the dependency graph is incomplete.
        """
        self.check_platform()
        attributes = build_attributes(self.lock.specs, self.declared, self.lockfile_path)

        gems: Dict[str, Dict[str, Any]] = {}
        for name, candidates in group_by_name(self.lock.specs).items():
            spec = select_variant(candidates, self.target, self.is_compatible)
            if spec is None:
                if is_debug_enabled(logger):
                    logger.debug(
                        "No compatible variant",
                        extra=extra_context(event="decision", component="converter", target=name),
                    )
                continue

            entry = self.find_cached_spec(spec, attributes) or self.convert_spec(spec, attributes)
            existing = gems.setdefault(name, {})
            existing.update(entry)

            if spec.dependencies:
                existing["dependencies"] = [
                    dep.name for dep in spec.dependencies if dep.name != Constants.BOOTSTRAP_DEPENDENCY
                ]
        return gems

    def attributes_for(self, spec: PackageSpec, attributes: Mapping[str, Dependency]) -> Dict[str, Any]:
        # platforms: Bundler DSL constraints for including the gem;
        # target_platform: the platform specs are being resolved for;
        # gem_platform: the platform of the selected spec (may be plain ruby
        # when no precompiled gem exists for the target).
        entry = attributes[spec.name]
        return {
            "platforms": platforms_for(entry),
            "target_platform": str(self.target),
            "gem_platform": str(spec.platform),
            "groups": groups_for(entry),
        }

    def find_cached_spec(self, spec: PackageSpec, attributes: Mapping[str, Dependency]) -> Optional[Dict[str, Any]]:
        reused = self.cache.find(spec)
        if reused is None:
            return None
        logger.debug("Reusing prior entry for %s", spec.name)
        record = self.attributes_for(spec, attributes)
        record.update(reused)
        return record

    def convert_spec(self, spec: PackageSpec, attributes: Mapping[str, Dependency]) -> Dict[str, Any]:
        """Resolve one spec; failures yield an empty record instead of aborting."""
        try:
            record = self.attributes_for(spec, attributes)
            record.update(SourceConverter(spec, self.fetcher).convert())
            return record
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Skipping %s: %s", spec.name, exc)
            logger.debug("Skipped %s", spec.name, exc_info=True)
            return {}
