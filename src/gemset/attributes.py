"""Group and platform propagation over the lockfile dependency graph.

A gem pulled in only by a ``development`` gem must itself be marked
``development``, and one pulled in only by a ``jruby`` gem is only needed on
JRuby. Entries start from the Gemfile declarations (or empty, for gems that
are only transitive) and grow by set union until a full pass over the
lockfile changes nothing.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from bundler.models import Dependency, PackageSpec
from common.errors import GraphIntegrityError
from constants import Constants

logger = logging.getLogger(__name__)

_ENGINES = {
    "ruby": [{"engine": "ruby"}, {"engine": "rbx"}, {"engine": "maglev"}],
    "mri": [{"engine": "ruby"}, {"engine": "maglev"}],
    "rbx": [{"engine": "rbx"}],
    "jruby": [{"engine": "jruby"}],
    "mswin": [{"engine": "mswin"}],
    "mswin64": [{"engine": "mswin64"}],
    "mingw": [{"engine": "mingw"}],
    "truffleruby": [{"engine": "ruby"}],
    "x64_mingw": [{"engine": "mingw"}],
}
_RUBY_VERSIONS = (
    "1.8", "1.9", "2.0", "2.1", "2.2", "2.3", "2.4", "2.5", "2.6", "2.7",
    "3.0", "3.1", "3.2", "3.3", "3.4",
)


def _build_platform_mapping() -> Dict[str, List[Dict[str, str]]]:
    mapping = {}
    for name, engines in _ENGINES.items():
        mapping[name] = engines
        for version in _RUBY_VERSIONS:
            mapping[f"{name}_{version.replace('.', '', 1)}"] = [dict(e, version=version) for e in engines]
    return mapping


# Bundler DSL platform name -> engine/version constraints understood by nix
PLATFORM_MAPPING = _build_platform_mapping()


class DependencyAttributeResolver:
    """Builds the fully propagated name -> Dependency map."""

    def __init__(self, specs: Iterable[PackageSpec], declared: Iterable[Dependency],
                 lockfile: Optional[str] = None) -> None:
        self.specs = list(specs)
        self.declared = list(declared)
        self.lockfile = lockfile or Constants.LOCKFILE

    def seed(self) -> Dict[str, Dependency]:
        entries: Dict[str, Dependency] = {dep.name: dep for dep in self.declared}
        for spec in self.specs:
            entries.setdefault(spec.name, Dependency(spec.name))
        return entries

    def resolve(self) -> Dict[str, Dependency]:
        """Run propagation to a fixpoint.

        Raises:
            GraphIntegrityError: When a spec depends on a name that is neither
                locked nor declared, other than bundler itself.
        """
        entries = self.seed()
        passes = 0
        changed = True
        while changed:
            changed = self.propagate(entries)
            passes += 1
        logger.debug("Attribute propagation converged after %d passes", passes)
        return entries

    def propagate(self, entries: Dict[str, Dependency]) -> bool:
        """One full pass; returns True when any entry grew."""
        changed = False
        for spec in self.specs:
            as_dep = entries[spec.name]
            for ref in spec.dependencies:
                cached = entries.get(ref.name)
                if cached is None:
                    if ref.name != Constants.BOOTSTRAP_DEPENDENCY:
                        raise GraphIntegrityError(
                            f"Gem dependency '{ref.name}' not specified in {self.lockfile}",
                            dependency=ref.name,
                            hint=f"Re-run `bundle lock` so {self.lockfile} lists '{ref.name}'.",
                        )
                    cached = entries[ref.name] = Dependency(ref.name)

                if not cached.groups >= as_dep.groups or not cached.platforms >= as_dep.platforms:
                    changed = True
                    entries[ref.name] = Dependency(
                        name=ref.name,
                        requirement=cached.requirement,
                        groups=as_dep.groups | cached.groups,
                        platforms=as_dep.platforms | cached.platforms,
                    )
        return changed


def build_attributes(specs: Iterable[PackageSpec], declared: Iterable[Dependency],
                     lockfile: Optional[str] = None) -> Dict[str, Dependency]:
    return DependencyAttributeResolver(specs, declared, lockfile).resolve()


def groups_for(entry: Dependency) -> List[str]:
    return sorted(entry.effective_groups)


def platforms_for(entry: Dependency) -> List[Dict[str, str]]:
    """Translate Bundler platform names into engine/version constraints."""
    platforms: List[Dict[str, str]] = []
    for name in sorted(entry.platforms):
        mapped = PLATFORM_MAPPING.get(name)
        if mapped is None:
            logger.warning("Unknown platform '%s' for %s; ignoring", name, entry.name)
            continue
        platforms.extend(mapped)
    return platforms
