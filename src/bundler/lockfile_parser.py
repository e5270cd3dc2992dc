"""Parser for Bundler's ``Gemfile.lock`` format.

Extracts every resolved spec (name, version, platform, dependency edges and
source) plus the ``PLATFORMS`` section. Other trailer sections are skipped.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePath
from typing import Dict, List, Optional, Sequence

from bundler.models import DependencyRef, GemSource, GitSource, Lockfile, PackageSpec, PathSource
from bundler.platform import parse_platform
from common.errors import LockfileError

logger = logging.getLogger(__name__)

SOURCE_SECTIONS = ("GIT", "GEM", "PATH")

# "    name (1.2.3)" or "    name (1.2.3-x86_64-linux)"
_SPEC_LINE = re.compile(r"^ {4}(?! )([^ (]+)(?: \(([^)]+)\))?$")
# "      name (>= 1.0, < 2)" or "      name"
_DEP_LINE = re.compile(r"^ {6}(?! )([^ (!]+)(?: \(([^)]+)\))?$")
_OPTION_LINE = re.compile(r"^ {2}([a-z_]+): (.*)$")


def split_version_platform(raw: str):
    """Split ``1.2.3-x86_64-linux`` into ``("1.2.3", "x86_64-linux")``.

    Gem versions never contain a dash, so everything after the first dash is
    the platform.
    """
    version, _, platform = raw.partition("-")
    return version, platform or None


def parse_lockfile(raw: str, caches: Sequence[str] = ()) -> Lockfile:
    """Parse lockfile text.

    Args:
        raw: Contents of a Gemfile.lock.
        caches: Local .gem cache directories attached to every GEM source.

    Returns:
        Lockfile: Parsed model.

    Raises:
        LockfileError: When a line cannot be attributed to any section.
    """
    lock = Lockfile()
    section: Optional[str] = None
    options: Dict[str, List[str]] = {}
    pending: List[list] = []
    current: Optional[list] = None

    def flush() -> None:
        if section in SOURCE_SECTIONS and pending:
            source = _build_source(section, options, caches)
            for name, version, platform, deps in pending:
                lock.specs.append(
                    PackageSpec(
                        name=name,
                        version=version,
                        platform=parse_platform(platform),
                        source=source,
                        dependencies=tuple(deps),
                    )
                )
        pending.clear()
        options.clear()

    for lineno, line in enumerate(raw.splitlines(), start=1):
        if not line.strip():
            continue
        if not line.startswith(" "):
            flush()
            section = line.strip()
            current = None
            continue

        if section in SOURCE_SECTIONS:
            if line.strip() == "specs:":
                continue
            option = _OPTION_LINE.match(line)
            if option:
                options.setdefault(option.group(1), []).append(option.group(2).strip())
                continue
            spec = _SPEC_LINE.match(line)
            if spec:
                version, platform = split_version_platform(spec.group(2) or "")
                current = [spec.group(1), version, platform, []]
                pending.append(current)
                continue
            dep = _DEP_LINE.match(line)
            if dep and current is not None:
                current[3].append(DependencyRef(dep.group(1), dep.group(2)))
                continue
            raise LockfileError(
                "Unrecognized line in lockfile.",
                context={"line": str(lineno), "content": line.strip()},
            )
        elif section == "PLATFORMS":
            lock.platforms.append(parse_platform(line.strip()))
        else:
            logger.debug("Ignoring lockfile section %s", section)
    flush()

    logger.debug("Parsed %d specs from lockfile", len(lock.specs))
    return lock


def read_lockfile(path: str, caches: Sequence[str] = ()) -> Lockfile:
    """Read and parse a Gemfile.lock from disk."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except (FileNotFoundError, IOError) as e:
        raise LockfileError(
            "Lockfile could not be read.",
            hint="Run `bundle lock` or pass --lockfile.",
            context={"path": str(path), "error": str(e)},
        ) from e
    return parse_lockfile(raw, caches)


def _build_source(section: str, options: Dict[str, List[str]], caches: Sequence[str]):
    if section == "GEM":
        remotes = tuple(remote.rstrip("/") for remote in options.get("remote", []))
        return GemSource(remotes=remotes, caches=tuple(caches))
    if section == "GIT":
        revision = _single(options, "revision")
        uri = _single(options, "remote")
        if not uri or not revision:
            raise LockfileError("GIT section is missing remote or revision.", context={"remote": uri or ""})
        return GitSource(
            uri=uri,
            revision=revision,
            submodules=_single(options, "submodules") == "true",
        )
    if section == "PATH":
        path = _single(options, "remote")
        if not path:
            raise LockfileError("PATH section is missing remote.")
        return PathSource(path=PurePath(path))
    raise LockfileError(f"Unsupported lockfile source section: {section}")


def _single(options: Dict[str, List[str]], key: str) -> Optional[str]:
    values = options.get(key)
    return values[0] if values else None
