"""RubyGems platform parsing and compatibility matching.

Mirrors the rules RubyGems applies when deciding whether a gem built for one
platform (``x86_64-linux``, ``universal-darwin-14``, ``java`` ...) can be
installed on another. ``GemPlatform.RUBY`` is the platform-independent
("generic") platform.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

GENERIC_NAMES = ("ruby", "")

_NUMERIC_TAIL = re.compile(r"\d+(\.\d+)?$")
_VERSION_ONLY = re.compile(r"^\d+(\.\d+)?$")

# (pattern, os); the first group, when present, is the os version
_OS_TABLE = (
    (re.compile(r"aix\s*(\d+)?"), "aix"),
    (re.compile(r"cygwin"), "cygwin"),
    (re.compile(r"darwin\s*(\d+)?"), "darwin"),
    (re.compile(r"^macruby$"), "macruby"),
    (re.compile(r"freebsd\s*(\d+)?"), "freebsd"),
    (re.compile(r"^(?:java|jruby)$"), "java"),
    (re.compile(r"^java\s*(\d+(?:\.\d+)*)?"), "java"),
    (re.compile(r"^dalvik\s*(\d+)?$"), "dalvik"),
    (re.compile(r"^dotnet$"), "dotnet"),
    (re.compile(r"^dotnet\s*(\d+(?:\.\d+)*)?"), "dotnet"),
    (re.compile(r"linux-?(\w+)?"), "linux"),
    (re.compile(r"mingw32"), "mingw32"),
    (re.compile(r"mingw-?(\w+)?"), "mingw"),
    (re.compile(r"netbsdelf"), "netbsdelf"),
    (re.compile(r"openbsd\s*(\d+\.\d+)?"), "openbsd"),
    (re.compile(r"solaris\s*(\d+\.\d+)?"), "solaris"),
    (re.compile(r"wasi"), "wasi"),
)
_MSWIN = re.compile(r"(mswin\d+)(?:[_-](\d+))?")
_TEST_PLATFORM = re.compile(r"^(\w+_platform)(\d+)?")

# Legacy platform strings found in old gem indexes
_LEGACY = (
    (re.compile(r"^i686-darwin(\d)"), lambda m: ("x86", "darwin", m.group(1))),
    (re.compile(r"^i\d86-linux"), lambda m: ("x86", "linux", None)),
    (re.compile(r"^(?:java|jruby)$"), lambda m: (None, "java", None)),
    (re.compile(r"^dalvik(\d+)?$"), lambda m: (None, "dalvik", m.group(1))),
    (re.compile(r"dotnet(-(\d+\.\d+))?"), lambda m: ("universal", "dotnet", m.group(2))),
    (re.compile(r"mswin32(_(\d+))?"), lambda m: ("x86", "mswin32", m.group(2))),
    (re.compile(r"mswin64(_(\d+))?"), lambda m: ("x64", "mswin64", m.group(2))),
    (re.compile(r"^powerpc-darwin$"), lambda m: ("powerpc", "darwin", None)),
    (re.compile(r"powerpc-darwin(\d)"), lambda m: ("powerpc", "darwin", m.group(1))),
    (re.compile(r"sparc-solaris2.8"), lambda m: ("sparc", "solaris", "2.8")),
    (re.compile(r"universal-darwin(\d)"), lambda m: ("universal", "darwin", m.group(1))),
)


@dataclass(frozen=True)
class GemPlatform:
    """A ``(cpu, os, version)`` platform triple."""

    cpu: Optional[str]
    os: str
    version: Optional[str] = None

    RUBY = None  # type: GemPlatform  # assigned below

    @property
    def is_generic(self) -> bool:
        return self.os == "ruby" and self.cpu is None and self.version is None

    def __str__(self) -> str:
        return "-".join(part for part in (self.cpu, self.os, self.version) if part)

    def normalized_linux_version(self) -> Optional[str]:
        if not self.version:
            return None
        stripped = re.sub(r"eabi(hf)?\Z", "", re.sub(r"\Agnu", "", self.version))
        return stripped or None


GemPlatform.RUBY = GemPlatform(None, "ruby", None)


def parse_platform(value: Union[str, GemPlatform, None]) -> GemPlatform:
    """Parse a platform string the way ``Gem::Platform.new`` does."""
    if isinstance(value, GemPlatform):
        return value
    if value is None or value.strip() in GENERIC_NAMES:
        return GemPlatform.RUBY

    parts = value.strip().rstrip("-").split("-")
    if len(parts) > 2 and not _NUMERIC_TAIL.search(parts[-1]):
        # reassemble x86_64-linux-{libc}
        extra = parts.pop()
        parts[-1] = f"{parts[-1]}-{extra}"
    cpu: Optional[str] = parts.pop(0)
    if re.search(r"i\d86", cpu):
        cpu = "x86"
    if len(parts) == 2 and _VERSION_ONLY.match(parts[-1]):
        return GemPlatform(cpu, parts[0], parts[1])
    if parts:
        os_part = parts[0]
    else:
        # legacy single-word platforms such as "java"
        os_part, cpu = cpu, None

    mswin = _MSWIN.search(os_part)
    if mswin:
        if cpu is None and mswin.group(1).endswith("32"):
            cpu = "x86"
        return GemPlatform(cpu, mswin.group(1), mswin.group(2))

    for pattern, os_name in _OS_TABLE:
        match = pattern.search(os_part)
        if match:
            version = match.group(1) if pattern.groups else None
            return GemPlatform(cpu, os_name, version)

    test_match = _TEST_PLATFORM.match(os_part)
    if test_match:
        return GemPlatform(cpu, test_match.group(1), test_match.group(2))
    return GemPlatform(cpu, "unknown", None)


def parse_legacy_platform(value: str) -> GemPlatform:
    """Parse a platform string, honouring legacy index spellings first."""
    for pattern, build in _LEGACY:
        match = pattern.search(value)
        if match:
            return GemPlatform(*build(match))
    return parse_platform(value)


def platforms_match(candidate: GemPlatform, target: GemPlatform) -> bool:
    """Structural match between two non-generic platforms."""
    if candidate.is_generic or target.is_generic:
        return False

    # universal-mingw32 matches x64-mingw-ucrt
    if "universal" in (candidate.cpu, target.cpu) and candidate.os.startswith("mingw") and target.os.startswith("mingw"):
        return True

    cpu_ok = (
        candidate.cpu in (None, "universal")
        or target.cpu in (None, "universal")
        or candidate.cpu == target.cpu
        or (candidate.cpu == "arm" and (target.cpu or "").startswith("armv"))
    )
    if not cpu_ok or candidate.os != target.os:
        return False

    if candidate.os != "linux":
        return candidate.version is None or target.version is None or candidate.version == target.version
    if candidate.normalized_linux_version() == target.normalized_linux_version():
        return True
    musl = [f"{prefix}{candidate.version or ''}" for prefix in ("musl", "musleabi", "musleabihf")]
    return target.version in musl


def compatible(candidate: Union[str, GemPlatform], target: Union[str, GemPlatform]) -> bool:
    """Decide whether a gem built for ``candidate`` runs on ``target``.

    Generic platforms never match structurally; callers treat the generic
    variant as a separate fallback.
    """
    if isinstance(target, str):
        target = parse_legacy_platform(target)
    return platforms_match(parse_platform(candidate), target)
