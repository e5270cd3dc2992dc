"""Remote gem index client: find the exact published variant of a gem.

Uses the compact index (``GET {remote}/info/{name}``) served by rubygems.org
and compatible registries. Each line describes one published variant:

    0.4.4821-java dependency:>= 0|checksum:abc,ruby:>= 2.3
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from bundler.models import PackageSpec
from bundler.platform import GemPlatform, compatible, parse_platform
from bundler.lockfile_parser import split_version_platform
from common.http_client import CredentialLookup, resolve_auth, robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteSpec:
    """A published gem variant."""
    name: str
    version: str
    platform: GemPlatform

    @property
    def full_name(self) -> str:
        if self.platform.is_generic:
            return f"{self.name}-{self.version}"
        return f"{self.name}-{self.version}-{self.platform}"


def parse_info(name: str, text: str) -> List[RemoteSpec]:
    """Parse a compact index ``info`` document.

    Args:
        name: Gem name the document belongs to.
        text: Response body.

    Returns:
        list: Published variants in index order.
    """
    specs = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line == "---":
            continue
        head, _, _ = line.partition(" ")
        version, platform = split_version_platform(head)
        specs.append(RemoteSpec(name, version, parse_platform(platform)))
    return specs


class RemoteIndex:
    """Queries remotes for the variants published for a gem version."""

    def __init__(self, credentials_for: Optional[CredentialLookup] = None,
                 get: Callable[..., requests.Response] = robust_get) -> None:
        self._credentials_for = credentials_for
        self._get = get

    def versions(self, remote: str, name: str) -> List[RemoteSpec]:
        """List every published variant of ``name`` on ``remote``.

        Raises:
            requests.RequestException: On transport or HTTP errors.
        """
        url, auth = resolve_auth(f"{remote.rstrip('/')}/info/{name}", self._credentials_for)
        response = self._get(url, auth=auth)
        if response.status_code == 404:
            return []
        response.raise_for_status()
        specs = parse_info(name, response.text)
        if is_debug_enabled(logger):
            logger.debug(
                "Remote index lookup",
                extra=extra_context(
                    event="index_lookup",
                    component="remote_index",
                    target=safe_url(url),
                    count=len(specs),
                ),
            )
        return specs

    def spec_for_dependency(self, remote: str, spec: PackageSpec) -> Optional[RemoteSpec]:
        """Find the published variant the lockfile spec refers to.

        The platform published on the remote may be more specific than the
        locked one (``universal-darwin`` covers ``x86_64-darwin``), so the
        exact platform is preferred, then the first compatible variant, then
        the first variant of the version.
        """
        candidates = [s for s in self.versions(remote, spec.name) if s.version == spec.version]
        if not candidates:
            return None
        for candidate in candidates:
            if candidate.platform == spec.platform:
                return candidate
        for candidate in candidates:
            if compatible(candidate.platform, spec.platform):
                return candidate
        logger.info("Falling back to %s for platform %s", candidates[0].full_name, spec.platform)
        return candidates[0]
