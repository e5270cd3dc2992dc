"""Artifact fetcher: turns a gem source into a verified nix sha256.

Three paths exist. The local-cache path hashes a ``.gem`` already present in
one of the configured cache directories. The remote path downloads the gem
from the first remote that has it. The revision path runs
``nix-prefetch-git``. Downloads land in ``$XDG_CACHE_HOME/gemnix`` so
repeated runs never fetch the same artifact twice.
"""
from __future__ import annotations

import glob
import json
import logging
import os
import re
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import requests

from bundler.models import PackageSpec
from bundler.platform import compatible
from common.errors import ExternalToolError, ResolutionError
from common.http_client import CredentialLookup, download
from common.logging_utils import safe_url
from common.shell import child_env, sh
from constants import Constants
from gemset.hashing import HashFormatter, extract_hash
from gemset.remote_index import RemoteIndex

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w-]+", re.ASCII)
# last {...} fragment of the tool output
_JSON_TAIL = re.compile(r"(\{[^}]+\})\s*\Z", re.DOTALL)


def cache_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Directory holding downloaded artifacts."""
    if Constants.CACHE_DIR:
        return Path(Constants.CACHE_DIR)
    env = os.environ if env is None else env
    base = env.get("XDG_CACHE_HOME") or os.path.join(env.get("HOME") or str(Path.home()), ".cache")
    return Path(base) / Constants.CACHE_DIR_NAME


def cache_file_name(url: str) -> str:
    """Sanitize a URL into a flat file name."""
    return _UNSAFE_CHARS.sub("_", url)


def parse_prefetch_git_output(output: str, uri: str) -> str:
    """Pull the sha256 out of ``nix-prefetch-git`` output.

    Raises:
        ResolutionError: When no JSON fragment with a sha256 is present.
    """
    match = _JSON_TAIL.search(output or "")
    if not match:
        raise ResolutionError(f"couldn't find a hash in nix-prefetch-git output for {uri}")
    try:
        digest = json.loads(match.group(1)).get("sha256")
    except (json.JSONDecodeError, AttributeError) as exc:
        raise ResolutionError(f"couldn't parse nix-prefetch-git output for {uri}") from exc
    if not digest:
        raise ResolutionError(f"couldn't fetch hash for {uri}")
    return digest


class ArtifactFetcher:
    """Resolves gem and git sources to content hashes."""

    def __init__(
        self,
        credentials_for: Optional[CredentialLookup] = None,
        run: Callable[..., str] = sh,
        index: Optional[RemoteIndex] = None,
        formatter: Optional[HashFormatter] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._credentials_for = credentials_for
        self._run = run
        self._index = index or RemoteIndex(credentials_for)
        self._formatter = formatter or HashFormatter(run)
        self._env = dict(os.environ if env is None else env)

    def format_hash(self, raw: Optional[str]) -> Optional[str]:
        return self._formatter.format_hash(raw)

    def nix_prefetch_url(self, url: str) -> Optional[str]:
        """Hash a local file or a remote URL with ``nix-prefetch-url``.

        Remote URLs are downloaded into the artifact cache first. Transport
        and tool failures yield None; authentication failures propagate.
        """
        if urlsplit(url).scheme in ("http", "https"):
            directory = cache_dir(self._env)
            directory.mkdir(parents=True, exist_ok=True)
            file = directory / cache_file_name(url)
            try:
                if not _non_empty(file):
                    download(file, url, self._credentials_for)
            except requests.RequestException as exc:
                logger.warning("Download of %s failed: %s", safe_url(url), exc)
                return None
            if not _non_empty(file):
                return None
        else:
            file = Path(url[len("file://"):] if url.startswith("file://") else url)

        try:
            output = self._run(
                Constants.NIX_PREFETCH_URL,
                "--type", "sha256",
                "--name", os.path.basename(urlsplit(url).path or url),
                f"file://{file}",
            )
        except ExternalToolError as exc:
            logger.warning("%s", exc)
            return None
        return output.strip()

    def nix_prefetch_git(self, uri: str, revision: str, submodules: bool = False) -> str:
        """Run ``nix-prefetch-git`` with an isolated HOME and return its stdout."""
        args = ["--url", uri, "--rev", revision, "--hash", "sha256"]
        if submodules:
            args.append("--fetch-submodules")
        env = child_env(self._env, HOME=Constants.GIT_FETCH_HOME)
        return self._run(Constants.NIX_PREFETCH_GIT, *args, env=env)

    def fetch_git_hash(self, uri: str, revision: str, submodules: bool = False) -> str:
        """Resolve a git revision to its sha256.

        Raises:
            ResolutionError: When the tool output carries no hash.
        """
        try:
            output = self.nix_prefetch_git(uri, revision, submodules=submodules)
        except ExternalToolError as exc:
            raise ResolutionError(f"nix-prefetch-git failed for {uri}", context={"error": str(exc)}) from exc
        return parse_prefetch_git_output(output, uri)

    def fetch_local_hash(self, spec: PackageSpec) -> Optional[Tuple[str, Optional[str]]]:
        """Hash a matching ``.gem`` from the local cache directories.

        Returns:
            Tuple of (hash, platform_suffix_or_none), or None.
        """
        caches = getattr(spec.source, "caches", ()) or ()
        has_platform = not spec.platform.is_generic
        name_version = f"{spec.name}-{spec.version}"
        pattern = f"{name_version}-*.gem" if has_platform else f"{name_version}.gem"

        for directory in caches:
            for path in sorted(glob.glob(os.path.join(glob.escape(directory), pattern))):
                platform = None
                if has_platform:
                    platform = os.path.basename(path)[len(name_version) + 1:-len(".gem")]
                    if not compatible(spec.platform, platform):
                        continue
                digest = self.format_hash(extract_hash(self.nix_prefetch_url(path)))
                if digest:
                    return digest, platform
        return None

    def fetch_remotes_hash(self, spec: PackageSpec, remotes: Sequence[str]) -> Optional[Tuple[str, str, Optional[str]]]:
        """Try each remote in order; the first one yielding a hash wins.

        Returns:
            Tuple of (remote, hash, platform), or None.
        """
        for remote in remotes:
            result = self.fetch_remote_hash(spec, remote)
            if result:
                digest = self.format_hash(result[0])
                if digest:
                    return remote, digest, result[1]
        return None

    def fetch_remote_hash(self, spec: PackageSpec, remote: str) -> Optional[Tuple[str, Optional[str]]]:
        """Download and hash ``spec`` from a single remote.

        Network and tool failures are logged and yield None so the next
        remote can be tried.
        """
        full_name = spec.full_name
        platform: Optional[str] = str(spec.platform)
        try:
            if not spec.platform.is_generic:
                remote_spec = self._index.spec_for_dependency(remote, spec)
                if remote_spec is None:
                    return None
                full_name = remote_spec.full_name
                platform = str(remote_spec.platform)
            digest = extract_hash(self.nix_prefetch_url(f"{remote}/gems/{full_name}.gem"))
        except (requests.RequestException, ExternalToolError) as exc:
            logger.warning("ignoring error during fetching from %s: %s", safe_url(remote), exc)
            return None
        if not digest:
            return None
        return digest, platform


def _non_empty(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0
