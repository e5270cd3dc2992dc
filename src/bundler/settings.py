"""Bundler settings lookup: per-host credentials and local gem cache dirs.

Bundler stores source credentials as ``user:password`` under a key derived
from the host name, in ``<project>/.bundle/config``, in ``BUNDLE_*``
environment variables, or in the user's global ``~/.bundle/config``. Local
configuration wins over the environment, which wins over global
configuration.
"""

from __future__ import annotations

import glob
import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import yaml

from common.errors import ConfigError
from constants import Constants

logger = logging.getLogger(__name__)


def key_for(name: str) -> str:
    """Translate a setting name to its ``BUNDLE_*`` key.

    ``packages.shopify.io`` becomes ``BUNDLE_PACKAGES__SHOPIFY__IO``; dashes
    become triple underscores.
    """
    return "BUNDLE_" + name.replace("-", "___").replace(".", "__").upper()


class BundlerSettings:
    """Read-only view over Bundler's layered configuration."""

    def __init__(
        self,
        root: Path,
        env: Optional[Mapping[str, str]] = None,
        home: Optional[Path] = None,
    ) -> None:
        """Initialize the settings view.

        Args:
            root: Project directory holding ``.bundle/config``.
            env: Environment mapping; defaults to ``os.environ``.
            home: Home directory; defaults to ``Path.home()``.
        """
        self._env = dict(os.environ if env is None else env)
        self._local = self._load(Path(self._env.get("BUNDLE_APP_CONFIG", Path(root) / ".bundle")) / "config")
        global_path = self._env.get("BUNDLE_USER_CONFIG")
        if not global_path:
            global_path = str((home or Path.home()) / ".bundle" / "config")
        self._global = self._load(Path(global_path))

    def __getitem__(self, name: str) -> Optional[str]:
        key = key_for(name)
        for layer in (self._local, self._env, self._global):
            value = layer.get(key)
            if value:
                return str(value)
        return None

    def credentials_for(self, host: str) -> Optional[str]:
        """Return the ``user:password`` configured for ``host``, if any."""
        if not host:
            return None
        return self[host]

    @staticmethod
    def _load(path: Path) -> Dict[str, str]:
        if not path.is_file():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                "Bundler config could not be read.",
                context={"path": str(path), "error": str(e)},
            ) from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Bundler config has invalid structure.", context={"path": str(path)})
        logger.debug("Loaded bundler settings from %s", path)
        return {str(k): str(v) for k, v in data.items()}


def gem_caches(root: Path, env: Optional[Mapping[str, str]] = None, extra: Sequence[str] = ()) -> List[str]:
    """Local directories that may already hold fetched ``.gem`` files.

    The project's ``vendor/cache`` comes first, then ``cache`` below each
    ``GEM_HOME``/``GEM_PATH`` entry and the user gem dirs, then ``extra``.
    """
    env = os.environ if env is None else env
    caches = [str(Path(root) / "vendor" / "cache")]
    gem_dirs: List[str] = []
    if env.get("GEM_HOME"):
        gem_dirs.append(env["GEM_HOME"])
    gem_dirs.extend(p for p in env.get("GEM_PATH", "").split(os.pathsep) if p)
    home = env.get("HOME")
    if home:
        gem_dirs.extend(sorted(glob.glob(os.path.join(home, ".gem", "ruby", "*"))))
    for gem_dir in gem_dirs:
        cache = os.path.join(gem_dir, "cache")
        if cache not in caches:
            caches.append(cache)
    caches.extend(c for c in list(extra) + list(Constants.GEM_CACHES) if c not in caches)
    return caches
