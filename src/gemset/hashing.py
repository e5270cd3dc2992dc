"""Canonical nix base-32 sha256 handling."""
from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from common.errors import ExternalToolError, FormatError
from common.shell import sh
from constants import Constants

logger = logging.getLogger(__name__)

SHA256_32 = re.compile(Constants.SHA256_32_PATTERN, re.MULTILINE)


def is_sha256_base32(value: Optional[str]) -> bool:
    """True when ``value`` is exactly 52 lowercase alphanumerics."""
    return bool(value) and SHA256_32.fullmatch(value) is not None


def validate_hash(value: Optional[str]) -> str:
    """Return ``value`` unchanged or raise FormatError."""
    if not is_sha256_base32(value):
        raise FormatError("Digest is not a nix base-32 sha256.", context={"value": value or ""})
    return value


def extract_hash(output: Optional[str]) -> Optional[str]:
    """Pick the first line of tool output that is a base-32 sha256."""
    if not output:
        return None
    match = SHA256_32.search(output)
    return match.group(0) if match else None


class HashFormatter:
    """Re-encodes raw digests through ``nix-hash --to-base32``."""

    def __init__(self, run: Callable[..., str] = sh) -> None:
        self._run = run

    def format_hash(self, raw: Optional[str]) -> Optional[str]:
        """Normalize ``raw``; None when it cannot be made canonical.

        Args:
            raw: Digest in any encoding nix-hash understands.

        Returns:
            The 52-char base-32 digest, or None.
        """
        if not raw:
            return None
        try:
            output = self._run(Constants.NIX_HASH, "--type", "sha256", "--to-base32", raw)
        except ExternalToolError as exc:
            logger.debug("nix-hash rejected %s: %s", raw, exc)
            return None
        try:
            return validate_hash(extract_hash(output))
        except FormatError:
            return None
