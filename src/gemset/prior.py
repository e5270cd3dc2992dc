"""Loading of a previously generated gemset for incremental reuse."""
from __future__ import annotations

import json
import logging
import os
from pathlib import PurePath
from typing import Any, Callable, Dict

from common.errors import ExternalToolError
from common.shell import sh
from constants import Constants
from gemset.nixer import serialize_path

logger = logging.getLogger(__name__)


def parse_gemset(path: str, run: Callable[..., str] = sh) -> Dict[str, Any]:
    """Evaluate ``path`` with nix-instantiate and return it as a dict.

    A missing file yields an empty mapping.

    Raises:
        ExternalToolError: When the file exists but cannot be evaluated.
    """
    full_path = os.path.abspath(os.path.expanduser(path))
    if not os.path.isfile(full_path):
        return {}
    expression = f"import {serialize_path(PurePath(full_path))}"
    output = run(Constants.NIX_INSTANTIATE, "--eval", "--strict", "--json", "-E", expression)
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise ExternalToolError(
            "nix-instantiate returned invalid JSON.",
            command=Constants.NIX_INSTANTIATE,
            output=output[-2000:],
            context={"path": full_path},
        ) from exc
    if not isinstance(data, dict):
        logger.warning("Ignoring prior gemset %s: not an attribute set", full_path)
        return {}
    logger.debug("Loaded %d prior gemset entries from %s", len(data), full_path)
    return data
