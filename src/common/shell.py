"""Thin wrapper around subprocess for the external nix/bundler tools."""
from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Mapping, Optional, Sequence

from constants import Constants
from common.errors import ExternalToolError
from common.logging_utils import extra_context, is_debug_enabled, Timer

logger = logging.getLogger(__name__)


def sh(
    *argv: str,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
    timeout: Optional[float] = None,
) -> str:
    """Run a command and return its stdout.

    Args:
        *argv: Command and arguments.
        env: Full environment for the child process; inherits ours when None.
        cwd: Working directory for the child process.
        timeout: Seconds before the call is abandoned; defaults to
            Constants.SUBPROCESS_TIMEOUT.

    Returns:
        str: Captured standard output.

    Raises:
        ExternalToolError: When the command cannot be started, times out or
            exits with a non-zero status.
    """
    command = shlex.join(argv)
    effective_timeout = timeout if timeout is not None else Constants.SUBPROCESS_TIMEOUT
    with Timer() as t:
        try:
            completed = subprocess.run(
                list(argv),
                env=dict(env) if env is not None else None,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
                timeout=effective_timeout,
            )
        except FileNotFoundError as exc:
            raise ExternalToolError(
                f"{argv[0]} not found.",
                command=command,
                hint="Make sure the nix tools are installed and on PATH.",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise ExternalToolError(
                f"command timed out after {effective_timeout} seconds",
                command=command,
                output=exc.stdout or "",
                context={"command": command},
            ) from exc

    if is_debug_enabled(logger):
        logger.debug(
            "Command finished",
            extra=extra_context(
                event="subprocess",
                component="shell",
                action=argv[0],
                outcome="success" if completed.returncode == 0 else "failure",
                duration_ms=t.duration_ms(),
            ),
        )

    if completed.returncode != 0:
        output = (completed.stdout or "") + (completed.stderr or "")
        logger.debug("$ %s\n%s", command, output)
        raise ExternalToolError(
            f"command execution failed: exit status {completed.returncode}",
            command=command,
            output=output,
            context={"command": command, "output": output.strip()[-2000:]},
        )
    return completed.stdout


def run_interactive(*argv: str, env: Optional[Mapping[str, str]] = None) -> None:
    """Run a command with inherited stdio, raising when it fails."""
    command = shlex.join(argv)
    try:
        completed = subprocess.run(
            list(argv),
            env=dict(env) if env is not None else None,
            check=False,
            timeout=Constants.SUBPROCESS_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
        raise ExternalToolError(f"{argv[0]} could not be run: {exc}", command=command) from exc
    if completed.returncode != 0:
        raise ExternalToolError(
            f"command execution failed: exit status {completed.returncode}",
            command=command,
        )


def child_env(base: Mapping[str, str], **overrides: str) -> dict:
    """Copy ``base`` with ``overrides`` applied, for passing as ``env=``."""
    env = dict(base)
    env.update(overrides)
    return env


__all__: Sequence[str] = ["child_env", "run_interactive", "sh"]
