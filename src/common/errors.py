"""Typed error model shared by the lockfile readers and the gemset pipeline."""

from __future__ import annotations

from typing import Mapping, Optional


class GemnixError(Exception):
    """Base error class that carries an optional hint and context."""

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        context: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for key, value in self.context.items():
            if value:
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)


class ResolutionError(GemnixError):
    """No content hash could be obtained for a single package."""


class AuthenticationError(ResolutionError):
    """A remote answered 401/403 for a download."""

    def __init__(self, message: str, *, host: str, status_code: int, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.host = host
        self.status_code = status_code


class GraphIntegrityError(GemnixError):
    """The lockfile references a dependency that is not declared anywhere."""

    def __init__(self, message: str, *, dependency: str, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.dependency = dependency


class FormatError(GemnixError):
    """A digest is not in canonical nix base-32 form."""


class ExternalToolError(GemnixError):
    """An external command exited unsuccessfully or timed out."""

    def __init__(self, message: str, *, command: str, output: str = "", **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.command = command
        self.output = output


class LockfileError(GemnixError):
    """The lockfile or manifest cannot be read or is inconsistent with the run."""


class ConfigError(GemnixError):
    """The configuration file cannot be read or has an invalid structure."""


__all__ = [
    "AuthenticationError",
    "ConfigError",
    "ExternalToolError",
    "FormatError",
    "GemnixError",
    "GraphIntegrityError",
    "LockfileError",
    "ResolutionError",
]
