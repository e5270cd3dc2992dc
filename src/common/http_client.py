"""Shared HTTP helpers used by the remote index lookup and gem downloads.

Encapsulates retries, timeouts, basic-auth injection and DEBUG traces so the
fetcher modules avoid duplicating try/except blocks.
"""
from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Callable, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit, unquote

import requests

from constants import Constants
from common.errors import AuthenticationError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

CredentialLookup = Callable[[str], Optional[str]]


def split_credentials(url: str) -> Tuple[str, Optional[Tuple[str, str]]]:
    """Separate userinfo from a URL.

    Args:
        url: URL that may embed ``user:password@``.

    Returns:
        Tuple of (url_without_userinfo, (user, password) or None)
    """
    parts = urlsplit(url)
    if not parts.username:
        return url, None
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    bare = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    return bare, (unquote(parts.username), unquote(parts.password or ""))


def resolve_auth(url: str, credentials_for: Optional[CredentialLookup] = None) -> Tuple[str, Optional[Tuple[str, str]]]:
    """Return the bare URL and the basic-auth pair to use for it, if any.

    Credentials embedded in the URL win; otherwise ``credentials_for`` is asked
    for a ``user:password`` string keyed by host.
    """
    bare, auth = split_credentials(url)
    if auth is None and credentials_for is not None:
        host = urlsplit(bare).hostname or ""
        value = credentials_for(host)
        if value:
            user, _, password = value.partition(":")
            auth = (user, password)
    return bare, auth


def robust_get(url: str, *, stream: bool = False, **kwargs: Any) -> requests.Response:
    """GET with timeout and retries on transient failures.

    Args:
        url: Target URL.
        stream: Passed through to requests.get.
        **kwargs: Additional requests.get parameters.

    Returns:
        requests.Response: The last response received.

    Raises:
        requests.RequestException: When every attempt failed.
    """
    safe_target = safe_url(url)
    last_exception: Optional[requests.RequestException] = None
    for attempt in range(Constants.HTTP_RETRY_MAX):
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1,
                        ),
                    )
                response = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, stream=stream, **kwargs)
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP response",
                        extra=extra_context(
                            event="http_response",
                            component="http_client",
                            action="GET",
                            status_code=response.status_code,
                            duration_ms=t.duration_ms(),
                            target=safe_target,
                        ),
                    )
                if response.status_code < 500:
                    return response
                response.close()
                last_exception = requests.HTTPError(
                    f"{response.status_code} Server Error for url: {safe_target}", response=response
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_exception = exc
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP transient failure",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome=type(exc).__name__,
                            attempt=attempt + 1,
                            target=safe_target,
                        ),
                    )
        if attempt < Constants.HTTP_RETRY_MAX - 1:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (attempt + 1))

    if last_exception is None:
        raise requests.RequestException(f"No attempt made for {safe_target} (HTTP_RETRY_MAX < 1)")
    raise last_exception


def download(file: Path, url: str, credentials_for: Optional[CredentialLookup] = None) -> None:
    """Download ``url`` to ``file``, attaching basic auth when available.

    The payload is streamed to a sibling temp file and moved into place, so a
    partially written cache entry is never observed.

    Raises:
        AuthenticationError: On HTTP 401/403, after printing a diagnostic.
        requests.RequestException: On other HTTP or transport failures.
    """
    bare_url, auth = resolve_auth(url, credentials_for)
    logger.info("Downloading %s from %s", file, safe_url(bare_url))

    response = robust_get(bare_url, stream=True, auth=auth)
    temp_path = file.with_name(file.name + ".part")
    try:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            if response.status_code in (401, 403):
                host = urlsplit(bare_url).hostname or ""
                debrief_access_denied(host)
                raise AuthenticationError(
                    f"{response.status_code} {response.reason} for {safe_url(bare_url)}",
                    host=host,
                    status_code=response.status_code,
                ) from exc
            raise

        file.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "wb") as local:
            for chunk in response.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                if chunk:
                    local.write(chunk)
        os.replace(temp_path, file)
    finally:
        response.close()
        if temp_path.exists():
            temp_path.unlink()


def debrief_access_denied(host: str) -> None:
    """Tell the user how to configure credentials for ``host``."""
    print_error(
        f"Authentication is required for {host}.\n"
        "Please supply credentials for this source. You can do this by running:\n"
        f" bundle config {host} username:password"
    )


def print_error(msg: str) -> None:
    """Print to stderr, in red when attached to a terminal."""
    if sys.stdout.isatty():
        msg = f"\x1b[31m{msg}\x1b[0m"
    print(msg, file=sys.stderr)
