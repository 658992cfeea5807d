"""HTTP download of release assets.

Redirects are followed by hand rather than by ``requests`` so that every hop
is counted against an explicit budget and so that credentials are attached
per host instead of leaking to the CDN a release host redirects to.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import urljoin, urlparse

from binstage.__version__ import __version__ as VERSION
from binstage.dependencies import _try_import, require
from binstage.exceptions import NetworkError
from binstage.secrets import github_token, redact_headers

requests = _try_import("requests")

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB
DEFAULT_CONNECT_TIMEOUT = 15
DEFAULT_READ_TIMEOUT = 300
DEFAULT_TIMEOUT = (DEFAULT_CONNECT_TIMEOUT, DEFAULT_READ_TIMEOUT)
MAX_REDIRECTS = 10
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})
GITHUB_HOSTS = ("github.com", "api.github.com")


def build_user_agent(name: str = "binstage", version: str = VERSION) -> str:
    """Build a default User-Agent string."""
    return f"{name}/{version}"


def _is_github_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return host in GITHUB_HOSTS


def build_request_headers(url: str, base_headers: dict[str, str] | None = None) -> dict[str, str]:
    """Headers for one request; a GITHUB_TOKEN is only ever sent to GitHub itself."""
    headers = {"User-Agent": build_user_agent()}
    headers.update(base_headers or {})
    token = github_token()
    if token and "Authorization" not in headers and _is_github_host(url):
        headers["Authorization"] = f"Bearer {token.reveal()}"
    return headers


def _discard(*paths: Path) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove partial download %s: %s", path, exc)


def _request(req: Any, url: str, *, headers: dict[str, str], timeout: Any) -> Any:
    logger.debug("GET %s headers=%s", url, redact_headers(headers))
    return req.get(
        url,
        stream=True,
        allow_redirects=False,
        headers=headers,
        timeout=timeout,
    )


def _stream_to_file(response: Any, path: Path) -> int:
    written = 0
    with path.open("wb") as f:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                f.write(chunk)
                written += len(chunk)
    return written


def _fetch_once(
    req: Any,
    url: str,
    temp_path: Path,
    *,
    headers: dict[str, str] | None,
    timeout: Any,
) -> str | None:
    """Issue one GET. Returns the redirect target, or None once the body is written."""
    with _request(req, url, headers=build_request_headers(url, headers), timeout=timeout) as response:
        status = response.status_code
        if status in REDIRECT_STATUS_CODES:
            location = (response.headers or {}).get("Location")
            if not location:
                raise NetworkError(
                    f"Redirect {status} without Location header: {url}",
                    context={"url": url, "status_code": status},
                )
            return urljoin(url, location)
        if status != 200:
            reason = getattr(response, "reason", "") or ""
            raise NetworkError(
                f"Failed to download: {status} {reason}".rstrip(),
                context={"url": url, "status_code": status},
            )
        written = _stream_to_file(response, temp_path)
        logger.debug("Wrote %d bytes from %s", written, url)
        return None


def download(
    url: str,
    destination: Path,
    *,
    max_redirects: int = MAX_REDIRECTS,
    timeout: Any = DEFAULT_TIMEOUT,
    headers: dict[str, str] | None = None,
) -> Path:
    """Download ``url`` to ``destination``, following up to ``max_redirects`` redirects.

    The body is streamed to ``<destination>.part`` and renamed into place once
    complete, so ``destination`` never holds a partial file. On any failure
    both paths are removed before the error propagates.

    Raises:
        NetworkError: non-200 final status, transport or write failure, or
            more than ``max_redirects`` redirects.
        DependencyMissingError: ``requests`` is not installed.
    """
    req = require("requests", requests, install="pip install requests")
    destination = Path(destination)
    temp_path = destination.with_name(f"{destination.name}.part")
    current_url = url
    hops = 0

    logger.info("Downloading: %s", url)
    try:
        while True:
            next_url = _fetch_once(req, current_url, temp_path, headers=headers, timeout=timeout)
            if next_url is None:
                break
            if hops >= max_redirects:
                raise NetworkError(
                    f"Too many redirects (>{max_redirects}) while downloading {url}",
                    context={"url": url, "last_url": current_url, "max_redirects": max_redirects},
                )
            hops += 1
            logger.debug("Redirect %d -> %s", hops, next_url)
            current_url = next_url
        temp_path.replace(destination)
    except NetworkError:
        _discard(temp_path, destination)
        raise
    except req.exceptions.RequestException as exc:
        _discard(temp_path, destination)
        raise NetworkError(
            f"Request failed for {current_url}: {exc}",
            context={"url": url, "last_url": current_url},
        ) from exc
    except OSError as exc:
        _discard(temp_path, destination)
        raise NetworkError(
            f"Failed to write {destination}: {exc}",
            context={"url": url, "destination": str(destination)},
        ) from exc

    logger.info("Downloaded %s (%d redirect(s))", destination.name, hops)
    return destination
