from __future__ import annotations

import contextlib
import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterator

import httpx

from contracts.errors import DownloadFailed

logger = logging.getLogger(__name__)

ByteProgress = Callable[[int, int | None], None]  # (received_bytes, total_bytes or None)

_CHUNK_SIZE = 64 * 1024


def open_client(*, timeout_s: float = 60.0, max_redirects: int = 5) -> httpx.Client:
    return httpx.Client(
        follow_redirects=True,
        max_redirects=max_redirects,
        timeout=httpx.Timeout(timeout_s),
    )


@contextlib.contextmanager
def client_scope(
    client: httpx.Client | None, *, timeout_s: float = 60.0, max_redirects: int = 5
) -> Iterator[httpx.Client]:
    """Use the caller's client as-is, or open (and close) a private one."""

    if client is not None:
        yield client
        return
    with open_client(timeout_s=timeout_s, max_redirects=max_redirects) as owned:
        yield owned


def fetch_json(url: str, *, client: httpx.Client) -> Any:
    """
    GET a JSON document. Network errors and non-2xx statuses raise `DownloadFailed`;
    an unparseable body raises `ValueError`.
    """

    try:
        response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise DownloadFailed(
            f"HTTP {exc.response.status_code} for {url}",
            detail={"url": url, "status_code": exc.response.status_code},
        ) from exc
    except httpx.HTTPError as exc:
        raise DownloadFailed(f"Request failed for {url}: {exc}", detail={"url": url}) from exc

    return json.loads(response.content.decode("utf-8"))


def download_to_file(
    url: str,
    dest: Path,
    *,
    client: httpx.Client,
    on_bytes: ByteProgress | None = None,
) -> int:
    """
    Stream `url` into `dest`, reporting byte progress. Returns the number of bytes written.

    A failed transfer removes the partial file before raising `DownloadFailed`.
    """

    dest.parent.mkdir(parents=True, exist_ok=True)
    received = 0
    logger.info("Downloading %s -> %s", url, dest)
    try:
        with client.stream("GET", url) as response:
            response.raise_for_status()
            total = int(response.headers.get("content-length") or 0) or None
            with dest.open("wb") as out:
                for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                    out.write(chunk)
                    received += len(chunk)
                    if on_bytes is not None:
                        on_bytes(received, total)
    except httpx.HTTPStatusError as exc:
        dest.unlink(missing_ok=True)
        raise DownloadFailed(
            f"Download failed: HTTP {exc.response.status_code} for {url}",
            detail={"url": url, "status_code": exc.response.status_code},
        ) from exc
    except (httpx.HTTPError, OSError) as exc:
        dest.unlink(missing_ok=True)
        raise DownloadFailed(f"Download failed for {url}: {exc}", detail={"url": url}) from exc

    logger.info("Downloaded %d bytes from %s", received, url)
    return received
