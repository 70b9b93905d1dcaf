"""
Registry sources: where catalog documents and archive bytes come from.

A registry locator is resolved once into one of two sources sharing the same
contract (fetch_document / fetch_bytes):

- LocalRegistrySource: ``file://`` URLs, absolute paths, ``./relative`` paths.
- HttpRegistrySource: ``http://`` / ``https://`` base URLs, fetched with
  httpx (redirects followed up to a hop limit, per-request timeout).

Network failures are mapped to the skpm registry error taxonomy here so the
client above never handles httpx exceptions directly.
"""

import json
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import urljoin, urlparse
from urllib.request import url2pathname

import httpx
import structlog

from .. import __version__
from ..errors import (
    DocumentNotFoundError,
    HttpStatusError,
    RegistryUnreachableError,
    RequestTimeoutError,
    TooManyRedirectsError,
    UnsupportedRegistryError,
)
from .models import DownloadInfo

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 15.0
DEFAULT_MAX_REDIRECTS = 5

_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)


def is_http_locator(value: str) -> bool:
    return bool(_HTTP_RE.match(value.strip()))


def file_url_to_path(url: str) -> Path:
    """Convert a ``file://`` URL to a local path."""
    return Path(url2pathname(urlparse(url).path))


class HttpFetcher:
    """Thin httpx wrapper with skpm error mapping.

    Shared by HttpRegistrySource and by the client for tarballs declared with
    an absolute URL.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: httpx.BaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.http = httpx.Client(
            headers={"User-Agent": f"skpm/{__version__}"},
            timeout=timeout,
            follow_redirects=True,
            max_redirects=max_redirects,
            transport=transport,
        )
        self.log = logger.bind(component="http_fetcher")

    def get_json(self, url: str) -> Any:
        """GET url and decode a JSON body.

        Raises:
            HttpStatusError: Non-2xx final status.
            TooManyRedirectsError / RequestTimeoutError /
            RegistryUnreachableError: Transport failures.
        """
        self.log.debug("http.get", url=url)
        try:
            response = self.http.get(url)
        except httpx.HTTPError as e:
            raise self._map_error(e, url) from e
        if not response.is_success:
            raise HttpStatusError(response.status_code, url)
        try:
            return response.json()
        except ValueError as e:
            raise RegistryUnreachableError(f"Invalid JSON from {url}: {e}", location=url) from e

    def download(self, url: str, target: Path) -> DownloadInfo:
        """Stream url into target."""
        self.log.debug("http.download", url=url, target=str(target))
        try:
            with self.http.stream("GET", url) as response:
                if not response.is_success:
                    raise HttpStatusError(response.status_code, url)
                with open(target, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
                return DownloadInfo(
                    url=url,
                    status_code=response.status_code,
                    content_type=response.headers.get("content-type"),
                )
        except httpx.HTTPError as e:
            raise self._map_error(e, url) from e

    def close(self) -> None:
        self.http.close()

    def _map_error(self, error: httpx.HTTPError, url: str) -> RegistryUnreachableError:
        if isinstance(error, httpx.TooManyRedirects):
            return TooManyRedirectsError(url, self.max_redirects)
        if isinstance(error, httpx.TimeoutException):
            return RequestTimeoutError(url, self.timeout)
        return RegistryUnreachableError(f"Registry unreachable: {url} ({error})", location=url)


class RegistrySource(ABC):
    """Contract shared by local and network registries."""

    def __init__(self, locator: str):
        self.locator = locator

    @abstractmethod
    def location_of(self, relative_path: str) -> str:
        """Human-readable location (URL or path) of a registry-relative path."""

    @abstractmethod
    def fetch_document(self, relative_path: str) -> Any:
        """Read a JSON document at a registry-relative path."""

    @abstractmethod
    def fetch_bytes(self, relative_path: str, target: Path) -> DownloadInfo:
        """Copy or download raw bytes at a registry-relative path into target."""

    @property
    def is_remote(self) -> bool:
        return False

    def close(self) -> None:
        pass


class LocalRegistrySource(RegistrySource):
    """Registry laid out on the local filesystem."""

    def __init__(self, locator: str, base_path: Path):
        super().__init__(locator)
        self.base_path = base_path

    def _path(self, relative_path: str) -> Path:
        return self.base_path / relative_path.lstrip("/")

    def location_of(self, relative_path: str) -> str:
        return str(self._path(relative_path))

    def fetch_document(self, relative_path: str) -> Any:
        path = self._path(relative_path)
        if not path.is_file():
            raise DocumentNotFoundError(f"Registry document not found: {path}", location=str(path))
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RegistryUnreachableError(f"Cannot read {path}: {e}", location=str(path)) from e

    def fetch_bytes(self, relative_path: str, target: Path) -> DownloadInfo:
        return copy_local_file(self._path(relative_path), target)


class HttpRegistrySource(RegistrySource):
    """Registry served over HTTP(S)."""

    def __init__(
        self,
        locator: str,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(locator)
        self.base_url = base_url
        self.fetcher = HttpFetcher(timeout=timeout, max_redirects=max_redirects, transport=transport)

    def location_of(self, relative_path: str) -> str:
        return urljoin(f"{self.base_url}/", relative_path.lstrip("/"))

    def fetch_document(self, relative_path: str) -> Any:
        return self.fetcher.get_json(self.location_of(relative_path))

    def fetch_bytes(self, relative_path: str, target: Path) -> DownloadInfo:
        return self.fetcher.download(self.location_of(relative_path), target)

    @property
    def is_remote(self) -> bool:
        return True

    def close(self) -> None:
        self.fetcher.close()


def copy_local_file(source: Path, target: Path) -> DownloadInfo:
    if not source.is_file():
        raise DocumentNotFoundError(f"Registry file not found: {source}", location=str(source))
    shutil.copyfile(source, target)
    return DownloadInfo(url=source.as_uri(), status_code=200, content_type="application/gzip")


def resolve_source(
    locator: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
    transport: httpx.BaseTransport | None = None,
) -> RegistrySource:
    """Pick the source implementation for a registry locator.

    Raises:
        UnsupportedRegistryError: Bare names and unknown schemes.
    """
    trimmed = locator.strip().rstrip("/")
    if trimmed.startswith("file://"):
        return LocalRegistrySource(locator, file_url_to_path(trimmed))
    if is_http_locator(trimmed):
        return HttpRegistrySource(
            locator,
            trimmed,
            timeout=timeout,
            max_redirects=max_redirects,
            transport=transport,
        )
    if trimmed and (Path(trimmed).is_absolute() or trimmed.startswith(".")):
        return LocalRegistrySource(locator, Path(trimmed).resolve())
    raise UnsupportedRegistryError(locator)
