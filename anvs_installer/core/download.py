"""
Release artifact downloads.

This module fetches the release tarball and its companion checksum file:
- HTTP/HTTPS downloads with TLS verification
- Redirect following (301/302/303/307/308) with a hard depth cap
- Streaming writes to a temporary '.part' file, renamed on completion
- Timeout handling with a distinct TimedOut error

Nothing is retried here; a failed run can simply be invoked again.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import requests
from requests.exceptions import RequestException, Timeout

from .exceptions import (
    DownloadFailed,
    FilesystemError,
    NetworkError,
    RedirectLimitExceeded,
    TimedOut,
)
from .platform import ReleaseTarget

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_TIMEOUT = 30
CHUNK_SIZE = 8192


@dataclass
class ReleaseArtifact:
    """A downloaded release tarball plus its published checksum text."""

    version: str
    target: ReleaseTarget
    tarball_path: Path
    checksum_text: str


def tarball_name(tool_name: str, target: ReleaseTarget) -> str:
    """Name of the release tarball for a target (e.g. 'anvs-x86_64-apple-darwin.tar.gz')."""
    return f"{tool_name}-{target.value}.tar.gz"


def release_urls(
    base_url: str, tool_name: str, version: str, target: ReleaseTarget
) -> tuple[str, str]:
    """
    Build the tarball and checksum URLs for a release.

    Example:
        >>> release_urls("https://example.com/download", "anvs", "1.2.0",
        ...              ReleaseTarget.LINUX_X64)[0]
        'https://example.com/download/v1.2.0/anvs-x86_64-unknown-linux-gnu.tar.gz'
    """
    version = version.lstrip("v")
    name = tarball_name(tool_name, target)
    tarball_url = f"{base_url.rstrip('/')}/v{version}/{name}"
    return tarball_url, f"{tarball_url}.sha256"


class ReleaseFetcher:
    """
    Downloads release artifacts over HTTP(S).

    Attributes:
        base_url: Release download root; '/v<version>/<tarball>' is appended
        tool_name: Name of the tool binary, used in artifact names
        timeout: Per-request timeout in seconds
        max_redirects: Maximum number of redirects followed per request
    """

    def __init__(
        self,
        base_url: str,
        tool_name: str = "anvs",
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.tool_name = tool_name
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.session = session or requests.Session()

    def fetch_artifact(
        self, target: ReleaseTarget, version: str, destination_dir: Path
    ) -> ReleaseArtifact:
        """
        Download the tarball and checksum for a release.

        The tarball is fetched first, then the checksum file; downloads run
        one after the other.

        Args:
            target: Release target of the host
            version: Release version (with or without leading 'v')
            destination_dir: Directory the tarball is written to

        Returns:
            ReleaseArtifact describing the downloaded files

        Raises:
            DownloadFailed: If a request ends with a non-2xx status
            RedirectLimitExceeded: If a server redirects too many times
            TimedOut: If the server stops answering
            NetworkError: On any other transport failure
            FilesystemError: If the tarball cannot be written locally
        """
        tarball_url, checksum_url = release_urls(
            self.base_url, self.tool_name, version, target
        )
        destination_dir = Path(destination_dir)
        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Cannot create download directory {destination_dir}: {e}"
            ) from e
        tarball_path = destination_dir / tarball_name(self.tool_name, target)

        logger.info(f"Downloading {tarball_url}...")
        self.download_file(tarball_url, tarball_path)

        logger.info(f"Downloading {checksum_url}...")
        checksum_text = self.fetch_text(checksum_url)

        return ReleaseArtifact(
            version=version.lstrip("v"),
            target=target,
            tarball_path=tarball_path,
            checksum_text=checksum_text,
        )

    def download_file(self, url: str, destination: Path) -> Path:
        """
        Stream a URL to a file.

        Data is written to '<destination>.part' and renamed onto the
        destination only once the body has been fully received; the partial
        file is removed on any failure.
        """
        destination = Path(destination)
        partial = destination.with_name(destination.name + ".part")

        response = self._get(url, stream=True)
        try:
            with open(partial, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
            partial.replace(destination)
        except Timeout as e:
            partial.unlink(missing_ok=True)
            raise TimedOut(f"Timed out while downloading {url}") from e
        except RequestException as e:
            partial.unlink(missing_ok=True)
            raise NetworkError(f"Network error while downloading {url}: {e}") from e
        except OSError as e:
            # requests errors subclass OSError; they are handled above
            partial.unlink(missing_ok=True)
            raise FilesystemError(f"Failed to write {destination}: {e}") from e
        except Exception:
            partial.unlink(missing_ok=True)
            raise
        finally:
            response.close()

        logger.debug(f"Download complete: {destination}")
        return destination

    def fetch_text(self, url: str) -> str:
        """Fetch a small text document (such as a checksum file)."""
        response = self._get(url, stream=False)
        try:
            return response.text
        finally:
            response.close()

    def _get(self, url: str, stream: bool) -> requests.Response:
        """
        Issue a GET, following redirects by hand up to max_redirects.

        Returns:
            The terminal 2xx response

        Raises:
            DownloadFailed, RedirectLimitExceeded, TimedOut, NetworkError
        """
        current_url = url
        redirects = 0

        while True:
            try:
                response = self.session.get(
                    current_url,
                    stream=stream,
                    timeout=self.timeout,
                    allow_redirects=False,
                )
            except Timeout as e:
                raise TimedOut(f"Timed out requesting {current_url}") from e
            except RequestException as e:
                raise NetworkError(f"Network error requesting {current_url}: {e}") from e

            if response.status_code in REDIRECT_STATUSES:
                location = response.headers.get("Location")
                response.close()
                if not location:
                    raise DownloadFailed(response.status_code, current_url)
                if redirects >= self.max_redirects:
                    raise RedirectLimitExceeded(
                        response.status_code, url, self.max_redirects
                    )
                redirects += 1
                current_url = urljoin(current_url, location)
                logger.debug(f"Following redirect to {current_url}")
                continue

            if not 200 <= response.status_code < 300:
                response.close()
                raise DownloadFailed(response.status_code, current_url)

            return response


__all__ = [
    "ReleaseArtifact",
    "ReleaseFetcher",
    "release_urls",
    "tarball_name",
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_TIMEOUT",
]
