from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import requests

from elevation.errors import DownloadError

log = logging.getLogger(__name__)


class ArtifactFetcher:
    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        """
        Downloads rendered thumbnails from provider-signed URLs.

        Params:
            session: optional requests.Session for connection reuse
            timeout: per-request timeout in seconds; None leaves it to the network stack
        """
        self.session = session or requests.Session()
        self.timeout = timeout

    def download(self, url: str, destination: str | Path) -> Path:
        """
        GET `url` and write the full body to `destination`.

        The body is buffered before anything is written, so a failed request
        leaves no file behind.
        """
        dest = Path(destination)
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download image: {e}", url=url) from e

        if not r.ok:
            raise DownloadError(
                f"Failed to download image: {r.status_code} {r.reason}",
                url=url,
                status_code=r.status_code,
            )

        body = r.content
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(body)
        log.debug("Downloaded %d bytes to %s", len(body), dest)
        return dest
