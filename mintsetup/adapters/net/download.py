"""
Downloader — fetch remote installers and archives with integrity checks.

Network problems are classified as ``TransientFailure`` so the executor
can retry them; client errors (404 and friends) are permanent.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import urllib.error
import urllib.request
from pathlib import Path

from mintsetup import __version__
from mintsetup.core.errors import MintSetupError, TransientFailure

logger = logging.getLogger(__name__)

_RETRYABLE_HTTP = {408, 425, 429, 500, 502, 503, 504}


def verify_checksum(path: Path, expected: str) -> bool:
    """Verify file checksum.  Format: ``algo:hex``.

    Supports every algorithm ``hashlib.new`` knows (sha256, sha1, md5, ...).
    """
    algo, expected_hash = expected.split(":", 1)
    h = hashlib.new(algo)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest() == expected_hash.lower()


class Downloader:
    """Fetch a URL into a local file."""

    def __init__(self, timeout: float = 60.0, user_agent: str = f"mintsetup/{__version__}"):
        self.timeout = timeout
        self.user_agent = user_agent

    def fetch(self, url: str, dest: Path, checksum: str | None = None) -> Path:
        """Download ``url`` to ``dest``.

        Raises:
            TransientFailure: network error, timeout, or retryable HTTP status.
            MintSetupError: permanent HTTP error or checksum mismatch.
        """
        logger.info("Downloading %s", url)
        request = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as resp, open(dest, "wb") as out:
                shutil.copyfileobj(resp, out)
        except urllib.error.HTTPError as e:
            if e.code in _RETRYABLE_HTTP:
                raise TransientFailure(f"HTTP {e.code} fetching {url}") from e
            raise MintSetupError(f"HTTP {e.code} fetching {url}") from e
        except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
            reason = getattr(e, "reason", e)
            raise TransientFailure(f"Download failed for {url}: {reason}") from e

        size = dest.stat().st_size
        logger.debug("Fetched %s (%d bytes) → %s", url, size, dest)

        if checksum and not verify_checksum(dest, checksum):
            raise MintSetupError(f"Checksum mismatch for {url} (expected {checksum})")
        return dest
