#!/usr/bin/env python3
"""Download Wikidata entity dumps."""
import logging, pathlib, time
from typing import Optional

import httpx

from shared.errors import DownloadError

logger = logging.getLogger(__name__)

DUMP_URL = "https://dumps.wikimedia.org/wikidatawiki/entities/{version}-all.json.bz2"
DOWNLOAD_CHUNK = 1024 * 1024
LOG_EVERY_BYTES = 256 * 1024 * 1024


def dump_url(version: str = "latest") -> str:
    return DUMP_URL.format(version=version)


def _filename_from(url: httpx.URL) -> str:
    name = url.path.rstrip("/").split("/")[-1]
    if not name:
        raise DownloadError(f"cannot derive a file name from {url}")
    return name


def download_dump(version: str = "latest", dest_dir=".", client: Optional[httpx.Client] = None,
                  force: bool = False) -> pathlib.Path:
    """Stream the dump for ``version`` into ``dest_dir`` and return its path.

    The file is named after the last segment of the final (post-redirect) URL.
    """
    url = dump_url(version)
    logger.debug("URL: %s", url)
    own_client = client is None
    if own_client:
        client = httpx.Client(follow_redirects=True, timeout=httpx.Timeout(30.0, read=300.0))
    start = time.time()
    target = None
    try:
        with client.stream("GET", url) as res:
            if res.status_code != 200:
                raise DownloadError(f"Failed to GET from '{url}': HTTP {res.status_code}")
            total = res.headers.get("content-length")
            total = int(total) if total else None
            path = pathlib.Path(dest_dir) / _filename_from(res.url)
            if path.exists() and not force:
                raise DownloadError(f"{path} already exists, use force overwrite to replace it")
            logger.info("Downloading %s to %s (%s bytes)", url, path, total if total is not None else "unknown")
            downloaded = 0
            next_log = LOG_EVERY_BYTES
            # from here on the file on disk is ours to remove on failure
            target = path
            try:
                with open(target, 'wb') as f:
                    for chunk in res.iter_bytes(DOWNLOAD_CHUNK):
                        f.write(chunk)
                        downloaded += len(chunk)
                        if downloaded >= next_log:
                            logger.info("Downloaded %s / %s bytes", downloaded, total or "?")
                            next_log += LOG_EVERY_BYTES
            except OSError as e:
                raise DownloadError(f"Error while writing to {target}: {e}", e) from e
        if total is not None and downloaded != total:
            raise DownloadError(f"Downloaded {downloaded} bytes from {url}, expected {total}")
    except httpx.HTTPError as e:
        _discard(target)
        raise DownloadError(f"Error while downloading {url}: {e}", e) from e
    except DownloadError:
        _discard(target)
        raise
    finally:
        if own_client:
            client.close()

    logger.info("Downloaded %s to %s in %.1fs", url, target, time.time() - start)
    return target


def _discard(target: Optional[pathlib.Path]) -> None:
    """Remove a partially written dump so a retry does not need force."""
    if target is None:
        return
    try:
        target.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial download %s: %s", target, e)
    else:
        logger.info("Removed partial download %s", target)
