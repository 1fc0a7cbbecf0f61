from __future__ import annotations

import logging
from pathlib import Path

import httpx

from .errors import ImageSaveError
from .utils import shorten

logger = logging.getLogger("imagestudio.files")


def ensure_directory(path: Path) -> Path:
    """Create `path` (and parents) if it does not exist yet."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def local_image_url(filename: str) -> str:
    return f"/images/{filename}"


def download_image(url: str, file_path: Path, request_id: str = "unknown", timeout: float = 60.0) -> Path:
    """Purpose: Stream a remote image to disk.
    Inputs/Outputs: Inputs are the source URL, target path, request id for logs,
        and a timeout in seconds; returns the written path.
    Side Effects / State: Creates or overwrites `file_path`.
    Dependencies: Uses httpx streaming GET.
    Failure Modes: Non-200 responses, transport errors, and write errors raise
        ImageSaveError after the partial file is removed.
    If Removed: URL-based provider results can no longer be saved locally.
    Testing Notes: Use httpx.MockTransport-backed monkeypatching to simulate errors.
    """
    # Stream the body into the target file and count bytes for the log line.
    logger.info("request=%s step=download url=%s target=%s", request_id, shorten(url), file_path)
    downloaded = 0
    try:
        with httpx.stream("GET", url, timeout=timeout, follow_redirects=True) as response:
            logger.info(
                "request=%s step=download status=%s content_type=%s content_length=%s",
                request_id,
                response.status_code,
                response.headers.get("content-type"),
                response.headers.get("content-length"),
            )
            if response.status_code != 200:
                raise ImageSaveError(f"HTTP {response.status_code}")
            with file_path.open("wb") as handle:
                for chunk in response.iter_bytes():
                    downloaded += len(chunk)
                    handle.write(chunk)
    except (httpx.HTTPError, OSError, ImageSaveError) as exc:
        logger.error("request=%s step=download status=error error=%s", request_id, exc)
        file_path.unlink(missing_ok=True)
        if isinstance(exc, ImageSaveError):
            raise
        raise ImageSaveError(f"Failed to download image: {exc}") from exc

    logger.info("request=%s step=download status=success bytes=%d path=%s", request_id, downloaded, file_path)
    return file_path


def write_image_bytes(data: bytes, file_path: Path, request_id: str = "unknown") -> Path:
    """Write decoded image bytes to `file_path`, wrapping OS errors."""
    try:
        file_path.write_bytes(data)
    except OSError as exc:
        logger.error("request=%s step=write status=error path=%s error=%s", request_id, file_path, exc)
        raise ImageSaveError(f"Failed to save image: {exc}") from exc
    logger.info("request=%s step=write status=success bytes=%d path=%s", request_id, len(data), file_path)
    return file_path
