from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .errors import ImageSaveError
from .file_utils import ensure_directory, local_image_url, write_image_bytes
from .filenames import encode_filename
from .openai_client import GeneratedImage, OutputItem

logger = logging.getLogger("imagestudio.images")

_BASE64 = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


@dataclass(frozen=True)
class ImageSaveResult:
    """Where a saved image lives on disk and under /images."""
    local_image_url: str
    filename: str
    file_path: Path


def validate_base64_image(data: object) -> bool:
    """Cheap shape check: base64 alphabet and longer than a trivial payload."""
    if not data or not isinstance(data, str):
        return False
    return bool(_BASE64.match(data)) and len(data) > 100


def save_base64_image(
    image_base64: str,
    images_dir: Path,
    request_id: str = "unknown",
    model: Optional[str] = None,
    size: Optional[str] = None,
    quality: Optional[str] = None,
    prompt: Optional[str] = None,
) -> ImageSaveResult:
    """Purpose: Decode a base64 image and store it under an encoded filename.
    Inputs/Outputs: Base64 text, target directory, and generation parameters;
        returns an ImageSaveResult.
    Side Effects / State: Creates the directory if needed and writes one file.
    Dependencies: Uses filenames.encode_filename and file_utils helpers.
    Failure Modes: Undecodable base64 or write errors raise ImageSaveError.
    If Removed: Base64 results from either flow cannot be persisted.
    Testing Notes: Check the file bytes and that localImageUrl matches the filename.
    """
    # Apply the chat-flow defaults when parameters are absent.
    filename = encode_filename(
        model=model or "gpt-image-1",
        size=size or "1024x1024",
        quality=quality or "low",
        prompt=prompt or "chat_image",
    )
    file_path = ensure_directory(images_dir) / filename
    logger.info("request=%s step=save_base64 filename=%s length=%d", request_id, filename, len(image_base64))

    try:
        data = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.error("request=%s step=save_base64 status=invalid error=%s", request_id, exc)
        raise ImageSaveError(f"Failed to save image: {exc}") from exc

    write_image_bytes(data, file_path, request_id)
    return ImageSaveResult(local_image_url=local_image_url(filename), filename=filename, file_path=file_path)


def process_image_outputs(
    outputs: Sequence[OutputItem],
    images_dir: Path,
    request_id: str = "unknown",
    model: Optional[str] = None,
    size: Optional[str] = None,
    quality: Optional[str] = None,
    prompt: Optional[str] = None,
) -> Optional[ImageSaveResult]:
    """Purpose: Persist the first generated image found in a provider reply.
    Inputs/Outputs: Tagged output items and save parameters; returns the save
        result, or None when no image payload is present.
    Side Effects / State: Writes at most one file.
    Dependencies: Uses save_base64_image.
    Failure Modes: Propagates ImageSaveError from the save step.
    If Removed: Chat-generated images are never stored.
    Testing Notes: Empty list, empty payload, and a valid payload.
    """
    # Only the first image call is kept; later ones are ignored.
    images = [item for item in outputs if isinstance(item, GeneratedImage)]
    if not images:
        logger.info("request=%s step=image_outputs count=0", request_id)
        return None

    payload = images[0].result
    if not payload:
        logger.warning("request=%s step=image_outputs status=empty_payload", request_id)
        return None
    if not validate_base64_image(payload):
        logger.warning("request=%s step=image_outputs status=suspicious_payload length=%d", request_id, len(payload))

    logger.info("request=%s step=image_outputs count=%d length=%d", request_id, len(images), len(payload))
    return save_base64_image(
        payload,
        images_dir,
        request_id,
        model=model,
        size=size,
        quality=quality,
        prompt=prompt,
    )
