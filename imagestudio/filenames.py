from __future__ import annotations

import re
from datetime import datetime
from pathlib import PurePath
from typing import List, Optional

from .models import ImageMetadata
from .utils import isoformat_utc, utc_now

# Model tags written by the chat flow; "gpt-image-1" is kept for files saved
# before the chat model tag was used.
CHAT_MODEL_TAGS = ("gpt-4.1-mini", "gpt-image-1")
QUALITY_KEYWORDS = ("standard", "hd", "auto", "low", "medium", "high")
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")
_DIMENSIONS = re.compile(r"^\d+x\d+$")
_MIN_SEGMENTS = 5


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Purpose: Render a filename-safe ISO timestamp.
    Inputs/Outputs: Optional datetime (defaults to now); returns
        "2024-12-20T14-30-22-000Z".
    Side Effects / State: Reads the clock when no datetime is passed.
    Dependencies: Uses utils.isoformat_utc.
    Failure Modes: None.
    If Removed: Encoded filenames lose their timestamp segment.
    Testing Notes: Output must contain no ":" or "." characters.
    """
    # Same ISO text as the API, with separators that are unsafe on disk replaced.
    return re.sub(r"[:.]", "-", isoformat_utc(moment or utc_now()))


def sanitize_prompt_fragment(text: Optional[str], limit: int = 30) -> str:
    """Purpose: Turn free text into a filename fragment without underscores.
    Inputs/Outputs: Input is raw prompt text; output like "a-beautiful-sunset".
    Side Effects / State: None; pure function.
    Dependencies: Used by encode_filename.
    Failure Modes: Returns "" for empty or symbol-only input.
    If Removed: Prompt text could inject "_" and shift the decoded segments.
    Testing Notes: Check truncation to `limit` characters before collapsing.
    """
    # Truncate first, then collapse non-alphanumeric runs into single dashes.
    if not text:
        return ""
    return _NON_ALNUM.sub("-", text[:limit]).strip("-")


def encode_filename(
    model: Optional[str] = None,
    size: Optional[str] = None,
    quality: Optional[str] = None,
    prompt: Optional[str] = None,
    when: Optional[datetime] = None,
    extension: str = "png",
) -> str:
    """Purpose: Encode generation parameters into an image filename.
    Inputs/Outputs: Model/size/quality/prompt text and an optional timestamp;
        returns "{model}_{W_H}_{quality}_{timestamp}[_{prompt}].{ext}".
    Side Effects / State: Reads the clock when `when` is omitted.
    Dependencies: format_timestamp, sanitize_prompt_fragment; paired with decode_filename.
    Failure Modes: None; missing values fall back to defaults.
    If Removed: Gallery metadata can no longer be recovered from disk.
    Testing Notes: decode_filename(encode_filename(...)) should recover the inputs.
    """
    # Fill defaults and flatten the size so it splits into two segments.
    model_part = model or "dalle2"
    size_part = (size or "1024x1024").replace("x", "_")
    quality_part = quality or "auto"
    fragment = sanitize_prompt_fragment(prompt)
    prompt_part = f"_{fragment}" if fragment else ""
    return f"{model_part}_{size_part}_{quality_part}_{format_timestamp(when)}{prompt_part}.{extension}"


def is_image_filename(filename: str) -> bool:
    return filename.lower().endswith(IMAGE_EXTENSIONS)


def decode_filename(filename: str) -> ImageMetadata:
    """Purpose: Recover generation metadata from an image filename.
    Inputs/Outputs: Input is a bare filename; output is ImageMetadata.
    Side Effects / State: None; pure function.
    Dependencies: Paired with encode_filename; used by the gallery service.
    Failure Modes: Never raises; unrecognized names come back with type "unknown".
    If Removed: The gallery shows files without model/size/quality/prompt.
    Testing Notes: Cover the full format, the legacy heuristic, and bare names.
    """
    # Strip the extension and split on the segment separator.
    stem = PurePath(filename).stem
    parts = stem.split("_")
    if len(parts) >= _MIN_SEGMENTS:
        return _decode_full(filename, parts)
    if len(parts) >= 2:
        return _decode_legacy(filename, parts)
    return ImageMetadata(type="unknown")


def _decode_full(filename: str, parts: List[str]) -> ImageMetadata:
    # Size is two numeric segments when it came from "WxH", one otherwise.
    model = parts[0]
    if parts[1].isdigit() and parts[2].isdigit():
        size = f"{parts[1]}_{parts[2]}"
        rest = parts[3:]
    else:
        size = parts[1]
        rest = parts[2:]
    quality = rest[0] if rest else None
    prompt_text = " ".join(rest[2:]).replace("-", " ").strip()

    if "chat" in filename.lower() or model in CHAT_MODEL_TAGS:
        kind = "chat"
    else:
        kind = "direct"
    return ImageMetadata(
        model=model or None,
        size=size or None,
        quality=quality or None,
        prompt=prompt_text or None,
        type=kind,
    )


def _decode_legacy(filename: str, parts: List[str]) -> ImageMetadata:
    # Type precedence: "chat" beats "direct"/"dall-e"; otherwise unknown.
    lowered = filename.lower()
    if "chat" in lowered:
        kind = "chat"
    elif "direct" in lowered or "dall-e" in lowered:
        kind = "direct"
    else:
        kind = "unknown"

    metadata = ImageMetadata(type=kind)
    for part in parts:
        if "dall-e" in part or "gpt-image" in part:
            metadata.model = part
        elif _DIMENSIONS.match(part):
            metadata.size = part
        elif part in QUALITY_KEYWORDS:
            metadata.quality = part
    return metadata
