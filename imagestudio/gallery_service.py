from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .file_utils import local_image_url
from .filenames import decode_filename, is_image_filename
from .models import GalleryImage, GalleryStats

logger = logging.getLogger("imagestudio.gallery")


def _timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _bump(counter: Dict[str, int], key: Optional[str]) -> None:
    if key:
        counter[key] = counter.get(key, 0) + 1


def compute_stats(images: Sequence[GalleryImage]) -> GalleryStats:
    """Purpose: Fold gallery images into aggregate counts.
    Inputs/Outputs: Input is a sequence of GalleryImage; output is GalleryStats.
    Side Effects / State: None; pure function.
    Dependencies: GalleryImage metadata fields.
    Failure Modes: None; empty input yields zero counts and no timestamps.
    If Removed: GET /api/gallery/stats has nothing to report.
    Testing Notes: Missing metadata fields must not appear as group keys.
    """
    # Missing fields are left out of their group instead of counted as "None".
    stats = GalleryStats(total_images=len(images), total_size=sum(image.size for image in images))
    for image in images:
        _bump(stats.by_model, image.metadata.model)
        _bump(stats.by_type, image.metadata.type)
        _bump(stats.by_size, image.metadata.size)
        _bump(stats.by_quality, image.metadata.quality)
    if images:
        created = [image.created_at for image in images]
        stats.oldest_image = min(created)
        stats.newest_image = max(created)
    return stats


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


class GalleryService:
    """Read-only view over the generated-images directory."""

    def __init__(self, images_dir: Path) -> None:
        self._images_dir = images_dir

    def list_images(self) -> List[GalleryImage]:
        """Purpose: Scan the images directory and describe every image file.
        Inputs/Outputs: No inputs; returns GalleryImage list, newest first.
        Side Effects / State: Creates the directory when it is missing.
        Dependencies: os.scandir, filenames.decode_filename.
        Failure Modes: Files that fail to stat are logged and skipped; a
            directory listing failure propagates as OSError.
        If Removed: The gallery endpoints cannot list anything.
        Testing Notes: Empty or missing directory returns []; ordering by
            creation time descending.
        """
        # A missing directory is created and reported as an empty gallery.
        if not self._images_dir.exists():
            logger.info("step=scan status=created_dir path=%s", self._images_dir)
            self._images_dir.mkdir(parents=True, exist_ok=True)
            return []

        with os.scandir(self._images_dir) as entries:
            names = [entry.name for entry in entries if entry.is_file()]
        image_names = [name for name in names if is_image_filename(name)]
        logger.info("step=scan path=%s files=%d images=%d", self._images_dir, len(names), len(image_names))

        images: List[GalleryImage] = []
        for name in image_names:
            file_path = self._images_dir / name
            try:
                stat = file_path.stat()
            except OSError as exc:
                logger.warning("step=stat status=error file=%s error=%s", name, exc)
                continue
            created = getattr(stat, "st_birthtime", None) or stat.st_ctime
            images.append(
                GalleryImage(
                    filename=name,
                    filepath=str(file_path),
                    url=local_image_url(name),
                    size=stat.st_size,
                    created_at=_timestamp(created),
                    modified_at=_timestamp(stat.st_mtime),
                    metadata=decode_filename(name),
                )
            )

        # sort() is stable, so ties keep directory enumeration order.
        images.sort(key=lambda image: image.created_at, reverse=True)
        return images

    def get_stats(self) -> GalleryStats:
        images = self.list_images()
        stats = compute_stats(images)
        logger.info(
            "step=stats images=%d total=%s models=%d types=%d",
            stats.total_images,
            format_file_size(stats.total_size),
            len(stats.by_model),
            len(stats.by_type),
        )
        return stats
