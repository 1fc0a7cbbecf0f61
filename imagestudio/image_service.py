from __future__ import annotations

import base64
import binascii
import logging
import time
from typing import Optional

from .config import Settings
from .errors import ImageSaveError, NoImageDataError
from .file_utils import download_image, ensure_directory, local_image_url, write_image_bytes
from .filenames import encode_filename
from .models import GenerateImageResult
from .openai_client import OpenAIClient
from .utils import elapsed_ms, shorten, utc_now_iso

logger = logging.getLogger("imagestudio.direct")


def build_final_prompt(prompt: str, system_prompt: Optional[str] = None) -> str:
    """Prefix the user prompt with a labeled system-context block when one is given."""
    if not system_prompt:
        return prompt
    return f"General system prompt:\n{system_prompt}\n\n Image specific prompt:\n{prompt}"


class ImageService:
    """Direct single-prompt generation: provider call, then save to disk."""

    def __init__(self, client: OpenAIClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    def generate(
        self,
        prompt: str,
        request_id: str = "unknown",
        model: Optional[str] = None,
        size: Optional[str] = None,
        quality: Optional[str] = None,
        system_prompt: Optional[str] = None,
    ) -> GenerateImageResult:
        """Purpose: Generate one image from a prompt and persist it locally.
        Inputs/Outputs: Prompt plus optional model/size/quality/system prompt;
            returns GenerateImageResult with local URL and final prompt.
        Side Effects / State: One provider call and one file written to images_dir.
        Dependencies: OpenAIClient.generate_image, filenames, file_utils.
        Failure Modes: ProviderError from the call, NoImageDataError when the
            reply has neither URL nor base64, ImageSaveError on download/write.
        If Removed: POST /api/generate-image has nothing to call.
        Testing Notes: Fake client returning a URL or base64; check the filename.
        """
        # Fill defaults, then combine the system context with the user prompt.
        model = model or self._settings.default_image_model
        size = size or self._settings.default_image_size
        quality = quality or self._settings.default_image_quality
        final_prompt = build_final_prompt(prompt, system_prompt)

        logger.info(
            "request=%s step=generate model=%s size=%s quality=%s system_prompt=%s prompt=%s",
            request_id,
            model,
            size,
            quality,
            bool(system_prompt),
            shorten(prompt, 60),
        )
        started = time.perf_counter()
        payload = self._client.generate_image(final_prompt, model=model, size=size, quality=quality)
        logger.info(
            "request=%s step=provider status=success duration_ms=%d has_url=%s has_b64=%s",
            request_id,
            elapsed_ms(started),
            bool(payload.url),
            bool(payload.b64_json),
        )
        if not payload.url and not payload.b64_json:
            logger.error("request=%s step=provider status=no_image_data", request_id)
            raise NoImageDataError("No image data returned from provider")

        filename = encode_filename(model=model, size=size, quality=quality, prompt=prompt)
        file_path = ensure_directory(self._settings.images_dir) / filename

        started = time.perf_counter()
        if payload.b64_json:
            try:
                data = base64.b64decode(payload.b64_json, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ImageSaveError(f"Failed to save image: {exc}") from exc
            write_image_bytes(data, file_path, request_id)
        else:
            download_image(payload.url, file_path, request_id, timeout=self._settings.download_timeout)
        logger.info("request=%s step=save status=success duration_ms=%d path=%s", request_id, elapsed_ms(started), file_path)

        return GenerateImageResult(
            image_url=payload.url,
            local_image_url=local_image_url(filename),
            filename=filename,
            saved_at=utc_now_iso(),
            model=model,
            size=size,
            quality=quality,
            final_prompt=final_prompt,
        )
