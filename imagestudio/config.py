from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .paths import IMAGES_DIR, PUBLIC_DIR


@dataclass(frozen=True)
class Settings:
    """Configuration container for provider models, defaults, and directories."""
    openai_api_key: str
    chat_model: str
    default_image_model: str
    default_image_size: str
    default_image_quality: str
    chat_image_size: str
    chat_image_quality: str
    images_dir: Path
    public_dir: Path
    download_timeout: float
    host: str
    port: int


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables.
    Dependencies: Uses os.getenv and the directories from paths.
    Failure Modes: Invalid PORT/DOWNLOAD_TIMEOUT env values raise ValueError.
    If Removed: The app cannot locate its directories or provider credentials.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Directory overrides are optional; default to the project-relative layout.
    images_dir = os.getenv("IMAGES_DIR")
    public_dir = os.getenv("PUBLIC_DIR")

    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        chat_model=os.getenv("CHAT_MODEL", "gpt-4.1-mini"),
        default_image_model=os.getenv("IMAGE_MODEL", "dall-e-2"),
        default_image_size=os.getenv("IMAGE_SIZE", "256x256"),
        default_image_quality=os.getenv("IMAGE_QUALITY", "auto"),
        chat_image_size=os.getenv("CHAT_IMAGE_SIZE", "1024x1024"),
        chat_image_quality=os.getenv("CHAT_IMAGE_QUALITY", "low"),
        images_dir=Path(images_dir).resolve() if images_dir else IMAGES_DIR,
        public_dir=Path(public_dir).resolve() if public_dir else PUBLIC_DIR,
        download_timeout=float(os.getenv("DOWNLOAD_TIMEOUT", "60")),
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "3000")),
    )
