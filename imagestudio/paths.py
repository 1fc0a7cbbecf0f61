from __future__ import annotations

from pathlib import Path

# Resolved once at import; everything is relative to the project root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
PUBLIC_DIR = PROJECT_ROOT / "frontend"
IMAGES_DIR = PROJECT_ROOT / "generated-images"
ENV_PATH = PROJECT_ROOT / ".env"
