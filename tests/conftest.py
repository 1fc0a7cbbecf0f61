from __future__ import annotations

import base64
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from imagestudio.app import create_app
from imagestudio.config import Settings
from imagestudio.errors import ProviderError
from imagestudio.openai_client import GeneratedImage, ImagePayload, ProviderReply, TextSegment

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 200
PNG_B64 = base64.b64encode(PNG_BYTES).decode("ascii")


class FakeProviderClient:
    """Stands in for OpenAIClient; records calls and replays queued results."""

    def __init__(self) -> None:
        self.image_calls: List[dict] = []
        self.response_calls: List[dict] = []
        self.image_payload = ImagePayload(b64_json=PNG_B64)
        self.replies: List[object] = []
        self._counter = 0

    def generate_image(self, prompt: str, model: str, size: str, quality: str) -> ImagePayload:
        self.image_calls.append({"prompt": prompt, "model": model, "size": size, "quality": quality})
        if isinstance(self.image_payload, Exception):
            raise self.image_payload
        return self.image_payload

    def create_response(
        self,
        message: str,
        model: str,
        previous_response_id: Optional[str] = None,
        size: str = "1024x1024",
        quality: str = "low",
    ) -> ProviderReply:
        self.response_calls.append(
            {
                "message": message,
                "model": model,
                "previous_response_id": previous_response_id,
                "size": size,
                "quality": quality,
            }
        )
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        self._counter += 1
        return ProviderReply(response_id=f"resp_{self._counter}", outputs=[TextSegment(text="Sure.")])


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    public_dir = tmp_path / "public"
    public_dir.mkdir()
    (public_dir / "index.html").write_text("<html>studio</html>", encoding="utf-8")
    return Settings(
        openai_api_key="test-key",
        chat_model="gpt-4.1-mini",
        default_image_model="dall-e-2",
        default_image_size="256x256",
        default_image_quality="auto",
        chat_image_size="1024x1024",
        chat_image_quality="low",
        images_dir=tmp_path / "generated-images",
        public_dir=public_dir,
        download_timeout=5.0,
        host="127.0.0.1",
        port=3000,
    )


@pytest.fixture
def fake_client() -> FakeProviderClient:
    return FakeProviderClient()


@pytest.fixture
def client(settings: Settings, fake_client: FakeProviderClient) -> TestClient:
    app = create_app(settings=settings, client=fake_client)
    return TestClient(app)


def image_reply(response_id: str, text: Optional[str] = None) -> ProviderReply:
    outputs: list = []
    if text:
        outputs.append(TextSegment(text=text))
    outputs.append(GeneratedImage(result=PNG_B64))
    return ProviderReply(response_id=response_id, outputs=outputs)


def provider_failure(message: str = "rate limited") -> ProviderError:
    return ProviderError(message)


def without_public_dir(settings: Settings, tmp_path: Path) -> Settings:
    return replace(settings, public_dir=tmp_path / "missing")
