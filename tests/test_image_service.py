from __future__ import annotations

import re

import pytest

from conftest import PNG_BYTES, provider_failure
from imagestudio import image_service as image_service_module
from imagestudio.errors import NoImageDataError, ProviderError
from imagestudio.image_service import ImageService, build_final_prompt
from imagestudio.openai_client import ImagePayload


def test_build_final_prompt():
    assert build_final_prompt("a cat") == "a cat"
    assert build_final_prompt("a cat", "") == "a cat"
    assert build_final_prompt("a cat", "watercolor") == (
        "General system prompt:\nwatercolor\n\n Image specific prompt:\na cat"
    )


def test_generate_from_base64_applies_defaults(settings, fake_client):
    service = ImageService(fake_client, settings)
    result = service.generate("a red fox", "req_1")

    assert fake_client.image_calls == [
        {"prompt": "a red fox", "model": "dall-e-2", "size": "256x256", "quality": "auto"}
    ]
    assert re.match(r"^dall-e-2_256_256_auto_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z_a-red-fox\.png$", result.filename)
    assert result.local_image_url == f"/images/{result.filename}"
    assert result.image_url is None
    assert (settings.images_dir / result.filename).read_bytes() == PNG_BYTES


def test_generate_downloads_url(settings, fake_client, monkeypatch):
    downloads = []

    def fake_download(url, file_path, request_id="unknown", timeout=60.0):
        downloads.append((url, file_path, timeout))
        file_path.write_bytes(PNG_BYTES)
        return file_path

    monkeypatch.setattr(image_service_module, "download_image", fake_download)
    fake_client.image_payload = ImagePayload(url="https://cdn.example.test/img.png")
    result = ImageService(fake_client, settings).generate("sunset", model="dall-e-3", size="1024x1024", quality="hd")

    assert result.image_url == "https://cdn.example.test/img.png"
    assert result.filename.startswith("dall-e-3_1024_1024_hd_")
    assert downloads == [("https://cdn.example.test/img.png", settings.images_dir / result.filename, 5.0)]


def test_system_prompt_goes_to_provider_but_not_filename(settings, fake_client):
    result = ImageService(fake_client, settings).generate("tree", system_prompt="pixel art")
    assert fake_client.image_calls[0]["prompt"] == result.final_prompt
    assert result.final_prompt.endswith("Image specific prompt:\ntree")
    assert result.filename.endswith("_tree.png")


def test_no_image_data_raises(settings, fake_client):
    fake_client.image_payload = ImagePayload()
    with pytest.raises(NoImageDataError, match="No image data returned from provider"):
        ImageService(fake_client, settings).generate("tree")
    assert not settings.images_dir.exists() or list(settings.images_dir.iterdir()) == []


def test_provider_error_propagates(settings, fake_client):
    fake_client.image_payload = provider_failure("content policy")
    with pytest.raises(ProviderError, match="content policy"):
        ImageService(fake_client, settings).generate("tree")
