from __future__ import annotations

import re
from datetime import datetime, timezone

import pytest

from imagestudio.filenames import (
    decode_filename,
    encode_filename,
    format_timestamp,
    is_image_filename,
    sanitize_prompt_fragment,
)

MOMENT = datetime(2024, 12, 20, 14, 30, 22, tzinfo=timezone.utc)


def test_format_timestamp_replaces_separators():
    assert format_timestamp(MOMENT) == "2024-12-20T14-30-22-000Z"


def test_sanitize_prompt_fragment_collapses_symbols_and_truncates():
    assert sanitize_prompt_fragment("a beautiful sunset") == "a-beautiful-sunset"
    assert sanitize_prompt_fragment("  cats & dogs!! ") == "cats-dogs"
    assert sanitize_prompt_fragment("x" * 50) == "x" * 30
    assert sanitize_prompt_fragment("snake_case_words") == "snake-case-words"
    assert sanitize_prompt_fragment("") == ""
    assert sanitize_prompt_fragment(None) == ""


def test_encode_filename_layout():
    name = encode_filename("dall-e-3", "1024x1024", "hd", "a beautiful sunset", when=MOMENT)
    assert name == "dall-e-3_1024_1024_hd_2024-12-20T14-30-22-000Z_a-beautiful-sunset.png"


def test_encode_filename_defaults_and_no_prompt():
    name = encode_filename(when=MOMENT)
    assert name == "dalle2_1024_1024_auto_2024-12-20T14-30-22-000Z.png"


def test_encode_filename_matches_documented_pattern():
    name = encode_filename("dall-e-2", "256x256", "auto", "red fox")
    assert re.match(r"^dall-e-2_256_256_auto_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z_red-fox\.png$", name)


def test_decode_documented_example():
    metadata = decode_filename("dall-e-3_1024_1024_hd_2024-12-20T14-30-22-000Z_a-beautiful-sunset.png")
    assert metadata.model == "dall-e-3"
    assert metadata.size == "1024_1024"
    assert metadata.quality == "hd"
    assert metadata.prompt == "a beautiful sunset"
    assert metadata.type == "direct"


def test_decode_chat_model_tag_is_chat():
    name = encode_filename("gpt-4.1-mini", "1024x1536", "low", "gpt-4.1-mini", when=MOMENT)
    metadata = decode_filename(name)
    assert metadata.type == "chat"
    assert metadata.model == "gpt-4.1-mini"
    assert metadata.size == "1024_1536"
    assert metadata.quality == "low"


def test_decode_without_prompt_fragment():
    metadata = decode_filename("dall-e-2_256_256_auto_2024-12-20T14-30-22-000Z.png")
    assert metadata.prompt is None
    assert metadata.quality == "auto"
    assert metadata.type == "direct"


def test_decode_non_numeric_size_is_single_segment():
    metadata = decode_filename("gpt-image-1_auto_high_2024-12-20T14-30-22-000Z_robot.png")
    assert metadata.size == "auto"
    assert metadata.quality == "high"
    assert metadata.prompt == "robot"
    assert metadata.type == "chat"


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("chat_dall-e-3_1024x1024.png", {"type": "chat", "model": "dall-e-3", "size": "1024x1024"}),
        ("direct_hd_512x512.png", {"type": "direct", "quality": "hd", "size": "512x512"}),
        ("image_dall-e-2.png", {"type": "direct", "model": "dall-e-2"}),
        ("image_2024-12-20T14-30-22-000Z.png", {"type": "unknown"}),
    ],
)
def test_decode_legacy_heuristics(filename, expected):
    metadata = decode_filename(filename)
    for key, value in expected.items():
        assert getattr(metadata, key) == value


def test_decode_legacy_chat_beats_dalle():
    assert decode_filename("chat_dall-e-3.png").type == "chat"


def test_decode_single_segment_is_unknown():
    metadata = decode_filename("photo.png")
    assert metadata.type == "unknown"
    assert metadata.model is None


def test_is_image_filename_case_insensitive():
    assert is_image_filename("a.PNG")
    assert is_image_filename("b.webp")
    assert is_image_filename("c.JpEg")
    assert not is_image_filename("notes.txt")
