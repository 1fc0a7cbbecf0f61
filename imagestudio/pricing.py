from __future__ import annotations

from typing import Dict, List, Optional

# USD per image for the images endpoint.
DIRECT_PRICING: Dict[str, Dict[str, Dict[str, float]]] = {
    "gpt-image-1": {
        "low": {"1024x1024": 0.011, "1024x1536": 0.016, "1536x1024": 0.016},
        "medium": {"1024x1024": 0.042, "1024x1536": 0.063, "1536x1024": 0.063},
        "high": {"1024x1024": 0.167, "1024x1536": 0.25, "1536x1024": 0.25},
        "auto": {"1024x1024": 0.167, "1024x1536": 0.25, "1536x1024": 0.25},
    },
    "dall-e-3": {
        "standard": {"1024x1024": 0.04, "1024x1792": 0.08, "1792x1024": 0.08},
        "hd": {"1024x1024": 0.08, "1024x1792": 0.12, "1792x1024": 0.12},
        "auto": {"1024x1024": 0.08, "1024x1792": 0.12, "1792x1024": 0.12},
    },
    "dall-e-2": {
        "standard": {"256x256": 0.016, "512x512": 0.018, "1024x1024": 0.02},
        "auto": {"256x256": 0.016, "512x512": 0.018, "1024x1024": 0.02},
    },
}

# Output tokens billed for one chat-generated image.
CHAT_TOKENS: Dict[str, Dict[str, int]] = {
    "low": {"1024x1024": 272, "1024x1536": 408, "1536x1024": 400},
    "medium": {"1024x1024": 1056, "1024x1536": 1584, "1536x1024": 1568},
    "high": {"1024x1024": 4160, "1024x1536": 6240, "1536x1024": 6208},
}

# $10 per 1,000,000 tokens
TOKEN_PRICE = 10 / 1_000_000


def direct_cost(model: str, quality: str, size: str) -> Optional[float]:
    return DIRECT_PRICING.get(model, {}).get(quality, {}).get(size)


def chat_tokens(quality: str, size: str) -> Optional[int]:
    return CHAT_TOKENS.get(quality, {}).get(size)


def chat_cost(quality: str, size: str) -> Optional[float]:
    tokens = chat_tokens(quality, size)
    if tokens is None:
        return None
    return tokens * TOKEN_PRICE


def available_qualities(model: str) -> List[str]:
    return list(DIRECT_PRICING.get(model, {}))


def available_sizes(model: str, quality: Optional[str] = None) -> List[str]:
    """Sizes priced for `model`, limited to one quality when given, in table order."""
    model_pricing = DIRECT_PRICING.get(model, {})
    if quality:
        return list(model_pricing.get(quality, {}))
    sizes: List[str] = []
    for by_size in model_pricing.values():
        for size in by_size:
            if size not in sizes:
                sizes.append(size)
    return sizes


def format_price(price: Optional[float]) -> str:
    if price is None:
        return "N/A"
    if price < 0.001:
        return f"${price * 1000:.3f}k"
    if price < 0.01:
        return f"${price:.4f}"
    return f"${price:.3f}"


def format_tokens(tokens: Optional[int]) -> str:
    if tokens is None:
        return "N/A"
    if tokens >= 1000:
        return f"{tokens / 1000:.1f}k tokens"
    return f"{tokens} tokens"


def pricing_table() -> dict:
    """Payload served at /api/pricing for the browser views."""
    return {"direct": DIRECT_PRICING, "chatTokens": CHAT_TOKENS, "tokenPrice": TOKEN_PRICE}
