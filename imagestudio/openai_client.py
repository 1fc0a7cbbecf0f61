from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from openai import OpenAI, OpenAIError

from .config import Settings
from .errors import ProviderError

logger = logging.getLogger("imagestudio.provider")


@dataclass(frozen=True)
class TextSegment:
    """Plain text produced by the conversational model."""
    text: str


@dataclass(frozen=True)
class GeneratedImage:
    """Base64 result of an image-generation tool call."""
    result: Optional[str]


OutputItem = Union[TextSegment, GeneratedImage]


@dataclass(frozen=True)
class ProviderReply:
    """Normalized conversational response: provider id plus ordered output items."""
    response_id: str
    outputs: List[OutputItem] = field(default_factory=list)

    @property
    def texts(self) -> List[str]:
        return [item.text for item in self.outputs if isinstance(item, TextSegment)]

    @property
    def images(self) -> List[GeneratedImage]:
        return [item for item in self.outputs if isinstance(item, GeneratedImage)]


@dataclass(frozen=True)
class ImagePayload:
    """Direct image result; the provider fills exactly one of the fields."""
    url: Optional[str] = None
    b64_json: Optional[str] = None


class OpenAIClient:
    """Thin wrapper around the OpenAI SDK for image and conversational calls."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the OpenAI SDK client.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Holds one SDK client for the process lifetime.
        Dependencies: Uses openai.OpenAI and Settings from config.
        Failure Modes: Raises ValueError if the API key is missing.
        If Removed: Neither generation flow can reach the provider.
        Testing Notes: Validate missing key raises ValueError.
        """
        # Fail fast at startup rather than on the first request.
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required")
        self._client = OpenAI(api_key=settings.openai_api_key)

    def generate_image(self, prompt: str, model: str, size: str, quality: str) -> ImagePayload:
        """Purpose: Request a single image from the images endpoint.
        Inputs/Outputs: Prompt and model/size/quality; returns an ImagePayload.
        Side Effects / State: One provider call.
        Dependencies: Uses OpenAI.images.generate.
        Failure Modes: SDK errors are re-raised as ProviderError.
        If Removed: Direct generation stops working.
        Testing Notes: Replace the client with a fake in service tests.
        """
        # One image per call; the provider decides between URL and base64 output.
        try:
            response = self._client.images.generate(
                model=model,
                prompt=prompt,
                quality=quality,
                n=1,
                size=size,
            )
        except OpenAIError as exc:
            raise ProviderError(str(exc)) from exc

        data = list(getattr(response, "data", None) or [])
        logger.debug("provider=images count=%d created=%s", len(data), getattr(response, "created", None))
        if not data:
            return ImagePayload()
        first = data[0]
        return ImagePayload(url=getattr(first, "url", None), b64_json=getattr(first, "b64_json", None))

    def create_response(
        self,
        message: str,
        model: str,
        previous_response_id: Optional[str] = None,
        size: str = "1024x1024",
        quality: str = "low",
    ) -> ProviderReply:
        """Purpose: Send one conversational turn with image generation enabled.
        Inputs/Outputs: User text, model, prior response id, tool size/quality;
            returns a ProviderReply with tagged output items.
        Side Effects / State: One provider call; the provider keeps the context.
        Dependencies: Uses OpenAI.responses.create with the image_generation tool.
        Failure Modes: SDK errors are re-raised as ProviderError.
        If Removed: The chat flow cannot talk to the provider.
        Testing Notes: Feed fake response objects into parse_reply.
        """
        # Only send the previous id when continuing an existing context.
        params: Dict[str, Any] = {
            "model": model,
            "input": message,
            "tools": [
                {
                    "type": "image_generation",
                    "quality": quality,
                    "output_format": "png",
                    "moderation": "low",
                    "size": size,
                }
            ],
        }
        if previous_response_id:
            params["previous_response_id"] = previous_response_id

        try:
            response = self._client.responses.create(**params)
        except OpenAIError as exc:
            raise ProviderError(str(exc)) from exc
        return parse_reply(response)


def parse_reply(response: Any) -> ProviderReply:
    """Purpose: Convert an SDK response into tagged output items.
    Inputs/Outputs: Input is a Responses API object; output is ProviderReply.
    Side Effects / State: None.
    Dependencies: Relies on the SDK's `output` item `type` discriminator.
    Failure Modes: Unknown item types are skipped.
    If Removed: Callers would need ad hoc attribute checks on SDK objects.
    Testing Notes: Mix message and image_generation_call items.
    """
    # Walk output items in order and keep only the kinds the chat flow uses.
    outputs: List[OutputItem] = []
    for item in getattr(response, "output", None) or []:
        kind = getattr(item, "type", None)
        if kind == "message":
            for part in getattr(item, "content", None) or []:
                if getattr(part, "type", None) in ("output_text", "text"):
                    text = getattr(part, "text", "")
                    if text:
                        outputs.append(TextSegment(text=text))
        elif kind == "image_generation_call":
            outputs.append(GeneratedImage(result=getattr(item, "result", None)))
    return ProviderReply(response_id=getattr(response, "id", ""), outputs=outputs)
