from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model that speaks camelCase JSON to the browser."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenerateImageRequest(ApiModel):
    """Request payload for direct image generation."""
    prompt: Optional[str] = None
    model: Optional[str] = None
    size: Optional[str] = None
    quality: Optional[str] = None
    system_prompt: Optional[str] = None


class GenerateImageResult(ApiModel):
    """Response payload describing a generated and saved image."""
    image_url: Optional[str] = None
    local_image_url: str
    filename: str
    saved_at: str
    model: str
    size: str
    quality: str
    final_prompt: str


class ChatMessageRequest(ApiModel):
    """Request payload for a chat turn."""
    session_id: Optional[str] = None
    message: Optional[str] = None
    size: Optional[str] = None
    quality: Optional[str] = None


class ChatMessage(ApiModel):
    """One transcript entry; never modified after it is appended."""
    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: str
    image_url: Optional[str] = None
    local_image_url: Optional[str] = None
    filename: Optional[str] = None
    response_id: Optional[str] = None


class ChatSession(ApiModel):
    """Volatile chat session with its ordered transcript."""
    id: str
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: str
    updated_at: str
    last_response_id: Optional[str] = None


class ChatTurn(ApiModel):
    """Result of one chat turn: the session and the assistant reply."""
    session: ChatSession
    response: ChatMessage


class ImageMetadata(ApiModel):
    """Generation parameters recovered from an image filename."""
    model: Optional[str] = None
    size: Optional[str] = None
    quality: Optional[str] = None
    prompt: Optional[str] = None
    type: Literal["direct", "chat", "unknown"] = "unknown"


class GalleryImage(ApiModel):
    """A saved image file as seen by the gallery."""
    filename: str
    filepath: str
    url: str
    size: int
    created_at: datetime
    modified_at: datetime
    metadata: ImageMetadata


class GalleryStats(ApiModel):
    """Aggregate counts over the gallery images."""
    total_images: int = 0
    total_size: int = 0
    by_model: Dict[str, int] = Field(default_factory=dict)
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_size: Dict[str, int] = Field(default_factory=dict)
    by_quality: Dict[str, int] = Field(default_factory=dict)
    oldest_image: Optional[datetime] = None
    newest_image: Optional[datetime] = None
