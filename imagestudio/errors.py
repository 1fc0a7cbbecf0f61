from __future__ import annotations


class ImageStudioError(Exception):
    """Base error for the image studio backend."""


class ProviderError(ImageStudioError):
    """The external image/conversation provider call failed."""


class NoImageDataError(ProviderError):
    """The provider answered without a URL or base64 payload."""


class ImageSaveError(ImageStudioError):
    """Downloading or writing an image to disk failed."""


class SessionNotFoundError(ImageStudioError, KeyError):
    """A chat session id is not known to the store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id

    def __str__(self) -> str:
        return self.args[0]
