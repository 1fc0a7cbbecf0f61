from __future__ import annotations

import logging
import os
import time
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .chat_service import ChatService
from .config import Settings, load_settings
from .file_utils import ensure_directory
from .gallery_service import GalleryService
from .image_service import ImageService
from .models import ChatMessageRequest, GenerateImageRequest
from .openai_client import OpenAIClient
from .paths import ENV_PATH
from .pricing import pricing_table
from .utils import elapsed_ms, new_identifier, shorten

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("imagestudio").setLevel(log_level)
logger = logging.getLogger("imagestudio.api")

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_app(settings: Optional[Settings] = None, client: Optional[OpenAIClient] = None) -> FastAPI:
    """Purpose: Build the FastAPI application with services, routes, and static mounts.
    Inputs/Outputs: Optional Settings and provider client; returns a FastAPI app.
    Side Effects / State: Creates the images directory; owns the session store.
    Dependencies: ImageService, ChatService, GalleryService, OpenAIClient.
    Failure Modes: Missing OPENAI_API_KEY raises ValueError when no client is given.
    If Removed: Nothing serves the API or the frontend.
    Testing Notes: Pass a fake client and tmp directories, then use TestClient.
    """
    # Resolve configuration and build the service graph once per app.
    settings = settings or load_settings()
    client = client or OpenAIClient(settings)
    ensure_directory(settings.images_dir)

    image_service = ImageService(client, settings)
    chat_service = ChatService(client, settings)
    gallery_service = GalleryService(settings.images_dir)

    app = FastAPI(title="Image Studio")
    app.state.settings = settings
    app.state.image_service = image_service
    app.state.chat_service = chat_service
    app.state.gallery_service = gallery_service

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed JSON or wrong field types are client errors, reported as 400.
        logger.info("path=%s status=invalid_body errors=%d", request.url.path, len(exc.errors()))
        return _error(400, "Invalid request body")

    @app.post("/api/generate-image")
    def generate_image(body: GenerateImageRequest, request: Request):
        """Purpose: Generate one image from a prompt and save it locally.
        Inputs/Outputs: Body {prompt, model?, size?, quality?, systemPrompt?};
            returns the saved-image description.
        Side Effects / State: One provider call and one file write.
        Dependencies: ImageService.generate.
        Failure Modes: 400 without prompt; 500 with the error text otherwise.
        If Removed: The direct view cannot generate images.
        Testing Notes: Empty prompt must not reach the provider.
        """
        # Validate before any provider call.
        request_id = new_identifier("req")
        started = time.perf_counter()
        logger.info(
            "request=%s route=generate-image status=started client=%s",
            request_id,
            request.client.host if request.client else "unknown",
        )
        if not body.prompt or not body.prompt.strip():
            logger.info("request=%s status=validation_failed reason=missing_prompt duration_ms=%d", request_id, elapsed_ms(started))
            return _error(400, "Prompt is required")

        logger.info(
            "request=%s status=validated prompt_length=%d model=%s size=%s quality=%s",
            request_id,
            len(body.prompt),
            body.model or "default",
            body.size or "default",
            body.quality or "default",
        )
        try:
            result = image_service.generate(
                body.prompt,
                request_id,
                model=body.model,
                size=body.size,
                quality=body.quality,
                system_prompt=body.system_prompt,
            )
        except Exception as exc:
            logger.exception("request=%s status=error duration_ms=%d", request_id, elapsed_ms(started))
            return _error(500, f"Failed to generate image: {exc}")

        logger.info(
            "request=%s status=success filename=%s duration_ms=%d",
            request_id,
            result.filename,
            elapsed_ms(started),
        )
        return result.to_json()

    @app.post("/api/chat/message")
    def send_chat_message(body: ChatMessageRequest):
        """Purpose: Run one chat turn and return the session plus the reply.
        Inputs/Outputs: Body {sessionId?, message, size?, quality?}; returns
            {session, response}.
        Side Effects / State: Appends messages to the session; may save an image.
        Dependencies: ChatService.process_message.
        Failure Modes: 400 without message; provider errors arrive as a normal
            assistant message; only unexpected failures return 500.
        If Removed: The chat view cannot talk to the backend.
        Testing Notes: Check message content, not only status, for provider errors.
        """
        # Provider failures are absorbed by the service; only bugs reach except.
        request_id = new_identifier("chat")
        started = time.perf_counter()
        logger.info("request=%s route=chat-message status=started session=%s", request_id, body.session_id or "none")
        if not body.message or not body.message.strip():
            logger.info("request=%s status=validation_failed reason=missing_message duration_ms=%d", request_id, elapsed_ms(started))
            return _error(400, "Message is required")

        logger.info("request=%s status=validated message=%s", request_id, shorten(body.message, 60))
        try:
            turn = chat_service.process_message(
                body.session_id,
                body.message,
                request_id,
                size=body.size,
                quality=body.quality,
            )
        except Exception:
            logger.exception("request=%s status=error duration_ms=%d", request_id, elapsed_ms(started))
            return _error(500, "Failed to process chat message")

        logger.info(
            "request=%s status=success session=%s message=%s type=%s messages=%d duration_ms=%d",
            request_id,
            turn.session.id,
            turn.response.id,
            "image" if turn.response.local_image_url else "text",
            len(turn.session.messages),
            elapsed_ms(started),
        )
        return turn.to_json()

    @app.post("/api/chat/session")
    def create_chat_session() -> dict:
        # New empty session; the chat view calls this on load.
        request_id = new_identifier("req")
        session = chat_service.create_session(request_id)
        logger.info("request=%s route=create-session status=success session=%s", request_id, session.id)
        return session.to_json()

    @app.get("/api/chat/session/{session_id}")
    def get_chat_session(session_id: str):
        request_id = new_identifier("req")
        session = chat_service.get_session(session_id)
        if session is None:
            logger.info("request=%s route=get-session status=not_found session=%s", request_id, session_id)
            return _error(404, "Session not found")
        logger.info("request=%s route=get-session status=success session=%s messages=%d", request_id, session.id, len(session.messages))
        return session.to_json()

    @app.get("/api/chat/sessions")
    def list_chat_sessions() -> List[dict]:
        request_id = new_identifier("req")
        sessions = chat_service.list_sessions()
        logger.info(
            "request=%s route=list-sessions status=success sessions=%d messages=%d",
            request_id,
            len(sessions),
            sum(len(session.messages) for session in sessions),
        )
        return [session.to_json() for session in sessions]

    @app.get("/api/gallery/images")
    def gallery_images(request: Request):
        """Purpose: List saved images with filename-derived metadata.
        Inputs/Outputs: No inputs; returns {success, images, total, requestId}.
        Side Effects / State: May create the images directory.
        Dependencies: GalleryService.list_images.
        Failure Modes: Directory errors return 500 with success=false.
        If Removed: The gallery view has nothing to render.
        Testing Notes: Empty directory returns an empty list with success=true.
        """
        # Rebuilt from disk on every request; there is no cache.
        request_id = new_identifier("gallery")
        started = time.perf_counter()
        logger.info(
            "request=%s route=gallery-images status=started user_agent=%s",
            request_id,
            shorten(request.headers.get("user-agent", ""), 50),
        )
        try:
            images = gallery_service.list_images()
        except Exception as exc:
            logger.exception("request=%s status=error", request_id)
            return _error(500, "Failed to load gallery", success=False, message=str(exc), requestId=request_id)

        logger.info("request=%s status=success images=%d duration_ms=%d", request_id, len(images), elapsed_ms(started))
        return {
            "success": True,
            "images": [image.to_json() for image in images],
            "total": len(images),
            "requestId": request_id,
        }

    @app.get("/api/gallery/stats")
    def gallery_stats():
        request_id = new_identifier("stats")
        started = time.perf_counter()
        try:
            stats = gallery_service.get_stats()
        except Exception as exc:
            logger.exception("request=%s route=gallery-stats status=error", request_id)
            return _error(
                500,
                "Failed to load gallery statistics",
                success=False,
                message=str(exc),
                requestId=request_id,
            )
        logger.info("request=%s route=gallery-stats status=success duration_ms=%d", request_id, elapsed_ms(started))
        return {"success": True, "stats": stats.to_json(), "requestId": request_id}

    @app.get("/api/pricing")
    def pricing() -> dict:
        return pricing_table()

    app.mount("/images", StaticFiles(directory=settings.images_dir), name="images")

    if settings.public_dir.is_dir():

        @app.get("/", include_in_schema=False)
        def serve_index() -> FileResponse:
            # Direct generation is the landing view.
            return FileResponse(settings.public_dir / "index.html")

        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="frontend")
    else:
        logger.warning("frontend directory missing path=%s", settings.public_dir)

    return app


def main() -> None:
    """Run the server with uvicorn on the configured host and port."""
    import uvicorn

    settings = load_settings()
    logger.info("starting server url=http://%s:%d", settings.host, settings.port)
    uvicorn.run("imagestudio.app:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
