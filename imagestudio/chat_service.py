from __future__ import annotations

import logging
import time
from typing import List, Optional

from .config import Settings
from .image_utils import process_image_outputs
from .models import ChatMessage, ChatSession, ChatTurn
from .openai_client import OpenAIClient
from .session_store import SessionStore
from .utils import elapsed_ms, new_identifier, shorten, utc_now_iso

logger = logging.getLogger("imagestudio.chat")

IMAGE_ONLY_REPLY = "I've generated an image based on your request."
EMPTY_REPLY = "I understand your request. How would you like me to help you with image generation?"
ERROR_REPLY_PREFIX = "I apologize, but I encountered an error processing your request: "


class ChatService:
    """Multi-turn chat with provider-side context and optional image output."""

    def __init__(self, client: OpenAIClient, settings: Settings, store: Optional[SessionStore] = None) -> None:
        """Purpose: Wire the provider client, settings, and session store.
        Inputs/Outputs: Client, settings, optional store; no return value.
        Side Effects / State: Creates an empty SessionStore when none is given.
        Dependencies: OpenAIClient, SessionStore, image_utils.
        Failure Modes: None.
        If Removed: Chat routes have no backing service.
        Testing Notes: Inject a fake client and a fresh store per test.
        """
        # The store is swappable; the service only uses its small interface.
        self._client = client
        self._settings = settings
        self._store = store or SessionStore()

    @property
    def store(self) -> SessionStore:
        return self._store

    def create_session(self, request_id: str = "unknown") -> ChatSession:
        session = self._store.create()
        logger.info("request=%s session=%s step=create_session", request_id, session.id)
        return session

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        return self._store.get(session_id)

    def list_sessions(self) -> List[ChatSession]:
        return self._store.list()

    def process_message(
        self,
        session_id: Optional[str],
        message: str,
        request_id: str = "unknown",
        size: Optional[str] = None,
        quality: Optional[str] = None,
    ) -> ChatTurn:
        """Purpose: Run one chat turn against the provider.
        Inputs/Outputs: Optional session id, user text, tool size/quality;
            returns ChatTurn with the session and the assistant message.
        Side Effects / State: Appends two messages, may write one image file,
            and updates lastResponseId once the provider call succeeds.
        Dependencies: OpenAIClient.create_response, process_image_outputs.
        Failure Modes: Provider and save errors are absorbed into an assistant
            apology message; the call itself returns normally.
        If Removed: POST /api/chat/message cannot answer.
        Testing Notes: Two turns on one session grow messages by four and pass
            the first response id into the second call.
        """
        # Unknown or missing ids start a new session.
        size = size or self._settings.chat_image_size
        quality = quality or self._settings.chat_image_quality
        session = self._store.get(session_id)
        if session is None:
            logger.info(
                "request=%s step=resolve_session status=%s",
                request_id,
                "unknown_id" if session_id else "no_id",
            )
            session = self.create_session(request_id)

        with self._store.lock(session.id):
            return self._run_turn(session, message, request_id, size, quality)

    def _run_turn(self, session: ChatSession, message: str, request_id: str, size: str, quality: str) -> ChatTurn:
        # The user message is recorded before the provider is called.
        self._add_message(session.id, "user", message)
        previous_id = session.last_response_id
        logger.info(
            "request=%s session=%s step=provider previous_response=%s size=%s quality=%s message=%s",
            request_id,
            session.id,
            previous_id or "none",
            size,
            quality,
            shorten(message, 60),
        )

        started = time.perf_counter()
        try:
            reply = self._client.create_response(
                message,
                model=self._settings.chat_model,
                previous_response_id=previous_id,
                size=size,
                quality=quality,
            )
            logger.info(
                "request=%s session=%s step=provider status=success response=%s outputs=%d images=%d duration_ms=%d",
                request_id,
                session.id,
                reply.response_id,
                len(reply.outputs),
                len(reply.images),
                elapsed_ms(started),
            )
            # The provider has recorded this turn; chain from it even if saving fails.
            self._store.set_last_response_id(session.id, reply.response_id)

            content = "\n".join(reply.texts)
            saved = process_image_outputs(
                reply.outputs,
                self._settings.images_dir,
                request_id,
                model=self._settings.chat_model,
                size=size,
                quality=quality,
                # Chat images are tagged with the chat model id, not the user text, so
                # the gallery shows the model id as their prompt.
                prompt=self._settings.chat_model,
            )
            if saved and not content:
                content = IMAGE_ONLY_REPLY
            if not content and not saved:
                content = EMPTY_REPLY
        except Exception as exc:
            # Failures become a visible assistant message instead of an HTTP error.
            logger.exception("request=%s session=%s step=provider status=error", request_id, session.id)
            response = self._add_message(session.id, "assistant", f"{ERROR_REPLY_PREFIX}{exc}")
            return ChatTurn(session=session, response=response)

        response = self._add_message(
            session.id,
            "assistant",
            content,
            local_image_url=saved.local_image_url if saved else None,
            filename=saved.filename if saved else None,
            response_id=reply.response_id,
        )
        logger.info(
            "request=%s session=%s step=reply type=%s messages=%d",
            request_id,
            session.id,
            "image" if saved else "text",
            len(session.messages),
        )
        return ChatTurn(session=session, response=response)

    def _add_message(self, session_id: str, role: str, content: str, **image_fields: Optional[str]) -> ChatMessage:
        message = ChatMessage(
            id=new_identifier("msg"),
            role=role,
            content=content,
            timestamp=utc_now_iso(),
            **image_fields,
        )
        return self._store.append(session_id, message)
