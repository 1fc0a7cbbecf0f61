from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .errors import SessionNotFoundError
from .models import ChatMessage, ChatSession
from .utils import new_identifier, utc_now_iso


class SessionStore:
    """Volatile in-memory session storage keyed by session id."""

    def __init__(self) -> None:
        """Purpose: Initialize empty session and lock maps.
        Inputs/Outputs: No inputs; no return value.
        Side Effects / State: Sessions live until the process exits.
        Dependencies: ChatSession/ChatMessage models.
        Failure Modes: None.
        If Removed: Chat turns have nowhere to record their transcript.
        Testing Notes: A fresh store lists no sessions.
        """
        # Dicts keep insertion order, which is also the listing order.
        self._sessions: Dict[str, ChatSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def create(self) -> ChatSession:
        """Purpose: Create and register an empty session with a fresh id.
        Inputs/Outputs: No inputs; returns the new ChatSession.
        Side Effects / State: Adds the session and its lock to the store.
        Dependencies: utils.new_identifier.
        Failure Modes: None; ids are regenerated on the unlikely collision.
        If Removed: New conversations cannot start.
        Testing Notes: Two creates produce two distinct ids.
        """
        # Regenerate on collision so ids stay unique among live sessions.
        now = utc_now_iso()
        with self._guard:
            session_id = new_identifier("chat")
            while session_id in self._sessions:
                session_id = new_identifier("chat")
            session = ChatSession(id=session_id, messages=[], created_at=now, updated_at=now)
            self._sessions[session_id] = session
            self._locks[session_id] = threading.Lock()
        return session

    def get(self, session_id: Optional[str]) -> Optional[ChatSession]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: Optional[str]) -> ChatSession:
        session = self.get(session_id)
        return session if session is not None else self.create()

    def append(self, session_id: str, message: ChatMessage) -> ChatMessage:
        """Purpose: Append a message to a session transcript.
        Inputs/Outputs: Session id and message; returns the message.
        Side Effects / State: Mutates messages and updatedAt.
        Dependencies: None beyond the in-memory map.
        Failure Modes: Unknown session raises SessionNotFoundError.
        If Removed: Transcripts stay empty.
        Testing Notes: Order of appends equals order of messages.
        """
        # Append order is display order.
        session = self._require(session_id)
        session.messages.append(message)
        session.updated_at = message.timestamp
        return message

    def set_last_response_id(self, session_id: str, response_id: str) -> None:
        session = self._require(session_id)
        session.last_response_id = response_id
        session.updated_at = utc_now_iso()

    def list(self) -> List[ChatSession]:
        return list(self._sessions.values())

    def lock(self, session_id: str) -> threading.Lock:
        """Per-session lock used to serialize turns on the same session."""
        self._require(session_id)
        return self._locks[session_id]

    def _require(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session
