from __future__ import annotations

import threading
import time

from conftest import PNG_BYTES, FakeProviderClient, image_reply, provider_failure
from imagestudio.chat_service import EMPTY_REPLY, ERROR_REPLY_PREFIX, IMAGE_ONLY_REPLY, ChatService
from imagestudio.filenames import decode_filename
from imagestudio.openai_client import GeneratedImage, ProviderReply, TextSegment


def test_two_turns_chain_response_ids(settings, fake_client):
    service = ChatService(fake_client, settings)
    first = service.process_message(None, "hello")
    session_id = first.session.id
    assert len(first.session.messages) == 2
    assert first.response.content == "Sure."
    assert first.session.last_response_id == "resp_1"

    second = service.process_message(session_id, "again")
    assert second.session.id == session_id
    assert len(second.session.messages) == 4
    assert [call["previous_response_id"] for call in fake_client.response_calls] == [None, "resp_1"]
    assert [message.role for message in second.session.messages] == ["user", "assistant", "user", "assistant"]
    assert second.session.last_response_id == "resp_2"


def test_unknown_session_id_creates_exactly_one_session(settings, fake_client):
    service = ChatService(fake_client, settings)
    turn = service.process_message("chat_does_not_exist", "hi")
    assert turn.session.id != "chat_does_not_exist"
    assert len(service.list_sessions()) == 1
    assert fake_client.response_calls[0]["previous_response_id"] is None


def test_provider_call_uses_chat_settings(settings, fake_client):
    ChatService(fake_client, settings).process_message(None, "draw", size="1536x1024", quality="high")
    ChatService(fake_client, settings).process_message(None, "draw")
    first, second = fake_client.response_calls
    assert first["model"] == "gpt-4.1-mini"
    assert (first["size"], first["quality"]) == ("1536x1024", "high")
    assert (second["size"], second["quality"]) == ("1024x1024", "low")


def test_image_reply_is_saved(settings, fake_client):
    fake_client.replies.append(image_reply("resp_img", text="A lighthouse."))
    turn = ChatService(fake_client, settings).process_message(None, "draw a lighthouse")

    assert turn.response.content == "A lighthouse."
    assert turn.response.filename.startswith("gpt-4.1-mini_1024_1024_low_")
    assert turn.response.local_image_url == f"/images/{turn.response.filename}"
    assert turn.response.response_id == "resp_img"
    assert (settings.images_dir / turn.response.filename).read_bytes() == PNG_BYTES


def test_image_only_reply_gets_fallback_text(settings, fake_client):
    fake_client.replies.append(image_reply("resp_img"))
    turn = ChatService(fake_client, settings).process_message(None, "draw")
    assert turn.response.content == IMAGE_ONLY_REPLY


def test_empty_reply_gets_fallback_text(settings, fake_client):
    fake_client.replies.append(ProviderReply(response_id="resp_empty", outputs=[]))
    turn = ChatService(fake_client, settings).process_message(None, "hmm")
    assert turn.response.content == EMPTY_REPLY
    assert turn.response.local_image_url is None


def test_multiple_text_segments_join_with_newline(settings, fake_client):
    fake_client.replies.append(
        ProviderReply(response_id="resp_t", outputs=[TextSegment(text="one"), TextSegment(text="two")])
    )
    turn = ChatService(fake_client, settings).process_message(None, "list")
    assert turn.response.content == "one\ntwo"


def test_provider_error_is_absorbed(settings, fake_client):
    service = ChatService(fake_client, settings)
    first = service.process_message(None, "hello")
    fake_client.replies.append(provider_failure("rate limited"))

    turn = service.process_message(first.session.id, "again")
    assert turn.response.role == "assistant"
    assert turn.response.content == f"{ERROR_REPLY_PREFIX}rate limited"
    assert turn.response.response_id is None
    assert turn.session.last_response_id == "resp_1"
    assert len(turn.session.messages) == 4


def test_save_failure_still_advances_last_response_id(settings, fake_client):
    service = ChatService(fake_client, settings)
    first = service.process_message(None, "hello")
    fake_client.replies.append(
        ProviderReply(
            response_id="resp_bad_image",
            outputs=[TextSegment(text="hi"), GeneratedImage(result="!!not base64!!")],
        )
    )

    turn = service.process_message(first.session.id, "draw")
    assert turn.response.content.startswith(ERROR_REPLY_PREFIX)
    assert turn.session.last_response_id == "resp_bad_image"

    service.process_message(first.session.id, "try again")
    assert fake_client.response_calls[-1]["previous_response_id"] == "resp_bad_image"


class BlockingClient(FakeProviderClient):
    """Holds the first create_response call until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def create_response(self, message, model, previous_response_id=None, size="1024x1024", quality="low"):
        if not self.entered.is_set():
            self.entered.set()
            assert self.release.wait(timeout=5)
        return super().create_response(message, model, previous_response_id, size, quality)


def test_concurrent_turns_on_one_session_are_serialized(settings):
    blocking = BlockingClient()
    service = ChatService(blocking, settings)
    session = service.create_session()

    first = threading.Thread(target=service.process_message, args=(session.id, "first"))
    second = threading.Thread(target=service.process_message, args=(session.id, "second"))
    first.start()
    assert blocking.entered.wait(timeout=5)
    second.start()
    time.sleep(0.1)
    assert len(blocking.response_calls) == 0
    blocking.release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert [call["message"] for call in blocking.response_calls] == ["first", "second"]
    assert [call["previous_response_id"] for call in blocking.response_calls] == [None, "resp_1"]
    assert [message.role for message in session.messages] == ["user", "assistant", "user", "assistant"]
    assert [message.content for message in session.messages][::2] == ["first", "second"]
    assert session.last_response_id == "resp_2"


def test_chat_image_filename_is_tagged_with_chat_model(settings, fake_client):
    fake_client.replies.append(image_reply("resp_img"))
    turn = ChatService(fake_client, settings).process_message(None, "draw a lighthouse at dusk")

    metadata = decode_filename(turn.response.filename)
    assert metadata.model == "gpt-4.1-mini"
    assert metadata.prompt == "gpt 4 1 mini"
    assert metadata.type == "chat"
