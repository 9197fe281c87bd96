import pytest

from chat_relay.client import api
from chat_relay.client.main import ChatClient, format_event


@pytest.mark.parametrize(
    "server_url,http_url,socket_url",
    [
        ("http://127.0.0.1:8000", "http://127.0.0.1:8000", "ws://127.0.0.1:8000/ws"),
        ("https://chat.example.org/", "https://chat.example.org", "wss://chat.example.org/ws"),
        ("ws://localhost:9000", "http://localhost:9000", "ws://localhost:9000/ws"),
    ],
)
def test_urls(server_url, http_url, socket_url):
    client = api.RelayClient(server_url)
    assert client.base_url == http_url
    assert client.ws_url == socket_url


def test_frames_omit_empty_fields():
    assert api.register_frame("alice") == {"type": "register", "nickname": "alice"}
    assert api.login_frame("alice", "p1") == {"type": "login", "nickname": "alice", "password": "p1"}
    assert api.send_message_frame("bob", text="hi", image="") == {"type": "sendMessage", "to": "bob", "text": "hi"}
    assert api.chat_history_frame("bob") == {"type": "getChatHistory", "with": "bob"}
    assert api.set_avatar_frame("/a.png") == {"type": "setAvatar", "avatarUrl": "/a.png"}
    assert api.user_list_frame() == {"type": "getUserList"}


def test_upload_posts_raw_body(tmp_path, monkeypatch):
    picture = tmp_path / "cat.png"
    picture.write_bytes(b"png-bytes")
    seen = {}

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"url": "/uploads/abc.png"}

    def fake_post(url, data, headers, timeout):
        seen.update(url=url, data=data, headers=headers)
        return FakeResponse()

    monkeypatch.setattr(api.requests, "post", fake_post)
    client = api.RelayClient("http://relay:8000")
    assert client.upload(picture) == "http://relay:8000/uploads/abc.png"
    assert seen == {"url": "http://relay:8000/upload", "data": b"png-bytes", "headers": {"Content-Type": "image/png"}}


def test_send_requires_connection():
    with pytest.raises(RuntimeError):
        api.RelayClient("http://relay").send(api.user_list_frame())


def test_format_event():
    message = {"id": "1", "from": "alice", "to": "bob", "text": "hi", "image": None, "audio": None, "timestamp": 0}
    assert format_event({"type": "newMessage", "message": message}, me="alice").endswith("(you): hi")
    assert format_event({"type": "newMessage", "message": message}, me="bob").endswith("alice: hi")
    assert format_event({"type": "error", "message": "Not authenticated", "code": "x"}) == "! Not authenticated"
    assert format_event({"type": "chatHistory", "with": "bob", "messages": []}) == "No messages with bob."
    roster = format_event({"type": "userList", "users": [{"nickname": "bob", "avatar": None, "online": True}]})
    assert roster == "Users:\n * bob"


class RecordingRelay:
    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return "http://relay/uploads/x.bin"

        return record


def test_execute_commands():
    client = ChatClient("http://relay")
    client.api = RecordingRelay()

    assert client.execute("/register alice secret")
    assert client.execute('/msg bob "hello there" friend')
    assert client.execute("/send-image bob https://img.example/cat.png")
    assert client.execute("/history bob")
    assert client.execute("/users")
    assert client.execute("/register al")
    assert not client.execute("/quit")

    assert client.api.calls == [
        ("register", ("alice", "secret"), {}),
        ("send_message", ("bob",), {"text": "hello there friend"}),
        ("send_message", ("bob",), {"image": "https://img.example/cat.png"}),
        ("get_chat_history", ("bob",), {}),
        ("get_user_list", (), {}),
    ]
