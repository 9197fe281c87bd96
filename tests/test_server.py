import pytest
from fastapi.testclient import TestClient

from chat_relay.server.main import create_app
from chat_relay.server.persistence import SnapshotStore
from chat_relay.server.uploads import extension_for


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as client:
        yield client


def register(ws, nickname, password=None):
    ws.send_json({"type": "register", "nickname": nickname, "password": password})
    registered = ws.receive_json()
    roster = ws.receive_json()
    return registered, roster


def test_status(client):
    assert client.get("/status").json() == {"status": "ok", "users": 0, "online": 0, "connections": 0}


def test_status_counts_open_sockets(client):
    with client.websocket_connect("/ws") as anon, client.websocket_connect("/ws") as alice:
        register(alice, "alice", "p1")
        anon.send_json({"type": "getUserList"})
        anon.receive_json()
        assert client.get("/status").json() == {"status": "ok", "users": 1, "online": 1, "connections": 2}


def test_chat_between_two_sessions(client):
    with client.websocket_connect("/ws") as alice:
        assert register(alice, "alice", "p1")[0] == {"type": "registered", "nickname": "alice"}
        with client.websocket_connect("/ws") as bob:
            _, roster = register(bob, "bob", "p2")
            assert roster == {"type": "userList", "users": [{"nickname": "alice", "avatar": None, "online": True}]}
            assert alice.receive_json() == {
                "type": "newUser",
                "user": {"nickname": "bob", "avatar": None, "online": True},
            }

            alice.send_json({"type": "sendMessage", "to": "bob", "text": "hi"})
            to_alice = alice.receive_json()
            to_bob = bob.receive_json()
            assert to_alice == to_bob
            assert to_bob["type"] == "newMessage"
            assert to_bob["message"]["from"] == "alice"
            assert to_bob["message"]["to"] == "bob"
            assert to_bob["message"]["text"] == "hi"
            assert isinstance(to_bob["message"]["timestamp"], int)

            bob.send_json({"type": "getChatHistory", "with": "alice"})
            assert bob.receive_json() == {"type": "chatHistory", "with": "alice", "messages": [to_bob["message"]]}

        assert client.get("/status").json()["users"] == 2


def test_offline_message_is_kept_for_history(client):
    with client.websocket_connect("/ws") as bob:
        register(bob, "bob", "p2")

    with client.websocket_connect("/ws") as alice:
        register(alice, "alice", "p1")
        alice.send_json({"type": "sendMessage", "to": "bob", "text": "are you there?"})
        assert alice.receive_json()["message"]["text"] == "are you there?"

    with client.websocket_connect("/ws") as bob:
        bob.send_json({"type": "login", "nickname": "bob", "password": "p2"})
        assert bob.receive_json() == {"type": "loggedIn", "nickname": "bob", "avatar": None}
        assert bob.receive_json()["type"] == "userList"
        chats = bob.receive_json()
        assert chats["type"] == "chatList"
        assert chats["chats"][0]["peer"] == "alice"
        assert chats["chats"][0]["lastMessage"]["text"] == "are you there?"

        bob.send_json({"type": "getChatHistory", "with": "alice"})
        messages = bob.receive_json()["messages"]
        assert [m["text"] for m in messages] == ["are you there?"]


def test_errors_keep_connection_open(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        assert ws.receive_json()["code"] == "malformed_frame"
        ws.send_bytes(b"\xff\x00")
        assert ws.receive_json()["code"] == "malformed_frame"
        ws.send_json({"type": "sendMessage", "to": "bob", "text": "hi"})
        assert ws.receive_json() == {"type": "error", "message": "Not authenticated", "code": "not_authenticated"}
        ws.send_json({"type": "getUserList"})
        assert ws.receive_json() == {"type": "userList", "users": []}


def test_state_is_snapshotted_on_shutdown(settings):
    with TestClient(create_app(settings)) as client:
        with client.websocket_connect("/ws") as ws:
            register(ws, "alice", "p1")
            ws.send_json({"type": "sendMessage", "to": "alice", "text": "memo"})
            ws.receive_json()

    snapshot = SnapshotStore(settings.snapshot_path).load()
    assert [u.nickname for u in snapshot.users] == ["alice"]
    assert [m.text for m in snapshot.conversations[("alice", "alice")]] == ["memo"]

    with TestClient(create_app(settings)) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "login", "nickname": "alice", "password": "p1"})
            assert ws.receive_json()["type"] == "loggedIn"


def test_upload_and_serve(client, settings):
    blob = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
    resp = client.post("/upload", content=blob, headers={"Content-Type": "image/png"})
    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url.startswith("/uploads/") and url.endswith(".png")
    assert (settings.upload_dir / url.rsplit("/", 1)[1]).read_bytes() == blob
    assert client.get(url).content == blob


def test_upload_names_are_unique(client):
    first = client.post("/upload", content=b"a", headers={"Content-Type": "audio/webm"}).json()["url"]
    second = client.post("/upload", content=b"a", headers={"Content-Type": "audio/webm"}).json()["url"]
    assert first != second


def test_upload_limits(client):
    too_big = client.post("/upload", content=b"x" * 2048, headers={"Content-Type": "image/png"})
    assert too_big.status_code == 413
    empty = client.post("/upload", content=b"", headers={"Content-Type": "image/png"})
    assert empty.status_code == 400


@pytest.mark.parametrize(
    "content_type,extension",
    [
        ("image/png", ".png"),
        ("image/jpeg", ".jpg"),
        ("audio/webm;codecs=opus", ".webm"),
        ("AUDIO/MPEG", ".mp3"),
        ("application/x-unknown", ".bin"),
        (None, ".bin"),
    ],
)
def test_extension_for(content_type, extension):
    assert extension_for(content_type) == extension
