"""Client for the relay WebSocket protocol and the upload endpoint."""
import json
import mimetypes
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import requests
from websockets.sync.client import ClientConnection, connect


def http_base_url(server_url: str) -> str:
    base = server_url.rstrip("/")
    if base.startswith("ws://"):
        return "http://" + base[len("ws://"):]
    if base.startswith("wss://"):
        return "https://" + base[len("wss://"):]
    return base


def ws_url(server_url: str) -> str:
    base = server_url.rstrip("/")
    if base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    elif base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    return f"{base}/ws"


def register_frame(nickname: str, password: Optional[str] = None) -> Dict[str, Any]:
    frame: Dict[str, Any] = {"type": "register", "nickname": nickname}
    if password:
        frame["password"] = password
    return frame


def login_frame(nickname: str, password: Optional[str] = None) -> Dict[str, Any]:
    frame: Dict[str, Any] = {"type": "login", "nickname": nickname}
    if password:
        frame["password"] = password
    return frame


def send_message_frame(
    to: str, text: Optional[str] = None, image: Optional[str] = None, audio: Optional[str] = None
) -> Dict[str, Any]:
    frame: Dict[str, Any] = {"type": "sendMessage", "to": to}
    for key, value in (("text", text), ("image", image), ("audio", audio)):
        if value:
            frame[key] = value
    return frame


def chat_history_frame(peer: str) -> Dict[str, Any]:
    return {"type": "getChatHistory", "with": peer}


def set_avatar_frame(avatar_url: Optional[str]) -> Dict[str, Any]:
    return {"type": "setAvatar", "avatarUrl": avatar_url}


def user_list_frame() -> Dict[str, Any]:
    return {"type": "getUserList"}


class RelayClient:
    def __init__(self, server_url: str):
        self.base_url = http_base_url(server_url)
        self.ws_url = ws_url(self.base_url)
        self._ws: Optional[ClientConnection] = None

    def connect(self) -> None:
        self._ws = connect(self.ws_url, open_timeout=10)

    def close(self) -> None:
        if self._ws is not None:
            self._ws.close()
            self._ws = None

    def send(self, frame: Dict[str, Any]) -> None:
        if self._ws is None:
            raise RuntimeError("not connected")
        self._ws.send(json.dumps(frame))

    def events(self) -> Iterator[Dict[str, Any]]:
        """Yield decoded frames until the connection closes."""
        if self._ws is None:
            raise RuntimeError("not connected")
        for raw in self._ws:
            yield json.loads(raw)

    def register(self, nickname: str, password: Optional[str] = None) -> None:
        self.send(register_frame(nickname, password))

    def login(self, nickname: str, password: Optional[str] = None) -> None:
        self.send(login_frame(nickname, password))

    def send_message(self, to: str, text: Optional[str] = None, image: Optional[str] = None, audio: Optional[str] = None) -> None:
        self.send(send_message_frame(to, text=text, image=image, audio=audio))

    def get_chat_history(self, peer: str) -> None:
        self.send(chat_history_frame(peer))

    def set_avatar(self, avatar_url: Optional[str]) -> None:
        self.send(set_avatar_frame(avatar_url))

    def get_user_list(self) -> None:
        self.send(user_list_frame())

    def upload(self, path: Path, content_type: Optional[str] = None) -> str:
        """Upload a file and return its absolute URL on the server."""
        path = Path(path)
        content_type = content_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        resp = requests.post(
            f"{self.base_url}/upload",
            data=path.read_bytes(),
            headers={"Content-Type": content_type},
            timeout=30,
        )
        resp.raise_for_status()
        return f"{self.base_url}{resp.json()['url']}"
