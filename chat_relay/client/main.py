"""Console client for the chat relay."""
import shlex
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import api
from ..shared.utils import is_nickname_valid

HELP = """Commands:
  /register <nickname> [password]
  /login <nickname> [password]
  /msg <nickname> <text>
  /send-image <nickname> <path>
  /send-audio <nickname> <path>
  /history <nickname>
  /avatar <url | path>
  /users
  /quit"""


def _clock(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M")


def format_message(message: Dict[str, Any], me: Optional[str]) -> str:
    sender = "(you)" if message.get("from") == me else message.get("from")
    parts: List[str] = []
    if message.get("text"):
        parts.append(message["text"])
    if message.get("image"):
        parts.append(f"[image] {message['image']}")
    if message.get("audio"):
        parts.append(f"[audio] {message['audio']}")
    return f"[{_clock(message['timestamp'])}] {sender}: {' '.join(parts)}"


def format_event(event: Dict[str, Any], me: Optional[str] = None) -> str:
    """Render one server frame as console text."""
    kind = event.get("type")
    if kind == "error":
        return f"! {event.get('message')}"
    if kind == "registered":
        return f"Registered as {event['nickname']}."
    if kind == "loggedIn":
        return f"Welcome, {event['nickname']}!"
    if kind == "userList":
        if not event["users"]:
            return "No other users yet."
        lines = ["Users:"]
        for user in event["users"]:
            marker = "*" if user.get("online") else " "
            lines.append(f" {marker} {user['nickname']}")
        return "\n".join(lines)
    if kind == "newUser":
        return f"{event['user']['nickname']} joined."
    if kind == "chatList":
        if not event["chats"]:
            return "No conversations yet."
        lines = ["Conversations:"]
        for chat in event["chats"]:
            lines.append(f"  {chat['peer']}: {format_message(chat['lastMessage'], me)}")
        return "\n".join(lines)
    if kind == "chatHistory":
        if not event["messages"]:
            return f"No messages with {event['with']}."
        return "\n".join(format_message(message, me) for message in event["messages"])
    if kind == "newMessage":
        return format_message(event["message"], me)
    if kind == "avatarUpdated":
        return f"Avatar set to {event.get('avatar')}."
    return str(event)


class ChatClient:
    """Interactive console client; a background thread prints server frames."""

    def __init__(self, server_url: str):
        self.api = api.RelayClient(server_url)
        self.nickname: Optional[str] = None
        self._reader: Optional[threading.Thread] = None

    def start(self) -> None:
        self.api.connect()
        self._reader = threading.Thread(target=self._read_loop, daemon=True)
        self._reader.start()

    def _read_loop(self) -> None:
        try:
            for event in self.api.events():
                if event.get("type") in ("registered", "loggedIn"):
                    self.nickname = event["nickname"]
                print(format_event(event, self.nickname))
        except Exception as exc:  # noqa: BLE001
            print(f"Connection lost: {exc}")

    def _attachment(self, source: str) -> str:
        if source.startswith(("http://", "https://")):
            return source
        return self.api.upload(Path(source))

    def execute(self, line: str) -> bool:
        """Run one console command. Returns False when the client should exit."""
        try:
            args = shlex.split(line)
        except ValueError as exc:
            print(f"Could not parse command: {exc}")
            return True
        if not args:
            return True
        command, rest = args[0].lower(), args[1:]

        if command in ("/quit", "/q"):
            return False
        if command in ("/register", "/login") and rest:
            nickname, password = rest[0], (rest[1] if len(rest) > 1 else None)
            if command == "/register":
                if not is_nickname_valid(nickname):
                    print("Nickname must be between 3 and 20 characters.")
                    return True
                self.api.register(nickname, password)
            else:
                self.api.login(nickname, password)
        elif command == "/msg" and len(rest) >= 2:
            self.api.send_message(rest[0], text=" ".join(rest[1:]))
        elif command in ("/send-image", "/send-audio") and len(rest) == 2:
            try:
                url = self._attachment(rest[1])
            except Exception as exc:  # noqa: BLE001
                print(f"Upload failed: {exc}")
                return True
            if command == "/send-image":
                self.api.send_message(rest[0], image=url)
            else:
                self.api.send_message(rest[0], audio=url)
        elif command == "/history" and len(rest) == 1:
            self.api.get_chat_history(rest[0])
        elif command == "/avatar" and len(rest) == 1:
            try:
                url = self._attachment(rest[0])
            except Exception as exc:  # noqa: BLE001
                print(f"Upload failed: {exc}")
                return True
            self.api.set_avatar(url)
        elif command == "/users":
            self.api.get_user_list()
        else:
            print(HELP)
        return True


def main():
    print("Chat Relay Client")
    server_url = sys.argv[1] if len(sys.argv) > 1 else input("Server URL (e.g. http://127.0.0.1:8000): ").strip()
    client = ChatClient(server_url)
    try:
        client.start()
    except Exception as exc:  # noqa: BLE001
        print(f"Could not connect: {exc}")
        sys.exit(1)
    print(HELP)
    try:
        while client.execute(input("> ")):
            pass
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        client.api.close()


if __name__ == "__main__":
    main()
