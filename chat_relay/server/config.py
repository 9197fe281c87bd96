"""Server configuration values."""
import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


HOST = os.getenv("CHAT_RELAY_HOST", "0.0.0.0")
PORT = int(os.getenv("CHAT_RELAY_PORT", "8000"))

SNAPSHOT_PATH = Path(os.getenv("CHAT_RELAY_SNAPSHOT_PATH", str(BASE_DIR / "chat_relay.db")))
SNAPSHOT_INTERVAL_SECONDS = float(os.getenv("CHAT_RELAY_SNAPSHOT_INTERVAL", "5"))
HISTORY_LIMIT = int(os.getenv("CHAT_RELAY_HISTORY_LIMIT", "20"))

UPLOAD_DIR = Path(os.getenv("CHAT_RELAY_UPLOAD_DIR", str(BASE_DIR / "uploads")))
MAX_UPLOAD_BYTES = int(os.getenv("CHAT_RELAY_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
PUBLIC_DIR = Path(os.getenv("CHAT_RELAY_PUBLIC_DIR", str(BASE_DIR / "public")))

ANNOUNCE_REGISTRATIONS = _env_bool("CHAT_RELAY_ANNOUNCE_REGISTRATIONS", True)
BROADCAST_AVATAR_UPDATES = _env_bool("CHAT_RELAY_BROADCAST_AVATAR_UPDATES", True)

# "bcrypt" or "plaintext"
CREDENTIAL_HASHING = os.getenv("CHAT_RELAY_CREDENTIAL_HASHING", "bcrypt")
BCRYPT_ROUNDS = int(os.getenv("CHAT_RELAY_BCRYPT_ROUNDS", "12"))

LOG_FILE = Path(os.getenv("CHAT_RELAY_LOG_FILE", str(BASE_DIR / "server.log")))


@dataclass
class Settings:
    host: str = HOST
    port: int = PORT
    snapshot_path: Path = SNAPSHOT_PATH
    snapshot_interval: float = SNAPSHOT_INTERVAL_SECONDS
    history_limit: int = HISTORY_LIMIT
    upload_dir: Path = UPLOAD_DIR
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    public_dir: Path = PUBLIC_DIR
    announce_registrations: bool = ANNOUNCE_REGISTRATIONS
    broadcast_avatar_updates: bool = BROADCAST_AVATAR_UPDATES
    credential_hashing: str = CREDENTIAL_HASHING
    bcrypt_rounds: int = BCRYPT_ROUNDS
