"""The relay engine: owns every store, the router and the snapshot schedule."""
import asyncio
import threading
from typing import Optional

from fastapi.requests import HTTPConnection

from ..shared.dto import Snapshot
from .config import Settings
from .connections import ConnectionRegistry
from .conversations import ConversationStore
from .credentials import CredentialHasher
from .errors import PersistenceError
from .identities import IdentityRegistry
from .logging_config import configure_logging
from .persistence import SnapshotScheduler, SnapshotStore
from .router import MessageRouter

logger = configure_logging()


class ChatEngine:
    """One instance per process, created at startup and injected where needed."""

    def __init__(self, settings: Optional[Settings] = None, store: Optional[SnapshotStore] = None):
        self.settings = settings or Settings()
        # shared by identities and conversations so a capture sees both at one instant
        self.lock = threading.RLock()
        self.identities = IdentityRegistry(
            CredentialHasher(self.settings.credential_hashing, self.settings.bcrypt_rounds), lock=self.lock
        )
        self.conversations = ConversationStore(self.settings.history_limit, lock=self.lock)
        self.connections = ConnectionRegistry()
        self.router = MessageRouter(
            self.identities,
            self.conversations,
            self.connections,
            announce_registrations=self.settings.announce_registrations,
            broadcast_avatar_updates=self.settings.broadcast_avatar_updates,
        )
        self.store = store or SnapshotStore(self.settings.snapshot_path)
        self.scheduler = SnapshotScheduler(self.capture, self.store, self.settings.snapshot_interval)

    def capture(self) -> Snapshot:
        with self.lock:
            return Snapshot(users=self.identities.snapshot(), conversations=self.conversations.snapshot())

    def restore(self, snapshot: Snapshot) -> None:
        with self.lock:
            self.identities.restore(snapshot.users)
            self.conversations.restore(snapshot.conversations)

    async def start(self) -> None:
        self.restore(await asyncio.to_thread(self.store.load))
        self.scheduler.start()
        logger.info(
            "ENGINE_STARTED users=%s conversations=%s interval=%s",
            len(self.identities),
            len(self.conversations),
            self.settings.snapshot_interval,
        )

    async def stop(self) -> None:
        await self.scheduler.stop()
        try:
            await asyncio.to_thread(self.store.save, self.capture())
        except PersistenceError as exc:
            logger.error("SNAPSHOT_FAIL stage=shutdown error=%s", exc)
        finally:
            self.store.close()
        logger.info("ENGINE_STOPPED")


def get_engine(connection: HTTPConnection) -> ChatEngine:
    """FastAPI dependency returning the engine owned by the running app."""
    return connection.app.state.engine


def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings
