"""Durable snapshots of identities and conversations.

The whole state is rewritten on every tick inside one SQLite transaction, so
a crash mid-write leaves the previous snapshot in place.
"""
import asyncio
import threading
import time
from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..shared.dto import ConversationKey, Message, Snapshot, User
from .database import Base, create_session_factory, create_snapshot_engine
from .errors import PersistenceError
from .logging_config import configure_logging
from .models import MessageRecord, UserRecord

logger = configure_logging()


class SnapshotStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker] = None
        self._write_lock = threading.Lock()

    def _open(self) -> sessionmaker:
        if self._sessions is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_snapshot_engine(self.path)
            try:
                Base.metadata.create_all(bind=engine)
            except SQLAlchemyError:
                engine.dispose()
                raise
            self._engine = engine
            self._sessions = create_session_factory(engine)
        return self._sessions

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessions = None

    def load(self) -> Snapshot:
        """Read the last snapshot; a missing or unreadable file yields an empty one."""
        if not self.path.exists():
            logger.info("SNAPSHOT_MISSING path=%s", self.path)
            return Snapshot()
        try:
            sessions = self._open()
            with sessions() as db:
                users = [
                    User(nickname=row.nickname, credential=row.credential, avatar=row.avatar)
                    for row in db.query(UserRecord).order_by(UserRecord.position).all()
                ]
                rows = (
                    db.query(MessageRecord)
                    .order_by(MessageRecord.participant_a, MessageRecord.participant_b, MessageRecord.seq)
                    .all()
                )
                conversations: Dict[ConversationKey, List[Message]] = defaultdict(list)
                for row in rows:
                    conversations[(row.participant_a, row.participant_b)].append(
                        Message(
                            id=row.id,
                            sender=row.sender,
                            recipient=row.recipient,
                            text=row.text,
                            image=row.image,
                            audio=row.audio,
                            created_at=row.created_at,
                        )
                    )
        except (SQLAlchemyError, OSError) as exc:
            logger.error("SNAPSHOT_LOAD_FAIL path=%s error=%s", self.path, exc)
            self._quarantine()
            return Snapshot()

        snapshot = Snapshot(users=users, conversations=dict(conversations))
        logger.info(
            "SNAPSHOT_LOADED path=%s users=%s messages=%s", self.path, len(users), snapshot.message_count
        )
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        """Replace the stored state with ``snapshot`` in a single transaction."""
        with self._write_lock:
            try:
                sessions = self._open()
                with sessions.begin() as db:
                    db.query(MessageRecord).delete()
                    db.query(UserRecord).delete()
                    db.add_all(
                        UserRecord(
                            nickname=user.nickname,
                            credential=user.credential,
                            avatar=user.avatar,
                            position=position,
                        )
                        for position, user in enumerate(snapshot.users)
                    )
                    for (a, b), messages in snapshot.conversations.items():
                        db.add_all(
                            MessageRecord(
                                id=message.id,
                                participant_a=a,
                                participant_b=b,
                                seq=seq,
                                sender=message.sender,
                                recipient=message.recipient,
                                text=message.text,
                                image=message.image,
                                audio=message.audio,
                                created_at=message.created_at,
                            )
                            for seq, message in enumerate(messages)
                        )
            except (SQLAlchemyError, OSError) as exc:
                raise PersistenceError(f"could not write snapshot to {self.path}: {exc}") from exc

    def _quarantine(self) -> None:
        self.close()
        target = self.path.with_name(f"{self.path.name}.corrupt-{int(time.time())}")
        try:
            self.path.rename(target)
        except OSError as exc:
            logger.error("SNAPSHOT_QUARANTINE_FAIL path=%s error=%s", self.path, exc)
            return
        logger.warning("SNAPSHOT_QUARANTINED path=%s moved_to=%s", self.path, target)


class SnapshotScheduler:
    """Periodically captures the engine state and writes it off the event loop."""

    def __init__(self, capture: Callable[[], Snapshot], store: SnapshotStore, interval: float = 5.0):
        self.capture = capture
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="snapshot-scheduler")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_once(self) -> bool:
        snapshot = self.capture()
        try:
            await asyncio.to_thread(self.store.save, snapshot)
        except PersistenceError as exc:
            logger.error("SNAPSHOT_FAIL error=%s", exc)
            return False
        logger.info("SNAPSHOT_SAVED users=%s messages=%s", len(snapshot.users), snapshot.message_count)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()
