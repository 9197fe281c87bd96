import os
import tempfile
from pathlib import Path

# keep test runs from writing next to the package
os.environ.setdefault("CHAT_RELAY_LOG_FILE", str(Path(tempfile.gettempdir()) / "chat_relay_tests.log"))

import pytest  # noqa: E402

from chat_relay.server.config import Settings  # noqa: E402
from chat_relay.server.engine import ChatEngine  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    return Settings(
        snapshot_path=tmp_path / "snapshot.db",
        snapshot_interval=60.0,
        upload_dir=tmp_path / "uploads",
        public_dir=tmp_path / "public",
        max_upload_bytes=1024,
        credential_hashing="plaintext",
    )


@pytest.fixture
def engine(settings):
    return ChatEngine(settings)


@pytest.fixture
def router(engine):
    return engine.router
