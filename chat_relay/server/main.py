"""FastAPI application entrypoint for the chat relay server."""
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.staticfiles import StaticFiles

from . import schemas, uploads, ws
from .config import HOST, PORT, Settings
from .engine import ChatEngine, get_engine
from .logging_config import configure_logging

logger = configure_logging()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
        engine = ChatEngine(settings)
        app.state.engine = engine
        await engine.start()
        try:
            yield
        finally:
            await engine.stop()

    app = FastAPI(title="Chat Relay Server", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.include_router(ws.router)
    app.include_router(uploads.router)

    @app.get("/status", response_model=schemas.StatusOut)
    def status(engine: ChatEngine = Depends(get_engine)):
        return schemas.StatusOut(
            status="ok",
            users=len(engine.identities),
            online=len(engine.connections.online()),
            connections=len(engine.connections),
        )

    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")
    if settings.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")
    return app


app = create_app()


def run():
    uvicorn.run("chat_relay.server.main:app", host=HOST, port=PORT, reload=False)


if __name__ == "__main__":
    run()
