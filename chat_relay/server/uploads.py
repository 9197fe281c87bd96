"""Binary upload route backing image and audio messages."""
import asyncio
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from . import schemas
from .config import Settings
from .engine import get_settings
from .logging_config import configure_logging

router = APIRouter(tags=["uploads"])
logger = configure_logging()

CONTENT_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "video/webm": ".webm",
}
DEFAULT_EXTENSION = ".bin"


def extension_for(content_type: Optional[str]) -> str:
    if not content_type:
        return DEFAULT_EXTENSION
    media_type = content_type.split(";", 1)[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(media_type, DEFAULT_EXTENSION)


def _too_large(limit: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=f"Upload exceeds {limit} bytes"
    )


@router.post("/upload", response_model=schemas.UploadOut)
async def upload(request: Request, settings: Settings = Depends(get_settings)):
    limit = settings.max_upload_bytes
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        logger.info("UPLOAD_REJECTED reason=too_large declared=%s", declared)
        raise _too_large(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            logger.info("UPLOAD_REJECTED reason=too_large received=%s", len(body))
            raise _too_large(limit)
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty upload")

    filename = f"{uuid.uuid4().hex}{extension_for(request.headers.get('content-type'))}"
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread((settings.upload_dir / filename).write_bytes, bytes(body))
    logger.info("UPLOAD_STORED filename=%s bytes=%s", filename, len(body))
    return schemas.UploadOut(url=f"/uploads/{filename}")
