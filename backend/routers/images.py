import base64
import binascii
import logging
import os
import uuid as uuid_mod
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, UploadFile, File, HTTPException, status, Form
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_superuser
from db.database import get_async_session, Image
from db.users import User

router = APIRouter()
logger = logging.getLogger(__name__)

MIN_IMAGE_BYTES = 100
MAX_IMAGE_BYTES = 10 * 1024 * 1024

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def _check_size(data: bytes) -> None:
    if len(data) < MIN_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image file appears to be corrupted or too small",
        )
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image size must be less than 10MB",
        )


def _decode_data_url(value: str) -> tuple[bytes, str]:
    """'data:image/png;base64,....' or bare base64 -> (bytes, content_type)"""
    content_type = "image/jpeg"
    if "," in value:
        prefix, value = value.split(",", 1)
        if prefix.startswith("data:") and ";" in prefix:
            content_type = prefix.split(";")[0].replace("data:", "").strip() or content_type
    try:
        return base64.b64decode(value, validate=True), content_type
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 image")


@router.post("/upload")
async def upload_image(
    file: Optional[UploadFile] = File(None),
    base64_image: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """
    Store a product photo and return the URL to put in products.image_url.
    Accepts a multipart file or a base64 / data-URL string.
    """
    if file:
        data = await file.read()
        filename = file.filename or f"product_{uuid_mod.uuid4().hex[:8]}.jpg"
        content_type = (file.content_type or "").strip().lower()
        ext = os.path.splitext(filename)[1].lower().lstrip(".")
        if content_type and content_type != "application/octet-stream" and not content_type.startswith("image/"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
        if not content_type or content_type == "application/octet-stream":
            if ext not in EXT_TO_CONTENT_TYPE:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
            content_type = EXT_TO_CONTENT_TYPE[ext]
    elif base64_image:
        data, content_type = _decode_data_url(base64_image)
        filename = f"product_{uuid_mod.uuid4().hex[:8]}.jpg"
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either 'file' or 'base64_image' must be provided",
        )

    _check_size(data)

    image_id = uuid_mod.uuid4()
    try:
        db.add(Image(id=image_id, filename=filename, content_type=content_type, size_bytes=len(data), data=data))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Failed to store image %s", image_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error uploading image: {str(e)}",
        )
    logger.info("Stored image %s (%d bytes, %s)", image_id, len(data), content_type)

    return {
        "url": f"/images/serve/{image_id}",
        "id": str(image_id),
        "name": filename,
    }


@router.get("/serve/{image_id}", response_class=Response)
async def serve_image(
    image_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Serve image binary by id. No auth required so img src works."""
    result = await db.execute(select(Image).where(Image.id == image_id))
    row = result.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(content=bytes(row.data), media_type=row.content_type)
