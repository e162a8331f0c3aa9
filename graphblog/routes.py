"""
HTTP routes outside the GraphQL surface.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from fastapi.concurrency import run_in_threadpool

from graphblog.auth import Identity, require_user_id
from graphblog.dependencies import get_identity, get_image_storage
from graphblog.schemas import ImageUploadResponse
from graphblog.storage import ImageStorage, discard_image, is_allowed_image

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put(
    "/post-image",
    response_model=ImageUploadResponse,
    response_model_exclude_none=True,
)
async def upload_post_image(
    response: Response,
    image: Optional[UploadFile] = File(None),
    old_path: Optional[str] = Form(None, alias="oldPath"),
    identity: Identity = Depends(get_identity),
    storage: ImageStorage = Depends(get_image_storage),
):
    """
    Store a single post image. Unsupported file types are dropped and
    treated as if no file had been sent.
    """
    user_id = require_user_id(identity)
    if image is not None and not is_allowed_image(image.content_type):
        logger.info(
            "Ignoring upload %s with type %s", image.filename, image.content_type
        )
        image = None
    if image is None:
        return ImageUploadResponse(message="No file provided")

    data = await image.read()
    file_path = await run_in_threadpool(storage.store, data, image.filename or "")
    if old_path:
        # Any authenticated user may replace any stored image.
        logger.info("User %s replacing image %s", user_id, old_path)
        await run_in_threadpool(discard_image, storage, old_path)
    response.status_code = 201
    return ImageUploadResponse(message="File stored", file_path=file_path)
