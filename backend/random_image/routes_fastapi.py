"""
Random Image API Routes

Provides endpoints for:
- GET /        A random image from the images folder
- GET /list    All servable images
- GET /health  Health check with current image count
"""

import os
import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import ImageServerConfig
from .errors import FileStreamError, NoImagesAvailable
from .scanner import (
    content_type_for,
    list_images,
    pick_random,
    sanitize_header_value,
)

logger = logging.getLogger(__name__)


# ============================================
# Response Models
# ============================================

class ImageListResponse(BaseModel):
    """Response model for /list"""
    total: int
    images: List[str]
    folder: str = Field(..., description="Absolute path of the images folder")


class HealthResponse(BaseModel):
    """Response model for /health"""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "OK"
    timestamp: str
    image_count: int = Field(..., alias="imageCount")


# ============================================
# Dependencies
# ============================================

def get_config(request: Request) -> ImageServerConfig:
    """The configuration the app was built with"""
    return request.app.state.config


def utc_timestamp() -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2025-01-31T06:05:09.123Z"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ============================================
# Router
# ============================================

router = APIRouter(tags=["Random Image"])


@router.get("/", response_class=FileResponse)
async def random_image(config: ImageServerConfig = Depends(get_config)):
    """
    Send one randomly selected image.

    Headers:
        Content-Type    from the file extension
        Cache-Control   no-cache
        X-Random-Image  the file name, made header-safe
    """
    filename = pick_random(list_images(config.images_folder))
    if filename is None:
        raise NoImagesAvailable(config.images_folder)

    image_path = os.path.join(config.images_folder, filename)
    try:
        stat_result = os.stat(image_path)
    except OSError as e:
        raise FileStreamError(filename, str(e)) from e

    return FileResponse(
        image_path,
        stat_result=stat_result,
        media_type=content_type_for(filename),
        headers={
            "Cache-Control": "no-cache",
            "X-Random-Image": sanitize_header_value(filename),
        },
    )


@router.get("/list", response_model=ImageListResponse)
async def get_image_list(config: ImageServerConfig = Depends(get_config)):
    """List every servable image in the folder"""
    images = list_images(config.images_folder)
    return ImageListResponse(
        total=len(images),
        images=images,
        folder=config.images_folder,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(config: ImageServerConfig = Depends(get_config)):
    """Health check endpoint."""
    return HealthResponse(
        timestamp=utc_timestamp(),
        image_count=len(list_images(config.images_folder)),
    )


# ============================================
# Exception Handlers
# ============================================

async def no_images_handler(request: Request, exc: NoImagesAvailable):
    logger.warning(f"[RandomImage] {exc}")
    return JSONResponse(
        status_code=404,
        content={
            "error": "No image available",
            "message": "Make sure the images folder contains supported image files.",
        },
    )


async def file_stream_error_handler(request: Request, exc: FileStreamError):
    logger.error(f"[RandomImage] {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Failed to send image",
            "message": exc.reason,
        },
    )
