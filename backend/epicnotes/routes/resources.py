"""
Epic Notes Backend - Image Resource Route
===========================================

What:  GET /resources/images/{image_id} serves note and profile images
       straight from their database blobs.

Caching:
    An image id changes whenever its bytes change (see the image diff
    resolver), so a given URL always names the same content and can be
    cached forever.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from epicnotes.database import get_db_session
from epicnotes.schemas.note import ErrorResponse
from epicnotes.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resources", tags=["Resources"])

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


@router.get(
    "/images/{image_id}",
    responses={
        200: {"description": "Image bytes"},
        404: {"description": "Image not found", "model": ErrorResponse},
    },
    summary="Serve a stored image",
)
async def serve_image(
    image_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    content_type, blob = await note_service.get_image(db, image_id)
    return Response(
        content=blob,
        media_type=content_type,
        headers={
            "Content-Disposition": f'inline; filename="{image_id}"',
            "Cache-Control": IMMUTABLE_CACHE_CONTROL,
        },
    )
