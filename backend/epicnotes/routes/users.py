"""
Epic Notes Backend - Users Route Handlers
===========================================

What:  User search (GET /users) and public profiles (GET /users/{username}).
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from epicnotes.database import get_db_session
from epicnotes.schemas.note import ErrorResponse
from epicnotes.schemas.user import UserProfileResponse, UserSearchResponse
from epicnotes.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get(
    "",
    response_model=UserSearchResponse,
    responses={
        302: {"description": "Empty search term; redirect to the unfiltered list"},
        400: {"description": "Search results could not be read", "model": ErrorResponse},
    },
    summary="Search users by username or name",
)
async def search_users(
    search: Optional[str] = Query(default=None, description="Substring of username or name"),
    db: AsyncSession = Depends(get_db_session),
) -> Union[UserSearchResponse, RedirectResponse]:
    """
    Without `search` every user is listed (up to the limit); an explicitly
    empty `search=` redirects to the bare URL so it can be bookmarked cleanly.
    """
    if search == "":
        return RedirectResponse(url="/users", status_code=302)

    users = await user_service.search_users(db, search or "")
    return UserSearchResponse(status="idle", users=users)


@router.get(
    "/{username}",
    response_model=UserProfileResponse,
    responses={404: {"description": "Unknown user", "model": ErrorResponse}},
    summary="Public profile of a user",
)
async def get_user_profile(
    username: str,
    db: AsyncSession = Depends(get_db_session),
) -> UserProfileResponse:
    return await user_service.get_profile(db, username)
