"""
Epic Notes Backend - User Service
===================================

What:  User search and public profile lookups.
How:   Search is one hand-written SQL statement (a LIKE filter, a left join
       to the profile image and ordering by each user's most recently
       updated note). Its rows come back untyped, so they are validated
       through `UserSearchResults` before leaving the service.
"""

import logging
from typing import List

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from epicnotes.exceptions import BadRequestError, NotFoundError
from epicnotes.models import User
from epicnotes.schemas.user import (
    UserProfileResponse,
    UserSearchResult,
    UserSearchResults,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50

SEARCH_USERS_SQL = text(
    """
    SELECT users.id, users.username, users.name, user_images.id AS "imageId"
    FROM users
    LEFT JOIN user_images ON users.id = user_images.user_id
    WHERE users.username LIKE :term OR users.name LIKE :term
    ORDER BY (
        SELECT notes.updated_at
        FROM notes
        WHERE notes.owner_id = users.id
        ORDER BY notes.updated_at DESC
        LIMIT 1
    ) DESC NULLS LAST
    LIMIT :limit
    """
)


class UserService:

    async def search_users(self, db: AsyncSession, term: str) -> List[UserSearchResult]:
        """
        Users whose username or name contains `term`.

        Raises:
            BadRequestError if the query returned rows that do not fit
            UserSearchResult.
        """
        result = await db.execute(
            SEARCH_USERS_SQL, {"term": f"%{term}%", "limit": SEARCH_LIMIT}
        )
        rows = [dict(row) for row in result.mappings().all()]
        try:
            return UserSearchResults.validate_python(rows)
        except PydanticValidationError as e:
            logger.error("User search returned unexpected rows: %s", e.errors())
            raise BadRequestError(
                message="There was an error parsing the results",
                context={"term": term},
            )

    async def get_profile(self, db: AsyncSession, username: str) -> UserProfileResponse:
        result = await db.execute(
            select(User)
            .where(User.username == username)
            .options(selectinload(User.image))
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=username)
        return UserProfileResponse(
            username=user.username,
            name=user.name,
            image_id=user.image.id if user.image else None,
            joined_at=user.created_at,
        )


user_service = UserService()
