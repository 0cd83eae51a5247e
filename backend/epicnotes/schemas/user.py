"""
Epic Notes Backend - User Schemas
===================================

What:  Row schema for the raw user search query plus profile responses.

The search runs hand-written SQL, so its rows are untyped until
UserSearchResult validates them. A row that does not fit (e.g. a column
renamed in a migration) turns into a 400 "error" status instead of
leaking malformed data to the client.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class UserSearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    name: Optional[str]
    image_id: Optional[str] = Field(alias="imageId", serialization_alias="imageId")


UserSearchResults = TypeAdapter(List[UserSearchResult])


class UserSearchResponse(BaseModel):
    status: str = "idle"
    users: List[UserSearchResult]


class UserProfileResponse(BaseModel):
    username: str
    name: Optional[str] = None
    image_id: Optional[str] = Field(default=None, serialization_alias="imageId")
    joined_at: datetime = Field(serialization_alias="joinedAt")
