"""
Pydantic schemas for service results and REST responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from graphblog.db import PostRecord, UserRecord


def to_iso(timestamp: float) -> str:
    """Epoch seconds to ISO-8601 UTC with millisecond precision."""
    value = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    status: str
    posts: list[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserOut":
        return cls(
            id=record.user_id,
            email=record.email,
            name=record.name,
            status=record.status,
            posts=list(record.posts),
        )


class PostOut(BaseModel):
    id: str
    title: str
    content: str
    image_url: Optional[str] = None
    creator: UserOut
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: PostRecord, creator: UserRecord) -> "PostOut":
        return cls(
            id=record.post_id,
            title=record.title,
            content=record.content,
            image_url=record.image_url,
            creator=UserOut.from_record(creator),
            created_at=to_iso(record.created_at),
            updated_at=to_iso(record.updated_at),
        )


class PostPage(BaseModel):
    posts: list[PostOut]
    total_posts: int


class AuthData(BaseModel):
    token: str
    user_id: str


class ImageUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    file_path: Optional[str] = Field(default=None, alias="filePath")
