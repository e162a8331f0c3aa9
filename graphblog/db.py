"""
Database abstraction for users and posts, with an SQLAlchemy implementation
and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Protocol

from sqlalchemy import JSON, Column, Float, String, create_engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DEFAULT_STATUS = "I am new!"


class DuplicateEmailError(ValueError):
    """Raised when a user with the same (normalized) email already exists."""


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(
        self, email: str, name: str, password_hash: str
    ) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_email(self, email: str) -> Optional["UserRecord"]:
        ...

    def save_user(self, user: "UserRecord") -> "UserRecord":
        ...

    def count_users(self) -> int:
        ...

    def create_post(
        self,
        title: str,
        content: str,
        image_url: Optional[str],
        creator_id: str,
    ) -> "PostRecord":
        ...

    def get_post(self, post_id: str) -> Optional["PostRecord"]:
        ...

    def save_post(self, post: "PostRecord") -> "PostRecord":
        ...

    def delete_post(self, post_id: str) -> None:
        ...

    def count_posts(self) -> int:
        ...

    def list_posts(self, offset: int = 0, limit: int = 2) -> list["PostRecord"]:
        ...


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass
class UserRecord:
    user_id: str
    email: str
    name: str
    password_hash: str
    status: str = DEFAULT_STATUS
    posts: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        # The digest stays out of every serialized form.
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "status": self.status,
            "posts": list(self.posts),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class PostRecord:
    post_id: str
    title: str
    content: str
    creator_id: str
    image_url: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "post_id": self.post_id,
            "title": self.title,
            "content": self.content,
            "image_url": self.image_url,
            "creator_id": self.creator_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _copy_user(user: UserRecord) -> UserRecord:
    return replace(user, posts=list(user.posts))


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.posts: Dict[str, PostRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.posts.clear()

    def create_user(
        self, email: str, name: str, password_hash: str
    ) -> UserRecord:
        email = normalize_email(email)
        if self.get_user_by_email(email):
            raise DuplicateEmailError(email)
        record = UserRecord(
            user_id=uuid.uuid4().hex,
            email=email,
            name=name,
            password_hash=password_hash,
        )
        self.users[record.user_id] = record
        return _copy_user(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        return _copy_user(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        email = normalize_email(email)
        for user in self.users.values():
            if user.email == email:
                return _copy_user(user)
        return None

    def save_user(self, user: UserRecord) -> UserRecord:
        stored = _copy_user(user)
        stored.updated_at = max(time.time(), stored.created_at)
        self.users[stored.user_id] = stored
        return _copy_user(stored)

    def count_users(self) -> int:
        return len(self.users)

    def create_post(
        self,
        title: str,
        content: str,
        image_url: Optional[str],
        creator_id: str,
    ) -> PostRecord:
        record = PostRecord(
            post_id=uuid.uuid4().hex,
            title=title,
            content=content,
            image_url=image_url,
            creator_id=creator_id,
        )
        self.posts[record.post_id] = record
        return replace(record)

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        return replace(post) if post else None

    def save_post(self, post: PostRecord) -> PostRecord:
        stored = replace(post)
        stored.updated_at = max(time.time(), stored.created_at)
        self.posts[stored.post_id] = stored
        return replace(stored)

    def delete_post(self, post_id: str) -> None:
        self.posts.pop(post_id, None)

    def count_posts(self) -> int:
        return len(self.posts)

    def list_posts(self, offset: int = 0, limit: int = 2) -> list[PostRecord]:
        # Newest first; ties fall back to reverse insertion order.
        newest_first = sorted(
            reversed(list(self.posts.values())),
            key=lambda post: post.created_at,
            reverse=True,
        )
        return [replace(post) for post in newest_first[offset : offset + limit]]


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            user_id=row.user_id,
            email=row.email,
            name=row.name,
            password_hash=row.password_hash,
            status=row.status,
            posts=list(row.posts or []),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_post_record(self, row: "PostRow") -> PostRecord:
        return PostRecord(
            post_id=row.post_id,
            title=row.title,
            content=row.content,
            image_url=row.image_url,
            creator_id=row.creator_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_user(
        self, email: str, name: str, password_hash: str
    ) -> UserRecord:
        now = time.time()
        email = normalize_email(email)
        with self.Session() as session:
            row = UserRow(
                user_id=uuid.uuid4().hex,
                email=email,
                name=name,
                password_hash=password_hash,
                status=DEFAULT_STATUS,
                posts=[],
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateEmailError(email) from exc
            session.refresh(row)
            return self._to_user_record(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            return self._to_user_record(row)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.email == normalize_email(email))
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._to_user_record(row)

    def save_user(self, user: UserRecord) -> UserRecord:
        with self.Session() as session:
            row = session.get(UserRow, user.user_id)
            if not row:
                raise KeyError(user.user_id)
            row.name = user.name
            row.status = user.status
            # Reassign so the JSON column is flagged dirty.
            row.posts = list(user.posts)
            row.updated_at = max(time.time(), row.created_at)
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def count_users(self) -> int:
        with self.Session() as session:
            return session.execute(select(func.count(UserRow.user_id))).scalar_one()

    def create_post(
        self,
        title: str,
        content: str,
        image_url: Optional[str],
        creator_id: str,
    ) -> PostRecord:
        now = time.time()
        with self.Session() as session:
            row = PostRow(
                post_id=uuid.uuid4().hex,
                title=title,
                content=content,
                image_url=image_url,
                creator_id=creator_id,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_post_record(row)

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return None
            return self._to_post_record(row)

    def save_post(self, post: PostRecord) -> PostRecord:
        with self.Session() as session:
            row = session.get(PostRow, post.post_id)
            if not row:
                raise KeyError(post.post_id)
            row.title = post.title
            row.content = post.content
            row.image_url = post.image_url
            row.updated_at = max(time.time(), row.created_at)
            session.commit()
            session.refresh(row)
            return self._to_post_record(row)

    def delete_post(self, post_id: str) -> None:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return
            session.delete(row)
            session.commit()

    def count_posts(self) -> int:
        with self.Session() as session:
            return session.execute(select(func.count(PostRow.post_id))).scalar_one()

    def list_posts(self, offset: int = 0, limit: int = 2) -> list[PostRecord]:
        with self.Session() as session:
            rows = (
                session.query(PostRow)
                .order_by(PostRow.created_at.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [self._to_post_record(row) for row in rows]


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    status = Column(String, nullable=False, default=DEFAULT_STATUS)
    posts = Column(JSON, nullable=False, default=list)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class PostRow(Base):
    __tablename__ = "posts"

    post_id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    content = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    creator_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)
