"""
Content operations: registration, login, post lifecycle and user profile.

Every operation takes the caller's ``Identity`` explicitly and enforces its
own authentication and ownership rules before touching the store.
"""

from __future__ import annotations

import logging
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from fastapi.concurrency import run_in_threadpool

from graphblog.auth import Identity, require_user_id
from graphblog.db import DbClient, DuplicateEmailError, PostRecord, UserRecord
from graphblog.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from graphblog.schemas import AuthData, PostOut, PostPage, UserOut
from graphblog.security import PasswordHasher, TokenService
from graphblog.storage import ImageStorage, discard_image

logger = logging.getLogger(__name__)

POSTS_PER_PAGE = 2
MIN_PASSWORD_LENGTH = 5
MIN_TEXT_LENGTH = 5
# Sent by clients that edit a post without choosing a new image.
IMAGE_UNCHANGED = "undefined"


def _is_email(value: str) -> bool:
    # Syntax only; no DNS lookups and reserved test domains pass.
    try:
        validate_email(
            value or "",
            check_deliverability=False,
            globally_deliverable=False,
            test_environment=True,
        )
    except EmailNotValidError:
        return False
    return True


def _too_short(value: Optional[str], min_length: int) -> bool:
    return not value or not value.strip() or len(value) < min_length


def validate_registration(email: str, password: str) -> list[dict]:
    errors = []
    if not _is_email(email):
        errors.append({"message": "Email is invalid"})
    if _too_short(password, MIN_PASSWORD_LENGTH):
        errors.append({"message": "Password too short!"})
    return errors


def validate_post_input(title: str, content: str) -> list[dict]:
    errors = []
    if _too_short(title, MIN_TEXT_LENGTH):
        errors.append({"message": "Title is invalid."})
    if _too_short(content, MIN_TEXT_LENGTH):
        errors.append({"message": "Content is invalid."})
    return errors


class ContentService:
    def __init__(
        self,
        db: DbClient,
        hasher: PasswordHasher,
        tokens: TokenService,
        images: ImageStorage,
        page_size: int = POSTS_PER_PAGE,
    ):
        self.db = db
        self.hasher = hasher
        self.tokens = tokens
        self.images = images
        self.page_size = page_size

    async def _current_user(self, identity: Identity, message: str = "Invalid user.") -> UserRecord:
        user = await run_in_threadpool(self.db.get_user, require_user_id(identity))
        if not user:
            raise AuthenticationError(message)
        return user

    async def _find_post(self, post_id: str) -> PostRecord:
        post = await run_in_threadpool(self.db.get_post, post_id)
        if not post:
            raise NotFoundError("No post found!")
        return post

    async def _post_out(self, post: PostRecord, creator: Optional[UserRecord] = None) -> PostOut:
        creator = creator or await run_in_threadpool(self.db.get_user, post.creator_id)
        if not creator:
            raise NotFoundError("Creator not found!")
        return PostOut.from_record(post, creator)

    async def register(self, email: str, name: str, password: str) -> UserOut:
        errors = validate_registration(email, password)
        if errors:
            raise ValidationError("Invalid input.", errors)
        if await run_in_threadpool(self.db.get_user_by_email, email):
            raise ConflictError("User exists already!")
        password_hash = await run_in_threadpool(self.hasher.hash, password)
        try:
            user = await run_in_threadpool(self.db.create_user, email, name, password_hash)
        except DuplicateEmailError:
            raise ConflictError("User exists already!")
        logger.info("Registered user %s", user.user_id)
        return UserOut.from_record(user)

    async def login(self, email: str, password: str) -> AuthData:
        user = await run_in_threadpool(self.db.get_user_by_email, email)
        if not user:
            raise AuthenticationError("User not found.")
        matches = await run_in_threadpool(
            self.hasher.verify, password or "", user.password_hash
        )
        if not matches:
            raise AuthenticationError("Invalid Password")
        token = self.tokens.issue(user.user_id, user.email)
        return AuthData(token=token, user_id=user.user_id)

    async def create_post(
        self,
        identity: Identity,
        title: str,
        content: str,
        image_url: Optional[str] = None,
    ) -> PostOut:
        require_user_id(identity)
        errors = validate_post_input(title, content)
        if errors:
            raise ValidationError("Invalid input.", errors)
        user = await self._current_user(identity)
        post = await run_in_threadpool(
            self.db.create_post, title, content, image_url, user.user_id
        )
        user.posts.append(post.post_id)
        user = await run_in_threadpool(self.db.save_user, user)
        logger.info("User %s created post %s", user.user_id, post.post_id)
        return await self._post_out(post, user)

    async def list_posts(self, identity: Identity, page: Optional[int] = 1) -> PostPage:
        require_user_id(identity)
        page = max(page or 1, 1)
        total = await run_in_threadpool(self.db.count_posts)
        posts = await run_in_threadpool(
            self.db.list_posts, offset=(page - 1) * self.page_size, limit=self.page_size
        )
        return PostPage(
            posts=[await self._post_out(post) for post in posts],
            total_posts=total,
        )

    async def get_post(self, identity: Identity, post_id: str) -> PostOut:
        require_user_id(identity)
        return await self._post_out(await self._find_post(post_id))

    async def update_post(
        self,
        identity: Identity,
        post_id: str,
        title: str,
        content: str,
        image_url: Optional[str] = None,
    ) -> PostOut:
        user_id = require_user_id(identity)
        post = await self._find_post(post_id)
        creator = await run_in_threadpool(self.db.get_user, post.creator_id)
        if not creator or creator.user_id != user_id:
            raise AuthorizationError("Not authorized!")
        errors = validate_post_input(title, content)
        if errors:
            raise ValidationError("Invalid input.", errors)
        post.title = title
        post.content = content
        # Anything but the placeholder replaces the image, including None.
        if image_url != IMAGE_UNCHANGED:
            post.image_url = image_url
        post = await run_in_threadpool(self.db.save_post, post)
        return await self._post_out(post, creator)

    async def delete_post(self, identity: Identity, post_id: str) -> bool:
        user_id = require_user_id(identity)
        post = await self._find_post(post_id)
        if post.creator_id != user_id:
            raise AuthorizationError("Not authorized!")
        user = await self._current_user(identity)
        await run_in_threadpool(discard_image, self.images, post.image_url)
        user.posts = [owned for owned in user.posts if owned != post_id]
        await run_in_threadpool(self.db.save_user, user)
        await run_in_threadpool(self.db.delete_post, post_id)
        logger.info("User %s deleted post %s", user_id, post_id)
        return True

    async def get_current_user(self, identity: Identity) -> UserOut:
        return UserOut.from_record(await self._current_user(identity, "No user found!"))

    async def update_status(self, identity: Identity, status: str) -> UserOut:
        user = await self._current_user(identity, "No user found!")
        user.status = status
        return UserOut.from_record(await run_in_threadpool(self.db.save_user, user))
