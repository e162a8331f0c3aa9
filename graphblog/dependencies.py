"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends, Request

from graphblog.auth import Identity, resolve_identity
from graphblog.config import get_settings
from graphblog.db import DbClient, InMemoryDbClient, PostgresDbClient
from graphblog.security import PasswordHasher, TokenService
from graphblog.service import ContentService
from graphblog.storage import (
    CosImageStorage,
    ImageStorage,
    InMemoryImageStorage,
    LocalImageStorage,
)

_db_client: DbClient | None = None
_image_storage: ImageStorage | None = None
_password_hasher: PasswordHasher | None = None
_token_service: TokenService | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so users and posts persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_image_storage() -> ImageStorage:
    global _image_storage
    if _image_storage:
        return _image_storage

    settings = get_settings()
    if settings.use_in_memory_backends:
        _image_storage = InMemoryImageStorage()
    elif settings.cos_bucket:
        _image_storage = CosImageStorage(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    else:
        _image_storage = LocalImageStorage(settings.image_dir)
    return _image_storage


def get_password_hasher() -> PasswordHasher:
    global _password_hasher
    if _password_hasher:
        return _password_hasher
    _password_hasher = PasswordHasher(rounds=get_settings().bcrypt_rounds)
    return _password_hasher


def get_token_service() -> TokenService:
    global _token_service
    if _token_service:
        return _token_service

    settings = get_settings()
    _token_service = TokenService(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.token_ttl_seconds,
    )
    return _token_service


def get_content_service() -> ContentService:
    return ContentService(
        db=get_db_client(),
        hasher=get_password_hasher(),
        tokens=get_token_service(),
        images=get_image_storage(),
    )


def get_identity(
    request: Request, tokens: TokenService = Depends(get_token_service)
) -> Identity:
    """Resolve the caller from the Authorization header; never rejects."""
    return resolve_identity(request.headers.get("Authorization"), tokens)


def reset_dependencies() -> None:
    """Drop cached singletons and settings (useful in tests)."""
    global _db_client, _image_storage, _password_hasher, _token_service
    _db_client = None
    _image_storage = None
    _password_hasher = None
    _token_service = None
    get_settings.cache_clear()
