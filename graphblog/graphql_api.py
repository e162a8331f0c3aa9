"""
GraphQL surface: one field per content operation.

Resolvers only translate between GraphQL types and ``ContentService``;
authentication and ownership rules live in the service.
"""

import logging
from typing import List, Optional

import strawberry
from fastapi import Depends
from graphql import GraphQLError
from strawberry.fastapi import GraphQLRouter
from strawberry.types import ExecutionResult, Info

from graphblog.auth import Identity
from graphblog.dependencies import get_content_service, get_identity
from graphblog.errors import ContentError, envelope_for
from graphblog.schemas import PostOut, UserOut
from graphblog.service import ContentService

logger = logging.getLogger(__name__)


@strawberry.type(name="User")
class UserType:
    id: strawberry.ID = strawberry.field(name="_id")
    name: str
    email: str
    status: str
    posts: List[strawberry.ID]

    @classmethod
    def from_out(cls, user: UserOut) -> "UserType":
        return cls(
            id=strawberry.ID(user.id),
            name=user.name,
            email=user.email,
            status=user.status,
            posts=[strawberry.ID(post_id) for post_id in user.posts],
        )


@strawberry.type(name="Post")
class PostType:
    id: strawberry.ID = strawberry.field(name="_id")
    title: str
    content: str
    image_url: Optional[str]
    creator: UserType
    created_at: str
    updated_at: str

    @classmethod
    def from_out(cls, post: PostOut) -> "PostType":
        return cls(
            id=strawberry.ID(post.id),
            title=post.title,
            content=post.content,
            image_url=post.image_url,
            creator=UserType.from_out(post.creator),
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


@strawberry.type(name="AuthData")
class AuthDataType:
    token: str
    user_id: str


@strawberry.type(name="PostData")
class PostDataType:
    posts: List[PostType]
    total_posts: int


@strawberry.input(name="UserInputData")
class UserInput:
    email: str
    name: str
    password: str


@strawberry.input(name="PostInputData")
class PostInput:
    title: str
    content: str
    image_url: Optional[str] = None


def _service(info: Info) -> ContentService:
    return info.context["service"]


def _identity(info: Info) -> Identity:
    return info.context["identity"]


@strawberry.type
class Query:
    @strawberry.field
    async def login(self, info: Info, email: str, password: str) -> AuthDataType:
        auth = await _service(info).login(email, password)
        return AuthDataType(token=auth.token, user_id=auth.user_id)

    @strawberry.field
    async def posts(self, info: Info, page: Optional[int] = 1) -> PostDataType:
        result = await _service(info).list_posts(_identity(info), page)
        return PostDataType(
            posts=[PostType.from_out(post) for post in result.posts],
            total_posts=result.total_posts,
        )

    @strawberry.field
    async def post(self, info: Info, post_id: strawberry.ID) -> PostType:
        post = await _service(info).get_post(_identity(info), str(post_id))
        return PostType.from_out(post)

    @strawberry.field
    async def user(self, info: Info) -> UserType:
        user = await _service(info).get_current_user(_identity(info))
        return UserType.from_out(user)


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def create_user(self, info: Info, user_input: UserInput) -> UserType:
        user = await _service(info).register(
            user_input.email, user_input.name, user_input.password
        )
        return UserType.from_out(user)

    @strawberry.mutation
    async def create_post(self, info: Info, post_input: PostInput) -> PostType:
        post = await _service(info).create_post(
            _identity(info), post_input.title, post_input.content, post_input.image_url
        )
        return PostType.from_out(post)

    @strawberry.mutation
    async def update_post(
        self, info: Info, post_id: strawberry.ID, post_input: PostInput
    ) -> PostType:
        post = await _service(info).update_post(
            _identity(info),
            str(post_id),
            post_input.title,
            post_input.content,
            post_input.image_url,
        )
        return PostType.from_out(post)

    @strawberry.mutation
    async def delete_post(self, info: Info, post_id: strawberry.ID) -> bool:
        return await _service(info).delete_post(_identity(info), str(post_id))

    @strawberry.mutation
    async def update_status(self, info: Info, status: str) -> UserType:
        user = await _service(info).update_status(_identity(info), status)
        return UserType.from_out(user)


def format_error(error: GraphQLError) -> dict:
    """Shape resolver failures as ``{message, status, data}``."""
    if error.original_error is None:
        # Syntax and validation errors from the engine keep their own shape.
        return error.formatted
    return envelope_for(error.original_error)


class ContentSchema(strawberry.Schema):
    def process_errors(self, errors, execution_context=None) -> None:
        for error in errors:
            original = error.original_error
            if isinstance(original, ContentError):
                logger.info("%s: %s", type(original).__name__, original.message)
            elif original is not None:
                logger.error("Unhandled error in resolver", exc_info=original)
            else:
                logger.info("GraphQL request error: %s", error.message)


class ContentGraphQLRouter(GraphQLRouter):
    async def process_result(self, request, result: ExecutionResult) -> dict:
        payload = {"data": result.data}
        if result.errors:
            payload["errors"] = [format_error(error) for error in result.errors]
        return payload


async def get_context(
    identity: Identity = Depends(get_identity),
    service: ContentService = Depends(get_content_service),
) -> dict:
    return {"identity": identity, "service": service}


schema = ContentSchema(query=Query, mutation=Mutation)


def create_graphql_router() -> ContentGraphQLRouter:
    return ContentGraphQLRouter(schema, context_getter=get_context)
