"""
Blog backend package.

This package provides a FastAPI application exposing user accounts and blog
posts through GraphQL, plus an image upload endpoint, on top of store and
image-storage abstractions with in-memory implementations for tests.
"""
