"""Repository layer wrapping SQLAlchemy queries."""

from .post_repo import PostRepository, PostRow

__all__ = ["PostRepository", "PostRow"]
