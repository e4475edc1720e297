"""Exceptions raised by the service layer.

Endpoints translate these into HTTP responses; services never build
responses themselves.
"""


class ServiceError(RuntimeError):
    """Base class for expected service failures."""


class NotFoundError(ServiceError):
    """Requested resource is absent or not visible to the caller."""


class PostNotFoundError(NotFoundError):
    """Raised for missing posts and for unpublished ones alike."""

    def __init__(self, post_id: int) -> None:
        super().__init__("Post not found")
        self.post_id = post_id


class CommentNotFoundError(NotFoundError):
    def __init__(self, comment_id: int, message: str = "Comment not found") -> None:
        super().__init__(message)
        self.comment_id = comment_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class PermissionDeniedError(ServiceError):
    """The actor is authenticated but does not own the resource."""
