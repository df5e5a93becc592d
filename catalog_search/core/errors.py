"""
Search error classification.

Every failure raised by the search core derives from SearchError so the
orchestrator and the API layer can tell domain failures apart from bugs.
Each error carries the entity kind it concerns (if any) and whether a
retry could succeed.
"""

from typing import Optional, Dict, Any


class SearchError(Exception):
    """
    Base exception for all search-related errors.

    Attributes:
        message: Human-readable error description
        entity: Entity kind the error concerns (e.g. 'assets'), if any
        retryable: Whether repeating the operation could succeed
    """

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.retryable = retryable

    def __str__(self) -> str:
        if self.entity:
            return f"[{self.entity}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "entity": self.entity,
            "retryable": self.retryable,
        }


class EntitySearchError(SearchError):
    """
    A single entity adapter failed while querying the record store.

    The original exception is kept on `cause` for logging.
    """

    def __init__(self, entity: str, cause: BaseException):
        super().__init__(
            message=f"{type(cause).__name__}: {cause}",
            entity=entity,
            retryable=False,
        )
        self.cause = cause


class SearchTimeoutError(SearchError):
    """A query did not finish within its deadline."""

    def __init__(self, entity: Optional[str], timeout_seconds: float):
        super().__init__(
            message=f"timed out after {timeout_seconds:g}s",
            entity=entity,
            retryable=True,
        )
        self.timeout_seconds = timeout_seconds


class InvalidSearchConfigError(SearchError, ValueError):
    """Search configuration values are inconsistent (e.g. weights do not sum to 1)."""

    def __init__(self, message: str):
        super().__init__(message=message)


class SavedSearchNotFoundError(SearchError):
    """Saved search does not exist or belongs to another user."""

    def __init__(self, saved_search_id: str):
        super().__init__(message=f"Saved search not found: {saved_search_id}")
        self.saved_search_id = saved_search_id
