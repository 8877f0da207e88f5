"""Exception taxonomy mapped onto HTTP status codes."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for errors rendered as ``{"error": message}`` responses."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class InvalidRequestError(CatalogError):
    status_code = 400


class UnauthorizedError(CatalogError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(CatalogError):
    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


class NotFoundError(CatalogError):
    status_code = 404


class UpstreamServiceError(CatalogError):
    """A collaborator (auth provider, storage, TMDB) failed or refused a call."""

    status_code = 500
