"""Azure DevOps connector exceptions.

Raised by the REST client for non-2xx or unusable responses. The inclusion
engine contains them per lookup; the CLI turns them into exit codes.
"""

from __future__ import annotations


class AzureDevOpsError(Exception):
    """An Azure DevOps REST call failed; ``status_code`` is the HTTP status when there was one."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(AzureDevOpsError):
    """The personal access token is missing, expired or lacks the required scope.

    401 means the token was rejected; 403 means it lacks access to the
    organization, project or repository.
    """

    def __init__(self, message: str = "Personal access token rejected", status_code: int = 401) -> None:
        super().__init__(message, status_code=status_code)


class NotFoundError(AzureDevOpsError):
    """The build, release, repository or pull request does not exist in this project."""

    def __init__(self, message: str = "Azure DevOps resource not found") -> None:
        super().__init__(message, status_code=404)


class RateLimitError(AzureDevOpsError):
    """Azure DevOps throttled the request; ``retry_after`` is in seconds when provided."""

    def __init__(self, message: str = "Azure DevOps request throttled", retry_after: int | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ServerError(AzureDevOpsError):
    def __init__(self, message: str = "Azure DevOps service error", status_code: int = 500) -> None:
        super().__init__(message, status_code=status_code)


class MalformedResponseError(AzureDevOpsError):
    """A 2xx response whose body is not a JSON object (e.g. an HTML sign-in page)."""
