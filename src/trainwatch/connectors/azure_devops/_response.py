"""Shared HTTP response handling for Azure DevOps requests."""

from __future__ import annotations

from typing import Any

import httpx

from trainwatch.connectors.azure_devops.exceptions import (
    AuthenticationError,
    AzureDevOpsError,
    MalformedResponseError,
    NotFoundError,
    RateLimitError,
    ServerError,
)


def handle_response(response: httpx.Response) -> None:
    """Raise the appropriate connector exception for non-2xx responses."""
    if response.is_success:
        return

    status = response.status_code

    # Azure DevOps puts the human-readable reason under "message"
    detail = ""
    try:
        body = response.json()
        detail = body.get("message", "") if isinstance(body, dict) else ""
    except Exception:  # noqa: BLE001
        detail = response.text[:200] if response.text else ""

    if status in (401, 403):
        raise AuthenticationError(
            detail or ("Personal access token rejected" if status == 401 else "Personal access token lacks access"),
            status_code=status,
        )

    if status == 404:
        raise NotFoundError(detail or "Azure DevOps resource not found")

    if status == 429:
        retry_after: int | None = None
        raw = response.headers.get("Retry-After")
        if raw is not None:
            try:
                retry_after = int(raw)
            except ValueError:
                pass
        raise RateLimitError(detail or "Azure DevOps request throttled", retry_after=retry_after)

    if status >= 500:
        raise ServerError(detail or "Azure DevOps service error", status_code=status)

    raise AzureDevOpsError(detail or f"Azure DevOps request failed with status {status}", status_code=status)


def json_body(response: httpx.Response) -> dict[str, Any]:
    """Return the JSON object body of a successful response."""
    handle_response(response)
    try:
        body = response.json()
    except ValueError as exc:
        raise MalformedResponseError(f"Response is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(body).__name__}")
    return body
