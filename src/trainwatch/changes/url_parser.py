"""Azure DevOps pull request URL parsing.

Supported formats::

    https://dev.azure.com/{org}/{project}/_git/{repo}/pullrequest/{id}
    https://{org}.visualstudio.com/{project}/_git/{repo}/pullrequest/{id}
    https://dev.azure.com/{org}/DefaultCollection/{project}/_git/{repo}/pullrequest/{id}

Query strings (``?_a=overview``) and trailing slashes are ignored.
"""

from __future__ import annotations

import re
from urllib.parse import unquote

from pydantic import BaseModel

_PATTERNS = (
    re.compile(r"^https://dev\.azure\.com/([^/]+)/([^/]+)/_git/([^/]+)/pullrequest/(\d+)$", re.IGNORECASE),
    re.compile(r"^https://([^./]+)\.visualstudio\.com/([^/]+)/_git/([^/]+)/pullrequest/(\d+)$", re.IGNORECASE),
    re.compile(
        r"^https://dev\.azure\.com/([^/]+)/DefaultCollection/([^/]+)/_git/([^/]+)/pullrequest/(\d+)$",
        re.IGNORECASE,
    ),
)


class InvalidPullRequestUrlError(ValueError):
    """The URL is not a recognised Azure DevOps pull request URL."""


class ParsedPullRequestUrl(BaseModel):
    organization: str
    project: str
    repository: str
    pull_request_id: int


def parse_pull_request_url(url: str) -> ParsedPullRequestUrl:
    clean = url.strip().split("?", 1)[0].split("#", 1)[0].rstrip("/")
    for pattern in _PATTERNS:
        match = pattern.match(clean)
        if match:
            return ParsedPullRequestUrl(
                organization=match.group(1),
                project=unquote(match.group(2)),
                repository=unquote(match.group(3)),
                pull_request_id=int(match.group(4)),
            )
    raise InvalidPullRequestUrlError(
        "Invalid Azure DevOps pull request URL. Expected format: "
        "https://dev.azure.com/{org}/{project}/_git/{repo}/pullrequest/{id}"
    )


def is_valid_pull_request_url(url: str) -> bool:
    try:
        parse_pull_request_url(url)
    except InvalidPullRequestUrlError:
        return False
    return True
