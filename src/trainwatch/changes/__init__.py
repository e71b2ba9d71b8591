"""Pull request tracking.

Parses Azure DevOps pull request URLs and reports, per environment, whether
the merged change has been deployed.
"""

from trainwatch.changes.tracker import ChangeTracker, TrackingReport
from trainwatch.changes.url_parser import (
    InvalidPullRequestUrlError,
    ParsedPullRequestUrl,
    parse_pull_request_url,
)

__all__ = [
    "ChangeTracker",
    "InvalidPullRequestUrlError",
    "ParsedPullRequestUrl",
    "TrackingReport",
    "parse_pull_request_url",
]
