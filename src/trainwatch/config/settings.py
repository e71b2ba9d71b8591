"""Application configuration via environment variables."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """trainwatch configuration loaded from environment variables."""

    # Application
    app_name: str = "trainwatch"
    app_version: str = "0.1.0"

    # Azure DevOps
    organization: str = ""
    project: str = "PowerBIClients"
    personal_access_token: str = ""
    api_version: str = "7.1"
    deployment_records_api_version: str = "7.1-preview.1"
    request_timeout: float = 30.0

    # Tracked repository
    repository_id: str = "979df5a4-0e65-463c-b88e-6cd5ca2e5df3"
    supported_repositories: list[str] = ["PowerBIClients"]

    # Reconciliation
    deployment_history_limit: int = 30
    max_candidates: int = 10
    fan_out_candidates: bool = True
    candidate_concurrency: int = 5
    unmatched_policy: Literal["strict", "estimate"] = "estimate"

    # Train schedule (weekday: Monday=0)
    fork_weekday: int = 3
    fork_hour: int = 22
    fork_timezone: str = "America/Los_Angeles"

    # Environment registry
    environments_file: Path | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {
        "env_prefix": "TRAINWATCH_",
        "env_file": ".env",
        "extra": "ignore",
    }
