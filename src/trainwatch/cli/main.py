"""trainwatch CLI -- check whether a pull request has reached each environment."""
# mypy: disable-error-code="misc,untyped-decorator"

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path

import click
import httpx
from pydantic import ValidationError

from trainwatch.changes.tracker import ChangeTracker, TrackingReport
from trainwatch.changes.url_parser import InvalidPullRequestUrlError, parse_pull_request_url
from trainwatch.cli.output import format_time, print_error, print_json, print_report, print_table
from trainwatch.config.environments import load_environment_registry
from trainwatch.config.settings import Settings
from trainwatch.connectors.azure_devops.exceptions import (
    AuthenticationError,
    AzureDevOpsError,
    NotFoundError,
)
from trainwatch.connectors.factory import create_deployment_sources
from trainwatch.inclusion.factory import create_reconciler
from trainwatch.inclusion.models import UnmatchedPolicy
from trainwatch.inclusion.schedule import FixedCadenceEstimator
from trainwatch.observability.logging_config import configure_logging


@click.group()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
@click.option(
    "--environments-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="TRAINWATCH_ENVIRONMENTS_FILE",
    default=None,
    help="JSON file describing the deployment environments.",
)
@click.option("--log-level", default=None, help="Log level (default from TRAINWATCH_LOG_LEVEL).")
@click.version_option(package_name="trainwatch")
@click.pass_context
def cli(
    ctx: click.Context,
    output_format: str,
    environments_file: Path | None,
    log_level: str | None,
) -> None:
    """trainwatch -- has my change reached production yet?"""
    try:
        settings = Settings()
    except ValidationError as exc:
        print_error(f"Invalid configuration: {describe_validation_error(exc)}")
        ctx.exit(2)
    updates: dict[str, object] = {}
    if environments_file is not None:
        updates["environments_file"] = environments_file
    if log_level:
        updates["log_level"] = log_level
    if updates:
        settings = settings.model_copy(update=updates)
    configure_logging(settings)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["format"] = output_format


def describe_validation_error(exc: ValidationError) -> str:
    """Summarise as ``field: message`` pairs, joined by semicolons."""
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}"
        for error in exc.errors()
    )


@cli.command()
@click.argument("url")
@click.option(
    "--pat",
    envvar="TRAINWATCH_PERSONAL_ACCESS_TOKEN",
    default=None,
    help="Azure DevOps personal access token.",
)
@click.option(
    "--policy",
    type=click.Choice([p.value for p in UnmatchedPolicy]),
    default=None,
    help="strict: report 'not yet'; estimate: predict arrival from the train schedule.",
)
@click.option(
    "--environment",
    "-e",
    "environment_ids",
    multiple=True,
    help="Only check these environment ids (repeatable).",
)
@click.pass_context
def check(
    ctx: click.Context,
    url: str,
    pat: str | None,
    policy: str | None,
    environment_ids: tuple[str, ...],
) -> None:
    """Report the deployment status of a pull request in every environment."""
    settings: Settings = ctx.obj["settings"]
    if pat:
        settings = settings.model_copy(update={"personal_access_token": pat})

    try:
        report = asyncio.run(
            run_check(
                settings,
                url,
                policy=UnmatchedPolicy(policy) if policy else None,
                environment_ids=list(environment_ids) or None,
            )
        )
    except InvalidPullRequestUrlError as exc:
        print_error(str(exc))
        ctx.exit(2)
    except KeyError as exc:
        print_error(str(exc.args[0]) if exc.args else str(exc))
        ctx.exit(2)
    except ValidationError as exc:
        print_error(f"Invalid configuration: {describe_validation_error(exc)}")
        ctx.exit(2)
    except AuthenticationError as exc:
        if exc.status_code == 403:
            print_error(f"Access denied: {exc.message}")
        else:
            print_error("Authentication failed. Set TRAINWATCH_PERSONAL_ACCESS_TOKEN or use --pat.")
        ctx.exit(1)
    except NotFoundError:
        print_error("Pull request not found.")
        ctx.exit(1)
    except AzureDevOpsError as exc:
        print_error(f"Azure DevOps API error ({exc.status_code}): {exc.message}")
        ctx.exit(1)
    except httpx.HTTPError as exc:
        print_error(f"Could not reach Azure DevOps: {exc}")
        ctx.exit(1)
    else:
        if ctx.obj["format"] == "json":
            print_json(report.model_dump(mode="json"))
        else:
            print_report(report)


async def run_check(
    settings: Settings,
    url: str,
    *,
    policy: UnmatchedPolicy | None = None,
    environment_ids: list[str] | None = None,
) -> TrackingReport:
    parsed = parse_pull_request_url(url)
    registry = load_environment_registry(settings.environments_file)
    sources = create_deployment_sources(settings, organization=parsed.organization)
    try:
        tracker = ChangeTracker(
            reconciler=create_reconciler(settings, sources, policy=policy),
            pull_requests=sources.pull_requests,
            registry=registry,
            supported_repositories=settings.supported_repositories,
            default_repository_id=settings.repository_id,
        )
        return await tracker.track(url, environment_ids=environment_ids)
    finally:
        await sources.close_all()


@cli.command()
@click.pass_context
def environments(ctx: click.Context) -> None:
    """List the configured deployment environments."""
    settings: Settings = ctx.obj["settings"]
    registry = load_environment_registry(settings.environments_file)
    if ctx.obj["format"] == "json":
        print_json([env.model_dump(mode="json") for env in registry])
        return
    print_table(
        ["Id", "Name", "External id", "Cadence", "Offset (days)"],
        [
            [
                env.id,
                env.display_name,
                str(env.external_id),
                env.cadence.value,
                "-" if env.schedule_offset_days is None else str(env.schedule_offset_days),
            ]
            for env in registry
        ],
    )


@cli.command()
@click.option(
    "--merged-at",
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"]),
    default=None,
    help="Merge time in UTC (default: now).",
)
@click.pass_context
def schedule(ctx: click.Context, merged_at: datetime | None) -> None:
    """Show the train fork and expected arrival per environment for a merge time."""
    settings: Settings = ctx.obj["settings"]
    registry = load_environment_registry(settings.environments_file)
    merged = merged_at.replace(tzinfo=UTC) if merged_at else datetime.now(UTC)
    estimator = FixedCadenceEstimator(
        weekday=settings.fork_weekday,
        hour=settings.fork_hour,
        timezone=settings.fork_timezone,
    )
    fork = estimator.fork_instant(merged)
    rows = [
        [
            env.display_name,
            "-"
            if env.schedule_offset_days is None
            else format_time(estimator.expected_date(merged, env.schedule_offset_days)),
        ]
        for env in registry
    ]
    if ctx.obj["format"] == "json":
        print_json({"merged_at": merged.isoformat(), "fork": fork.isoformat(), "expected": dict(rows)})
        return
    click.echo(f"Train fork: {format_time(fork)}")
    print_table(["Environment", "Expected"], rows)


if __name__ == "__main__":
    cli()
