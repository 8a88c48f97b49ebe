"""Command-line interface for push-dispatch."""

from __future__ import annotations

import json
from pathlib import Path

import click
import yaml

from push_dispatch.app.runner import ApplicationRunner
from push_dispatch.core.config import ConfigurationError
from push_dispatch.core.errors import PushDispatchError
from push_dispatch.types import NotificationRecord

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("push-dispatch")
except PackageNotFoundError:
    __version__ = "unknown"


def validate_config_path(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: Path | None,
) -> Path | None:
    """Validate the configuration file path.

    Raises:
        click.BadParameter: If the path is a directory or not a YAML file
    """
    if value is None:
        return value

    if value.exists() and value.is_dir():
        raise click.BadParameter("Configuration path must be a file, not a directory")

    valid_extensions = {".yaml", ".yml"}
    if value.suffix.lower() not in valid_extensions:
        extensions_str = ", ".join(sorted(valid_extensions))
        raise click.BadParameter(f"Invalid configuration file extension. Supported extensions: {extensions_str}")

    return value


def validate_log_level(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: str | None,
) -> str | None:
    """Validate and normalize log level."""
    if value is None:
        return value

    normalized_value = value.upper().strip()
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if normalized_value not in valid_levels:
        raise click.BadParameter(f'Invalid log level "{value}". Valid options: {", ".join(sorted(valid_levels))}')

    return normalized_value


def parse_assignments(values: tuple[str, ...], option_name: str) -> dict[str, object]:
    """Parse repeated ``KEY=VALUE`` options into a mapping.

    Values are read as YAML scalars, so ``ttl=3600`` yields an integer and
    ``dry_run=true`` a boolean.

    Raises:
        click.BadParameter: If an item has no ``=`` or an empty key
    """
    parsed: dict[str, object] = {}
    for item in values:
        key, sep, raw_value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got {item!r}", param_hint=option_name)
        try:
            parsed[key] = yaml.safe_load(raw_value) if raw_value else ""
        except yaml.YAMLError:
            parsed[key] = raw_value
    return parsed


def _echo_records(records: list[NotificationRecord]) -> None:
    for record in records:
        click.echo(json.dumps(record.to_document(), sort_keys=True))


def _runner(ctx: click.Context) -> ApplicationRunner:
    runner = ctx.find_object(ApplicationRunner)
    if runner is None:
        raise click.UsageError("CLI context is not initialized")
    return runner


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default=None,
    callback=validate_config_path,
    help="Configuration file path (.yaml or .yml). Defaults to ./push-dispatch.yaml when present.",
)
@click.option(
    "--log-level",
    "-l",
    type=str,
    default=None,
    callback=validate_log_level,
    help="Logging verbosity level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
)
@click.option(
    "--dry-run",
    "-d",
    is_flag=True,
    help="Simulate sends without contacting the push gateway",
)
@click.version_option(version=__version__, prog_name="push-dispatch")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    dry_run: bool,
) -> None:
    """push-dispatch - send, queue and resend push notifications.

    Examples:

        # Send a notification to one device
        push-dispatch send DEVICE_TOKEN --title Hello --body World

        # List notifications that were never delivered
        push-dispatch unsent

        # Retry every unsent notification through the work queue
        push-dispatch requeue
    """
    ctx.obj = ApplicationRunner(config_path=config, log_level=log_level, dry_run=dry_run)


@cli.command()
@click.argument("recipients", nargs=-1, required=True)
@click.option("--title", "-t", help="Notification title")
@click.option("--body", "-b", help="Notification body")
@click.option("--data", "data_items", multiple=True, metavar="KEY=VALUE", help="Custom payload data")
@click.option("--option", "option_items", multiple=True, metavar="KEY=VALUE", help="Send option (priority, time_to_live...)")
@click.option("--fake", is_flag=True, help="Simulate this send only")
@click.pass_context
def send(
    ctx: click.Context,
    recipients: tuple[str, ...],
    title: str | None,
    body: str | None,
    data_items: tuple[str, ...],
    option_items: tuple[str, ...],
    fake: bool,
) -> None:
    """Send a notification to RECIPIENTS immediately."""
    notification = {key: value for key, value in (("title", title), ("body", body)) if value}
    options = parse_assignments(option_items, "--option")
    if fake:
        options["fake"] = True
    request: dict[str, object] = {
        "to": list(recipients),
        "data": parse_assignments(data_items, "--data") or None,
        "notification": notification or None,
    }

    try:
        record = _runner(ctx).run(lambda service: service.send(request, options))
    except Exception as e:
        raise click.ClickException(str(e)) from e
    _echo_records([record])


@cli.command()
@click.option("--where", "where_items", multiple=True, metavar="FIELD=VALUE", help="Additional criteria")
@click.pass_context
def unsent(ctx: click.Context, where_items: tuple[str, ...]) -> None:
    """List notifications that have not been delivered."""
    criteria = parse_assignments(where_items, "--where")
    try:
        records = _runner(ctx).run(lambda service: service.unsent(criteria))
    except (ConfigurationError, PushDispatchError) as e:
        raise click.ClickException(str(e)) from e
    _echo_records(records)


@cli.command()
@click.option("--where", "where_items", multiple=True, metavar="FIELD=VALUE", help="Additional criteria")
@click.pass_context
def sent(ctx: click.Context, where_items: tuple[str, ...]) -> None:
    """List delivered notifications."""
    criteria = parse_assignments(where_items, "--where")
    try:
        records = _runner(ctx).run(lambda service: service.sent(criteria))
    except (ConfigurationError, PushDispatchError) as e:
        raise click.ClickException(str(e)) from e
    _echo_records(records)


@cli.command()
@click.option("--where", "where_items", multiple=True, metavar="FIELD=VALUE", help="Additional criteria")
@click.pass_context
def resend(ctx: click.Context, where_items: tuple[str, ...]) -> None:
    """Resend every unsent notification directly.

    Exits with status 1 when any notification failed again.
    """
    criteria = parse_assignments(where_items, "--where")
    try:
        outcome = _runner(ctx).run(lambda service: service.resend_outcomes(criteria))
    except (ConfigurationError, PushDispatchError) as e:
        raise click.ClickException(str(e)) from e

    _echo_records(outcome.succeeded)
    for record, error in outcome.failed:
        click.echo(f"Failed {record.id}: {error}", err=True)
    click.echo(f"Resent {len(outcome.succeeded)} notification(s), {len(outcome.failed)} failed", err=True)
    if outcome.failed:
        ctx.exit(1)


@cli.command()
@click.pass_context
def requeue(ctx: click.Context) -> None:
    """Requeue unsent notifications and process them until the queue drains."""
    try:
        counts = _runner(ctx).run_worker(requeue=True, drain=True)
    except (ConfigurationError, PushDispatchError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Processed {counts['complete']} job(s), {counts['failed']} failed")
    if counts["failed"]:
        ctx.exit(1)


@cli.command()
@click.option("--requeue", "requeue_first", is_flag=True, help="Requeue unsent notifications on start")
@click.pass_context
def worker(ctx: click.Context, requeue_first: bool) -> None:
    """Run the queue worker until SIGINT or SIGTERM."""
    try:
        counts = _runner(ctx).run_worker(requeue=requeue_first)
    except (ConfigurationError, PushDispatchError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Worker stopped: {counts['complete']} complete, {counts['failed']} failed")
