"""Main CLI entry point."""

import sys
from typing import Dict, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cumulus_aws.clientconfig.models import ClientConfiguration
from cumulus_aws.clientconfig.parser import load_client_configurations
from cumulus_aws.clientconfig.policy import compile_retry_policy
from cumulus_aws.resources import FINDERS
from cumulus_aws.utils.aws_client import AWSClientManager
from cumulus_aws.utils.errors import ConfigurationError, ErrorContext, error_handler
from cumulus_aws.utils.logging import DEFAULT_LOG_DIR, get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--log-dir', default=DEFAULT_LOG_DIR, help='Directory for JSON log files (empty to disable)')
@click.pass_context
def cli(ctx, profile, region, log_level, log_dir):
    """Manage AWS resources declared as immutable specs."""
    ctx.ensure_object(dict)
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region

    setup_logging(log_level, log_dir or None)


def _fail(error: Exception, operation: str) -> None:
    """Render an error for the user and exit with status 1."""
    cumulus_error = error_handler.handle_exception(error, ErrorContext(operation=operation))
    error_handler.log_error(cumulus_error)
    console.print(f"[red]{escape(cumulus_error.to_user_message())}[/red]")
    sys.exit(1)


def _describe_http(configuration: ClientConfiguration) -> str:
    kwargs = configuration.http_client_configuration.config_kwargs()
    if not kwargs:
        return "defaults"
    return ", ".join(f"{key}={value}" for key, value in sorted(kwargs.items()))


def _describe_retry(configuration: ClientConfiguration) -> str:
    policy = configuration.retry_policy
    if policy is None:
        return "standard"

    parts = []
    if policy.retry_count is not None:
        parts.append(f"retry-count={policy.retry_count}")
    if policy.retry_condition is not None:
        parts.append(policy.retry_condition.to_condition().describe())
    else:
        parts.append("standard")
    if policy.capacity_retry_condition is not None:
        parts.append(f"capacity: {policy.capacity_retry_condition.to_condition().describe()}")
    return "\n".join(parts)


def parse_filters(values: Tuple[str, ...]) -> Dict[str, str]:
    """Parse repeated key=value options into a mapping.

    Raises:
        ConfigurationError: If a value has no '='
    """
    filters = {}
    for value in values:
        if '=' not in value:
            raise ConfigurationError(f"Invalid filter '{value}', expected key=value")
        key, filter_value = value.split('=', 1)
        filters[key.strip()] = filter_value.strip()
    return filters


@cli.command('validate-config')
@click.argument('path', type=click.Path(dir_okay=False))
def validate_config(path):
    """Validate and compile the client configurations in a YAML file."""
    try:
        configurations = load_client_configurations(path)
        for configuration in configurations.values():
            compile_retry_policy(configuration.retry_policy)
    except Exception as e:
        _fail(e, 'validate-config')

    if not configurations:
        console.print(f"[yellow]No client configurations found in {path}[/yellow]")
        return

    table = Table(title="Client configurations", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("HTTP settings", style="magenta")
    table.add_column("Retry", style="green")

    for name, configuration in sorted(configurations.items()):
        table.add_row(name, _describe_http(configuration), _describe_retry(configuration))

    console.print(table)
    console.print(Panel.fit(
        f"[green]✓[/green] {len(configurations)} client configuration(s) are valid",
        border_style="green",
    ))


@cli.command()
@click.argument('resource_type', type=click.Choice(sorted(FINDERS)))
@click.option('--filter', 'filter_values', multiple=True, help='Filter (format: key=value)')
@click.option('--client-config', help='Name of the client configuration to use')
@click.option('--config', 'config_path', help='YAML file holding client configurations')
@click.pass_context
def find(ctx, resource_type, filter_values, client_config, config_path):
    """List remote resources of a type, optionally filtered."""
    try:
        filters = parse_filters(filter_values)
        configurations = load_client_configurations(config_path) if config_path else {}
        clients = AWSClientManager(
            profile=ctx.obj['profile'],
            region=ctx.obj['region'],
            client_configurations=configurations,
        )
        finder = FINDERS[resource_type](clients, client_configuration=client_config)
        resources = finder.find(filters)
    except Exception as e:
        _fail(e, f'find {resource_type}')

    if not resources:
        console.print(f"[yellow]No {resource_type} resources found[/yellow]")
        return

    table = Table(title=resource_type, show_header=True, header_style="bold cyan")
    table.add_column("Key", style="cyan")
    table.add_column("Physical ID", style="green")
    table.add_column("Tags", style="yellow")

    for resource in resources:
        tags: Optional[Dict[str, str]] = getattr(resource.spec, 'tags', None)
        table.add_row(
            resource.key,
            resource.physical_id or "N/A",
            ", ".join(f"{key}={value}" for key, value in sorted((tags or {}).items())),
        )

    console.print(table)
    console.print(f"[bold]Total resources:[/bold] {len(resources)}")


if __name__ == '__main__':
    cli()
