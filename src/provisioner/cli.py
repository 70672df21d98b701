"""Dataverse post-provision CLI (dvprov).

Usage:
    dvprov provision                  # Reconcile the default azd environment
    dvprov provision -e dev           # Reconcile a named environment
    dvprov provision --dataverse-url https://contosodev.crm.dynamics.com/
    dvprov names dev                  # Print derived service principal names
    dvprov show                       # Print persisted variables (secret masked)
"""

from __future__ import annotations

import dataclasses
import sys
from pathlib import Path

import click

from .config import ConfigurationError, ProvisionerConfig
from .env_store import EnvironmentStore
from .errors import PreconditionError
from .gate import InteractiveGate
from .main import build_provisioner, run_provisioning, setup_logging
from .models import PERSISTED_KEYS, SECRET_KEYS, IdentityRole, display_name
from .security import mask_secret


def load_config(**overrides: object) -> ProvisionerConfig:
    """Load configuration from the environment, then apply CLI overrides.

    Raises:
        click.ClickException: If the configuration is invalid.
    """
    try:
        config = ProvisionerConfig.from_env()
        changes = {key: value for key, value in overrides.items() if value is not None}
        if changes:
            config = dataclasses.replace(config, **changes)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    return config


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="dvprov")
def cli() -> None:
    """Dataverse post-provision CLI (dvprov).

    Reconciles the service principals, subscription roles and Dataverse
    environment of an azd environment and stores the results in it.

    \b
    Quick Start:
        azd init && azd env new dev
        azd env set AZURE_SUBSCRIPTION_ID <id>
        dvprov provision
    """
    pass


@cli.command()
@click.option(
    "--project-dir",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="azd project root (default: current directory)",
)
@click.option("--environment", "-e", "environment_name", help="azd environment name")
@click.option("--dataverse-url", help="Use this existing Dataverse environment URL")
@click.option(
    "--template",
    "template_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Dataverse environment template (default: .dataverse/environment.json)",
)
@click.option("--log-json", is_flag=True, help="Emit JSON log lines")
def provision(
    project_dir: Path | None,
    environment_name: str | None,
    dataverse_url: str | None,
    template_path: Path | None,
    log_json: bool,
) -> None:
    """Reconcile identities, roles and the Dataverse environment.

    Every create or reset is confirmed first; answer 'y' to proceed.
    Re-running is safe: existing resources are found by name and reused.
    """
    config = load_config(
        project_dir=project_dir,
        environment_name=environment_name,
        template_path=template_path,
        log_json=log_json or None,
    )
    setup_logging(config.log_level, config.log_json)

    provisioner = build_provisioner(config, InteractiveGate())
    exit_code, result = run_provisioning(provisioner, dataverse_url=dataverse_url)
    if result is None:
        click.secho("✗ Provisioning did not complete.", fg="red", err=True)
        sys.exit(exit_code)

    click.secho(f"✓ Environment '{result.environment_name}' provisioned!", fg="green")
    click.echo(f"  Resources created: {result.created_count}")
    for key in PERSISTED_KEYS:
        value = result.variables.get(key, "")
        click.echo(f"  {key}: {mask_secret(value) if key in SECRET_KEYS else value}")
    if result.secret_missing:
        click.secho(
            "! No client secret was returned; reset it manually before deploying.",
            fg="yellow",
        )


@cli.command()
@click.argument("environment")
def names(environment: str) -> None:
    """Print the service principal names derived for ENVIRONMENT."""
    for role in IdentityRole:
        click.echo(f"{role.name.lower()}: {display_name(environment, role)}")


@cli.command()
@click.option(
    "--project-dir",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="azd project root (default: current directory)",
)
@click.option("--environment", "-e", "environment_name", help="azd environment name")
def show(project_dir: Path | None, environment_name: str | None) -> None:
    """Print the variables written by provisioning."""
    config = load_config(project_dir=project_dir, environment_name=environment_name)
    store = EnvironmentStore(config.project_dir)

    try:
        environment = config.environment_name or store.get_default_environment()
    except PreconditionError as e:
        raise click.ClickException(str(e)) from e

    values = store.get_values(environment)
    click.echo(f"Environment: {environment}")
    for key in PERSISTED_KEYS:
        value = values.get(key)
        if value is None:
            click.echo(f"  {key}: (not set)")
        elif key in SECRET_KEYS:
            click.echo(f"  {key}: {mask_secret(value)}")
        else:
            click.echo(f"  {key}: {value}")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
