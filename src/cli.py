#!/usr/bin/env python3
"""
CLI tool for flyconverge
Applies, refreshes, imports and destroys declared resources
"""

import asyncio
import json
import logging
import sys

import click
import yaml
from tabulate import tabulate

from clients.graphql import ControlAPIClient
from clients.machines import MachinesClient
from config import ConfigurationError, get_config
from controller import Controller
from plugins.base import ResourceDeclaration
from plugins.reconcilers.base import ReconcilerDependencies
from plugins.registry import get_registry, register_builtin_plugins
from statefile import StateFileError, StateStore

DEFAULT_STATE_FILE = "flyconverge.state.json"

logger = logging.getLogger(__name__)


def load_declarations(filename):
    """Load resource declarations from a YAML/JSON file"""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if isinstance(data, dict):
        data = data.get("resources", [])
    return [ResourceDeclaration.from_dict(item) for item in data or []]


def build_controller(state_path):
    """Build a controller with clients from the environment configuration"""
    config = get_config()
    register_builtin_plugins()
    registry = get_registry()
    registry.create_reconcilers(
        ReconcilerDependencies(
            control_api=ControlAPIClient(config.control_api),
            machines=MachinesClient(config.machines_api),
            lifecycle=config.lifecycle,
        )
    )
    return Controller(registry, StateStore.load(state_path))


def print_reports(reports):
    """Print diagnostics as a table; return True if any error was reported"""
    rows = []
    failed = False
    for report in reports:
        failed = failed or not report.success
        for diagnostic in report.diagnostics:
            rows.append(
                [
                    report.key,
                    report.operation.value,
                    diagnostic.severity.value,
                    diagnostic.kind.value,
                    diagnostic.summary,
                    diagnostic.detail,
                ]
            )
        if not len(report.diagnostics):
            click.echo(f"{report.key}: {report.operation.value} ok")

    if rows:
        headers = ["Resource", "Operation", "Severity", "Kind", "Summary", "Detail"]
        click.echo(tabulate(rows, headers=headers, tablefmt="grid"), err=True)
    return failed


def run(state_path, action):
    """Run a controller coroutine, persist state and exit non-zero on errors"""
    try:
        controller = build_controller(state_path)
    except (ConfigurationError, StateFileError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    reports = asyncio.run(action(controller))
    controller.store.save()
    if print_reports(reports):
        sys.exit(1)


@click.group()
@click.option(
    "--state",
    "state_path",
    default=DEFAULT_STATE_FILE,
    show_default=True,
    help="Path of the local state file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
)
@click.pass_context
def cli(ctx, state_path, log_level):
    """flyconverge - converge apps, machines and IP addresses"""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = {"state_path": state_path}


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_context
def apply(ctx, filename):
    """Create or update resources declared in a YAML/JSON file"""
    declarations = load_declarations(filename)
    run(ctx.obj["state_path"], lambda c: c.apply_all(declarations))


@cli.command()
@click.pass_context
def refresh(ctx):
    """Read every tracked resource from the backend"""
    run(ctx.obj["state_path"], lambda c: c.refresh())


@cli.command()
@click.argument("filename", type=click.Path(exists=True), required=False)
@click.option(
    "--all", "destroy_all", is_flag=True, help="Destroy every tracked resource"
)
@click.confirmation_option(prompt="Are you sure you want to destroy these resources?")
@click.pass_context
def destroy(ctx, filename, destroy_all):
    """Delete declared (or all tracked) resources"""
    if not filename and not destroy_all:
        raise click.UsageError("Pass a declaration file or --all")

    keys = None
    if filename:
        keys = [d.key for d in load_declarations(filename)]
    run(ctx.obj["state_path"], lambda c: c.destroy(keys))


@cli.command(name="import")
@click.argument("kind", type=click.Choice(["app", "machine", "ip_address"]))
@click.argument("name")
@click.argument("import_id")
@click.pass_context
def import_(ctx, kind, name, import_id):
    """Import an existing remote object into state"""

    async def action(controller):
        return [await controller.import_resource(kind, name, import_id)]

    run(ctx.obj["state_path"], action)


@cli.command()
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def show(ctx, output):
    """Show tracked resources"""
    try:
        store = StateStore.load(ctx.obj["state_path"])
    except StateFileError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    if output == "json":
        resources = {key: state for key, _, state in store.items()}
        click.echo(json.dumps(resources, indent=2))
        return

    rows = [
        [key, kind, state.get("id") or "", state.get("name") or state.get("address")]
        for key, kind, state in store.items()
    ]
    click.echo(
        tabulate(rows, headers=["Resource", "Kind", "ID", "Name"], tablefmt="grid")
    )


if __name__ == "__main__":
    cli()
