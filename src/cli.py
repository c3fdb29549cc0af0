#!/usr/bin/env python3
"""
lcctl - command-line harness for the lifecycle engine.

Reads resource declarations from YAML/JSON files, dispatches lifecycle
verbs to the Reconciler and keeps persisted state in a local state file.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml
from tabulate import tabulate

from clients.arm import ResourceManagerClient
from config import Config, get_config
from errors import EngineError
from kinds.base import ResourceKind
from kinds.registry import KindRegistry, register_builtin_kinds
from reconciler import EngineDependencies, Reconciler
from state import DesiredConfiguration
from statefile import StateFile, StateFileError, resource_address
from validation import validate_declaration

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "lifecycle.state.json"


class LifecycleCLI:
    """Wires configuration, kinds, the remote client and the state file."""

    def __init__(self, config: Config, state_path: Path, registry: KindRegistry):
        self.config = config
        self.registry = registry
        self.state = StateFile(state_path).load()

    def build_reconciler(self, kind: ResourceKind) -> Reconciler:
        client = ResourceManagerClient.from_config(
            self.config.provider, self.registry.api_versions()
        )
        logger.debug(f"Using {self.config.provider.endpoint} for {kind.name}")
        return Reconciler(kind, EngineDependencies.from_config(client, self.config))

    def load_declaration(self, filename: str) -> tuple[ResourceKind, DesiredConfiguration]:
        """Read and validate a declaration file."""
        with open(filename, "r") as f:
            if filename.endswith(".yaml") or filename.endswith(".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if not isinstance(data, dict) or "kind" not in data or "name" not in data:
            raise click.ClickException(
                f"{filename}: a declaration needs 'kind' and 'name' fields"
            )

        try:
            kind = self.registry.get_kind(data["kind"])
        except ValueError as e:
            raise click.ClickException(str(e))

        desired = DesiredConfiguration.from_dict(data)
        if self.config.provider.subscription_id:
            desired.scope.setdefault(
                "subscription_id", self.config.provider.subscription_id
            )

        is_valid, error = validate_declaration(kind, desired)
        if not is_valid:
            raise click.ClickException(f"{filename}: {error}")

        return kind, desired

    def stored_record(self, kind: ResourceKind, name: str) -> Dict[str, Any]:
        record = self.state.get(resource_address(kind.name, name))
        if record is None:
            raise click.ClickException(
                f"{resource_address(kind.name, name)} is not in the state file"
            )
        return record


def _run(coro):
    """Run a verb, turning engine errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except EngineError as e:
        raise click.ClickException(str(e))


def _print_attributes(attributes: Dict[str, Any]) -> None:
    if not attributes:
        click.echo("  (no attributes set)")
        return
    for key in sorted(attributes):
        click.echo(f"  {key}: {attributes[key]}")


@click.group()
@click.option(
    "--state-file",
    "-s",
    type=click.Path(dir_okay=False),
    default=DEFAULT_STATE_FILE,
    show_default=True,
    help="Local file holding persisted resource state",
)
@click.pass_context
def cli(ctx, state_file):
    """lcctl - reconcile declared resources with the remote provider"""
    config = get_config()
    logging.basicConfig(level=config.logging.level, format=config.logging.format)

    registry = register_builtin_kinds(KindRegistry())
    try:
        ctx.obj = LifecycleCLI(config, Path(state_file), registry)
    except StateFileError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.pass_obj
def kinds(app: LifecycleCLI):
    """List the resource kinds this tool can manage"""
    rows = []
    for name in sorted(app.registry.list_kinds()):
        kind = app.registry.get_kind(name)
        rows.append(
            [
                name,
                kind.schema_version,
                kind.api_version or "-",
                ", ".join(kind.sub_resource_attributes) or "-",
            ]
        )
    click.echo(
        tabulate(
            rows,
            headers=["Kind", "State Version", "API Version", "Sub-resources"],
            tablefmt="grid",
        )
    )


@cli.command(name="list")
@click.pass_obj
def list_resources(app: LifecycleCLI):
    """List resources recorded in the state file"""
    rows = []
    for address in app.state.addresses():
        record = app.state.get(address)
        rows.append(
            [address, record.get("schema_version", 0), record.get("identifier")]
        )
    if not rows:
        click.echo("No resources in state")
        return
    click.echo(
        tabulate(rows, headers=["Address", "Version", "Identifier"], tablefmt="grid")
    )


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option(
    "--adopt",
    is_flag=True,
    help="Adopt an existing remote object instead of failing",
)
@click.pass_obj
def create(app: LifecycleCLI, filename, adopt):
    """Create a resource from a YAML/JSON declaration"""
    kind, desired = app.load_declaration(filename)
    address = resource_address(kind.name, desired.name)
    if app.state.get(address) is not None:
        raise click.ClickException(
            f"{address} is already in state; use 'update' instead"
        )

    reconciler = app.build_reconciler(kind)
    state = _run(reconciler.create(desired, adopt_existing=adopt))

    app.state.put(address, state.to_dict())
    app.state.save()
    click.echo(f"Created {address}")
    click.echo(f"ID: {state.identifier}")
    _print_attributes(state.last_known_attributes)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_obj
def update(app: LifecycleCLI, filename):
    """Update a resource from a YAML/JSON declaration"""
    kind, desired = app.load_declaration(filename)
    address = resource_address(kind.name, desired.name)
    reconciler = app.build_reconciler(kind)
    persisted = _load(reconciler, app.stored_record(kind, desired.name))

    result = _run(reconciler.update(persisted, desired))

    app.state.put(address, result.state.to_dict())
    app.state.save()
    click.echo(f"Updated {address}")
    _print_attributes(result.state.last_known_attributes)
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)


@cli.command(name="read")
@click.argument("kind_name")
@click.argument("name")
@click.option(
    "--output", "-o", type=click.Choice(["summary", "json", "yaml"]), default="summary"
)
@click.pass_obj
def read_resource(app: LifecycleCLI, kind_name, name, output):
    """Read a resource's remote state and refresh the state file"""
    kind = _get_kind(app, kind_name)
    address = resource_address(kind.name, name)
    reconciler = app.build_reconciler(kind)
    persisted = _load(reconciler, app.stored_record(kind, name))

    result = _run(reconciler.read(persisted))

    if not result.present:
        app.state.remove(address)
        app.state.save()
        click.echo(f"{address} no longer exists remotely; removed from state")
        return

    app.state.put(address, result.state.to_dict())
    app.state.save()

    if output == "json":
        click.echo(json.dumps(result.observed.to_dict(), indent=2))
    elif output == "yaml":
        click.echo(yaml.dump(result.observed.to_dict(), default_flow_style=False))
    else:
        click.echo(f"Resource: {address}")
        click.echo(f"ID: {result.state.identifier}")
        _print_attributes(result.state.last_known_attributes)


@cli.command()
@click.argument("kind_name")
@click.argument("name")
@click.confirmation_option(prompt="Are you sure you want to delete this resource?")
@click.pass_obj
def delete(app: LifecycleCLI, kind_name, name):
    """Delete a resource and remove it from state"""
    kind = _get_kind(app, kind_name)
    address = resource_address(kind.name, name)
    reconciler = app.build_reconciler(kind)
    persisted = _load(reconciler, app.stored_record(kind, name))

    _run(reconciler.delete(persisted))

    app.state.remove(address)
    app.state.save()
    click.echo(f"Deleted {address}")


def _get_kind(app: LifecycleCLI, kind_name: str) -> ResourceKind:
    try:
        return app.registry.get_kind(kind_name)
    except ValueError as e:
        raise click.ClickException(str(e))


def _load(reconciler: Reconciler, record: Dict[str, Any], version: Optional[int] = None):
    try:
        return reconciler.load_state(record, version)
    except EngineError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    sys.exit(cli())
