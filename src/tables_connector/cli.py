"""
Tables Connector CLI - Main entry point.

Provides commands for:
- Browsing the schema descriptor (tables, actions, fields)
- Loading reference options for a table
- Dispatching custom actions
"""

from __future__ import annotations

import json
import sys
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from tables_connector.config import get_settings
from tables_connector.credentials import TablesApiCredential
from tables_connector.descriptor import DescriptorClient, get_table, search_actions, search_tables
from tables_connector.dispatch import ActionDispatcher
from tables_connector.fields import infer_fields
from tables_connector.models import BinaryResponse
from tables_connector.observability import setup_logging
from tables_connector.options import load_reference_options
from tables_connector.sdk import HttpClient, NodeOperationError


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _fail(error: Exception) -> None:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def _http(ctx: click.Context) -> HttpClient:
    credential: TablesApiCredential = ctx.obj["credential"]
    if not credential.base_url:
        _fail(NodeOperationError("Base URL is required (--base-url or TABLES_CONNECTOR_BASE_URL)"))
    return credential.http_client(ctx.obj["settings"])


def _descriptor_client(ctx: click.Context) -> DescriptorClient:
    return DescriptorClient(_http(ctx), ctx.obj["settings"].descriptor_path)


def _parse_params(ctx: click.Context, param: click.Parameter, values: Tuple[str, ...]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got '{raw}'")
        params[key] = value
    return params


@click.group()
@click.option("--base-url", help="Base URL of the software (default: TABLES_CONNECTOR_BASE_URL)")
@click.option("--token", help="Auth token (default: TABLES_CONNECTOR_TOKEN)")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, base_url: Optional[str], token: Optional[str], verbose: bool):
    """Tables Connector - browse and call a self-describing tables API."""
    ctx.ensure_object(dict)
    settings = get_settings()
    setup_logging("DEBUG" if verbose else None, stream=sys.stderr)

    credential = TablesApiCredential.from_settings(settings)
    if base_url:
        credential.data["baseurl"] = base_url
    if token:
        credential.data["token"] = token

    ctx.obj["settings"] = settings
    ctx.obj["credential"] = credential


@cli.command("tables")
@click.option("--filter", "search", help="Only tables whose name contains this text")
@click.pass_context
def tables_cmd(ctx: click.Context, search: Optional[str]):
    """List the tables of the descriptor."""
    try:
        descriptor = _descriptor_client(ctx).fetch()
    except NodeOperationError as e:
        _fail(e)
    _echo_json(search_tables(descriptor, search))


@cli.command("actions")
@click.argument("table")
@click.option("--filter", "search", help="Only actions whose title contains this text")
@click.pass_context
def actions_cmd(ctx: click.Context, table: str, search: Optional[str]):
    """List the custom actions of TABLE."""
    try:
        definition = get_table(_descriptor_client(ctx).fetch(), table)
    except NodeOperationError as e:
        _fail(e)
    _echo_json(search_actions(definition, search))


@cli.command("fields")
@click.argument("table")
@click.option("--operation", default="create", show_default=True, help="Operation the form is built for")
@click.pass_context
def fields_cmd(ctx: click.Context, table: str, operation: str):
    """Show the form fields inferred for TABLE."""
    settings = ctx.obj["settings"]
    http = _http(ctx)
    try:
        definition = get_table(DescriptorClient(http, settings.descriptor_path).fetch(), table)
    except NodeOperationError as e:
        _fail(e)

    loader = partial(
        load_reference_options,
        http,
        tables_api_path=settings.tables_api_path,
        limit=settings.reference_option_limit,
    )
    _echo_json([f.to_host() for f in infer_fields(definition, operation, loader)])


@cli.command("options")
@click.argument("table")
@click.option("--limit", type=click.IntRange(min=1), help="Maximum records to convert")
@click.pass_context
def options_cmd(ctx: click.Context, table: str, limit: Optional[int]):
    """Show the selectable options derived from TABLE's records."""
    settings = ctx.obj["settings"]
    options = load_reference_options(
        _http(ctx),
        table,
        tables_api_path=settings.tables_api_path,
        limit=limit or settings.reference_option_limit,
    )
    _echo_json([o.model_dump(by_alias=True) for o in options])


@cli.command("dispatch")
@click.argument("table")
@click.argument("action")
@click.option("-p", "--param", "params", multiple=True, callback=_parse_params, help="Action parameter as key=value")
@click.option("--id", "id_fallback", help="Dataset id used when the action expects 'id'")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Where to write a returned file")
@click.pass_context
def dispatch_cmd(
    ctx: click.Context,
    table: str,
    action: str,
    params: Dict[str, str],
    id_fallback: Optional[str],
    output: Optional[str],
):
    """
    Call custom ACTION on TABLE.

    Examples:

        tables-connector dispatch Invoice Tables/Invoice/pdf --id 42 -o invoice.pdf
    """
    http = _http(ctx)
    dispatcher = ActionDispatcher(http, DescriptorClient(http, ctx.obj["settings"].descriptor_path))
    try:
        result = dispatcher.dispatch(table, action, params, id_fallback)
    except NodeOperationError as e:
        _fail(e)

    if isinstance(result, BinaryResponse):
        target = Path(output or result.file_name or "download.pdf")
        target.write_bytes(result.binary.data)
        click.echo(f"Saved {result.binary.size} bytes to: {target}", err=True)

    _echo_json(result.to_item().json_data)


# ==============================================================================
# Entry Point
# ==============================================================================

def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
