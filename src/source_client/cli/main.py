"""Source client CLI main entry point."""

import json
import sys
from contextlib import contextmanager
from typing import Any

import click
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from source_client.client import SourceClient
from source_client.config import SourceSettings
from source_client.domain.base import SourceClientError, ValidationError
from source_client.logging_config import configure_logging


class JsonDocument(BaseModel):
    """A free-form JSON object saved from the command line."""

    model_config = ConfigDict(extra="allow")

    def validate(self) -> None:  # type: ignore[override]
        """Any JSON object is acceptable; the service applies the type schema."""
        if not self.model_extra:
            raise ValidationError("refusing to save an empty JSON object")


def _parse_json(raw: str, name: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint=name) from e


def _parse_object(raw: str, name: str) -> dict:
    value = _parse_json(raw, name)
    if not isinstance(value, dict):
        raise click.BadParameter("a JSON object is required", param_hint=name)
    return value


def _render_value(item, indent: int | None = None) -> str:
    """Pretty-print an item value; exit 1 when it does not hold JSON."""
    try:
        return json.dumps(json.loads(item.value), indent=indent)
    except ValueError as e:
        click.echo(f"Error: item '{item.key}' does not hold a JSON value: {e}", err=True)
        sys.exit(1)


@contextmanager
def client_session(ctx: click.Context):
    """Open a client from the CLI settings; report client errors and exit 1."""
    try:
        with SourceClient.from_settings(
            ctx.obj["settings"], transport=ctx.obj.get("transport")
        ) as client:
            yield client
    except SourceClientError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--host", help="Service base URL (overrides SOURCE_HOST)")
@click.option("--user", help="User name (overrides SOURCE_USER)")
@click.option("--password", help="Password (overrides SOURCE_PASSWORD)")
@click.pass_context
def cli(ctx, host: str | None, user: str | None, password: str | None):
    """Source - configuration item store client.

    Register item types, save and load items, and manage tags and links.
    """
    ctx.ensure_object(dict)
    overrides = {
        name: value
        for name, value in {"host": host, "user": user, "password": password}.items()
        if value is not None
    }
    try:
        settings = SourceSettings(**overrides)
    except PydanticValidationError as e:
        raise click.UsageError(str(e)) from e

    configure_logging(settings.log_level, settings.log_format)
    ctx.obj["settings"] = settings


@cli.command(name="set-type")
@click.argument("key")
@click.argument("example")
@click.pass_context
def set_type(ctx, key: str, example: str):
    """Register type KEY using the JSON object EXAMPLE as its prototype."""
    document = JsonDocument(**_parse_object(example, "EXAMPLE"))
    with client_session(ctx) as client:
        client.set_type(key, document)
    click.echo(f"✓ Registered type: {key}")


@cli.command()
@click.argument("key")
@click.argument("item_type", metavar="TYPE")
@click.argument("value")
@click.pass_context
def save(ctx, key: str, item_type: str, value: str):
    """Save the JSON object VALUE under KEY as an item of TYPE.

    A '?' in KEY is replaced with a timestamp sequence.
    """
    document = JsonDocument(**_parse_object(value, "VALUE"))
    with client_session(ctx) as client:
        saved_key = client.save(key, item_type, document)
    click.echo(saved_key)


@cli.command()
@click.argument("key")
@click.pass_context
def get(ctx, key: str):
    """Print the value of item KEY."""
    with client_session(ctx) as client:
        item = client.load_raw(key)
    click.echo(_render_value(item, indent=2))


@cli.command()
@click.argument("key")
@click.pass_context
def delete(ctx, key: str):
    """Delete item KEY."""
    with client_session(ctx) as client:
        client.delete(key)
    click.echo(f"✓ Deleted item: {key}")


@cli.command()
@click.argument("end", type=click.Choice(["oldest", "newest"]))
@click.argument("item_type", metavar="TYPE")
@click.pass_context
def pop(ctx, end: str, item_type: str):
    """Remove and print the oldest or newest item of TYPE."""
    with client_session(ctx) as client:
        if end == "oldest":
            item = client.pop_oldest_raw(item_type)
        else:
            item = client.pop_newest_raw(item_type)
    if item is None:
        click.echo("queue is empty")
        return
    click.echo(f"{item.key}: {_render_value(item)}")


@cli.command(name="list")
@click.option("--type", "item_type", help="Items of this type")
@click.option("--tag", "tags", multiple=True, help="Items with this tag (repeatable)")
@click.option("--children", help="Items linked from this key")
@click.option("--parents", help="Items linking to this key")
@click.pass_context
def list_items(
    ctx,
    item_type: str | None,
    tags: tuple[str, ...],
    children: str | None,
    parents: str | None,
):
    """List items by type, tag, children or parents."""
    selected = [s for s in (item_type, tags, children, parents) if s]
    if len(selected) != 1:
        raise click.UsageError("choose exactly one of --type, --tag, --children, --parents")

    with client_session(ctx) as client:
        if item_type:
            items = client.load_items_by_type_raw(item_type)
        elif tags:
            items = client.load_items_by_tag_raw(*tags)
        elif children:
            items = client.load_children_raw(children)
        else:
            items = client.load_parents_raw(parents)

    if not len(items):
        click.echo("No items found.")
        return
    for item in items:
        updated = item.updated.isoformat() if item.updated else "-"
        click.echo(f"{item.key}\t{item.type}\t{updated}")


@cli.command()
@click.argument("key")
@click.argument("name")
@click.argument("value", required=False, default="")
@click.pass_context
def tag(ctx, key: str, name: str, value: str):
    """Tag item KEY with NAME and an optional VALUE."""
    with client_session(ctx) as client:
        client.tag(key, name, value)
    click.echo(f"✓ Tagged {key} with {name}")


@cli.command()
@click.argument("key")
@click.argument("name")
@click.pass_context
def untag(ctx, key: str, name: str):
    """Remove tag NAME from item KEY."""
    with client_session(ctx) as client:
        client.untag(key, name)
    click.echo(f"✓ Removed tag {name} from {key}")


@cli.command()
@click.argument("from_key", metavar="FROM")
@click.argument("to_key", metavar="TO")
@click.pass_context
def link(ctx, from_key: str, to_key: str):
    """Link item FROM to item TO."""
    with client_session(ctx) as client:
        client.link(from_key, to_key)
    click.echo(f"✓ Linked {from_key} -> {to_key}")


@cli.command()
@click.argument("from_key", metavar="FROM")
@click.argument("to_key", metavar="TO")
@click.pass_context
def unlink(ctx, from_key: str, to_key: str):
    """Remove the link from item FROM to item TO."""
    with client_session(ctx) as client:
        client.unlink(from_key, to_key)
    click.echo(f"✓ Unlinked {from_key} -> {to_key}")


if __name__ == "__main__":
    cli()
