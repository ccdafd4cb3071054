"""Command-line grocery list backed by dstask."""

import logging

import click

from grocery_agent.dstask import DstaskClient, item_summary
from grocery_agent.errors import GroceryError

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = "P2"


def _client(ctx: click.Context) -> DstaskClient:
    if ctx.obj is None:
        ctx.obj = DstaskClient()
    return ctx.obj


def _run(fn, *args):
    try:
        return fn(*args)
    except GroceryError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log dstask invocations.")
@click.pass_context
def grocery(ctx, verbose):
    """Manage grocery shopping list."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


@grocery.command("list")
@click.pass_context
def list_cmd(ctx):
    """List pending grocery items."""
    items = _run(_client(ctx).list_pending)
    if not items:
        click.echo("🛒 Grocery list is empty")
        return

    click.echo("🛒 Grocery List:")
    for item in items:
        priority = item.get("priority")
        prefix = f"[{priority}] " if priority and priority != DEFAULT_PRIORITY else ""
        click.echo(f"  {item.get('id')}. {prefix}{item_summary(item)}")


@grocery.command("add")
@click.argument("item", nargs=-1, required=True)
@click.pass_context
def add_cmd(ctx, item):
    """Add item(s) to grocery list."""
    click.echo(_run(_client(ctx).add_item, " ".join(item)))


@grocery.command("done")
@click.argument("id")
@click.pass_context
def done_cmd(ctx, id):
    """Mark item as bought."""
    click.echo(_run(_client(ctx).mark_done, id))


@grocery.command("remove")
@click.argument("id")
@click.pass_context
def remove_cmd(ctx, id):
    """Remove item from list."""
    click.echo(_run(_client(ctx).remove_item, id))


@grocery.command("clear")
@click.pass_context
def clear_cmd(ctx):
    """Clear all bought items."""
    click.echo(_run(_client(ctx).clear_resolved))


if __name__ == "__main__":
    grocery()
