"""Click CLI for setting up and administering the relay."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import click

from src.audit.logger import ActivityLogger
from src.config.store import BOT_NAME, LINE_BOT_USER_ID, ConfigStore
from src.line.client import LINE_API_BASE, LineClient
from src.line.messages import create_text_message
from src.makkaizou.client import MAKKAIZOU_API_BASE, MakkaizouClient
from src.mapping.manager import TalkIdManager
from src.mapping.repository import SQLiteMappingRepository
from src.models import RelayAPIError
from src.store.db import RelayDB


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
@click.option("--db", default="data/relay.db", help="Relay database path.")
@click.option("--line-api", default=LINE_API_BASE, help="LINE API base URL.")
@click.option("--makkaizou-api", default=MAKKAIZOU_API_BASE, help="Makkaizou API base URL.")
@click.pass_context
def cli(ctx: click.Context, db: str, line_api: str, makkaizou_api: str) -> None:
    """LINE-Makkaizou relay administration CLI."""
    ctx.ensure_object(dict)
    relay_db = RelayDB(db)
    ctx.call_on_close(relay_db.close)
    ctx.obj["db"] = relay_db
    ctx.obj["config"] = ConfigStore(relay_db)
    ctx.obj["line_api"] = line_api
    ctx.obj["makkaizou_api"] = makkaizou_api


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create tables and seed default configuration entries."""
    store: ConfigStore = ctx.obj["config"]
    written = store.apply_defaults()
    click.echo(f"Initialized {ctx.obj['db'].path}; seeded {len(written)} key(s)")
    for key in written:
        click.echo(f"  {key}")


# --- config ---


@cli.group("config")
def config_group() -> None:
    """Show and change configuration values."""


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the current configuration with secrets masked."""
    store: ConfigStore = ctx.obj["config"]
    _echo_json(store.masked())


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--description", default="", help="Description of the setting.")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str, description: str) -> None:
    """Set a configuration value."""
    store: ConfigStore = ctx.obj["config"]
    store.set(key, value, description)
    click.echo(f"Set {key}")


# --- mappings ---


@cli.group("mappings")
def mappings_group() -> None:
    """Manage talk_id mappings."""


@mappings_group.command("list")
@click.option("--group", "group_id", default=None, help="LINE group ID.")
@click.option("--user", "user_id", default=None, help="LINE user ID.")
@click.pass_context
def mappings_list(ctx: click.Context, group_id: str | None, user_id: str | None) -> None:
    """List mappings for a group or for a user."""
    if (group_id is None) == (user_id is None):
        raise click.UsageError("Pass exactly one of --group or --user.")
    manager = TalkIdManager(SQLiteMappingRepository(ctx.obj["db"]))
    if group_id is not None:
        items = manager.list_for_group(group_id)
    else:
        items = manager.list_for_user(user_id or "")
    _echo_json([m.model_dump() for m in items])


@mappings_group.command("delete")
@click.argument("group_id")
@click.argument("user_id")
@click.pass_context
def mappings_delete(ctx: click.Context, group_id: str, user_id: str) -> None:
    """Delete the mapping for a group and user."""
    manager = TalkIdManager(SQLiteMappingRepository(ctx.obj["db"]))
    if not manager.delete(group_id, user_id):
        click.echo(f"No mapping for group={group_id} user={user_id}", err=True)
        ctx.exit(1)
    click.echo(f"Deleted mapping for group={group_id} user={user_id}")


# --- logs ---


@cli.group("logs")
def logs_group() -> None:
    """Read the activity and error logs."""


@logs_group.command("recent")
@click.option("--limit", default=20, show_default=True, help="Number of entries.")
@click.pass_context
def logs_recent(ctx: click.Context, limit: int) -> None:
    """Show the most recent relayed messages."""
    activity = ActivityLogger(ctx.obj["db"])
    _echo_json([e.model_dump(mode="json") for e in activity.recent(limit)])


@logs_group.command("errors")
@click.option("--limit", default=20, show_default=True, help="Number of entries.")
@click.pass_context
def logs_errors(ctx: click.Context, limit: int) -> None:
    """Show the most recent errors."""
    activity = ActivityLogger(ctx.obj["db"])
    _echo_json([e.model_dump(mode="json") for e in activity.recent_errors(limit)])


@cli.command("bot-user-id")
@click.pass_context
def bot_user_id(ctx: click.Context) -> None:
    """Guess the bot's user ID from logged direct messages."""
    activity = ActivityLogger(ctx.obj["db"])
    user_id = activity.find_direct_message_user()
    if user_id is None:
        click.echo(
            "No potential bot user ID found in logs. "
            "Try sending a direct message to the bot first.",
            err=True,
        )
        ctx.exit(1)
    click.echo(user_id)


# --- verification ---


async def verify_line(line: LineClient, store: ConfigStore) -> dict[str, Any]:
    """Check the LINE access token; fill bot_name/line_bot_user_id if unset."""
    try:
        bot_info = await line.get_bot_info()
    except RelayAPIError as e:
        return {"success": False, "error": str(e)}

    if not store.get(BOT_NAME) and bot_info.get("displayName"):
        store.set(BOT_NAME, bot_info["displayName"], "The name of the bot for mention detection")
    if not store.get(LINE_BOT_USER_ID) and bot_info.get("userId"):
        store.set(LINE_BOT_USER_ID, bot_info["userId"], "The LINE user ID of the bot")
    return {"success": True, "botInfo": bot_info}


async def verify_makkaizou(makkaizou: MakkaizouClient) -> dict[str, Any]:
    status = await makkaizou.check_status()
    if not isinstance(status, dict):
        return {"success": False, "error": f"Unexpected status response: {status!r}"}
    if status.get("status") == "error":
        return {"success": False, "error": status.get("message")}
    return {"success": True, "status": status}


@cli.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Verify the LINE and Makkaizou credentials."""
    store: ConfigStore = ctx.obj["config"]
    config = store.load()
    activity = ActivityLogger(ctx.obj["db"], debug_mode=config.debug_mode)
    transport = ctx.obj.get("transport")
    line = LineClient(
        config, activity, base_url=ctx.obj["line_api"], transport=transport,
    )
    makkaizou = MakkaizouClient(
        config, activity, base_url=ctx.obj["makkaizou_api"], transport=transport,
    )

    async def _run() -> dict[str, Any]:
        return {
            "lineResult": await verify_line(line, store),
            "makkaizouResult": await verify_makkaizou(makkaizou),
        }

    results = asyncio.run(_run())
    results["config"] = store.masked()
    results["overallSuccess"] = (
        results["lineResult"]["success"] and results["makkaizouResult"]["success"]
    )
    _echo_json(results)
    if not results["overallSuccess"]:
        ctx.exit(1)


@cli.command()
@click.argument("to")
@click.argument("text")
@click.pass_context
def push(ctx: click.Context, to: str, text: str) -> None:
    """Push a text message to a LINE user, group or room."""
    config = ctx.obj["config"].load()
    line = LineClient(
        config,
        ActivityLogger(ctx.obj["db"]),
        base_url=ctx.obj["line_api"],
        transport=ctx.obj.get("transport"),
    )
    try:
        asyncio.run(line.push(to, [create_text_message(text)]))
    except RelayAPIError as e:
        click.echo(f"Push failed: {e}", err=True)
        ctx.exit(1)
    click.echo(f"Pushed message to {to}")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Serve the webhook with uvicorn."""
    import uvicorn

    from src.server.app import create_app

    app = create_app(
        ctx.obj["db"],
        line_base_url=ctx.obj["line_api"],
        makkaizou_base_url=ctx.obj["makkaizou_api"],
    )
    uvicorn.run(app, host=host, port=port)
