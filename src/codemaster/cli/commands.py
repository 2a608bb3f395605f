"""CLI subcommands for CodeMaster (config, sessions, replay)."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import click

from codemaster.errors import EventDecodeError, SessionNotFoundError

if TYPE_CHECKING:
    from codemaster.core.session import JsonlSessionStore

logger = logging.getLogger(__name__)


def _store(ctx: click.Context) -> JsonlSessionStore:
    from codemaster.core.config import load_config
    from codemaster.core.session import JsonlSessionStore

    config = load_config(data_dir=(ctx.obj or {}).get("home"))
    return JsonlSessionStore(config.sessions_dir)


@click.group()
def config_cmd() -> None:
    """Show CodeMaster configuration."""


@config_cmd.command("list")
@click.pass_context
def config_list(ctx: click.Context) -> None:
    """Show the resolved configuration."""
    from codemaster.core.config import load_config

    config = load_config(data_dir=(ctx.obj or {}).get("home"))
    click.echo(f"data_dir:         {config.data_dir}")
    click.echo(f"host_command:     {config.host_command or '(not set)'}")
    click.echo(f"scrollback_lines: {config.scrollback_lines}")
    click.echo(f"max_result_lines: {config.max_result_lines}")
    click.echo(f"title_max_chars:  {config.title_max_chars}")


@click.group()
def sessions_cmd() -> None:
    """Manage sessions."""


@sessions_cmd.command("list")
@click.option("--limit", "-n", default=20, help="Max sessions to show")
@click.option("--json", "as_json", is_flag=True, help="Print sessions as JSON lines")
@click.pass_context
def sessions_list(ctx: click.Context, limit: int, as_json: bool) -> None:
    """List recent sessions."""
    sessions = asyncio.run(_store(ctx).list_sessions())[:limit]
    if as_json:
        for s in sessions:
            click.echo(json.dumps(s.to_dict(), ensure_ascii=False))
        return
    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo(f"{'Session ID':<14} {'Updated':<17} {'Title'}")
    click.echo("-" * 70)
    for s in sessions:
        updated = s.updated_at.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{s.id:<14} {updated:<17} {s.title}")


@sessions_cmd.command("show")
@click.argument("session_id")
@click.pass_context
def sessions_show(ctx: click.Context, session_id: str) -> None:
    """Show the messages of a session."""
    from codemaster.core.state import ConversationState
    from codemaster.ui.terminal import ConversationView

    store = _store(ctx)
    try:
        session = asyncio.run(store.get_session(session_id))
        messages = asyncio.run(store.load_session_messages(session_id))
    except SessionNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Session:   {session.id}")
    click.echo(f"Title:     {session.title}")
    click.echo(f"Created:   {session.created_at}")
    click.echo(f"Updated:   {session.updated_at}")
    click.echo(f"\nMessages ({len(messages)}):")
    ConversationView().render_state(ConversationState.hydrate(session_id, messages))


@sessions_cmd.command("rename")
@click.argument("session_id")
@click.argument("title")
@click.pass_context
def sessions_rename(ctx: click.Context, session_id: str, title: str) -> None:
    """Rename a session."""
    if not title.strip():
        click.echo("Error: title must not be empty", err=True)
        raise SystemExit(1)
    try:
        asyncio.run(_store(ctx).rename_session(session_id, title))
    except SessionNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Renamed {session_id}.")


@sessions_cmd.command("clear")
@click.argument("session_id")
@click.pass_context
def sessions_clear(ctx: click.Context, session_id: str) -> None:
    """Drop the messages of a session, keeping its title."""
    try:
        asyncio.run(_store(ctx).clear_session_messages(session_id))
    except SessionNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Cleared {session_id}.")


@sessions_cmd.command("delete")
@click.argument("session_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def sessions_delete(ctx: click.Context, session_id: str, yes: bool) -> None:
    """Delete a session and its messages."""
    if not yes and not click.confirm(f"Delete session {session_id}?"):
        return
    try:
        asyncio.run(_store(ctx).delete_session(session_id))
    except SessionNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Deleted {session_id}.")


@click.command("replay")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--transcript/--no-transcript", default=True, help="Print the bash transcript")
@click.option("--max-result-lines", default=50, help="Lines shown per bash result")
def replay_cmd(path: Path, transcript: bool, max_result_lines: int) -> None:
    """Replay a recorded JSONL event log and print the resulting conversation."""
    from codemaster.core.channel import EventChannel, decode_line
    from codemaster.core.reconciler import reconcile
    from codemaster.core.state import ConversationState
    from codemaster.types.events import AgentEvent
    from codemaster.ui.terminal import ConversationView
    from codemaster.ui.transcript import TranscriptFormatter

    channel = EventChannel()
    state = ConversationState.empty()

    def apply(event: AgentEvent) -> None:
        nonlocal state
        state, _ = reconcile(state, event)

    channel.subscribe(apply)
    if transcript:
        formatter = TranscriptFormatter(max_result_lines=max_result_lines, sink=click.echo)
        formatter.attach(channel)

    skipped = 0
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            try:
                event = decode_line(line)
            except EventDecodeError as e:
                logger.warning("%s:%d: %s", path, lineno, e)
                skipped += 1
                continue
            if event is not None:
                channel.publish(event)

    ConversationView().render_state(state)
    click.echo(
        f"\n{len(state.messages)} messages, loading={'yes' if state.loading else 'no'}"
        + (f", {skipped} lines skipped" if skipped else ""),
    )
