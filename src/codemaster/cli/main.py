"""CLI entry point for CodeMaster."""

from __future__ import annotations

import asyncio
import logging
import sys

import click


@click.group()
@click.option("--home", default=None, help="Data directory (default: ~/.codemaster)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def cli(ctx: click.Context, home: str | None, verbose: bool) -> None:
    """CodeMaster -- terminal client for the CodeMaster coding agent.

    \b
    Usage:
      codemaster chat --host "codemaster-host"
      codemaster replay events.jsonl
      codemaster sessions list
      codemaster config list
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["home"] = home


@cli.command("chat")
@click.option("--host", "host_command", default=None, help="Command that runs the host agent")
@click.pass_context
def chat(ctx: click.Context, host_command: str | None) -> None:
    """Start an interactive chat session."""
    from codemaster.cli.repl import Repl
    from codemaster.core.config import load_config

    config = load_config(data_dir=ctx.obj.get("home"), host_command=host_command)
    try:
        repl = Repl(config)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    asyncio.run(repl.run())


def _register_subcommands() -> None:
    """Register CLI subcommands."""
    from codemaster.cli.commands import config_cmd, replay_cmd, sessions_cmd

    cli.add_command(config_cmd, "config")
    cli.add_command(sessions_cmd, "sessions")
    cli.add_command(replay_cmd, "replay")


_register_subcommands()


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
