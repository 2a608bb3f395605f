"""Interactive chat loop for CodeMaster."""

from __future__ import annotations

import asyncio
import logging

from rich.console import Console
from rich.text import Text

from codemaster.core.channel import EventChannel
from codemaster.core.controller import ConversationController
from codemaster.core.dispatcher import PersistenceDispatcher
from codemaster.core.host import SubprocessAgent
from codemaster.core.session import JsonlSessionStore
from codemaster.errors import CodeMasterError
from codemaster.types.config import ClientConfig
from codemaster.ui.terminal import ConversationView
from codemaster.ui.transcript import TranscriptFormatter

logger = logging.getLogger(__name__)


class Repl:
    """Read a prompt, hand it to the host agent, print events, repeat."""

    SLASH_COMMANDS = {
        "/help": "Show available commands",
        "/new": "Start a new session",
        "/sessions": "List saved sessions",
        "/switch": "Switch to a session (/switch ID)",
        "/rename": "Rename the current session (/rename TITLE)",
        "/delete": "Delete a session (/delete ID)",
        "/clear": "Drop the messages of the current session",
        "/show": "Reprint the current conversation",
        "/exit": "Quit",
    }

    def __init__(self, config: ClientConfig, *, console: Console | None = None) -> None:
        if not config.host_command:
            raise ValueError("No host command configured (set CODEMASTER_HOST or pass --host)")
        self._console = console or Console()
        self._channel = EventChannel()
        self._store = JsonlSessionStore(config.sessions_dir)
        self._dispatcher = PersistenceDispatcher(self._store)
        agent = SubprocessAgent(config.host_command, self._channel)
        self._controller = ConversationController(
            self._dispatcher, agent, title_max_chars=config.title_max_chars,
        )
        self._view = ConversationView(self._console)
        self._transcript = TranscriptFormatter(
            scrollback_lines=config.scrollback_lines,
            max_result_lines=config.max_result_lines,
            width=self._console.width,
            sink=self._write_raw,
        )
        self._controller.attach(self._channel)
        self._transcript.attach(self._channel)
        self._channel.subscribe(self._view.handle_event)

    def _write_raw(self, line: str) -> None:
        self._console.file.write(line + "\n")
        self._console.file.flush()

    @property
    def controller(self) -> ConversationController:
        return self._controller

    async def run(self) -> None:
        self._console.print("[bold]CodeMaster[/bold]  [dim]/help for commands[/dim]")
        try:
            while True:
                try:
                    prompt = await self._read_prompt()
                except EOFError:
                    self._console.print("\nGoodbye!")
                    break
                except KeyboardInterrupt:
                    self._console.print()
                    continue

                if not prompt:
                    continue
                if prompt.startswith("/"):
                    if prompt.split()[0].lower() == "/exit":
                        break
                    await self._handle_slash_command(prompt)
                    continue

                try:
                    await self._controller.send(prompt)
                except CodeMasterError as e:
                    self._console.print(Text(str(e), style="red"))
        finally:
            await self._dispatcher.drain()

    async def _read_prompt(self) -> str:
        loop = asyncio.get_running_loop()
        session_id = self._controller.state.current_session_id or "new"
        line = await loop.run_in_executor(None, lambda: input(f"[{session_id}] > "))
        return line.strip()

    async def _handle_slash_command(self, prompt: str) -> None:
        command, _, arg = prompt.partition(" ")
        arg = arg.strip()
        try:
            match command.lower():
                case "/help":
                    for name, desc in self.SLASH_COMMANDS.items():
                        self._console.print(f"  [bold]{name:<10}[/bold] {desc}")
                case "/new":
                    self._controller.reset_session()
                    self._transcript.clear()
                    self._console.print("[dim]Started a new session.[/dim]")
                case "/sessions":
                    sessions = await self._controller.list_sessions()
                    if not sessions:
                        self._console.print("No sessions found.")
                    else:
                        self._view.render_sessions(
                            sessions, self._controller.state.current_session_id,
                        )
                case "/switch" if arg:
                    await self._controller.switch_session(arg)
                    self._transcript.clear()
                    self._view.render_state(self._controller.state)
                case "/rename" if arg:
                    session_id = self._controller.state.current_session_id
                    if session_id is None:
                        self._console.print("No current session to rename.")
                    else:
                        await self._controller.rename_session(session_id, arg)
                case "/delete" if arg:
                    await self._controller.delete_session(arg)
                case "/clear":
                    session_id = self._controller.state.current_session_id
                    if session_id is None:
                        self._console.print("No current session to clear.")
                    else:
                        await self._store.clear_session_messages(session_id)
                        await self._controller.switch_session(session_id)
                        self._transcript.clear()
                case "/show":
                    self._view.render_state(self._controller.state)
                case _:
                    self._console.print(f"Unknown or incomplete command: {prompt}")
        except (CodeMasterError, OSError) as e:
            logger.debug("Slash command %s failed", command, exc_info=True)
            self._console.print(f"Error: {e}", markup=False, highlight=False)
