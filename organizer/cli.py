from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Callable, Coroutine

from config.client_config import ClientConfig, resolve_client_config
from organizer.actions import ActionOutcome, OrganizerActions
from organizer.bridge import SessionBridge, ThreadState
from organizer.gateway_client import GatewayClient
from organizer.model import OrganizerModel
from organizer.store import JsonFileLocalStore
from organizer.view import (
    build_message_pane,
    build_sidebar,
    clean_terminal_text,
    render_messages_text,
    render_sidebar_text,
)

logger = logging.getLogger("ChatShelf.CLI")

CANCEL_WORD = "/cancel"
HELP_TEXT = """Commands:
  /help                                  show this help
  /list [query]                          show projects, folders and chats
  /open <thread_id>                      open a chat
  /new [folder]                          start a chat (in a folder by name or id)
  /project add | rename <id> | delete <id>
  /folder add <project_id> | rename <id> | delete <id> | toggle <id>
  /chat rename [id] | move [id] | delete [id]
  /refresh                               reload the open chat
  /quit                                  exit
Anything else is sent as a message to the open chat."""

Reader = Callable[[str], str]
Writer = Callable[[str], None]


class TerminalPrompter:
    def __init__(self, reader: Reader = input) -> None:
        self._reader = reader

    def prompt_text(self, message: str, default: str = "") -> str | None:
        suffix = f" [{default}]" if default else ""
        try:
            answer = self._reader(f"{message}{suffix} ({CANCEL_WORD} to cancel): ")
        except EOFError:
            return None
        if answer.strip() == CANCEL_WORD:
            return None
        return answer if answer.strip() else default

    def confirm(self, message: str) -> bool:
        try:
            answer = self._reader(f"{message} [y/N]: ")
        except EOFError:
            return False
        return answer.strip().lower() in {"y", "yes"}


class ChatShell:
    def __init__(
        self,
        model: OrganizerModel,
        bridge: SessionBridge,
        actions: OrganizerActions,
        *,
        reader: Reader = input,
        writer: Writer = print,
    ) -> None:
        self._model = model
        self._bridge = bridge
        self._actions = actions
        self._reader = reader
        self._writer = writer
        self._tasks: set[asyncio.Task[None]] = set()

    def _say(self, text: str) -> None:
        self._writer(text)

    def _report(self, outcome: ActionOutcome) -> None:
        if outcome.message:
            prefix = "" if outcome.ok or outcome.cancelled else "Error: "
            self._say(prefix + clean_terminal_text(outcome.message))

    def show_messages(self) -> None:
        thread_id = self._bridge.active_thread_id
        sending = thread_id is not None and self._bridge.thread_state(thread_id) is ThreadState.SENDING
        header = f"--- {thread_id} ---" if thread_id else "--- no chat open ---"
        self._say(header)
        self._say(render_messages_text(build_message_pane(self._bridge.pane, sending=sending)))

    def show_sidebar(self, query: str = "") -> None:
        view = build_sidebar(self._model.state, self._bridge.active_thread_id, query)
        self._say(render_sidebar_text(view))

    async def start(self) -> None:
        result = await self._bridge.restore()
        if not result.ok and result.error is not None:
            self._say(f"Error: {clean_terminal_text(result.error.message)}")
        self.show_messages()

    async def run(self) -> None:
        self._say(HELP_TEXT)
        while True:
            try:
                line = await asyncio.to_thread(self._reader, "> ")
            except EOFError:
                break
            if not await self.handle_line(line):
                break
        await self.drain()

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _spawn(self, coro: Coroutine[object, object, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, text: str, thread_id: str | None) -> None:
        outcome = await self._actions.send(text)
        if self._bridge.active_thread_id == thread_id:
            self.show_messages()
        elif not outcome.ok:
            self._report(outcome)

    async def handle_line(self, line: str) -> bool:
        text = line.strip()
        if not text:
            return True
        if not text.startswith("/"):
            if self._bridge.active_thread_id is not None and not self._bridge.composer_enabled:
                self._say("(queued; waiting for the previous reply)")
            self._spawn(self._send(text, self._bridge.active_thread_id))
            return True

        parts = text.split(maxsplit=2)
        command = parts[0].lower()
        args = parts[1:]
        if command in {"/quit", "/exit"}:
            return False
        if command == "/help":
            self._say(HELP_TEXT)
        elif command == "/list":
            self.show_sidebar(" ".join(args))
        elif command == "/open":
            await self._open(args)
        elif command == "/new":
            outcome = (
                await self._actions.new_chat_in_folder(" ".join(args))
                if args
                else await self._actions.new_chat()
            )
            self._report(outcome)
            if outcome.ok:
                self.show_messages()
        elif command == "/refresh":
            self._report(await self._actions.refresh())
            self.show_messages()
        elif command == "/project":
            self._project(args)
        elif command == "/folder":
            self._folder(args)
        elif command == "/chat":
            await self._chat(args)
        else:
            self._say(f"Unknown command: {command}. Type /help.")
        return True

    async def _open(self, args: list[str]) -> None:
        if not args:
            self._say("Usage: /open <thread_id>")
            return
        outcome = await self._actions.open_chat(args[0])
        self._report(outcome)
        if outcome.ok:
            self.show_messages()

    def _project(self, args: list[str]) -> None:
        sub = args[0].lower() if args else ""
        target = args[1].strip() if len(args) > 1 else ""
        if sub == "add":
            self._report(self._actions.add_project())
        elif sub == "rename" and target:
            self._report(self._actions.rename_project(target))
        elif sub == "delete" and target:
            self._report(self._actions.delete_project(target))
        else:
            self._say("Usage: /project add | rename <id> | delete <id>")

    def _folder(self, args: list[str]) -> None:
        sub = args[0].lower() if args else ""
        target = args[1].strip() if len(args) > 1 else ""
        if sub == "add" and target:
            self._report(self._actions.add_folder(target))
        elif sub == "rename" and target:
            self._report(self._actions.rename_folder(target))
        elif sub == "delete" and target:
            self._report(self._actions.delete_folder(target))
        elif sub == "toggle" and target:
            self._report(self._actions.toggle_folder(target))
        else:
            self._say("Usage: /folder add <project_id> | rename <id> | delete <id> | toggle <id>")

    async def _chat(self, args: list[str]) -> None:
        sub = args[0].lower() if args else ""
        target = args[1].strip() if len(args) > 1 else (self._bridge.active_thread_id or "")
        if not target:
            self._say("No chat selected.")
            return
        if sub == "rename":
            self._report(self._actions.rename_chat(target))
        elif sub == "move":
            self._report(self._actions.move_chat(target))
        elif sub == "delete":
            outcome = await self._actions.delete_chat(target)
            self._report(outcome)
            if outcome.ok:
                self.show_messages()
        else:
            self._say("Usage: /chat rename [id] | move [id] | delete [id]")


async def _run(config: ClientConfig) -> None:
    model = OrganizerModel(JsonFileLocalStore(config.state_path))
    async with GatewayClient(config.gateway_url, timeout=config.request_timeout_seconds) as gateway:
        bridge = SessionBridge(model, gateway)
        actions = OrganizerActions(model, bridge, TerminalPrompter())
        shell = ChatShell(model, bridge, actions)
        await shell.start()
        await shell.run()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ChatShelf terminal client")
    parser.add_argument("--gateway-url", default=None)
    parser.add_argument("--state-path", default=None)
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = resolve_client_config(gateway_url=args.gateway_url, state_path=args.state_path)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
