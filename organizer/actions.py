from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from organizer.bridge import BridgeResult, SessionBridge
from organizer.errors import NotFoundError, OrganizerError
from organizer.model import OrganizerModel
from organizer.state import Folder, Project

logger = logging.getLogger("ChatShelf.Actions")


class Prompter(Protocol):
    def prompt_text(self, message: str, default: str = "") -> str | None: ...

    def confirm(self, message: str) -> bool: ...


@dataclass(frozen=True)
class ActionOutcome:
    ok: bool
    message: str = ""
    cancelled: bool = False

    @classmethod
    def done(cls, message: str = "") -> ActionOutcome:
        return cls(ok=True, message=message)

    @classmethod
    def failed(cls, message: str) -> ActionOutcome:
        return cls(ok=False, message=message)

    @classmethod
    def cancel(cls) -> ActionOutcome:
        return cls(ok=False, message="Cancelled.", cancelled=True)


def _bridge_outcome(result: BridgeResult, success: str) -> ActionOutcome:
    if result.ok:
        return ActionOutcome.done(success)
    message = result.error.message if result.error is not None else "request failed"
    return ActionOutcome.failed(message)


class OrganizerActions:
    """Sidebar and composer gestures.

    Every method returns an ActionOutcome; nothing raises to the caller.
    """

    def __init__(self, model: OrganizerModel, bridge: SessionBridge, prompter: Prompter) -> None:
        self._model = model
        self._bridge = bridge
        self._prompter = prompter

    def _guard(self, action: str, func: Callable[[], ActionOutcome]) -> ActionOutcome:
        try:
            return func()
        except OrganizerError as exc:
            return ActionOutcome.failed(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.error("%s failed", action, exc_info=exc)
            return ActionOutcome.failed(f"{action} failed: {exc}")

    async def _guard_async(
        self,
        action: str,
        func: Callable[[], Awaitable[ActionOutcome]],
    ) -> ActionOutcome:
        try:
            return await func()
        except OrganizerError as exc:
            return ActionOutcome.failed(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.error("%s failed", action, exc_info=exc)
            return ActionOutcome.failed(f"{action} failed: {exc}")

    def _ask(self, message: str, default: str = "") -> str | None:
        answer = self._prompter.prompt_text(message, default)
        if answer is None:
            return None
        return answer.strip()

    # projects

    def add_project(self) -> ActionOutcome:
        name = self._ask("Project name")
        if name is None:
            return ActionOutcome.cancel()

        def run() -> ActionOutcome:
            project = self._model.create_project(name)
            return ActionOutcome.done(f"Project created: {project.name}")

        return self._guard("add project", run)

    def rename_project(self, project_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            project = self._model.get_project(project_id)
            name = self._ask("Rename project", project.name)
            if name is None:
                return ActionOutcome.cancel()
            self._model.rename_project(project_id, name)
            return ActionOutcome.done(f"Project renamed: {name}")

        return self._guard("rename project", run)

    def delete_project(self, project_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            project = self._model.get_project(project_id)
            if not self._prompter.confirm(
                f'Delete project "{project.name}"? Its chats move to Uncategorized.',
            ):
                return ActionOutcome.cancel()
            moved = self._model.delete_project(project_id)
            return ActionOutcome.done(f"Project deleted; {len(moved)} chat(s) moved to Uncategorized.")

        return self._guard("delete project", run)

    # folders

    def add_folder(self, project_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            self._model.get_project(project_id)
            name = self._ask("Folder name")
            if name is None:
                return ActionOutcome.cancel()
            folder = self._model.create_folder(project_id, name)
            return ActionOutcome.done(f"Folder created: {folder.name}")

        return self._guard("add folder", run)

    def rename_folder(self, folder_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            folder = self._model.get_folder(folder_id)
            name = self._ask("Rename folder", folder.name)
            if name is None:
                return ActionOutcome.cancel()
            self._model.rename_folder(folder_id, name)
            return ActionOutcome.done(f"Folder renamed: {name}")

        return self._guard("rename folder", run)

    def toggle_folder(self, folder_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            is_open = self._model.toggle_folder(folder_id)
            return ActionOutcome.done("Folder expanded." if is_open else "Folder collapsed.")

        return self._guard("toggle folder", run)

    def delete_folder(self, folder_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            folder = self._model.get_folder(folder_id)
            if not self._prompter.confirm(
                f'Delete folder "{folder.name}"? Its chats move to Uncategorized.',
            ):
                return ActionOutcome.cancel()
            moved = self._model.delete_folder(folder_id)
            return ActionOutcome.done(f"Folder deleted; {len(moved)} chat(s) moved to Uncategorized.")

        return self._guard("delete folder", run)

    # chats

    def rename_chat(self, thread_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            meta = self._model.get_thread(thread_id)
            if meta is None:
                raise NotFoundError(f"chat not found: {thread_id}")
            title = self._ask("Rename chat", meta.title)
            if title is None:
                return ActionOutcome.cancel()
            self._model.rename_chat(thread_id, title)
            return ActionOutcome.done(f"Chat renamed: {title}")

        return self._guard("rename chat", run)

    def _resolve_folder(self, reference: str) -> Folder:
        try:
            return self._model.get_folder(reference)
        except NotFoundError:
            pass
        needle = reference.lower()
        for _project, folder in self._model.state.iter_folders():
            if folder.name.lower() == needle:
                return folder
        raise NotFoundError(f"folder not found: {reference}")

    def move_chat(self, thread_id: str) -> ActionOutcome:
        def run() -> ActionOutcome:
            if self._model.get_thread(thread_id) is None:
                raise NotFoundError(f"chat not found: {thread_id}")
            answer = self._ask("Move to folder (name or id; empty for Uncategorized)")
            if answer is None:
                return ActionOutcome.cancel()
            if not answer:
                self._model.move_chat(thread_id, None)
                return ActionOutcome.done("Chat moved to Uncategorized.")
            folder = self._resolve_folder(answer)
            self._model.move_chat(thread_id, folder.id)
            return ActionOutcome.done(f"Chat moved to {folder.name}.")

        return self._guard("move chat", run)

    def _target_project(self, project_id: str | None) -> Project:
        if project_id is not None:
            return self._model.get_project(project_id)
        active_project = self._model.active.project_id
        if active_project is not None:
            return self._model.get_project(active_project)
        if not self._model.state.projects:
            raise NotFoundError("no project to hold the folder; create a project first")
        return self._model.state.projects[0]

    def move_chat_to_new_folder(self, thread_id: str, project_id: str | None = None) -> ActionOutcome:
        def run() -> ActionOutcome:
            if self._model.get_thread(thread_id) is None:
                raise NotFoundError(f"chat not found: {thread_id}")
            project = self._target_project(project_id)
            name = self._ask(f'New folder in "{project.name}"')
            if name is None:
                return ActionOutcome.cancel()
            folder = self._model.create_folder(project.id, name)
            self._model.move_chat(thread_id, folder.id)
            return ActionOutcome.done(f"Chat moved to new folder {folder.name}.")

        return self._guard("move chat to new folder", run)

    async def delete_chat(self, thread_id: str, *, remote: bool = False) -> ActionOutcome:
        async def run() -> ActionOutcome:
            meta = self._model.get_thread(thread_id)
            if meta is None:
                raise NotFoundError(f"chat not found: {thread_id}")
            if not self._prompter.confirm(f'Delete chat "{meta.title}"?'):
                return ActionOutcome.cancel()
            result = await self._bridge.delete_chat(thread_id, remote=remote)
            return _bridge_outcome(result, "Chat deleted.")

        return await self._guard_async("delete chat", run)

    async def new_chat(self) -> ActionOutcome:
        async def run() -> ActionOutcome:
            result = await self._bridge.new_thread()
            return _bridge_outcome(result, f"New chat: {result.thread_id}")

        return await self._guard_async("new chat", run)

    async def new_chat_in_folder(self, folder_id: str) -> ActionOutcome:
        async def run() -> ActionOutcome:
            folder = self._resolve_folder(folder_id)
            result = await self._bridge.new_thread(folder.id)
            return _bridge_outcome(result, f"New chat in {folder.name}: {result.thread_id}")

        return await self._guard_async("new chat", run)

    async def open_chat(self, thread_id: str) -> ActionOutcome:
        async def run() -> ActionOutcome:
            result = await self._bridge.switch_thread(thread_id)
            return _bridge_outcome(result, f"Opened {result.thread_id}")

        return await self._guard_async("open chat", run)

    async def refresh(self) -> ActionOutcome:
        async def run() -> ActionOutcome:
            result = await self._bridge.refresh()
            return _bridge_outcome(result, "Refreshed.")

        return await self._guard_async("refresh", run)

    async def send(self, text: str) -> ActionOutcome:
        async def run() -> ActionOutcome:
            if not text.strip():
                return ActionOutcome.failed("Message is empty.")
            thread_id = self._bridge.active_thread_id
            if thread_id is None:
                opened = await self._bridge.new_thread()
                if not opened.ok or opened.thread_id is None:
                    return _bridge_outcome(opened, "")
                thread_id = opened.thread_id
            result = await self._bridge.send(thread_id, text)
            if result.ok:
                return ActionOutcome.done(result.reply or "")
            return _bridge_outcome(result, "")

        return await self._guard_async("send", run)
