from __future__ import annotations

import logging

from organizer.errors import NotFoundError, ValidationError
from organizer.state import (
    PLACEHOLDER_TITLE,
    ActiveSelection,
    ChatLocation,
    Folder,
    OrganizerState,
    Project,
    ThreadMeta,
    derive_title,
    is_placeholder_title,
    new_id,
)
from organizer.store import LocalStore

logger = logging.getLogger("ChatShelf.Organizer")


def filter_state(state: OrganizerState, query: str) -> OrganizerState:
    """Deep copy of the tree with chats whose title does not contain the query removed."""
    view = state.clone()
    needle = (query or "").strip().lower()
    if not needle:
        return view

    def _matches(thread_id: str) -> bool:
        meta = view.threads.get(thread_id)
        return meta is not None and needle in meta.title.lower()

    for _project, folder in view.iter_folders():
        folder.chats = [item for item in folder.chats if _matches(item)]
    view.uncategorized = [item for item in view.uncategorized if _matches(item)]
    return view


def _require_text(value: str | None, field_name: str) -> str:
    normalized = value.strip() if isinstance(value, str) else ""
    if not normalized:
        raise ValidationError(f"{field_name} must be a non-empty string")
    return normalized


class OrganizerModel:
    """Projects → folders → chat references, plus Uncategorized and the active pointer.

    Every mutating call validates first, then mutates, then persists through the
    store, so a rejected call leaves the tree untouched.
    """

    def __init__(self, store: LocalStore, state: OrganizerState | None = None) -> None:
        self._store = store
        self._state = state if state is not None else store.load()

    @property
    def state(self) -> OrganizerState:
        return self._state

    @property
    def active(self) -> ActiveSelection:
        return self._state.active

    @property
    def active_thread_id(self) -> str | None:
        return self._state.active.thread_id

    def snapshot(self) -> OrganizerState:
        return self._state.clone()

    def _persist(self) -> None:
        self._store.save(self._state)

    # queries

    def get_project(self, project_id: str) -> Project:
        for project in self._state.projects:
            if project.id == project_id:
                return project
        raise NotFoundError(f"project not found: {project_id}")

    def get_folder(self, folder_id: str) -> Folder:
        return self._find_folder(folder_id)[1]

    def _find_folder(self, folder_id: str) -> tuple[Project, Folder]:
        for project, folder in self._state.iter_folders():
            if folder.id == folder_id:
                return project, folder
        raise NotFoundError(f"folder not found: {folder_id}")

    def get_thread(self, thread_id: str) -> ThreadMeta | None:
        return self._state.threads.get(thread_id)

    def locate(self, thread_id: str) -> ChatLocation | None:
        for project, folder in self._state.iter_folders():
            if thread_id in folder.chats:
                return ChatLocation(project_id=project.id, folder_id=folder.id)
        if thread_id in self._state.uncategorized:
            return ChatLocation(project_id=None, folder_id=None)
        return None

    def container_chats(self, container_id: str | None) -> list[str]:
        if container_id is None:
            return list(self._state.uncategorized)
        return list(self.get_folder(container_id).chats)

    def all_thread_ids(self) -> list[str]:
        ids: list[str] = []
        for _project, folder in self._state.iter_folders():
            ids.extend(folder.chats)
        ids.extend(self._state.uncategorized)
        return ids

    # projects

    def create_project(self, name: str) -> Project:
        normalized = _require_text(name, "project name")
        project = Project(id=new_id("project"), name=normalized)
        self._state.projects.append(project)
        self._persist()
        return project

    def rename_project(self, project_id: str, name: str) -> Project:
        normalized = _require_text(name, "project name")
        project = self.get_project(project_id)
        project.name = normalized
        self._persist()
        return project

    def delete_project(self, project_id: str) -> list[str]:
        project = self.get_project(project_id)
        orphaned: list[str] = []
        for folder in project.folders:
            orphaned.extend(folder.chats)
        self._release_to_uncategorized(orphaned)
        self._state.projects = [item for item in self._state.projects if item.id != project_id]
        folder_ids = {folder.id for folder in project.folders}
        active = self._state.active
        if active.project_id == project_id or active.folder_id in folder_ids:
            active.project_id = None
            active.folder_id = None
        self._persist()
        return orphaned

    # folders

    def create_folder(self, project_id: str, name: str) -> Folder:
        normalized = _require_text(name, "folder name")
        project = self.get_project(project_id)
        folder = Folder(id=new_id("folder"), name=normalized)
        project.folders.append(folder)
        self._persist()
        return folder

    def rename_folder(self, folder_id: str, name: str) -> Folder:
        normalized = _require_text(name, "folder name")
        folder = self.get_folder(folder_id)
        folder.name = normalized
        self._persist()
        return folder

    def toggle_folder(self, folder_id: str) -> bool:
        folder = self.get_folder(folder_id)
        folder.open = not folder.open
        self._persist()
        return folder.open

    def delete_folder(self, folder_id: str) -> list[str]:
        project, folder = self._find_folder(folder_id)
        orphaned = list(folder.chats)
        self._release_to_uncategorized(orphaned)
        project.folders = [item for item in project.folders if item.id != folder_id]
        if self._state.active.folder_id == folder_id:
            self._state.active.project_id = None
            self._state.active.folder_id = None
        self._persist()
        return orphaned

    def _release_to_uncategorized(self, thread_ids: list[str]) -> None:
        present = set(self._state.uncategorized)
        block = [item for item in thread_ids if item not in present]
        self._state.uncategorized[:0] = block

    # chats

    def register_or_update_chat(
        self,
        thread_id: str,
        title_hint: str | None = None,
        container_id: str | None = None,
    ) -> ThreadMeta:
        normalized_id = _require_text(thread_id, "thread id")
        hint = (title_hint or "").strip()
        existing = self._state.threads.get(normalized_id)
        if existing is not None:
            if hint and is_placeholder_title(existing.title):
                derived = derive_title(hint)
                if derived != existing.title:
                    existing.title = derived
                    self._persist()
            return existing

        target: list[str] = self._state.uncategorized
        if container_id is not None:
            try:
                target = self.get_folder(container_id).chats
            except NotFoundError:
                logger.warning(
                    "Unknown container for new chat; using Uncategorized",
                    extra={"thread_id": normalized_id, "container_id": container_id},
                )
        meta = ThreadMeta(
            id=normalized_id,
            title=derive_title(hint) if hint else PLACEHOLDER_TITLE,
        )
        self._state.threads[normalized_id] = meta
        self._detach(normalized_id)
        target.insert(0, normalized_id)
        self._persist()
        return meta

    def rename_chat(self, thread_id: str, title: str) -> ThreadMeta:
        normalized = _require_text(title, "chat title")
        meta = self._state.threads.get(thread_id)
        if meta is None:
            raise NotFoundError(f"chat not found: {thread_id}")
        meta.title = normalized
        self._persist()
        return meta

    def apply_first_message_title(self, thread_id: str, text: str) -> bool:
        meta = self._state.threads.get(thread_id)
        if meta is None or not is_placeholder_title(meta.title):
            return False
        if not (text or "").strip():
            return False
        meta.title = derive_title(text)
        self._persist()
        return True

    def move_chat(self, thread_id: str, target_folder_id: str | None) -> bool:
        if thread_id not in self._state.threads or self.locate(thread_id) is None:
            return False
        target = self.get_folder(target_folder_id) if target_folder_id is not None else None
        self._detach(thread_id)
        if target is None:
            self._state.uncategorized.insert(0, thread_id)
        else:
            target.chats.insert(0, thread_id)
            target.open = True
        if self._state.active.thread_id == thread_id:
            self._sync_active_location(thread_id)
        self._persist()
        return True

    def delete_chat_ref(self, thread_id: str) -> bool:
        if thread_id not in self._state.threads and self.locate(thread_id) is None:
            return False
        self._detach(thread_id)
        self._state.threads.pop(thread_id, None)
        if self._state.active.thread_id == thread_id:
            self._state.active.thread_id = None
        self._persist()
        return True

    def _detach(self, thread_id: str) -> None:
        self._state.uncategorized[:] = [item for item in self._state.uncategorized if item != thread_id]
        for _project, folder in self._state.iter_folders():
            if thread_id in folder.chats:
                folder.chats[:] = [item for item in folder.chats if item != thread_id]

    # search

    def filter(self, query: str) -> OrganizerState:
        return filter_state(self._state, query)

    # active pointer

    def set_active(self, selection: ActiveSelection) -> None:
        self._state.active = ActiveSelection(
            project_id=selection.project_id,
            folder_id=selection.folder_id,
            thread_id=selection.thread_id,
        )
        self._persist()

    def set_active_thread(self, thread_id: str | None) -> None:
        if thread_id is None:
            self._state.active.thread_id = None
        else:
            self._state.active.thread_id = thread_id
            self._sync_active_location(thread_id)
        self._persist()

    def _sync_active_location(self, thread_id: str) -> None:
        location = self.locate(thread_id)
        if location is None:
            return
        self._state.active.project_id = location.project_id
        self._state.active.folder_id = location.folder_id

    def active_container_id(self) -> str | None:
        folder_id = self._state.active.folder_id
        if folder_id is None:
            return None
        try:
            self.get_folder(folder_id)
        except NotFoundError:
            return None
        return folder_id
