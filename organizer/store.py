from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Protocol

from organizer.errors import CorruptStateError
from organizer.state import (
    PLACEHOLDER_TITLE,
    ActiveSelection,
    Folder,
    OrganizerState,
    Project,
    ThreadMeta,
    new_id,
    seeded_state,
    utc_iso_now,
)
from shared.models import JSONValue
from shared.sanitize import safe_json_loads

logger = logging.getLogger("ChatShelf.LocalStore")

STATE_VERSION: Final[int] = 2
LEGACY_PROJECT_NAME: Final[str] = "Projects"


class LocalStore(Protocol):
    def load(self) -> OrganizerState: ...

    def save(self, state: OrganizerState) -> None: ...


class InMemoryLocalStore:
    def __init__(self, raw: str | None = None) -> None:
        self._raw = raw
        self.save_count = 0

    @property
    def raw(self) -> str | None:
        return self._raw

    def load(self) -> OrganizerState:
        if self._raw is None:
            return seeded_state()
        return decode_state_text(self._raw, source="memory")

    def save(self, state: OrganizerState) -> None:
        self._raw = encode_state_text(state)
        self.save_count += 1


class JsonFileLocalStore:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> OrganizerState:
        if not self._path.exists():
            return seeded_state()
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to read state file %s: %s", self._path, exc)
            return seeded_state()
        state = decode_state_text(raw, source=str(self._path))
        if _looks_corrupt(raw):
            self._preserve_corrupt(raw)
        return state

    def save(self, state: OrganizerState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        text = encode_state_text(state)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _preserve_corrupt(self, raw: str) -> None:
        backup = self._path.with_name(f"{self._path.name}.corrupt")
        try:
            backup.write_text(raw, encoding="utf-8")
        except OSError:
            logger.debug("Failed to keep corrupt state copy at %s", backup, exc_info=True)


def _looks_corrupt(raw: str) -> bool:
    return not isinstance(safe_json_loads(raw), dict)


def encode_state(state: OrganizerState) -> dict[str, JSONValue]:
    return {
        "version": STATE_VERSION,
        "projects": [
            {
                "id": project.id,
                "name": project.name,
                "folders": [_encode_folder(folder) for folder in project.folders],
            }
            for project in state.projects
        ],
        "uncategorized": list(state.uncategorized),
        "threads": {
            thread_id: {"id": meta.id, "title": meta.title, "createdAt": meta.created_at}
            for thread_id, meta in state.threads.items()
        },
        "lastActiveThreadId": state.active.thread_id,
        "active": {
            "projectId": state.active.project_id,
            "folderId": state.active.folder_id,
            "threadId": state.active.thread_id,
        },
    }


def encode_state_text(state: OrganizerState) -> str:
    return json.dumps(encode_state(state), ensure_ascii=False, indent=2)


def _encode_folder(folder: Folder) -> dict[str, JSONValue]:
    return {
        "id": folder.id,
        "name": folder.name,
        "open": folder.open,
        "chats": list(folder.chats),
    }


def decode_state_text(raw: str, *, source: str = "state") -> OrganizerState:
    parsed = safe_json_loads(raw)
    if not isinstance(parsed, dict):
        error = CorruptStateError(f"unreadable organizer state in {source}")
        logger.warning("%s; using defaults.", error, extra={"source": source})
        return seeded_state()
    return decode_state(parsed)


def decode_state(payload: dict[str, object]) -> OrganizerState:
    threads = _decode_threads(payload.get("threads"))
    projects_raw = payload.get("projects")
    if isinstance(projects_raw, list):
        projects = [item for item in (_decode_project(raw) for raw in projects_raw) if item]
    else:
        projects = _decode_legacy_folders(payload.get("folders"))
    uncategorized = _string_list(payload.get("uncategorized"))
    active = _decode_active(payload)
    state = OrganizerState(
        projects=projects,
        uncategorized=uncategorized,
        threads=threads,
        active=active,
    )
    repair_state(state)
    return state


def _decode_threads(value: object) -> dict[str, ThreadMeta]:
    threads: dict[str, ThreadMeta] = {}
    if not isinstance(value, dict):
        return threads
    for key, item in value.items():
        if not isinstance(item, dict):
            continue
        thread_id = _optional_str(item.get("id")) or _optional_str(key)
        if thread_id is None or thread_id in threads:
            continue
        title_raw = item.get("title")
        title = title_raw.strip() if isinstance(title_raw, str) else ""
        threads[thread_id] = ThreadMeta(
            id=thread_id,
            title=title or PLACEHOLDER_TITLE,
            created_at=_decode_timestamp(item.get("createdAt", item.get("created_at"))),
        )
    return threads


def _decode_timestamp(value: object) -> str:
    # The browser client stored Date.now() milliseconds.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()  # noqa: UP017
        except (OverflowError, OSError, ValueError):
            return utc_iso_now()
    if isinstance(value, str) and value.strip():
        return value.strip()
    return utc_iso_now()


def _decode_folder(value: object) -> Folder | None:
    if not isinstance(value, dict):
        return None
    folder_id = _optional_str(value.get("id"))
    if folder_id is None:
        return None
    open_raw = value.get("open", True)
    return Folder(
        id=folder_id,
        name=_optional_str(value.get("name")) or "Untitled folder",
        open=open_raw if isinstance(open_raw, bool) else True,
        chats=_string_list(value.get("chats")),
    )


def _decode_project(value: object) -> Project | None:
    if not isinstance(value, dict):
        return None
    project_id = _optional_str(value.get("id"))
    if project_id is None:
        return None
    folders_raw = value.get("folders")
    folders: list[Folder] = []
    if isinstance(folders_raw, list):
        folders = [item for item in (_decode_folder(raw) for raw in folders_raw) if item]
    return Project(
        id=project_id,
        name=_optional_str(value.get("name")) or "Untitled project",
        folders=folders,
    )


def _decode_legacy_folders(value: object) -> list[Project]:
    if isinstance(value, dict):
        items: list[object] = list(value.values())
    elif isinstance(value, list):
        items = list(value)
    else:
        return seeded_state().projects
    folders = [item for item in (_decode_folder(raw) for raw in items) if item]
    folders.sort(key=lambda item: item.name.lower())
    return [Project(id=new_id("project"), name=LEGACY_PROJECT_NAME, folders=folders)]


def _decode_active(payload: dict[str, object]) -> ActiveSelection:
    active_raw = payload.get("active")
    active = active_raw if isinstance(active_raw, dict) else {}
    thread_id = _optional_str(active.get("threadId")) or _optional_str(
        payload.get("lastActiveThreadId"),
    )
    return ActiveSelection(
        project_id=_optional_str(active.get("projectId")),
        folder_id=_optional_str(active.get("folderId")),
        thread_id=thread_id,
    )


def repair_state(state: OrganizerState) -> None:
    seen: set[str] = set()
    seen_folders: set[str] = set()
    seen_projects: set[str] = set()
    projects: list[Project] = []
    for project in state.projects:
        if project.id in seen_projects:
            continue
        seen_projects.add(project.id)
        folders: list[Folder] = []
        for folder in project.folders:
            if folder.id in seen_folders:
                continue
            seen_folders.add(folder.id)
            folder.chats = _dedupe(folder.chats, seen)
            folders.append(folder)
        project.folders = folders
        projects.append(project)
    state.projects = projects
    state.uncategorized = _dedupe(state.uncategorized, seen)

    for thread_id in seen:
        if thread_id not in state.threads:
            state.threads[thread_id] = ThreadMeta(id=thread_id)
    for thread_id in state.threads:
        if thread_id not in seen:
            state.uncategorized.append(thread_id)
            seen.add(thread_id)

    active = state.active
    if active.thread_id is not None and active.thread_id not in state.threads:
        active.thread_id = None
    if active.project_id is not None and active.project_id not in seen_projects:
        active.project_id = None
        active.folder_id = None
    if active.folder_id is not None and active.folder_id not in seen_folders:
        active.folder_id = None


def _dedupe(items: list[str], seen: set[str]) -> list[str]:
    result: list[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _optional_str(value: object) -> str | None:
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return None
