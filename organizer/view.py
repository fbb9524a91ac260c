from __future__ import annotations

import html
import re
from dataclasses import dataclass
from datetime import datetime

from organizer.bridge import ConversationPane
from organizer.model import filter_state
from organizer.state import OrganizerState

EMPTY_STATE_TEXT = "No messages yet. Say hello."
UNCATEGORIZED_LABEL = "Uncategorized"

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_ROLE_LABELS = {"user": "You", "assistant": "Assistant"}


@dataclass(frozen=True)
class ChatRow:
    thread_id: str
    title: str
    created_label: str
    active: bool


@dataclass(frozen=True)
class FolderRow:
    folder_id: str
    name: str
    open: bool
    chat_count: int
    chats: tuple[ChatRow, ...]


@dataclass(frozen=True)
class ProjectRow:
    project_id: str
    name: str
    folders: tuple[FolderRow, ...]


@dataclass(frozen=True)
class SidebarView:
    projects: tuple[ProjectRow, ...]
    uncategorized: tuple[ChatRow, ...]
    query: str
    active_thread_id: str | None

    def visible_chats(self) -> list[ChatRow]:
        rows: list[ChatRow] = []
        for project in self.projects:
            for folder in project.folders:
                rows.extend(folder.chats)
        rows.extend(self.uncategorized)
        return rows


@dataclass(frozen=True)
class MessageRow:
    message_id: str
    role: str
    text: str
    css_class: str
    is_error: bool


@dataclass(frozen=True)
class MessagePaneView:
    thread_id: str | None
    rows: tuple[MessageRow, ...]
    empty_state: bool
    sending: bool = False


def _created_label(created_at: str) -> str:
    try:
        return datetime.fromisoformat(created_at).astimezone().strftime("%Y-%m-%d")
    except ValueError:
        return ""


def _chat_row(state: OrganizerState, thread_id: str, active_thread_id: str | None) -> ChatRow:
    meta = state.threads.get(thread_id)
    title = meta.title if meta is not None else thread_id
    created = _created_label(meta.created_at) if meta is not None else ""
    return ChatRow(
        thread_id=thread_id,
        title=title,
        created_label=created,
        active=thread_id == active_thread_id,
    )


def build_sidebar(state: OrganizerState, active_thread_id: str | None, query: str = "") -> SidebarView:
    """Project the (filtered) tree into rows.

    A collapsed folder reports its chat count but no rows, except while a search
    query is active: folders with matches are then shown expanded.
    """
    filtered = filter_state(state, query)
    searching = bool((query or "").strip())
    projects: list[ProjectRow] = []
    for project in filtered.projects:
        folders: list[FolderRow] = []
        for folder in project.folders:
            expanded = folder.open or (searching and bool(folder.chats))
            chats = (
                tuple(_chat_row(filtered, item, active_thread_id) for item in folder.chats)
                if expanded
                else ()
            )
            folders.append(
                FolderRow(
                    folder_id=folder.id,
                    name=folder.name,
                    open=expanded,
                    chat_count=len(folder.chats),
                    chats=chats,
                ),
            )
        projects.append(ProjectRow(project_id=project.id, name=project.name, folders=tuple(folders)))
    uncategorized = tuple(_chat_row(filtered, item, active_thread_id) for item in filtered.uncategorized)
    return SidebarView(
        projects=tuple(projects),
        uncategorized=uncategorized,
        query=(query or "").strip(),
        active_thread_id=active_thread_id,
    )


def build_message_pane(pane: ConversationPane, *, sending: bool = False) -> MessagePaneView:
    rows: list[MessageRow] = []
    for message in pane.messages:
        css_class = f"msg {message.role}"
        if message.error:
            css_class += " error"
        rows.append(
            MessageRow(
                message_id=message.message_id,
                role=message.role,
                text=message.content,
                css_class=css_class,
                is_error=message.error,
            ),
        )
    return MessagePaneView(
        thread_id=pane.thread_id,
        rows=tuple(rows),
        empty_state=not rows,
        sending=sending,
    )


# HTML


def _html_text(text: str) -> str:
    return html.escape(text).replace("\n", "<br>")


def _html_chat(row: ChatRow) -> str:
    classes = "chat active" if row.active else "chat"
    return (
        f'<li class="{classes}" data-thread-id="{html.escape(row.thread_id, quote=True)}">'
        f'<span class="title">{html.escape(row.title)}</span>'
        f'<span class="date">{html.escape(row.created_label)}</span></li>'
    )


def render_sidebar_html(view: SidebarView) -> str:
    parts: list[str] = ['<nav class="sidebar">', '<ul class="projects">']
    for project in view.projects:
        parts.append(
            f'<li class="project" data-project-id="{html.escape(project.project_id, quote=True)}">'
            f'<span class="name">{html.escape(project.name)}</span><ul class="folders">',
        )
        for folder in project.folders:
            state_class = "open" if folder.open else "closed"
            parts.append(
                f'<li class="folder {state_class}" '
                f'data-folder-id="{html.escape(folder.folder_id, quote=True)}">'
                f'<span class="name">{html.escape(folder.name)}</span>'
                f'<span class="count">{folder.chat_count}</span><ul class="chats">',
            )
            parts.extend(_html_chat(row) for row in folder.chats)
            parts.append("</ul></li>")
        parts.append("</ul></li>")
    parts.append("</ul>")
    parts.append(
        f'<section class="uncategorized"><h3>{UNCATEGORIZED_LABEL}</h3><ul class="chats">',
    )
    parts.extend(_html_chat(row) for row in view.uncategorized)
    parts.append("</ul></section></nav>")
    return "".join(parts)


def render_messages_html(view: MessagePaneView) -> str:
    if view.empty_state:
        return f'<div class="messages"><div class="empty">{html.escape(EMPTY_STATE_TEXT)}</div></div>'
    parts = ['<div class="messages">']
    for row in view.rows:
        parts.append(f'<div class="{row.css_class}">{_html_text(row.text)}</div>')
    parts.append("</div>")
    return "".join(parts)


# terminal


def clean_terminal_text(text: str) -> str:
    return _CONTROL_CHARS.sub("", text.replace("\r\n", "\n"))


def _text_line(text: str) -> str:
    return clean_terminal_text(text.replace("\n", " ")).strip()


def _text_chat(row: ChatRow, indent: str) -> str:
    marker = "*" if row.active else " "
    date = f" ({row.created_label})" if row.created_label else ""
    return f"{indent}{marker} {_text_line(row.title)}{date}  [{row.thread_id}]"


def render_sidebar_text(view: SidebarView) -> str:
    lines: list[str] = []
    if view.query:
        lines.append(f"Search: {_text_line(view.query)}")
    for project in view.projects:
        lines.append(f"{_text_line(project.name)}  [{project.project_id}]")
        for folder in project.folders:
            arrow = "v" if folder.open else ">"
            lines.append(
                f"  {arrow} {_text_line(folder.name)} ({folder.chat_count})  [{folder.folder_id}]",
            )
            lines.extend(_text_chat(row, "    ") for row in folder.chats)
    lines.append(f"{UNCATEGORIZED_LABEL} ({len(view.uncategorized)})")
    lines.extend(_text_chat(row, "  ") for row in view.uncategorized)
    return "\n".join(lines)


def render_messages_text(view: MessagePaneView) -> str:
    if view.empty_state:
        return EMPTY_STATE_TEXT
    blocks: list[str] = []
    for row in view.rows:
        label = "!" if row.is_error else _ROLE_LABELS.get(row.role, row.role)
        body = clean_terminal_text(row.text).strip("\n")
        indented = body.replace("\n", "\n    ")
        blocks.append(f"{label}: {indented}")
    if view.sending:
        blocks.append("(waiting for reply...)")
    return "\n".join(blocks)
