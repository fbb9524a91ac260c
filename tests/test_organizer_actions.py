from __future__ import annotations

import asyncio

from organizer.actions import OrganizerActions
from organizer.bridge import SessionBridge
from organizer.model import OrganizerModel
from organizer.store import InMemoryLocalStore
from tests.fakes import FakeGateway, ScriptedPrompter


def _actions(
    answers: list[str | None] | None = None,
    *,
    confirm: bool = True,
) -> tuple[OrganizerActions, OrganizerModel, FakeGateway, ScriptedPrompter]:
    gateway = FakeGateway()
    model = OrganizerModel(InMemoryLocalStore())
    prompter = ScriptedPrompter(answers, confirm=confirm)
    return OrganizerActions(model, SessionBridge(model, gateway), prompter), model, gateway, prompter


def test_add_project_and_cancel() -> None:
    actions, model, _gateway, _prompter = _actions(["Acme", None])
    outcome = actions.add_project()
    assert outcome.ok
    assert [project.name for project in model.state.projects][-1] == "Acme"

    cancelled = actions.add_project()
    assert cancelled.cancelled
    assert not cancelled.ok
    assert len(model.state.projects) == 2


def test_validation_errors_become_messages() -> None:
    actions, model, _gateway, _prompter = _actions(["   "])
    outcome = actions.add_project()
    assert not outcome.ok
    assert "non-empty" in outcome.message
    assert len(model.state.projects) == 1


def test_unknown_ids_become_messages() -> None:
    actions, _model, _gateway, prompter = _actions(["Name"])
    outcome = actions.rename_folder("folder_missing")
    assert not outcome.ok
    assert outcome.message == "folder not found: folder_missing"
    assert prompter.prompts == []


def test_rename_uses_current_name_as_default() -> None:
    actions, model, _gateway, _prompter = _actions(["Pipeline"])
    folder = model.state.projects[0].folders[0]
    outcome = actions.rename_folder(folder.id)
    assert outcome.ok
    assert model.get_folder(folder.id).name == "Pipeline"


def test_delete_folder_requires_confirmation() -> None:
    actions, model, _gateway, _prompter = _actions(confirm=False)
    folder = model.state.projects[0].folders[0]
    model.register_or_update_chat("t1", None, folder.id)
    outcome = actions.delete_folder(folder.id)
    assert outcome.cancelled
    assert model.get_folder(folder.id).chats == ["t1"]


def test_delete_project_moves_chats() -> None:
    actions, model, _gateway, _prompter = _actions()
    project = model.state.projects[0]
    model.register_or_update_chat("t1", None, project.folders[0].id)
    outcome = actions.delete_project(project.id)
    assert outcome.ok
    assert "1 chat(s)" in outcome.message
    assert model.container_chats(None) == ["t1"]


def test_move_chat_by_folder_name_and_to_uncategorized() -> None:
    actions, model, _gateway, _prompter = _actions(["general", ""])
    folder = model.state.projects[0].folders[0]
    model.register_or_update_chat("t1")
    assert actions.move_chat("t1").ok
    assert model.container_chats(folder.id) == ["t1"]
    assert actions.move_chat("t1").ok
    assert model.container_chats(None) == ["t1"]


def test_move_chat_to_new_folder() -> None:
    actions, model, _gateway, _prompter = _actions(["Hot leads"])
    model.register_or_update_chat("t1")
    outcome = actions.move_chat_to_new_folder("t1")
    assert outcome.ok
    location = model.locate("t1")
    assert location is not None and location.folder_id is not None
    assert model.get_folder(location.folder_id).name == "Hot leads"


def test_move_chat_unknown_folder_name() -> None:
    actions, model, _gateway, _prompter = _actions(["Nowhere"])
    model.register_or_update_chat("t1")
    outcome = actions.move_chat("t1")
    assert not outcome.ok
    assert outcome.message == "folder not found: Nowhere"
    assert model.container_chats(None) == ["t1"]


def test_send_opens_thread_when_none_active() -> None:
    async def run() -> None:
        actions, model, gateway, _prompter = _actions()
        outcome = await actions.send("Hello there")
        assert outcome.ok
        assert outcome.message == "echo: Hello there"
        assert len(gateway.sent) == 1
        thread_id = gateway.sent[0][0]
        assert model.get_thread(thread_id).title == "Hello there"

    asyncio.run(run())


def test_open_unknown_chat_reports_error() -> None:
    async def run() -> None:
        actions, _model, _gateway, _prompter = _actions()
        outcome = await actions.open_chat("t_ghost")
        assert not outcome.ok
        assert outcome.message == "Thread not found"

    asyncio.run(run())


def test_new_chat_failure_reports_error() -> None:
    async def run() -> None:
        actions, _model, gateway, _prompter = _actions()
        gateway.fail_new = True
        outcome = await actions.new_chat()
        assert not outcome.ok
        assert outcome.message == "gateway unreachable"

    asyncio.run(run())


def test_new_chat_in_folder_by_name() -> None:
    async def run() -> None:
        actions, model, _gateway, _prompter = _actions()
        folder = model.state.projects[0].folders[0]
        outcome = await actions.new_chat_in_folder("General")
        assert outcome.ok
        assert len(model.container_chats(folder.id)) == 1

    asyncio.run(run())


def test_delete_chat_confirmed() -> None:
    async def run() -> None:
        actions, model, _gateway, _prompter = _actions()
        opened = await actions.new_chat()
        assert opened.ok
        thread_id = model.active_thread_id
        assert thread_id is not None
        outcome = await actions.delete_chat(thread_id)
        assert outcome.ok
        assert model.get_thread(thread_id) is None
        assert model.active_thread_id not in (None, thread_id)

    asyncio.run(run())
