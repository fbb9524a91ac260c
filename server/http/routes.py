from __future__ import annotations

from aiohttp import web


def register_routes(app: web.Application) -> None:
    from server.http.handlers import chat, system, threads

    app.router.add_get("/", system.handle_index)
    app.router.add_get("/healthz", system.handle_healthz)
    app.router.add_get("/diag", system.handle_diag)
    app.router.add_get("/history", threads.handle_history)
    app.router.add_post("/new", threads.handle_new_thread)
    app.router.add_post("/switch", threads.handle_switch_thread)
    app.router.add_delete("/threads/{thread_id}", threads.handle_delete_thread)
    app.router.add_post("/chat", chat.handle_chat)
