from __future__ import annotations

import logging
import os
from pathlib import Path

from aiohttp import web

from config.assistant_config import AssistantConfig, resolve_assistant_config
from config.http_server_config import HttpServerConfig, resolve_http_server_config
from llm.assistants_client import AssistantsClient
from llm.types import AssistantsBackend
from server.assistant_gateway import AssistantGateway
from shared.sanitize import mask_secret

logger = logging.getLogger("ChatShelf.HttpAPI")

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _log_boot_config(config: AssistantConfig) -> None:
    logger.info(
        "Assistant config",
        extra={
            "api_key": mask_secret(config.api_key),
            "assistant_id": config.assistant_id,
            "vector_store_id": config.vector_store_id,
        },
    )
    for name in config.missing_settings():
        logger.error("Missing %s", name)
    if not config.vector_store_id:
        logger.warning("Missing VECTOR_STORE_ID (file search won't attach per-run)")


def create_app(
    *,
    assistants: AssistantsBackend | None = None,
    assistant_config: AssistantConfig | None = None,
    server_config: HttpServerConfig | None = None,
) -> web.Application:
    resolved_server = server_config or HttpServerConfig()
    resolved_assistant = assistant_config or resolve_assistant_config()
    _log_boot_config(resolved_assistant)
    backend = assistants or AssistantsClient(resolved_assistant)
    app = web.Application(client_max_size=resolved_server.max_request_bytes)
    app["assistant_gateway"] = AssistantGateway(backend, resolved_assistant)
    app["cookie_secure"] = resolved_server.cookie_secure
    static_path = Path(resolved_server.static_dir)
    if not static_path.is_absolute():
        static_path = PROJECT_ROOT / static_path
    app["static_path"] = static_path
    from server.http.routes import register_routes

    register_routes(app)
    if static_path.is_dir():
        app.router.add_static("/static/", static_path)
    else:
        logger.warning("Static directory missing at %s; skipping static files.", static_path)
    return app


def run_server(config: HttpServerConfig) -> None:
    app = create_app(server_config=config)
    logger.info("Server listening on %s:%s", config.host, config.port)
    web.run_app(app, host=config.host, port=config.port)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("CHATSHELF_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = resolve_http_server_config()
    run_server(config)
