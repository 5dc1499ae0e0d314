"""OAuth hand-off receiver served alongside the Discord bot."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from aiohttp import web

if TYPE_CHECKING:
    from .garage import GarageManager

logger = logging.getLogger("garagebot.web")

MANAGER_KEY = web.AppKey("garage_manager", object)
APP_LINK_KEY = web.AppKey("app_link", str)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(SECURITY_HEADERS)
        raise
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unhandled error serving %s", request.path)
        response = web.Response(status=500, text="Error while processing the request.")
    response.headers.update(SECURITY_HEADERS)
    return response


def _parse_expires_at(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric expires_at=%s", raw)
        return None


async def handle_index(_request: web.Request) -> web.Response:
    return web.Response(text="ok")


async def handle_login_callback(request: web.Request) -> web.Response:
    raw_user_id = request.match_info["user_id"]
    try:
        user_id = int(raw_user_id)
    except ValueError:
        user_id = 0
    if user_id <= 0:
        raise web.HTTPBadRequest(text="Invalid user id.")

    query = request.query
    if query.get("status") == "error":
        logger.info(
            "Wargaming login for user %s returned error %s: %s",
            user_id,
            query.get("code", "?"),
            query.get("message", "unknown"),
        )
    access_token = query.get("access_token", "").strip()
    account_id = query.get("account_id", "").strip()
    if not access_token or not account_id:
        raise web.HTTPBadRequest(text="Missing access_token or account_id.")

    manager: "GarageManager" = request.app[MANAGER_KEY]  # type: ignore[assignment]
    await manager.complete_login(
        user_id,
        access_token,
        account_id,
        nickname=query.get("nickname") or None,
        expires_at=_parse_expires_at(query.get("expires_at")),
    )
    raise web.HTTPFound(request.app[APP_LINK_KEY])


def create_app(manager: "GarageManager", *, app_link: str) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[MANAGER_KEY] = manager
    app[APP_LINK_KEY] = app_link
    app.router.add_get("/", handle_index)
    app.router.add_get("/{user_id}", handle_login_callback)
    app.router.add_get("/{user_id}/", handle_login_callback)
    return app


async def start_callback_server(
    manager: "GarageManager",
    *,
    host: str,
    port: int,
    app_link: str,
) -> web.AppRunner:
    """Start the callback server on the running loop; the caller owns cleanup."""
    runner = web.AppRunner(create_app(manager, app_link=app_link), access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Login callback server listening on %s:%s", host, port)
    return runner


__all__ = ["create_app", "error_middleware", "start_callback_server"]
