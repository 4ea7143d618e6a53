"""Status API routes (read-only)."""

from aiohttp import web

from .middleware import create_error_response


def setup_status_routes(app: web.Application) -> None:
    app.router.add_get("/api/v1/status", status_handler)
    app.router.add_get("/api/v1/paths", paths_handler)
    app.router.add_get("/api/v1/paths/{path_id}", path_handler)
    app.router.add_get("/api/v1/buffer", buffer_handler)


async def status_handler(request: web.Request) -> web.Response:
    """GET /api/v1/status - Uplink, supervisor and path summary."""
    controller = request.app["controller"]
    return web.json_response(controller.get_status())


async def paths_handler(request: web.Request) -> web.Response:
    """GET /api/v1/paths - Every configured path with its health."""
    controller = request.app["controller"]
    return web.json_response(controller.get_paths())


async def path_handler(request: web.Request) -> web.Response:
    """GET /api/v1/paths/{path_id} - One path."""
    controller = request.app["controller"]
    path_id = request.match_info["path_id"]
    result = controller.get_path(path_id)
    if result is None:
        return create_error_response("PATH_NOT_FOUND", f"No path named '{path_id}'", status=404)
    return web.json_response(result)


async def buffer_handler(request: web.Request) -> web.Response:
    """GET /api/v1/buffer - Retry buffer depth and loss counters."""
    controller = request.app["controller"]
    return web.json_response(controller.get_buffer())


__all__ = ["setup_status_routes"]
