import json
import logging

from aiohttp import web

from grnds.config import Settings
from grnds.hub import Hub
from grnds.services.errors import GrndsError, ValidationError
from grnds.services.verification import VerifyRequest

logger = logging.getLogger(__name__)

HUB_KEY = web.AppKey("hub", Hub)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def json_error(message: str, status: int, headers=None) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status, headers=headers)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except GrndsError as e:
        if e.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, e.message)
        else:
            logger.info("%s %s rejected (%s): %s", request.method, request.path, e.status, e.message)
        return json_error(e.message, e.status)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return json_error("Internal server error", 500)


async def read_json(request: web.Request) -> dict:
    if not request.body_exists:
        return {}
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body") from None
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


# --- HANDLERS ---

async def verify_account(request: web.Request) -> web.Response:
    if request.method != "POST":
        return json_error("Method not allowed", 405)

    hub = request.app[HUB_KEY]
    body = await read_json(request)
    result = await hub.verification.verify(VerifyRequest.from_json(body))
    return web.json_response(result.to_json())


async def process_queue(request: web.Request) -> web.Response:
    if request.method != "POST":
        return json_error("Method not allowed", 405)

    hub = request.app[HUB_KEY]
    body = await read_json(request)
    proposal = await hub.queue_processing.process(
        balancing_mode=body.get("balancingMode", "auto"),
        game=body.get("game", "valorant"),
    )
    return web.json_response(proposal.to_json())


async def calculate_rank(request: web.Request) -> web.Response:
    if request.method != "POST":
        return json_error("Method not allowed", 405)

    hub = request.app[HUB_KEY]
    body = await read_json(request)
    results = await hub.rank_calculation.calculate(body.get("matchId"))
    return web.json_response({"success": True, "results": [r.to_json() for r in results]})


async def leaderboard(request: web.Request) -> web.Response:
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)
    if request.method != "GET":
        return json_error("Method not allowed", 405, headers=CORS_HEADERS)

    hub = request.app[HUB_KEY]
    rows = await hub.leaderboard.top(request.query.get("limit", 25))
    return web.json_response({"success": True, "players": [r.to_json() for r in rows]}, headers=CORS_HEADERS)


def create_app(hub: Hub) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[HUB_KEY] = hub

    # "*" so other methods reach the handler and get the JSON 405
    app.router.add_route("*", "/api/verify-account", verify_account)
    app.router.add_route("*", "/api/process-queue", process_queue)
    app.router.add_route("*", "/api/calculate-rank", calculate_rank)
    app.router.add_route("*", "/api/leaderboard", leaderboard)
    return app


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format='%(levelname)s:%(name)s:%(message)s')

    hub = Hub.from_settings(settings)
    app = create_app(hub)

    async def on_startup(_app):
        await hub.start()
        logger.info("Database connected.")

    async def on_cleanup(_app):
        await hub.close()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    web.run_app(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
