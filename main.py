import asyncio
import logging

from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from core.config import settings, setup_logging
from core.credentials import load_credentials
from core.errors import WebhookError
from core.models import RawWebhookRequest
from services.github_service import TokenExchanger
from services.pipeline import AuthenticationPipeline
from services.token_cache import InstallationTokenCache
from services.webhook_service import build_default_dispatcher

# Setup logging
setup_logging()

app = FastAPI(
    title="GitHub App Event Handler",
    version="1.0.0",
    description="Verifies GitHub App webhooks, authenticates as the installation and dispatches events.",
)

logger = logging.getLogger("github_app")

# How often a running delivery checks whether its client went away.
DISCONNECT_POLL_INTERVAL = 0.5


def build_pipeline() -> AuthenticationPipeline:
    credentials = load_credentials(settings)
    return AuthenticationPipeline(
        credentials=credentials,
        exchanger=TokenExchanger(api_url=settings.GITHUB_API_URL, timeout=settings.TOKEN_EXCHANGE_TIMEOUT),
        dispatcher=build_default_dispatcher(settings.NEEDS_RESPONSE_LABEL),
        token_cache=InstallationTokenCache() if settings.TOKEN_CACHE_ENABLED else None,
        max_retries=settings.TOKEN_EXCHANGE_MAX_RETRIES,
        retry_delay=settings.RETRY_DELAY,
    )


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup...")
    logger.info(f"Log level set to: {settings.LOG_LEVEL}")
    # A bad key or missing secret stops the process here, not on the first webhook.
    app.state.pipeline = build_pipeline()


def get_pipeline(request: Request) -> AuthenticationPipeline:
    return request.app.state.pipeline


async def get_raw_body(request: Request):
    return await request.body()


async def run_until_disconnect(request: Request, coro):
    """Await ``coro`` but cancel it if the client disconnects first."""
    task = asyncio.ensure_future(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.warning("Client disconnected, cancelling in-flight delivery.")
                task.cancel()
                break
        await asyncio.gather(task, return_exceptions=True)
        return None
    finally:
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)


@app.exception_handler(WebhookError)
async def webhook_error_handler(_request: Request, exc: WebhookError):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.get("/", tags=["General"])
async def read_root():
    """Health check endpoint."""
    return {"status": "alive"}


@app.post("/event_handler", tags=["GitHub"], response_class=PlainTextResponse)
async def event_handler(
    request: Request,
    raw_body: bytes = Depends(get_raw_body),
    pipeline: AuthenticationPipeline = Depends(get_pipeline),
):
    """Endpoint to receive GitHub App webhooks."""
    raw_request = RawWebhookRequest(body=raw_body, headers=dict(request.headers))
    await run_until_disconnect(request, pipeline.run(raw_request))
    return "ok"


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
