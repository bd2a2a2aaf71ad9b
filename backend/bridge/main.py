from datetime import timedelta
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from .chat import ChatClient
from .config import settings
from .services.classifier import EventClassifier
from .services.failure_tracker import FailureTracker
from .services.webhook_handler import HandleOutcome, WebhookHandler

HEALTH_UP = {"status": "UP"}

def build_handler() -> WebhookHandler:
    tracker = FailureTracker(retention=timedelta(hours=settings.FAILURE_RETENTION_HOURS))
    stale_run_age = timedelta(days=settings.STALE_RUN_DAYS) if settings.STALE_RUN_DAYS > 0 else None
    classifier = EventClassifier(tracker, settings.SUPPORTED_BRANCHES, stale_run_age=stale_run_age)
    sink = ChatClient(
        settings.SLACK_WEBHOOK_URL,
        timeout=settings.CHAT_TIMEOUT_SECONDS,
        username=settings.CHAT_USERNAME,
        icon_emoji=settings.CHAT_ICON_EMOJI,
    )
    return WebhookHandler(settings.GITHUB_WEBHOOK_SECRET, classifier, sink)

def create_app(handler: Optional[WebhookHandler] = None) -> FastAPI:
    app = FastAPI(title="GitHub Chat Bridge")
    # None until startup builds the default handler from settings
    app.state.handler = handler
    api = APIRouter()

    async def process(request: Request, channel: Optional[str]) -> PlainTextResponse:
        raw_body = await request.body()
        event_type = request.headers.get("X-GitHub-Event")
        signature = request.headers.get("X-Hub-Signature-256")
        try:
            outcome = await request.app.state.handler.handle(event_type, raw_body, signature, channel)
        except Exception as e:
            print(f"[webhook] error processing {event_type}: {type(e).__name__}: {e}")
            return PlainTextResponse(f"Error processing webhook: {e}", status_code=500)

        if outcome is HandleOutcome.REJECTED:
            return PlainTextResponse("Webhook signature rejected", status_code=401)
        return PlainTextResponse("Webhook processed successfully")

    @api.post("/webhook/{channel}")
    async def webhook_for_channel(channel: str, request: Request):
        return await process(request, channel)

    @api.post("/webhook")
    async def webhook(request: Request):
        return await process(request, None)

    @api.get("/actuator/health/liveness")
    async def liveness():
        return HEALTH_UP

    @api.get("/actuator/health/readiness")
    async def readiness():
        return HEALTH_UP

    @api.get("/api/health")
    async def health():
        return {"ok": True}

    @api.get("/builds")
    async def builds(request: Request):
        return request.app.state.handler.tracker.get_build_status()

    @app.on_event("startup")
    async def on_startup():
        if app.state.handler is None:
            app.state.handler = build_handler()
        tracker = app.state.handler.tracker
        print(
            f"[startup] tracking failures for {tracker.retention}; "
            f"branches={sorted(app.state.handler.classifier.supported_branches)}"
        )
        if not settings.GITHUB_WEBHOOK_SECRET:
            print("[startup] GITHUB_WEBHOOK_SECRET missing; every webhook will be rejected")

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.handler is None:
            return
        close = getattr(app.state.handler.sink, "close", None)
        if close is not None:
            await close()

    app.include_router(api)

    static_dir = Path(__file__).resolve().parent / "static"
    if static_dir.exists():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    return app

app = create_app()

def run():
    if not settings.SLACK_WEBHOOK_URL:
        raise SystemExit("SLACK_WEBHOOK_URL environment variable is required")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)

if __name__ == "__main__":
    run()
