"""
FastAPI surface the alarm device calls to push events.

State routes update the store directly because the device itself is the
caller, then notify every registered chat. The video route forwards an
uploaded clip to all chats.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from starlette.datastructures import UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from ...core.config import DEFAULT_MAX_UPLOAD_BYTES
from ...core.contracts import AlarmState, BaseModule, HealthStatus, ModuleConfig
from ...core.state import StateStore
from ..bot.orchestrator import BotOrchestrator
from ..messaging.telegram_gateway import MessagingError

logger = logging.getLogger(__name__)

ARMED_NOTICE = "🔒 System Armed (via local API)"
DISARMED_NOTICE = "🔓 System Disarmed (via local API)"
ALARM_NOTICE = "🚨 ALARM TRIGGERED"
PIN_SUCCESS_NOTICE = "✅ Alarm disarmed via PIN"
VIDEO_FIELD = "file"
DEVICE_METHODS = ["GET", "POST"]


def _is_loopback(host: str) -> bool:
    return (host or "").strip() in ("127.0.0.1", "localhost", "::1")


class LocalEventListener(BaseModule):
    """Expose the routes the alarm device invokes on the local network."""

    name = "modules.listener.local_api"

    def __init__(
        self,
        *,
        store: StateStore,
        orchestrator: BotOrchestrator,
        config_factory: Callable[..., uvicorn.Config] | None = None,
        server_factory: Callable[[uvicorn.Config], uvicorn.Server] | None = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._orchestrator = orchestrator
        self._host = "0.0.0.0"
        self._port = 8080
        self._serve_api = True
        self._max_upload_bytes = DEFAULT_MAX_UPLOAD_BYTES
        self._video_caption = "📹 Alarm clip"
        self._app: FastAPI | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task[None] | None = None
        self._config_factory = config_factory or uvicorn.Config
        self._server_factory = server_factory or uvicorn.Server
        self._events_total = 0

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._host = options.get("host", self._host)
        self._port = int(options.get("port", self._port))
        self._serve_api = bool(options.get("serve_api", self._serve_api))
        self._max_upload_bytes = int(options.get("max_upload_bytes", self._max_upload_bytes))
        self._video_caption = options.get("video_caption", self._video_caption)

    async def start(self) -> None:
        self._app = self._build_app()
        if not self._serve_api:
            logger.info("LocalEventListener running in embedded-only mode (no HTTP server).")
            return
        if not _is_loopback(self._host):
            logger.warning(
                "LocalEventListener is bound to %s without authentication; "
                "keep it reachable from the alarm network only.",
                self._host,
            )
        config = self._config_factory(
            app=self._app,
            host=self._host,
            port=self._port,
            loop="asyncio",
            lifespan="on",
            log_level="info",
        )
        self._server = self._server_factory(config)
        self._server_task = asyncio.create_task(self._server.serve(), name="alarmbot-listener")
        logger.info("LocalEventListener listening on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        if self._server_task:
            self._server.should_exit = True  # type: ignore[union-attr]
            await asyncio.wait([self._server_task], timeout=1)
            self._server_task = None
        self._server = None

    async def health(self) -> HealthStatus:
        serving = self._server_task is not None and not self._server_task.done()
        status = "healthy" if (serving or not self._serve_api) and self._app else "degraded"
        return HealthStatus(
            status=status,
            details={"serving": serving, "events_total": self._events_total},
        )

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            raise RuntimeError("LocalEventListener has not been started or configured yet.")
        return self._app

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Alarm bridge local listener", version="0.1.0")

        @app.get("/health")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        @app.api_route("/arm", methods=DEVICE_METHODS)
        async def arm() -> dict[str, str]:
            return await self._apply_state(AlarmState.ARMED, ARMED_NOTICE)

        @app.api_route("/disarm", methods=DEVICE_METHODS)
        async def disarm() -> dict[str, str]:
            return await self._apply_state(AlarmState.DISARMED, DISARMED_NOTICE)

        @app.api_route("/status", methods=DEVICE_METHODS)
        async def status() -> dict[str, str]:
            return {"state": self._store.get().value}

        @app.api_route("/alarm", methods=DEVICE_METHODS)
        async def alarm() -> dict[str, str]:
            return await self._notify("alarm", ALARM_NOTICE)

        @app.api_route("/success", methods=DEVICE_METHODS)
        async def success() -> dict[str, str]:
            return await self._notify("success", PIN_SUCCESS_NOTICE)

        @app.post("/video")
        async def video(request: Request) -> dict[str, Any]:
            data = await self._read_video_upload(request)
            try:
                delivered = await self._orchestrator.broadcast_video(
                    io.BytesIO(data), self._video_caption
                )
            except MessagingError as exc:
                logger.error("Video broadcast failed: %s", exc)
                raise HTTPException(status_code=502, detail=str(exc)) from exc
            self._events_total += 1
            return {"status": "ok", "delivered": delivered}

        return app

    async def _apply_state(self, value: AlarmState, notice: str) -> dict[str, str]:
        self._store.set(value)
        logger.info("Device reported state %s", value.value)
        return await self._notify(value.value.lower(), notice)

    async def _notify(self, event: str, notice: str) -> dict[str, str]:
        self._events_total += 1
        await self._orchestrator.broadcast(notice)
        logger.info("Device event %s broadcast", event)
        return {"status": "ok"}

    async def _read_video_upload(self, request: Request) -> bytes:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self._max_upload_bytes:
            raise HTTPException(status_code=413, detail="Upload too large.")
        content_type = request.headers.get("content-type", "")
        if not content_type.startswith("multipart/form-data"):
            raise HTTPException(status_code=400, detail="Expected multipart/form-data.")
        body = await self._read_bounded_body(request)

        async def replay() -> AsyncIterator[bytes]:
            yield body

        try:
            form = await MultiPartParser(request.headers, replay()).parse()
        except MultiPartException as exc:
            logger.warning("Rejected malformed video upload: %s", exc)
            raise HTTPException(status_code=400, detail="Malformed multipart payload.") from exc
        try:
            upload = form.get(VIDEO_FIELD)
            if not isinstance(upload, UploadFile):
                raise HTTPException(status_code=400, detail=f"Missing '{VIDEO_FIELD}' field.")
            return await upload.read()
        finally:
            await form.close()

    async def _read_bounded_body(self, request: Request) -> bytes:
        # Chunked uploads carry no content-length, so the cap is enforced while reading.
        buffer = bytearray()
        async for chunk in request.stream():
            buffer.extend(chunk)
            if len(buffer) > self._max_upload_bytes:
                logger.warning("Rejected video upload above %d bytes", self._max_upload_bytes)
                raise HTTPException(status_code=413, detail="Upload too large.")
        return bytes(buffer)


__all__ = ["LocalEventListener"]
