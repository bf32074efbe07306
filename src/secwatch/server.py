from __future__ import annotations

from contextlib import asynccontextmanager
import json
import logging
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from secwatch.config import Settings, settings as default_settings
from secwatch.contracts import (
    CONNECTION_ESTABLISHED,
    FIX_APPLY,
    FIX_COMPLETE,
    FIX_ERROR,
    FixPayload,
    FixResponse,
    FixValidation,
    RuleInfo,
)
from secwatch.flows.watch import WatchSession

logger = logging.getLogger(__name__)

_OPEN_PATHS = {"/healthz", "/docs", "/openapi.json"}


class ConnectionHub:
    """Connected WebSocket clients; a client whose send fails is dropped."""

    def __init__(self) -> None:
        self._clients: Set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Client connected (%d total)", len(self._clients))

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info("Client disconnected (%d remaining)", len(self._clients))

    async def send(self, websocket: WebSocket, event: str, data: Dict[str, Any]) -> None:
        await websocket.send_json({"event": event, "data": data})

    async def broadcast(self, event: str, data: Dict[str, Any]) -> None:
        for websocket in list(self._clients):
            try:
                await self.send(websocket, event, data)
            except Exception as exc:
                logger.warning("Dropping client after failed send of %s: %s", event, exc)
                self._clients.discard(websocket)


def _malformed_fix(data: Any, reason: str) -> FixResponse:
    data = data if isinstance(data, dict) else {}
    file_path = data.get("filePath") or data.get("file_path")
    alert_id = data.get("alertId") or data.get("alert_id")
    return FixResponse(
        success=False,
        file_path=file_path if isinstance(file_path, str) else "unknown",
        alert_id=alert_id if isinstance(alert_id, str) else "",
        error=f"Malformed fix request: {reason}",
        code="validation",
    )


def create_app(
    config: Optional[Settings] = None,
    session: Optional[WatchSession] = None,
    watch: bool = True,
) -> FastAPI:
    config = config or default_settings
    hub = ConnectionHub()
    session = session or WatchSession(config)
    session.broadcast = hub.broadcast
    allowed_origins = list(config.cors_origins)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if watch:
            await session.start()
        try:
            yield
        finally:
            await session.stop()

    app = FastAPI(title="secwatch", version="0.1.0", lifespan=lifespan)
    app.state.hub = hub
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def enforce_origin(request: Request, call_next):
        # Keeps arbitrary web pages from driving a process that can write files.
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        if path in _OPEN_PATHS or path.startswith("/docs/"):
            return await call_next(request)

        origin = request.headers.get("origin")
        if not origin:
            return JSONResponse({"detail": "Missing Origin header."}, status_code=403)
        if origin not in allowed_origins:
            return JSONResponse({"detail": f"Origin not allowed: {origin}"}, status_code=403)

        return await call_next(request)

    @app.get("/healthz")
    def healthz() -> JSONResponse:
        return JSONResponse(
            {
                "ok": True,
                "watchDir": session.watch_dir,
                "connectedClients": len(hub),
                "rules": [{"id": rule.id, "name": rule.name} for rule in session.engine.rules()],
            }
        )

    @app.get("/rules", response_model=list[RuleInfo])
    def list_rules() -> list[RuleInfo]:
        return [rule.info() for rule in session.engine.rules()]

    @app.post("/fix/validate", response_model=FixValidation)
    async def validate_fix(payload: FixPayload) -> FixValidation:
        return await session.applier.validate_fix(payload)

    @app.websocket("/ws")
    async def events(websocket: WebSocket) -> None:
        origin = websocket.headers.get("origin")
        if origin not in allowed_origins:
            logger.warning("Rejected WebSocket from origin %s", origin)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await hub.connect(websocket)
        try:
            await hub.send(websocket, CONNECTION_ESTABLISHED, {"watchDir": session.watch_dir})
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
                raw = message.get("text")
                if raw is None:
                    response = _malformed_fix(None, "expected a text frame")
                    await hub.send(websocket, FIX_ERROR, response.model_dump(by_alias=True))
                    continue
                await _dispatch(websocket, raw)
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(websocket)

    async def _dispatch(websocket: WebSocket, raw: str) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as exc:
            await hub.send(websocket, FIX_ERROR, _malformed_fix(None, str(exc)).model_dump(by_alias=True))
            return

        event = message.get("event") if isinstance(message, dict) else None
        if event != FIX_APPLY:
            logger.warning("Ignoring unknown client event: %r", event)
            return

        data = message.get("data")
        try:
            payload = FixPayload.model_validate(data)
        except ValidationError as exc:
            response = _malformed_fix(data, f"{exc.error_count()} invalid field(s)")
            await hub.send(websocket, FIX_ERROR, response.model_dump(by_alias=True))
            return

        name, response = await session.handle_fix(payload)
        body = response.model_dump(by_alias=True)
        if name == FIX_COMPLETE:
            # Every client, the requester included, hears about it exactly once.
            await hub.broadcast(FIX_COMPLETE, body)
        else:
            await hub.send(websocket, FIX_ERROR, body)

    return app


app = create_app()
