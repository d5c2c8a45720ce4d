"""FastAPI application exposing the Wi-Fi engine to the device's web UI."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from .applier import ApplyOutcome, ApplyResult
from .config import EngineSettings
from .engine import NetworkChange, WiFiEngine
from .errors import CapabilityError, PersistenceError, ValidationError, WiFiError
from .networks import MAX_PASSPHRASE_BYTES, MAX_SSID_BYTES
from .version import APP_VERSION


class NetworkPayload(BaseModel):
    ssid: str = Field(min_length=1, max_length=MAX_SSID_BYTES)
    password: str = Field(default="", max_length=MAX_PASSPHRASE_BYTES)
    security: str | None = None


def _apply_status_code(result: ApplyResult) -> int:
    if result.outcome is ApplyOutcome.APPLIED:
        return 200
    if result.outcome is ApplyOutcome.PARTIAL_FAILURE:
        return 202
    return 500


def create_app(
    settings: EngineSettings | None = None,
    *,
    engine: WiFiEngine | None = None,
) -> FastAPI:
    app = FastAPI(title="Headless Wi-Fi", version=APP_VERSION)

    logger = logging.getLogger(__name__)
    started = time.monotonic()

    if engine is None:
        engine = WiFiEngine.from_settings(settings or EngineSettings.from_env())
    app.state.engine = engine

    def _change_payload(change: NetworkChange, response: Response) -> dict[str, object]:
        response.status_code = _apply_status_code(change.apply)
        payload = change.to_dict()
        payload["success"] = change.apply.ok
        return payload

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
            "version": APP_VERSION,
        }

    @app.get("/api/wifi/status")
    async def get_wifi_status() -> dict[str, object | None]:
        status = await engine.get_status()
        return status.to_dict()

    @app.get("/api/wifi/scan")
    async def scan_wifi() -> dict[str, object]:
        results = await engine.scan()
        return {"networks": [result.to_dict() for result in results]}

    @app.get("/api/wifi/networks")
    async def list_saved_networks() -> dict[str, object]:
        store = engine.store
        return {
            "networks": [
                network.to_dict(include_password=False) for network in engine.list_networks()
            ],
            "load_state": store.load_state.value,
            "load_error": store.load_error,
        }

    @app.post("/api/wifi/networks")
    async def save_network(payload: NetworkPayload, response: Response) -> dict[str, object]:
        try:
            change = await engine.set_network(payload.ssid, payload.password, payload.security)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except PersistenceError as exc:
            logger.warning("Saving %s failed: %s", payload.ssid, exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _change_payload(change, response)

    @app.delete("/api/wifi/networks/{ssid}")
    async def forget_network(ssid: str, response: Response) -> dict[str, object]:
        try:
            change = await engine.forget_network(ssid)
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        except WiFiError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _change_payload(change, response)

    @app.post("/api/wifi/auto-switch")
    async def auto_switch(response: Response) -> dict[str, object | None]:
        try:
            result = await engine.auto_switch()
        except CapabilityError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        except WiFiError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if result.apply is not None:
            response.status_code = _apply_status_code(result.apply)
        return result.to_dict()

    @app.post("/api/wifi/reload")
    async def reload_supplicant(response: Response) -> dict[str, object | None]:
        result = await engine.reload()
        response.status_code = _apply_status_code(result)
        return result.to_dict()

    @app.get("/api/logs")
    async def get_event_log(limit: int = 100, operation: str | None = None) -> dict[str, object]:
        event_log = engine.event_log
        if event_log is None:
            return {"entries": []}
        entries = event_log.tail(limit, operation=operation)
        return {"entries": [entry.to_dict() for entry in reversed(entries)]}

    return app


__all__ = ["NetworkPayload", "create_app"]
