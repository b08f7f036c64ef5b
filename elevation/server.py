from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Body, FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from common.config import load_config
from common.logging_setup import setup_logging
from common.types import RenderRequest
from elevation.service import ElevationService

log = logging.getLogger(__name__)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(service: Optional[ElevationService] = None, config: Optional[Dict] = None) -> FastAPI:
    """
    Build the API app. With no `service`, one is built from `config`
    (default: config/params.yaml) and initialized at startup.
    """
    cfg = config or load_config()
    log_cfg = cfg.get("logging", {})
    setup_logging(log_cfg.get("level"), log_cfg.get("format", "json"))

    svc = service or ElevationService.from_config(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await run_in_threadpool(svc.initialize)
        except Exception:
            # Requests fail with NotInitializedError until a restart fixes the credentials.
            log.exception("Failed to initialize Earth Engine service")
        yield

    app = FastAPI(title="Earth Engine DEM Viewer API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "initialized": svc.initialized,
            "cache": {"entries": len(svc.store), "dir": str(svc.store.cache_dir)},
        }

    def _parse(payload: Any) -> RenderRequest:
        payload = {} if payload is None else payload
        if not isinstance(payload, dict):
            raise ValueError("Request body must be a JSON object")
        if not payload.get("region"):
            raise ValueError("Region is required")
        return RenderRequest.from_dict(payload)

    @app.post("/api/earthengine/dem")
    def dem(payload: Any = Body(None)):
        """{region, width?, height?, skipCache?, demOnly?} -> {thumbnailUrl, stats}"""
        try:
            req = _parse(payload)
        except ValueError as e:
            return _error(str(e), 400)
        try:
            url = svc.get_dem_thumbnail(
                req.region, req.width, req.height, skip_cache=req.skip_cache, dem_only=req.dem_only
            )
            stats = svc.get_elevation_stats(req.region, skip_cache=req.skip_cache)
        except Exception as e:
            log.exception("Error in /api/earthengine/dem")
            return _error(str(e) or "Unknown error", 500)
        return {"thumbnailUrl": url, "stats": stats.to_dict() if stats else None}

    @app.post("/api/earthengine/roads")
    def roads(payload: Any = Body(None)):
        """{region, width?, height?, skipCache?} -> {thumbnailUrl}"""
        try:
            req = _parse(payload)
        except ValueError as e:
            return _error(str(e), 400)
        try:
            url = svc.get_roads_thumbnail(req.region, req.width, req.height, skip_cache=req.skip_cache)
        except Exception as e:
            log.exception("Error in /api/earthengine/roads")
            return _error(str(e) or "Unknown error", 500)
        return {"thumbnailUrl": url}

    app.mount(svc.url_prefix, StaticFiles(directory=str(svc.store.cache_dir)), name="earthengine-cache")
    return app


# -------- local dev entrypoint --------
if __name__ == "__main__":
    srv = load_config().get("server", {})
    uvicorn.run(
        "elevation.server:create_app",
        factory=True,
        host=srv.get("host", "0.0.0.0"),
        port=int(srv.get("port", 3000)),
    )
