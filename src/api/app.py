"""Assistant Hub proxy service -- OAuth and Google data endpoints.

Run:
    python3 -m src.api.app
    python3 -m uvicorn src.api.app:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.auth_routes import router as auth_router
from src.api.google_routes import router as google_router

logger = logging.getLogger("assistanthub.api")

app = FastAPI(title="Assistant Hub API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(auth_router)
app.include_router(google_router)


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse({"error": detail}, status_code=exc.status_code, headers=exc.headers)


@app.options("/api/{path:path}")
async def preflight(path: str) -> Response:
    return Response(status_code=200)


@app.get("/api/health")
async def health() -> JSONResponse:
    return JSONResponse({"status": "ok"})


if __name__ == "__main__":
    import uvicorn

    from src.common.config import load_config, setup_logging

    cfg = load_config()
    setup_logging(cfg)
    server = cfg.get("server", {}) or {}
    uvicorn.run(
        "src.api.app:app",
        host=server.get("host", "0.0.0.0"),
        port=int(server.get("port", 8765)),
        log_level=str(cfg.get("log_level", "INFO")).lower(),
    )
