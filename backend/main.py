# main.py - Handoff API: app assembly, request middleware and error rendering
import os
import uuid
import time
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database import init_db, close_db, async_session_maker
from telemetry import setup_telemetry

VERSION = "1.0.0"

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("handoff")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]


def _check_upload_root():
    upload_root = os.getenv("UPLOAD_ROOT", "/data/uploads")
    try:
        os.makedirs(upload_root, exist_ok=True)
    except OSError as e:
        logger.warning(f"Upload directory {upload_root} is not writable: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    _check_upload_root()
    setup_telemetry(app)
    logger.info(f"Handoff {VERSION} ready")
    yield
    await close_db()


app = FastAPI(
    title="Handoff",
    description="Client portals for freelancers: projects, tasks, updates and tracked file delivery",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Client-Token", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id

    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"

    # Path only: client access tokens travel in the query string
    logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed:.3f}s [{request_id[:8]}]")
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"type": err.get("type"), "loc": list(err.get("loc", [])), "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({"detail": errors, "request_id": getattr(request.state, "request_id", None)}),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": getattr(request.state, "request_id", None)},
    )


from routers import auth, portals, clients, projects, tasks, updates, files, client_portal

for module in (auth, portals, clients, projects, tasks, updates, files, client_portal):
    app.include_router(module.router)


@app.get("/health")
async def health_check():
    """Liveness plus a round trip to the database"""
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        database = f"error: {str(e)[:100]}"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "version": VERSION,
        "database": database,
    }


@app.get("/")
async def root():
    return {"name": "Handoff", "version": VERSION, "docs": "/docs", "health": "/health"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 3000)))
