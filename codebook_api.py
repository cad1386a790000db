"""
AI Coding Book API — Main Application
FastAPI application that turns batches of problem titles into stored coding
questions (description, example, Python solution, explanation) using an LLM.
"""

from dotenv import load_dotenv
load_dotenv()

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from database.database import Base, engine, sqlite_path
from database import models  # noqa: F401  (registers tables on Base)
from routers import chat, generation, health, questions
from services.cache import CLEANUP_INTERVAL_SECONDS, cache
from services.rate_limit import rate_limiter
from services.sweeper import start_sweeps, stop_sweeps

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(message)s")
log = logging.getLogger(__name__)

RATE_LIMIT_SWEEP_SECONDS = 60


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables + start cache / limiter sweeps. Shutdown: stop sweeps."""
    db_file = sqlite_path()
    if db_file:
        os.makedirs(os.path.dirname(os.path.abspath(db_file)), exist_ok=True)
    Base.metadata.create_all(bind=engine)

    tasks = start_sweeps([
        (CLEANUP_INTERVAL_SECONDS, cache.cleanup, "cache"),
        (RATE_LIMIT_SWEEP_SECONDS, rate_limiter.sweep, "rate-limiter"),
    ])
    log.info("✓ Question store ready, background sweeps started")
    try:
        yield
    finally:
        await stop_sweeps(tasks)
        engine.dispose()


app = FastAPI(
    title="AI Coding Book API",
    description="Batch generation, storage and tutoring for AI-generated coding questions",
    version=health.API_VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are a client error (400), reported in the API envelope."""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    detail = first.get("msg", "Invalid request")
    error = f"Invalid request: {location}: {detail}" if location else f"Invalid request: {detail}"
    return JSONResponse(status_code=400, content={"success": False, "error": error})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """429 / 503 raised by dependencies keep their headers but use the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(generation.router)   # POST /api/generate
app.include_router(questions.router)    # GET/HEAD /api/questions
app.include_router(chat.router)         # POST /api/chat
app.include_router(health.router)       # /api/health, /api/metrics


@app.get("/")
def root():
    return {
        "name": "AI Coding Book API",
        "version": health.API_VERSION,
        "endpoints": {
            "docs": "/docs",
            "generate": "/api/generate",
            "questions": "/api/questions",
            "chat": "/api/chat",
            "health": "/api/health",
            "metrics": "/api/metrics",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
