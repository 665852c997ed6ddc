# studymate/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from studymate.core.config import settings
from studymate.core.errors import PlannerError
from studymate.models.db import engine, Base
from studymate.models import entities  # Ensure models are registered
from studymate.routers import planner, usage
from studymate.services.generative import llm_ready

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s | %(message)s",
)
# suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)

log = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# --------------------------- CORS ---------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------------- Errors ---------------------------
@app.exception_handler(PlannerError)
def planner_error_handler(request: Request, exc: PlannerError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"error": exc.message}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {message}"})


# --------------------------- DB init ---------------------------
def _init_db() -> None:
    Base.metadata.create_all(bind=engine)


_init_db()

# --------------------------- Routers ---------------------------
app.include_router(planner.router)
app.include_router(usage.router)


# --------------------------- Root & Health ---------------------------
@app.get("/")
def root():
    return RedirectResponse(url="/docs")


@app.get("/healthz")
def health():
    return {"ok": True, "app": settings.APP_NAME}


@app.get("/debug/llm")
def debug_llm():
    return {
        "has_key": settings.HAS_GROQ,
        "model": settings.GROQ_MODEL,
        "client_ready": llm_ready(),
    }
