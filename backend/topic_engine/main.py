"""
FastAPI application entrypoint.
Run with: uvicorn topic_engine.main:app --reload --port 8000 (from backend/)

API base path: routes are mounted at root (no /api/v1 prefix).
  - Topics: GET/POST /topics, GET/PATCH /topics/{id}, POST /topics/{id}/submit|review|publish|revise,
            GET /topics/{id}/history, POST /topics/{id}/comments, POST /topics/comments/{id}/resolve
  - Health: GET /health (includes workflow counters)

All topic routes need Authorization: Bearer <token>; the token's sub claim is the actor id.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from topic_engine import metrics
from topic_engine.config import settings
from topic_engine.api.topics import router as topics_router
from topic_engine.services.errors import TopicEngineError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Topic Engine API",
    description="Versioned, multi-language topics with a draft → review → publish workflow.",
    version="0.1.0",
)

_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins if _origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(topics_router)


@app.exception_handler(TopicEngineError)
def topic_engine_error_handler(request: Request, exc: TopicEngineError):
    if exc.status_code >= 500:
        logger.error("Topic engine error on %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "Topic request rejected: %s %s code=%s status=%s",
            request.method, request.url.path, exc.code, exc.status_code,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def startup():
    """Init SQLite DB. Fail fast if production uses default SECRET_KEY."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _log = logging.getLogger("topic_engine.main")
    if settings.is_production and settings.uses_default_secret:
        _log.critical("SECRET_KEY must be set in production. Set SECRET_KEY in env or .env.")
        raise RuntimeError("SECRET_KEY must be set in production. Set SECRET_KEY in env or .env.")
    from topic_engine.database import init_db
    init_db()
    _log.info(
        "Topic engine started: env=%s page_size=%s/%s",
        settings.env or "development", settings.default_page_size, settings.max_page_size,
    )


@app.get("/health")
def health():
    """Health check (JSON) with in-process workflow counters."""
    return {"status": "ok", "message": "Topic Engine API", "metrics": metrics.snapshot()}
