import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import database
from .api import auth as auth_api
from .api import interview as interview_api
from .utils.error_handlers import create_error_response, register_exception_handlers

logger = logging.getLogger(__name__)

SERVICE_NAME = "Interview Scheduling Service"
LOCAL_DEV_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _allowed_origins() -> list[str]:
    extra = [o.strip() for o in (os.getenv("FRONTEND_ORIGINS") or "").split(",")]
    return LOCAL_DEV_ORIGINS + [o for o in extra if o]


@asynccontextmanager
async def _create_tables_on_startup(app: FastAPI):
    # A failed create_all leaves the API up; /db/health reports the error.
    try:
        database.init_db()
        app.state.db_init_error = None
    except Exception as e:
        logger.exception("Database initialisation failed: %s", e)
        app.state.db_init_error = str(e)
    yield


def create_app(*, init_database: bool = True) -> FastAPI:
    """
    Assemble the API. `init_database=False` skips table creation at startup,
    for callers that manage the schema themselves (tests, migrations).
    """
    api = FastAPI(title=SERVICE_NAME, lifespan=_create_tables_on_startup if init_database else None)
    api.state.db_init_error = None

    api.include_router(auth_api.router)
    api.include_router(interview_api.router)
    register_exception_handlers(api)

    api.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @api.get("/health")
    def health_check():
        return {"status": "ok", "service": SERVICE_NAME}

    @api.get("/db/health")
    def db_health():
        if api.state.db_init_error:
            return create_error_response(503, f"DB init failed: {api.state.db_init_error}")
        try:
            database.ping()
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
            return create_error_response(503, f"DB connection failed: {e}")
        return {"status": "ok"}

    return api


app = create_app()
